"""
DuplicateOrderCleanupService - Administrative sweep of duplicate checkouts

Finds cart orders that were created twice for the same buyer and cart-line
set within the checkout dedup window (the situation the checkout guard
prevents going forward) and deletes the stale copies. The newest order of
each cluster is kept. Orders whose payment completed are never deleted.
"""

from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction

from marketplace.ordering.domain.models.order import Order, normalize_fingerprint
from marketplace.services.base import BaseService

DELETABLE_PAYMENT_STATUSES = ("pending", "failed")


class DuplicateOrderCleanupService(BaseService):
    def __init__(self, window: Optional[timedelta] = None, batch_size: Optional[int] = None):
        super().__init__()
        self.window = window or timedelta(minutes=getattr(settings, "CHECKOUT_DEDUP_WINDOW_MINUTES", 10))
        self.batch_size = batch_size or getattr(settings, "DUPLICATE_CLEANUP_BATCH_SIZE", 500)

    def find_duplicate_groups(self, buyer_id=None) -> List[Dict]:
        """
        Clusters of cart orders sharing buyer and fingerprint.

        Walking newest first, an order joins the current cluster when it was
        created within the dedup window of the cluster's kept (newest) order;
        otherwise it starts a new cluster.
        """
        orders = Order.objects.filter(source="cart").exclude(cart_item_fingerprint=[])
        if buyer_id is not None:
            orders = orders.filter(buyer_id=buyer_id)

        by_key = defaultdict(list)
        for order in orders.order_by("-created_at").only(
            "id", "buyer_id", "cart_item_fingerprint", "created_at", "payment_status", "status"
        ):
            fingerprint = normalize_fingerprint(order.cart_item_fingerprint)
            if fingerprint:
                by_key[(order.buyer_id, tuple(fingerprint))].append(order)

        groups = []
        for (buyer, fingerprint), members in by_key.items():
            keeper = None
            cluster = []
            for order in members:
                if keeper is not None and keeper.created_at - order.created_at <= self.window:
                    cluster.append(order)
                    continue
                if cluster:
                    groups.append(self._describe(buyer, fingerprint, keeper, cluster))
                keeper, cluster = order, []
            if cluster:
                groups.append(self._describe(buyer, fingerprint, keeper, cluster))
        return groups

    @staticmethod
    def _describe(buyer_id, fingerprint, keeper: Order, duplicates: List[Order]) -> Dict:
        return {
            "buyerId": str(buyer_id),
            "fingerprint": list(fingerprint),
            "keep": str(keeper.id),
            "delete": [str(o.id) for o in duplicates if o.payment_status in DELETABLE_PAYMENT_STATUSES],
            "skipped": [str(o.id) for o in duplicates if o.payment_status not in DELETABLE_PAYMENT_STATUSES],
        }

    @BaseService.log_performance
    def cleanup(self, buyer_id=None, dry_run: bool = True) -> Dict:
        """
        Delete stale duplicates (dry run by default).

        Returns:
            {"dryRun", "duplicateGroups", "ordersKept", "ordersToDelete", "ordersDeleted", "groups"}
        """
        groups = self.find_duplicate_groups(buyer_id=buyer_id)
        to_delete = [order_id for group in groups for order_id in group["delete"]]
        for group in groups:
            for order_id in group["skipped"]:
                self.logger.info(f"Keeping duplicate order {order_id}: payment already completed")

        deleted = 0
        if not dry_run:
            for start in range(0, len(to_delete), self.batch_size):
                batch = to_delete[start : start + self.batch_size]
                with transaction.atomic():
                    # Re-check the payment status at delete time; a payment may have landed since the scan
                    deleted += Order.objects.filter(
                        pk__in=batch, payment_status__in=DELETABLE_PAYMENT_STATUSES
                    ).delete()[1].get(Order._meta.label, 0)
                self.logger.info(f"Duplicate cleanup batch {start // self.batch_size + 1} deleted")

        summary = {
            "dryRun": dry_run,
            "duplicateGroups": len(groups),
            "ordersKept": len(groups),
            "ordersToDelete": len(to_delete),
            "ordersDeleted": deleted,
            "groups": groups,
        }
        self.logger.info(
            f"Duplicate cleanup ({'dry run' if dry_run else 'executed'}): "
            f"{len(groups)} groups, {len(to_delete)} deletable, {deleted} deleted"
        )
        return summary
