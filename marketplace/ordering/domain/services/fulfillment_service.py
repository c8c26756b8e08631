"""
FulfillmentService - Delivery and Escrow Release

Sellers deliver digital credentials; buyers confirm receipt. Confirmation is
the escrow-release moment: only then do the order's shop groups become
withdrawable (payout_status none -> ready).
"""

from datetime import timedelta
from typing import Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from marketplace.infra.observability.metrics import orders_confirmed_total
from marketplace.ordering.domain.models.order import Order, OrderShopGroup
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from marketplace.shops.domain.models.shop import Shop


class FulfillmentService(BaseService):
    def __init__(self, notification_service=None):
        super().__init__()
        self._notification_service = notification_service

    @property
    def notifications(self):
        if self._notification_service is None:
            from infrastructure.container import container

            self._notification_service = container.notifications()
        return self._notification_service

    @BaseService.log_performance
    def deliver(self, order_id, user, fulfillment_data: Dict, seller_notes: str = "") -> ServiceResult[Order]:
        """
        Attach the seller's delivery payload to their share of the order.

        Each shop in the order delivers its own part (stored under the shop id
        in fulfillment_data). delivered_at is set, and the order moves to
        processing, once every shop group has delivered.
        """
        if not fulfillment_data:
            return service_err(ErrorCodes.VALIDATION_ERROR, "Fulfillment data is required")

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} not found")

            groups = list(order.shop_groups.select_related("shop"))
            owned = [group for group in groups if group.shop.owner_id == user.pk]
            if not owned:
                return service_err(ErrorCodes.NOT_SHOP_OWNER, "Only the seller of this order can deliver it")

            if order.status not in ("pending", "processing"):
                return service_err(
                    ErrorCodes.INVALID_ORDER_STATE,
                    f"Order cannot be delivered while {order.status}",
                    {"currentStatus": order.status},
                )
            if order.payment_status != "completed":
                return service_err(
                    ErrorCodes.PAYMENT_NOT_COMPLETED,
                    "Order has not been paid yet",
                    {"paymentStatus": order.payment_status},
                )

            delivered = dict(order.fulfillment_data or {})
            shop_keys = [str(group.shop_id) for group in owned]
            if all(key in delivered for key in shop_keys):
                return service_err(
                    ErrorCodes.ALREADY_DELIVERED,
                    "This order has already been delivered",
                    {"deliveredAt": order.delivered_at.isoformat() if order.delivered_at else None},
                )

            now = timezone.now()
            for key in shop_keys:
                delivered[key] = {"data": fulfillment_data, "notes": seller_notes, "delivered_at": now.isoformat()}
            order.fulfillment_data = delivered
            if seller_notes:
                order.seller_notes = seller_notes

            update_fields = ["fulfillment_data", "seller_notes", "updated_at"]
            if all(str(group.shop_id) in delivered for group in groups):
                order.delivered_at = now
                order.status = "processing"
                update_fields += ["delivered_at", "status"]
            order.save(update_fields=update_fields)

        self.logger.info(f"Order {order.id} delivered by user {user.pk} (fully delivered: {bool(order.delivered_at)})")
        if order.delivered_at:
            self.run_best_effort("delivery notification", self.notifications.order_delivered, order)
        return service_ok(order)

    @BaseService.log_performance
    def confirm(self, order_id, user) -> ServiceResult[Order]:
        """Buyer confirms receipt, releasing escrow to the sellers."""
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} not found")
        if order.buyer_id != user.pk:
            return service_err(ErrorCodes.NOT_ORDER_OWNER, "Only the buyer can confirm this order")
        return self.release_escrow(order.pk, auto=False)

    def release_escrow(self, order_id, auto: bool = False) -> ServiceResult[Order]:
        """
        Confirmation transition shared by buyer confirmation and auto-confirmation.

        buyer_confirmed flips false -> true exactly once: the update only
        matches an unconfirmed, delivered, paid, non-cancelled order.
        """
        now = timezone.now()
        with transaction.atomic():
            rows = (
                Order.objects.filter(
                    pk=order_id,
                    buyer_confirmed=False,
                    delivered_at__isnull=False,
                    payment_status="completed",
                )
                .exclude(status="cancelled")
                .update(
                    buyer_confirmed=True,
                    buyer_confirmed_at=now,
                    auto_confirmed=auto,
                    status="completed",
                    updated_at=now,
                )
            )
            if rows == 1:
                OrderShopGroup.objects.filter(order_id=order_id, payout_status=OrderShopGroup.PAYOUT_NONE).update(
                    payout_status=OrderShopGroup.PAYOUT_READY
                )

        order = Order.objects.get(pk=order_id)
        if rows != 1:
            return self._confirmation_rejected(order)

        orders_confirmed_total.labels(mode="auto" if auto else "buyer").inc()
        self.logger.info(f"Order {order.id} confirmed ({'auto' if auto else 'buyer'}); escrow released")

        self.run_best_effort("shop counters", self._bump_shop_counters, order)
        self.run_best_effort("confirmation notification", self.notifications.order_confirmed, order)
        if auto:
            self.run_best_effort("auto-confirm notification", self.notifications.order_auto_confirmed, order)
        return service_ok(order)

    def _confirmation_rejected(self, order: Order) -> ServiceResult[Order]:
        if order.buyer_confirmed:
            return service_err(
                ErrorCodes.ALREADY_CONFIRMED,
                "Order has already been confirmed",
                {"confirmedAt": order.buyer_confirmed_at.isoformat() if order.buyer_confirmed_at else None},
            )
        if order.status == "cancelled":
            return service_err(
                ErrorCodes.INVALID_ORDER_STATE, "Cancelled orders cannot be confirmed", {"currentStatus": order.status}
            )
        if order.payment_status != "completed":
            return service_err(
                ErrorCodes.PAYMENT_NOT_COMPLETED, "Order has not been paid", {"paymentStatus": order.payment_status}
            )
        return service_err(ErrorCodes.NOT_DELIVERED, "Order has not been delivered yet")

    def _bump_shop_counters(self, order: Order):
        for group in order.shop_groups.all():
            Shop.objects.filter(pk=group.shop_id).update(
                total_sales=F("total_sales") + 1,
                total_revenue=F("total_revenue") + group.gross_amount,
            )

    @BaseService.log_performance
    def auto_confirm_overdue(self, now=None, days: Optional[int] = None) -> Dict[str, int]:
        """
        Confirm delivered orders the buyer never confirmed within the grace period.

        Returns:
            {"candidates": n, "confirmed": m}
        """
        now = now or timezone.now()
        days = days if days is not None else getattr(settings, "ORDER_AUTO_CONFIRM_DAYS", 7)
        cutoff = now - timedelta(days=days)

        candidate_ids = list(
            Order.objects.filter(
                buyer_confirmed=False,
                payment_status="completed",
                delivered_at__isnull=False,
                delivered_at__lte=cutoff,
            )
            .exclude(status="cancelled")
            .values_list("pk", flat=True)
        )

        confirmed = 0
        for order_id in candidate_ids:
            result = self.release_escrow(order_id, auto=True)
            if result.ok:
                confirmed += 1
            else:
                self.logger.info(f"Auto-confirm skipped order {order_id}: {result.error}")

        self.run_best_effort("escrow gauge", self.refresh_escrow_gauge)
        return {"candidates": len(candidate_ids), "confirmed": confirmed}

    def refresh_escrow_gauge(self):
        from payment_system.infra.observability.metrics import escrow_pending_value

        rows = (
            OrderShopGroup.objects.filter(
                order__payment_status="completed",
                order__buyer_confirmed=False,
                order__delivered_at__isnull=False,
            )
            .exclude(order__status="cancelled")
            .values("order__currency")
            .annotate(total=Sum("seller_net_amount"))
        )
        for row in rows:
            escrow_pending_value.labels(currency=row["order__currency"]).set(row["total"] or 0)
