"""
Payout Processor

Executes seller withdrawals against the shop's confirmed, not-yet-paid order
groups. A payout runs in three phases:

1. plan (one transaction, shop row locked): check balance, pick the groups
   oldest-confirmed-first and create the Payout in `processing`
2. transfer (no transaction open): gateway transfer keyed by the payout id
3. mark (one transaction): compare-and-set every allocated group forward and
   complete the Payout, or roll the whole batch back

A rejected transfer fails the payout and leaves every order untouched. A
transfer with unknown outcome (timeout) leaves the payout in `processing` for
reconcile_processing_payouts, which retries with the same idempotency key.
A transfer that went out but could not be marked moves the payout to
`requires_review`, which does not block new payouts but holds its amount
out of the available balance. apply_reviewed (an admin action) later marks
it against the groups that are still unpaid.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from infrastructure.observability.tracing import add_span_attributes, get_tracer
from infrastructure.payments import (
    PaymentException,
    PaymentProviderInterface,
    PaymentTimeoutException,
    TransferDestination,
    TransferStatus,
)
from marketplace.ordering.domain.models.order import OrderShopGroup
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from marketplace.shops.domain.models.shop import PayoutDestination, Shop
from payment_system.domain.exceptions import AllocationConflict
from payment_system.domain.services.balance_service import under_review_amount
from payment_system.infra.observability.metrics import payout_volume_total
from payment_system.models import Payout
from utils.logging_utils import mask_account_number
from utils.transaction_utils import atomic_with_isolation

tracer = get_tracer(__name__)

ELIGIBLE_PAYOUT_STATUSES = (
    OrderShopGroup.PAYOUT_NONE,
    OrderShopGroup.PAYOUT_READY,
    OrderShopGroup.PAYOUT_PARTIAL,
)


@dataclass(frozen=True)
class Candidate:
    group_id: int
    order_id: str
    seller_net_amount: int
    paid_out_amount: int
    payout_status: str

    @property
    def remaining(self) -> int:
        return max(self.seller_net_amount - self.paid_out_amount, 0)


def plan_allocations(candidates: Iterable[Candidate], amount: int) -> List[Dict]:
    """
    Draw `amount` from the candidates in the order given.

    Each allocation records the state the group must still be in when it is
    marked (expected_status / expected_paid_out) and the state it moves to.
    Raises ValueError when the candidates cannot cover the amount.
    """
    remaining = amount
    allocations = []
    for candidate in candidates:
        if remaining <= 0:
            break
        take = min(candidate.remaining, remaining)
        if take <= 0:
            continue
        new_paid_out = candidate.paid_out_amount + take
        allocations.append(
            {
                "group_id": candidate.group_id,
                "order_id": candidate.order_id,
                "amount": take,
                "expected_status": candidate.payout_status,
                "expected_paid_out": candidate.paid_out_amount,
                "new_status": (
                    OrderShopGroup.PAYOUT_PAID
                    if new_paid_out >= candidate.seller_net_amount
                    else OrderShopGroup.PAYOUT_PARTIAL
                ),
                "new_paid_out": new_paid_out,
            }
        )
        remaining -= take
    if remaining > 0:
        raise ValueError(f"Candidates cover {amount - remaining} of {amount}")
    return allocations


def eligible_candidates(shop_id) -> List[Candidate]:
    """
    Confirmed groups with money left, oldest confirmation first.

    Uses the same confirmed-order predicate as the balance, so the payout can
    always satisfy the `available` the balance reported.
    """
    rows = (
        OrderShopGroup.objects.filter(
            shop_id=shop_id,
            order__status="completed",
            order__buyer_confirmed=True,
            payout_status__in=ELIGIBLE_PAYOUT_STATUSES,
        )
        .order_by("order__buyer_confirmed_at", "order_id")
        .values_list("id", "order_id", "seller_net_amount", "paid_out_amount", "payout_status")
    )
    return [
        Candidate(group_id=gid, order_id=str(oid), seller_net_amount=net, paid_out_amount=paid, payout_status=status)
        for gid, oid, net, paid, status in rows
    ]


class PayoutService(BaseService):
    def __init__(self, payment_provider: PaymentProviderInterface = None, notification_service=None):
        super().__init__()
        self._payment_provider = payment_provider
        self._notification_service = notification_service

    @property
    def payment_provider(self) -> PaymentProviderInterface:
        if self._payment_provider is None:
            from infrastructure.container import container

            self._payment_provider = container.payment()
        return self._payment_provider

    @property
    def notifications(self):
        if self._notification_service is None:
            from infrastructure.container import container

            self._notification_service = container.notifications()
        return self._notification_service

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _owned_shop(self, shop_id, user) -> Tuple[Optional[Shop], Optional[ServiceResult]]:
        shop = Shop.objects.filter(pk=shop_id).first()
        if shop is None:
            return None, service_err(ErrorCodes.SHOP_NOT_FOUND, f"Shop {shop_id} not found")
        if shop.owner_id != user.pk:
            return None, service_err(ErrorCodes.NOT_SHOP_OWNER, "You can only manage your own shop's payouts")
        return shop, None

    def list_payouts(self, shop_id, user) -> ServiceResult[List[Payout]]:
        shop, error = self._owned_shop(shop_id, user)
        if error:
            return error
        return service_ok(list(Payout.objects.filter(shop=shop).order_by("-created_at")))

    def list_destinations(self, shop_id, user) -> ServiceResult[List[PayoutDestination]]:
        shop, error = self._owned_shop(shop_id, user)
        if error:
            return error
        return service_ok(list(shop.payout_destinations.all()))

    # ------------------------------------------------------------------
    # Payout execution
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def request_payout(self, shop_id, user, amount: int) -> ServiceResult[Payout]:
        """
        Withdraw `amount` (minor units) from the shop's available balance.

        Returns:
            ServiceResult with the Payout (completed, or processing when the
            transfer outcome is unknown). Over-withdrawal is a conflict whose
            context carries `available` and `requested`.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            return service_err(ErrorCodes.INVALID_AMOUNT, "Payout amount must be a positive integer")

        shop, error = self._owned_shop(shop_id, user)
        if error:
            return error

        destination = shop.payout_destinations.verified().order_by("-is_default", "created_at").first()
        if destination is None:
            return service_err(
                ErrorCodes.PAYOUT_DESTINATION_UNVERIFIED,
                "Add and verify a payout account before requesting a payout",
                {"shopId": str(shop.pk)},
            )

        with tracer.start_as_current_span("payout.request") as span:
            add_span_attributes(span, shop_id=shop.pk, amount=amount)
            planned = self._plan(shop, destination, user, amount)
            if not planned.ok:
                return planned
            return self.execute(planned.value)

    def _plan(self, shop: Shop, destination: PayoutDestination, user, amount: int) -> ServiceResult[Payout]:
        with transaction.atomic():
            # One payout at a time per shop
            Shop.objects.select_for_update().get(pk=shop.pk)

            in_flight = Payout.objects.filter(shop=shop, status=Payout.STATUS_PROCESSING).first()
            if in_flight is not None:
                return service_err(
                    ErrorCodes.PAYOUT_IN_PROGRESS,
                    "Another payout for this shop is still being processed",
                    {"payoutId": str(in_flight.pk)},
                )

            candidates = eligible_candidates(shop.pk)
            unmarked = sum(candidate.remaining for candidate in candidates)
            available = max(unmarked - under_review_amount(shop.pk), 0)
            if amount > available:
                return service_err(
                    ErrorCodes.INSUFFICIENT_BALANCE,
                    f"Requested {amount} exceeds available balance {available}",
                    {"available": available, "requested": amount},
                )

            allocations = plan_allocations(candidates, amount)
            payout = Payout.objects.create(
                shop=shop,
                destination=destination,
                requested_by=user,
                amount=amount,
                currency=getattr(settings, "MARKETPLACE_CURRENCY", "thb"),
                method=destination.payout_method,
                order_ids=list(dict.fromkeys(allocation["order_id"] for allocation in allocations)),
                allocations=allocations,
            )

        self.logger.info(
            f"Payout {payout.pk} planned for shop {shop.pk}: amount={amount} available={available} "
            f"groups={len(allocations)} destination={mask_account_number(destination.account_number or destination.promptpay_id)}"
        )
        return service_ok(payout)

    def execute(self, payout: Payout) -> ServiceResult[Payout]:
        """Attempt (or re-attempt) the gateway transfer for a processing payout."""
        if payout.status != Payout.STATUS_PROCESSING:
            return service_ok(payout)

        Payout.objects.filter(pk=payout.pk).update(attempt_count=F("attempt_count") + 1)
        try:
            transfer = self.payment_provider.create_transfer(
                self._transfer_destination(payout),
                payout.amount,
                payout.currency,
                metadata={"payout_id": str(payout.pk), "shop_id": str(payout.shop_id)},
                idempotency_key=str(payout.pk),
            )
        except PaymentTimeoutException as e:
            self.logger.error(f"Payout {payout.pk} transfer outcome unknown: {e}")
            Payout.objects.filter(pk=payout.pk).update(
                failure_message=f"Transfer outcome unknown, awaiting reconciliation: {e}", updated_at=timezone.now()
            )
            payout.refresh_from_db()
            return service_ok(payout)
        except PaymentException as e:
            return self._fail(payout, str(e))

        if transfer.status == TransferStatus.FAILED:
            return self._fail(payout, f"Transfer {transfer.transfer_id} was rejected by the gateway")
        return self._complete(payout, transfer)

    def _transfer_destination(self, payout: Payout) -> TransferDestination:
        destination = payout.destination
        if destination is None:
            raise PaymentException("Payout destination no longer exists")
        return TransferDestination(
            method=payout.method,
            recipient_reference=destination.recipient_reference,
            account_name=destination.account_name,
            account_number=destination.account_number,
            bank_code=destination.bank_code,
            promptpay_id=destination.promptpay_id,
        )

    def _fail(self, payout: Payout, message: str) -> ServiceResult[Payout]:
        Payout.objects.filter(pk=payout.pk, status=Payout.STATUS_PROCESSING).update(
            status=Payout.STATUS_FAILED, failure_message=message, updated_at=timezone.now()
        )
        payout.refresh_from_db()
        payout_volume_total.labels(currency=payout.currency, status="failed").inc(payout.amount)
        self.logger.error(f"Payout {payout.pk} failed: {message}")
        self.run_best_effort("payout failure notification", self.notifications.payout_failed, payout)
        return service_err(ErrorCodes.TRANSFER_FAILED, message, {"payoutId": str(payout.pk), "status": payout.status})

    def _complete(self, payout: Payout, transfer) -> ServiceResult[Payout]:
        now = timezone.now()
        try:
            with atomic_with_isolation("READ COMMITTED"):
                for allocation in payout.allocations:
                    self._mark_group(payout, allocation, now)
                rows = Payout.objects.filter(pk=payout.pk, status=Payout.STATUS_PROCESSING).update(
                    status=Payout.STATUS_COMPLETED,
                    transfer_reference=transfer.transfer_id,
                    fee=transfer.fee,
                    failure_message="",
                    completed_at=now,
                    updated_at=now,
                )
                if rows != 1:
                    raise AllocationConflict(f"Payout {payout.pk} is no longer processing")
        except AllocationConflict as e:
            # The money is gone; park the payout where neither a retry nor a new request can act on it
            self.logger.error(f"Payout {payout.pk} sent as {transfer.transfer_id} but could not be applied: {e}")
            Payout.objects.filter(pk=payout.pk, status=Payout.STATUS_PROCESSING).update(
                status=Payout.STATUS_REQUIRES_REVIEW,
                transfer_reference=transfer.transfer_id,
                fee=transfer.fee,
                failure_message=f"Transfer sent but order marking conflicted, needs manual reconciliation: {e}",
                updated_at=now,
            )
            payout.refresh_from_db()
            return service_ok(payout)

        payout.refresh_from_db()
        payout_volume_total.labels(currency=payout.currency, status="completed").inc(payout.amount)
        self.logger.info(f"Payout {payout.pk} completed: transfer {transfer.transfer_id}, {payout.amount}")
        self.run_best_effort("payout notification", self.notifications.payout_completed, payout)
        return service_ok(payout)

    def _mark_group(self, payout: Payout, allocation: Dict, now):
        """Compare-and-set one group's payout state; raises AllocationConflict on a miss."""
        if not OrderShopGroup.can_transition(allocation["expected_status"], allocation["new_status"]):
            raise AllocationConflict(
                f"Group {allocation['group_id']} cannot move {allocation['expected_status']} -> {allocation['new_status']}"
            )
        rows = OrderShopGroup.objects.filter(
            pk=allocation["group_id"],
            payout_status=allocation["expected_status"],
            paid_out_amount=allocation["expected_paid_out"],
            order__buyer_confirmed=True,
        ).update(
            payout_status=allocation["new_status"],
            paid_out_amount=allocation["new_paid_out"],
            last_payout_id=payout.pk,
            paid_out_at=now,
        )
        if rows != 1:
            raise AllocationConflict(f"Group {allocation['group_id']} changed since payout {payout.pk} was planned")

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def reconcile_processing_payouts(self, older_than_minutes: Optional[int] = None) -> Dict[str, int]:
        """
        Resolve payouts stuck in `processing` by re-issuing their transfer with
        the same idempotency key; a transfer the gateway already executed is
        returned rather than repeated.
        """
        minutes = (
            older_than_minutes
            if older_than_minutes is not None
            else getattr(settings, "PAYOUT_RECONCILE_AFTER_MINUTES", 15)
        )
        cutoff = timezone.now() - timedelta(minutes=minutes)
        stuck = Payout.objects.filter(status=Payout.STATUS_PROCESSING, updated_at__lte=cutoff).select_related(
            "destination"
        )

        summary = {"checked": 0, "completed": 0, "failed": 0, "processing": 0, "requires_review": 0}
        for payout in stuck.order_by("created_at"):
            summary["checked"] += 1
            self.execute(payout)
            payout.refresh_from_db()
            summary[payout.status] += 1
        self.logger.info(f"Payout reconciliation finished: {summary}")
        return summary

    @BaseService.log_performance
    def apply_reviewed(self, payout: Payout) -> ServiceResult[Payout]:
        """
        Apply a `requires_review` payout to the shop's current balance.

        The transfer already went out, so only the order markers are written:
        the amount is planned again over the groups that are still unpaid,
        oldest confirmation first, and marked in one batch. While the balance
        cannot cover it the payout stays in review and has to be settled
        outside the engine.
        """
        try:
            with atomic_with_isolation("READ COMMITTED"):
                Shop.objects.select_for_update().get(pk=payout.shop_id)
                locked = Payout.objects.select_for_update().get(pk=payout.pk)
                if locked.status != Payout.STATUS_REQUIRES_REVIEW:
                    return service_err(
                        ErrorCodes.PAYOUT_NOT_IN_REVIEW,
                        f"Payout {locked.pk} is {locked.status}, not awaiting review",
                        {"payoutId": str(locked.pk), "status": locked.status},
                    )

                candidates = eligible_candidates(locked.shop_id)
                held_elsewhere = under_review_amount(locked.shop_id) - locked.amount
                available = max(sum(candidate.remaining for candidate in candidates) - held_elsewhere, 0)
                if locked.amount > available:
                    return service_err(
                        ErrorCodes.INSUFFICIENT_BALANCE,
                        f"Payout {locked.pk} of {locked.amount} exceeds the unpaid balance {available}",
                        {"available": available, "requested": locked.amount, "payoutId": str(locked.pk)},
                    )

                now = timezone.now()
                allocations = plan_allocations(candidates, locked.amount)
                for allocation in allocations:
                    self._mark_group(locked, allocation, now)
                Payout.objects.filter(pk=locked.pk).update(
                    status=Payout.STATUS_COMPLETED,
                    allocations=allocations,
                    order_ids=list(dict.fromkeys(allocation["order_id"] for allocation in allocations)),
                    failure_message="",
                    completed_at=now,
                    updated_at=now,
                )
        except AllocationConflict as e:
            return service_err(ErrorCodes.PAYOUT_ALLOCATION_CONFLICT, str(e), {"payoutId": str(payout.pk)})

        payout.refresh_from_db()
        payout_volume_total.labels(currency=payout.currency, status="completed").inc(payout.amount)
        self.logger.warning(f"Reviewed payout {payout.pk} applied to {len(payout.allocations)} groups")
        return service_ok(payout)
