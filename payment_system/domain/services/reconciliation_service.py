"""
Payment Gateway Reconciliation

Keeps an order's payment status in step with the gateway's charge status.

Two entry points feed the same transition:
    - push: a verified gateway webhook (handle_webhook)
    - pull: an on-demand re-sync by charge id (sync_order, reconcile_pending)

The transition itself is a compare-and-set on payment_status='pending', so a
replayed event, or a webhook racing a manual sync, applies the stock and cart
side effects at most once.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.utils import timezone

from infrastructure.observability.tracing import add_span_attributes, get_tracer
from infrastructure.payments import Charge, ChargeStatus, PaymentException, PaymentProviderInterface
from marketplace.cart.domain.services.cart_service import CartService
from marketplace.cart.domain.services.inventory_service import InventoryService
from marketplace.ordering.domain.models.order import Order
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from payment_system.infra.observability.metrics import payment_transitions_total, payment_volume_total
from utils.transaction_utils import atomic_with_isolation, retry_on_deadlock

tracer = get_tracer(__name__)


@dataclass(frozen=True)
class PaymentTransition:
    """
    Target state for an order given a gateway charge.

    payment_status None means "no change" (charge still in flight).
    order_status None means the fulfillment-driven order status is kept.
    """

    payment_status: Optional[str] = None
    order_status: Optional[str] = None
    refund_required: bool = False

    @property
    def applies(self) -> bool:
        return self.payment_status is not None


NO_TRANSITION = PaymentTransition()


def resolve_transition(charge_status: ChargeStatus, paid: bool, delivered: bool) -> PaymentTransition:
    """
    Map a gateway charge onto the order's payment axis.

    - successful and paid: payment completed; order pending, or processing if already delivered
    - failed: payment failed
    - expired: payment failed and the order is cancelled; an expired charge that
      nevertheless reports captured funds is cancelled with a refund
    - anything else: no change
    """
    if charge_status == ChargeStatus.SUCCESSFUL and paid:
        return PaymentTransition("completed", "processing" if delivered else "pending")
    if charge_status == ChargeStatus.FAILED:
        return PaymentTransition("failed")
    if charge_status == ChargeStatus.EXPIRED:
        if paid:
            return PaymentTransition("completed", "cancelled", refund_required=True)
        return PaymentTransition("failed", "cancelled")
    return NO_TRANSITION


class PaymentReconciliationService(BaseService):
    def __init__(
        self,
        payment_provider: PaymentProviderInterface = None,
        inventory_service: InventoryService = None,
        cart_service: CartService = None,
        cancellation_service=None,
        notification_service=None,
    ):
        super().__init__()
        self._payment_provider = payment_provider
        self.inventory_service = inventory_service or InventoryService()
        self.cart_service = cart_service or CartService()
        self._cancellation_service = cancellation_service
        self._notification_service = notification_service

    @property
    def payment_provider(self) -> PaymentProviderInterface:
        if self._payment_provider is None:
            from infrastructure.container import container

            self._payment_provider = container.payment()
        return self._payment_provider

    @property
    def cancellation_service(self):
        if self._cancellation_service is None:
            from infrastructure.container import container

            self._cancellation_service = container.cancellation_service()
        return self._cancellation_service

    @property
    def notifications(self):
        if self._notification_service is None:
            from infrastructure.container import container

            self._notification_service = container.notifications()
        return self._notification_service

    # ------------------------------------------------------------------
    # Charge creation
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def initiate_charge(self, order: Order, method: str = "card") -> ServiceResult[Charge]:
        """
        Create the gateway charge for a freshly created order and remember its id.
        """
        if order.status == "cancelled" or order.payment_status != "pending":
            return service_err(
                ErrorCodes.INVALID_ORDER_STATE,
                "Only unpaid, open orders can be charged",
                {"currentStatus": order.status, "paymentStatus": order.payment_status},
            )
        if order.charge_reference:
            return service_err(
                ErrorCodes.CHARGE_ALREADY_CREATED,
                "A charge already exists for this order",
                {"chargeId": order.charge_reference},
            )

        try:
            charge = self.payment_provider.create_charge(
                order.gross_total,
                order.currency,
                method,
                metadata={"order_id": str(order.id), "buyer_id": str(order.buyer_id)},
            )
        except PaymentException as e:
            self.logger.error(f"Charge creation failed for order {order.id}: {e}")
            return service_err(ErrorCodes.PAYMENT_PROVIDER_ERROR, str(e), {"orderId": str(order.id)})

        rows = Order.objects.filter(pk=order.pk, charge_reference="").update(
            charge_reference=charge.charge_id, payment_method=method, updated_at=timezone.now()
        )
        if rows != 1:
            self.logger.warning(f"Order {order.id} got a charge concurrently; discarding {charge.charge_id}")
            order.refresh_from_db()
            return service_err(
                ErrorCodes.CHARGE_ALREADY_CREATED,
                "A charge already exists for this order",
                {"chargeId": order.charge_reference},
            )

        order.charge_reference = charge.charge_id
        order.payment_method = method
        self.logger.info(f"Charge {charge.charge_id} created for order {order.id} ({order.gross_total})")
        return service_ok(charge)

    def fetch_charge(self, order: Order) -> ServiceResult[Charge]:
        if not order.charge_reference:
            return service_err(ErrorCodes.CHARGE_MISSING, "Order has no charge")
        try:
            return service_ok(self.payment_provider.get_charge(order.charge_reference))
        except PaymentException as e:
            return service_err(ErrorCodes.PAYMENT_PROVIDER_ERROR, str(e), {"orderId": str(order.id)})

    # ------------------------------------------------------------------
    # Push path
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def handle_webhook(self, payload: bytes, signature: str) -> ServiceResult[Dict[str, Any]]:
        """
        Verify and apply a gateway event.

        Unknown event types and charges that match no order are acknowledged
        (handled=False) so the gateway stops redelivering them.
        """
        try:
            event = self.payment_provider.verify_webhook(payload, signature)
        except PaymentException as e:
            self.logger.warning(f"Rejected webhook: {e}")
            return service_err(ErrorCodes.INVALID_WEBHOOK, str(e))

        charge = self.payment_provider.charge_from_event(event)
        if charge is None:
            self.logger.info(f"Ignoring webhook event {event.event_id} of type {event.event_type}")
            return service_ok({"handled": False, "eventType": event.event_type})

        order = self._find_order_for_charge(charge)
        if order is None:
            self.logger.warning(f"Webhook {event.event_id}: no order for charge {charge.charge_id}")
            return service_ok({"handled": False, "eventType": event.event_type, "chargeId": charge.charge_id})

        outcome = self.apply_charge(order, charge, source="webhook")
        outcome.update({"handled": True, "eventType": event.event_type})
        return service_ok(outcome)

    def _find_order_for_charge(self, charge: Charge) -> Optional[Order]:
        order = Order.objects.filter(charge_reference=charge.charge_id).first()
        if order is not None:
            return order

        # The event can beat initiate_charge's write; fall back to the metadata order id
        order_id = (charge.metadata or {}).get("order_id")
        if not order_id:
            return None
        try:
            order = Order.objects.filter(pk=order_id, charge_reference="").first()
        except (ValueError, TypeError, ValidationError):
            return None
        if order is None:
            return None

        # A cancelled order only takes the reference when captured money has to be refunded against it
        if order.status == "cancelled" and not (charge.status == ChargeStatus.SUCCESSFUL and charge.paid):
            self.logger.info(f"Charge {charge.charge_id} for cancelled order {order.id} not linked: nothing captured")
            return order

        Order.objects.filter(pk=order.pk, charge_reference="").update(charge_reference=charge.charge_id)
        order.charge_reference = charge.charge_id
        return order

    # ------------------------------------------------------------------
    # Pull path
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def sync_order(self, order_id, user) -> ServiceResult[Dict[str, Any]]:
        """Buyer-initiated re-sync of an order's payment status with the gateway."""
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} not found")
        if order.buyer_id != user.pk:
            return service_err(ErrorCodes.NOT_ORDER_OWNER, "Only the buyer can sync this order")
        if not order.charge_reference:
            return service_err(ErrorCodes.CHARGE_MISSING, "Order has no payment charge to sync")
        return self._sync(order, source="sync")

    def _sync(self, order: Order, source: str) -> ServiceResult[Dict[str, Any]]:
        charge_result = self.fetch_charge(order)
        if not charge_result.ok:
            return charge_result
        charge = charge_result.value

        # An explicit re-sync is the only way a failed payment reopens
        if order.payment_status == "failed" and order.status != "cancelled":
            if charge.status in (ChargeStatus.PENDING, ChargeStatus.SUCCESSFUL):
                reopened = Order.objects.filter(pk=order.pk, payment_status="failed").exclude(status="cancelled")
                if reopened.update(payment_status="pending", updated_at=timezone.now()):
                    self.logger.info(f"Order {order.id} reopened from failed to pending by gateway re-sync")
                order.refresh_from_db()

        return service_ok(self.apply_charge(order, charge, source=source))

    @BaseService.log_performance
    def reconcile_pending(self, days: int = 7, include_all: bool = False) -> Dict[str, int]:
        """
        Re-sync orders whose gateway callback may have been missed: pending
        payments (and failed ones that may have been retried) that carry a
        charge reference.
        """
        orders = Order.objects.exclude(charge_reference="").exclude(status="cancelled")
        orders = orders.filter(payment_status__in=["pending", "failed"])
        if not include_all:
            orders = orders.filter(created_at__gte=timezone.now() - timedelta(days=days))

        summary = {"checked": 0, "updated": 0, "errors": 0}
        for order in orders.order_by("created_at").iterator():
            summary["checked"] += 1
            result = self._sync(order, source="job")
            if not result.ok:
                summary["errors"] += 1
                self.logger.warning(f"Reconcile of order {order.id} failed: {result.error_detail}")
            elif result.value["changed"]:
                summary["updated"] += 1
        self.logger.info(f"Payment reconciliation finished: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Shared transition
    # ------------------------------------------------------------------

    def apply_charge(self, order: Order, charge: Charge, source: str) -> Dict[str, Any]:
        """
        Apply the transition for `charge` to `order` if its payment is still pending.

        Returns a dict describing the resulting state and whether this call
        changed anything.
        """
        transition = resolve_transition(charge.status, charge.paid, delivered=order.delivered_at is not None)

        with tracer.start_as_current_span("payment.apply_charge") as span:
            add_span_attributes(span, order_id=order.id, charge_status=charge.status.value, source=source)
            changed = False
            if transition.applies:
                changed = self._compare_and_set(order, charge, transition)

            order.refresh_from_db()
            outcome = transition.payment_status if changed else "noop"
            payment_transitions_total.labels(source=source, outcome=outcome).inc()

            if changed:
                self._after_transition(order, transition)
            elif self._is_late_capture(order, charge):
                self.cancellation_service.refund_late_capture(order, "Payment captured after cancellation")
                order.refresh_from_db()

        return {
            "orderId": str(order.id),
            "chargeId": charge.charge_id,
            "chargeStatus": charge.status.value,
            "paymentStatus": order.payment_status,
            "orderStatus": order.status,
            "changed": changed,
        }

    @retry_on_deadlock(max_retries=3, delay=0.01, backoff=2.0)
    def _compare_and_set(self, order: Order, charge: Charge, transition: PaymentTransition) -> bool:
        now = timezone.now()
        fields = {"payment_status": transition.payment_status, "updated_at": now}
        if transition.order_status:
            fields["status"] = transition.order_status
        if transition.payment_status == "completed":
            fields["paid_at"] = charge.paid_at or now
        if transition.payment_status == "failed":
            fields["payment_failure_code"] = charge.failure_code or ""
            fields["payment_failure_message"] = charge.failure_message or ""
        if transition.order_status == "cancelled":
            fields["cancelled_at"] = now
            fields["cancel_reason"] = "Payment charge expired"

        with atomic_with_isolation("READ COMMITTED"):
            rows = (
                Order.objects.filter(pk=order.pk, payment_status="pending")
                .exclude(status="cancelled")
                .update(**fields)
            )
        if rows == 1:
            self.logger.info(
                f"Order {order.id}: payment pending -> {transition.payment_status}"
                f" (order status {transition.order_status or 'unchanged'}, charge {charge.charge_id})"
            )
        else:
            self.logger.info(f"Order {order.id}: payment no longer pending, charge {charge.charge_id} ignored")
        return rows == 1

    def _after_transition(self, order: Order, transition: PaymentTransition):
        payment_volume_total.labels(currency=order.currency, status=transition.payment_status).inc(order.gross_total)

        if transition.refund_required:
            self.cancellation_service.refund_late_capture(order, "Charge expired after capture")
            return

        if transition.payment_status == "completed":
            self.inventory_service.record_sale(order.line_items())
            self.run_best_effort(
                "cart clearing", self.cart_service.clear_items, order.buyer_id, order.cart_item_fingerprint
            )
            self.run_best_effort("payment notification", self.notifications.order_paid, order)
            self.run_best_effort("seller notification", self.notifications.new_paid_order, order)
        elif transition.payment_status == "failed":
            self.run_best_effort("payment failure notification", self.notifications.order_payment_failed, order)

    @staticmethod
    def _is_late_capture(order: Order, charge: Charge) -> bool:
        return (
            order.status == "cancelled"
            and charge.status == ChargeStatus.SUCCESSFUL
            and charge.paid
            and order.payment_status != "completed"
            and not order.refund_reference
            and not order.refund_status
        )
