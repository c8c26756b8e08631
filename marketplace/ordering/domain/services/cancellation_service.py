"""
CancellationService - Order Cancellation and Refunds

Cancels an order on the buyer's behalf. A paid order is cancelled under the
row lock and refunded once that commits; a refund that fails is recorded on
the order (refund_status=failed) for manual follow-up but never blocks the
cancellation itself. Stock sold by the order is put back afterwards on a
best-effort basis.
"""

from django.db import transaction
from django.utils import timezone

from infrastructure.payments import PaymentException, PaymentProviderInterface, PaymentTimeoutException
from marketplace.cart.domain.services.inventory_service import InventoryService
from marketplace.infra.observability.metrics import order_cancellations_total
from marketplace.ordering.domain.models.order import Order
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok

NON_CANCELLABLE_STATUSES = ("cancelled", "completed")
REFUND_IN_PROGRESS = {"refund_status": "pending", "refund_error": "Refund in progress"}


class CancellationService(BaseService):
    def __init__(
        self,
        payment_provider: PaymentProviderInterface = None,
        inventory_service: InventoryService = None,
        notification_service=None,
    ):
        super().__init__()
        self._payment_provider = payment_provider
        self.inventory_service = inventory_service or InventoryService()
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

    @BaseService.log_performance
    def cancel(self, order_id, user, reason: str = "") -> ServiceResult[Order]:
        """
        Cancel an order requested by its buyer.

        Runs in three phases: the cancellation is decided and written under
        the order row lock, the gateway refund is issued after that commit,
        and the refund outcome is recorded last. A paid order carries
        refund_status=pending between the first and last phase.

        Returns:
            ServiceResult with the cancelled order. Conflicts carry currentStatus.
        """
        reason = reason or "Customer requested cancellation"

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} not found")
            if order.buyer_id != user.pk:
                return service_err(ErrorCodes.NOT_ORDER_OWNER, "Only the buyer can cancel this order")
            if order.status == "cancelled":
                return service_err(
                    ErrorCodes.ORDER_ALREADY_CANCELLED, "Order already cancelled", {"currentStatus": order.status}
                )
            if order.status == "completed":
                return service_err(
                    ErrorCodes.ORDER_CANNOT_CANCEL,
                    "This order has already been completed and cannot be cancelled",
                    {"currentStatus": order.status},
                )

            was_paid = order.payment_status == "completed"
            now = timezone.now()
            Order.objects.filter(pk=order.pk).exclude(status__in=NON_CANCELLABLE_STATUSES).update(
                status="cancelled",
                cancelled_at=now,
                cancelled_by=user,
                cancel_reason=reason,
                updated_at=now,
                **(REFUND_IN_PROGRESS if was_paid else {}),
            )

        # No row lock is held while the gateway is called
        if was_paid:
            self._record_refund(order, self._refund(order, reason))

        order.refresh_from_db()
        order_cancellations_total.labels(refund_status=order.refund_status or "none").inc()
        self.logger.info(
            f"Order {order.id} cancelled by user {user.pk} (paid={was_paid}, refund={order.refund_status or 'none'})"
        )

        # Stock was only taken when the payment completed
        if was_paid:
            self.inventory_service.restore_sale(order.line_items())
        self.run_best_effort("cancellation notification", self.notifications.order_cancelled, order)
        return service_ok(order)

    def refund_late_capture(self, order: Order, reason: str) -> ServiceResult[Order]:
        """
        Refund money captured for an order that is already cancelled (a charge
        that succeeded after the buyer cancelled, or a charge reported expired
        but paid). Only the refund fields of a cancelled order may change.

        The refund is claimed under the row lock (refund_status=pending), so
        only one caller reaches the gateway for it.
        """
        with transaction.atomic():
            locked = Order.objects.select_for_update().get(pk=order.pk)
            if locked.status != "cancelled":
                return service_err(
                    ErrorCodes.INVALID_ORDER_STATE, "Order is not cancelled", {"currentStatus": locked.status}
                )
            if locked.refund_reference or locked.refund_status in ("pending", "succeeded"):
                return service_ok(locked)
            Order.objects.filter(pk=locked.pk, status="cancelled").update(**REFUND_IN_PROGRESS)

        self._record_refund(locked, self._refund(locked, reason))

        locked.refresh_from_db()
        self.logger.warning(f"Late capture on cancelled order {locked.id} refunded: {locked.refund_status}")
        self.run_best_effort("cancellation notification", self.notifications.order_cancelled, locked)
        return service_ok(locked)

    def _record_refund(self, order: Order, refund_fields: dict):
        rows = Order.objects.filter(pk=order.pk, status="cancelled", refund_reference="").update(
            updated_at=timezone.now(), **refund_fields
        )
        if rows != 1:
            self.logger.warning(f"Refund result for order {order.id} not recorded: {refund_fields}")

    def _refund(self, order: Order, reason: str) -> dict:
        """
        Issue the gateway refund for the full gross amount and describe the
        outcome as order field values. Never raises.
        """
        if not order.charge_reference:
            self.logger.error(f"Order {order.id} is paid but has no charge reference; refund needs manual handling")
            return {"refund_status": "failed", "refund_error": "No charge reference recorded for this order"}

        try:
            refund = self.payment_provider.create_refund(
                order.charge_reference,
                order.gross_total,
                metadata={"order_id": str(order.id), "buyer_id": str(order.buyer_id), "reason": reason},
            )
        except PaymentTimeoutException as e:
            # Outcome unknown: keep it non-terminal so it can be checked at the gateway
            self.logger.error(f"Refund for order {order.id} timed out: {e}")
            return {"refund_status": "pending", "refund_error": f"Refund outcome unknown: {e}"}
        except PaymentException as e:
            self.logger.error(f"Refund for order {order.id} failed: {e}")
            return {"refund_status": "failed", "refund_error": str(e)}

        self.logger.info(f"Refund {refund.refund_id} created for order {order.id}: {refund.status.value}")
        return {
            "refund_reference": refund.refund_id,
            "refunded_amount": refund.amount,
            "refund_status": refund.status.value,
            "refund_error": "",
        }
