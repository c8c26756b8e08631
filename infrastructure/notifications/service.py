"""
Notification Service
====================

Builds order/payout notices and hands them to the email service.

Every public method is fire-and-forget: delivery errors are logged and
swallowed so that callers never see them. Callers invoke these once the
state change has been committed.
"""

import logging
from typing import Optional

from infrastructure.email import EmailException, EmailMessage, EmailServiceInterface
from utils.logging_utils import mask_value

logger = logging.getLogger(__name__)


def _format_amount(amount: int, currency: str) -> str:
    return f"{amount / 100:,.2f} {currency.upper()}"


class NotificationService:
    def __init__(self, email_service: EmailServiceInterface):
        self.email_service = email_service

    def _deliver(self, recipient: Optional[str], subject: str, body: str, tag: str) -> bool:
        if not recipient:
            logger.debug(f"Skipping '{tag}' notification: no recipient address")
            return False
        try:
            return self.email_service.send(EmailMessage(subject=subject, body=body, to=[recipient], tags=[tag]))
        except EmailException as e:
            logger.warning(f"Notification '{tag}' to {mask_value(recipient)} failed: {e}")
            return False

    def order_paid(self, order) -> bool:
        """Tell the buyer their payment went through."""
        body = (
            f"Your payment for order {order.id} has been received.\n"
            f"Total: {_format_amount(order.total_amount, order.currency)}\n"
            "Sellers will deliver your items shortly."
        )
        return self._deliver(order.buyer.email, f"Payment received for order {order.id}", body, "order_paid")

    def order_payment_failed(self, order) -> bool:
        body = (
            f"We could not complete the payment for order {order.id}.\n"
            f"Reason: {order.payment_failure_message or order.payment_status}"
        )
        return self._deliver(order.buyer.email, f"Payment failed for order {order.id}", body, "order_payment_failed")

    def order_delivered(self, order) -> bool:
        body = (
            f"Your order {order.id} has been delivered.\n"
            "Please confirm receipt so the sellers can be paid."
        )
        return self._deliver(order.buyer.email, f"Order {order.id} delivered", body, "order_delivered")

    def order_confirmed(self, order) -> bool:
        """Tell every seller in the order that their share is now withdrawable."""
        sent = False
        for group in order.shop_groups.select_related("shop__owner"):
            body = (
                f"The buyer confirmed order {order.id}.\n"
                f"{_format_amount(group.seller_net_amount, order.currency)} is now available for payout."
            )
            subject = f"Order {order.id} confirmed"
            sent = self._deliver(group.shop.notification_email, subject, body, "order_confirmed") or sent
        return sent

    def order_cancelled(self, order) -> bool:
        lines = [f"Order {order.id} has been cancelled."]
        if order.refund_status == "succeeded":
            lines.append(f"A refund of {_format_amount(order.refunded_amount, order.currency)} is on its way.")
        elif order.refund_status == "failed":
            lines.append("Your refund could not be issued automatically; our team will follow up.")
        return self._deliver(order.buyer.email, f"Order {order.id} cancelled", "\n".join(lines), "order_cancelled")

    def payout_completed(self, payout) -> bool:
        body = (
            f"Payout {payout.id} of {_format_amount(payout.amount, payout.currency)} has been sent.\n"
            f"Orders covered: {len(payout.order_ids or [])}"
        )
        return self._deliver(payout.shop.notification_email, "Your payout has been sent", body, "payout_completed")

    def payout_failed(self, payout) -> bool:
        body = (
            f"Payout {payout.id} of {_format_amount(payout.amount, payout.currency)} failed.\n"
            f"Reason: {payout.failure_message or 'unknown'}\n"
            "Your balance has not changed; you can request the payout again."
        )
        return self._deliver(payout.shop.notification_email, "Your payout failed", body, "payout_failed")

    def order_auto_confirmed(self, order) -> bool:
        body = (
            f"Order {order.id} was confirmed automatically because no issue was reported "
            "within the confirmation period."
        )
        return self._deliver(order.buyer.email, f"Order {order.id} auto-confirmed", body, "order_auto_confirmed")

    def new_paid_order(self, order) -> bool:
        """Tell each seller in the order that a paid order is waiting for delivery."""
        sent = False
        for group in order.shop_groups.select_related("shop__owner"):
            body = (
                f"Order {order.id} has been paid.\n"
                f"Your share: {_format_amount(group.seller_net_amount, order.currency)}\n"
                "Please deliver the items to the buyer."
            )
            subject = f"New paid order {order.id}"
            sent = self._deliver(group.shop.notification_email, subject, body, "new_paid_order") or sent
        return sent
