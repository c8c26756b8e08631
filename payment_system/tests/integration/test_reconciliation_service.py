import json

from django.test import TestCase

from infrastructure.email import MockEmailService
from infrastructure.notifications import NotificationService
from infrastructure.payments import ChargeStatus, MockPaymentProvider
from marketplace.cart.domain.models.cart import CartItem
from marketplace.ordering.domain.models.order import Order
from marketplace.ordering.domain.services import CancellationService, CheckoutService
from marketplace.services.base import ErrorCodes
from marketplace.tests.factories import (
    CartFactory,
    CartItemFactory,
    PayoutDestinationFactory,
    ProductFactory,
    UserFactory,
)
from payment_system.domain.services import PaymentReconciliationService


def webhook_payload(event_type, charge_id, **data):
    return json.dumps(
        {"id": f"evt_{event_type}_{charge_id}", "type": event_type, "data": {"object": {"id": charge_id, **data}}}
    ).encode()


class ReconciliationTestMixin:
    def setUp(self):
        self.provider = MockPaymentProvider()
        self.email = MockEmailService()
        notifications = NotificationService(self.email)
        self.cancellation = CancellationService(payment_provider=self.provider, notification_service=notifications)
        self.service = PaymentReconciliationService(
            payment_provider=self.provider,
            cancellation_service=self.cancellation,
            notification_service=notifications,
        )

        self.buyer = UserFactory()
        self.cart = CartFactory(user=self.buyer)
        self.destination = PayoutDestinationFactory()
        self.product = ProductFactory(shop=self.destination.shop, price=1000, stock=5)
        self.item = CartItemFactory(cart=self.cart, product=self.product, quantity=2)

        checkout = CheckoutService().checkout_cart(self.buyer, [self.item.id], "card")
        self.order = checkout.value.order
        self.charge = self.service.initiate_charge(self.order, "card").value


class InitiateChargeTest(ReconciliationTestMixin, TestCase):
    def test_charge_reference_recorded(self):
        self.order.refresh_from_db()

        self.assertEqual(self.order.charge_reference, self.charge.charge_id)
        self.assertEqual(self.charge.amount, 2000)
        self.assertEqual(self.charge.status, ChargeStatus.PENDING)
        self.assertEqual(self.charge.metadata["order_id"], str(self.order.id))

    def test_second_charge_rejected(self):
        self.order.refresh_from_db()

        result = self.service.initiate_charge(self.order, "card")

        self.assertFalse(result.ok)
        self.assertEqual(result.error, ErrorCodes.CHARGE_ALREADY_CREATED)
        self.assertEqual(len(self.provider.charges), 1)

    def test_fetch_charge(self):
        self.order.refresh_from_db()

        result = self.service.fetch_charge(self.order)

        self.assertTrue(result.ok)
        self.assertEqual(result.value.charge_id, self.charge.charge_id)


class WebhookReconciliationTest(ReconciliationTestMixin, TestCase):
    def test_successful_charge_completes_payment(self):
        result = self.service.handle_webhook(webhook_payload("charge.succeeded", self.charge.charge_id), "sig")

        self.assertTrue(result.ok)
        self.assertTrue(result.value["handled"])
        self.assertTrue(result.value["changed"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "completed")
        self.assertEqual(self.order.status, "pending")
        self.assertIsNotNone(self.order.paid_at)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)
        self.assertEqual(self.product.sold_count, 2)
        self.assertFalse(CartItem.objects.filter(pk=self.item.pk).exists())

    def test_replayed_webhook_applies_side_effects_once(self):
        payload = webhook_payload("charge.succeeded", self.charge.charge_id)

        self.service.handle_webhook(payload, "sig")
        replay = self.service.handle_webhook(payload, "sig")

        self.assertTrue(replay.ok)
        self.assertFalse(replay.value["changed"])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)
        self.assertEqual(self.product.sold_count, 2)

    def test_failed_charge(self):
        payload = webhook_payload(
            "charge.failed", self.charge.charge_id, failure_code="card_declined", failure_message="Declined"
        )

        self.service.handle_webhook(payload, "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "failed")
        self.assertEqual(self.order.status, "pending")
        self.assertEqual(self.order.payment_failure_code, "card_declined")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_failed_payment_is_not_reopened_by_webhook(self):
        self.service.handle_webhook(webhook_payload("charge.failed", self.charge.charge_id), "sig")
        self.service.handle_webhook(webhook_payload("charge.succeeded", self.charge.charge_id), "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "failed")

    def test_expired_charge_cancels_order(self):
        self.service.handle_webhook(webhook_payload("charge.expired", self.charge.charge_id, paid=False), "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "failed")
        self.assertEqual(self.order.status, "cancelled")
        self.assertIsNotNone(self.order.cancelled_at)
        self.assertEqual(self.order.refund_status, "")

    def test_expired_but_paid_charge_is_cancelled_and_refunded(self):
        self.service.handle_webhook(webhook_payload("charge.expired", self.charge.charge_id, paid=True), "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "cancelled")
        self.assertEqual(self.order.refund_status, "succeeded")
        self.assertEqual(self.order.refunded_amount, 2000)
        self.assertEqual(len(self.provider.refunds), 1)

    def test_unknown_event_type_acknowledged(self):
        result = self.service.handle_webhook(webhook_payload("customer.created", "cus_1"), "sig")

        self.assertTrue(result.ok)
        self.assertFalse(result.value["handled"])

    def test_charge_without_order_acknowledged(self):
        result = self.service.handle_webhook(webhook_payload("charge.succeeded", "chrg_unknown"), "sig")

        self.assertTrue(result.ok)
        self.assertFalse(result.value["handled"])

    def test_event_before_charge_reference_written_matches_metadata(self):
        Order.objects.filter(pk=self.order.pk).update(charge_reference="")
        payload = webhook_payload(
            "charge.succeeded", self.charge.charge_id, metadata={"order_id": str(self.order.id)}
        )

        result = self.service.handle_webhook(payload, "sig")

        self.assertTrue(result.value["handled"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.charge_reference, self.charge.charge_id)
        self.assertEqual(self.order.payment_status, "completed")

    def test_failed_charge_does_not_attach_to_cancelled_order(self):
        Order.objects.filter(pk=self.order.pk).update(charge_reference="", status="cancelled")
        payload = webhook_payload("charge.failed", self.charge.charge_id, metadata={"order_id": str(self.order.id)})

        result = self.service.handle_webhook(payload, "sig")

        self.assertTrue(result.ok)
        self.assertFalse(result.value["changed"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.charge_reference, "")
        self.assertEqual(self.order.payment_status, "pending")

    def test_late_capture_on_cancelled_order_links_charge_for_refund(self):
        Order.objects.filter(pk=self.order.pk).update(charge_reference="", status="cancelled")
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)
        payload = webhook_payload(
            "charge.succeeded", self.charge.charge_id, metadata={"order_id": str(self.order.id)}
        )

        self.service.handle_webhook(payload, "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.charge_reference, self.charge.charge_id)
        self.assertEqual(self.order.status, "cancelled")
        self.assertEqual(self.order.refund_status, "succeeded")
        self.assertEqual(len(self.provider.refunds), 1)

    def test_invalid_payload_rejected(self):
        result = self.service.handle_webhook(b"not json", "sig")

        self.assertFalse(result.ok)
        self.assertEqual(result.error, ErrorCodes.INVALID_WEBHOOK)
        self.assertEqual(result.kind, "validation")

    def test_success_after_buyer_cancellation_is_refunded(self):
        self.cancellation.cancel(self.order.id, self.buyer, "changed my mind")
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)

        self.service.handle_webhook(webhook_payload("charge.succeeded", self.charge.charge_id), "sig")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "cancelled")
        self.assertEqual(self.order.refund_status, "succeeded")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_buyer_notified_of_payment(self):
        self.service.handle_webhook(webhook_payload("charge.succeeded", self.charge.charge_id), "sig")

        tags = [tag for message in self.email.sent_messages for tag in message.tags]
        self.assertIn("order_paid", tags)
        self.assertIn("new_paid_order", tags)


class SyncReconciliationTest(ReconciliationTestMixin, TestCase):
    def test_sync_applies_gateway_status(self):
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)

        result = self.service.sync_order(self.order.id, self.buyer)

        self.assertTrue(result.ok)
        self.assertTrue(result.value["changed"])
        self.assertEqual(result.value["paymentStatus"], "completed")

    def test_sync_of_pending_charge_changes_nothing(self):
        result = self.service.sync_order(self.order.id, self.buyer)

        self.assertTrue(result.ok)
        self.assertFalse(result.value["changed"])
        self.assertEqual(result.value["paymentStatus"], "pending")

    def test_sync_after_webhook_does_not_repeat_side_effects(self):
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)
        self.service.handle_webhook(webhook_payload("charge.succeeded", self.charge.charge_id), "sig")

        result = self.service.sync_order(self.order.id, self.buyer)

        self.assertFalse(result.value["changed"])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

    def test_sync_reopens_failed_payment(self):
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.FAILED)
        self.service.sync_order(self.order.id, self.buyer)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "failed")

        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)
        result = self.service.sync_order(self.order.id, self.buyer)

        self.assertEqual(result.value["paymentStatus"], "completed")

    def test_sync_by_other_user_rejected(self):
        result = self.service.sync_order(self.order.id, UserFactory())

        self.assertEqual(result.error, ErrorCodes.NOT_ORDER_OWNER)
        self.assertEqual(result.kind, "permission")

    def test_sync_without_charge_rejected(self):
        Order.objects.filter(pk=self.order.pk).update(charge_reference="")

        result = self.service.sync_order(self.order.id, self.buyer)

        self.assertEqual(result.error, ErrorCodes.CHARGE_MISSING)

    def test_reconcile_pending_job(self):
        self.provider.set_charge_status(self.charge.charge_id, ChargeStatus.SUCCESSFUL)

        summary = self.service.reconcile_pending(days=7)

        self.assertEqual(summary, {"checked": 1, "updated": 1, "errors": 0})
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "completed")

    def test_reconcile_pending_counts_gateway_errors(self):
        self.provider.charges.clear()

        summary = self.service.reconcile_pending(days=7)

        self.assertEqual(summary["errors"], 1)
