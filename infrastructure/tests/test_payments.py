"""
Payment Infrastructure Tests
==============================

Unit tests for the payment gateway abstraction layer.
"""

import json
from unittest.mock import MagicMock, patch

import stripe
from django.test import TestCase, override_settings

from infrastructure.payments import (
    Charge,
    ChargeStatus,
    MockPaymentProvider,
    PaymentException,
    PaymentFactory,
    PaymentProviderInterface,
    PaymentTimeoutException,
    Refund,
    RefundStatus,
    StripeProvider,
    TransferDestination,
    TransferStatus,
    WebhookEvent,
)


class PaymentInterfaceTest(TestCase):
    """Test PaymentProviderInterface contract."""

    def test_interface_is_abstract(self):
        """PaymentProviderInterface should not be instantiable."""
        with self.assertRaises(TypeError):
            PaymentProviderInterface()


@override_settings(
    STRIPE_SECRET_KEY="sk_test_fake",
    STRIPE_WEBHOOK_SECRET="whsec_test_fake",
)
class StripeProviderTest(TestCase):
    """Test StripeProvider implementation."""

    def setUp(self):
        self.provider = StripeProvider()
        self.destination = TransferDestination(method="bank_transfer", recipient_reference="acct_123")

    @patch("stripe.PaymentIntent.create")
    def test_create_charge_success(self, mock_create):
        mock_intent = MagicMock()
        mock_intent.id = "pi_test_123"
        mock_intent.status = "requires_payment_method"
        mock_intent.last_payment_error = None
        mock_intent.amount = 1000
        mock_intent.currency = "thb"
        mock_intent.client_secret = "pi_test_123_secret"
        mock_intent.metadata = {"order_id": "abc"}
        mock_create.return_value = mock_intent

        charge = self.provider.create_charge(1000, "THB", "promptpay", metadata={"order_id": "abc"})

        self.assertIsInstance(charge, Charge)
        self.assertEqual(charge.charge_id, "pi_test_123")
        self.assertEqual(charge.status, ChargeStatus.PENDING)
        self.assertFalse(charge.paid)
        self.assertEqual(charge.client_secret, "pi_test_123_secret")
        self.assertEqual(mock_create.call_args.kwargs["currency"], "thb")
        self.assertEqual(mock_create.call_args.kwargs["payment_method_types"], ["promptpay"])

    @patch("stripe.PaymentIntent.create")
    def test_create_charge_stripe_error(self, mock_create):
        mock_create.side_effect = stripe.StripeError("API error")

        with self.assertRaises(PaymentException):
            self.provider.create_charge(1000, "thb", "card")

    def test_intent_status_mapping(self):
        cases = [
            ({"status": "succeeded"}, ChargeStatus.SUCCESSFUL),
            ({"status": "canceled"}, ChargeStatus.EXPIRED),
            ({"status": "processing"}, ChargeStatus.PENDING),
            ({"status": "requires_payment_method"}, ChargeStatus.PENDING),
            ({"status": "requires_payment_method", "last_payment_error": {"code": "card_declined"}}, ChargeStatus.FAILED),
        ]
        for intent, expected in cases:
            with self.subTest(intent=intent):
                self.assertEqual(self.provider._map_intent_status(intent), expected)

    @patch("stripe.PaymentIntent.retrieve")
    def test_get_charge_declined(self, mock_retrieve):
        mock_intent = MagicMock()
        mock_intent.id = "pi_test_123"
        mock_intent.status = "requires_payment_method"
        mock_intent.last_payment_error = {"code": "card_declined", "message": "Your card was declined."}
        mock_intent.latest_charge = "ch_123"
        mock_intent.amount = 1000
        mock_intent.currency = "thb"
        mock_intent.client_secret = ""
        mock_intent.metadata = {}
        mock_retrieve.return_value = mock_intent

        charge = self.provider.get_charge("pi_test_123")

        self.assertEqual(charge.status, ChargeStatus.FAILED)
        self.assertEqual(charge.failure_code, "card_declined")
        self.assertIsNone(charge.paid_at)

    @patch("stripe.Webhook.construct_event")
    def test_verify_webhook_success(self, mock_construct):
        mock_construct.return_value = {
            "id": "evt_test_123",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_test_123"}},
            "created": 1234567890,
        }

        result = self.provider.verify_webhook(payload=b'{"test": "data"}', signature="test_signature")

        self.assertIsInstance(result, WebhookEvent)
        self.assertEqual(result.event_id, "evt_test_123")
        self.assertEqual(mock_construct.call_args.args[2], "whsec_test_fake")

    @patch("stripe.Webhook.construct_event")
    def test_verify_webhook_invalid_signature(self, mock_construct):
        mock_construct.side_effect = stripe.SignatureVerificationError("Invalid signature", "sig_header")

        with self.assertRaises(PaymentException):
            self.provider.verify_webhook(payload=b'{"test": "data"}', signature="invalid_signature")

    def test_charge_from_succeeded_event(self):
        event = WebhookEvent(
            event_id="evt_1",
            event_type="payment_intent.succeeded",
            data={"id": "pi_1", "amount": 2000, "currency": "thb", "metadata": {"order_id": "o1"}},
            created_at=1700000000,
        )

        charge = self.provider.charge_from_event(event)

        self.assertEqual(charge.charge_id, "pi_1")
        self.assertEqual(charge.status, ChargeStatus.SUCCESSFUL)
        self.assertTrue(charge.paid)
        self.assertEqual(charge.paid_at.timestamp(), 1700000000)
        self.assertEqual(charge.metadata, {"order_id": "o1"})

    def test_charge_from_failed_event(self):
        event = WebhookEvent(
            event_id="evt_2",
            event_type="payment_intent.payment_failed",
            data={"id": "pi_2", "last_payment_error": {"code": "insufficient_funds", "message": "No funds"}},
            created_at=1700000000,
        )

        charge = self.provider.charge_from_event(event)

        self.assertEqual(charge.status, ChargeStatus.FAILED)
        self.assertFalse(charge.paid)
        self.assertEqual(charge.failure_message, "No funds")

    def test_unrelated_event_has_no_charge(self):
        event = WebhookEvent(event_id="evt_3", event_type="account.updated", data={}, created_at=0)

        self.assertIsNone(self.provider.charge_from_event(event))

    @patch("stripe.Refund.create")
    def test_create_refund_success(self, mock_create):
        mock_refund = MagicMock()
        mock_refund.id = "re_test_123"
        mock_refund.status = "succeeded"
        mock_refund.amount = 1000
        mock_create.return_value = mock_refund

        refund = self.provider.create_refund("pi_test_123", 1000)

        self.assertIsInstance(refund, Refund)
        self.assertEqual(refund.status, RefundStatus.SUCCEEDED)
        self.assertEqual(mock_create.call_args.kwargs["payment_intent"], "pi_test_123")

    @patch.object(StripeProvider, "_create_refund_api")
    def test_refund_server_error_is_a_timeout(self, mock_api):
        mock_api.side_effect = stripe.APIError("Internal server error", http_status=500)

        with self.assertRaises(PaymentTimeoutException):
            self.provider.create_refund("pi_test_123", 1000)

    @patch.object(StripeProvider, "_create_refund_api")
    def test_refund_rejected_by_stripe_is_a_failure(self, mock_api):
        mock_api.side_effect = stripe.InvalidRequestError("Charge already refunded", param="payment_intent")

        with self.assertRaises(PaymentException) as ctx:
            self.provider.create_refund("pi_test_123", 1000)
        self.assertNotIsInstance(ctx.exception, PaymentTimeoutException)

    @patch("stripe.Transfer.create")
    def test_create_transfer_passes_idempotency_key(self, mock_create):
        mock_transfer = MagicMock()
        mock_transfer.id = "tr_test_123"
        mock_transfer.amount = 970
        mock_create.return_value = mock_transfer

        transfer = self.provider.create_transfer(self.destination, 970, "THB", idempotency_key="payout-1")

        self.assertEqual(transfer.transfer_id, "tr_test_123")
        self.assertEqual(transfer.status, TransferStatus.PAID)
        self.assertEqual(mock_create.call_args.kwargs["idempotency_key"], "payout-1")
        self.assertEqual(mock_create.call_args.kwargs["destination"], "acct_123")

    def test_transfer_without_connected_account_is_rejected(self):
        with self.assertRaises(PaymentException):
            self.provider.create_transfer(TransferDestination(method="promptpay", promptpay_id="0812345678"), 970, "thb")

    @patch.object(StripeProvider, "_create_transfer_api")
    def test_transfer_connection_error_is_a_timeout(self, mock_api):
        mock_api.side_effect = stripe.APIConnectionError("Network down")

        with self.assertRaises(PaymentTimeoutException):
            self.provider.create_transfer(self.destination, 970, "thb")

    @patch.object(StripeProvider, "_create_transfer_api")
    def test_transfer_server_error_is_a_timeout(self, mock_api):
        mock_api.side_effect = stripe.APIError("Bad gateway", http_status=502)

        with self.assertRaises(PaymentTimeoutException):
            self.provider.create_transfer(self.destination, 970, "thb")


class MockPaymentProviderTest(TestCase):
    def setUp(self):
        self.provider = MockPaymentProvider()
        self.destination = TransferDestination(method="bank_transfer", account_number="1234567890")

    def test_charge_lifecycle(self):
        charge = self.provider.create_charge(1000, "THB", "card", metadata={"order_id": "o1"})

        self.assertEqual(charge.status, ChargeStatus.PENDING)
        self.assertEqual(charge.currency, "thb")

        self.provider.set_charge_status(charge.charge_id, ChargeStatus.SUCCESSFUL)
        fetched = self.provider.get_charge(charge.charge_id)
        self.assertTrue(fetched.paid)
        self.assertIsNotNone(fetched.paid_at)

    def test_unknown_charge_raises(self):
        with self.assertRaises(PaymentException):
            self.provider.get_charge("chrg_missing")

    def test_refund_failure_modes(self):
        self.provider.refund_failure = "timeout"
        with self.assertRaises(PaymentTimeoutException):
            self.provider.create_refund("chrg_1", 100)

        self.provider.refund_failure = "error"
        with self.assertRaises(PaymentException):
            self.provider.create_refund("chrg_1", 100)
        self.assertEqual(self.provider.refunds, [])

    def test_transfer_is_idempotent(self):
        first = self.provider.create_transfer(self.destination, 970, "thb", idempotency_key="p1")
        self.provider.transfer_failure = "error"
        second = self.provider.create_transfer(self.destination, 970, "thb", idempotency_key="p1")

        self.assertEqual(first.transfer_id, second.transfer_id)
        self.assertEqual(len(self.provider.transfers), 1)
        self.assertEqual(len(self.provider.transfer_calls), 2)

    def test_transfer_failure(self):
        self.provider.transfer_failure = "error"

        with self.assertRaises(PaymentException):
            self.provider.create_transfer(self.destination, 970, "thb", idempotency_key="p2")
        self.assertNotIn("p2", self.provider.transfers)

    def test_webhook_round_trip(self):
        charge = self.provider.create_charge(500, "thb", "promptpay")
        payload = json.dumps({"id": "evt_1", "type": "charge.expired", "data": {"object": {"id": charge.charge_id}}})

        event = self.provider.verify_webhook(payload.encode(), "")
        parsed = self.provider.charge_from_event(event)

        self.assertEqual(parsed.charge_id, charge.charge_id)
        self.assertEqual(parsed.status, ChargeStatus.EXPIRED)
        self.assertFalse(parsed.paid)

    def test_invalid_webhook_payload(self):
        with self.assertRaises(PaymentException):
            self.provider.verify_webhook(b"not json", "")


class PaymentFactoryTest(TestCase):
    @override_settings(PAYMENT_PROVIDER="mock")
    def test_create_from_settings(self):
        self.assertIsInstance(PaymentFactory.create(), MockPaymentProvider)

    def test_create_stripe(self):
        self.assertIsInstance(PaymentFactory.create("stripe"), StripeProvider)

    def test_create_invalid_backend(self):
        with self.assertRaises(ValueError):
            PaymentFactory.create("paypal")
