"""
Email Infrastructure Tests
===========================

Unit tests for the email abstraction layer and the notification service
built on top of it.
"""

from unittest.mock import MagicMock, patch

from django.core import mail
from django.test import TestCase, override_settings

from infrastructure.email import (
    EmailException,
    EmailFactory,
    EmailMessage,
    EmailServiceInterface,
    MockEmailService,
    SMTPEmailService,
)
from infrastructure.notifications import NotificationService
from marketplace.tests.factories import PayoutDestinationFactory, ProductFactory, ShopFactory, UserFactory, make_order
from payment_system.models import Payout


class EmailInterfaceTest(TestCase):
    def test_interface_is_abstract(self):
        """EmailServiceInterface should not be instantiable."""
        with self.assertRaises(TypeError):
            EmailServiceInterface()


class MockEmailServiceTest(TestCase):
    def setUp(self):
        self.email_service = MockEmailService()

    def test_send_email(self):
        message = EmailMessage(subject="Test Subject", body="Test body", to=["test@example.com"])

        self.assertTrue(self.email_service.send(message))
        self.assertEqual(len(self.email_service.sent_messages), 1)
        self.assertEqual(self.email_service.get_last_message(), message)

    def test_clear_sent_messages(self):
        self.email_service.send(EmailMessage(subject="s", body="b", to=["a@example.com"]))

        self.email_service.clear_sent_messages()

        self.assertIsNone(self.email_service.get_last_message())


@override_settings(
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
    DEFAULT_FROM_EMAIL="orders@example.com",
)
class SMTPEmailServiceTest(TestCase):
    def setUp(self):
        self.email_service = SMTPEmailService()

    def test_send_uses_django_backend(self):
        message = EmailMessage(subject="Hello", body="Plain", to=["buyer@example.com"], html_body="<p>Plain</p>")

        self.assertTrue(self.email_service.send(message))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].from_email, "orders@example.com")
        self.assertEqual(mail.outbox[0].alternatives[0][1], "text/html")

    def test_tags_are_sent_as_header(self):
        message = EmailMessage(subject="Paid", body="Paid", to=["buyer@example.com"], tags=["order_paid"])

        self.email_service.send(message)

        self.assertEqual(mail.outbox[0].extra_headers["X-Notification-Tags"], "order_paid")

    @patch("infrastructure.email.smtp_service.EmailMultiAlternatives")
    def test_send_failure_raises(self, mock_message_cls):
        mock_message = MagicMock()
        mock_message.send.side_effect = OSError("Connection refused")
        mock_message_cls.return_value = mock_message

        with self.assertRaises(EmailException):
            self.email_service.send(EmailMessage(subject="s", body="b", to=["a@example.com"]))


class EmailFactoryTest(TestCase):
    @override_settings(EMAIL_SERVICE_BACKEND="mock")
    def test_create_from_settings(self):
        self.assertIsInstance(EmailFactory.create(), MockEmailService)

    def test_create_smtp(self):
        self.assertIsInstance(EmailFactory.create("smtp"), SMTPEmailService)

    def test_create_invalid_backend(self):
        with self.assertRaises(ValueError):
            EmailFactory.create("carrier-pigeon")


class NotificationServiceTest(TestCase):
    def setUp(self):
        self.email_service = MockEmailService()
        self.notifications = NotificationService(self.email_service)
        self.buyer = UserFactory(email="buyer@example.com")
        self.shop = ShopFactory(owner=UserFactory(email="seller@example.com"))
        self.product = ProductFactory(shop=self.shop, price=1000)

    def test_order_paid_goes_to_buyer(self):
        order = make_order(self.buyer, [(self.product, 2)], state="paid")

        self.assertTrue(self.notifications.order_paid(order))

        message = self.email_service.get_last_message()
        self.assertEqual(message.to, ["buyer@example.com"])
        self.assertEqual(message.tags, ["order_paid"])
        self.assertIn("20.00 THB", message.body)

    def test_order_confirmed_goes_to_each_seller(self):
        other_shop = ShopFactory(owner=UserFactory(email="other@example.com"))
        other_product = ProductFactory(shop=other_shop, price=500)
        order = make_order(self.buyer, [(self.product, 1), (other_product, 1)], state="confirmed")

        self.assertTrue(self.notifications.order_confirmed(order))

        recipients = sorted(message.to[0] for message in self.email_service.sent_messages)
        self.assertEqual(recipients, ["other@example.com", "seller@example.com"])

    def test_missing_recipient_is_skipped(self):
        order = make_order(UserFactory(email=""), [(self.product, 1)])

        self.assertFalse(self.notifications.order_delivered(order))
        self.assertEqual(self.email_service.sent_messages, [])

    def test_delivery_errors_are_swallowed(self):
        failing = MagicMock(spec=EmailServiceInterface)
        failing.send.side_effect = EmailException("SMTP down")
        order = make_order(self.buyer, [(self.product, 1)])

        self.assertFalse(NotificationService(failing).order_cancelled(order))

    def test_payout_failed_mentions_reason(self):
        destination = PayoutDestinationFactory(shop=self.shop)
        payout = Payout.objects.create(
            shop=self.shop,
            destination=destination,
            amount=970,
            currency="thb",
            status=Payout.STATUS_FAILED,
            failure_message="Transfer rejected by gateway",
        )

        self.assertTrue(self.notifications.payout_failed(payout))

        message = self.email_service.get_last_message()
        self.assertEqual(message.to, ["seller@example.com"])
        self.assertIn("Transfer rejected by gateway", message.body)
