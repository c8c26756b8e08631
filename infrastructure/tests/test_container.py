"""
Service Container Tests
========================

Unit tests for dependency injection container.
"""

from django.test import TestCase, override_settings

from infrastructure.container import ServiceContainer, container, get_email, get_payment_provider
from infrastructure.email import EmailServiceInterface, MockEmailService
from infrastructure.payments import MockPaymentProvider, PaymentProviderInterface, StripeProvider
from marketplace.ordering.domain.services import CancellationService, CheckoutService, FulfillmentService
from payment_system.domain.services import PaymentReconciliationService, PayoutService


class ServiceContainerTest(TestCase):
    def setUp(self):
        container.reset()

    def tearDown(self):
        container.reset()

    def test_container_is_singleton(self):
        container1 = ServiceContainer()
        container2 = ServiceContainer()

        self.assertIs(container1, container2)
        self.assertIs(container1, container)

    @override_settings(EMAIL_SERVICE_BACKEND="mock")
    def test_get_email_service(self):
        email = container.email()

        self.assertIsInstance(email, EmailServiceInterface)
        self.assertIsInstance(email, MockEmailService)
        self.assertIs(email, container.email())

    @override_settings(PAYMENT_PROVIDER="stripe", STRIPE_SECRET_KEY="sk_test_fake")
    def test_get_payment_service(self):
        payment = container.payment()

        self.assertIsInstance(payment, PaymentProviderInterface)
        self.assertIsInstance(payment, StripeProvider)
        self.assertIs(payment, container.payment())

    def test_explicit_backend_replaces_cached_instance(self):
        first = container.payment("mock")
        second = container.payment("mock")

        self.assertIsNot(first, second)
        self.assertIs(container.payment(), second)

    def test_switching_email_backend_rebuilds_notifications(self):
        container.configure_for_testing()
        notifications = container.notifications()

        container.email("mock")

        self.assertIsNot(container.notifications(), notifications)
        self.assertIs(container.notifications().email_service, container.email())

    def test_configure_for_testing(self):
        container.configure_for_testing()

        self.assertIsInstance(container.email(), MockEmailService)
        self.assertIsInstance(container.payment(), MockPaymentProvider)

    def test_domain_services_share_infrastructure(self):
        container.configure_for_testing()

        self.assertIsInstance(container.checkout_service(), CheckoutService)
        self.assertIsInstance(container.fulfillment_service(), FulfillmentService)
        cancellation = container.cancellation_service()
        reconciliation = container.reconciliation_service()
        payouts = container.payout_service()

        self.assertIsInstance(cancellation, CancellationService)
        self.assertIsInstance(reconciliation, PaymentReconciliationService)
        self.assertIsInstance(payouts, PayoutService)
        self.assertIs(reconciliation.cancellation_service, cancellation)
        self.assertIs(cancellation.payment_provider, container.payment())
        self.assertIs(payouts.payment_provider, container.payment())
        self.assertIs(container.checkout_service(), container.checkout_service())

    def test_reset_drops_cached_services(self):
        container.configure_for_testing()
        payment = container.payment()
        checkout = container.checkout_service()

        container.reset()

        with self.settings(PAYMENT_PROVIDER="mock"):
            self.assertIsNot(container.payment(), payment)
        self.assertIsNot(container.checkout_service(), checkout)

    def test_helper_functions(self):
        container.configure_for_testing()

        self.assertIs(get_email(), container.email())
        self.assertIs(get_payment_provider(), container.payment())
