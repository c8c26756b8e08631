"""
Dependency Injection Container
================================

Simple service locator for infrastructure dependencies and the domain
services built on top of them.

Usage:
    from infrastructure.container import container

    payment = container.payment()
    checkout = container.checkout_service()
"""

import logging
from typing import Optional

from .email import EmailFactory, EmailServiceInterface
from .notifications import NotificationService
from .payments import PaymentFactory, PaymentProviderInterface

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Service container for infrastructure dependencies.

    Implements lazy initialization and caching of service instances.
    Singleton: every import shares one container.
    """

    _instance: Optional["ServiceContainer"] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._clear()
            self._initialized = True
            logger.info("Service container initialized")

    def _clear(self):
        self._email: Optional[EmailServiceInterface] = None
        self._payment: Optional[PaymentProviderInterface] = None
        self._notifications: Optional[NotificationService] = None

        # Domain Services
        self._inventory_service = None
        self._pricing_service = None
        self._cart_service = None
        self._checkout_service = None
        self._fulfillment_service = None
        self._cancellation_service = None
        self._reconciliation_service = None
        self._balance_service = None
        self._payout_service = None

    def email(self, backend: Optional[str] = None) -> EmailServiceInterface:
        """
        Get email service instance.

        Args:
            backend: Email backend type ('smtp' or 'mock')
                    If None, uses configuration from settings
        """
        if self._email is None or backend is not None:
            self._email = EmailFactory.create(backend)
            self._notifications = None
            logger.debug(f"Created email service: {type(self._email).__name__}")
        return self._email

    def payment(self, backend: Optional[str] = None) -> PaymentProviderInterface:
        """
        Get payment provider instance.

        Args:
            backend: Payment backend type ('stripe' or 'mock')
                    If None, uses configuration from settings
        """
        if self._payment is None or backend is not None:
            self._payment = PaymentFactory.create(backend)
            logger.debug(f"Created payment service: {type(self._payment).__name__}")
        return self._payment

    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self.email())
        return self._notifications

    def inventory_service(self):
        if self._inventory_service is None:
            from marketplace.cart.domain.services import InventoryService

            self._inventory_service = InventoryService()
        return self._inventory_service

    def pricing_service(self):
        if self._pricing_service is None:
            from marketplace.cart.domain.services import PricingService

            self._pricing_service = PricingService()
        return self._pricing_service

    def cart_service(self):
        if self._cart_service is None:
            from marketplace.cart.domain.services import CartService

            self._cart_service = CartService()
        return self._cart_service

    def checkout_service(self):
        """Get CheckoutService instance."""
        if self._checkout_service is None:
            from marketplace.ordering.domain.services import CheckoutService

            self._checkout_service = CheckoutService(
                cart_service=self.cart_service(), pricing_service=self.pricing_service()
            )
            logger.debug("Created CheckoutService")
        return self._checkout_service

    def fulfillment_service(self):
        """Get FulfillmentService instance."""
        if self._fulfillment_service is None:
            from marketplace.ordering.domain.services import FulfillmentService

            self._fulfillment_service = FulfillmentService(notification_service=self.notifications())
            logger.debug("Created FulfillmentService")
        return self._fulfillment_service

    def cancellation_service(self):
        """Get CancellationService instance."""
        if self._cancellation_service is None:
            from marketplace.ordering.domain.services import CancellationService

            self._cancellation_service = CancellationService(
                payment_provider=self.payment(),
                inventory_service=self.inventory_service(),
                notification_service=self.notifications(),
            )
            logger.debug("Created CancellationService")
        return self._cancellation_service

    def reconciliation_service(self):
        """Get PaymentReconciliationService instance."""
        if self._reconciliation_service is None:
            from payment_system.domain.services import PaymentReconciliationService

            # Refunds for late captures go through the shared cancellation service
            self._reconciliation_service = PaymentReconciliationService(
                payment_provider=self.payment(),
                inventory_service=self.inventory_service(),
                cart_service=self.cart_service(),
                cancellation_service=self.cancellation_service(),
                notification_service=self.notifications(),
            )
            logger.debug("Created PaymentReconciliationService")
        return self._reconciliation_service

    def balance_service(self):
        if self._balance_service is None:
            from payment_system.domain.services import BalanceService

            self._balance_service = BalanceService()
        return self._balance_service

    def payout_service(self):
        """Get PayoutService instance."""
        if self._payout_service is None:
            from payment_system.domain.services import PayoutService

            self._payout_service = PayoutService(
                payment_provider=self.payment(), notification_service=self.notifications()
            )
            logger.debug("Created PayoutService")
        return self._payout_service

    def destination_service(self):
        from payment_system.domain.services import PayoutDestinationService

        return PayoutDestinationService()

    def duplicate_cleanup_service(self):
        from marketplace.ordering.domain.services import DuplicateOrderCleanupService

        return DuplicateOrderCleanupService()

    def reset(self):
        """
        Reset all cached service instances.

        Useful for testing or when switching between environments.
        """
        self._clear()
        logger.info("Service container reset")

    def configure_for_testing(self):
        """
        Configure container with in-memory services for testing.

        Sets up the mock email service and the mock payment gateway.
        """
        self._clear()
        self._email = EmailFactory.create("mock")
        self._payment = PaymentFactory.create("mock")
        logger.info("Service container configured for testing")


# Global singleton instance
container = ServiceContainer()


def get_email() -> EmailServiceInterface:
    """Get email service from global container."""
    return container.email()


def get_payment_provider() -> PaymentProviderInterface:
    """Get payment provider from global container."""
    return container.payment()

