"""
Payment Gateway Abstraction Layer
==================================

Provides the gateway contract consumed by the order engine (charges, refunds,
transfers, webhooks) and its Stripe and in-memory implementations.
"""

from .factory import PaymentFactory
from .interface import (
    Charge,
    ChargeStatus,
    PaymentException,
    PaymentProviderInterface,
    PaymentTimeoutException,
    Refund,
    RefundStatus,
    Transfer,
    TransferDestination,
    TransferStatus,
    WebhookEvent,
)
from .mock_provider import MockPaymentProvider
from .stripe_provider import StripeProvider

__all__ = [
    "PaymentProviderInterface",
    "Charge",
    "ChargeStatus",
    "Refund",
    "RefundStatus",
    "Transfer",
    "TransferDestination",
    "TransferStatus",
    "WebhookEvent",
    "PaymentException",
    "PaymentTimeoutException",
    "StripeProvider",
    "MockPaymentProvider",
    "PaymentFactory",
]
