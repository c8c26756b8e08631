"""
Payment Provider Interface
===========================

Abstract base class defining the contract the order engine consumes from a
payment gateway: create a charge, read its status, refund it, and transfer
seller funds out. Amounts are always integers in minor currency units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ChargeStatus(str, Enum):
    """Gateway charge status as seen by the order engine."""

    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    EXPIRED = "expired"


class RefundStatus(str, Enum):
    """Refund outcome recorded on the order."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TransferStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"
    FAILED = "failed"


@dataclass
class Charge:
    """
    Represents a gateway charge.

    Attributes:
        charge_id: Gateway charge identifier (stored as the order's charge reference)
        status: Normalised charge status
        paid: True once funds are captured
        amount: Charged amount in minor units
        currency: ISO currency code (lowercase)
        paid_at: Capture timestamp when known
        failure_code: Gateway failure code for failed charges
        failure_message: Gateway failure message for failed charges
        client_secret: Secret handed to the buyer's client to complete payment
        metadata: Custom data attached at creation
    """

    charge_id: str
    status: ChargeStatus
    paid: bool = False
    amount: int = 0
    currency: str = ""
    paid_at: Optional[datetime] = None
    failure_code: str = ""
    failure_message: str = ""
    client_secret: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Refund:
    refund_id: str
    status: RefundStatus
    amount: int


@dataclass
class TransferDestination:
    """
    Where a seller payout is sent.

    Attributes:
        method: 'bank_transfer' or 'promptpay'
        recipient_reference: Gateway-side recipient/account id, if one was registered
        account_name: Name on the receiving account
        account_number: Bank account number (bank transfers)
        bank_code: Bank identifier (bank transfers)
        promptpay_id: Mobile number / citizen id / e-wallet id (PromptPay)
    """

    method: str
    recipient_reference: str = ""
    account_name: str = ""
    account_number: str = ""
    bank_code: str = ""
    promptpay_id: str = ""


@dataclass
class Transfer:
    transfer_id: str
    status: TransferStatus
    amount: int
    fee: int = 0


@dataclass
class WebhookEvent:
    """
    Represents a webhook event from payment provider.

    Attributes:
        event_id: Unique event identifier
        event_type: Type of event (e.g., 'payment_intent.succeeded')
        data: Event payload object
        created_at: Event creation timestamp
    """

    event_id: str
    event_type: str
    data: Dict[str, Any]
    created_at: int


class PaymentProviderInterface(ABC):
    """
    Abstract interface for payment provider operations.

    Concrete implementations:
        - StripeProvider: Stripe PaymentIntents, Refunds and Transfers
        - MockPaymentProvider: in-memory gateway for tests and local runs
    """

    @abstractmethod
    def create_charge(
        self,
        amount: int,
        currency: str,
        method: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Charge:
        """
        Create a charge for an order.

        Args:
            amount: Amount in minor units
            currency: ISO currency code
            method: 'card' or 'promptpay'
            metadata: Custom data (order id, buyer id)

        Raises:
            PaymentException: If charge creation fails
        """
        pass

    @abstractmethod
    def get_charge(self, charge_id: str) -> Charge:
        """
        Retrieve the current state of a charge.

        Raises:
            PaymentException: If retrieval fails
        """
        pass

    @abstractmethod
    def create_refund(
        self,
        charge_id: str,
        amount: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Refund:
        """
        Refund a captured charge.

        Raises:
            PaymentException: If the gateway rejects the refund
            PaymentTimeoutException: If the outcome is unknown
        """
        pass

    @abstractmethod
    def create_transfer(
        self,
        destination: TransferDestination,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        """
        Transfer funds to a seller's payout destination.

        Re-issuing a transfer with the same idempotency key must return the
        original transfer instead of moving funds twice.

        Raises:
            PaymentException: If the gateway rejects the transfer
            PaymentTimeoutException: If the outcome is unknown
        """
        pass

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse webhook event from payment provider.

        Raises:
            PaymentException: If verification fails or signature is invalid
        """
        pass

    @abstractmethod
    def charge_from_event(self, event: WebhookEvent) -> Optional[Charge]:
        """
        Extract the terminal charge state carried by a webhook event.

        Returns:
            Charge for charge-status events, None for event types the order
            engine does not consume
        """
        pass


class PaymentException(Exception):
    """Base exception for payment operations."""

    pass


class PaymentTimeoutException(PaymentException):
    """The gateway call may or may not have been applied (transport failure or timeout)."""

    pass
