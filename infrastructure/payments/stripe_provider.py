"""
Stripe Payment Provider
========================

Concrete implementation of PaymentProviderInterface using Stripe.

Charges are PaymentIntents, refunds are Refunds against the intent, and
seller payouts are Transfers to the seller's connected account (the payout
destination's recipient reference).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

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

logger = logging.getLogger(__name__)

stripe_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(
        (
            stripe.RateLimitError,
            stripe.APIConnectionError,
            stripe.APIError,
        )
    ),
    reraise=True,
)

# Webhook event type -> charge status carried by the event
CHARGE_EVENT_STATUSES = {
    "payment_intent.succeeded": ChargeStatus.SUCCESSFUL,
    "payment_intent.payment_failed": ChargeStatus.FAILED,
    "payment_intent.canceled": ChargeStatus.EXPIRED,
}


def _to_datetime(timestamp):
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


def _field(obj, name, default=None):
    """Read a field from a Stripe object or a plain webhook dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class StripeProvider(PaymentProviderInterface):
    """
    Stripe payment provider implementation.

    Configuration (in settings.py):
        STRIPE_SECRET_KEY: Stripe secret API key
        STRIPE_WEBHOOK_SECRET: Webhook endpoint secret for signature verification
    """

    def __init__(self):
        """Initialize Stripe provider with API credentials."""
        stripe.api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
        self.webhook_secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")

        if not stripe.api_key:
            logger.warning("STRIPE_SECRET_KEY not configured")

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    @stripe_retry
    def _create_payment_intent_api(self, **kwargs):
        return stripe.PaymentIntent.create(**kwargs)

    def create_charge(
        self,
        amount: int,
        currency: str,
        method: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Charge:
        """
        Create a PaymentIntent for an order.

        Args:
            amount: Amount in minor units (satang, cents)
            currency: ISO currency code
            method: 'card' or 'promptpay'
            metadata: Custom metadata (order id, buyer id)
        """
        try:
            intent = self._create_payment_intent_api(
                amount=int(amount),
                currency=currency.lower(),
                payment_method_types=[method],
                metadata=metadata or {},
            )
            logger.info(f"Created Stripe payment intent: {intent.id}")
            return self._charge_from_intent(intent)

        except stripe.APIConnectionError as e:
            logger.error(f"Stripe unreachable creating payment intent: {str(e)}")
            raise PaymentTimeoutException(f"Charge creation outcome unknown: {str(e)}") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe payment intent creation failed: {str(e)}")
            raise PaymentException(f"Failed to create charge: {str(e)}") from e

    @stripe_retry
    def _retrieve_payment_intent_api(self, intent_id):
        return stripe.PaymentIntent.retrieve(intent_id, expand=["latest_charge"])

    def get_charge(self, charge_id: str) -> Charge:
        """Retrieve a PaymentIntent and normalise its status."""
        try:
            intent = self._retrieve_payment_intent_api(charge_id)
            logger.info(f"Retrieved payment intent: {charge_id} ({intent.status})")
            return self._charge_from_intent(intent)

        except stripe.APIConnectionError as e:
            logger.error(f"Stripe unreachable retrieving {charge_id}: {str(e)}")
            raise PaymentTimeoutException(f"Charge retrieval failed: {str(e)}") from e
        except stripe.StripeError as e:
            logger.error(f"Failed to retrieve payment intent {charge_id}: {str(e)}")
            raise PaymentException(f"Charge retrieval failed: {str(e)}") from e

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    @stripe_retry
    def _create_refund_api(self, **kwargs):
        return stripe.Refund.create(**kwargs)

    def create_refund(
        self,
        charge_id: str,
        amount: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Refund:
        """
        Refund a PaymentIntent.

        Raises:
            PaymentException: If refund creation fails
        """
        try:
            refund = self._create_refund_api(
                payment_intent=charge_id,
                amount=int(amount),
                metadata=metadata or {},
            )
            logger.info(f"Created refund: {refund.id} for payment {charge_id} ({refund.status})")
            return Refund(
                refund_id=refund.id,
                status=self._map_refund_status(refund.status),
                amount=refund.amount,
            )

        except (stripe.APIConnectionError, stripe.APIError) as e:
            # Unreachable or 5xx after retries: the refund may still have been created
            logger.error(f"Stripe unreachable refunding {charge_id}: {str(e)}")
            raise PaymentTimeoutException(f"Refund outcome unknown: {str(e)}") from e
        except stripe.StripeError as e:
            logger.error(f"Refund creation failed: {str(e)}")
            raise PaymentException(f"Refund failed: {str(e)}") from e

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    @stripe_retry
    def _create_transfer_api(self, **kwargs):
        return stripe.Transfer.create(**kwargs)

    def create_transfer(
        self,
        destination: TransferDestination,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        """
        Transfer funds to a seller's connected account.

        Raises:
            PaymentException: If transfer fails or the destination has no connected account
        """
        if not destination.recipient_reference:
            raise PaymentException("Payout destination has no Stripe connected account")

        try:
            transfer_params = {
                "amount": int(amount),
                "currency": currency.lower(),
                "destination": destination.recipient_reference,
                "metadata": metadata or {},
            }
            if idempotency_key:
                transfer_params["idempotency_key"] = idempotency_key

            transfer = self._create_transfer_api(**transfer_params)

            logger.info(f"Created Stripe transfer: {transfer.id} to {destination.recipient_reference}")

            return Transfer(
                transfer_id=transfer.id,
                status=TransferStatus.PAID,  # Transfers to connected accounts settle synchronously
                amount=transfer.amount,
                fee=0,
            )

        except (stripe.APIConnectionError, stripe.APIError) as e:
            logger.error(f"Stripe unreachable during transfer: {str(e)}")
            raise PaymentTimeoutException(f"Transfer outcome unknown: {str(e)}") from e
        except stripe.StripeError as e:
            logger.error(f"Stripe transfer failed: {str(e)}")
            raise PaymentException(f"Transfer failed: {str(e)}") from e

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify Stripe webhook signature and parse event.

        Raises:
            PaymentException: If verification fails
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)

            logger.info(f"Verified Stripe webhook event: {event['type']}")

            return WebhookEvent(
                event_id=event["id"],
                event_type=event["type"],
                data=event["data"]["object"],
                created_at=event["created"],
            )

        except ValueError as e:
            logger.error(f"Invalid webhook payload: {str(e)}")
            raise PaymentException("Invalid webhook payload") from e
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {str(e)}")
            raise PaymentException("Webhook signature verification failed") from e

    def charge_from_event(self, event: WebhookEvent) -> Optional[Charge]:
        status = CHARGE_EVENT_STATUSES.get(event.event_type)
        if status is None:
            return None

        intent = event.data
        last_error = _field(intent, "last_payment_error") or {}
        return Charge(
            charge_id=_field(intent, "id", ""),
            status=status,
            paid=status == ChargeStatus.SUCCESSFUL,
            amount=_field(intent, "amount", 0) or 0,
            currency=_field(intent, "currency", "") or "",
            paid_at=_to_datetime(event.created_at) if status == ChargeStatus.SUCCESSFUL else None,
            failure_code=_field(last_error, "code", "") or "",
            failure_message=_field(last_error, "message", "") or "",
            metadata=dict(_field(intent, "metadata", {}) or {}),
        )

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def _charge_from_intent(self, intent) -> Charge:
        status = self._map_intent_status(intent)
        latest_charge = _field(intent, "latest_charge")
        paid_at = None
        if status == ChargeStatus.SUCCESSFUL:
            paid_at = _to_datetime(_field(latest_charge, "created") if not isinstance(latest_charge, str) else None)
        last_error = _field(intent, "last_payment_error") or {}

        return Charge(
            charge_id=intent.id,
            status=status,
            paid=status == ChargeStatus.SUCCESSFUL,
            amount=_field(intent, "amount", 0) or 0,
            currency=_field(intent, "currency", "") or "",
            paid_at=paid_at,
            failure_code=_field(last_error, "code", "") or "",
            failure_message=_field(last_error, "message", "") or "",
            client_secret=_field(intent, "client_secret", "") or "",
            metadata=dict(_field(intent, "metadata", {}) or {}),
        )

    def _map_intent_status(self, intent) -> ChargeStatus:
        """
        Map Stripe payment intent status to ChargeStatus.

        A declined attempt returns the intent to requires_payment_method with
        last_payment_error set; that is reported as a failed charge.
        """
        stripe_status = _field(intent, "status")
        if stripe_status == "succeeded":
            return ChargeStatus.SUCCESSFUL
        if stripe_status == "canceled":
            return ChargeStatus.EXPIRED
        if stripe_status == "requires_payment_method" and _field(intent, "last_payment_error"):
            return ChargeStatus.FAILED
        return ChargeStatus.PENDING

    def _map_refund_status(self, stripe_status: str) -> RefundStatus:
        status_mapping = {
            "succeeded": RefundStatus.SUCCEEDED,
            "pending": RefundStatus.PENDING,
            "requires_action": RefundStatus.PENDING,
            "failed": RefundStatus.FAILED,
            "canceled": RefundStatus.FAILED,
        }
        return status_mapping.get(stripe_status, RefundStatus.PENDING)
