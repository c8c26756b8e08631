"""
Mock Payment Provider
=====================

In-memory implementation of PaymentProviderInterface for tests and local
development. Charges, refunds and transfers are kept in dictionaries so a test
can drive a charge to any status and inspect what the engine asked for.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from django.utils import timezone

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


class MockPaymentProvider(PaymentProviderInterface):
    """
    Mock gateway.

    Failure switches:
        refund_failure: None, "error" (gateway rejects) or "timeout" (unknown outcome)
        transfer_failure: None, "error" or "timeout"
        refund_status: status reported for successful refund calls
    """

    def __init__(self):
        self.charges: Dict[str, Charge] = {}
        self.refunds: List[Refund] = []
        self.transfers: Dict[str, Transfer] = {}
        self.transfer_calls: List[Dict[str, Any]] = []
        self.refund_failure: Optional[str] = None
        self.transfer_failure: Optional[str] = None
        self.refund_status: RefundStatus = RefundStatus.SUCCEEDED

    def create_charge(
        self,
        amount: int,
        currency: str,
        method: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Charge:
        charge_id = f"chrg_mock_{uuid.uuid4().hex[:16]}"
        charge = Charge(
            charge_id=charge_id,
            status=ChargeStatus.PENDING,
            amount=int(amount),
            currency=currency.lower(),
            client_secret=f"{charge_id}_secret",
            metadata=dict(metadata or {}),
        )
        self.charges[charge_id] = charge
        logger.info(f"[MOCK PAYMENT] Created charge {charge_id} for {amount} {currency} via {method}")
        return charge

    def get_charge(self, charge_id: str) -> Charge:
        try:
            return self.charges[charge_id]
        except KeyError:
            raise PaymentException(f"Charge {charge_id} not found") from None

    def set_charge_status(
        self, charge_id: str, status: ChargeStatus, failure_code: str = "", failure_message: str = ""
    ):
        """Move a charge to a new status (what the buyer's bank would do)."""
        charge = self.get_charge(charge_id)
        charge.status = status
        charge.paid = status == ChargeStatus.SUCCESSFUL
        charge.paid_at = timezone.now() if charge.paid else None
        charge.failure_code = failure_code
        charge.failure_message = failure_message
        return charge

    def create_refund(
        self,
        charge_id: str,
        amount: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Refund:
        if self.refund_failure == "timeout":
            raise PaymentTimeoutException(f"Refund outcome unknown for {charge_id}")
        if self.refund_failure:
            raise PaymentException(f"Refund rejected for {charge_id}")

        refund = Refund(refund_id=f"rfnd_mock_{uuid.uuid4().hex[:16]}", status=self.refund_status, amount=int(amount))
        self.refunds.append(refund)
        logger.info(f"[MOCK PAYMENT] Refunded {amount} on {charge_id}: {refund.refund_id}")
        return refund

    def create_transfer(
        self,
        destination: TransferDestination,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        self.transfer_calls.append(
            {
                "destination": destination,
                "amount": int(amount),
                "currency": currency,
                "metadata": dict(metadata or {}),
                "idempotency_key": idempotency_key,
            }
        )

        if idempotency_key and idempotency_key in self.transfers:
            return self.transfers[idempotency_key]
        if self.transfer_failure == "timeout":
            raise PaymentTimeoutException("Transfer outcome unknown")
        if self.transfer_failure:
            raise PaymentException("Transfer rejected by gateway")

        transfer = Transfer(
            transfer_id=f"trsf_mock_{uuid.uuid4().hex[:16]}",
            status=TransferStatus.PAID,
            amount=int(amount),
            fee=0,
        )
        self.transfers[idempotency_key or transfer.transfer_id] = transfer
        logger.info(f"[MOCK PAYMENT] Transferred {amount} {currency} via {destination.method}: {transfer.transfer_id}")
        return transfer

    def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Accept JSON payloads of the form {"id", "type", "data": {"object": {...}}, "created"}."""
        try:
            event = json.loads(payload)
            return WebhookEvent(
                event_id=event["id"],
                event_type=event["type"],
                data=event["data"]["object"],
                created_at=event.get("created", 0),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise PaymentException("Invalid webhook payload") from e

    def charge_from_event(self, event: WebhookEvent) -> Optional[Charge]:
        statuses = {
            "charge.succeeded": ChargeStatus.SUCCESSFUL,
            "charge.failed": ChargeStatus.FAILED,
            "charge.expired": ChargeStatus.EXPIRED,
        }
        status = statuses.get(event.event_type)
        if status is None:
            return None
        data = event.data
        return Charge(
            charge_id=data.get("id", ""),
            status=status,
            paid=bool(data.get("paid", status == ChargeStatus.SUCCESSFUL)),
            amount=data.get("amount", 0),
            currency=data.get("currency", ""),
            paid_at=timezone.now() if status == ChargeStatus.SUCCESSFUL else None,
            failure_code=data.get("failure_code", "") or "",
            failure_message=data.get("failure_message", "") or "",
            metadata=data.get("metadata", {}) or {},
        )
