"""
Base classes and utilities for the service layer.

This module provides the ServiceResult pattern (inspired by Rust's Result type)
and BaseService class shared by the marketplace and payment_system services.
"""

import logging
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from django.db import transaction

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    A result type that encapsulates success or failure from service operations.

    Expected failures (validation, conflicts, gateway errors) come back as
    values instead of exceptions; the API layer turns them into responses.

    Attributes:
        ok: True if operation succeeded, False otherwise
        value: The success value (present if ok=True)
        error: Error code (present if ok=False)
        error_detail: Human-readable error message (present if ok=False)
        context: Authoritative state reported with conflict errors
                 (e.g. {"available": 200, "requested": 300})

    Examples:
        >>> result = service_ok(order)
        >>> if result.ok:
        ...     return Response(OrderSerializer(result.value).data, 200)

        >>> result = service_err("insufficient_balance", "Requested 300 exceeds 200", {"available": 200})
        >>> print(result.context["available"])  # 200
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[str]:
        return None if self.ok else ErrorCodes.kind(self.error)

    def map(self, func: Callable[[T], Any]) -> "ServiceResult":
        """
        Transform the success value if ok=True, otherwise pass through error.
        """
        if self.ok and self.value is not None:
            try:
                return service_ok(func(self.value))
            except Exception as e:
                return service_err(ErrorCodes.INTERNAL_ERROR, str(e))
        return self

    def to_dict(self) -> dict:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary with 'success' and either 'data' or 'error'
        """
        if self.ok:
            return {"success": True, "data": self.value}
        return {
            "success": False,
            "error": {"code": self.error, "message": self.error_detail, **self.context},
        }


def service_ok(value: T) -> ServiceResult[T]:
    """
    Create a successful ServiceResult.

    Example:
        >>> return service_ok(order)
    """
    return ServiceResult(ok=True, value=value)


def service_err(error: str, error_detail: str = "", context: Optional[Dict[str, Any]] = None) -> ServiceResult:
    """
    Create a failed ServiceResult.

    Args:
        error: Error code (one of ErrorCodes)
        error_detail: Human-readable error message
        context: Extra state to report alongside the error

    Example:
        >>> return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
    """
    return ServiceResult(ok=False, error=error, error_detail=error_detail or error, context=context or {})


class BaseService:
    """
    Base class for all services providing common functionality.

    Provides:
    - Logging with class name
    - Performance timing decorator

    Usage:
        class PayoutService(BaseService):
            def __init__(self, payment_provider):
                super().__init__()
                self.payment_provider = payment_provider

            @BaseService.log_performance
            def request_payout(self, shop_id, amount, user):
                self.logger.info(f"Payout requested for shop {shop_id}")
                ...
    """

    def __init__(self):
        """Initialize base service with logger."""
        self.logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    @staticmethod
    def log_performance(func: Callable) -> Callable:
        """
        Decorator to log performance of service methods.

        Logs execution time and the ServiceResult outcome (or the exception).
        """

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            start_time = time.time()
            method_name = f"{self.__class__.__name__}.{func.__name__}"

            try:
                self.logger.debug(f"{method_name} started")
                result = func(self, *args, **kwargs)
                elapsed_time = (time.time() - start_time) * 1000  # Convert to ms

                if isinstance(result, ServiceResult):
                    if result.ok:
                        self.logger.info(f"{method_name} completed successfully in {elapsed_time:.2f}ms")
                    else:
                        self.logger.warning(
                            f"{method_name} failed with error '{result.error}' in {elapsed_time:.2f}ms"
                        )
                else:
                    self.logger.info(f"{method_name} completed in {elapsed_time:.2f}ms")

                return result

            except Exception as e:
                elapsed_time = (time.time() - start_time) * 1000
                self.logger.error(
                    f"{method_name} raised exception after {elapsed_time:.2f}ms: {str(e)}",
                    exc_info=True,
                )
                raise

        return wrapper

    def run_best_effort(self, label: str, func: Callable, *args, **kwargs) -> Any:
        """
        Run a side effect that must never fail the surrounding operation
        (stock counters, cart clearing, shop counters, notifications).

        Database work runs in its own savepoint so a failure cannot poison
        an enclosing transaction. Errors are logged and None is returned.
        """
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except Exception as e:
            self.logger.warning(f"Best-effort step '{label}' failed: {e}", exc_info=True)
            return None


class ErrorCodes:
    """Standard error codes used across marketplace and payment services."""

    # Checkout errors
    CART_EMPTY = "cart_empty"
    CART_ITEM_NOT_FOUND = "cart_item_not_found"
    PRODUCT_NOT_FOUND = "product_not_found"
    PRODUCT_INACTIVE = "product_inactive"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PAYOUT_DESTINATION_MISSING = "payout_destination_missing"

    # Order errors
    ORDER_NOT_FOUND = "order_not_found"
    INVALID_ORDER_STATE = "invalid_order_state"
    PAYMENT_NOT_COMPLETED = "payment_not_completed"
    NOT_DELIVERED = "not_delivered"
    ALREADY_CONFIRMED = "already_confirmed"
    ALREADY_DELIVERED = "already_delivered"
    ORDER_ALREADY_CANCELLED = "order_already_cancelled"
    ORDER_CANNOT_CANCEL = "order_cannot_cancel"

    # Payment errors
    CHARGE_MISSING = "charge_missing"
    CHARGE_ALREADY_CREATED = "charge_already_created"
    PAYMENT_PROVIDER_ERROR = "payment_provider_error"
    INVALID_WEBHOOK = "invalid_webhook"

    # Payout errors
    SHOP_NOT_FOUND = "shop_not_found"
    INVALID_AMOUNT = "invalid_amount"
    PAYOUT_DESTINATION_UNVERIFIED = "payout_destination_unverified"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PAYOUT_IN_PROGRESS = "payout_in_progress"
    PAYOUT_NOT_IN_REVIEW = "payout_not_in_review"
    PAYOUT_ALLOCATION_CONFLICT = "payout_allocation_conflict"
    PAYOUT_NOT_FOUND = "payout_not_found"
    PAYOUT_DESTINATION_NOT_FOUND = "payout_destination_not_found"
    PAYOUT_DESTINATION_DISABLED = "payout_destination_disabled"
    LAST_ENABLED_DESTINATION = "last_enabled_destination"
    TRANSFER_FAILED = "transfer_failed"

    # Permission errors
    PERMISSION_DENIED = "permission_denied"
    NOT_ORDER_OWNER = "not_order_owner"
    NOT_SHOP_OWNER = "not_shop_owner"

    # Validation errors
    VALIDATION_ERROR = "validation_error"
    INVALID_INPUT = "invalid_input"

    # Internal errors
    INTERNAL_ERROR = "internal_error"
    DATABASE_ERROR = "database_error"

    _KINDS = {
        "validation": {
            CART_EMPTY,
            CART_ITEM_NOT_FOUND,
            PRODUCT_INACTIVE,
            INSUFFICIENT_STOCK,
            PAYOUT_DESTINATION_MISSING,
            PAYOUT_DESTINATION_UNVERIFIED,
            PAYOUT_DESTINATION_DISABLED,
            LAST_ENABLED_DESTINATION,
            CHARGE_MISSING,
            INVALID_AMOUNT,
            INVALID_WEBHOOK,
            VALIDATION_ERROR,
            INVALID_INPUT,
        },
        "conflict": {
            INVALID_ORDER_STATE,
            PAYMENT_NOT_COMPLETED,
            NOT_DELIVERED,
            ALREADY_CONFIRMED,
            ALREADY_DELIVERED,
            ORDER_ALREADY_CANCELLED,
            ORDER_CANNOT_CANCEL,
            CHARGE_ALREADY_CREATED,
            INSUFFICIENT_BALANCE,
            PAYOUT_IN_PROGRESS,
            PAYOUT_NOT_IN_REVIEW,
            PAYOUT_ALLOCATION_CONFLICT,
        },
        "not_found": {
            ORDER_NOT_FOUND,
            PRODUCT_NOT_FOUND,
            SHOP_NOT_FOUND,
            PAYOUT_NOT_FOUND,
            PAYOUT_DESTINATION_NOT_FOUND,
        },
        "permission": {PERMISSION_DENIED, NOT_ORDER_OWNER, NOT_SHOP_OWNER},
        "external": {PAYMENT_PROVIDER_ERROR, TRANSFER_FAILED},
    }

    @classmethod
    def kind(cls, code: Optional[str]) -> str:
        """Classify an error code: validation, conflict, not_found, permission, external or internal."""
        for kind, codes in cls._KINDS.items():
            if code in codes:
                return kind
        return "internal"
