from .cancellation_service import CancellationService
from .checkout_service import CheckoutLine, CheckoutResult, CheckoutService
from .duplicate_cleanup_service import DuplicateOrderCleanupService
from .fulfillment_service import FulfillmentService

__all__ = [
    "CancellationService",
    "CheckoutLine",
    "CheckoutResult",
    "CheckoutService",
    "DuplicateOrderCleanupService",
    "FulfillmentService",
]
