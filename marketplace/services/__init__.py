"""
Marketplace Service Layer

Shared service primitives. Domain services live with their bounded context
(marketplace.cart, marketplace.ordering, payment_system.domain).

Usage:
    from marketplace.services import BaseService, ErrorCodes, service_ok, service_err

    result = container.checkout_service().checkout_cart(user, cart_item_ids)
    if result.ok:
        order = result.value.order
    else:
        error = result.error
"""

from .base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok

__all__ = [
    "BaseService",
    "ServiceResult",
    "service_ok",
    "service_err",
    "ErrorCodes",
]
