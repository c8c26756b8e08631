from .order_serializers import (
    CancelRequestSerializer,
    ChargeSerializer,
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DeliverRequestSerializer,
    ErrorResponseSerializer,
    FulfilledOrderSerializer,
    OrderSerializer,
)

__all__ = [
    "CancelRequestSerializer",
    "ChargeSerializer",
    "CheckoutRequestSerializer",
    "CheckoutResponseSerializer",
    "DeliverRequestSerializer",
    "ErrorResponseSerializer",
    "FulfilledOrderSerializer",
    "OrderSerializer",
]
