from .request_serializers import (
    BalanceQuerySerializer,
    PayoutDestinationCreateSerializer,
    PayoutDestinationToggleSerializer,
    PayoutRequestSerializer,
)
from .response_serializers import (
    BalanceResponseSerializer,
    PayoutDestinationSerializer,
    PayoutSerializer,
    SyncResponseSerializer,
    WebhookResponseSerializer,
)

__all__ = [
    "BalanceQuerySerializer",
    "BalanceResponseSerializer",
    "PayoutDestinationCreateSerializer",
    "PayoutDestinationSerializer",
    "PayoutDestinationToggleSerializer",
    "PayoutRequestSerializer",
    "PayoutSerializer",
    "SyncResponseSerializer",
    "WebhookResponseSerializer",
]
