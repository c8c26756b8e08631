import logging

from django.db import DatabaseError
from django.http import HttpResponse
from drf_spectacular.utils import extend_schema
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from rest_framework.decorators import api_view, permission_classes

from infrastructure.container import container
from payment_system.api.permissions import IsStaffOrInternalService

logger = logging.getLogger(__name__)


@extend_schema(exclude=True)
@api_view(["GET"])
@permission_classes([IsStaffOrInternalService])
def prometheus_metrics(request):
    """
    Exposes Prometheus metrics for the order and payout engine.
    The escrow gauge is recomputed on every scrape.
    """
    try:
        container.fulfillment_service().refresh_escrow_gauge()
    except DatabaseError as e:
        logger.warning(f"Escrow gauge not refreshed: {e}")
    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
