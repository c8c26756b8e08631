"""
Payment views: gateway webhook (push path) and buyer re-sync (pull path).
"""

import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.utils import OpenApiResponse, OpenApiTypes, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from infrastructure.container import container
from marketplace.api.errors import KIND_STATUS, error_response
from marketplace.ordering.api.serializers import ErrorResponseSerializer
from payment_system.api.serializers import SyncResponseSerializer, WebhookResponseSerializer

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(View):
    """Gateway webhook - verifies the event and hands it to the reconciliation service."""

    @extend_schema(
        operation_id="payment_webhook",
        summary="Payment gateway webhook",
        description="Receives gateway charge events. The signature is verified by the payment provider.",
        request=OpenApiTypes.OBJECT,
        responses={
            200: OpenApiResponse(response=WebhookResponseSerializer, description="Event processed or ignored"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid payload or signature"),
        },
        tags=["Webhooks"],
        auth=[],
    )
    def post(self, request):
        payload = request.body
        signature = request.headers.get("stripe-signature", "")
        client_ip = request.META.get("HTTP_X_FORWARDED_FOR", "").split(",")[0] or request.META.get(
            "REMOTE_ADDR", "unknown"
        )

        result = container.reconciliation_service().handle_webhook(payload, signature)
        if not result.ok:
            logger.warning(f"Webhook from {client_ip} rejected: {result.error_detail}")
            return JsonResponse(
                {"error": result.error, "detail": result.error_detail}, status=KIND_STATUS[result.kind]
            )

        return JsonResponse(result.value, status=status.HTTP_200_OK)


@extend_schema(
    operation_id="payment_sync_order",
    summary="Re-sync an order's payment status with the gateway",
    description="""
    **What it receives:**
    - `order_id` (UUID in URL): An order of the authenticated buyer that has a charge

    **What it returns:**
    - Resulting `paymentStatus` and `orderStatus` and whether anything changed.
      A failed payment whose charge is pending or successful again is reopened
    """,
    request=None,
    responses={
        200: OpenApiResponse(response=SyncResponseSerializer, description="Synced"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Order has no charge"),
        403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the buyer"),
        404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
        502: OpenApiResponse(response=ErrorResponseSerializer, description="Gateway unavailable"),
    },
    tags=["Payments"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def sync_payment(request, order_id):
    result = container.reconciliation_service().sync_order(order_id, request.user)
    if not result.ok:
        return error_response(result)
    return Response(result.value, status=status.HTTP_200_OK)
