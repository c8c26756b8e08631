"""
Seller money views: balance, payout requests and history, payout destinations.
"""

import logging

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from infrastructure.container import container
from marketplace.api.errors import error_response, validation_error_response
from marketplace.ordering.api.serializers import ErrorResponseSerializer
from payment_system.api.serializers import (
    BalanceQuerySerializer,
    BalanceResponseSerializer,
    PayoutDestinationCreateSerializer,
    PayoutDestinationSerializer,
    PayoutDestinationToggleSerializer,
    PayoutRequestSerializer,
    PayoutSerializer,
)

logger = logging.getLogger(__name__)


@extend_schema(
    operation_id="shop_balance",
    summary="Shop balance",
    description="""
    **What it receives:**
    - `shop_id` (UUID in URL): A shop owned by the authenticated user
    - `period` (query, optional): `today`, `week`, `month` or `all` (default)

    **What it returns:**
    - `available`, `pendingConfirmation`, `totalEarnings`, `totalPaidOut`
      and the today / this week / this month earnings windows
    - `period` only narrows `periodEarnings` and `confirmedOrderCount`;
      `available` always covers every confirmed order
    """,
    parameters=[OpenApiParameter(name="period", type=str, description="today | week | month | all")],
    responses={
        200: OpenApiResponse(response=BalanceResponseSerializer, description="Balance computed"),
        403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the shop owner"),
        404: OpenApiResponse(response=ErrorResponseSerializer, description="Shop not found"),
    },
    tags=["Payouts"],
)
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def shop_balance(request, shop_id):
    query = BalanceQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return validation_error_response(query.errors)

    result = container.balance_service().get_balance(shop_id, request.user, query.validated_data["period"])
    if not result.ok:
        return error_response(result)
    return Response(result.value, status=status.HTTP_200_OK)


@extend_schema(
    methods=["GET"],
    operation_id="shop_payouts_list",
    summary="Payout history",
    responses={
        200: OpenApiResponse(response=PayoutSerializer(many=True), description="Payouts, newest first"),
        403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the shop owner"),
    },
    tags=["Payouts"],
)
@extend_schema(
    methods=["POST"],
    operation_id="shop_payouts_create",
    summary="Request a payout",
    description="""
    **What it receives:**
    - `amount` (int, minor units): At most the shop's `available` balance

    **What it returns:**
    - The payout: `completed`, or `processing` while the transfer outcome is unknown.
      `requires_review` means the transfer went out but the orders could not be marked.
    - Over-withdrawal is a 409 carrying `available` and `requested`.
    - A rejected transfer is a 502 and leaves every order untouched.
    """,
    request=PayoutRequestSerializer,
    responses={
        201: OpenApiResponse(response=PayoutSerializer, description="Payout executed"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid amount or no verified account"),
        409: OpenApiResponse(response=ErrorResponseSerializer, description="Insufficient balance or payout running"),
        502: OpenApiResponse(response=ErrorResponseSerializer, description="Transfer failed"),
    },
    tags=["Payouts"],
)
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def shop_payouts(request, shop_id):
    service = container.payout_service()

    if request.method == "GET":
        result = service.list_payouts(shop_id, request.user)
        if not result.ok:
            return error_response(result)
        return Response(PayoutSerializer(result.value, many=True).data, status=status.HTTP_200_OK)

    serializer = PayoutRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = service.request_payout(shop_id, request.user, serializer.validated_data["amount"])
    if not result.ok:
        return error_response(result)

    payout = result.value
    logger.info(f"Payout {payout.id} requested by user {request.user.pk}: {payout.status}")
    return Response(PayoutSerializer(payout).data, status=status.HTTP_201_CREATED)


@extend_schema(
    methods=["GET"],
    operation_id="shop_payout_destinations",
    summary="List payout destinations",
    description="Bank accounts and PromptPay ids of the shop, with numbers masked.",
    responses={
        200: OpenApiResponse(response=PayoutDestinationSerializer(many=True), description="Destinations"),
        403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the shop owner"),
    },
    tags=["Payouts"],
)
@extend_schema(
    methods=["POST"],
    operation_id="shop_payout_destinations_create",
    summary="Add a payout destination",
    description="""
    **What it receives:**
    - `type`: `bank` (needs `bankName`, `accountNumber`, `accountName`) or
      `promptpay` (needs `promptpayId` and `promptpayType`)
    - `displayName`, `bankCode`, `branch` (optional)

    **What it returns:**
    - The new destination, masked and unverified. The shop's first
      destination becomes its default.
    """,
    request=PayoutDestinationCreateSerializer,
    responses={
        201: OpenApiResponse(response=PayoutDestinationSerializer, description="Destination added"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Missing or malformed account details"),
        403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the shop owner"),
    },
    tags=["Payouts"],
)
@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def shop_payout_destinations(request, shop_id):
    if request.method == "GET":
        result = container.payout_service().list_destinations(shop_id, request.user)
        if not result.ok:
            return error_response(result)
        return Response(PayoutDestinationSerializer(result.value, many=True).data, status=status.HTTP_200_OK)

    serializer = PayoutDestinationCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = container.destination_service().add_destination(shop_id, request.user, serializer.validated_data)
    if not result.ok:
        return error_response(result)
    return Response(PayoutDestinationSerializer(result.value).data, status=status.HTTP_201_CREATED)


@extend_schema(
    operation_id="shop_payout_destination_set_default",
    summary="Make a payout destination the default",
    request=None,
    responses={
        200: OpenApiResponse(response=PayoutDestinationSerializer, description="Default updated"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Destination is disabled"),
        404: OpenApiResponse(response=ErrorResponseSerializer, description="Destination not found"),
    },
    tags=["Payouts"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def set_default_payout_destination(request, shop_id, destination_id):
    result = container.destination_service().set_default(shop_id, request.user, destination_id)
    if not result.ok:
        return error_response(result)
    return Response(PayoutDestinationSerializer(result.value).data, status=status.HTTP_200_OK)


@extend_schema(
    operation_id="shop_payout_destination_toggle",
    summary="Enable or disable a payout destination",
    description="""
    **What it receives:**
    - `enabled` (bool)

    **What it returns:**
    - The destination. The last enabled destination cannot be disabled;
      disabling the default moves the default to another enabled one.
    """,
    request=PayoutDestinationToggleSerializer,
    responses={
        200: OpenApiResponse(response=PayoutDestinationSerializer, description="Destination updated"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Last enabled destination"),
        404: OpenApiResponse(response=ErrorResponseSerializer, description="Destination not found"),
    },
    tags=["Payouts"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def toggle_payout_destination(request, shop_id, destination_id):
    serializer = PayoutDestinationToggleSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = container.destination_service().set_enabled(
        shop_id, request.user, destination_id, serializer.validated_data["enabled"]
    )
    if not result.ok:
        return error_response(result)
    return Response(PayoutDestinationSerializer(result.value).data, status=status.HTTP_200_OK)
