import logging

from django.db.models import Prefetch
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from infrastructure.container import container
from marketplace.api.errors import error_response, validation_error_response
from marketplace.ordering.api.serializers import (
    CancelRequestSerializer,
    ChargeSerializer,
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    DeliverRequestSerializer,
    ErrorResponseSerializer,
    FulfilledOrderSerializer,
    OrderSerializer,
)
from marketplace.ordering.domain.models.order import Order, OrderShopGroup
from marketplace.services import ErrorCodes, service_err

logger = logging.getLogger(__name__)


def _order_queryset():
    return Order.objects.select_related("buyer", "shop").prefetch_related(
        Prefetch("shop_groups", queryset=OrderShopGroup.objects.select_related("shop").prefetch_related("items"))
    )


def _reload(order_id) -> Order:
    return _order_queryset().get(pk=order_id)


def _fulfilled_view(order: Order, user):
    """Render the order for its buyer in full, or for a seller limited to their own shops."""
    context = {}
    if order.buyer_id != user.pk:
        context["visible_shop_ids"] = [g.shop_id for g in order.shop_groups.all() if g.shop.owner_id == user.pk]
    return FulfilledOrderSerializer(order, context=context).data


@extend_schema(
    operation_id="checkout_create",
    summary="Check out cart lines (or a single product)",
    description="""
    **What it receives:**
    - `cartItemIds` (list of ints): Cart lines to buy, or
    - `productId` + `quantity`: Direct purchase of one product
    - `paymentMethod`: `card` or `promptpay`

    **What it returns:**
    - The order, the gateway charge and `isDuplicate`
    - Re-submitting the same cart lines while the first order is still unpaid
      returns that same order with `isDuplicate=true`; no second order or
      charge is created
    """,
    request=CheckoutRequestSerializer,
    responses={
        201: OpenApiResponse(response=CheckoutResponseSerializer, description="Order created"),
        200: OpenApiResponse(response=CheckoutResponseSerializer, description="Existing order returned"),
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Empty cart, stock or payout setup issue"),
        404: OpenApiResponse(response=ErrorResponseSerializer, description="Product not found"),
    },
    tags=["Marketplace - Checkout"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def checkout(request):
    serializer = CheckoutRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    checkout_service = container.checkout_service()
    if "cartItemIds" in data:
        result = checkout_service.checkout_cart(request.user, data["cartItemIds"], data["paymentMethod"])
    else:
        result = checkout_service.checkout_product(
            request.user, data["productId"], data["quantity"], data["paymentMethod"]
        )
    if not result.ok:
        return error_response(result)

    order, is_duplicate = result.value.order, result.value.is_duplicate
    reconciliation = container.reconciliation_service()

    # A duplicate reuses the charge of the original order; only an order without one gets a new charge
    if order.charge_reference:
        charge_result = reconciliation.fetch_charge(order)
    else:
        charge_result = reconciliation.initiate_charge(order, data["paymentMethod"])

    body = {
        "order": OrderSerializer(_reload(order.pk)).data,
        "charge": ChargeSerializer(charge_result.value).data if charge_result.ok else None,
        "isDuplicate": is_duplicate,
    }
    if not charge_result.ok:
        logger.warning(f"Order {order.pk} has no usable charge: {charge_result.error} {charge_result.error_detail}")
        body["chargeError"] = {"error": charge_result.error, "detail": charge_result.error_detail}

    return Response(body, status=status.HTTP_200_OK if is_duplicate else status.HTTP_201_CREATED)


class OrderViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-f-]{36}"

    @extend_schema(
        operation_id="orders_retrieve",
        summary="Get order details",
        description="""
        **What it receives:**
        - `pk` (UUID in URL): Order to retrieve
        - Authentication token (buyer, or owner of a shop in the order)

        **What it returns:**
        - The order projection with delivered credentials. The buyer sees
          every shop; a seller sees only the groups and deliveries of their
          own shops
        """,
        responses={
            200: OpenApiResponse(response=FulfilledOrderSerializer, description="Order retrieved successfully"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not buyer or seller"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
        },
        tags=["Marketplace - Orders"],
    )
    def retrieve(self, request, pk=None):
        order = _order_queryset().filter(pk=pk).first()
        if order is None:
            return error_response(service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {pk} not found"))

        is_seller = any(group.shop.owner_id == request.user.pk for group in order.shop_groups.all())
        if order.buyer_id != request.user.pk and not is_seller:
            return error_response(service_err(ErrorCodes.PERMISSION_DENIED, "You cannot view this order"))

        return Response(_fulfilled_view(order, request.user), status=status.HTTP_200_OK)

    @extend_schema(
        operation_id="orders_deliver",
        summary="Deliver a paid order (seller)",
        description="""
        **What it receives:**
        - `fulfillmentData` (object): Credentials handed to the buyer
        - `sellerNotes` (string, optional)

        **What it returns:**
        - The updated order. Once every shop in the order has delivered,
          `deliveredAt` is set and the order moves to `processing`
        """,
        request=DeliverRequestSerializer,
        responses={
            200: OpenApiResponse(response=FulfilledOrderSerializer, description="Delivered"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the seller"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Unpaid, cancelled or delivered"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        serializer = DeliverRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = container.fulfillment_service().deliver(
            pk, request.user, serializer.validated_data["fulfillmentData"], serializer.validated_data["sellerNotes"]
        )
        if not result.ok:
            return error_response(result)
        return Response(_fulfilled_view(_reload(result.value.pk), request.user), status=status.HTTP_200_OK)

    @extend_schema(
        operation_id="orders_confirm",
        summary="Confirm receipt (buyer)",
        description="""
        **What it receives:**
        - `pk` (UUID in URL): A delivered, paid order

        **What it returns:**
        - The completed order; its seller share becomes withdrawable.
          Confirming twice is a conflict carrying `confirmedAt`
        """,
        request=None,
        responses={
            200: OpenApiResponse(response=OrderSerializer, description="Confirmed"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the buyer"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Not delivered or already confirmed"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        result = container.fulfillment_service().confirm(pk, request.user)
        if not result.ok:
            return error_response(result)
        return Response(OrderSerializer(_reload(result.value.pk)).data, status=status.HTTP_200_OK)

    @extend_schema(
        operation_id="orders_cancel",
        summary="Cancel an order (buyer)",
        description="""
        **What it receives:**
        - `reason` (string, optional)

        **What it returns:**
        - The cancelled order. A paid order is refunded; a failed refund is
          reported in `refund.refundStatus` and does not block cancellation
        """,
        request=CancelRequestSerializer,
        responses={
            200: OpenApiResponse(response=OrderSerializer, description="Cancelled"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not the buyer"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Already cancelled or completed"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = CancelRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = container.cancellation_service().cancel(pk, request.user, serializer.validated_data["reason"])
        if not result.ok:
            return error_response(result)
        return Response(OrderSerializer(_reload(result.value.pk)).data, status=status.HTTP_200_OK)
