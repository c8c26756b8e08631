"""
CheckoutService - Idempotent Order Creation

Turns a buyer's cart lines into a single Order spanning one group per shop.
Repeated submissions of the same cart-line set inside the dedup window
(double-click, client retry) return the existing pending order instead of
creating a second one.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from infrastructure.observability.tracing import add_span_attributes, get_tracer
from marketplace.cart.domain.models.cart import Cart
from marketplace.cart.domain.services.cart_service import CartService
from marketplace.cart.domain.services.pricing_service import PricingService
from marketplace.catalog.domain.models.catalog import Product
from marketplace.infra.observability.metrics import checkouts_total, order_value
from marketplace.ordering.domain.models.order import (
    Order,
    OrderItem,
    OrderShopGroup,
    build_idempotency_key,
    normalize_fingerprint,
)
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from marketplace.shops.domain.models.shop import PayoutDestination

tracer = get_tracer(__name__)


@dataclass
class CheckoutLine:
    product: Product
    quantity: int


@dataclass
class CheckoutResult:
    order: Order
    is_duplicate: bool = False


class CheckoutService(BaseService):
    """
    Service for creating orders from carts (or a single product).
    """

    def __init__(self, cart_service: Optional[CartService] = None, pricing_service: Optional[PricingService] = None):
        super().__init__()
        self.cart_service = cart_service or CartService()
        self.pricing_service = pricing_service or PricingService()

    @property
    def dedup_window(self) -> timedelta:
        return timedelta(minutes=getattr(settings, "CHECKOUT_DEDUP_WINDOW_MINUTES", 10))

    @property
    def currency(self) -> str:
        return getattr(settings, "MARKETPLACE_CURRENCY", "thb")

    def find_duplicate(self, buyer, cart_item_ids: Iterable) -> Optional[Order]:
        """
        Live order for the same buyer and the same cart-line set, if any.

        Live means cart-origin, payment still pending, not cancelled and
        created inside the dedup window.
        """
        fingerprint = normalize_fingerprint(cart_item_ids)
        if not fingerprint:
            return None

        candidates = Order.objects.filter(
            buyer=buyer,
            source="cart",
            payment_status="pending",
            created_at__gte=timezone.now() - self.dedup_window,
            idempotency_key=build_idempotency_key(buyer.pk, fingerprint),
        ).exclude(status="cancelled")

        for candidate in candidates.order_by("-created_at"):
            if normalize_fingerprint(candidate.cart_item_fingerprint) == fingerprint:
                return candidate
        return None

    @BaseService.log_performance
    def checkout_cart(self, buyer, cart_item_ids: List, payment_method: str = "") -> ServiceResult[CheckoutResult]:
        """
        Create an order from the buyer's cart lines, or return the live duplicate.

        Args:
            buyer: Authenticated user placing the order
            cart_item_ids: Ids of the cart lines being checked out
            payment_method: Gateway payment method (card, promptpay, ...)

        Returns:
            ServiceResult with CheckoutResult(order, is_duplicate)
        """
        if not cart_item_ids:
            checkouts_total.labels(outcome="rejected").inc()
            return service_err(ErrorCodes.CART_EMPTY, "Cart is empty")

        with tracer.start_as_current_span("checkout.cart") as span:
            add_span_attributes(span, buyer_id=buyer.pk, cart_items=len(cart_item_ids))

            duplicate = self.find_duplicate(buyer, cart_item_ids)
            if duplicate is not None:
                return self._duplicate(duplicate)

            lines_result = self.cart_service.get_checkout_lines(buyer, cart_item_ids)
            if not lines_result.ok:
                checkouts_total.labels(outcome="rejected").inc()
                return lines_result

            lines = [CheckoutLine(product=item.product, quantity=item.quantity) for item in lines_result.value]
            validation = self._validate_lines(lines)
            if not validation.ok:
                checkouts_total.labels(outcome="rejected").inc()
                return validation

            with transaction.atomic():
                # Serialise concurrent checkouts of the same buyer on their cart row
                Cart.objects.select_for_update().filter(user=buyer).first()
                duplicate = self.find_duplicate(buyer, cart_item_ids)
                if duplicate is not None:
                    return self._duplicate(duplicate)

                order = self._create_order(
                    buyer,
                    lines,
                    source="cart",
                    fingerprint=normalize_fingerprint(cart_item_ids),
                    payment_method=payment_method,
                )

            add_span_attributes(span, order_id=order.id, gross_total=order.gross_total)
            return self._created(order)

    @BaseService.log_performance
    def checkout_product(
        self, buyer, product_id, quantity: int = 1, payment_method: str = ""
    ) -> ServiceResult[CheckoutResult]:
        """
        Direct "buy now" order for one product. Direct orders carry no
        fingerprint and are never deduplicated.
        """
        if quantity <= 0:
            return service_err(ErrorCodes.INVALID_INPUT, "Quantity must be positive")

        product = Product.objects.select_related("shop").filter(pk=product_id).first()
        if product is None:
            return service_err(ErrorCodes.PRODUCT_NOT_FOUND, f"Product {product_id} not found")

        lines = [CheckoutLine(product=product, quantity=quantity)]
        validation = self._validate_lines(lines)
        if not validation.ok:
            checkouts_total.labels(outcome="rejected").inc()
            return validation

        with tracer.start_as_current_span("checkout.direct"):
            with transaction.atomic():
                order = self._create_order(buyer, lines, source="direct", fingerprint=[], payment_method=payment_method)
        return self._created(order)

    def _duplicate(self, order: Order) -> ServiceResult[CheckoutResult]:
        checkouts_total.labels(outcome="duplicate").inc()
        self.logger.info(f"Duplicate checkout detected, returning existing order {order.id}")
        return service_ok(CheckoutResult(order=order, is_duplicate=True))

    def _created(self, order: Order) -> ServiceResult[CheckoutResult]:
        checkouts_total.labels(outcome="created").inc()
        order_value.observe(order.gross_total)
        self.logger.info(
            f"Order {order.id} created for buyer {order.buyer_id}: gross={order.gross_total} "
            f"fee={order.platform_fee_total} groups={order.shop_groups.count()}"
        )
        return service_ok(CheckoutResult(order=order, is_duplicate=False))

    def _validate_lines(self, lines: List[CheckoutLine]) -> ServiceResult:
        for line in lines:
            product = line.product
            if not product.is_active:
                return service_err(
                    ErrorCodes.PRODUCT_INACTIVE,
                    f"Product '{product.name}' is no longer available",
                    {"productId": str(product.id)},
                )
            if not product.has_unlimited_stock and product.stock < line.quantity:
                return service_err(
                    ErrorCodes.INSUFFICIENT_STOCK,
                    f"Insufficient stock for '{product.name}'. Available: {product.stock}, Requested: {line.quantity}",
                    {"productId": str(product.id), "available": product.stock, "requested": line.quantity},
                )

        # Every shop in the order must be able to receive its payout
        shops = {line.product.shop_id: line.product.shop for line in lines}
        payable = set(
            PayoutDestination.objects.payable().filter(shop_id__in=shops.keys()).values_list("shop_id", flat=True)
        )
        for shop_id, shop in shops.items():
            if shop_id not in payable:
                return service_err(
                    ErrorCodes.PAYOUT_DESTINATION_MISSING,
                    f"Shop '{shop.name}' has no payout account configured and cannot accept orders yet",
                    {"shopId": str(shop_id), "shopName": shop.name},
                )
        return service_ok(True)

    def _create_order(self, buyer, lines: List[CheckoutLine], source: str, fingerprint: List[str], payment_method: str):
        grouped = OrderedDict()
        for line in sorted(lines, key=lambda line: (line.product.shop.name, str(line.product.shop_id))):
            grouped.setdefault(line.product.shop, []).append(line)

        totals = {
            shop: self.pricing_service.group_totals((line.product.price, line.quantity) for line in shop_lines)
            for shop, shop_lines in grouped.items()
        }
        single_shop = next(iter(grouped)) if len(grouped) == 1 else None

        order = Order.objects.create(
            buyer=buyer,
            shop=single_shop,
            seller_net_total=sum(t["seller_net_amount"] for t in totals.values()),
            source=source,
            cart_item_fingerprint=fingerprint,
            idempotency_key=build_idempotency_key(buyer.pk, fingerprint),
            currency=self.currency,
            gross_total=sum(t["gross_amount"] for t in totals.values()),
            platform_fee_total=sum(t["platform_fee_amount"] for t in totals.values()),
            payment_method=payment_method,
        )

        for shop, shop_lines in grouped.items():
            group = OrderShopGroup.objects.create(order=order, shop=shop, **totals[shop])
            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        shop_group=group,
                        product=line.product,
                        product_name=line.product.name,
                        unit_price=line.product.price,
                        quantity=line.quantity,
                        line_total=self.pricing_service.line_total(line.product.price, line.quantity),
                    )
                    for line in shop_lines
                ]
            )
        return order
