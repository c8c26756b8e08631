import hashlib
import uuid
from typing import Iterable, List

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.catalog.domain.models.catalog import Product
from marketplace.shops.domain.models.shop import Shop

User = get_user_model()


def normalize_fingerprint(cart_item_ids: Iterable) -> List[str]:
    """Sorted, de-duplicated string form of a set of cart-line ids."""
    return sorted({str(item_id) for item_id in cart_item_ids})


def build_idempotency_key(buyer_id, fingerprint: Iterable) -> str:
    """Stable key for (buyer, cart-line set); empty fingerprints (direct orders) get no key."""
    normalized = normalize_fingerprint(fingerprint)
    if not normalized:
        return ""
    raw = f"{buyer_id}:{','.join(normalized)}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class Order(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),  # Awaiting payment or delivery
        ("processing", "Processing"),  # Delivered, waiting for buyer confirmation
        ("completed", "Completed"),  # Buyer confirmed receipt (terminal)
        ("cancelled", "Cancelled"),  # Terminal; only refund fields may change afterwards
    ]

    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("completed", "Completed"),
        ("failed", "Failed"),
    ]

    SOURCE_CHOICES = [
        ("cart", "Cart Checkout"),
        ("direct", "Direct Purchase"),
    ]

    REFUND_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("succeeded", "Succeeded"),
        ("failed", "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    buyer = models.ForeignKey(User, on_delete=models.CASCADE, related_name="orders")

    # Single-shop convenience copy of the only shop group (null for multi-shop orders)
    shop = models.ForeignKey(Shop, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders")
    seller_net_total = models.BigIntegerField(default=0)

    # Idempotency
    source = models.CharField(max_length=10, choices=SOURCE_CHOICES, default="cart")
    cart_item_fingerprint = models.JSONField(default=list, blank=True)
    idempotency_key = models.CharField(max_length=64, blank=True, db_index=True)

    # Amounts (minor currency units)
    currency = models.CharField(max_length=3, default="thb")
    gross_total = models.BigIntegerField()
    platform_fee_total = models.BigIntegerField(default=0)

    # Status axes
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="pending")

    # Payment
    payment_method = models.CharField(max_length=30, blank=True)
    charge_reference = models.CharField(max_length=255, blank=True, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_failure_code = models.CharField(max_length=100, blank=True)
    payment_failure_message = models.TextField(blank=True)

    # Fulfillment & escrow
    delivered_at = models.DateTimeField(null=True, blank=True)
    fulfillment_data = models.JSONField(default=dict, blank=True)
    seller_notes = models.TextField(blank=True)
    buyer_confirmed = models.BooleanField(default=False)
    buyer_confirmed_at = models.DateTimeField(null=True, blank=True)
    auto_confirmed = models.BooleanField(default=False)

    # Cancellation
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="cancelled_orders"
    )
    cancel_reason = models.TextField(blank=True)

    # Refund
    refund_reference = models.CharField(max_length=255, blank=True)
    refunded_amount = models.BigIntegerField(default=0)
    refund_status = models.CharField(max_length=20, choices=REFUND_STATUS_CHOICES, blank=True)
    refund_error = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["buyer", "payment_status", "created_at"], name="order_buyer_pay_created_idx"),
            models.Index(fields=["status", "buyer_confirmed"], name="order_status_confirmed_idx"),
        ]

    def __str__(self):
        return f"Order {str(self.id)[:8]} by {self.buyer.username}"

    @property
    def total_amount(self):
        return self.gross_total

    @property
    def is_terminal(self) -> bool:
        return self.status == "cancelled"

    @property
    def is_multi_shop(self) -> bool:
        return self.shop_id is None

    @property
    def payout_status(self) -> str:
        """
        Order-level payout axis derived from the shop groups:
        paid once every group is paid, partial once any money has left.
        """
        statuses = {group.payout_status for group in self.shop_groups.all()}
        if not statuses:
            return OrderShopGroup.PAYOUT_NONE
        if statuses == {OrderShopGroup.PAYOUT_PAID}:
            return OrderShopGroup.PAYOUT_PAID
        if statuses & {OrderShopGroup.PAYOUT_PAID, OrderShopGroup.PAYOUT_PARTIAL}:
            return OrderShopGroup.PAYOUT_PARTIAL
        if OrderShopGroup.PAYOUT_READY in statuses:
            return OrderShopGroup.PAYOUT_READY
        return OrderShopGroup.PAYOUT_NONE

    @property
    def paid_out_amount(self) -> int:
        return sum(group.paid_out_amount for group in self.shop_groups.all())

    def line_items(self):
        """(product_id, quantity) pairs across every shop group."""
        return [(item.product_id, item.quantity) for item in self.items.all() if item.product_id]


class OrderShopGroup(models.Model):
    """One shop's slice of an order: its fee split and its own payout axis."""

    PAYOUT_NONE = "none"
    PAYOUT_READY = "ready"
    PAYOUT_PARTIAL = "partial"
    PAYOUT_PAID = "paid"

    PAYOUT_STATUS_CHOICES = [
        (PAYOUT_NONE, "Not Eligible"),
        (PAYOUT_READY, "Ready"),
        (PAYOUT_PARTIAL, "Partially Paid"),
        (PAYOUT_PAID, "Paid"),
    ]

    # Allowed forward moves; anything else is a regression.
    # none -> partial/paid only happens for groups of confirmed orders.
    PAYOUT_TRANSITIONS = {
        PAYOUT_NONE: {PAYOUT_READY, PAYOUT_PARTIAL, PAYOUT_PAID},
        PAYOUT_READY: {PAYOUT_PARTIAL, PAYOUT_PAID},
        PAYOUT_PARTIAL: {PAYOUT_PARTIAL, PAYOUT_PAID},
        PAYOUT_PAID: set(),
    }

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="shop_groups")
    shop = models.ForeignKey(Shop, on_delete=models.PROTECT, related_name="order_groups")

    gross_amount = models.BigIntegerField()
    platform_fee_amount = models.BigIntegerField()
    seller_net_amount = models.BigIntegerField()

    payout_status = models.CharField(max_length=10, choices=PAYOUT_STATUS_CHOICES, default=PAYOUT_NONE)
    paid_out_amount = models.BigIntegerField(default=0)
    last_payout_id = models.UUIDField(null=True, blank=True)
    paid_out_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ["order", "shop"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["shop", "payout_status"], name="shopgroup_shop_payout_idx"),
        ]

    def __str__(self):
        return f"{self.shop.name} share of order {str(self.order_id)[:8]}"

    @property
    def withdrawable_amount(self) -> int:
        if self.payout_status in (self.PAYOUT_READY, self.PAYOUT_PARTIAL):
            return self.seller_net_amount - self.paid_out_amount
        return 0

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.PAYOUT_TRANSITIONS.get(current, set())


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    shop_group = models.ForeignKey(OrderShopGroup, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True)

    # Snapshot at checkout
    product_name = models.CharField(max_length=200)
    unit_price = models.BigIntegerField()
    quantity = models.PositiveIntegerField(default=1)
    line_total = models.BigIntegerField()

    class Meta:
        app_label = "marketplace"

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"
