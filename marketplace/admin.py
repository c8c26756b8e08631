from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from .models import Cart, CartItem, Order, OrderItem, OrderShopGroup, PayoutDestination, Product, Shop


class PayoutDestinationInline(admin.TabularInline):
    model = PayoutDestination
    extra = 0
    fields = ("account_type", "display_name", "bank_name", "is_default", "is_enabled", "is_verified")
    readonly_fields = ("account_type",)


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "is_active", "total_sales", "total_revenue", "created_at")
    list_filter = ("is_active", "created_at")
    search_fields = ("name", "owner__username", "contact_email")
    readonly_fields = ("total_sales", "total_revenue", "created_at", "updated_at")
    inlines = [PayoutDestinationInline]


@admin.register(PayoutDestination)
class PayoutDestinationAdmin(admin.ModelAdmin):
    list_display = ("shop", "account_type", "masked_number", "is_default", "is_enabled", "is_verified")
    list_filter = ("account_type", "is_enabled", "is_verified", "verification_status")
    search_fields = ("shop__name", "account_name", "display_name")
    exclude = ("account_number", "promptpay_id")
    readonly_fields = ("masked_number", "verified_at", "created_at", "updated_at")

    actions = ["mark_verified"]

    def mark_verified(self, request, queryset):
        from infrastructure.container import container

        service = container.destination_service()
        for destination in queryset:
            service.mark_verified(destination)
        self.message_user(request, f"{queryset.count()} payout destinations marked as verified.")

    mark_verified.short_description = "Mark selected destinations as verified"


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "shop", "price", "stock", "sold_count", "is_active")
    list_filter = ("is_active", "created_at")
    search_fields = ("name", "shop__name")
    readonly_fields = ("sold_count", "created_at", "updated_at")


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    readonly_fields = ("added_at", "line_total")


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("user", "created_at", "updated_at")
    inlines = [CartItemInline]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("shop_group", "product", "product_name", "unit_price", "quantity", "line_total")
    can_delete = False


class OrderShopGroupInline(admin.TabularInline):
    model = OrderShopGroup
    extra = 0
    readonly_fields = (
        "shop",
        "gross_amount",
        "platform_fee_amount",
        "seller_net_amount",
        "payout_status",
        "paid_out_amount",
        "last_payout_id",
        "paid_out_at",
    )
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Audit view; state changes go through the services, not the admin."""

    list_display = (
        "id_short",
        "buyer",
        "status",
        "payment_status",
        "buyer_confirmed",
        "gross_total",
        "refund_status",
        "created_at",
    )
    list_filter = ("status", "payment_status", "buyer_confirmed", "source", "refund_status", "created_at")
    search_fields = ("id", "buyer__username", "charge_reference", "refund_reference")
    readonly_fields = [field.name for field in Order._meta.fields] + ["shop_link"]
    inlines = [OrderShopGroupInline, OrderItemInline]

    def id_short(self, obj):
        return str(obj.id)[:8] + "..."

    id_short.short_description = "ID"

    def shop_link(self, obj):
        if obj.shop_id:
            url = reverse("admin:marketplace_shop_change", args=[obj.shop_id])
            return format_html('<a href="{}">{}</a>', url, obj.shop.name)
        return "multi-shop"

    shop_link.short_description = "Shop"
