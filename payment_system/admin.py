from django.contrib import admin, messages
from django.urls import reverse
from django.utils.html import format_html

from .models import Payout


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """Read-mostly audit view of seller payouts"""

    list_display = [
        "id_short",
        "shop_link",
        "status_badge",
        "amount_display",
        "method",
        "transfer_reference",
        "attempt_count",
        "created_at",
    ]
    list_filter = ["status", "method", "currency", "created_at"]
    search_fields = ["id", "shop__name", "transfer_reference", "failure_message"]
    readonly_fields = [
        "id",
        "shop",
        "destination",
        "requested_by",
        "amount",
        "currency",
        "method",
        "fee",
        "status",
        "order_ids",
        "allocations",
        "transfer_reference",
        "attempt_count",
        "created_at",
        "updated_at",
        "completed_at",
    ]

    fieldsets = (
        ("Basic Information", {"fields": ("id", "shop", "requested_by", "status", "amount", "currency", "fee")}),
        ("Destination", {"fields": ("destination", "method", "transfer_reference")}),
        ("Orders", {"fields": ("order_ids", "allocations")}),
        ("Follow-up", {"fields": ("failure_message", "attempt_count")}),
        ("Timestamps", {"fields": ("created_at", "updated_at", "completed_at")}),
    )

    actions = ["apply_reviewed"]

    def has_delete_permission(self, request, obj=None):
        return False

    def apply_reviewed(self, request, queryset):
        from infrastructure.container import container

        service = container.payout_service()
        for payout in queryset.filter(status=Payout.STATUS_REQUIRES_REVIEW):
            result = service.apply_reviewed(payout)
            if result.ok:
                self.message_user(request, f"Payout {payout.pk} applied to its shop's order groups.")
            else:
                self.message_user(request, f"Payout {payout.pk}: {result.error_detail}", level=messages.WARNING)

    apply_reviewed.short_description = "Apply reviewed payouts to unpaid orders"

    def id_short(self, obj):
        return str(obj.id)[:8] + "..."

    id_short.short_description = "ID"

    def shop_link(self, obj):
        url = reverse("admin:marketplace_shop_change", args=[obj.shop_id])
        return format_html('<a href="{}">{}</a>', url, obj.shop.name)

    shop_link.short_description = "Shop"

    def status_badge(self, obj):
        colors = {
            "processing": "orange",
            "completed": "green",
            "failed": "red",
            "requires_review": "purple",
        }
        color = colors.get(obj.status, "black")
        return format_html('<span style="color: {}; font-weight: bold;">{}</span>', color, obj.get_status_display())

    status_badge.short_description = "Status"

    def amount_display(self, obj):
        return f"{obj.amount / 100:,.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount"
