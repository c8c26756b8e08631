from rest_framework import serializers

from marketplace.ordering.domain.models.order import Order, OrderItem, OrderShopGroup


class OrderItemSerializer(serializers.ModelSerializer):
    productId = serializers.UUIDField(source="product_id", read_only=True, allow_null=True)
    name = serializers.CharField(source="product_name", read_only=True)
    unitPrice = serializers.IntegerField(source="unit_price", read_only=True)
    lineTotal = serializers.IntegerField(source="line_total", read_only=True)

    class Meta:
        model = OrderItem
        fields = ["productId", "name", "unitPrice", "quantity", "lineTotal"]


class OrderShopGroupSerializer(serializers.ModelSerializer):
    shopId = serializers.UUIDField(source="shop_id", read_only=True)
    shopName = serializers.CharField(source="shop.name", read_only=True)
    grossAmount = serializers.IntegerField(source="gross_amount", read_only=True)
    platformFeeAmount = serializers.IntegerField(source="platform_fee_amount", read_only=True)
    sellerNetAmount = serializers.IntegerField(source="seller_net_amount", read_only=True)
    payoutStatus = serializers.CharField(source="payout_status", read_only=True)
    paidOutAmount = serializers.IntegerField(source="paid_out_amount", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = OrderShopGroup
        fields = [
            "shopId",
            "shopName",
            "grossAmount",
            "platformFeeAmount",
            "sellerNetAmount",
            "payoutStatus",
            "paidOutAmount",
            "items",
        ]


class OrderSerializer(serializers.ModelSerializer):
    """Order projection returned by every order endpoint."""

    buyerId = serializers.IntegerField(source="buyer_id", read_only=True)
    shopId = serializers.UUIDField(source="shop_id", read_only=True, allow_null=True)
    sellerNetAmount = serializers.IntegerField(source="seller_net_total", read_only=True)
    shopGroups = OrderShopGroupSerializer(source="shop_groups", many=True, read_only=True)
    cartItemFingerprint = serializers.JSONField(source="cart_item_fingerprint", read_only=True)
    grossTotal = serializers.IntegerField(source="gross_total", read_only=True)
    platformFeeTotal = serializers.IntegerField(source="platform_fee_total", read_only=True)
    paymentStatus = serializers.CharField(source="payment_status", read_only=True)
    orderStatus = serializers.CharField(source="status", read_only=True)
    paymentMethod = serializers.CharField(source="payment_method", read_only=True)
    chargeReference = serializers.CharField(source="charge_reference", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    deliveredAt = serializers.DateTimeField(source="delivered_at", read_only=True)
    buyerConfirmed = serializers.BooleanField(source="buyer_confirmed", read_only=True)
    buyerConfirmedAt = serializers.DateTimeField(source="buyer_confirmed_at", read_only=True)
    autoConfirmed = serializers.BooleanField(source="auto_confirmed", read_only=True)
    payoutStatus = serializers.CharField(source="payout_status", read_only=True)
    paidOutAmount = serializers.IntegerField(source="paid_out_amount", read_only=True)
    refund = serializers.SerializerMethodField()
    cancelledAt = serializers.DateTimeField(source="cancelled_at", read_only=True)
    cancelReason = serializers.CharField(source="cancel_reason", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "buyerId",
            "shopId",
            "sellerNetAmount",
            "shopGroups",
            "source",
            "cartItemFingerprint",
            "currency",
            "grossTotal",
            "platformFeeTotal",
            "paymentStatus",
            "orderStatus",
            "paymentMethod",
            "chargeReference",
            "paidAt",
            "deliveredAt",
            "buyerConfirmed",
            "buyerConfirmedAt",
            "autoConfirmed",
            "payoutStatus",
            "paidOutAmount",
            "refund",
            "cancelledAt",
            "cancelReason",
            "createdAt",
            "updatedAt",
        ]

    def get_refund(self, obj):
        if not obj.refund_status:
            return None
        return {
            "refundReference": obj.refund_reference,
            "refundedAmount": obj.refunded_amount,
            "refundStatus": obj.refund_status,
            "refundError": obj.refund_error,
        }


class FulfilledOrderSerializer(OrderSerializer):
    """
    Buyer/seller view that also carries the delivered credentials.

    Pass `visible_shop_ids` in the context to restrict a seller to the shop
    groups and delivery entries of their own shops. Without it the full
    order is rendered, which is what the buyer sees.
    """

    shopGroups = serializers.SerializerMethodField()
    fulfillmentData = serializers.SerializerMethodField()
    sellerNotes = serializers.SerializerMethodField()

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["fulfillmentData", "sellerNotes"]

    def _visible(self):
        shop_ids = self.context.get("visible_shop_ids")
        return None if shop_ids is None else {str(shop_id) for shop_id in shop_ids}

    def get_shopGroups(self, obj):
        visible = self._visible()
        groups = [g for g in obj.shop_groups.all() if visible is None or str(g.shop_id) in visible]
        return OrderShopGroupSerializer(groups, many=True).data

    def get_fulfillmentData(self, obj):
        delivered = obj.fulfillment_data or {}
        visible = self._visible()
        if visible is None:
            return delivered
        return {key: entry for key, entry in delivered.items() if key in visible}

    def get_sellerNotes(self, obj):
        visible = self._visible()
        if visible is None:
            return obj.seller_notes
        entries = (entry for key, entry in (obj.fulfillment_data or {}).items() if key in visible)
        return "\n".join(entry["notes"] for entry in entries if isinstance(entry, dict) and entry.get("notes"))


# ===== Requests =====


class CheckoutRequestSerializer(serializers.Serializer):
    cartItemIds = serializers.ListField(
        child=serializers.IntegerField(min_value=1), required=False, help_text="Cart lines to check out"
    )
    productId = serializers.UUIDField(required=False, help_text="Buy a single product directly")
    quantity = serializers.IntegerField(required=False, min_value=1, default=1)
    paymentMethod = serializers.ChoiceField(choices=["card", "promptpay"], default="card")

    def validate(self, attrs):
        if "cartItemIds" not in attrs and not attrs.get("productId"):
            raise serializers.ValidationError("Provide cartItemIds or productId")
        if "cartItemIds" in attrs and attrs.get("productId"):
            raise serializers.ValidationError("Provide either cartItemIds or productId, not both")
        return attrs


class DeliverRequestSerializer(serializers.Serializer):
    fulfillmentData = serializers.DictField(help_text="Credentials or codes handed to the buyer")
    sellerNotes = serializers.CharField(required=False, allow_blank=True, default="")


class CancelRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


# ===== Responses (schema only) =====


class ChargeSerializer(serializers.Serializer):
    chargeId = serializers.CharField(source="charge_id")
    status = serializers.CharField(source="status.value")
    paid = serializers.BooleanField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
    clientSecret = serializers.CharField(source="client_secret", allow_blank=True)


class CheckoutResponseSerializer(serializers.Serializer):
    order = OrderSerializer()
    charge = ChargeSerializer(allow_null=True)
    isDuplicate = serializers.BooleanField()
    chargeError = serializers.DictField(required=False)


class ErrorResponseSerializer(serializers.Serializer):
    """Standard error response; conflict errors add the current authoritative state."""

    error = serializers.CharField(help_text="Error code identifier")
    detail = serializers.CharField(help_text="Human-readable error message")
