from rest_framework import serializers

from marketplace.shops.domain.models.shop import PayoutDestination
from payment_system.models import Payout


class PayoutSerializer(serializers.ModelSerializer):
    shopId = serializers.UUIDField(source="shop_id", read_only=True)
    orderIds = serializers.JSONField(source="order_ids", read_only=True)
    transferReference = serializers.CharField(source="transfer_reference", read_only=True)
    failureMessage = serializers.CharField(source="failure_message", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    completedAt = serializers.DateTimeField(source="completed_at", read_only=True)

    class Meta:
        model = Payout
        fields = [
            "id",
            "shopId",
            "amount",
            "currency",
            "method",
            "fee",
            "status",
            "orderIds",
            "transferReference",
            "failureMessage",
            "createdAt",
            "updatedAt",
            "completedAt",
        ]


class PayoutDestinationSerializer(serializers.ModelSerializer):
    """Destination with the account number / PromptPay id masked."""

    type = serializers.CharField(source="account_type", read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    bankName = serializers.CharField(source="bank_name", read_only=True)
    maskedNumber = serializers.CharField(source="masked_number", read_only=True)
    accountName = serializers.CharField(source="account_name", read_only=True)
    promptpayType = serializers.CharField(source="promptpay_type", read_only=True)
    isDefault = serializers.BooleanField(source="is_default", read_only=True)
    isEnabled = serializers.BooleanField(source="is_enabled", read_only=True)
    isVerified = serializers.BooleanField(source="is_verified", read_only=True)
    verificationStatus = serializers.CharField(source="verification_status", read_only=True)

    class Meta:
        model = PayoutDestination
        fields = [
            "id",
            "type",
            "displayName",
            "bankName",
            "maskedNumber",
            "accountName",
            "promptpayType",
            "isDefault",
            "isEnabled",
            "isVerified",
            "verificationStatus",
        ]


class BalanceResponseSerializer(serializers.Serializer):
    shopId = serializers.UUIDField()
    period = serializers.CharField()
    available = serializers.IntegerField(help_text="Confirmed and not yet paid out")
    pendingConfirmation = serializers.IntegerField(help_text="Delivered, paid, awaiting buyer confirmation")
    totalEarnings = serializers.IntegerField()
    totalPaidOut = serializers.IntegerField()
    underReview = serializers.IntegerField(help_text="Sent by payouts awaiting review, held out of available")
    periodEarnings = serializers.IntegerField(help_text="Confirmed earnings inside the requested period")
    today = serializers.IntegerField()
    thisWeek = serializers.IntegerField()
    thisMonth = serializers.IntegerField()
    confirmedOrderCount = serializers.IntegerField()
    pendingOrderCount = serializers.IntegerField()


class SyncResponseSerializer(serializers.Serializer):
    orderId = serializers.UUIDField()
    chargeId = serializers.CharField()
    chargeStatus = serializers.CharField()
    paymentStatus = serializers.CharField()
    orderStatus = serializers.CharField()
    changed = serializers.BooleanField()


class WebhookResponseSerializer(serializers.Serializer):
    handled = serializers.BooleanField()
    eventType = serializers.CharField()
    changed = serializers.BooleanField(required=False)
