import re

from rest_framework import serializers

from payment_system.domain.services.balance_service import PERIODS

PROMPTPAY_FORMATS = {
    "mobile": (re.compile(r"^0\d{9}$"), "Mobile number must be 10 digits starting with 0"),
    "citizen_id": (re.compile(r"^\d{13}$"), "Citizen ID must be 13 digits"),
}

BANK_REQUIRED = (("bankName", "bank_name"), ("accountNumber", "account_number"), ("accountName", "account_name"))


class PayoutRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1, help_text="Amount to withdraw, in minor currency units")


class BalanceQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(
        choices=PERIODS, default="all", help_text="Window for periodEarnings and confirmedOrderCount"
    )


class PayoutDestinationCreateSerializer(serializers.Serializer):
    """A new bank account or PromptPay id. Validated data uses model field names."""

    type = serializers.ChoiceField(choices=["bank", "promptpay"], source="account_type")
    displayName = serializers.CharField(source="display_name", required=False, allow_blank=True, max_length=100)
    bankName = serializers.CharField(source="bank_name", required=False, allow_blank=True, max_length=100)
    bankCode = serializers.CharField(source="bank_code", required=False, allow_blank=True, max_length=20)
    accountNumber = serializers.RegexField(
        r"^\d{6,20}$", source="account_number", required=False, allow_blank=True, help_text="Digits only"
    )
    accountName = serializers.CharField(source="account_name", required=False, allow_blank=True, max_length=200)
    branch = serializers.CharField(required=False, allow_blank=True, max_length=100)
    promptpayId = serializers.CharField(source="promptpay_id", required=False, allow_blank=True, max_length=50)
    promptpayType = serializers.ChoiceField(
        choices=["mobile", "citizen_id", "ewallet"], source="promptpay_type", required=False
    )

    def validate(self, attrs):
        if attrs["account_type"] == "bank":
            missing = [name for name, field in BANK_REQUIRED if not attrs.get(field)]
            if missing:
                raise serializers.ValidationError({name: "Required for bank accounts" for name in missing})
            return attrs

        if not attrs.get("promptpay_id") or not attrs.get("promptpay_type"):
            raise serializers.ValidationError({"promptpayId": "PromptPay id and type are required"})
        pattern = PROMPTPAY_FORMATS.get(attrs["promptpay_type"])
        if pattern and not pattern[0].match(attrs["promptpay_id"]):
            raise serializers.ValidationError({"promptpayId": pattern[1]})
        return attrs


class PayoutDestinationToggleSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
