import uuid

from django.contrib.auth import get_user_model
from django.db import models
from django.db.models import Q

from utils.logging_utils import mask_account_number

User = get_user_model()


class Shop(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="shops")
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)

    # Aggregate counters (best effort; balances are always recomputed from orders)
    total_sales = models.PositiveIntegerField(default=0)
    total_revenue = models.BigIntegerField(default=0, help_text="Minor currency units")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        app_label = "marketplace"

    def __str__(self):
        return self.name

    @property
    def notification_email(self):
        return self.contact_email or self.owner.email


class PayoutDestinationQuerySet(models.QuerySet):
    def payable(self):
        """Enabled destinations that carry an account number or a PromptPay id."""
        return self.filter(is_enabled=True).filter(~Q(account_number="") | ~Q(promptpay_id=""))

    def verified(self):
        return self.payable().filter(is_verified=True)


class PayoutDestination(models.Model):
    ACCOUNT_TYPE_CHOICES = [
        ("bank", "Bank Account"),
        ("promptpay", "PromptPay"),
    ]

    PROMPTPAY_TYPE_CHOICES = [
        ("mobile", "Mobile Number"),
        ("citizen_id", "Citizen ID"),
        ("ewallet", "E-Wallet"),
    ]

    VERIFICATION_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("verified", "Verified"),
        ("failed", "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE, related_name="payout_destinations")
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES, default="bank")
    display_name = models.CharField(max_length=100, blank=True)

    # Bank account
    bank_name = models.CharField(max_length=100, blank=True)
    bank_code = models.CharField(max_length=20, blank=True)
    account_number = models.CharField(max_length=50, blank=True)
    account_name = models.CharField(max_length=200, blank=True)
    branch = models.CharField(max_length=100, blank=True)

    # PromptPay
    promptpay_id = models.CharField(max_length=50, blank=True)
    promptpay_type = models.CharField(max_length=20, choices=PROMPTPAY_TYPE_CHOICES, blank=True)

    # Gateway-side recipient (connected account / recipient id)
    recipient_reference = models.CharField(max_length=255, blank=True)

    is_default = models.BooleanField(default=False)
    is_enabled = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    verification_status = models.CharField(max_length=20, choices=VERIFICATION_STATUS_CHOICES, default="pending")
    verified_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PayoutDestinationQuerySet.as_manager()

    class Meta:
        ordering = ["-is_default", "created_at"]
        app_label = "marketplace"

    def __str__(self):
        return f"{self.get_account_type_display()} {self.masked_number} ({self.shop.name})"

    @property
    def is_payable(self) -> bool:
        return self.is_enabled and bool(self.account_number or self.promptpay_id)

    @property
    def masked_number(self) -> str:
        if self.account_type == "promptpay":
            return mask_account_number(self.promptpay_id)
        return mask_account_number(self.account_number)

    @property
    def payout_method(self) -> str:
        return "promptpay" if self.account_type == "promptpay" else "bank_transfer"
