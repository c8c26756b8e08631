import uuid

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.shops.domain.models.shop import PayoutDestination, Shop


User = get_user_model()


class Payout(models.Model):
    """
    One seller withdrawal request.

    Created in `processing` before the gateway transfer is attempted so that a
    crash mid-transfer leaves a recovery anchor. `allocations` records which
    shop groups the amount is drawn from and the payout state each group was
    expected to be in; it is the audit trail between order payout markers and
    the gateway. Payouts are never deleted.

    `requires_review` marks a transfer that went out but whose order markers
    could not be applied. Its amount is held out of the shop's available
    balance until an operator re-applies it.
    """

    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_REQUIRES_REVIEW = "requires_review"

    STATUS_CHOICES = [
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REQUIRES_REVIEW, "Requires review"),
    ]

    METHOD_CHOICES = [
        ("bank_transfer", "Bank Transfer"),
        ("promptpay", "PromptPay"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey(Shop, on_delete=models.PROTECT, related_name="payouts")
    destination = models.ForeignKey(
        PayoutDestination, on_delete=models.SET_NULL, null=True, blank=True, related_name="payouts"
    )
    requested_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="payouts")

    amount = models.BigIntegerField(help_text="Requested amount in minor currency units")
    currency = models.CharField(max_length=3, default="thb")
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default="bank_transfer")
    fee = models.BigIntegerField(default=0, help_text="Gateway transfer fee in minor units")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PROCESSING, db_index=True)

    order_ids = models.JSONField(default=list, help_text="Orders whose seller share this payout consumes")
    allocations = models.JSONField(default=list, help_text="Per shop-group amounts and expected prior state")

    transfer_reference = models.CharField(max_length=255, blank=True, db_index=True)
    failure_message = models.TextField(blank=True)
    attempt_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "payment_system"
        indexes = [
            models.Index(fields=["shop", "status"], name="payout_shop_status_idx"),
        ]

    def __str__(self):
        return f"Payout {str(self.id)[:8]} - {self.amount} {self.currency.upper()} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.STATUS_COMPLETED, self.STATUS_FAILED)
