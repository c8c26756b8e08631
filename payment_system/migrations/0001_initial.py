import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("marketplace", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payout",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.BigIntegerField(help_text="Requested amount in minor currency units")),
                ("currency", models.CharField(default="thb", max_length=3)),
                (
                    "method",
                    models.CharField(
                        choices=[("bank_transfer", "Bank Transfer"), ("promptpay", "PromptPay")],
                        default="bank_transfer",
                        max_length=20,
                    ),
                ),
                ("fee", models.BigIntegerField(default=0, help_text="Gateway transfer fee in minor units")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("requires_review", "Requires review"),
                        ],
                        db_index=True,
                        default="processing",
                        max_length=20,
                    ),
                ),
                (
                    "order_ids",
                    models.JSONField(default=list, help_text="Orders whose seller share this payout consumes"),
                ),
                (
                    "allocations",
                    models.JSONField(default=list, help_text="Per shop-group amounts and expected prior state"),
                ),
                ("transfer_reference", models.CharField(blank=True, db_index=True, max_length=255)),
                ("failure_message", models.TextField(blank=True)),
                ("attempt_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "destination",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payouts",
                        to="marketplace.payoutdestination",
                    ),
                ),
                (
                    "requested_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payouts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="payouts", to="marketplace.shop"
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["shop", "status"], name="payout_shop_status_idx")],
            },
        ),
    ]
