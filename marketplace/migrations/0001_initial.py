import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("total_sales", models.PositiveIntegerField(default=0)),
                ("total_revenue", models.BigIntegerField(default=0, help_text="Minor currency units")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shops",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="PayoutDestination",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "account_type",
                    models.CharField(
                        choices=[("bank", "Bank Account"), ("promptpay", "PromptPay")], default="bank", max_length=20
                    ),
                ),
                ("display_name", models.CharField(blank=True, max_length=100)),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                ("bank_code", models.CharField(blank=True, max_length=20)),
                ("account_number", models.CharField(blank=True, max_length=50)),
                ("account_name", models.CharField(blank=True, max_length=200)),
                ("branch", models.CharField(blank=True, max_length=100)),
                ("promptpay_id", models.CharField(blank=True, max_length=50)),
                (
                    "promptpay_type",
                    models.CharField(
                        blank=True,
                        choices=[("mobile", "Mobile Number"), ("citizen_id", "Citizen ID"), ("ewallet", "E-Wallet")],
                        max_length=20,
                    ),
                ),
                ("recipient_reference", models.CharField(blank=True, max_length=255)),
                ("is_default", models.BooleanField(default=False)),
                ("is_enabled", models.BooleanField(default=True)),
                ("is_verified", models.BooleanField(default=False)),
                (
                    "verification_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("verified", "Verified"), ("failed", "Failed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payout_destinations",
                        to="marketplace.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["-is_default", "created_at"],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("price", models.PositiveBigIntegerField(help_text="Unit price in minor currency units")),
                (
                    "stock",
                    models.IntegerField(default=1, help_text="-1 means unlimited (digital keys generated on demand)"),
                ),
                ("sold_count", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="products", to="marketplace.shop"
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["shop", "is_active"], name="product_shop_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Cart",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE, related_name="cart", to=settings.AUTH_USER_MODEL
                    ),
                ),
            ],
            options={
                "verbose_name": "Shopping Cart",
                "verbose_name_plural": "Shopping Carts",
            },
        ),
        migrations.CreateModel(
            name="CartItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("added_at", models.DateTimeField(auto_now_add=True)),
                (
                    "cart",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="marketplace.cart"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="marketplace.product"),
                ),
            ],
            options={
                "unique_together": {("cart", "product")},
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("seller_net_total", models.BigIntegerField(default=0)),
                (
                    "source",
                    models.CharField(
                        choices=[("cart", "Cart Checkout"), ("direct", "Direct Purchase")], default="cart", max_length=10
                    ),
                ),
                ("cart_item_fingerprint", models.JSONField(blank=True, default=list)),
                ("idempotency_key", models.CharField(blank=True, db_index=True, max_length=64)),
                ("currency", models.CharField(default="thb", max_length=3)),
                ("gross_total", models.BigIntegerField()),
                ("platform_fee_total", models.BigIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("payment_method", models.CharField(blank=True, max_length=30)),
                ("charge_reference", models.CharField(blank=True, db_index=True, max_length=255)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("payment_failure_code", models.CharField(blank=True, max_length=100)),
                ("payment_failure_message", models.TextField(blank=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("fulfillment_data", models.JSONField(blank=True, default=dict)),
                ("seller_notes", models.TextField(blank=True)),
                ("buyer_confirmed", models.BooleanField(default=False)),
                ("buyer_confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("auto_confirmed", models.BooleanField(default=False)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.TextField(blank=True)),
                ("refund_reference", models.CharField(blank=True, max_length=255)),
                ("refunded_amount", models.BigIntegerField(default=0)),
                (
                    "refund_status",
                    models.CharField(
                        blank=True,
                        choices=[("pending", "Pending"), ("succeeded", "Succeeded"), ("failed", "Failed")],
                        max_length=20,
                    ),
                ),
                ("refund_error", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="orders", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cancelled_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="marketplace.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["buyer", "payment_status", "created_at"], name="order_buyer_pay_created_idx"),
                    models.Index(fields=["status", "buyer_confirmed"], name="order_status_confirmed_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderShopGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("gross_amount", models.BigIntegerField()),
                ("platform_fee_amount", models.BigIntegerField()),
                ("seller_net_amount", models.BigIntegerField()),
                (
                    "payout_status",
                    models.CharField(
                        choices=[
                            ("none", "Not Eligible"),
                            ("ready", "Ready"),
                            ("partial", "Partially Paid"),
                            ("paid", "Paid"),
                        ],
                        default="none",
                        max_length=10,
                    ),
                ),
                ("paid_out_amount", models.BigIntegerField(default=0)),
                ("last_payout_id", models.UUIDField(blank=True, null=True)),
                ("paid_out_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="shop_groups", to="marketplace.order"
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="order_groups", to="marketplace.shop"
                    ),
                ),
            ],
            options={
                "unique_together": {("order", "shop")},
                "indexes": [models.Index(fields=["shop", "payout_status"], name="shopgroup_shop_payout_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_name", models.CharField(max_length=200)),
                ("unit_price", models.BigIntegerField()),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("line_total", models.BigIntegerField()),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="marketplace.order"
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="marketplace.product"
                    ),
                ),
                (
                    "shop_group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="marketplace.ordershopgroup",
                    ),
                ),
            ],
        ),
    ]
