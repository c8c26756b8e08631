import uuid

from django.db import models

from marketplace.shops.domain.models.shop import Shop


class Product(models.Model):
    UNLIMITED_STOCK = -1

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.ForeignKey(Shop, on_delete=models.CASCADE, related_name="products")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Pricing and Inventory
    price = models.PositiveBigIntegerField(help_text="Unit price in minor currency units")
    stock = models.IntegerField(default=1, help_text="-1 means unlimited (digital keys generated on demand)")
    sold_count = models.IntegerField(default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["shop", "is_active"], name="product_shop_active_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def has_unlimited_stock(self) -> bool:
        return self.stock == self.UNLIMITED_STOCK

    @property
    def is_in_stock(self) -> bool:
        return self.has_unlimited_stock or self.stock > 0
