from django.contrib.auth import get_user_model
from django.db import models

from marketplace.catalog.domain.models.catalog import Product


User = get_user_model()


class Cart(models.Model):
    """A buyer's cart. Lines are removed once an order built from them is paid."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="cart")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Shopping Cart"
        verbose_name_plural = "Shopping Carts"
        app_label = "marketplace"

    def __str__(self):
        return f"Cart of user {self.user_id}"


class CartItem(models.Model):
    """A cart line. Its id is what checkout fingerprints are built from."""

    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.CASCADE)
    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ["cart", "product"]
        app_label = "marketplace"

    @property
    def line_total(self) -> int:
        """Current price of the line in minor units (not a snapshot)."""
        return self.quantity * self.product.price

    def __str__(self):
        return f"CartItem {self.pk}: {self.quantity}x product {self.product_id}"
