"""
CartService - Checkout Lines

Resolves the cart lines a checkout refers to and removes them once the
order has been paid.
"""

from typing import Iterable, List

from marketplace.cart.domain.models.cart import CartItem
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok


class CartService(BaseService):
    @BaseService.log_performance
    def get_checkout_lines(self, user, cart_item_ids: Iterable) -> ServiceResult[List[CartItem]]:
        """
        Load the buyer's cart lines by id, with product and shop preloaded.

        Every requested id must belong to the buyer's cart.
        """
        wanted = {str(item_id) for item_id in cart_item_ids}
        items = list(
            CartItem.objects.select_related("product__shop")
            .filter(cart__user=user, id__in=wanted)
            .order_by("id")
        )
        missing = wanted - {str(item.id) for item in items}
        if missing:
            return service_err(
                ErrorCodes.CART_ITEM_NOT_FOUND,
                f"Cart items not found in your cart: {', '.join(sorted(missing))}",
                {"missingCartItemIds": sorted(missing)},
            )
        return service_ok(items)

    def clear_items(self, user_id, cart_item_ids: Iterable) -> int:
        """Delete the given cart lines from the user's cart. Returns rows removed."""
        ids = [str(item_id) for item_id in cart_item_ids]
        if not ids:
            return 0
        deleted, _ = CartItem.objects.filter(cart__user_id=user_id, id__in=ids).delete()
        self.logger.info(f"Cleared {deleted} cart item(s) for user {user_id}")
        return deleted
