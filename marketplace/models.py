from marketplace.cart.domain.models import Cart, CartItem
from marketplace.catalog.domain.models import Product
from marketplace.ordering.domain.models import Order, OrderItem, OrderShopGroup
from marketplace.shops.domain.models import PayoutDestination, Shop


__all__ = [
    "Shop",
    "PayoutDestination",
    "Product",
    "Cart",
    "CartItem",
    "Order",
    "OrderShopGroup",
    "OrderItem",
]
