from .order import Order, OrderItem, OrderShopGroup, build_idempotency_key, normalize_fingerprint


__all__ = [
    "Order",
    "OrderShopGroup",
    "OrderItem",
    "build_idempotency_key",
    "normalize_fingerprint",
]
