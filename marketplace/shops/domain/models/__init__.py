from .shop import PayoutDestination, Shop


__all__ = [
    "Shop",
    "PayoutDestination",
]
