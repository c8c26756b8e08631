from .payout import Payout


__all__ = [
    "Payout",
]
