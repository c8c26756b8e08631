from .domain.models.payout import Payout


__all__ = [
    "Payout",
]
