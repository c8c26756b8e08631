from .cart_service import CartService
from .inventory_service import InventoryService
from .pricing_service import PLATFORM_FEE_RATE, PricingService, calculate_fee_split

__all__ = [
    "CartService",
    "InventoryService",
    "PricingService",
    "PLATFORM_FEE_RATE",
    "calculate_fee_split",
]
