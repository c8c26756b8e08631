"""
InventoryService - Stock Counters

Applies sale and restock adjustments to the per-product `stock` and
`sold_count` counters with atomic F() increments. Adjustments are
best-effort bookkeeping: a missing product is logged and skipped, never
raised, because the order's payment state is the source of truth.
"""

from typing import Dict, Iterable, Tuple

from django.db.models import F
from django.db.models.functions import Greatest

from marketplace.catalog.domain.models.catalog import Product
from marketplace.infra.observability.metrics import stock_adjustment_failures
from marketplace.services.base import BaseService, ServiceResult, service_ok


class InventoryService(BaseService):
    """
    Service for stock counter adjustments on payment success and cancellation.
    """

    @BaseService.log_performance
    def record_sale(self, line_items: Iterable[Tuple[str, int]]) -> ServiceResult[Dict[str, int]]:
        """
        Decrement stock and increment sold_count for every (product_id, quantity).

        Products with unlimited stock (-1) only get their sold_count bumped.

        Returns:
            ServiceResult with {"adjusted": n, "skipped": m}
        """
        return service_ok(self._adjust(line_items, direction="sale"))

    @BaseService.log_performance
    def restore_sale(self, line_items: Iterable[Tuple[str, int]]) -> ServiceResult[Dict[str, int]]:
        """Inverse of record_sale: put stock back and take sold_count down (never below zero)."""
        return service_ok(self._adjust(line_items, direction="restore"))

    def _adjust(self, line_items, direction: str) -> Dict[str, int]:
        summary = {"adjusted": 0, "skipped": 0}
        for product_id, quantity in line_items:
            updated = self.run_best_effort(
                f"stock {direction} for product {product_id}", self._adjust_one, product_id, quantity, direction
            )
            if updated:
                summary["adjusted"] += 1
            else:
                summary["skipped"] += 1
                stock_adjustment_failures.labels(direction=direction).inc()
                self.logger.warning(f"Stock {direction} skipped for product {product_id} (qty {quantity})")
        return summary

    def _adjust_one(self, product_id, quantity: int, direction: str) -> bool:
        products = Product.objects.filter(pk=product_id)
        if direction == "sale":
            stock_delta = F("stock") - quantity
            sold = F("sold_count") + quantity
        else:
            stock_delta = F("stock") + quantity
            sold = Greatest(F("sold_count") - quantity, 0)

        rows = products.filter(stock=Product.UNLIMITED_STOCK).update(sold_count=sold)
        if not rows:
            rows = products.exclude(stock=Product.UNLIMITED_STOCK).update(stock=stock_delta, sold_count=sold)
        return rows == 1
