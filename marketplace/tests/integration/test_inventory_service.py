import uuid

from django.test import TestCase

from marketplace.cart.domain.services import InventoryService
from marketplace.tests.factories import ProductFactory


class InventoryServiceTest(TestCase):
    def setUp(self):
        self.service = InventoryService()
        self.product = ProductFactory(stock=5, sold_count=0)

    def test_record_sale_moves_stock_to_sold(self):
        result = self.service.record_sale([(self.product.id, 2)])

        self.assertTrue(result.ok)
        self.assertEqual(result.value, {"adjusted": 1, "skipped": 0})
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)
        self.assertEqual(self.product.sold_count, 2)

    def test_unlimited_stock_only_counts_sales(self):
        unlimited = ProductFactory(stock=-1)

        self.service.record_sale([(unlimited.id, 4)])

        unlimited.refresh_from_db()
        self.assertEqual(unlimited.stock, -1)
        self.assertEqual(unlimited.sold_count, 4)

    def test_restore_sale_never_takes_sold_count_below_zero(self):
        self.service.record_sale([(self.product.id, 1)])

        result = self.service.restore_sale([(self.product.id, 3)])

        self.assertEqual(result.value["adjusted"], 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 7)
        self.assertEqual(self.product.sold_count, 0)

    def test_missing_product_is_skipped(self):
        result = self.service.record_sale([(uuid.uuid4(), 1), (self.product.id, 1)])

        self.assertTrue(result.ok)
        self.assertEqual(result.value, {"adjusted": 1, "skipped": 1})
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 4)
