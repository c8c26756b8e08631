from django.test import TestCase

from marketplace.cart.domain.services import CartService
from marketplace.services import ErrorCodes
from marketplace.tests.factories import CartFactory, CartItemFactory, ProductFactory


class CartServiceTest(TestCase):
    def setUp(self):
        self.service = CartService()
        self.cart = CartFactory()
        self.buyer = self.cart.user
        self.first = CartItemFactory(cart=self.cart, product=ProductFactory(price=1500), quantity=2)
        self.second = CartItemFactory(cart=self.cart)

    def test_get_checkout_lines_returns_requested_lines(self):
        result = self.service.get_checkout_lines(self.buyer, [self.second.id, self.first.id])

        self.assertTrue(result.ok)
        self.assertEqual({item.id for item in result.value}, {self.first.id, self.second.id})
        self.assertEqual(result.value[0].line_total + result.value[1].line_total, 4000)

    def test_lines_from_another_cart_are_reported_missing(self):
        foreign = CartItemFactory()

        result = self.service.get_checkout_lines(self.buyer, [self.first.id, foreign.id])

        self.assertFalse(result.ok)
        self.assertEqual(result.error, ErrorCodes.CART_ITEM_NOT_FOUND)
        self.assertEqual(result.context["missingCartItemIds"], [str(foreign.id)])

    def test_clear_items_only_touches_the_owner_cart(self):
        foreign = CartItemFactory()

        removed = self.service.clear_items(self.buyer.id, [self.first.id, foreign.id])

        self.assertEqual(removed, 1)
        self.assertEqual(list(self.cart.items.values_list("id", flat=True)), [self.second.id])
        foreign.refresh_from_db()

    def test_clear_items_with_no_ids_is_a_no_op(self):
        self.assertEqual(self.service.clear_items(self.buyer.id, []), 0)
        self.assertEqual(self.cart.items.count(), 2)
