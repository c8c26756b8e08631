from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from infrastructure.container import container
from infrastructure.payments import ChargeStatus
from marketplace.ordering.domain.models.order import Order
from marketplace.tests.factories import (
    CartFactory,
    CartItemFactory,
    PayoutDestinationFactory,
    ProductFactory,
    UserFactory,
    make_order,
)


class OrderViewIntegrationTest(TestCase):
    def setUp(self):
        container.configure_for_testing()
        self.provider = container.payment()
        self.client = APIClient()

        self.buyer = UserFactory()
        self.destination = PayoutDestinationFactory()
        self.shop = self.destination.shop
        self.seller = self.shop.owner
        self.product = ProductFactory(shop=self.shop, price=1000, stock=10)

        self.cart = CartFactory(user=self.buyer)
        self.item = CartItemFactory(cart=self.cart, product=self.product, quantity=1)

        self.checkout_url = reverse("marketplace:checkout")

    def tearDown(self):
        container.reset()

    def _detail_url(self, order, action=None):
        if action:
            return reverse(f"marketplace:order-{action}", kwargs={"pk": str(order.id)})
        return reverse("marketplace:order-detail", kwargs={"pk": str(order.id)})

    def test_checkout_creates_order_and_charge(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self.checkout_url, {"cartItemIds": [self.item.id]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data["isDuplicate"])
        order = response.data["order"]
        self.assertEqual(order["grossTotal"], 1000)
        self.assertEqual(order["platformFeeTotal"], 30)
        self.assertEqual(order["sellerNetAmount"], 970)
        self.assertEqual(order["paymentStatus"], "pending")
        self.assertEqual(order["orderStatus"], "pending")
        self.assertEqual(order["shopGroups"][0]["sellerNetAmount"], 970)
        self.assertEqual(order["chargeReference"], response.data["charge"]["chargeId"])
        self.assertEqual(response.data["charge"]["status"], "pending")

    def test_duplicate_checkout_returns_same_order(self):
        self.client.force_authenticate(user=self.buyer)

        first = self.client.post(self.checkout_url, {"cartItemIds": [self.item.id]}, format="json")
        second = self.client.post(self.checkout_url, {"cartItemIds": [self.item.id]}, format="json")

        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data["isDuplicate"])
        self.assertEqual(second.data["order"]["id"], first.data["order"]["id"])
        self.assertEqual(second.data["charge"]["chargeId"], first.data["charge"]["chargeId"])
        self.assertEqual(Order.objects.filter(buyer=self.buyer).count(), 1)
        self.assertEqual(len(self.provider.charges), 1)

    def test_direct_purchase(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(
            self.checkout_url, {"productId": str(self.product.id), "quantity": 2, "paymentMethod": "promptpay"}
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["order"]["source"], "direct")
        self.assertEqual(response.data["order"]["grossTotal"], 2000)

    def test_checkout_validation_error(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self.checkout_url, {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "validation_error")

    def test_checkout_empty_cart(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self.checkout_url, {"cartItemIds": []}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "cart_empty")

    def test_checkout_insufficient_stock_reports_available(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(
            self.checkout_url, {"productId": str(self.product.id), "quantity": 11}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "insufficient_stock")
        self.assertEqual(response.data["available"], 10)

    def test_checkout_requires_authentication(self):
        response = self.client.post(self.checkout_url, {"cartItemIds": [self.item.id]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_retrieve_order_as_buyer_and_seller(self):
        order = make_order(self.buyer, [(self.product, 1)], state="paid")

        self.client.force_authenticate(user=self.buyer)
        as_buyer = self.client.get(self._detail_url(order))
        self.client.force_authenticate(user=self.seller)
        as_seller = self.client.get(self._detail_url(order))

        self.assertEqual(as_buyer.status_code, status.HTTP_200_OK)
        self.assertEqual(as_seller.status_code, status.HTTP_200_OK)
        self.assertEqual(as_buyer.data["id"], str(order.id))

    def test_sellers_only_see_their_own_deliveries(self):
        other_shop = PayoutDestinationFactory().shop
        other_product = ProductFactory(shop=other_shop, price=2000)
        order = make_order(self.buyer, [(self.product, 1), (other_product, 1)], state="paid")

        self.client.force_authenticate(user=self.seller)
        self.client.post(
            self._detail_url(order, "deliver"),
            {"fulfillmentData": {"code": "A-SECRET-KEY"}, "sellerNotes": "Redeem on Steam"},
            format="json",
        )

        self.client.force_authenticate(user=other_shop.owner)
        as_other_seller = self.client.get(self._detail_url(order))
        self.client.force_authenticate(user=self.buyer)
        as_buyer = self.client.get(self._detail_url(order))

        self.assertEqual(as_other_seller.status_code, status.HTTP_200_OK)
        self.assertEqual(as_other_seller.data["fulfillmentData"], {})
        self.assertEqual(as_other_seller.data["sellerNotes"], "")
        self.assertNotIn("A-SECRET-KEY", str(as_other_seller.data))
        self.assertEqual([g["shopId"] for g in as_other_seller.data["shopGroups"]], [str(other_shop.id)])

        self.assertEqual(as_buyer.data["fulfillmentData"][str(self.shop.id)]["data"], {"code": "A-SECRET-KEY"})
        self.assertEqual(len(as_buyer.data["shopGroups"]), 2)

    def test_retrieve_order_as_stranger(self):
        order = make_order(self.buyer, [(self.product, 1)], state="paid")
        self.client.force_authenticate(user=UserFactory())

        response = self.client.get(self._detail_url(order))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_retrieve_unknown_order(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.get(
            reverse("marketplace:order-detail", kwargs={"pk": "00000000-0000-0000-0000-000000000000"})
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"], "order_not_found")

    def test_deliver_and_confirm(self):
        order = make_order(self.buyer, [(self.product, 1)], state="paid")

        self.client.force_authenticate(user=self.seller)
        delivered = self.client.post(
            self._detail_url(order, "deliver"), {"fulfillmentData": {"key": "ABCD-1234"}}, format="json"
        )
        self.assertEqual(delivered.status_code, status.HTTP_200_OK)
        self.assertEqual(delivered.data["orderStatus"], "processing")
        self.assertIsNotNone(delivered.data["deliveredAt"])

        self.client.force_authenticate(user=self.buyer)
        confirmed = self.client.post(self._detail_url(order, "confirm"))
        self.assertEqual(confirmed.status_code, status.HTTP_200_OK)
        self.assertEqual(confirmed.data["orderStatus"], "completed")
        self.assertTrue(confirmed.data["buyerConfirmed"])
        self.assertEqual(confirmed.data["shopGroups"][0]["payoutStatus"], "ready")

        again = self.client.post(self._detail_url(order, "confirm"))
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data["error"], "already_confirmed")
        self.assertIn("confirmedAt", again.data)

    def test_deliver_unpaid_order_is_conflict(self):
        order = make_order(self.buyer, [(self.product, 1)], state="pending")
        self.client.force_authenticate(user=self.seller)

        response = self.client.post(self._detail_url(order, "deliver"), {"fulfillmentData": {"k": "v"}}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"], "payment_not_completed")

    def test_cancel_paid_order_with_refund_failure(self):
        charge = self.provider.create_charge(1000, "thb", "card")
        self.provider.set_charge_status(charge.charge_id, ChargeStatus.SUCCESSFUL)
        order = make_order(self.buyer, [(self.product, 1)], state="paid", charge_reference=charge.charge_id)
        self.provider.refund_failure = "error"
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self._detail_url(order, "cancel"), {"reason": "Wrong region"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["orderStatus"], "cancelled")
        self.assertEqual(response.data["refund"]["refundStatus"], "failed")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 11)

    def test_cancel_completed_order_is_conflict(self):
        order = make_order(self.buyer, [(self.product, 1)], state="confirmed")
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self._detail_url(order, "cancel"), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["currentStatus"], "completed")
