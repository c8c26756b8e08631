import factory
from django.contrib.auth import get_user_model
from django.utils import timezone
from faker import Faker

from marketplace.cart.domain.models.cart import Cart, CartItem
from marketplace.catalog.domain.models.catalog import Product
from marketplace.ordering.domain.models.order import Order, OrderItem, OrderShopGroup
from marketplace.shops.domain.models.shop import PayoutDestination, Shop

User = get_user_model()
fake = Faker()


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user_{n}")
    email = factory.Sequence(lambda n: f"user_{n}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "defaultpassword")
    is_active = True


class SellerFactory(UserFactory):
    username = factory.Sequence(lambda n: f"seller_{n}")
    email = factory.Sequence(lambda n: f"seller_{n}@example.com")


class AdminFactory(UserFactory):
    is_superuser = True
    is_staff = True
    username = factory.Sequence(lambda n: f"admin_{n}")
    email = factory.Sequence(lambda n: f"admin_{n}@example.com")


class ShopFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Shop

    owner = factory.SubFactory(SellerFactory)
    name = factory.Sequence(lambda n: f"Shop {n}")
    is_active = True


class PayoutDestinationFactory(factory.django.DjangoModelFactory):
    """A verified, enabled bank account: payable and usable for payouts."""

    class Meta:
        model = PayoutDestination

    shop = factory.SubFactory(ShopFactory)
    account_type = "bank"
    display_name = "Main account"
    bank_name = "Kasikorn Bank"
    bank_code = "004"
    account_number = factory.LazyFunction(lambda: fake.numerify("##########"))
    account_name = factory.LazyAttribute(lambda o: o.shop.name)
    recipient_reference = factory.Sequence(lambda n: f"acct_test_{n}")
    is_default = True
    is_enabled = True
    is_verified = True
    verification_status = "verified"
    verified_at = factory.LazyFunction(timezone.now)


class UnverifiedPayoutDestinationFactory(PayoutDestinationFactory):
    is_verified = False
    verification_status = "pending"
    verified_at = None


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    shop = factory.SubFactory(ShopFactory)
    name = factory.Sequence(lambda n: f"Game Key {n}")
    description = factory.Faker("sentence", nb_words=10)
    price = 1000
    stock = 10
    sold_count = 0
    is_active = True


class CartFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Cart

    user = factory.SubFactory(UserFactory)


class CartItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CartItem

    cart = factory.SubFactory(CartFactory)
    product = factory.SubFactory(ProductFactory)
    quantity = 1


class OrderFactory(factory.django.DjangoModelFactory):
    """Bare order row; use make_order() to get groups and items that add up."""

    class Meta:
        model = Order

    buyer = factory.SubFactory(UserFactory)
    source = "direct"
    currency = "thb"
    gross_total = 1000
    platform_fee_total = 30
    seller_net_total = 970
    payment_method = "card"


class OrderShopGroupFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrderShopGroup

    order = factory.SubFactory(OrderFactory)
    shop = factory.SubFactory(ShopFactory)
    gross_amount = 1000
    platform_fee_amount = 30
    seller_net_amount = 970


class OrderItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrderItem

    shop_group = factory.SubFactory(OrderShopGroupFactory)
    order = factory.SelfAttribute("shop_group.order")
    product = factory.SubFactory(ProductFactory, shop=factory.SelfAttribute("..shop_group.shop"))
    product_name = factory.LazyAttribute(lambda o: o.product.name if o.product else "Deleted product")
    unit_price = 1000
    quantity = 1
    line_total = factory.LazyAttribute(lambda o: o.unit_price * o.quantity)


def make_order(buyer, lines, state="pending", charge_reference="", **order_fields):
    """
    Build an order with one group per shop from (product, quantity) lines.

    state:
        pending    - unpaid
        paid       - payment completed, not delivered
        delivered  - paid and delivered, awaiting confirmation
        confirmed  - buyer confirmed; groups are ready for payout
    """
    from marketplace.cart.domain.services.pricing_service import PricingService

    pricing = PricingService()
    by_shop = {}
    for product, quantity in lines:
        by_shop.setdefault(product.shop, []).append((product, quantity))

    totals = {
        shop: pricing.group_totals((product.price, quantity) for product, quantity in shop_lines)
        for shop, shop_lines in by_shop.items()
    }
    now = timezone.now()
    fields = {
        "buyer": buyer,
        "shop": next(iter(by_shop)) if len(by_shop) == 1 else None,
        "gross_total": sum(t["gross_amount"] for t in totals.values()),
        "platform_fee_total": sum(t["platform_fee_amount"] for t in totals.values()),
        "seller_net_total": sum(t["seller_net_amount"] for t in totals.values()),
        "charge_reference": charge_reference,
    }
    if state in ("paid", "delivered", "confirmed"):
        fields.update(payment_status="completed", paid_at=now)
    if state in ("delivered", "confirmed"):
        fields.update(status="processing", delivered_at=now, fulfillment_data={"delivered": True})
    if state == "confirmed":
        fields.update(status="completed", buyer_confirmed=True, buyer_confirmed_at=now)
    fields.update(order_fields)

    order = OrderFactory(**fields)
    payout_status = OrderShopGroup.PAYOUT_READY if state == "confirmed" else OrderShopGroup.PAYOUT_NONE
    for shop, shop_lines in by_shop.items():
        group = OrderShopGroupFactory(order=order, shop=shop, payout_status=payout_status, **totals[shop])
        for product, quantity in shop_lines:
            OrderItemFactory(
                order=order,
                shop_group=group,
                product=product,
                product_name=product.name,
                unit_price=product.price,
                quantity=quantity,
            )
    return order
