from django.urls import include, path
from rest_framework.routers import DefaultRouter

from marketplace.ordering.api.views import order_views

router = DefaultRouter()
router.register(r"orders", order_views.OrderViewSet, basename="order")

app_name = "marketplace"

urlpatterns = [
    path("checkout/", order_views.checkout, name="checkout"),
    path("", include(router.urls)),
]
