from django.urls import path

from payment_system.api.views import metrics_views, payment_views, payout_views

app_name = "payment_system"

urlpatterns = [
    # Gateway webhook (push path)
    path("webhook/", payment_views.PaymentWebhookView.as_view(), name="payment_webhook"),
    # Buyer re-sync (pull path)
    path("orders/<uuid:order_id>/sync/", payment_views.sync_payment, name="sync_payment"),
    # Seller money
    path("shops/<uuid:shop_id>/balance/", payout_views.shop_balance, name="shop_balance"),
    path("shops/<uuid:shop_id>/payouts/", payout_views.shop_payouts, name="shop_payouts"),
    path(
        "shops/<uuid:shop_id>/payout-destinations/",
        payout_views.shop_payout_destinations,
        name="shop_payout_destinations",
    ),
    path(
        "shops/<uuid:shop_id>/payout-destinations/<uuid:destination_id>/set-default/",
        payout_views.set_default_payout_destination,
        name="set_default_payout_destination",
    ),
    path(
        "shops/<uuid:shop_id>/payout-destinations/<uuid:destination_id>/toggle/",
        payout_views.toggle_payout_destination,
        name="toggle_payout_destination",
    ),
    # Prometheus metrics endpoint
    path("metrics/", metrics_views.prometheus_metrics, name="payment-metrics"),
]
