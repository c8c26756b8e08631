from prometheus_client import Counter, Histogram


# Checkout Metrics
checkouts_total = Counter(
    "marketplace_checkouts_total", "Checkout attempts by outcome", ["outcome"]
)  # created | duplicate | rejected
order_value = Histogram(
    "marketplace_order_value",
    "Order gross value distribution (minor units)",
    buckets=[1000, 5000, 10000, 50000, 100000, 500000, float("inf")],
)

# Stock Metrics
stock_adjustment_failures = Counter(
    "marketplace_stock_adjustment_failures_total", "Per-item stock adjustments that were skipped", ["direction"]
)

# Lifecycle Metrics
order_cancellations_total = Counter(
    "marketplace_order_cancellations_total", "Cancelled orders by refund outcome", ["refund_status"]
)
orders_confirmed_total = Counter("marketplace_orders_confirmed_total", "Buyer confirmations", ["mode"])
