from prometheus_client import Counter, Gauge


payment_volume_total = Counter("payment_volume_total", "Total payment volume processed", ["currency", "status"])

payout_volume_total = Counter("payout_volume_total", "Total payout volume processed", ["currency", "status"])

payment_transitions_total = Counter(
    "payment_transitions_total", "Payment status transitions applied", ["source", "outcome"]
)  # source: webhook | sync | job

escrow_pending_value = Gauge(
    "escrow_pending_value", "Seller funds delivered but awaiting buyer confirmation", ["currency"]
)
