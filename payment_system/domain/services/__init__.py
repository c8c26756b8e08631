from .balance_service import BalanceService, aggregate_balance
from .destination_service import PayoutDestinationService
from .payout_service import PayoutService, plan_allocations
from .reconciliation_service import PaymentReconciliationService, resolve_transition

__all__ = [
    "BalanceService",
    "PaymentReconciliationService",
    "PayoutDestinationService",
    "PayoutService",
    "aggregate_balance",
    "plan_allocations",
    "resolve_transition",
]
