# Utils package for Keystash backend

from .logging_utils import mask_account_number, mask_value
from .transaction_utils import DeadlockError, TransactionError, atomic_with_isolation, retry_on_deadlock

__all__ = [
    "mask_value",
    "mask_account_number",
    "TransactionError",
    "DeadlockError",
    "atomic_with_isolation",
    "retry_on_deadlock",
]
