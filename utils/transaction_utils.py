"""
Transaction Utilities for Keystash Backend
==========================================

Transaction management helpers with isolation level control and deadlock
retry for the money-moving paths (payment transitions, payout batches).

Usage:
    with atomic_with_isolation("READ COMMITTED"):
        ...

    @retry_on_deadlock(max_retries=3)
    def compare_and_set(order_id):
        ...
"""

import logging
import time
from contextlib import contextmanager
from functools import wraps

from django.db import IntegrityError, OperationalError, connections, transaction

logger = logging.getLogger(__name__)

ISOLATION_LEVELS = {
    "READ_UNCOMMITTED": "READ UNCOMMITTED",
    "READ_COMMITTED": "READ COMMITTED",
    "REPEATABLE_READ": "REPEATABLE READ",
    "SERIALIZABLE": "SERIALIZABLE",
}

# Backends that accept "SET TRANSACTION ISOLATION LEVEL" as the first statement of a transaction
_ISOLATION_VENDORS = ("mysql", "postgresql")

_DEADLOCK_MARKERS = ("Deadlock found", "1213", "deadlock detected", "database is locked")


class TransactionError(Exception):
    """Custom exception for transaction-related errors"""

    pass


class DeadlockError(TransactionError):
    """Exception raised when a deadlock is detected"""

    pass


def _is_deadlock(error):
    message = str(error)
    return any(marker in message for marker in _DEADLOCK_MARKERS)


def set_isolation_level(level="REPEATABLE READ", using="default"):
    """
    Set the isolation level for the transaction that is about to start.

    Silently skipped on backends without per-transaction isolation control
    (SQLite serialises writers already).
    """
    if level not in ISOLATION_LEVELS.values():
        raise ValueError(f"Invalid isolation level: {level}. Must be one of {list(ISOLATION_LEVELS.values())}")

    connection = connections[using]
    if connection.vendor not in _ISOLATION_VENDORS:
        logger.debug(f"Isolation level {level} not applied on {connection.vendor}")
        return

    try:
        with connection.cursor() as cursor:
            cursor.execute(f"SET TRANSACTION ISOLATION LEVEL {level}")
        logger.debug(f"Set transaction isolation level to {level}")
    except Exception as e:
        logger.error(f"Failed to set isolation level to {level}: {e}")
        raise TransactionError(f"Could not set isolation level: {e}") from e


@contextmanager
def atomic_with_isolation(isolation_level="REPEATABLE READ", using="default", savepoint=True):
    """
    Context manager for atomic transactions with custom isolation level.

    Usage:
        with atomic_with_isolation('SERIALIZABLE'):
            order.save()
            payout.save()
    """
    outermost = not connections[using].in_atomic_block
    try:
        with transaction.atomic(using=using, savepoint=savepoint):
            # Isolation can only change before the first statement of the outer transaction
            if outermost:
                set_isolation_level(isolation_level, using=using)
            logger.debug(f"Started atomic transaction with isolation level: {isolation_level}")
            yield
            logger.debug("Transaction committed successfully")
    except OperationalError as e:
        if _is_deadlock(e):
            raise DeadlockError(f"Deadlock detected: {e}") from e
        logger.error(f"Database error in transaction: {e}")
        raise TransactionError(f"Transaction failed: {e}") from e
    except IntegrityError as e:
        logger.error(f"Integrity error in transaction: {e}")
        raise TransactionError(f"Transaction failed: {e}") from e


def retry_on_deadlock(max_retries=3, delay=0.1, backoff=2.0):
    """
    Decorator to retry operations on deadlock with exponential backoff.

    Args:
        max_retries (int): Maximum number of retry attempts
        delay (float): Initial delay between retries in seconds
        backoff (float): Backoff multiplier for delay
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except (DeadlockError, OperationalError) as e:
                    if not isinstance(e, DeadlockError) and not _is_deadlock(e):
                        raise TransactionError(f"Database operation failed: {e}") from e
                    if attempt >= max_retries:
                        raise e if isinstance(e, DeadlockError) else DeadlockError(str(e))
                    logger.warning(
                        f"Deadlock detected in {func.__name__}, retrying in {current_delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator

