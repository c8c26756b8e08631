"""
Payment System Celery Tasks

Out-of-band reconciliation jobs:
- Re-sync of pending charges whose gateway callback may have been missed
- Recovery of payouts whose transfer outcome is unknown
"""

import logging

from celery import shared_task
from django.db import DatabaseError

from infrastructure.payments import PaymentException

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, queue="payment_tasks")
def reconcile_pending_payments_task(self, days=7, include_all=False):
    """
    Periodic pull-path re-sync of pending orders that carry a charge reference.

    Returns:
        dict: {"success", "checked", "updated", "errors"}
    """
    from infrastructure.container import container

    try:
        logger.info(f"Starting payment reconciliation task (days={days}, all={include_all})")
        summary = container.reconciliation_service().reconcile_pending(days=days, include_all=include_all)
        return {"success": True, **summary}

    except (DatabaseError, PaymentException) as e:
        logger.error(f"Error in payment reconciliation task: {e}")
        # Retry with exponential backoff
        try:
            raise self.retry(countdown=60 * (2**self.request.retries))
        except self.MaxRetriesExceededError:
            return {"success": False, "error": f"Max retries exceeded: {str(e)}", "checked": 0, "updated": 0}


@shared_task(bind=True, max_retries=3, queue="payment_tasks")
def reconcile_processing_payouts_task(self, older_than_minutes=None):
    """
    Re-issue transfers for payouts stuck in processing (same idempotency key).

    Returns:
        dict: {"success", "checked", "completed", "failed", "processing"}
    """
    from infrastructure.container import container

    try:
        logger.info("Starting payout reconciliation task")
        summary = container.payout_service().reconcile_processing_payouts(older_than_minutes=older_than_minutes)
        return {"success": True, **summary}

    except (DatabaseError, PaymentException) as e:
        logger.error(f"Error in payout reconciliation task: {e}")
        try:
            raise self.retry(countdown=60 * (2**self.request.retries))
        except self.MaxRetriesExceededError:
            return {"success": False, "error": f"Max retries exceeded: {str(e)}", "checked": 0}
