"""
Marketplace Celery Tasks

- Auto-confirmation of delivered orders the buyer never confirmed
"""

import logging

from celery import shared_task
from django.db import DatabaseError

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, queue="marketplace_tasks")
def auto_confirm_delivered_orders(self, days=None):
    """
    Daily escrow release for orders delivered more than ORDER_AUTO_CONFIRM_DAYS ago.

    Returns:
        dict: {"success", "candidates", "confirmed"}
    """
    from infrastructure.container import container

    try:
        summary = container.fulfillment_service().auto_confirm_overdue(days=days)
        logger.info(f"Auto-confirm finished: {summary['confirmed']} of {summary['candidates']} orders confirmed")
        return {"success": True, **summary}

    except DatabaseError as e:
        logger.error(f"Error in auto-confirm task: {e}")
        try:
            raise self.retry(countdown=60 * (2**self.request.retries))
        except self.MaxRetriesExceededError:
            return {"success": False, "error": f"Max retries exceeded: {str(e)}", "candidates": 0, "confirmed": 0}
