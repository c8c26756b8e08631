from .payment_tasks import reconcile_pending_payments_task, reconcile_processing_payouts_task

__all__ = ["reconcile_pending_payments_task", "reconcile_processing_payouts_task"]
