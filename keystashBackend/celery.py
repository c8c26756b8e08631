"""
Celery Configuration for Keystash Backend

Configures Celery for background reconciliation and escrow jobs:
auto-confirmation of delivered orders, payment re-sync for pending charges,
and recovery of payouts left in an unknown state.
"""

import os

from celery import Celery


# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "keystashBackend.settings")

app = Celery("keystashBackend")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# payment_system keeps its tasks in a sub-package
app.autodiscover_tasks(["payment_system.Tasks"], related_name="payment_tasks")

app.conf.beat_schedule = {
    # Release escrow for delivered orders the buyer never confirmed
    "auto-confirm-delivered-orders": {
        "task": "marketplace.tasks.auto_confirm_delivered_orders",
        "schedule": 60.0 * 60.0 * 24.0,  # Daily
        "options": {"expires": 60.0 * 60.0, "queue": "marketplace_tasks"},
    },
    # Recover missed gateway callbacks
    "reconcile-pending-payments": {
        "task": "payment_system.Tasks.payment_tasks.reconcile_pending_payments_task",
        "schedule": 60.0 * 60.0,  # Every hour
        "options": {"expires": 15.0 * 60.0, "queue": "payment_tasks"},
    },
    # Resolve payouts whose transfer outcome is unknown
    "reconcile-processing-payouts": {
        "task": "payment_system.Tasks.payment_tasks.reconcile_processing_payouts_task",
        "schedule": 15.0 * 60.0,  # Every 15 minutes
        "options": {"expires": 10.0 * 60.0, "queue": "payment_tasks"},
    },
}

app.conf.update(
    task_routes={
        "payment_system.Tasks.payment_tasks.*": {"queue": "payment_tasks"},
        "marketplace.tasks.*": {"queue": "marketplace_tasks"},
    },
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=60 * 60 * 24,  # Results expire after 24 hours
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    beat_scheduler="django_celery_beat.schedulers:DatabaseScheduler",
)
