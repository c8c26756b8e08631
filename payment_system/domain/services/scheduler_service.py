"""
Celery-based Scheduler Service

Registers the engine's periodic jobs as django-celery-beat PeriodicTasks so
their schedules can be inspected and tuned from the admin.
"""

import logging
from typing import Dict

from django.db import DatabaseError
from django_celery_beat.models import CrontabSchedule, IntervalSchedule, PeriodicTask

logger = logging.getLogger(__name__)

AUTO_CONFIRM_TASK = "marketplace.tasks.auto_confirm_delivered_orders"
PAYMENT_RECONCILE_TASK = "payment_system.Tasks.payment_tasks.reconcile_pending_payments_task"
PAYOUT_RECONCILE_TASK = "payment_system.Tasks.payment_tasks.reconcile_processing_payouts_task"

MANAGED_TASKS = (AUTO_CONFIRM_TASK, PAYMENT_RECONCILE_TASK, PAYOUT_RECONCILE_TASK)


class CelerySchedulerService:
    @classmethod
    def setup_default_tasks(
        cls, auto_confirm_hour: int = 3, payment_interval_minutes: int = 60, payout_interval_minutes: int = 15
    ) -> Dict[str, bool]:
        return {
            "auto_confirm": cls.schedule_auto_confirm(hour=auto_confirm_hour),
            "payment_reconciliation": cls.schedule_interval(
                "Payment Reconciliation",
                PAYMENT_RECONCILE_TASK,
                payment_interval_minutes,
                "Re-syncs pending charges whose gateway callback may have been missed",
                queue="payment_tasks",
            ),
            "payout_reconciliation": cls.schedule_interval(
                "Payout Reconciliation",
                PAYOUT_RECONCILE_TASK,
                payout_interval_minutes,
                "Resolves payouts whose transfer outcome is unknown",
                queue="payment_tasks",
            ),
        }

    @classmethod
    def schedule_auto_confirm(cls, hour: int = 3, minute: int = 0) -> bool:
        """Daily escrow release for overdue delivered orders."""
        try:
            schedule, _ = CrontabSchedule.objects.get_or_create(
                minute=str(minute),
                hour=str(hour),
                day_of_week="*",
                day_of_month="*",
                month_of_year="*",
                timezone="UTC",
            )
            _, created = PeriodicTask.objects.update_or_create(
                name="Auto-confirm Delivered Orders",
                defaults={
                    "task": AUTO_CONFIRM_TASK,
                    "crontab": schedule,
                    "interval": None,
                    "enabled": True,
                    "queue": "marketplace_tasks",
                    "description": "Confirms delivered orders the buyer did not confirm within the grace period",
                },
            )
        except DatabaseError as e:
            logger.error(f"Error scheduling auto-confirm task: {e}")
            return False

        logger.info(f"Auto-confirm task {'created' if created else 'updated'}: runs at {hour:02d}:{minute:02d} UTC")
        return True

    @classmethod
    def schedule_interval(cls, name: str, task: str, every_minutes: int, description: str, queue: str) -> bool:
        try:
            schedule, _ = IntervalSchedule.objects.get_or_create(every=every_minutes, period=IntervalSchedule.MINUTES)
            _, created = PeriodicTask.objects.update_or_create(
                name=name,
                defaults={
                    "task": task,
                    "interval": schedule,
                    "crontab": None,
                    "enabled": True,
                    "queue": queue,
                    "description": description,
                },
            )
        except DatabaseError as e:
            logger.error(f"Error scheduling {name}: {e}")
            return False

        logger.info(f"{name} task {'created' if created else 'updated'}: every {every_minutes} minutes")
        return True

    @classmethod
    def get_task_status(cls) -> Dict:
        tasks = PeriodicTask.objects.filter(task__in=MANAGED_TASKS).order_by("name")
        return {
            "total_tasks": tasks.count(),
            "enabled_tasks": tasks.filter(enabled=True).count(),
            "tasks": [
                {
                    "name": task.name,
                    "task": task.task,
                    "enabled": task.enabled,
                    "schedule": str(task.crontab or task.interval),
                    "last_run_at": task.last_run_at.isoformat() if task.last_run_at else None,
                    "total_run_count": task.total_run_count,
                }
                for task in tasks
            ],
        }
