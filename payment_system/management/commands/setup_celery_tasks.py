"""
Management command to register the periodic reconciliation and escrow jobs.
"""

from django.core.management.base import BaseCommand, CommandError

from payment_system.domain.services.scheduler_service import CelerySchedulerService


class Command(BaseCommand):
    help = "Set up Celery periodic tasks (auto-confirm, payment and payout reconciliation)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--auto-confirm-hour", type=int, default=3, help="UTC hour for the daily auto-confirm run (default: 3)"
        )
        parser.add_argument(
            "--payment-interval", type=int, default=60, help="Minutes between payment re-syncs (default: 60)"
        )
        parser.add_argument(
            "--payout-interval", type=int, default=15, help="Minutes between payout recovery runs (default: 15)"
        )
        parser.add_argument(
            "--status-only", action="store_true", help="Show current task status without making changes"
        )

    def handle(self, *args, **options):
        if not options["status_only"]:
            if not 0 <= options["auto_confirm_hour"] <= 23:
                raise CommandError("--auto-confirm-hour must be between 0 and 23")

            results = CelerySchedulerService.setup_default_tasks(
                auto_confirm_hour=options["auto_confirm_hour"],
                payment_interval_minutes=options["payment_interval"],
                payout_interval_minutes=options["payout_interval"],
            )
            for name, ok in results.items():
                label = name.replace("_", " ").title()
                self.stdout.write(f"  {label}: {self.style.SUCCESS('Configured') if ok else self.style.ERROR('Failed')}")
            if not all(results.values()):
                raise CommandError("Some periodic tasks could not be configured")

        status = CelerySchedulerService.get_task_status()
        self.stdout.write(f"Managed tasks: {status['total_tasks']} ({status['enabled_tasks']} enabled)")
        for task in status["tasks"]:
            self.stdout.write(f"  {task['name']}: {task['schedule']} (last run: {task['last_run_at'] or 'never'})")
