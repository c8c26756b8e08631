import logging

from django.core.management.base import BaseCommand

from infrastructure.container import container

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Re-syncs pending order payments with the payment gateway."

    def add_arguments(self, parser):
        parser.add_argument(
            "--all",
            action="store_true",
            help="Reconcile all orders regardless of age (default: last 7 days)",
        )
        parser.add_argument(
            "--days",
            type=int,
            default=7,
            help="Number of days back to check for orders (default: 7)",
        )
        parser.add_argument(
            "--payouts",
            action="store_true",
            help="Also resolve payouts stuck in processing",
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("Starting payment reconciliation..."))
        if options["all"]:
            self.stdout.write("Reconciling all outstanding orders.")
        else:
            self.stdout.write(f"Reconciling orders from the last {options['days']} days.")

        summary = container.reconciliation_service().reconcile_pending(
            days=options["days"], include_all=options["all"]
        )
        self.stdout.write(
            f"Checked {summary['checked']} orders, updated {summary['updated']}, errors {summary['errors']}."
        )

        if options["payouts"]:
            payouts = container.payout_service().reconcile_processing_payouts()
            self.stdout.write(
                f"Payouts checked {payouts['checked']}: completed {payouts['completed']}, "
                f"failed {payouts['failed']}, still processing {payouts['processing']}, "
                f"needs review {payouts['requires_review']}."
            )

        style = self.style.WARNING if summary["errors"] else self.style.SUCCESS
        self.stdout.write(style("Payment reconciliation finished."))
