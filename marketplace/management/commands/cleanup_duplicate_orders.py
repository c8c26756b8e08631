from django.core.management.base import BaseCommand

from infrastructure.container import container


class Command(BaseCommand):
    help = "Deletes unpaid duplicate cart orders, keeping the newest of each group. Dry run unless --execute."

    def add_arguments(self, parser):
        parser.add_argument("--buyer", type=int, help="Only clean up orders of this buyer id")
        parser.add_argument(
            "--execute",
            action="store_true",
            help="Actually delete the duplicates (default is a dry run)",
        )

    def handle(self, *args, **options):
        dry_run = not options["execute"]
        summary = container.duplicate_cleanup_service().cleanup(buyer_id=options.get("buyer"), dry_run=dry_run)

        for group in summary["groups"]:
            self.stdout.write(
                f"Buyer {group['buyerId']}: keep {group['keep']}, "
                f"delete {len(group['delete'])}, skip {len(group['skipped'])} (paid)"
            )

        self.stdout.write(
            f"{summary['duplicateGroups']} duplicate groups, {summary['ordersKept']} orders kept, "
            f"{summary['ordersToDelete']} to delete."
        )
        if dry_run:
            self.stdout.write(self.style.WARNING("Dry run: nothing deleted. Re-run with --execute to delete."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Deleted {summary['ordersDeleted']} duplicate orders."))
