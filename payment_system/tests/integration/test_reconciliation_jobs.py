from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django_celery_beat.models import PeriodicTask

from infrastructure.container import container
from infrastructure.payments import ChargeStatus
from marketplace.tests.factories import PayoutDestinationFactory, ProductFactory, UserFactory, make_order
from payment_system.models import Payout
from payment_system.Tasks import reconcile_pending_payments_task, reconcile_processing_payouts_task


class ReconciliationJobsMixin:
    def setUp(self):
        container.configure_for_testing()
        self.provider = container.payment()
        self.destination = PayoutDestinationFactory()
        self.shop = self.destination.shop
        self.buyer = UserFactory()
        self.product = ProductFactory(shop=self.shop, price=1000, stock=5)

    def tearDown(self):
        container.reset()

    def pending_order_with_charge(self):
        charge = self.provider.create_charge(1000, "thb", "card")
        return make_order(self.buyer, [(self.product, 1)], charge_reference=charge.charge_id), charge

    def stuck_payout(self):
        make_order(self.buyer, [(self.product, 1)], state="confirmed")
        self.provider.transfer_failure = "timeout"
        result = container.payout_service().request_payout(self.shop.id, self.shop.owner, 970)
        self.provider.transfer_failure = None
        return result.value


class ReconciliationTasksTest(ReconciliationJobsMixin, TestCase):
    def test_pending_payment_task_applies_missed_callback(self):
        order, charge = self.pending_order_with_charge()
        self.provider.set_charge_status(charge.charge_id, ChargeStatus.SUCCESSFUL)

        result = reconcile_pending_payments_task.apply().get()

        self.assertEqual(result, {"success": True, "checked": 1, "updated": 1, "errors": 0})
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "completed")

    def test_pending_payment_task_leaves_pending_charges(self):
        order, _ = self.pending_order_with_charge()

        result = reconcile_pending_payments_task.apply().get()

        self.assertEqual(result["updated"], 0)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "pending")

    def test_payout_task_completes_stuck_payout(self):
        payout = self.stuck_payout()
        self.assertEqual(payout.status, Payout.STATUS_PROCESSING)

        result = reconcile_processing_payouts_task.apply(kwargs={"older_than_minutes": 0}).get()

        self.assertTrue(result["success"])
        self.assertEqual(result["completed"], 1)
        payout.refresh_from_db()
        self.assertEqual(payout.status, Payout.STATUS_COMPLETED)


class ReconcilePaymentsCommandTest(ReconciliationJobsMixin, TestCase):
    def test_reconciles_pending_orders(self):
        order, charge = self.pending_order_with_charge()
        self.provider.set_charge_status(charge.charge_id, ChargeStatus.FAILED, "card_declined", "Declined")
        out = StringIO()

        call_command("reconcile_payments", "--days", "3", stdout=out)

        self.assertIn("Checked 1 orders, updated 1, errors 0.", out.getvalue())
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "failed")

    def test_all_flag(self):
        out = StringIO()

        call_command("reconcile_payments", "--all", stdout=out)

        self.assertIn("Reconciling all outstanding orders.", out.getvalue())
        self.assertIn("Checked 0 orders", out.getvalue())

    def test_payouts_flag_reports_payout_summary(self):
        self.stuck_payout()
        out = StringIO()

        call_command("reconcile_payments", "--payouts", stdout=out)

        # The payout is younger than the default recovery delay
        self.assertIn("Payouts checked 0", out.getvalue())


class SetupCeleryTasksCommandTest(TestCase):
    def test_registers_periodic_tasks(self):
        out = StringIO()

        call_command("setup_celery_tasks", stdout=out)

        self.assertEqual(PeriodicTask.objects.count(), 3)
        self.assertIn("Managed tasks: 3 (3 enabled)", out.getvalue())

    def test_status_only_changes_nothing(self):
        out = StringIO()

        call_command("setup_celery_tasks", "--status-only", stdout=out)

        self.assertEqual(PeriodicTask.objects.count(), 0)
        self.assertIn("Managed tasks: 0", out.getvalue())
