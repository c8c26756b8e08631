import pytest

from infrastructure.payments import ChargeStatus
from payment_system.domain.services import resolve_transition


@pytest.mark.unit
class TestResolveTransition:
    def test_successful_paid_charge_completes_payment(self):
        transition = resolve_transition(ChargeStatus.SUCCESSFUL, paid=True, delivered=False)

        assert transition.applies
        assert transition.payment_status == "completed"
        assert transition.order_status == "pending"
        assert not transition.refund_required

    def test_successful_charge_on_delivered_order_moves_to_processing(self):
        transition = resolve_transition(ChargeStatus.SUCCESSFUL, paid=True, delivered=True)

        assert transition.payment_status == "completed"
        assert transition.order_status == "processing"

    def test_successful_but_unpaid_is_no_change(self):
        transition = resolve_transition(ChargeStatus.SUCCESSFUL, paid=False, delivered=False)

        assert not transition.applies

    def test_failed_charge_fails_payment_only(self):
        transition = resolve_transition(ChargeStatus.FAILED, paid=False, delivered=False)

        assert transition.payment_status == "failed"
        assert transition.order_status is None

    def test_expired_charge_cancels_order(self):
        transition = resolve_transition(ChargeStatus.EXPIRED, paid=False, delivered=False)

        assert transition.payment_status == "failed"
        assert transition.order_status == "cancelled"
        assert not transition.refund_required

    def test_expired_but_paid_cancels_with_refund(self):
        transition = resolve_transition(ChargeStatus.EXPIRED, paid=True, delivered=False)

        assert transition.payment_status == "completed"
        assert transition.order_status == "cancelled"
        assert transition.refund_required

    def test_pending_charge_is_no_change(self):
        transition = resolve_transition(ChargeStatus.PENDING, paid=False, delivered=False)

        assert not transition.applies
        assert transition.order_status is None
