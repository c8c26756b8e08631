class PaymentError(Exception):
    """Base class for payment system exceptions."""

    pass


class AllocationConflict(PaymentError):
    """Raised when a payout's order groups changed between planning and marking."""

    pass
