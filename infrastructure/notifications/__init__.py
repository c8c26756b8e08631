"""
Notification Service
====================

Order and payout notifications for buyers and sellers. Delivery is
best-effort: a failed notification never affects the order state.
"""

from .service import NotificationService

__all__ = ["NotificationService"]
