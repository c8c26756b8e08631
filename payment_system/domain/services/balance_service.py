"""
Balance Aggregator

Computes a shop's withdrawable balance from its order groups on every call.
Nothing is cached or maintained incrementally, so a partial failure elsewhere
can never make the balance drift; a payout finishing mid-read just yields the
snapshot the query happened to observe.

`aggregate_balance` is the pure part and works on plain GroupSnapshot values.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from django.db.models import Sum
from django.utils import timezone

from marketplace.ordering.domain.models.order import OrderShopGroup
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from marketplace.shops.domain.models.shop import Shop
from payment_system.models import Payout

PERIODS = ("today", "week", "month", "all")


@dataclass(frozen=True)
class GroupSnapshot:
    seller_net_amount: int
    paid_out_amount: int = 0
    payout_status: str = OrderShopGroup.PAYOUT_READY
    confirmed_at: Optional[datetime] = None


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """
    Start of a reporting window. today/week are trailing (24h, 7 days);
    month starts on the first of the current month.
    """
    if period == "today":
        return now - timedelta(days=1)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def aggregate_balance(
    confirmed: Iterable[GroupSnapshot],
    pending: Iterable[GroupSnapshot],
    now: datetime,
    period: str = "all",
    under_review: int = 0,
) -> Dict[str, int]:
    """
    Fold confirmed and pending-confirmation groups into a balance.

    confirmed: groups of completed, buyer-confirmed orders
    pending: groups of paid, delivered, unconfirmed, non-cancelled orders

    available, totalPaidOut and totalEarnings always cover every confirmed
    group, so available is exactly what a payout can draw. `period` only
    narrows periodEarnings and confirmedOrderCount.

    under_review is money already transferred by payouts awaiting review;
    it moves from available to totalPaidOut until those payouts are applied.

    available + totalPaidOut == totalEarnings holds for every input.
    """
    windows = {name: period_start(name, now) for name in ("today", "week", "month")}
    cutoff = period_start(period, now)

    balance = {
        "available": 0,
        "pendingConfirmation": 0,
        "totalEarnings": 0,
        "totalPaidOut": 0,
        "underReview": under_review,
        "periodEarnings": 0,
        "today": 0,
        "thisWeek": 0,
        "thisMonth": 0,
        "confirmedOrderCount": 0,
        "pendingOrderCount": 0,
    }

    for group in confirmed:
        net = group.seller_net_amount
        balance["totalEarnings"] += net

        if group.payout_status == OrderShopGroup.PAYOUT_PAID:
            balance["totalPaidOut"] += net
        elif group.payout_status == OrderShopGroup.PAYOUT_PARTIAL:
            paid = min(group.paid_out_amount, net)
            balance["totalPaidOut"] += paid
            balance["available"] += net - paid
        else:
            balance["available"] += net

        if cutoff is None or (group.confirmed_at is not None and group.confirmed_at >= cutoff):
            balance["periodEarnings"] += net
            balance["confirmedOrderCount"] += 1

        if group.confirmed_at is not None:
            if group.confirmed_at >= windows["today"]:
                balance["today"] += net
            if group.confirmed_at >= windows["week"]:
                balance["thisWeek"] += net
            if group.confirmed_at >= windows["month"]:
                balance["thisMonth"] += net

    held = min(under_review, balance["available"])
    balance["available"] -= held
    balance["totalPaidOut"] += held

    for group in pending:
        balance["pendingConfirmation"] += group.seller_net_amount
        balance["pendingOrderCount"] += 1

    return balance


def confirmed_groups(shop_id):
    return OrderShopGroup.objects.filter(shop_id=shop_id, order__status="completed", order__buyer_confirmed=True)


def under_review_amount(shop_id) -> int:
    """Amount sent by payouts whose order markers are still awaiting review."""
    total = Payout.objects.filter(shop_id=shop_id, status=Payout.STATUS_REQUIRES_REVIEW).aggregate(total=Sum("amount"))
    return total["total"] or 0


def pending_confirmation_groups(shop_id):
    return OrderShopGroup.objects.filter(
        shop_id=shop_id,
        order__payment_status="completed",
        order__buyer_confirmed=False,
        order__delivered_at__isnull=False,
    ).exclude(order__status="cancelled")


class BalanceService(BaseService):
    @BaseService.log_performance
    def get_balance(self, shop_id, user, period: str = "all") -> ServiceResult[Dict[str, int]]:
        """Balance for a shop, visible to its owner only."""
        if period not in PERIODS:
            return service_err(
                ErrorCodes.INVALID_INPUT, f"Invalid period '{period}'. Use one of: {', '.join(PERIODS)}"
            )

        shop = Shop.objects.filter(pk=shop_id).first()
        if shop is None:
            return service_err(ErrorCodes.SHOP_NOT_FOUND, f"Shop {shop_id} not found")
        if shop.owner_id != user.pk:
            return service_err(ErrorCodes.NOT_SHOP_OWNER, "You can only view your own shop's balance")

        balance = self.compute_balance(shop.pk, period=period)
        balance.update({"shopId": str(shop.pk), "period": period})
        return service_ok(balance)

    def compute_balance(self, shop_id, period: str = "all", now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or timezone.now()
        confirmed = (
            GroupSnapshot(
                seller_net_amount=row["seller_net_amount"],
                paid_out_amount=row["paid_out_amount"],
                payout_status=row["payout_status"],
                confirmed_at=row["order__buyer_confirmed_at"],
            )
            for row in confirmed_groups(shop_id).values(
                "seller_net_amount", "paid_out_amount", "payout_status", "order__buyer_confirmed_at"
            )
        )
        pending = (
            GroupSnapshot(seller_net_amount=row["seller_net_amount"])
            for row in pending_confirmation_groups(shop_id).values("seller_net_amount")
        )
        return aggregate_balance(confirmed, pending, now, period=period, under_review=under_review_amount(shop_id))
