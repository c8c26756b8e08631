"""
PayoutDestinationService - Seller Payout Accounts

Sellers register bank accounts and PromptPay ids, pick the default one and
switch them on or off. A shop has at most one default destination, and at
least one destination stays enabled once any exist. New destinations start
unverified; payouts only go to verified ones.
"""

from typing import Dict, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from marketplace.shops.domain.models.shop import PayoutDestination, Shop
from utils.logging_utils import mask_account_number

BANK_FIELDS = ("bank_name", "bank_code", "account_number", "account_name", "branch")
PROMPTPAY_FIELDS = ("promptpay_id", "promptpay_type")


class PayoutDestinationService(BaseService):
    def _owned_shop(self, shop_id, user, lock: bool = False) -> Tuple[Optional[Shop], Optional[ServiceResult]]:
        shops = Shop.objects.select_for_update() if lock else Shop.objects
        shop = shops.filter(pk=shop_id).first()
        if shop is None:
            return None, service_err(ErrorCodes.SHOP_NOT_FOUND, f"Shop {shop_id} not found")
        if shop.owner_id != user.pk:
            return None, service_err(ErrorCodes.NOT_SHOP_OWNER, "You can only manage your own shop's payout accounts")
        return shop, None

    def _destination(self, shop: Shop, destination_id) -> Tuple[Optional[PayoutDestination], Optional[ServiceResult]]:
        destination = shop.payout_destinations.filter(pk=destination_id).first()
        if destination is None:
            return None, service_err(
                ErrorCodes.PAYOUT_DESTINATION_NOT_FOUND, f"Payout account {destination_id} not found for this shop"
            )
        return destination, None

    @BaseService.log_performance
    def add_destination(self, shop_id, user, data: Dict) -> ServiceResult[PayoutDestination]:
        """
        Register a bank account or PromptPay id for the shop.

        `data` is already validated (account_type plus the fields of that
        type). The first destination of a shop becomes its default.
        """
        account_type = data["account_type"]
        fields = BANK_FIELDS if account_type == "bank" else PROMPTPAY_FIELDS

        with transaction.atomic():
            shop, error = self._owned_shop(shop_id, user, lock=True)
            if error:
                return error

            destination = PayoutDestination.objects.create(
                shop=shop,
                account_type=account_type,
                display_name=data.get("display_name") or ("Bank account" if account_type == "bank" else "PromptPay"),
                is_default=not shop.payout_destinations.exists(),
                **{name: data.get(name, "") for name in fields},
            )

        self.logger.info(
            f"Payout destination {destination.pk} added for shop {shop.pk}: "
            f"{account_type} {mask_account_number(destination.account_number or destination.promptpay_id)}"
        )
        return service_ok(destination)

    @BaseService.log_performance
    def set_default(self, shop_id, user, destination_id) -> ServiceResult[PayoutDestination]:
        """Make one enabled destination the shop's default and clear the flag on the others."""
        with transaction.atomic():
            shop, error = self._owned_shop(shop_id, user, lock=True)
            if error:
                return error
            destination, error = self._destination(shop, destination_id)
            if error:
                return error
            if not destination.is_enabled:
                return service_err(
                    ErrorCodes.PAYOUT_DESTINATION_DISABLED,
                    "Enable this payout account before making it the default",
                    {"destinationId": str(destination.pk)},
                )

            now = timezone.now()
            shop.payout_destinations.exclude(pk=destination.pk).filter(is_default=True).update(
                is_default=False, updated_at=now
            )
            destination.is_default = True
            destination.save(update_fields=["is_default", "updated_at"])

        self.logger.info(f"Payout destination {destination.pk} is now the default for shop {shop.pk}")
        return service_ok(destination)

    @BaseService.log_performance
    def set_enabled(self, shop_id, user, destination_id, enabled: bool) -> ServiceResult[PayoutDestination]:
        """
        Switch a destination on or off.

        The last enabled destination cannot be switched off. Disabling the
        default hands the default flag to the oldest other enabled destination.
        """
        with transaction.atomic():
            shop, error = self._owned_shop(shop_id, user, lock=True)
            if error:
                return error
            destination, error = self._destination(shop, destination_id)
            if error:
                return error

            if not enabled and destination.is_enabled:
                others = shop.payout_destinations.filter(is_enabled=True).exclude(pk=destination.pk)
                successor = others.order_by("created_at").first()
                if successor is None:
                    return service_err(
                        ErrorCodes.LAST_ENABLED_DESTINATION,
                        "Cannot disable the only enabled payout account",
                        {"destinationId": str(destination.pk)},
                    )
                if destination.is_default:
                    destination.is_default = False
                    successor.is_default = True
                    successor.save(update_fields=["is_default", "updated_at"])

            destination.is_enabled = enabled
            destination.save(update_fields=["is_enabled", "is_default", "updated_at"])

        self.logger.info(f"Payout destination {destination.pk} {'enabled' if enabled else 'disabled'}")
        return service_ok(destination)

    def mark_verified(self, destination: PayoutDestination) -> PayoutDestination:
        """Record a completed verification (operator action)."""
        destination.is_verified = True
        destination.verification_status = "verified"
        destination.verified_at = timezone.now()
        destination.save(update_fields=["is_verified", "verification_status", "verified_at", "updated_at"])
        self.logger.info(f"Payout destination {destination.pk} verified")
        return destination
