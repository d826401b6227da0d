"""Rental listings: owner CRUD, public board and paid promotion."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from app.config import settings
from app.services.balance_service import BalanceService
from app.services.ledger_service import LedgerService
from app.storage.base import Storage
from app.utils.errors import AppError, InvalidInputError, NotEligibleError, NotFoundError
from app.utils.money import money_str, to_money
from app.utils.time import days_from_now, now_utc

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "price",
    "location",
    "address",
    "images",
    "tags",
    "is_active",
)


def _validate_promotion(days: Any, price: Any) -> tuple[int, Decimal]:
    if isinstance(days, bool) or not isinstance(days, int):
        raise InvalidInputError("days must be a whole number")
    if days <= 0 or days > settings.promote_max_days:
        raise InvalidInputError(f"days must be between 1 and {settings.promote_max_days}")

    try:
        amount = Decimal(str(price))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError("price must be a number") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidInputError("price must be positive")
    if amount != amount.quantize(Decimal("0.01")):
        raise InvalidInputError("price allows at most 2 decimal places")
    return days, to_money(amount)


def _editable(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key in EDITABLE_FIELDS}


def public_view(listing: dict[str, Any]) -> dict[str, Any]:
    """Strip the street address, which only the owner and admins see."""
    payload = dict(listing)
    payload.pop("address", None)
    return payload


class ListingService:
    def __init__(self, storage: Storage) -> None:
        self.listings = storage.listings
        self.balance = BalanceService(storage)
        self.ledger = LedgerService(storage)

    def create(self, owner_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a listing owned by ``owner_id``, pending moderation."""
        row = _editable(payload)
        row.setdefault("images", [])
        row.setdefault("tags", [])
        row.update(
            {
                "owner_id": owner_id,
                "is_active": True,
                "is_promoted": False,
                "promoted_until": None,
                "review_status": "pending",
                "review_note": "",
            }
        )
        return self.listings.create(row)

    def update(self, owner_id: str, listing_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply owner edits; review and promotion fields are not editable."""
        changes = _editable(payload)
        if not changes:
            raise InvalidInputError("No editable fields supplied")
        updated = self.listings.update(listing_id, changes, owner_id=owner_id)
        if updated is None:
            raise NotFoundError("Listing")
        return updated

    def delete(self, owner_id: str, listing_id: str) -> None:
        if self.listings.delete(listing_id, owner_id) is None:
            raise NotFoundError("Listing")
        logger.info("Listing %s deleted by %s", listing_id, owner_id)

    def list_mine(self, owner_id: str) -> list[dict[str, Any]]:
        self.expire_promotions()
        return self.listings.list({"owner_id": owner_id})

    def get(self, listing_id: str, viewer: dict[str, Any] | None = None) -> dict[str, Any]:
        """Return one listing.

        Listings that are not approved exist only for their owner and for
        admins; everyone else gets NotFound.
        """
        self.expire_promotions()
        listing = self.listings.get(listing_id)
        if listing is None:
            raise NotFoundError("Listing")
        is_owner = viewer is not None and str(viewer.get("id")) == str(listing.get("owner_id"))
        is_admin = viewer is not None and viewer.get("role") == "admin"
        if is_owner or is_admin:
            return listing
        if listing.get("review_status") != "approved":
            raise NotFoundError("Listing")
        return public_view(listing)

    def list_public(self) -> list[dict[str, Any]]:
        """Active approved listings, promoted first then newest.

        Expired promotions are cleared before the read so no caller ever
        observes ``is_promoted`` with a past ``promoted_until``.
        """
        self.expire_promotions()
        return [public_view(listing) for listing in self.listings.list_public()]

    def expire_promotions(self) -> int:
        expired = self.listings.expire_promotions(now_utc())
        if expired:
            logger.info("Expired %d listing promotion(s)", expired)
        return expired

    def promote(
        self,
        account_id: str,
        listing_id: str,
        days: Any = None,
        price: Any = None,
    ) -> tuple[dict[str, Any], Decimal]:
        """Charge ``price`` to promote a listing for ``days`` from now.

        A new promotion replaces the previous end date; durations are not
        added together.
        """
        days, price = _validate_promotion(
            settings.promote_default_days if days is None else days,
            settings.promote_price if price is None else price,
        )

        listing = self.listings.get(listing_id)
        if listing is None:
            raise NotFoundError("Listing")
        if str(listing.get("owner_id")) != str(account_id):
            raise NotEligibleError("Only the listing owner can promote it")
        if listing.get("review_status") != "approved":
            raise NotEligibleError("Listing pending review, cannot promote yet")

        self.balance.ensure_can_cover(account_id, price)

        entry = self.ledger.open_entry(
            account_id,
            "promote_listing",
            -price,
            target_id=listing_id,
            description=f"Promoted listing for {days} day(s)",
        )
        try:
            new_balance = self.balance.debit(account_id, price)
        except AppError:
            self.ledger.fail({"id": entry["id"]})
            raise

        until = days_from_now(days)
        try:
            promoted = self.listings.set_promotion(listing_id, until)
        except Exception:
            logger.exception(
                "Promotion grant incomplete: account=%s listing=%s entry=%s debited=%s",
                account_id,
                listing_id,
                entry["id"],
                money_str(price),
            )
            raise

        if promoted is None:
            # Listing deleted between the checks and the grant.
            self.balance.credit(account_id, price)
            self.ledger.fail({"id": entry["id"]})
            raise NotFoundError("Listing")

        self.ledger.complete({"id": entry["id"]})
        logger.info(
            "Listing promoted: account=%s listing=%s entry=%s until=%s price=%s",
            account_id,
            listing_id,
            entry["id"],
            until.isoformat(),
            money_str(price),
        )
        return promoted, new_balance
