"""Admin moderation of leads and listings."""

from __future__ import annotations

import logging
from typing import Any

from app.storage.base import Storage
from app.utils.errors import InvalidInputError, NotFoundError
from app.utils.time import now_utc

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("pending", "approved", "rejected")
REVIEW_LIST_LIMIT = 200
REVIEW_NOTE_MAX_LENGTH = 500


def normalize_status(value: str | None, default: str | None = None) -> str | None:
    status = str(value or "").strip().lower()
    return status if status in REVIEW_STATUSES else default


def _review_changes(reviewer_id: str, status: str | None, note: str | None) -> dict[str, Any]:
    normalized = normalize_status(status)
    if normalized is None or normalized == "pending":
        raise InvalidInputError("Invalid review status")
    return {
        "review_status": normalized,
        "review_note": str(note or "")[:REVIEW_NOTE_MAX_LENGTH],
        "reviewed_at": now_utc().isoformat(),
        "reviewed_by": reviewer_id,
    }


class ModerationService:
    """Approve or reject content before it can be sold or shown publicly.

    Callers must have checked the admin role already.
    """

    def __init__(self, storage: Storage) -> None:
        self.leads = storage.leads
        self.listings = storage.listings

    def pending_summary(self) -> dict[str, int]:
        return {
            "listings_pending": self.listings.count({"review_status": "pending"}),
            "leads_pending": self.leads.count({"review_status": "pending"}),
        }

    def list_leads_for_review(self, status: str | None = None) -> list[dict[str, Any]]:
        """Return leads with full contact details, newest first."""
        return self.leads.list(
            review_status=normalize_status(status, "pending"), limit=REVIEW_LIST_LIMIT
        )

    def list_listings_for_review(self, status: str | None = None) -> list[dict[str, Any]]:
        return self.listings.list(
            {"review_status": normalize_status(status, "pending")}, limit=REVIEW_LIST_LIMIT
        )

    def review_lead(
        self, reviewer_id: str, lead_id: str, status: str | None, note: str | None = None
    ) -> dict[str, Any]:
        changes = _review_changes(reviewer_id, status, note)
        lead = self.leads.update(lead_id, changes)
        if lead is None:
            raise NotFoundError("Lead")
        logger.info("Lead %s %s by %s", lead_id, changes["review_status"], reviewer_id)
        return lead

    def review_listing(
        self, reviewer_id: str, listing_id: str, status: str | None, note: str | None = None
    ) -> dict[str, Any]:
        changes = _review_changes(reviewer_id, status, note)
        listing = self.listings.update(listing_id, changes)
        if listing is None:
            raise NotFoundError("Listing")
        logger.info("Listing %s %s by %s", listing_id, changes["review_status"], reviewer_id)
        return listing
