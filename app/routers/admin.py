"""Admin moderation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_db_storage, require_admin
from app.schemas.moderation import PendingSummary, ReviewRequest
from app.services.moderation_service import ModerationService
from app.storage.base import Storage

router = APIRouter()


@router.get("/summary", response_model=PendingSummary)
def pending_summary(
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    return ModerationService(storage).pending_summary()


@router.get("/listings")
def listings_for_review(
    status: str | None = None,
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    listings = ModerationService(storage).list_listings_for_review(status)
    return {"listings": listings, "results": len(listings)}


@router.patch("/listings/{listing_id}/review")
def review_listing(
    listing_id: str,
    payload: ReviewRequest,
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    listing = ModerationService(storage).review_listing(
        admin["id"], listing_id, payload.status, payload.note
    )
    return {"listing": listing}


@router.get("/leads")
def leads_for_review(
    status: str | None = None,
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Return leads with full contact details for moderation."""
    leads = ModerationService(storage).list_leads_for_review(status)
    return {"leads": leads, "results": len(leads)}


@router.patch("/leads/{lead_id}/review")
def review_lead(
    lead_id: str,
    payload: ReviewRequest,
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    lead = ModerationService(storage).review_lead(admin["id"], lead_id, payload.status, payload.note)
    return {"lead": lead}
