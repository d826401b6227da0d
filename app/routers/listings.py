"""Rental listing endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_current_account, get_db_storage, get_optional_account
from app.schemas.listing import ListingCreate, ListingUpdate, PromoteRequest
from app.services.listing_service import ListingService
from app.storage.base import Storage

router = APIRouter()


@router.get("")
def list_listings(storage: Storage = Depends(get_db_storage)) -> dict:
    """Return the public board: promoted first, then newest."""
    listings = ListingService(storage).list_public()
    return {"listings": listings, "results": len(listings)}


@router.get("/my")
def list_my_listings(
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    listings = ListingService(storage).list_mine(account["id"])
    return {"listings": listings, "results": len(listings)}


@router.post("", status_code=201)
def create_listing(
    payload: ListingCreate,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    listing = ListingService(storage).create(account["id"], payload.model_dump())
    return {"listing": listing}


@router.get("/{listing_id}")
def get_listing(
    listing_id: str,
    account: dict[str, Any] | None = Depends(get_optional_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Return one listing; unapproved ones only to their owner or an admin."""
    return {"listing": ListingService(storage).get(listing_id, viewer=account)}


@router.patch("/{listing_id}")
def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    listing = ListingService(storage).update(account["id"], listing_id, changes)
    return {"listing": listing}


@router.delete("/{listing_id}")
def delete_listing(
    listing_id: str,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    ListingService(storage).delete(account["id"], listing_id)
    return {"deleted": True}


@router.post("/{listing_id}/promote")
def promote_listing(
    listing_id: str,
    payload: PromoteRequest | None = None,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Spend balance to pin a listing to the top of the board."""
    request = payload or PromoteRequest()
    listing, balance = ListingService(storage).promote(
        account["id"], listing_id, days=request.days, price=request.price
    )
    return {"listing": listing, "balance": balance}
