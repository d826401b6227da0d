"""Tenant lead endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_current_account, get_db_storage
from app.schemas.lead import LeadCreate
from app.services.lead_service import LeadService
from app.storage.base import Storage

router = APIRouter()


@router.post("", status_code=201)
def submit_lead(payload: LeadCreate, storage: Storage = Depends(get_db_storage)) -> dict:
    """Accept a lead from an anonymous tenant; it awaits moderation."""
    lead = LeadService(storage).create(payload.model_dump())
    return {"lead": {"id": lead["id"], "review_status": lead["review_status"]}}


@router.get("")
def list_leads(
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Return leads with contact details masked unless unlocked."""
    leads = LeadService(storage).list_for_viewer(account["id"])
    return {"leads": leads, "results": len(leads)}


@router.post("/{lead_id}/unlock")
def unlock_lead(
    lead_id: str,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Spend balance to reveal a lead's contact details."""
    lead, balance = LeadService(storage).unlock(account["id"], lead_id)
    return {"lead": lead, "balance": balance}
