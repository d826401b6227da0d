"""Account and ledger endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_account, get_db_storage
from app.services.account_service import AccountService
from app.services.ledger_service import ENTRY_KINDS, LedgerService
from app.storage.base import Storage
from app.utils.errors import InvalidInputError

router = APIRouter()


@router.get("")
def get_account(
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Return the caller's balance and lifetime totals."""
    return AccountService(storage).overview(account["id"])


@router.get("/ledger")
def get_ledger(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    kind: str | None = None,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Return the caller's ledger entries and summary."""
    if kind is not None and kind not in ENTRY_KINDS:
        raise InvalidInputError(f"Unknown ledger entry kind: {kind}")
    service = LedgerService(storage)
    entries, total = service.list_entries(account["id"], limit=limit, offset=offset, kind=kind)
    summary = service.summary(account["id"])
    return {"entries": entries, "total": total, "summary": summary}
