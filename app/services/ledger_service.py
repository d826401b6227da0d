"""Ledger entry service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from app.storage.base import Storage
from app.utils.errors import InvalidInputError
from app.utils.money import CURRENCY, ZERO, to_money

ENTRY_KINDS = ("deposit", "unlock_lead", "promote_listing", "membership")
PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"


class LedgerService:
    """Create, transition and query ledger entries.

    An entry is opened as ``pending`` and moves forward exactly once, to
    ``completed`` or ``failed``. The transition is a conditional update; a
    ``None`` result means another caller already moved the entry.
    """

    def __init__(self, storage: Storage) -> None:
        self.ledger = storage.ledger

    def open_entry(
        self,
        account_id: str,
        kind: str,
        amount: Decimal,
        target_id: str | None = None,
        external_transaction_id: str | None = None,
        description: str = "",
    ) -> dict[str, Any]:
        """Create a pending ledger entry row."""
        if kind not in ENTRY_KINDS:
            raise InvalidInputError(f"Unknown ledger entry kind: {kind}")
        payload = {
            "account_id": account_id,
            "amount": to_money(amount),
            "currency": CURRENCY,
            "kind": kind,
            "status": PENDING,
            "target_id": target_id,
            "external_transaction_id": external_transaction_id,
            "description": description,
        }
        return self.ledger.create(payload)

    def complete(
        self, filters: dict[str, Any], changes: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Move a pending entry to completed; None if it was not pending."""
        return self.ledger.transition(filters, COMPLETED, changes)

    def fail(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Move a pending entry to failed; None if it was not pending."""
        return self.ledger.transition(filters, FAILED)

    def attach_external_id(self, entry_id: str, external_id: str) -> dict[str, Any] | None:
        """Record the gateway session id on a still-pending entry."""
        return self.ledger.transition(
            {"id": entry_id}, PENDING, {"external_transaction_id": external_id}
        )

    def get_entry(self, entry_id: str) -> dict[str, Any] | None:
        return self.ledger.get(entry_id)

    def find_entry(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        return self.ledger.find_one(filters)

    def find_pending_deposits(
        self,
        account_id: str | None,
        id_prefix: str,
        limit: int,
        created_before: datetime | None = None,
    ) -> list[dict[str, Any]]:
        return self.ledger.find_pending_deposits(account_id, id_prefix, limit, created_before)

    def list_entries(
        self,
        account_id: str,
        limit: int = 50,
        offset: int = 0,
        kind: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return ledger entries with total count for pagination."""
        rows = self.ledger.list_for_account(account_id, limit=limit, offset=offset, kind=kind)
        total = self.ledger.count_for_account(account_id, kind=kind)
        return rows, total

    def summary(self, account_id: str) -> dict[str, Decimal]:
        """Return lifetime totals over completed entries."""
        completed = self.ledger.list_for_account(account_id, status=COMPLETED)
        total_deposited = sum(
            (to_money(row["amount"]) for row in completed if row["kind"] == "deposit"), ZERO
        )
        total_spent = sum(
            (-to_money(row["amount"]) for row in completed if to_money(row["amount"]) < 0),
            ZERO,
        )
        return {"total_deposited": total_deposited, "total_spent": total_spent}
