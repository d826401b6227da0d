"""Tenant leads: submission, redacted browsing and paid unlocks."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from app.config import settings
from app.services.balance_service import BalanceService
from app.services.ledger_service import LedgerService
from app.storage.base import Storage
from app.utils.errors import (
    AlreadyUnlockedError,
    AppError,
    NotEligibleError,
    NotFoundError,
)
from app.utils.money import money_str

logger = logging.getLogger(__name__)

REDACTED = "***UNLOCK TO VIEW***"
CONTACT_FIELDS = ("wechat_id", "phone", "email")
LEAD_FIELDS = ("listing_id", "requirement", "budget", "move_in_date", "wechat_id", "phone", "email")


def redact_lead(lead: dict[str, Any], viewer_id: str) -> dict[str, Any]:
    """Return the lead as ``viewer_id`` may see it.

    Contact fields that hold a value are masked unless the viewer unlocked
    the lead. The list of unlocking accounts is never exposed.
    """
    payload = dict(lead)
    unlocked_by = payload.pop("unlocked_by", None) or []
    is_unlocked = str(viewer_id) in {str(value) for value in unlocked_by}
    if not is_unlocked:
        for field in CONTACT_FIELDS:
            if payload.get(field):
                payload[field] = REDACTED
    payload["is_unlocked"] = is_unlocked
    return payload


class LeadService:
    """Lead lifecycle from tenant submission to landlord unlock."""

    def __init__(self, storage: Storage) -> None:
        self.leads = storage.leads
        self.balance = BalanceService(storage)
        self.ledger = LedgerService(storage)

    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Store a tenant lead; it waits for moderation before it can be sold."""
        row = {key: payload.get(key) for key in LEAD_FIELDS}
        if row.get("move_in_date") is not None:
            row["move_in_date"] = str(row["move_in_date"])
        row.update(
            {
                "unlocked_by": [],
                "status": "new",
                "review_status": "pending",
                "review_note": "",
            }
        )
        return self.leads.create(row)

    def get_lead(self, lead_id: str) -> dict[str, Any]:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise NotFoundError("Lead")
        return lead

    def list_for_viewer(self, viewer_id: str) -> list[dict[str, Any]]:
        """Return all leads newest first, redacted for ``viewer_id``."""
        return [redact_lead(lead, viewer_id) for lead in self.leads.list()]

    def unlock(self, account_id: str, lead_id: str) -> tuple[dict[str, Any], Decimal]:
        """Charge ``account_id`` to reveal a lead's contact details.

        Checks run in order and the first failure wins: lead exists, lead is
        approved, not already unlocked, balance covers the cost. Nothing is
        mutated when a check fails.

        The pending ledger entry opened before the debit is the trace for a
        partial failure: if the grant step errors after the debit, the entry
        stays pending with the account, lead and amount needed to repair it.
        """
        lead = self.get_lead(lead_id)
        if lead.get("review_status") != "approved":
            raise NotEligibleError("Lead pending review, cannot unlock yet")
        if str(account_id) in {str(value) for value in lead.get("unlocked_by") or []}:
            raise AlreadyUnlockedError()

        cost = settings.unlock_cost
        self.balance.ensure_can_cover(account_id, cost)

        entry = self.ledger.open_entry(
            account_id,
            "unlock_lead",
            -cost,
            target_id=lead_id,
            description="Unlocked lead contact details",
        )
        try:
            new_balance = self.balance.debit(account_id, cost)
        except AppError:
            self.ledger.fail({"id": entry["id"]})
            raise

        try:
            granted = self.leads.add_unlock(lead_id, account_id)
        except Exception:
            logger.exception(
                "Unlock grant incomplete: account=%s lead=%s entry=%s debited=%s",
                account_id,
                lead_id,
                entry["id"],
                money_str(cost),
            )
            raise

        if not granted:
            # A concurrent request unlocked it first; give the money back.
            self.balance.credit(account_id, cost)
            self.ledger.fail({"id": entry["id"]})
            if self.leads.get(lead_id) is None:
                raise NotFoundError("Lead")
            raise AlreadyUnlockedError()

        self.ledger.complete({"id": entry["id"]})
        logger.info(
            "Lead unlocked: account=%s lead=%s entry=%s cost=%s",
            account_id,
            lead_id,
            entry["id"],
            money_str(cost),
        )
        return redact_lead(self.get_lead(lead_id), account_id), new_balance


__all__ = ["CONTACT_FIELDS", "REDACTED", "LeadService", "redact_lead"]
