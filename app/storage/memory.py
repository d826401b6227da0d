"""In-process storage backend for development and tests.

Every repository method runs inside one critical section of a shared lock,
which is this store's equivalent of a single conditional statement.
"""

from __future__ import annotations

import copy
import threading
import uuid
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from app.storage.base import (
    AccountRepository,
    LedgerRepository,
    LeadRepository,
    ListingRepository,
    Row,
    Storage,
)
from app.utils.money import to_money
from app.utils.time import now_utc, parse_timestamp


class MemoryStore:
    """Tables and the lock guarding them."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.accounts: dict[str, Row] = {}
        self.ledger_entries: dict[str, Row] = {}
        self.leads: dict[str, Row] = {}
        self.listings: dict[str, Row] = {}


def _new_id() -> str:
    return str(uuid.uuid4())


def _stamp(payload: Row) -> Row:
    row = copy.deepcopy(payload)
    row.setdefault("id", _new_id())
    row.setdefault("created_at", now_utc().isoformat())
    return row


def _matches(row: Row, filters: Row) -> bool:
    return all(row.get(key) == value for key, value in filters.items())


def _newest_first(rows: Iterable[Row]) -> list[Row]:
    return sorted(rows, key=lambda row: str(row.get("created_at", "")), reverse=True)


def _page(rows: list[Row], limit: int | None, offset: int = 0) -> list[Row]:
    end = offset + limit if limit else None
    return [copy.deepcopy(row) for row in rows[offset:end]]


class MemoryAccountRepository(AccountRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    def create(self, payload: Row) -> Row | None:
        with self.store.lock:
            if payload.get("id") in self.store.accounts:
                return None
            row = _stamp(payload)
            row["balance"] = to_money(row.get("balance", 0))
            self.store.accounts[row["id"]] = row
            return copy.deepcopy(row)

    def get(self, account_id: str) -> Row | None:
        with self.store.lock:
            row = self.store.accounts.get(account_id)
            return copy.deepcopy(row) if row else None

    def debit(self, account_id: str, amount: Decimal) -> Row | None:
        with self.store.lock:
            row = self.store.accounts.get(account_id)
            if row is None or row["balance"] < amount:
                return None
            row["balance"] = to_money(row["balance"] - amount)
            return copy.deepcopy(row)

    def credit(self, account_id: str, amount: Decimal) -> Row | None:
        with self.store.lock:
            row = self.store.accounts.get(account_id)
            if row is None:
                return None
            row["balance"] = to_money(row["balance"] + amount)
            return copy.deepcopy(row)


class MemoryLedgerRepository(LedgerRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    def create(self, payload: Row) -> Row:
        with self.store.lock:
            row = _stamp(payload)
            row["amount"] = to_money(row["amount"])
            row.setdefault("updated_at", row["created_at"])
            self.store.ledger_entries[row["id"]] = row
            return copy.deepcopy(row)

    def get(self, entry_id: str) -> Row | None:
        with self.store.lock:
            row = self.store.ledger_entries.get(entry_id)
            return copy.deepcopy(row) if row else None

    def find_one(self, filters: Row) -> Row | None:
        with self.store.lock:
            for row in _newest_first(self.store.ledger_entries.values()):
                if _matches(row, filters):
                    return copy.deepcopy(row)
            return None

    def _for_account(self, account_id: str, kind: str | None, status: str | None) -> list[Row]:
        filters: Row = {"account_id": account_id}
        if kind:
            filters["kind"] = kind
        if status:
            filters["status"] = status
        return _newest_first(
            row for row in self.store.ledger_entries.values() if _matches(row, filters)
        )

    def list_for_account(
        self,
        account_id: str,
        limit: int | None = None,
        offset: int = 0,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[Row]:
        with self.store.lock:
            return _page(self._for_account(account_id, kind, status), limit, offset)

    def count_for_account(self, account_id: str, kind: str | None = None) -> int:
        with self.store.lock:
            return len(self._for_account(account_id, kind, None))

    def find_pending_deposits(
        self,
        account_id: str | None,
        id_prefix: str,
        limit: int,
        created_before: datetime | None = None,
    ) -> list[Row]:
        with self.store.lock:
            rows = []
            for row in _newest_first(self.store.ledger_entries.values()):
                if row["kind"] != "deposit" or row["status"] != "pending":
                    continue
                if account_id is not None and row["account_id"] != account_id:
                    continue
                if not str(row.get("external_transaction_id") or "").startswith(id_prefix):
                    continue
                if created_before and parse_timestamp(row["created_at"]) >= created_before:
                    continue
                rows.append(row)
            return _page(rows, limit)

    def transition(self, filters: Row, to_status: str, changes: Row | None = None) -> Row | None:
        with self.store.lock:
            for row in self.store.ledger_entries.values():
                if row["status"] == "pending" and _matches(row, filters):
                    row.update(changes or {})
                    row["status"] = to_status
                    row["amount"] = to_money(row["amount"])
                    row["updated_at"] = now_utc().isoformat()
                    return copy.deepcopy(row)
            return None


class MemoryLeadRepository(LeadRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    def create(self, payload: Row) -> Row:
        with self.store.lock:
            row = _stamp(payload)
            row.setdefault("unlocked_by", [])
            self.store.leads[row["id"]] = row
            return copy.deepcopy(row)

    def get(self, lead_id: str) -> Row | None:
        with self.store.lock:
            row = self.store.leads.get(lead_id)
            return copy.deepcopy(row) if row else None

    def list(self, review_status: str | None = None, limit: int | None = None) -> list[Row]:
        with self.store.lock:
            rows = [
                row
                for row in self.store.leads.values()
                if review_status is None or row.get("review_status") == review_status
            ]
            return _page(_newest_first(rows), limit)

    def add_unlock(self, lead_id: str, account_id: str) -> bool:
        with self.store.lock:
            row = self.store.leads.get(lead_id)
            if row is None or account_id in row["unlocked_by"]:
                return False
            row["unlocked_by"].append(account_id)
            return True

    def update(self, lead_id: str, changes: Row) -> Row | None:
        with self.store.lock:
            row = self.store.leads.get(lead_id)
            if row is None:
                return None
            row.update(copy.deepcopy(changes))
            return copy.deepcopy(row)

    def count(self, filters: Row) -> int:
        with self.store.lock:
            return sum(1 for row in self.store.leads.values() if _matches(row, filters))


class MemoryListingRepository(ListingRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    def create(self, payload: Row) -> Row:
        with self.store.lock:
            row = _stamp(payload)
            row.setdefault("is_active", True)
            row.setdefault("is_promoted", False)
            row.setdefault("promoted_until", None)
            self.store.listings[row["id"]] = row
            return copy.deepcopy(row)

    def get(self, listing_id: str) -> Row | None:
        with self.store.lock:
            row = self.store.listings.get(listing_id)
            return copy.deepcopy(row) if row else None

    def list_public(self) -> list[Row]:
        with self.store.lock:
            rows = _newest_first(
                row
                for row in self.store.listings.values()
                if row.get("is_active") and row.get("review_status") == "approved"
            )
            rows.sort(key=lambda row: bool(row.get("is_promoted")), reverse=True)
            return _page(rows, None)

    def list(self, filters: Row, limit: int | None = None) -> list[Row]:
        with self.store.lock:
            rows = [row for row in self.store.listings.values() if _matches(row, filters)]
            return _page(_newest_first(rows), limit)

    def update(self, listing_id: str, changes: Row, owner_id: str | None = None) -> Row | None:
        with self.store.lock:
            row = self.store.listings.get(listing_id)
            if row is None or (owner_id is not None and row.get("owner_id") != owner_id):
                return None
            row.update(copy.deepcopy(changes))
            return copy.deepcopy(row)

    def delete(self, listing_id: str, owner_id: str) -> Row | None:
        with self.store.lock:
            row = self.store.listings.get(listing_id)
            if row is None or row.get("owner_id") != owner_id:
                return None
            return self.store.listings.pop(listing_id)

    def set_promotion(self, listing_id: str, until: datetime) -> Row | None:
        return self.update(
            listing_id, {"is_promoted": True, "promoted_until": until.isoformat()}
        )

    def expire_promotions(self, now: datetime) -> int:
        with self.store.lock:
            expired = 0
            for row in self.store.listings.values():
                until = parse_timestamp(row.get("promoted_until"))
                if row.get("is_promoted") and until is not None and until <= now:
                    row["is_promoted"] = False
                    row["promoted_until"] = None
                    expired += 1
            return expired

    def count(self, filters: Row) -> int:
        with self.store.lock:
            return sum(1 for row in self.store.listings.values() if _matches(row, filters))


def build_memory_storage(store: MemoryStore | None = None) -> Storage:
    """Return a Storage bundle over a fresh (or given) in-memory store."""
    backing = store or MemoryStore()
    return Storage(
        name="memory",
        accounts=MemoryAccountRepository(backing),
        ledger=MemoryLedgerRepository(backing),
        leads=MemoryLeadRepository(backing),
        listings=MemoryListingRepository(backing),
    )
