"""Supabase (PostgREST) storage backend.

Guarded mutations map to one SQL statement each: conditional ``UPDATE``
filters for ledger transitions and promotion expiry, and the SQL functions
in ``supabase/schema.sql`` for balance changes and unlock appends.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any

from postgrest import APIError

from app.config import settings
from app.storage.base import (
    AccountRepository,
    LedgerRepository,
    LeadRepository,
    ListingRepository,
    Row,
    Storage,
)
from app.utils.errors import ConflictError, InvalidInputError
from app.utils.money import money_str, to_money
from supabase import Client

logger = logging.getLogger(__name__)

MONEY_FIELDS = ("balance", "amount")


def _to_json(payload: Row) -> Row:
    """Make a payload JSON-safe for PostgREST."""
    encoded: Row = {}
    for key, value in payload.items():
        if isinstance(value, Decimal):
            encoded[key] = money_str(value)
        elif isinstance(value, datetime):
            encoded[key] = value.isoformat()
        else:
            encoded[key] = value
    return encoded


def _from_row(row: Row) -> Row:
    """Normalize numeric money columns into Decimals."""
    normalized = dict(row)
    for key in MONEY_FIELDS:
        if normalized.get(key) is not None:
            normalized[key] = to_money(normalized[key])
    return normalized


def _from_rows(rows: list[Row] | None) -> list[Row]:
    return [_from_row(row) for row in rows or []]


class SupabaseService:
    """Thin helper wrapper around a Supabase client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def execute(self, query, default: Any = None) -> Any:
        """Execute a Supabase query and normalize API errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
            elapsed_ms = (time.perf_counter() - started) * 1000
            threshold_ms = settings.slow_query_log_threshold_ms
            if threshold_ms > 0 and elapsed_ms >= threshold_ms:
                logger.warning("Slow Supabase query %.1fms", elapsed_ms)
            data = response.data
            return default if data is None and default is not None else data
        except APIError as exc:
            message = str(getattr(exc, "message", "Database request failed"))
            if getattr(exc, "code", None) == "23505":
                raise ConflictError(message) from exc
            raise InvalidInputError(message) from exc

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select many rows from a table with optional filters and paging."""
        query = self.client.table(table).select(columns)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return _from_rows(self.execute(query, default=[]))

    def count(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows in a table with optional equality filters."""
        query = self.client.table(table).select("*", count="exact", head=True)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        try:
            response = query.execute()
            return response.count or 0
        except APIError as exc:
            message = getattr(exc, "message", "Database request failed")
            raise InvalidInputError(str(message)) from exc

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the created object."""
        rows = self.execute(self.client.table(table).insert(_to_json(payload)), default=[])
        if not rows:
            raise InvalidInputError(f"Failed to insert into {table}")
        return _from_row(rows[0])

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows by equality filters and return the updated rows."""
        query = self.client.table(table).update(_to_json(payload))
        for key, value in filters.items():
            query = query.eq(key, value)
        return _from_rows(self.execute(query, default=[]))

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete rows by equality filters and return removed rows."""
        query = self.client.table(table).delete()
        for key, value in filters.items():
            query = query.eq(key, value)
        return _from_rows(self.execute(query, default=[]))

    def rpc_rows(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Call a set-returning SQL function and return its rows."""
        return _from_rows(self.execute(self.client.rpc(function, _to_json(params)), default=[]))


class SupabaseAccountRepository(AccountRepository):
    def __init__(self, db: SupabaseService) -> None:
        self.db = db

    def create(self, payload: Row) -> Row | None:
        try:
            return self.db.insert_one("accounts", payload)
        except ConflictError:
            return None

    def get(self, account_id: str) -> Row | None:
        rows = self.db.select_many("accounts", filters={"id": account_id}, limit=1)
        return rows[0] if rows else None

    def debit(self, account_id: str, amount: Decimal) -> Row | None:
        rows = self.db.rpc_rows(
            "debit_account_balance", {"p_account_id": account_id, "p_amount": amount}
        )
        return rows[0] if rows else None

    def credit(self, account_id: str, amount: Decimal) -> Row | None:
        rows = self.db.rpc_rows(
            "credit_account_balance", {"p_account_id": account_id, "p_amount": amount}
        )
        return rows[0] if rows else None


class SupabaseLedgerRepository(LedgerRepository):
    def __init__(self, db: SupabaseService) -> None:
        self.db = db

    def create(self, payload: Row) -> Row:
        return self.db.insert_one("ledger_entries", payload)

    def get(self, entry_id: str) -> Row | None:
        return self.find_one({"id": entry_id})

    def find_one(self, filters: Row) -> Row | None:
        rows = self.db.select_many(
            "ledger_entries",
            filters=filters,
            order_by="created_at",
            descending=True,
            limit=1,
        )
        return rows[0] if rows else None

    def list_for_account(
        self,
        account_id: str,
        limit: int | None = None,
        offset: int = 0,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[Row]:
        filters: Row = {"account_id": account_id}
        if kind:
            filters["kind"] = kind
        if status:
            filters["status"] = status
        return self.db.select_many(
            "ledger_entries",
            filters=filters,
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )

    def count_for_account(self, account_id: str, kind: str | None = None) -> int:
        filters: Row = {"account_id": account_id}
        if kind:
            filters["kind"] = kind
        return self.db.count("ledger_entries", filters)

    def find_pending_deposits(
        self,
        account_id: str | None,
        id_prefix: str,
        limit: int,
        created_before: datetime | None = None,
    ) -> list[Row]:
        query = (
            self.db.client.table("ledger_entries")
            .select("*")
            .eq("kind", "deposit")
            .eq("status", "pending")
            .like("external_transaction_id", f"{id_prefix}%")
        )
        if account_id is not None:
            query = query.eq("account_id", account_id)
        if created_before is not None:
            query = query.lt("created_at", created_before.isoformat())
        query = query.order("created_at", desc=True).limit(limit)
        return _from_rows(self.db.execute(query, default=[]))

    def transition(self, filters: Row, to_status: str, changes: Row | None = None) -> Row | None:
        # updated_at is maintained by a trigger
        payload = {**(changes or {}), "status": to_status}
        rows = self.db.update("ledger_entries", {**filters, "status": "pending"}, payload)
        return rows[0] if rows else None


class SupabaseLeadRepository(LeadRepository):
    def __init__(self, db: SupabaseService) -> None:
        self.db = db

    def create(self, payload: Row) -> Row:
        return self.db.insert_one("leads", payload)

    def get(self, lead_id: str) -> Row | None:
        rows = self.db.select_many("leads", filters={"id": lead_id}, limit=1)
        return rows[0] if rows else None

    def list(self, review_status: str | None = None, limit: int | None = None) -> list[Row]:
        filters = {"review_status": review_status} if review_status else None
        return self.db.select_many(
            "leads", filters=filters, order_by="created_at", descending=True, limit=limit
        )

    def add_unlock(self, lead_id: str, account_id: str) -> bool:
        appended = self.db.execute(
            self.db.client.rpc(
                "append_lead_unlock", {"p_lead_id": lead_id, "p_account_id": account_id}
            )
        )
        return bool(appended)

    def update(self, lead_id: str, changes: Row) -> Row | None:
        rows = self.db.update("leads", {"id": lead_id}, changes)
        return rows[0] if rows else None

    def count(self, filters: Row) -> int:
        return self.db.count("leads", filters)


class SupabaseListingRepository(ListingRepository):
    def __init__(self, db: SupabaseService) -> None:
        self.db = db

    def create(self, payload: Row) -> Row:
        return self.db.insert_one("listings", payload)

    def get(self, listing_id: str) -> Row | None:
        rows = self.db.select_many("listings", filters={"id": listing_id}, limit=1)
        return rows[0] if rows else None

    def list_public(self) -> list[Row]:
        query = (
            self.db.client.table("listings")
            .select("*")
            .eq("is_active", True)
            .eq("review_status", "approved")
            .order("is_promoted", desc=True)
            .order("created_at", desc=True)
        )
        return _from_rows(self.db.execute(query, default=[]))

    def list(self, filters: Row, limit: int | None = None) -> list[Row]:
        return self.db.select_many(
            "listings", filters=filters, order_by="created_at", descending=True, limit=limit
        )

    def update(self, listing_id: str, changes: Row, owner_id: str | None = None) -> Row | None:
        filters: Row = {"id": listing_id}
        if owner_id is not None:
            filters["owner_id"] = owner_id
        rows = self.db.update("listings", filters, changes)
        return rows[0] if rows else None

    def delete(self, listing_id: str, owner_id: str) -> Row | None:
        rows = self.db.delete("listings", {"id": listing_id, "owner_id": owner_id})
        return rows[0] if rows else None

    def set_promotion(self, listing_id: str, until: datetime) -> Row | None:
        return self.update(listing_id, {"is_promoted": True, "promoted_until": until})

    def expire_promotions(self, now: datetime) -> int:
        query = (
            self.db.client.table("listings")
            .update({"is_promoted": False, "promoted_until": None})
            .eq("is_promoted", True)
            .lte("promoted_until", now.isoformat())
        )
        return len(self.db.execute(query, default=[]))

    def count(self, filters: Row) -> int:
        return self.db.count("listings", filters)


def build_supabase_storage(client: Client) -> Storage:
    """Return a Storage bundle over the service-role Supabase client."""
    db = SupabaseService(client)
    return Storage(
        name="supabase",
        accounts=SupabaseAccountRepository(db),
        ledger=SupabaseLedgerRepository(db),
        leads=SupabaseLeadRepository(db),
        listings=SupabaseListingRepository(db),
    )
