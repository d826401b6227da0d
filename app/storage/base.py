"""Repository interfaces shared by every storage backend.

Each method that changes money or entitlement state is a single guarded
mutation in the backing store. Callers never read a row, change it in
Python and write it back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

Row = dict[str, Any]


class AccountRepository(ABC):
    """Landlord accounts and their EUR balance."""

    @abstractmethod
    def create(self, payload: Row) -> Row | None:
        """Insert an account; return None when the id already exists."""

    @abstractmethod
    def get(self, account_id: str) -> Row | None: ...

    @abstractmethod
    def debit(self, account_id: str, amount: Decimal) -> Row | None:
        """Decrement balance only if ``balance >= amount``; None otherwise."""

    @abstractmethod
    def credit(self, account_id: str, amount: Decimal) -> Row | None:
        """Increment balance; None when the account does not exist."""


class LedgerRepository(ABC):
    """Balance-affecting audit records."""

    @abstractmethod
    def create(self, payload: Row) -> Row: ...

    @abstractmethod
    def get(self, entry_id: str) -> Row | None: ...

    @abstractmethod
    def find_one(self, filters: Row) -> Row | None: ...

    @abstractmethod
    def list_for_account(
        self,
        account_id: str,
        limit: int | None = None,
        offset: int = 0,
        kind: str | None = None,
        status: str | None = None,
    ) -> list[Row]:
        """Return entries newest first."""

    @abstractmethod
    def count_for_account(self, account_id: str, kind: str | None = None) -> int: ...

    @abstractmethod
    def find_pending_deposits(
        self,
        account_id: str | None,
        id_prefix: str,
        limit: int,
        created_before: datetime | None = None,
    ) -> list[Row]:
        """Return pending deposits whose external id starts with ``id_prefix``."""

    @abstractmethod
    def transition(self, filters: Row, to_status: str, changes: Row | None = None) -> Row | None:
        """Move one pending entry matching ``filters`` to ``to_status``.

        Returns the updated row, or None when no entry matched while still
        pending. A None result means another path already handled it.
        """


class LeadRepository(ABC):
    """Tenant contact leads."""

    @abstractmethod
    def create(self, payload: Row) -> Row: ...

    @abstractmethod
    def get(self, lead_id: str) -> Row | None: ...

    @abstractmethod
    def list(self, review_status: str | None = None, limit: int | None = None) -> list[Row]:
        """Return leads newest first."""

    @abstractmethod
    def add_unlock(self, lead_id: str, account_id: str) -> bool:
        """Append ``account_id`` to ``unlocked_by``; False if already present."""

    @abstractmethod
    def update(self, lead_id: str, changes: Row) -> Row | None: ...

    @abstractmethod
    def count(self, filters: Row) -> int: ...


class ListingRepository(ABC):
    """Rental listings owned by landlords."""

    @abstractmethod
    def create(self, payload: Row) -> Row: ...

    @abstractmethod
    def get(self, listing_id: str) -> Row | None: ...

    @abstractmethod
    def list_public(self) -> list[Row]:
        """Active approved listings, promoted first, then newest first."""

    @abstractmethod
    def list(self, filters: Row, limit: int | None = None) -> list[Row]:
        """Listings matching equality filters, newest first."""

    @abstractmethod
    def update(self, listing_id: str, changes: Row, owner_id: str | None = None) -> Row | None: ...

    @abstractmethod
    def delete(self, listing_id: str, owner_id: str) -> Row | None: ...

    @abstractmethod
    def set_promotion(self, listing_id: str, until: datetime) -> Row | None: ...

    @abstractmethod
    def expire_promotions(self, now: datetime) -> int:
        """Clear promotion on every listing with ``promoted_until <= now``."""

    @abstractmethod
    def count(self, filters: Row) -> int: ...


class Storage:
    """Bundle of repositories backed by one store."""

    def __init__(
        self,
        name: str,
        accounts: AccountRepository,
        ledger: LedgerRepository,
        leads: LeadRepository,
        listings: ListingRepository,
    ) -> None:
        self.name = name
        self.accounts = accounts
        self.ledger = ledger
        self.leads = leads
        self.listings = listings
