"""Landlord account provisioning and lookup."""

from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.services.balance_service import BalanceService
from app.services.ledger_service import LedgerService
from app.storage.base import Storage
from app.utils.errors import ForbiddenError, NotFoundError
from app.utils.money import ZERO, money_str

logger = logging.getLogger(__name__)


class AccountService:
    """Create accounts on first sight and expose balance summaries."""

    def __init__(self, storage: Storage) -> None:
        self.accounts = storage.accounts
        self.balance = BalanceService(storage)
        self.ledger = LedgerService(storage)

    def get_account(self, account_id: str) -> dict[str, Any]:
        """Return one account row."""
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account")
        return account

    def ensure_account(self, account_id: str, email: str = "") -> dict[str, Any]:
        """Return the account, creating it (and its sign-up bonus) if absent."""
        existing = self.accounts.get(account_id)
        if existing is not None:
            return existing

        created = self.accounts.create(
            {"id": account_id, "email": email, "role": "landlord", "balance": ZERO}
        )
        if created is None:
            # Lost the insert race to a concurrent first request.
            return self.get_account(account_id)

        if settings.signup_bonus > ZERO:
            self._grant_signup_bonus(account_id)
            created = self.get_account(account_id)

        logger.info("Provisioned account %s", account_id)
        return created

    def _grant_signup_bonus(self, account_id: str) -> None:
        bonus = settings.signup_bonus
        entry = self.ledger.open_entry(
            account_id, "deposit", bonus, description="Sign-up bonus"
        )
        if self.ledger.complete({"id": entry["id"]}):
            self.balance.credit(account_id, bonus)
            logger.info("Granted sign-up bonus %s to %s", money_str(bonus), account_id)

    def overview(self, account_id: str) -> dict[str, Any]:
        """Return the account with its ledger totals."""
        account = self.get_account(account_id)
        return {"account": account, "summary": self.ledger.summary(account_id)}

    @staticmethod
    def ensure_admin(account: dict[str, Any]) -> None:
        """Raise ForbiddenError unless the account has the admin role."""
        if account.get("role") != "admin":
            raise ForbiddenError("Admin role required")
