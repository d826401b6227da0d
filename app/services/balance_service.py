"""Account balance operations."""

from __future__ import annotations

from decimal import Decimal

from app.storage.base import Storage
from app.utils.errors import InsufficientBalanceError, NotFoundError
from app.utils.money import parse_positive_amount, to_money


class BalanceService:
    """Guarded debits and credits on a landlord's EUR balance.

    Both operations are a single conditional update in the store, so
    concurrent debits against one account can never overdraw it.
    """

    def __init__(self, storage: Storage) -> None:
        self.accounts = storage.accounts

    def get_balance(self, account_id: str) -> Decimal:
        """Return the current balance for an account."""
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account")
        return to_money(account["balance"])

    def debit(self, account_id: str, amount: Decimal) -> Decimal:
        """Decrement the balance and return the new value.

        Raises:
            InsufficientBalanceError: when ``balance < amount`` at update time.
        """
        amount = parse_positive_amount(amount)
        account = self.accounts.debit(account_id, amount)
        if account is not None:
            return to_money(account["balance"])

        available = self.get_balance(account_id)
        raise InsufficientBalanceError(required=amount, available=available)

    def credit(self, account_id: str, amount: Decimal) -> Decimal:
        """Increment the balance and return the new value."""
        amount = parse_positive_amount(amount)
        account = self.accounts.credit(account_id, amount)
        if account is None:
            raise NotFoundError("Account")
        return to_money(account["balance"])

    def ensure_can_cover(self, account_id: str, amount: Decimal) -> Decimal:
        """Fail fast before any mutation when the balance is too low."""
        available = self.get_balance(account_id)
        if available < amount:
            raise InsufficientBalanceError(required=amount, available=available)
        return available
