"""Deposit flow: checkout creation, confirmation, webhooks and reconciliation.

Every credit for a gateway deposit goes through ``_complete_deposit``, which
credits the balance only when its conditional ``pending -> completed``
transition returned a row. Confirm, webhook and reconciliation can therefore
race on the same session and the balance still moves exactly once.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from app.config import settings
from app.gateways.base import CheckoutSession, PaymentGateway
from app.services.balance_service import BalanceService
from app.services.ledger_service import LedgerService
from app.storage.base import Storage
from app.utils.errors import (
    ForbiddenError,
    GatewayUnavailableError,
    InvalidInputError,
    NotFoundError,
    PaymentIncompleteError,
)
from app.utils.money import (
    CURRENCY,
    ZERO,
    from_minor_units,
    money_str,
    parse_positive_amount,
    to_minor_units,
    to_money,
)
from app.utils.time import minutes_ago

logger = logging.getLogger(__name__)

PAID_EVENTS = frozenset({"checkout.session.completed", "checkout.session.async_payment_succeeded"})
UNPAID_EVENTS = frozenset({"checkout.session.expired", "checkout.session.async_payment_failed"})
PAYMENT_HISTORY_LIMIT = 200


def _resolve_amount(session: CheckoutSession, fallback: Any = None) -> Decimal | None:
    """Pick the credited amount: metadata first, then the gateway total.

    The client's own figure is never trusted; ``fallback`` is the amount the
    ledger entry was opened with.
    """
    candidates = [session.metadata.get("amount")]
    if session.amount_total:
        candidates.append(from_minor_units(session.amount_total))
    candidates.append(fallback)
    for candidate in candidates:
        if candidate in (None, ""):
            continue
        try:
            amount = to_money(candidate)
        except InvalidInputError:
            continue
        if amount > ZERO:
            return amount
    return None


def _entry_filters(session: CheckoutSession) -> dict[str, Any]:
    entry_id = session.metadata.get("ledger_entry_id")
    if entry_id:
        return {"id": entry_id, "kind": "deposit"}
    return {"external_transaction_id": session.id, "kind": "deposit"}


def clamp_limit(limit: Any) -> int:
    """Clamp a reconciliation batch size into [1, reconcile_max_limit]."""
    try:
        value = int(limit) if limit is not None else settings.reconcile_default_limit
    except (TypeError, ValueError):
        value = settings.reconcile_default_limit
    if value <= 0:
        value = settings.reconcile_default_limit
    return max(1, min(value, settings.reconcile_max_limit))


class PaymentService:
    """Top-ups through the payment gateway and their ledger bookkeeping."""

    def __init__(self, storage: Storage, gateway: PaymentGateway | None = None) -> None:
        self.balance = BalanceService(storage)
        self.ledger = LedgerService(storage)
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            raise GatewayUnavailableError("Stripe is not configured: set STRIPE_SECRET_KEY")
        return self._gateway

    # ---- checkout ---------------------------------------------------------

    def create_checkout(self, account_id: str, email: str | None, amount: Any) -> dict[str, Any]:
        """Open a pending deposit and a hosted checkout for it."""
        amount = parse_positive_amount(amount)
        if amount > settings.max_deposit_amount:
            raise InvalidInputError(
                f"Amount too large: maximum is {money_str(settings.max_deposit_amount)}"
            )
        gateway = self.gateway

        entry = self.ledger.open_entry(
            account_id, "deposit", amount, description="Card top-up"
        )
        base = settings.web_base_url.rstrip("/")
        try:
            session = gateway.create_checkout_session(
                amount_cents=to_minor_units(amount),
                currency=CURRENCY,
                success_url=f"{base}/wallet?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/wallet?cancelled=1",
                correlation_id=str(account_id),
                metadata={
                    "ledger_entry_id": str(entry["id"]),
                    "account_id": str(account_id),
                    "amount": money_str(amount),
                },
                customer_email=email or None,
                idempotency_key=f"deposit:{entry['id']}",
            )
        except Exception:
            self.ledger.fail({"id": entry["id"]})
            raise

        self.ledger.attach_external_id(entry["id"], session.id)
        logger.info(
            "Checkout created: account=%s entry=%s session=%s amount=%s",
            account_id,
            entry["id"],
            session.id,
            money_str(amount),
        )
        return {"url": session.url, "session_id": session.id, "entry_id": entry["id"]}

    # ---- completion -------------------------------------------------------

    def _complete_deposit(
        self, session: CheckoutSession, filters: dict[str, Any], source: str
    ) -> dict[str, Any] | None:
        """Transition the matching pending deposit and credit it.

        Returns the completed entry, or None when another path already
        handled it (or no local record exists).
        """
        current = self.ledger.find_entry({**filters, "status": "pending"})
        if current is None:
            logger.info("Deposit already handled (%s): session=%s", source, session.id)
            return None

        amount = _resolve_amount(session, current.get("amount"))
        if amount is None:
            logger.warning(
                "Paid session without usable amount (%s): session=%s", source, session.id
            )
            return None

        completed = self.ledger.complete(
            filters,
            {
                "amount": amount,
                "currency": (session.currency or CURRENCY).upper(),
                "external_transaction_id": session.id,
            },
        )
        if completed is None:
            logger.info("Deposit already handled (%s): session=%s", source, session.id)
            return None

        try:
            self.balance.credit(completed["account_id"], amount)
        except Exception:
            logger.exception(
                "Deposit completed without credit: account=%s entry=%s session=%s amount=%s",
                completed["account_id"],
                completed["id"],
                session.id,
                money_str(amount),
            )
            raise
        logger.info(
            "Deposit credited (%s): account=%s entry=%s session=%s amount=%s",
            source,
            completed["account_id"],
            completed["id"],
            session.id,
            money_str(amount),
        )
        return completed

    def confirm(self, account_id: str, session_id: str) -> dict[str, Any]:
        """Settle a checkout the user just returned from.

        An unreachable gateway is not a failure here: the deposit is
        reported as still pending so the client can poll again, and the
        webhook or the reconciliation sweep settles it later.
        """
        session_id = (session_id or "").strip()
        if not session_id:
            raise InvalidInputError("Missing session_id")

        gateway = self.gateway
        try:
            session = gateway.retrieve_session(session_id)
        except GatewayUnavailableError as exc:
            logger.warning("Confirm left pending: session=%s reason=%s", session_id, exc.message)
            existing = self.ledger.find_entry(
                {
                    "external_transaction_id": session_id,
                    "kind": "deposit",
                    "account_id": account_id,
                }
            )
            return {
                "balance": self.balance.get_balance(account_id),
                "entry_id": existing["id"] if existing else None,
                "already_confirmed": False,
                "pending": True,
            }

        if str(session.client_reference_id or "") != str(account_id):
            raise ForbiddenError("Checkout session belongs to another account")
        if not session.is_paid:
            raise PaymentIncompleteError()

        completed = self._complete_deposit(session, _entry_filters(session), "confirm")
        if completed is None:
            existing = self.ledger.find_entry(_entry_filters(session))
            return {
                "balance": self.balance.get_balance(account_id),
                "entry_id": existing["id"] if existing else None,
                "already_confirmed": True,
                "pending": False,
            }
        return {
            "balance": self.balance.get_balance(account_id),
            "entry_id": completed["id"],
            "already_confirmed": False,
            "pending": False,
        }

    def handle_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Apply a verified gateway notification.

        Raises SignatureInvalidError before touching any state when the
        payload is not authentic.
        """
        event = self.gateway.construct_webhook_event(payload, signature)
        session = event.session

        if session is None or event.type not in PAID_EVENTS | UNPAID_EVENTS:
            logger.debug("Ignoring webhook event %s (%s)", event.id, event.type)
            return {"event": event.type, "outcome": "ignored"}

        if event.type in PAID_EVENTS:
            if not session.is_paid:
                return {"event": event.type, "outcome": "not_paid"}
            completed = self._complete_deposit(session, _entry_filters(session), "webhook")
            return {"event": event.type, "outcome": "credited" if completed else "duplicate"}

        failed = self.ledger.fail(_entry_filters(session))
        if failed is not None:
            logger.info(
                "Deposit failed (webhook %s): entry=%s session=%s",
                event.type,
                failed["id"],
                session.id,
            )
        return {"event": event.type, "outcome": "failed" if failed else "duplicate"}

    # ---- reconciliation ---------------------------------------------------

    def _reconcile_entries(
        self, entries: list[dict[str, Any]], expected_account: str | None
    ) -> dict[str, int]:
        stats = {"scanned": len(entries), "credited": 0, "failed": 0, "pending": 0}
        for entry in entries:
            session_id = str(entry.get("external_transaction_id") or "")
            owner = expected_account or str(entry["account_id"])
            try:
                session = self.gateway.retrieve_session(session_id)
                if str(session.client_reference_id or "") != owner:
                    logger.warning(
                        "Reconcile skipped foreign session: account=%s session=%s",
                        owner,
                        session_id,
                    )
                    stats["pending"] += 1
                    continue

                if session.is_paid:
                    if self._complete_deposit(session, {"id": entry["id"]}, "reconcile"):
                        stats["credited"] += 1
                    continue

                if session.is_closed_unpaid:
                    if self.ledger.fail({"id": entry["id"]}) is not None:
                        logger.info(
                            "Deposit failed (reconcile): entry=%s session=%s status=%s",
                            entry["id"],
                            session_id,
                            session.status,
                        )
                        stats["failed"] += 1
                    continue

                stats["pending"] += 1
            except Exception as exc:
                logger.warning(
                    "Reconcile error: account=%s entry=%s session=%s: %s",
                    owner,
                    entry["id"],
                    session_id,
                    exc,
                )
                stats["pending"] += 1
        return stats

    def reconcile(self, account_id: str, limit: Any = None) -> dict[str, Any]:
        """Re-check this account's pending gateway deposits."""
        gateway = self.gateway
        entries = self.ledger.find_pending_deposits(
            account_id, gateway.session_id_prefix, clamp_limit(limit)
        )
        logger.info("Reconcile: account=%s pending=%d", account_id, len(entries))
        stats = self._reconcile_entries(entries, str(account_id))
        return {"balance": self.balance.get_balance(account_id), "stats": stats}

    def reconcile_stale(self, limit: int | None = None) -> dict[str, int]:
        """Sweep every account's deposits that stayed pending too long."""
        gateway = self.gateway
        entries = self.ledger.find_pending_deposits(
            None,
            gateway.session_id_prefix,
            clamp_limit(limit or settings.reconcile_max_limit),
            created_before=minutes_ago(settings.reconcile_min_age_minutes),
        )
        return self._reconcile_entries(entries, None)

    # ---- history / admin --------------------------------------------------

    def list_payments(self, account_id: str) -> list[dict[str, Any]]:
        rows, _ = self.ledger.list_entries(account_id, limit=PAYMENT_HISTORY_LIMIT)
        return rows

    def manual_top_up(self, admin_id: str, account_id: str, amount: Any) -> dict[str, Any]:
        """Credit an account by hand, recorded as a completed deposit."""
        amount = parse_positive_amount(amount)
        if self.balance.accounts.get(account_id) is None:
            raise NotFoundError("Account")

        entry = self.ledger.open_entry(
            account_id, "deposit", amount, description=f"Manual top-up by {admin_id}"
        )
        completed = self.ledger.complete({"id": entry["id"]})
        new_balance = self.balance.credit(account_id, amount)
        logger.info(
            "Manual top-up: admin=%s account=%s entry=%s amount=%s",
            admin_id,
            account_id,
            entry["id"],
            money_str(amount),
        )
        return {"balance": new_balance, "entry": completed or entry}
