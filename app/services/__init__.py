"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "AccountService": "app.services.account_service",
    "BalanceService": "app.services.balance_service",
    "LeadService": "app.services.lead_service",
    "LedgerService": "app.services.ledger_service",
    "ListingService": "app.services.listing_service",
    "ModerationService": "app.services.moderation_service",
    "PaymentService": "app.services.payment_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
