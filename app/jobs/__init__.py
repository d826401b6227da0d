"""Background job modules for periodic marketplace tasks."""

from app.jobs.deposit_reconciliation import deposit_reconciliation
from app.jobs.promotion_expiry import promotion_expiry

__all__ = [
    "deposit_reconciliation",
    "promotion_expiry",
]
