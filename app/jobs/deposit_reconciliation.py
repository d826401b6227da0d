"""Stale pending deposit reconciliation job."""

from __future__ import annotations

import asyncio
import logging

from app.gateways import get_payment_gateway, is_gateway_configured
from app.services.payment_service import PaymentService
from app.storage import get_storage

logger = logging.getLogger(__name__)


async def deposit_reconciliation() -> None:
    """Settle deposits whose webhook never arrived.

    Gateway calls block, so the sweep runs in a worker thread.
    """
    if not is_gateway_configured():
        logger.info("deposit_reconciliation skipped: Stripe is not configured")
        return

    service = PaymentService(get_storage(), get_payment_gateway())
    stats = await asyncio.to_thread(service.reconcile_stale)
    logger.info(
        "deposit_reconciliation completed: scanned=%s credited=%s failed=%s pending=%s",
        stats["scanned"],
        stats["credited"],
        stats["failed"],
        stats["pending"],
    )
