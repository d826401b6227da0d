"""Listing promotion expiry job."""

from __future__ import annotations

import logging

from app.services.listing_service import ListingService
from app.storage import get_storage

logger = logging.getLogger(__name__)


async def promotion_expiry() -> None:
    """Clear every promotion whose end time has passed."""
    expired = ListingService(get_storage()).expire_promotions()
    logger.info("promotion_expiry completed with %s expired promotions", expired)
