"""Moderation schemas."""

from pydantic import BaseModel, Field


class ReviewRequest(BaseModel):
    """Admin decision on a lead or listing."""

    status: str = Field(..., pattern="^(approved|rejected)$")
    note: str = ""


class PendingSummary(BaseModel):
    listings_pending: int
    leads_pending: int
