"""Tenant lead schemas."""

from datetime import date

from pydantic import BaseModel, Field


class LeadCreate(BaseModel):
    """Request body for a tenant submitting a lead."""

    listing_id: str | None = None
    requirement: str = Field(..., min_length=1, max_length=2000)
    budget: str | None = Field(default=None, max_length=100)
    move_in_date: date | None = None
    wechat_id: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=254)
