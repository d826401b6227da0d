"""Rental listing schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field


class ListingCreate(BaseModel):
    """Request body for creating a listing."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    price: Decimal = Field(..., gt=0, decimal_places=2)
    location: str = Field(..., min_length=1, max_length=200)
    address: str | None = None
    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ListingUpdate(BaseModel):
    """Owner edits; omitted fields stay unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    price: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    address: str | None = None
    images: list[str] | None = None
    tags: list[str] | None = None
    is_active: bool | None = None


class PromoteRequest(BaseModel):
    """Request body for promoting a listing.

    Bounds are enforced by the promotion service so that a bad value is
    rejected before any read or write.
    """

    days: int | None = None
    price: Decimal | None = None
