"""Deposit and payment schemas."""

from decimal import Decimal

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Request body for starting a card top-up."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)


class CheckoutResponse(BaseModel):
    """Hosted checkout to redirect the landlord to."""

    url: str | None = None
    session_id: str
    entry_id: str


class ReconcileRequest(BaseModel):
    """Request body for syncing pending deposits."""

    limit: int | None = None


class ManualTopUpRequest(BaseModel):
    """Admin request to credit an account by hand."""

    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
