"""API router package."""

from app.routers import account, admin, leads, listings, payments

__all__ = [
    "account",
    "admin",
    "leads",
    "listings",
    "payments",
]
