"""Scheduled job tests."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from importlib import import_module

from app.jobs.scheduler import register_jobs, scheduler
from app.utils.time import now_utc

# The package re-exports job functions under their module names.
reconciliation_job = import_module("app.jobs.deposit_reconciliation")
expiry_job = import_module("app.jobs.promotion_expiry")


def test_register_jobs_adds_each_job_once() -> None:
    try:
        register_jobs()
        register_jobs()
        job_ids = sorted(job.id for job in scheduler.get_jobs())
        assert job_ids == ["deposit_reconciliation", "promotion_expiry"]
    finally:
        scheduler.remove_all_jobs()


def test_promotion_expiry_job(storage, make_listing, monkeypatch) -> None:
    listing = make_listing(
        is_promoted=True, promoted_until=(now_utc() - timedelta(hours=1)).isoformat()
    )
    monkeypatch.setattr(expiry_job, "get_storage", lambda: storage)

    asyncio.run(expiry_job.promotion_expiry())

    assert storage.listings.get(listing["id"])["is_promoted"] is False


def test_deposit_reconciliation_job_skips_without_stripe(storage, monkeypatch) -> None:
    def fail() -> None:
        raise AssertionError("storage should not be touched")

    monkeypatch.setattr(reconciliation_job, "get_storage", fail)

    asyncio.run(reconciliation_job.deposit_reconciliation())


def test_deposit_reconciliation_job_settles_stale_deposits(
    storage, gateway, make_account, monkeypatch
) -> None:
    from app.services.payment_service import PaymentService

    make_account("landlord-1")
    checkout = PaymentService(storage, gateway).create_checkout("landlord-1", None, "8.00")
    gateway.mark_paid(checkout["session_id"])
    storage.ledger.store.ledger_entries[checkout["entry_id"]]["created_at"] = (
        now_utc() - timedelta(hours=2)
    ).isoformat()
    monkeypatch.setattr(reconciliation_job, "is_gateway_configured", lambda: True)
    monkeypatch.setattr(reconciliation_job, "get_payment_gateway", lambda: gateway)
    monkeypatch.setattr(reconciliation_job, "get_storage", lambda: storage)

    asyncio.run(reconciliation_job.deposit_reconciliation())

    assert str(storage.accounts.get("landlord-1")["balance"]) == "8.00"
