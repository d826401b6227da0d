"""In-memory storage backend tests."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from app.utils.time import now_utc


def test_account_create_is_unique(storage, make_account) -> None:
    assert make_account("landlord-1") is not None
    assert make_account("landlord-1") is None


def test_debit_is_guarded(storage, make_account) -> None:
    make_account("landlord-1", balance="1.00")

    assert storage.accounts.debit("landlord-1", Decimal("1.01")) is None
    assert storage.accounts.debit("landlord-1", Decimal("1.00"))["balance"] == Decimal("0.00")
    assert storage.accounts.debit("ghost", Decimal("1.00")) is None


def test_rows_are_copies(storage, make_lead) -> None:
    lead = make_lead()
    lead["unlocked_by"].append("intruder")

    assert storage.leads.get(lead["id"])["unlocked_by"] == []


def test_add_unlock_is_a_unique_append(storage, make_lead) -> None:
    lead = make_lead()

    assert storage.leads.add_unlock(lead["id"], "landlord-1") is True
    assert storage.leads.add_unlock(lead["id"], "landlord-1") is False
    assert storage.leads.add_unlock("missing", "landlord-1") is False
    assert storage.leads.get(lead["id"])["unlocked_by"] == ["landlord-1"]


def test_transition_requires_pending(storage) -> None:
    entry = storage.ledger.create(
        {"account_id": "a", "kind": "deposit", "status": "pending", "amount": Decimal("1")}
    )

    assert storage.ledger.transition({"id": entry["id"]}, "failed") is not None
    assert storage.ledger.transition({"id": entry["id"]}, "completed") is None


def test_expire_promotions_only_touches_past_end_times(storage, make_listing) -> None:
    now = now_utc()
    past = make_listing(is_promoted=True, promoted_until=(now - timedelta(minutes=1)).isoformat())
    future = make_listing(is_promoted=True, promoted_until=(now + timedelta(days=1)).isoformat())

    assert storage.listings.expire_promotions(now) == 1
    assert storage.listings.get(past["id"])["is_promoted"] is False
    assert storage.listings.get(past["id"])["promoted_until"] is None
    assert storage.listings.get(future["id"])["is_promoted"] is True


def test_list_public_orders_promoted_first_then_newest(storage, make_listing) -> None:
    oldest = make_listing(title="old", created_at="2026-01-01T00:00:00+00:00")
    promoted = make_listing(
        title="promoted",
        created_at="2026-01-02T00:00:00+00:00",
        is_promoted=True,
        promoted_until=(now_utc() + timedelta(days=3)).isoformat(),
    )
    newest = make_listing(title="new", created_at="2026-01-03T00:00:00+00:00")
    make_listing(title="pending", review_status="pending")
    make_listing(title="inactive", is_active=False)

    ids = [row["id"] for row in storage.listings.list_public()]

    assert ids == [promoted["id"], newest["id"], oldest["id"]]
