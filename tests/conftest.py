"""Pytest fixtures for backend tests."""

from __future__ import annotations

import hashlib
import hmac
import itertools
import json
import os
import time
from collections.abc import Callable, Iterator
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("STRIPE_SECRET_KEY", "")
    os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "")
    os.environ.setdefault("ENABLE_SCHEDULER", "false")


_set_default_env()

from app.gateways.base import CheckoutSession, PaymentGateway, WebhookEvent  # noqa: E402
from app.gateways.stripe_gateway import parse_webhook_event  # noqa: E402
from app.storage.base import Storage  # noqa: E402
from app.storage.memory import build_memory_storage  # noqa: E402
from app.utils.errors import GatewayUnavailableError, NotFoundError  # noqa: E402
from app.utils.money import to_money  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhooks."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


class FakeGateway(PaymentGateway):
    """In-memory stand-in for Stripe Checkout.

    Webhook verification runs the real Stripe signature check.
    """

    session_id_prefix = "cs_"

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET) -> None:
        self.webhook_secret = webhook_secret
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict[str, Any]] = []
        self.unreachable: set[str] = set()
        self.fail_create = False
        self._ids = itertools.count(1)

    def create_checkout_session(
        self,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        correlation_id: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        if self.fail_create:
            raise GatewayUnavailableError("Payment gateway unreachable")
        session_id = f"cs_test_{next(self._ids):04d}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.stripe.test/{session_id}",
            status="open",
            payment_status="unpaid",
            amount_total=amount_cents,
            currency=currency.lower(),
            client_reference_id=correlation_id,
            metadata=metadata,
        )
        self.sessions[session_id] = session
        self.created.append(
            {
                "session_id": session_id,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "customer_email": customer_email,
                "idempotency_key": idempotency_key,
            }
        )
        return session

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        if session_id in self.unreachable:
            raise GatewayUnavailableError("Payment gateway unreachable")
        if session_id not in self.sessions:
            raise NotFoundError("Checkout session")
        return self.sessions[session_id]

    def construct_webhook_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        return parse_webhook_event(payload, signature, self.webhook_secret)

    def update_session(self, session_id: str, **changes: Any) -> CheckoutSession:
        session = self.sessions[session_id].model_copy(update=changes)
        self.sessions[session_id] = session
        return session

    def mark_paid(self, session_id: str) -> CheckoutSession:
        return self.update_session(session_id, status="complete", payment_status="paid")

    def expire(self, session_id: str) -> CheckoutSession:
        return self.update_session(session_id, status="expired")

    def add_session(self, **fields: Any) -> CheckoutSession:
        session = CheckoutSession(**fields)
        self.sessions[session.id] = session
        return session

    def event_payload(self, event_type: str, session_id: str) -> bytes:
        session = self.sessions[session_id]
        data_object = session.model_dump()
        data_object["object"] = "checkout.session"
        event = {
            "id": f"evt_{session_id}_{event_type}",
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
        return json.dumps(event).encode("utf-8")

    def signed_event(self, event_type: str, session_id: str) -> tuple[bytes, str]:
        payload = self.event_payload(event_type, session_id)
        return payload, sign_payload(payload, self.webhook_secret)


class FakeAuthClient:
    """Supabase auth stand-in: the bearer token is the user id."""

    def __init__(self) -> None:
        self.auth = self

    def get_user(self, token: str) -> Any:
        if token == "invalid":
            return SimpleNamespace(user=None)
        return SimpleNamespace(user=SimpleNamespace(id=token, email=f"{token}@example.com"))


@pytest.fixture
def storage() -> Storage:
    """Fresh in-memory storage for each test."""
    return build_memory_storage()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_account(storage: Storage) -> Callable[..., dict[str, Any]]:
    """Create an account row directly in storage."""

    def _make(
        account_id: str = "landlord-1", balance: str = "0.00", role: str = "landlord"
    ) -> dict[str, Any]:
        return storage.accounts.create(
            {
                "id": account_id,
                "email": f"{account_id}@example.com",
                "role": role,
                "balance": to_money(Decimal(balance)),
            }
        )

    return _make


@pytest.fixture
def make_lead(storage: Storage) -> Callable[..., dict[str, Any]]:
    def _make(review_status: str = "approved", **fields: Any) -> dict[str, Any]:
        payload = {
            "listing_id": None,
            "requirement": "Two-bedroom near the metro",
            "budget": "800",
            "move_in_date": "2026-11-01",
            "wechat_id": "tenant_wx",
            "phone": "+33600000000",
            "email": "tenant@example.com",
            "unlocked_by": [],
            "status": "new",
            "review_status": review_status,
            "review_note": "",
        }
        payload.update(fields)
        return storage.leads.create(payload)

    return _make


@pytest.fixture
def make_listing(storage: Storage) -> Callable[..., dict[str, Any]]:
    def _make(
        owner_id: str = "landlord-1", review_status: str = "approved", **fields: Any
    ) -> dict[str, Any]:
        payload = {
            "owner_id": owner_id,
            "title": "Bright studio",
            "description": "",
            "price": Decimal("650.00"),
            "location": "Lille Sud",
            "address": "12 Rue Exemple",
            "images": [],
            "tags": [],
            "is_active": True,
            "is_promoted": False,
            "promoted_until": None,
            "review_status": review_status,
            "review_note": "",
        }
        payload.update(fields)
        return storage.listings.create(payload)

    return _make


@pytest.fixture
def client(
    storage: Storage, gateway: FakeGateway, monkeypatch: pytest.MonkeyPatch
) -> Iterator[TestClient]:
    """Create a FastAPI test client over fresh storage and the fake gateway."""
    from app import dependencies
    from app.main import app

    monkeypatch.setattr(dependencies, "get_supabase_client", FakeAuthClient)
    dependencies._token_cache.clear()
    app.dependency_overrides[dependencies.get_db_storage] = lambda: storage
    app.dependency_overrides[dependencies.get_gateway] = lambda: gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    dependencies._token_cache.clear()


def bearer(account_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {account_id}"}


@pytest.fixture
def auth() -> Callable[[str], dict[str, str]]:
    """Return Authorization headers for an account id."""
    return bearer


@pytest.fixture
def signer() -> Callable[..., str]:
    """Return the Stripe-Signature builder."""
    return sign_payload
