"""HTTP-level tests for the marketplace routers."""

from __future__ import annotations

from decimal import Decimal

from fastapi.testclient import TestClient


def test_protected_routes_require_a_token(client: TestClient) -> None:
    response = client.get("/api/v1/account")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"

    response = client.get("/api/v1/account", headers={"Authorization": "Bearer invalid"})
    assert response.status_code == 401


def test_first_request_provisions_account(client: TestClient, auth) -> None:
    response = client.get("/api/v1/account", headers=auth("landlord-7"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["account"]["id"] == "landlord-7"
    assert payload["account"]["email"] == "landlord-7@example.com"
    assert payload["account"]["balance"] == "0.00"
    assert payload["summary"] == {"total_deposited": "0.00", "total_spent": "0.00"}


def test_lead_submission_review_and_unlock(client: TestClient, auth, make_account) -> None:
    make_account("admin-1", role="admin")
    make_account("landlord-1", balance="1.00")

    submitted = client.post(
        "/api/v1/leads",
        json={"requirement": "Studio near campus", "wechat_id": "wx_tenant", "phone": "0600"},
    )
    assert submitted.status_code == 201
    lead_id = submitted.json()["lead"]["id"]

    early = client.post(f"/api/v1/leads/{lead_id}/unlock", headers=auth("landlord-1"))
    assert early.status_code == 403
    assert early.json()["code"] == "NOT_ELIGIBLE"

    reviewed = client.patch(
        f"/api/v1/admin/leads/{lead_id}/review",
        json={"status": "approved"},
        headers=auth("admin-1"),
    )
    assert reviewed.status_code == 200

    listed = client.get("/api/v1/leads", headers=auth("landlord-1")).json()["leads"]
    assert listed[0]["wechat_id"] == "***UNLOCK TO VIEW***"
    assert listed[0]["is_unlocked"] is False

    unlocked = client.post(f"/api/v1/leads/{lead_id}/unlock", headers=auth("landlord-1"))
    assert unlocked.status_code == 200
    assert unlocked.json()["lead"]["wechat_id"] == "wx_tenant"
    assert unlocked.json()["balance"] == "0.00"

    again = client.post(f"/api/v1/leads/{lead_id}/unlock", headers=auth("landlord-1"))
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_UNLOCKED"


def test_unlock_without_funds_returns_402(client: TestClient, auth, make_lead) -> None:
    lead = make_lead()

    response = client.post(f"/api/v1/leads/{lead['id']}/unlock", headers=auth("landlord-1"))

    assert response.status_code == 402
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_BALANCE"
    assert payload["required"] == "1.00"
    assert payload["available"] == "0.00"


def test_admin_routes_reject_landlords(client: TestClient, auth) -> None:
    response = client.get("/api/v1/admin/summary", headers=auth("landlord-1"))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_admin_summary(client: TestClient, auth, make_account, make_lead) -> None:
    make_account("admin-1", role="admin")
    make_lead(review_status="pending")

    response = client.get("/api/v1/admin/summary", headers=auth("admin-1"))

    assert response.json() == {"listings_pending": 0, "leads_pending": 1}


def test_listing_lifecycle_and_promotion(
    client: TestClient, auth, make_account, storage
) -> None:
    make_account("landlord-1", balance="12.00")
    make_account("admin-1", role="admin")

    created = client.post(
        "/api/v1/listings",
        json={"title": "Loft", "price": "700.00", "location": "Centre", "address": "1 Rue A"},
        headers=auth("landlord-1"),
    )
    assert created.status_code == 201
    listing_id = created.json()["listing"]["id"]

    assert client.get(f"/api/v1/listings/{listing_id}").status_code == 404
    owner_view = client.get(f"/api/v1/listings/{listing_id}", headers=auth("landlord-1"))
    assert owner_view.status_code == 200
    assert client.get("/api/v1/listings").json()["results"] == 0

    early = client.post(f"/api/v1/listings/{listing_id}/promote", headers=auth("landlord-1"))
    assert early.status_code == 403

    client.patch(
        f"/api/v1/admin/listings/{listing_id}/review",
        json={"status": "approved", "note": "looks fine"},
        headers=auth("admin-1"),
    )

    public = client.get(f"/api/v1/listings/{listing_id}").json()["listing"]
    assert "address" not in public

    bad = client.post(
        f"/api/v1/listings/{listing_id}/promote", json={"days": 0}, headers=auth("landlord-1")
    )
    assert bad.status_code == 422
    assert bad.json()["code"] == "INVALID_INPUT"

    promoted = client.post(
        f"/api/v1/listings/{listing_id}/promote", json={"days": 3}, headers=auth("landlord-1")
    )
    assert promoted.status_code == 200
    assert promoted.json()["listing"]["is_promoted"] is True
    assert promoted.json()["balance"] == "2.00"

    board = client.get("/api/v1/listings").json()["listings"]
    assert [row["id"] for row in board] == [listing_id]

    mine = client.get("/api/v1/listings/my", headers=auth("landlord-1")).json()
    assert mine["results"] == 1

    ledger = client.get(
        "/api/v1/account/ledger", params={"kind": "promote_listing"}, headers=auth("landlord-1")
    ).json()
    assert ledger["total"] == 1
    assert ledger["summary"]["total_spent"] == "10.00"

    deleted = client.delete(f"/api/v1/listings/{listing_id}", headers=auth("landlord-1"))
    assert deleted.json() == {"deleted": True}
    assert storage.listings.get(listing_id) is None


def test_validation_errors_use_invalid_input(client: TestClient, auth) -> None:
    response = client.post(
        "/api/v1/payments/stripe/checkout-session",
        json={"amount": "abc"},
        headers=auth("landlord-1"),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_INPUT"


def test_checkout_confirm_and_reconcile(client: TestClient, auth, gateway, storage) -> None:
    headers = auth("landlord-1")

    created = client.post(
        "/api/v1/payments/stripe/checkout-session", json={"amount": "20.00"}, headers=headers
    )
    assert created.status_code == 200
    session_id = created.json()["session_id"]
    assert created.json()["url"].endswith(session_id)

    unpaid = client.get(
        "/api/v1/payments/stripe/confirm", params={"session_id": session_id}, headers=headers
    )
    assert unpaid.status_code == 409
    assert unpaid.json()["code"] == "PAYMENT_NOT_COMPLETED"

    gateway.mark_paid(session_id)
    confirmed = client.get(
        "/api/v1/payments/stripe/confirm", params={"session_id": session_id}, headers=headers
    )
    assert confirmed.json()["balance"] == "20.00"
    assert confirmed.json()["already_confirmed"] is False

    reconciled = client.post("/api/v1/payments/stripe/reconcile", json={}, headers=headers)
    assert reconciled.json() == {
        "balance": "20.00",
        "stats": {"scanned": 0, "credited": 0, "failed": 0, "pending": 0},
    }

    history = client.get("/api/v1/payments/my", headers=headers).json()
    assert history["results"] == 1
    assert history["payments"][0]["status"] == "completed"
    assert storage.accounts.get("landlord-1")["balance"] == Decimal("20.00")


def test_checkout_without_gateway_is_503(client: TestClient, auth) -> None:
    from app.dependencies import get_gateway
    from app.main import app

    app.dependency_overrides[get_gateway] = lambda: None

    response = client.post(
        "/api/v1/payments/stripe/checkout-session",
        json={"amount": "20.00"},
        headers=auth("landlord-1"),
    )

    assert response.status_code == 503
    assert response.json()["code"] == "GATEWAY_UNAVAILABLE"


def test_webhook_http_contract(client: TestClient, auth, gateway, storage, signer) -> None:
    created = client.post(
        "/api/v1/payments/stripe/checkout-session",
        json={"amount": "15.00"},
        headers=auth("landlord-1"),
    ).json()
    gateway.mark_paid(created["session_id"])
    payload, signature = gateway.signed_event("checkout.session.completed", created["session_id"])

    rejected = client.post(
        "/api/v1/payments/stripe/webhook",
        content=payload,
        headers={"Stripe-Signature": signer(payload, "whsec_wrong")},
    )
    assert rejected.status_code == 400
    assert rejected.json()["code"] == "SIGNATURE_INVALID"

    for _ in range(2):
        accepted = client.post(
            "/api/v1/payments/stripe/webhook",
            content=payload,
            headers={"Stripe-Signature": signature},
        )
        assert accepted.status_code == 200
        assert accepted.json() == {"received": True}

    assert storage.accounts.get("landlord-1")["balance"] == Decimal("15.00")


def test_webhook_without_gateway_is_400(client: TestClient) -> None:
    from app.dependencies import get_gateway
    from app.main import app

    app.dependency_overrides[get_gateway] = lambda: None

    response = client.post(
        "/api/v1/payments/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1"}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "GATEWAY_UNAVAILABLE"


def test_webhook_permanent_errors_are_not_retried(
    client: TestClient, auth, gateway, storage, monkeypatch
) -> None:
    from app.utils.errors import ConflictError, InvalidInputError

    created = client.post(
        "/api/v1/payments/stripe/checkout-session",
        json={"amount": "15.00"},
        headers=auth("landlord-1"),
    ).json()
    gateway.mark_paid(created["session_id"])
    payload, signature = gateway.signed_event("checkout.session.completed", created["session_id"])

    def malformed_id(filters):
        raise InvalidInputError('invalid input syntax for type uuid: "not-a-uuid"')

    monkeypatch.setattr(storage.ledger, "find_one", malformed_id)
    response = client.post(
        "/api/v1/payments/stripe/webhook",
        content=payload,
        headers={"Stripe-Signature": signature},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"

    def write_conflict(filters):
        raise ConflictError("could not serialize access")

    monkeypatch.setattr(storage.ledger, "find_one", write_conflict)
    response = client.post(
        "/api/v1/payments/stripe/webhook",
        content=payload,
        headers={"Stripe-Signature": signature},
    )
    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
    assert storage.accounts.get("landlord-1")["balance"] == Decimal("0.00")


def test_manual_top_up_is_admin_only(client: TestClient, auth, make_account) -> None:
    make_account("admin-1", role="admin")
    make_account("landlord-1")
    body = {"account_id": "landlord-1", "amount": "9.50"}

    denied = client.post("/api/v1/payments/topup", json=body, headers=auth("landlord-1"))
    assert denied.status_code == 403

    response = client.post("/api/v1/payments/topup", json=body, headers=auth("admin-1"))
    assert response.status_code == 200
    assert response.json()["balance"] == "9.50"
