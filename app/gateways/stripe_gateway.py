"""Stripe Checkout implementation of the payment gateway."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import stripe

from app.gateways.base import CheckoutSession, PaymentGateway, WebhookEvent
from app.utils.errors import (
    GatewayUnavailableError,
    InvalidInputError,
    NotFoundError,
    SignatureInvalidError,
)

logger = logging.getLogger(__name__)

SECRET_KEY_PATTERN = re.compile(r"^sk_(test|live)_[A-Za-z0-9]+$")
WEBHOOK_TOLERANCE_SECONDS = 300


def validate_secret_key(raw: str | None) -> tuple[str | None, str | None]:
    """Return ``(key, None)`` for a usable key or ``(None, reason)``."""
    key = str(raw or "").strip()
    if not key:
        return None, "missing"
    if key in {"sk_test_xxx", "sk_live_xxx"} or "xxx" in key:
        return None, "placeholder"
    if not SECRET_KEY_PATTERN.match(key):
        return None, "format"
    return key, None


def _plain(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def session_from_payload(payload: dict[str, Any]) -> CheckoutSession:
    """Build a CheckoutSession from a Stripe ``checkout.session`` object."""
    metadata = payload.get("metadata") or {}
    return CheckoutSession(
        id=str(payload.get("id") or ""),
        url=payload.get("url"),
        status=payload.get("status"),
        payment_status=payload.get("payment_status"),
        amount_total=payload.get("amount_total"),
        currency=payload.get("currency"),
        client_reference_id=payload.get("client_reference_id"),
        metadata={str(key): str(value) for key, value in dict(metadata).items()},
    )


def parse_webhook_event(payload: bytes, signature: str | None, secret: str) -> WebhookEvent:
    """Verify a Stripe-Signature header over raw bytes and parse the event."""
    if not signature:
        raise SignatureInvalidError("Missing Stripe-Signature header")

    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            body, signature, secret, tolerance=WEBHOOK_TOLERANCE_SECONDS
        )
        event = json.loads(body)
    except stripe.SignatureVerificationError as exc:
        raise SignatureInvalidError() from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SignatureInvalidError("Webhook payload is not valid JSON") from exc

    data_object = (event.get("data") or {}).get("object") or {}
    session = None
    if data_object.get("object") == "checkout.session":
        session = session_from_payload(data_object)

    return WebhookEvent(
        id=str(event.get("id") or ""),
        type=str(event.get("type") or ""),
        session=session,
        data=data_object,
    )


class StripeGateway(PaymentGateway):
    """Checkout sessions through the Stripe API."""

    session_id_prefix = "cs_"

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str | None = None,
        timeout_seconds: int = 20,
        max_network_retries: int = 2,
    ) -> None:
        key, reason = validate_secret_key(secret_key)
        if key is None:
            raise GatewayUnavailableError(_key_message(reason))
        self.secret_key = key
        self.webhook_secret = (webhook_secret or "").strip() or None
        # The SDK keeps its transport and retry policy at module level.
        stripe.default_http_client = stripe.RequestsClient(timeout=max(1, timeout_seconds))
        stripe.max_network_retries = max(0, max_network_retries)

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
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "client_reference_id": correlation_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": amount_cents,
                        "product_data": {"name": "Account top-up"},
                    },
                }
            ],
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        with _translate_errors("create checkout session"):
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        return session_from_payload(_plain(session))

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        with _translate_errors("retrieve checkout session"):
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
        return session_from_payload(_plain(session))

    def construct_webhook_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        if not self.webhook_secret:
            raise GatewayUnavailableError("Stripe webhook secret is not configured")
        return parse_webhook_event(payload, signature, self.webhook_secret)


def _key_message(reason: str | None) -> str:
    if reason == "missing":
        return "Stripe is not configured: set STRIPE_SECRET_KEY"
    return "Stripe secret key is invalid: STRIPE_SECRET_KEY must look like sk_test_..."


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map Stripe SDK failures onto application errors."""
    try:
        yield
    except stripe.AuthenticationError as exc:
        raise GatewayUnavailableError(_key_message("format")) from exc
    except stripe.APIConnectionError as exc:
        logger.warning("Stripe unreachable during %s: %s", action, exc)
        raise GatewayUnavailableError("Payment gateway unreachable") from exc
    except stripe.InvalidRequestError as exc:
        if getattr(exc, "http_status", None) == 404:
            raise NotFoundError("Checkout session") from exc
        raise InvalidInputError(exc.user_message or "Invalid payment request") from exc
    except stripe.StripeError as exc:
        logger.warning("Stripe error during %s: %s", action, exc)
        raise GatewayUnavailableError("Payment gateway error") from exc
