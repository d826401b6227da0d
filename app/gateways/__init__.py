"""Payment gateway adapters."""

from __future__ import annotations

from app.config import settings
from app.gateways.base import CheckoutSession, PaymentGateway, WebhookEvent
from app.gateways.stripe_gateway import StripeGateway, validate_secret_key


def get_payment_gateway() -> PaymentGateway:
    """Build the configured gateway.

    Raises:
        GatewayUnavailableError: when Stripe is not (correctly) configured.
    """
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        timeout_seconds=settings.stripe_timeout_seconds,
        max_network_retries=settings.stripe_max_network_retries,
    )


def is_gateway_configured() -> bool:
    """Return whether a usable Stripe secret key is configured."""
    key, _ = validate_secret_key(settings.stripe_secret_key)
    return key is not None


__all__ = [
    "CheckoutSession",
    "PaymentGateway",
    "StripeGateway",
    "WebhookEvent",
    "get_payment_gateway",
    "is_gateway_configured",
]
