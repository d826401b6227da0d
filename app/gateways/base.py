"""Payment gateway interface consumed by the deposit flow."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CLOSED_UNPAID_STATUSES = frozenset({"expired", "canceled"})


class CheckoutSession(BaseModel):
    """Gateway-side view of one hosted checkout."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str | None = None
    status: str | None = None
    payment_status: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    client_reference_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def is_closed_unpaid(self) -> bool:
        """Abandoned checkouts that can never be paid any more."""
        return not self.is_paid and self.status in CLOSED_UNPAID_STATUSES


class WebhookEvent(BaseModel):
    """A verified gateway push notification."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    session: CheckoutSession | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class PaymentGateway(ABC):
    """Card processor operations used by PaymentService.

    Implementations perform blocking network I/O with bounded timeouts.
    """

    session_id_prefix: str = ""

    @abstractmethod
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
        """Create a hosted checkout and return its redirect url and id."""

    @abstractmethod
    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Fetch the live state of a checkout session."""

    @abstractmethod
    def construct_webhook_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify ``signature`` over the exact ``payload`` bytes and parse it.

        Raises SignatureInvalidError when verification fails.
        """
