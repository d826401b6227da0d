"""Payment endpoints: card top-ups, confirmation, reconciliation and webhooks."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.dependencies import get_current_account, get_db_storage, get_gateway, require_admin
from app.gateways.base import PaymentGateway
from app.schemas.payment import (
    CheckoutRequest,
    CheckoutResponse,
    ManualTopUpRequest,
    ReconcileRequest,
)
from app.services.payment_service import PaymentService
from app.storage.base import Storage
from app.utils.errors import (
    AppError,
    GatewayUnavailableError,
    InvalidInputError,
    NotFoundError,
    SignatureInvalidError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/topup")
def manual_top_up(
    payload: ManualTopUpRequest,
    admin: dict[str, Any] = Depends(require_admin),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    """Credit an account by hand (admin only)."""
    return PaymentService(storage).manual_top_up(admin["id"], payload.account_id, payload.amount)


@router.get("/my")
def my_payments(
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
) -> dict:
    payments = PaymentService(storage).list_payments(account["id"])
    return {"payments": payments, "results": len(payments)}


@router.post("/stripe/checkout-session", response_model=CheckoutResponse)
def create_checkout_session(
    payload: CheckoutRequest,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
    gateway: PaymentGateway | None = Depends(get_gateway),
) -> dict:
    """Start a card top-up and return the hosted checkout url."""
    service = PaymentService(storage, gateway)
    return service.create_checkout(account["id"], account.get("email"), payload.amount)


@router.get("/stripe/confirm")
def confirm_checkout_session(
    session_id: str = Query(default=""),
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
    gateway: PaymentGateway | None = Depends(get_gateway),
) -> dict:
    """Settle a checkout after the landlord is redirected back."""
    return PaymentService(storage, gateway).confirm(account["id"], session_id)


@router.post("/stripe/reconcile")
def reconcile_deposits(
    payload: ReconcileRequest | None = None,
    account: dict[str, Any] = Depends(get_current_account),
    storage: Storage = Depends(get_db_storage),
    gateway: PaymentGateway | None = Depends(get_gateway),
) -> dict:
    """Re-check the caller's pending deposits against the gateway."""
    limit = payload.limit if payload else None
    return PaymentService(storage, gateway).reconcile(account["id"], limit)


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    storage: Storage = Depends(get_db_storage),
    gateway: PaymentGateway | None = Depends(get_gateway),
) -> Any:
    """Receive gateway notifications.

    Status codes drive the sender's retry policy: 400 for problems a retry
    cannot fix, 500 for transient failures, 200 once the event is handled.
    """
    payload = await request.body()
    service = PaymentService(storage, gateway)
    try:
        outcome = await run_in_threadpool(service.handle_webhook, payload, stripe_signature)
    except GatewayUnavailableError as exc:
        logger.error("Stripe webhook not configured: %s", exc.message)
        return JSONResponse(status_code=400, content=exc.to_dict())
    except SignatureInvalidError as exc:
        logger.warning("Stripe webhook rejected: %s", exc.message)
        return JSONResponse(status_code=400, content=exc.to_dict())
    except (InvalidInputError, NotFoundError) as exc:
        logger.warning("Stripe webhook unprocessable, not retrying: %s", exc.message)
        return JSONResponse(status_code=400, content=exc.to_dict())
    except AppError as exc:
        logger.error("Stripe webhook handler failed: %s", exc.message)
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook handler failed", "code": "INTERNAL_ERROR"},
        )

    logger.info("Stripe webhook %s handled: %s", outcome["event"], outcome["outcome"])
    return {"received": True}
