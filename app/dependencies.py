"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any

from fastapi import Depends, Header

from app.config import settings
from app.gateways import get_payment_gateway, is_gateway_configured
from app.gateways.base import PaymentGateway
from app.services.account_service import AccountService
from app.storage import get_storage
from app.storage.base import Storage
from app.utils.errors import UnauthorizedError
from app.utils.supabase_client import get_supabase_client


class _TokenCache:
    """Bounded TTL cache of resolved bearer tokens, oldest evicted first."""

    def __init__(self) -> None:
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, token: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            expires_at, user = entry
            if expires_at <= time.monotonic():
                del self._entries[token]
                return None
            return user

    def set(self, token: str, user: Any, ttl_seconds: int, max_entries: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries.pop(token, None)
            while len(self._entries) >= max(1, max_entries):
                self._entries.popitem(last=False)
            self._entries[token] = (time.monotonic() + ttl_seconds, user)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_token_cache = _TokenCache()


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Missing authorization header")
    return token


def get_authenticated_user(authorization: str = Header(None)) -> Any:
    """Resolve the Supabase user behind the ``Authorization: Bearer`` header.

    Raises:
        UnauthorizedError: 401 if the header is missing, malformed, or
            the token cannot be validated.
    """
    token = _bearer_token(authorization)
    cached_user = _token_cache.get(token)
    if cached_user is not None:
        return cached_user

    try:
        response = get_supabase_client().auth.get_user(token)
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc
    if not response or not response.user:
        raise UnauthorizedError("Invalid token")

    _token_cache.set(
        token,
        response.user,
        settings.auth_token_cache_ttl_seconds,
        settings.auth_token_cache_max_entries,
    )
    return response.user


def get_current_user_id(user: Any) -> str:
    """Extract a stable user id string from the Supabase user object."""
    return str(user.id)


def get_current_user_email(user: Any) -> str:
    """Return the normalized email of the user, or an empty string."""
    raw_email = getattr(user, "email", None)
    if not isinstance(raw_email, str):
        return ""
    return raw_email.strip().lower()


def get_db_storage() -> Storage:
    """Return the storage backend selected at startup."""
    return get_storage()


def get_gateway() -> PaymentGateway | None:
    """Return the payment gateway, or None when Stripe is not configured."""
    if not is_gateway_configured():
        return None
    return get_payment_gateway()


def get_current_account(
    user: Any = Depends(get_authenticated_user),
    storage: Storage = Depends(get_db_storage),
) -> dict[str, Any]:
    """Return the caller's account, provisioning it on first sight."""
    return AccountService(storage).ensure_account(
        get_current_user_id(user), get_current_user_email(user)
    )


def get_optional_account(
    authorization: str = Header(None),
    storage: Storage = Depends(get_db_storage),
) -> dict[str, Any] | None:
    """Resolve the caller when a bearer token is present; anonymous otherwise."""
    if not authorization:
        return None
    user = get_authenticated_user(authorization)
    return AccountService(storage).ensure_account(
        get_current_user_id(user), get_current_user_email(user)
    )


def require_admin(account: dict[str, Any] = Depends(get_current_account)) -> dict[str, Any]:
    """Allow only accounts holding the admin role."""
    AccountService.ensure_admin(account)
    return account
