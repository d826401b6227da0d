"""Supabase client singletons (anon for auth, service-role for storage)."""

from functools import lru_cache

import httpx
from supabase.lib.client_options import SyncClientOptions

from app.config import settings
from supabase import Client, create_client


def _http_client(timeout_seconds: int) -> httpx.Client:
    max_connections = max(10, settings.supabase_http_max_connections)
    keepalive = min(max_connections, settings.supabase_http_max_keepalive_connections)
    return httpx.Client(
        timeout=httpx.Timeout(timeout_seconds),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max(5, keepalive),
        ),
    )


def _connect(key_env: str, key: str) -> Client:
    """Create a sessionless client; both URL and key must be configured."""
    if not settings.supabase_url:
        raise RuntimeError("SUPABASE_URL must be set to use Supabase")
    if not key:
        raise RuntimeError(f"{key_env} must be set to use Supabase")

    timeout_seconds = max(1, settings.supabase_postgrest_timeout_seconds)
    options = SyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=timeout_seconds,
        httpx_client=_http_client(timeout_seconds),
    )
    return create_client(settings.supabase_url, key, options=options)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Return the anon-key client used to resolve bearer tokens."""
    return _connect("SUPABASE_ANON_KEY", settings.supabase_anon_key)


@lru_cache(maxsize=1)
def get_service_client() -> Client:
    """Return the service-role client behind the supabase storage backend.

    Balance and ledger tables are written only through this client.
    """
    return _connect("SUPABASE_SERVICE_KEY", settings.supabase_service_key)
