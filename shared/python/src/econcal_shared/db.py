"""
db.py — Supabase connection behind the record store.

Imports write indicators and releases with the service-role key (RLS is
bypassed), so a single client per process serves every pipeline. It is
created on first use; a missing key is a configuration error raised before
any provider is contacted.

Usage:
    from econcal_shared.db import get_supabase_client

    client = get_supabase_client()
    client.table("indicators").select("id").limit(1).execute()
"""

from __future__ import annotations

import threading

import structlog
from supabase import Client, create_client

from econcal_shared.config import settings

logger = structlog.get_logger(__name__)

_client_lock = threading.Lock()
_client: Client | None = None


def _create_service_client() -> Client:
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not set. Set it in .env before running an import."
        )
    client = create_client(settings.supabase_url, settings.supabase_service_key)
    logger.info("supabase_client_created", url=settings.supabase_url)
    return client


def get_supabase_client() -> Client:
    """
    The process-wide service-role client.

    Raises:
        RuntimeError: SUPABASE_SERVICE_KEY is not set.
    """
    global _client
    with _client_lock:
        if _client is None:
            _client = _create_service_client()
        return _client


def reset_supabase_clients() -> None:
    """Drop the cached client so the next call reads settings again."""
    global _client
    with _client_lock:
        _client = None
