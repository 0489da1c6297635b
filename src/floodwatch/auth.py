# src/floodwatch/auth.py
"""
Shared-secret check for write endpoints.

The key is accepted from the Authorization header (optionally with a
"Bearer " prefix), then x-api-key, then the ?key= query parameter.
"""
from __future__ import annotations

import logging

from fastapi import Depends, Request

from .config import Settings, get_settings
from .errors import AuthError, ConfigurationError

logger = logging.getLogger(__name__)


def extract_api_key(request: Request) -> str:
    value = (
        request.headers.get("authorization")
        or request.headers.get("x-api-key")
        or request.query_params.get("key")
        or ""
    )
    if value.startswith("Bearer "):
        value = value[len("Bearer "):]
    return value.strip()


def require_api_key(request: Request, settings: Settings = Depends(get_settings)) -> None:
    secret = (settings.flood_api_key or "").strip()
    if not secret:
        logger.error("[auth] FLOOD_API_KEY is not set")
        raise ConfigurationError("FLOOD_API_KEY missing in server settings")

    received = extract_api_key(request)
    # plain comparison, same as the devices and dashboard expect
    if received != secret:
        logger.warning("[auth] unauthorized attempt. Expected: %s... Received: %s...", secret[:3], received[:3])
        raise AuthError("API Key mismatch.")
