# src/floodwatch/errors.py
from __future__ import annotations

from typing import Optional


class FloodWatchError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    error = "Internal error"

    def __init__(self, details: str = "", error: Optional[str] = None):
        super().__init__(details)
        self.details = details
        if error:
            self.error = error


class ValidationError(FloodWatchError):
    status_code = 400
    error = "Update failed"


class AuthError(FloodWatchError):
    status_code = 401
    error = "Unauthorized"


class ConfigurationError(FloodWatchError):
    # server-side misconfiguration, not a client auth failure
    status_code = 500
    error = "Server Configuration Error"


class StoreError(FloodWatchError):
    status_code = 500
    error = "Storage unavailable"
