"""
errors.py — Failure taxonomy of the relay.

Every failure carries a short machine ``code`` and the HTTP status of the
envelope it is flattened into. Raw backend text never becomes a code.
"""

import re
from typing import Optional

_SAFE_CODE = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")


class RelayError(Exception):
    code = "relay_error"
    status_code = 502

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message or self.code)
        if code:
            self.code = code


class ConfigError(RelayError):
    """Backend endpoint is not configured."""
    code = "server_misconfigured"


class UpstreamError(RelayError):
    """Base for failures talking to the backend."""

    def __init__(self, action: str, message: str = "", code: Optional[str] = None):
        super().__init__(message or f"{action}: {self.code}", code=code)
        self.action = action


class UpstreamTransportError(UpstreamError):
    code = "fetch_failed"


class GatewayTimeout(UpstreamTransportError):
    code = "fetch_failed"


class UpstreamHttpError(UpstreamError):
    """Non-2xx answer. ``body`` is kept for logging only."""

    def __init__(self, action: str, status: int, body: str = ""):
        super().__init__(action, f"{action}: HTTP {status}", code=f"upstream_http_{status}")
        self.status = status
        self.body = body


class UpstreamFormatError(UpstreamError):
    code = "upstream_bad_response"


class UpstreamRejected(UpstreamError):
    """Well-formed answer without ``ok: true``."""
    code = "upstream_rejected"

    def __init__(self, action: str, reason=None):
        reason_code = reason if isinstance(reason, str) and _SAFE_CODE.match(reason) else None
        super().__init__(action, f"{action}: rejected ({reason!r})", code=reason_code)
        self.reason = reason


class InvalidRequest(RelayError):
    code = "invalid_request"
    status_code = 400


class InvalidOrder(InvalidRequest):
    code = "invalid_order"
