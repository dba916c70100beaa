"""
This module provides the communication client for the spreadsheet backend.

The backend is a single RPC endpoint: every call names an ``action`` and carries
``ts``/``sig`` (and ``userId`` when applicable) as query parameters. GET calls put
the remaining parameters in the query string as well; POST calls send the action
and payload as a JSON body.

The client performs no retries. Write actions (placeOrder, addAdmin, ...) have no
idempotency key on the backend side, so a repeated call could apply twice.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import (
    ConfigError,
    GatewayTimeout,
    UpstreamFormatError,
    UpstreamHttpError,
    UpstreamTransportError,
)
from .signer import Signer

log = logging.getLogger(__name__)

BODY_LOG_LIMIT = 200


def _truncate(text: str, limit: int = BODY_LOG_LIMIT) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


class UpstreamClient:
    """
    Client for the backend endpoint (signed REST-style RPC).
    Handles signing, the per-call timeout and translation of failures into the
    relay's error taxonomy.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock=time.time):
        """
        Args:
            settings (Settings): Immutable relay configuration.
            transport (httpx.AsyncBaseTransport, optional): Substitute transport for tests.
            clock (callable): Source of the current unix time.
        """
        self.settings = settings
        self.signer = Signer(settings.shared_secret)
        self._clock = clock
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout_seconds),
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self):
        """Closes the HTTP client session."""
        await self.client.aclose()

    def signed_params(self, action: str, user_id: str = "") -> Dict[str, str]:
        ts = int(self._clock())
        params = {"action": action, "ts": str(ts), "sig": self.signer.sign(action, ts, user_id)}
        if user_id:
            params["userId"] = user_id
        return params

    async def get(self, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.call("GET", action, params)

    async def post(self, action: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self.call("POST", action, body=body)

    async def call(self, method: str, action: str, params: Optional[Dict[str, Any]] = None,
                   body: Optional[Dict[str, Any]] = None) -> Any:
        """
        Issues one signed call to the backend and returns the decoded JSON.

        Args:
            method (str): "GET" or "POST".
            action (str): Backend action name.
            params (dict, optional): GET parameters. ``userId`` is folded into the signature.
            body (dict, optional): POST payload. ``userId`` is folded into the signature.

        Returns:
            Any: The decoded JSON document.

        Raises:
            ConfigError: If no backend URL is configured.
            GatewayTimeout: If the call exceeds the configured timeout.
            UpstreamTransportError: If the backend cannot be reached.
            UpstreamHttpError: If the backend answers with a non-2xx status.
            UpstreamFormatError: If the answer is not valid JSON.
        """
        if not self.settings.backend_url:
            log.error(f"[Action: {action}] Backend URL is not configured.")
            raise ConfigError("backend URL is not configured")

        method = method.upper()
        if method == "GET":
            extra = {k: v for k, v in (params or {}).items() if v is not None and k != "action"}
            user_id = str(extra.pop("userId", "") or "")
            query = self.signed_params(action, user_id)
            query.update({k: str(v) for k, v in extra.items()})
            request = self.client.build_request("GET", self.settings.backend_url, params=query)
        elif method == "POST":
            payload = dict(body or {})
            payload["action"] = action
            user_id = str(payload.get("userId") or "")
            query = self.signed_params(action, user_id)
            query.pop("action")
            request = self.client.build_request("POST", self.settings.backend_url, params=query,
                                                json=payload)
        else:
            raise ValueError(f"unsupported method {method!r}")

        try:
            response = await asyncio.wait_for(self.client.send(request),
                                              timeout=self.settings.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            log.error(f"[Action: {action}] Backend timeout after {self.settings.timeout_seconds}s. "
                      f"Outcome unknown.")
            raise GatewayTimeout(action)
        except httpx.HTTPError as e:
            log.error(f"[Action: {action}] Backend unreachable: {e.__class__.__name__}: {e}")
            raise UpstreamTransportError(action)

        if not response.is_success:
            text = response.text
            log.error(f"[Action: {action}] {method} failed: HTTP {response.status_code} "
                      f"BODY: {_truncate(text)}")
            raise UpstreamHttpError(action, response.status_code, text)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            log.error(f"[Action: {action}] Backend answered with non-JSON body: "
                      f"{_truncate(response.text)}")
            raise UpstreamFormatError(action)
