"""
config.py — Process-wide configuration for the order relay.

Settings are read once at startup (``.env`` first, then the process environment)
into an immutable ``Settings`` value that is passed explicitly to every component.
Missing backend URL or secret never prevents startup; they surface as upstream
errors on first use so that the health endpoint keeps answering.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_PORT = 3000
DEFAULT_CATALOG_ACTIONS = ("getCategories", "listCategories")
DEFAULT_SIGNATURE_TTL = 300


def _get_env(env: Mapping[str, str], *keys: str, default: str = "") -> str:
    for k in keys:
        v = env.get(k)
        if v is not None and str(v).strip() != "":
            return str(v).strip()
    return default


def _get_float(env: Mapping[str, str], *keys: str, default: float) -> float:
    raw = _get_env(env, *keys)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"Invalid value {raw!r} for {keys[0]}, using default {default}.")
        return default
    if value <= 0:
        log.warning(f"Non-positive value {raw!r} for {keys[0]}, using default {default}.")
        return default
    return value


def _get_int(env: Mapping[str, str], *keys: str, default: int) -> int:
    raw = _get_env(env, *keys)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Invalid value {raw!r} for {keys[0]}, using default {default}.")
        return default


def _get_actions(env: Mapping[str, str]) -> Tuple[str, ...]:
    raw = _get_env(env, "CATALOG_ACTIONS")
    if not raw:
        return DEFAULT_CATALOG_ACTIONS
    actions = tuple(a.strip() for a in raw.split(",") if a.strip())
    return actions or DEFAULT_CATALOG_ACTIONS


@dataclass(frozen=True)
class Settings:
    """
    Immutable relay configuration.

    Attributes:
        backend_url (str): The single backend endpoint every action is sent to.
        shared_secret (str): Key for request signatures. May be empty (see signer).
        timeout_seconds (float): Hard upper bound for one upstream call.
        port (int): Listening port of the relay.
        catalog_actions (tuple): Catalog actions tried in order, newest first.
        log_level (str): Root log level name.
        log_file (str): Optional log file path; empty means console only.
        signature_ttl (int): Freshness window enforced by the backend, reported only.
    """
    backend_url: str = ""
    shared_secret: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    port: int = DEFAULT_PORT
    catalog_actions: Tuple[str, ...] = DEFAULT_CATALOG_ACTIONS
    log_level: str = "INFO"
    log_file: str = ""
    signature_ttl: int = DEFAULT_SIGNATURE_TTL

    def describe(self) -> dict:
        """Redacted summary for the boot log. Never includes the secret."""
        return {
            "hasBackendUrl": bool(self.backend_url),
            "hasSecret": bool(self.shared_secret),
            "timeoutSeconds": self.timeout_seconds,
            "catalogActions": list(self.catalog_actions),
            "sigTtl": self.signature_ttl,
        }


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Builds ``Settings`` from a mapping, or from ``.env`` plus ``os.environ``.

    Args:
        env (Mapping, optional): Explicit variables, used by tests. When omitted,
            ``.env`` is loaded without overriding variables already set.

    Returns:
        Settings: The frozen configuration value.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    return Settings(
        backend_url=_get_env(env, "GAS_URL", "BACKEND_URL"),
        shared_secret=_get_env(env, "GAS_SHARED_SECRET", "BACKEND_SHARED_SECRET"),
        timeout_seconds=_get_float(env, "GAS_TIMEOUT_SECONDS", "UPSTREAM_TIMEOUT_SECONDS",
                                   default=DEFAULT_TIMEOUT_SECONDS),
        port=_get_int(env, "PORT", default=DEFAULT_PORT),
        catalog_actions=_get_actions(env),
        log_level=_get_env(env, "LOG_LEVEL", default="INFO").upper(),
        log_file=_get_env(env, "LOG_FILE"),
        signature_ttl=_get_int(env, "SIG_TTL", default=DEFAULT_SIGNATURE_TTL),
    )
