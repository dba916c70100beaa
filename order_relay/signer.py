"""
signer.py — Request signatures for outbound backend calls.

The signature is an HMAC-SHA256 hex digest over ``action.ts.userId``.
It covers that triple only, never the POST body.
"""

import hashlib
import hmac


def signing_base(action: str, ts, user_id: str = "") -> str:
    return f"{action}.{ts}.{user_id or ''}"


def sign(secret: str, action: str, ts, user_id: str = "") -> str:
    """
    Computes the signature for one backend call.

    An empty or missing secret still yields a digest (keyed with an empty key);
    the backend then rejects the call instead of the relay failing locally.

    Args:
        secret (str): Shared signing secret.
        action (str): Backend action name.
        ts (int): Unix timestamp in seconds.
        user_id (str): Acting user id, empty when not applicable.

    Returns:
        str: Lowercase hex digest.
    """
    key = (secret or "").encode("utf-8")
    base = signing_base(action, ts, user_id).encode("utf-8")
    return hmac.new(key, base, hashlib.sha256).hexdigest()


def verify(secret: str, action: str, ts, user_id: str, signature: str) -> bool:
    expected = sign(secret, action, ts, user_id)
    return hmac.compare_digest(expected, str(signature or ""))


class Signer:
    """Binds the shared secret so components only pass the request triple."""

    def __init__(self, secret: str):
        self._secret = secret or ""

    @property
    def has_secret(self) -> bool:
        return bool(self._secret)

    def sign(self, action: str, ts, user_id: str = "") -> str:
        return sign(self._secret, action, ts, user_id)
