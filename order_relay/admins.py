"""
admins.py — Admin status checks and first-admin bootstrap.

The admin set lives in the backend and is never cached here. The backend is
the only enforcer of "first admin only while the set is empty"; the relay
forwards the claim and re-reads the caller's status afterwards.
"""

import logging
from typing import Any, List

from .catalog import Shape, detect_shape, to_text
from .errors import InvalidRequest, RelayError, UpstreamRejected
from .models import AdminRecord

log = logging.getLogger(__name__)


def require_ok(result: Any, action: str) -> dict:
    """Returns the backend answer if it is an object with ``ok: true``, else raises UpstreamRejected."""
    if isinstance(result, dict) and result.get("ok") is True:
        return result
    reason = result.get("error") if isinstance(result, dict) else None
    log.warning(f"[Action: {action}] Backend rejected the call (error={reason!r}).")
    raise UpstreamRejected(action, reason)


def normalize_admins(entries: Any) -> List[AdminRecord]:
    """Accepts ``[{userId, displayName}]`` (aliases ``id``/``name``) or ``[[userId, displayName]]``."""
    shape = detect_shape(entries)
    admins = []
    if shape is Shape.ROWS:
        for row in entries:
            if isinstance(row, (list, tuple)) and row:
                user_id = to_text(row[0])
                display_name = to_text(row[1]) if len(row) > 1 else ""
                if user_id:
                    admins.append(AdminRecord(userId=user_id, displayName=display_name))
    elif shape is Shape.RECORDS:
        for record in entries:
            if not isinstance(record, dict):
                continue
            user_id = to_text(record.get("userId") if record.get("userId") is not None else record.get("id"))
            display_name = to_text(record.get("displayName") if record.get("displayName") is not None
                                   else record.get("name"))
            if user_id:
                admins.append(AdminRecord(userId=user_id, displayName=display_name))
    return admins


class AdminCoordinator:
    """Relays admin reads and mutations to the backend."""

    def __init__(self, client):
        self.client = client

    async def check_admin(self, user_id: str) -> dict:
        """
        Reads whether ``user_id`` is an admin.

        Never raises: an empty user id or any failure (upstream, config, unexpected
        answer) degrades to ``{"ok": False, "isAdmin": False}``.
        """
        user_id = (user_id or "").strip()
        if not user_id:
            return {"ok": False, "isAdmin": False}
        try:
            result = await self.client.get("checkAdmin", {"userId": user_id})
        except RelayError as e:
            log.warning(f"[Admin: {user_id}] checkAdmin failed ({e.code}), treating as non-admin.")
            return {"ok": False, "isAdmin": False}
        except Exception as e:
            log.error(f"[Admin: {user_id}] checkAdmin failed unexpectedly: {e}", exc_info=True)
            return {"ok": False, "isAdmin": False}

        if not isinstance(result, dict) or result.get("ok") is False:
            return {"ok": False, "isAdmin": False}
        return {"ok": True, "isAdmin": result.get("isAdmin") is True}

    async def check_first_admin(self) -> dict:
        result = require_ok(await self.client.get("checkFirstAdmin"), "checkFirstAdmin")
        if "hasAnyAdmin" in result:
            has_any = bool(result["hasAnyAdmin"])
        else:
            has_any = bool(result.get("admins"))
        return {"ok": True, "hasAnyAdmin": has_any}

    async def register_first_admin(self, user_id: str, display_name: str = "") -> dict:
        """
        Claims the first-admin slot for ``user_id``.

        Any user may call this; the backend refuses once an admin exists. On success
        the caller's status is read back before answering, because the claim's own
        acknowledgment does not prove that later reads already see it.

        Returns:
            dict: ``{"ok": True, "isAdmin": <status read back>}``.

        Raises:
            InvalidRequest: If ``user_id`` is empty (no upstream call is made).
            UpstreamRejected: If the backend refuses the claim.
        """
        user_id = (user_id or "").strip()
        if not user_id:
            raise InvalidRequest("userId is required")

        result = await self.client.post("registerFirstAdmin", {
            "userId": user_id,
            "displayName": (display_name or "").strip(),
        })
        require_ok(result, "registerFirstAdmin")
        log.info(f"[Admin: {user_id}] First-admin claim accepted by backend, re-reading status.")

        status = await self.check_admin(user_id)
        if not status["isAdmin"]:
            log.warning(f"[Admin: {user_id}] Claim accepted but status read-back is not admin yet.")
        return {"ok": True, "isAdmin": status["isAdmin"]}

    async def list_admins(self) -> dict:
        result = require_ok(await self.client.get("getAdmins"), "getAdmins")
        return {"ok": True, "admins": normalize_admins(result.get("admins"))}

    async def add_admin(self, target_user_id: str) -> dict:
        return await self._mutate("addAdmin", target_user_id)

    async def remove_admin(self, target_user_id: str) -> dict:
        return await self._mutate("removeAdmin", target_user_id)

    async def _mutate(self, action: str, target_user_id: str) -> dict:
        # caller authorization is the backend's job
        target = (target_user_id or "").strip()
        if not target:
            raise InvalidRequest("targetUserId is required")
        require_ok(await self.client.post(action, {"targetUserId": target}), action)
        log.info(f"[Admin: {target}] {action} applied.")
        return {"ok": True}


class UserDirectory:
    """Relays the user list and the 'user seen' record to the backend."""

    def __init__(self, client):
        self.client = client

    async def list_users(self) -> dict:
        result = require_ok(await self.client.get("getUsers"), "getUsers")
        users = result.get("users")
        return {"ok": True, "users": users if isinstance(users, list) else []}

    async def record_user(self, user_id: str, display_name: str = "") -> dict:
        user_id = (user_id or "").strip()
        if not user_id:
            raise InvalidRequest("userId is required")
        result = await self.client.get("recordUser", {
            "userId": user_id,
            "displayName": (display_name or "").strip(),
        })
        require_ok(result, "recordUser")
        return {"ok": True}
