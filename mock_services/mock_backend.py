"""
mock_backend.py — Mock Implementation of the Spreadsheet Backend (signed RPC endpoint)

This module provides a simulated backend for local development and end-to-end
tests of the relay. It exposes one FastAPI route, ``/exec``, that behaves like the
script endpoint in front of the spreadsheet: every call names an ``action`` and
must carry a valid ``ts``/``sig`` pair.

Simulation Scenarios:
    • Signature check over ``action.ts.userId`` with a freshness window (HTTP 403 on failure)
    • First-admin claim that only succeeds while no admin exists
    • ``legacy_only`` mode in which the newer catalog action is unavailable (HTTP 404)

Endpoints:
    GET  /exec — read actions (ping, getCategories, checkAdmin, ...)
    POST /exec — write actions (registerFirstAdmin, addAdmin, addCategory, placeOrder, ...)

Port:
    Default: 8002 (HTTP)
"""

import base64
import json
import logging
import os
import threading
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request

from order_relay.signer import verify

log = logging.getLogger(__name__)

DEFAULT_ROWS = [
    ["食品", "麺類", "塩ラーメン", 800, "http://example.invalid/img/shio.png"],
    ["食品", "麺類", "醤油ラーメン", 850, "http://example.invalid/img/shoyu.png"],
    ["飲料", "ソフトドリンク", "烏龍茶", 300, ""],
]


class SheetStore:
    """
    In-memory stand-in for the spreadsheet tabs.

    All mutations run under one lock, the same way the real backend serializes
    its own writes.
    """

    def __init__(self, rows=None):
        self.rows = [list(r) for r in (rows if rows is not None else DEFAULT_ROWS)]
        self.admins: Dict[str, str] = {}
        self.users: Dict[str, str] = {}
        self.orders = []
        self.images = []
        self.lock = threading.Lock()

    def register_first_admin(self, user_id: str, display_name: str) -> Dict[str, Any]:
        with self.lock:
            if self.admins:
                return {"ok": False, "error": "admin_exists"}
            self.admins[user_id] = display_name
            return {"ok": True}

    def add_admin(self, user_id: str) -> Dict[str, Any]:
        with self.lock:
            self.admins.setdefault(user_id, self.users.get(user_id, ""))
            return {"ok": True}

    def remove_admin(self, user_id: str) -> Dict[str, Any]:
        with self.lock:
            if self.admins.pop(user_id, None) is None:
                return {"ok": False, "error": "not_found"}
            return {"ok": True}

    def add_row(self, data: Dict[str, Any]) -> Dict[str, Any]:
        image = data.get("image") or {}
        with self.lock:
            self.images.append(base64.b64decode(image.get("data", "")))
            url = f"http://example.invalid/uploads/{len(self.images)}/{image.get('fileName', 'upload')}"
            self.rows.append([data.get("category", ""), data.get("subcategory", ""), data.get("name", ""),
                              data.get("price", 0), url])
            return {"ok": True}

    def remove_row(self, row_number) -> Dict[str, Any]:
        with self.lock:
            index = int(row_number) - 2
            if not 0 <= index < len(self.rows):
                return {"ok": False, "error": "not_found"}
            self.rows.pop(index)
            return {"ok": True}

    def place_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        with self.lock:
            self.orders.append(order)
            order_id = f"ORD-{len(self.orders)}"
            return {"ok": True, "orderId": order_id, "total": order.get("total")}


def create_backend_app(secret: str, store: Optional[SheetStore] = None, ttl: int = 300,
                       legacy_only: bool = False, clock=time.time) -> FastAPI:
    """
    Creates the mock backend.

    Args:
        secret (str): Shared signing secret expected from the relay.
        store (SheetStore, optional): Backing data; a fresh store with sample rows by default.
        ttl (int): Accepted clock difference for ``ts`` in seconds.
        legacy_only (bool): Answer the newer catalog action with HTTP 404.
        clock (callable): Source of the current unix time.

    Returns:
        FastAPI: The mock application. The store is available as ``app.state.store``.
    """
    store = store or SheetStore()
    app = FastAPI(title="Mock Spreadsheet Backend")
    app.state.store = store

    def check_signature(action: str, params) -> None:
        ts, sig = params.get("ts", ""), params.get("sig", "")
        user_id = params.get("userId", "")
        try:
            age = abs(clock() - int(ts))
        except ValueError:
            raise HTTPException(status_code=403, detail="bad_ts")
        if age > ttl:
            log.warning(f"[BACKEND] {action}: stale signature ({age:.0f}s).")
            raise HTTPException(status_code=403, detail="stale")
        if not verify(secret, action, ts, user_id, sig):
            log.warning(f"[BACKEND] {action}: signature mismatch.")
            raise HTTPException(status_code=403, detail="bad_sig")

    def dispatch(action: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if action == "ping":
            return {"ok": True, "pong": True}
        if action == "getCategories":
            if legacy_only:
                raise HTTPException(status_code=404, detail="unknown action")
            return {"ok": True, "items": store.rows}
        if action == "listCategories":
            return store.rows
        if action == "addCategory":
            return store.add_row(data)
        if action == "removeCategory":
            return store.remove_row(data.get("rowNumber", 0))
        if action == "checkAdmin":
            return {"ok": True, "isAdmin": data.get("userId", "") in store.admins}
        if action == "checkFirstAdmin":
            return {"ok": True, "hasAnyAdmin": bool(store.admins)}
        if action == "registerFirstAdmin":
            return store.register_first_admin(data.get("userId", ""), data.get("displayName", ""))
        if action == "getAdmins":
            return {"ok": True, "admins": [{"userId": k, "displayName": v} for k, v in store.admins.items()]}
        if action == "addAdmin":
            return store.add_admin(data.get("targetUserId", ""))
        if action == "removeAdmin":
            return store.remove_admin(data.get("targetUserId", ""))
        if action == "getUsers":
            return {"ok": True, "users": [{"userId": k, "displayName": v} for k, v in store.users.items()]}
        if action == "recordUser":
            with store.lock:
                store.users[data.get("userId", "")] = data.get("displayName", "")
            return {"ok": True}
        if action == "placeOrder":
            if not data.get("lines"):
                return {"ok": False, "error": "empty_order"}
            return store.place_order(data)
        return {"ok": False, "error": "unknown_action"}

    @app.get("/exec")
    def handle_get(request: Request):
        params = dict(request.query_params)
        action = params.get("action", "")
        check_signature(action, params)
        log.info(f"[BACKEND] GET {action}")
        return dispatch(action, params)

    @app.post("/exec")
    async def handle_post(request: Request):
        params = dict(request.query_params)
        try:
            body = json.loads(await request.body() or b"{}")
        except ValueError:
            raise HTTPException(status_code=400, detail="bad_json")
        action = body.get("action", "")
        check_signature(action, params)
        log.info(f"[BACKEND] POST {action}")
        return dispatch(action, body)

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    app = create_backend_app(os.environ.get("GAS_SHARED_SECRET", ""),
                             ttl=int(os.environ.get("SIG_TTL", "300")))
    uvicorn.run(app, host="0.0.0.0", port=8002)
