"""
orders.py — Order submission guard.

Validates a submitted cart, recomputes its total, forwards the ``placeOrder``
action and reconciles the backend's acknowledgment.

Flow:
1. Reject empty or malformed carts locally (no backend call).
2. Recompute ``total = Σ price·qty`` from the submitted lines. A client-declared
   total is ignored. Prices are taken as submitted; they are not checked
   against the catalog.
3. Forward ``{userId, lines, note, total}`` to the backend.
4. Accept only an explicit ``ok: true``; answer with the backend's order id and
   the relay's own total.
"""

import logging
import math
from typing import Any, List

from pydantic import ValidationError

from .admins import require_ok
from .errors import InvalidOrder, InvalidRequest
from .models import CartLine

log = logging.getLogger(__name__)


def parse_lines(raw_lines: Any) -> List[CartLine]:
    if raw_lines is None:
        raise InvalidOrder("cart lines are missing")
    if not isinstance(raw_lines, (list, tuple)):
        raise InvalidOrder("cart lines must be a list")
    if not raw_lines:
        raise InvalidOrder("cart is empty")
    lines = []
    for position, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise InvalidOrder(f"line {position} is not an object")
        try:
            lines.append(CartLine(**raw))
        except ValidationError as e:
            raise InvalidOrder(f"line {position} is invalid: {e.errors()[0].get('msg')}")
    return lines


def compute_total(lines: List[CartLine]):
    try:
        total = sum(line.price * line.qty for line in lines)
    except OverflowError:
        raise InvalidOrder("order total is out of range")
    if isinstance(total, float) and not math.isfinite(total):
        raise InvalidOrder("order total is out of range")
    if isinstance(total, float) and total.is_integer():
        return int(total)
    return total


class OrderGuard:
    """Validates and forwards order submissions."""

    def __init__(self, client):
        self.client = client

    async def submit(self, raw_body: Any) -> dict:
        """
        Submits one order.

        Args:
            raw_body (dict): ``{liffUserId|userId, items|lines, note}`` as posted by the client.

        Returns:
            dict: ``{"ok": True, "orderId": <backend id or None>, "total": <recomputed total>}``.

        Raises:
            InvalidRequest: If the body is not a JSON object.
            InvalidOrder: If the cart is missing, empty, has a malformed line or an out-of-range total.
            UpstreamRejected: If the backend does not answer with ``ok: true``.
            UpstreamError: For transport, HTTP or format failures.
        """
        if not isinstance(raw_body, dict):
            raise InvalidRequest("order body must be an object")

        raw_lines = raw_body.get("items")
        if raw_lines is None:
            raw_lines = raw_body.get("lines")
        lines = parse_lines(raw_lines)

        user_id = str(raw_body.get("liffUserId") or raw_body.get("userId") or "").strip()
        note = raw_body.get("note")
        note = "" if note is None else str(note)
        total = compute_total(lines)

        if "total" in raw_body and raw_body.get("total") != total:
            log.info(f"[User: {user_id or '-'}] Ignoring client total {raw_body.get('total')!r}, "
                     f"recomputed {total}.")

        log.info(f"[User: {user_id or '-'}] Forwarding order: {len(lines)} lines, total {total}.")
        result = await self.client.post("placeOrder", {
            "userId": user_id,
            "lines": [line.model_dump() for line in lines],
            "note": note,
            "total": total,
        })
        result = require_ok(result, "placeOrder")

        order_id = result.get("orderId")
        backend_total = result.get("total")
        if backend_total is not None and backend_total != total:
            log.warning(f"[Order: {order_id}] Backend total {backend_total!r} differs from "
                        f"relay total {total}; answering with relay total.")
        log.info(f"[Order: {order_id}] Order accepted by backend.")
        return {"ok": True, "orderId": order_id, "total": total}
