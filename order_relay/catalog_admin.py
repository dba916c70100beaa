"""
catalog_admin.py — Catalog row additions and removals.

Rows are added from the admin upload form: the text fields and the image are
forwarded in one signed ``addCategory`` call, the image base64-encoded in the
JSON body. Rows are removed by spreadsheet row number (row 1 is the header).
"""

import base64
import logging
import math
from typing import Any

from .admins import require_ok
from .catalog import to_text
from .errors import InvalidRequest

log = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 2 * 1024 * 1024
FIRST_DATA_ROW = 2


def parse_form_price(value: Any):
    """Strict price parsing for admin input; unlike catalog reads, bad values are rejected."""
    text = to_text(value)
    try:
        number = float(text)
    except ValueError:
        raise InvalidRequest(f"price {text!r} is not a number")
    if not math.isfinite(number) or number < 0:
        raise InvalidRequest(f"price {text!r} is out of range")
    return int(number) if number.is_integer() else number


def parse_row_number(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise InvalidRequest("rowNumber is required")
    try:
        number = int(str(value).strip())
    except ValueError:
        raise InvalidRequest(f"rowNumber {value!r} is not an integer")
    if number < FIRST_DATA_ROW:
        raise InvalidRequest(f"rowNumber {number} points at the header")
    return number


class CategoryAdmin:
    """Forwards catalog row mutations to the backend."""

    def __init__(self, client):
        self.client = client

    async def add_category(self, category: str, subcategory: str, name: str, price: Any,
                           image: bytes, filename: str = "", content_type: str = "") -> dict:
        """
        Adds one catalog row with its image.

        Args:
            category (str): Top-level category.
            subcategory (str): Second-level category.
            name (str): Item name.
            price (str | int | float): Unit price as entered.
            image (bytes): Raw image file content.
            filename (str): Original file name.
            content_type (str): MIME type reported by the browser.

        Returns:
            dict: ``{"ok": True}``.

        Raises:
            InvalidRequest: If a field or the image is missing, the price is not a
                non-negative number, or the image exceeds MAX_IMAGE_BYTES. No backend
                call is made in these cases.
            UpstreamRejected: If the backend refuses the row.
        """
        fields = {"category": to_text(category), "subcategory": to_text(subcategory), "name": to_text(name)}
        missing = [key for key, value in fields.items() if not value]
        if missing:
            raise InvalidRequest(f"missing fields: {', '.join(missing)}")
        if to_text(price) == "":
            raise InvalidRequest("missing fields: price")
        if not image:
            raise InvalidRequest("image is required")
        if len(image) > MAX_IMAGE_BYTES:
            raise InvalidRequest(f"image is {len(image)} bytes", code="image_too_large")

        payload = dict(fields)
        payload["price"] = parse_form_price(price)
        payload["image"] = {
            "fileName": filename or "upload",
            "mimeType": content_type or "application/octet-stream",
            "data": base64.b64encode(image).decode("ascii"),
        }
        require_ok(await self.client.post("addCategory", payload), "addCategory")
        log.info(f"[Catalog] Row added: {fields['category']} / {fields['subcategory']} / {fields['name']} "
                 f"({len(image)} bytes image).")
        return {"ok": True}

    async def remove_category(self, row_number: Any) -> dict:
        number = parse_row_number(row_number)
        require_ok(await self.client.post("removeCategory", {"rowNumber": number}), "removeCategory")
        log.info(f"[Catalog] Row {number} removed.")
        return {"ok": True}
