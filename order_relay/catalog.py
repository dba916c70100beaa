"""
catalog.py — Catalog normalization and the catalog fetch strategy chain.

The backend lists the catalog in one of two shapes:

    rows     [[category, subcategory, name, price, imageUrl], ...]
    records  [{"name"|"title", "price", "imageUrl"|"image", ...}, ...]

``detect_shape`` decides which one applies by inspecting the first element;
anything else is ``UNKNOWN`` and normalizes to an empty list. Entries without
a name are dropped silently.
"""

import enum
import logging
import math
import re
import time
import unicodedata
from typing import Any, Iterable, List, Sequence

from .errors import UpstreamError, UpstreamRejected
from .models import CatalogItem

log = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 64

_WHITESPACE = re.compile(r"\s+")
_NOT_SLUG = re.compile(r"[^a-z0-9\-_.]")
_LIST_KEYS = ("items", "categories", "data")


class Shape(enum.Enum):
    ROWS = "rows"
    RECORDS = "records"
    EMPTY = "empty"
    UNKNOWN = "unknown"


def detect_shape(entries: Any) -> Shape:
    if not isinstance(entries, list):
        return Shape.UNKNOWN
    if not entries:
        return Shape.EMPTY
    first = entries[0]
    if isinstance(first, (list, tuple)):
        return Shape.ROWS
    if isinstance(first, dict):
        return Shape.RECORDS
    return Shape.UNKNOWN


def slugify(value: Any, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Turns arbitrary text into a short id usable as a UI key.

    NFKC-normalizes, lowercases, turns whitespace runs into hyphens, drops
    everything outside ``[a-z0-9-_.]`` and truncates. Falls back to the current
    time in milliseconds when nothing is left. Idempotent on its own output.
    """
    text = unicodedata.normalize("NFKC", str(value)).lower()
    text = _WHITESPACE.sub("-", text)
    text = _NOT_SLUG.sub("", text)[:max_length]
    return text or str(int(time.time() * 1000))[:max_length]


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_price(value: Any):
    """Coerces a backend price. Missing, non-numeric, non-finite or negative values become 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
    if not math.isfinite(number) or number < 0:
        return 0
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _from_row(row: Sequence, index: int) -> dict:
    cells = list(row) + [None] * max(0, 5 - len(row))
    category, subcategory, name, price, image_url = cells[:5]
    category, subcategory, name = to_text(category), to_text(subcategory), to_text(name)
    return {
        "id": slugify(f"{category}-{subcategory}-{name}-{index}"),
        "category": category,
        "subcategory": subcategory,
        "name": name,
        "price": to_price(price),
        "imageUrl": to_text(image_url),
    }


def _from_record(record: dict, index: int) -> dict:
    category = to_text(record.get("category"))
    subcategory = to_text(record.get("subcategory"))
    name = to_text(_first(record, "name", "title"))
    item_id = to_text(record.get("id"))
    return {
        "id": item_id or slugify(f"{category}-{subcategory}-{name}-{index}"),
        "category": category,
        "subcategory": subcategory,
        "name": name,
        "price": to_price(record.get("price")),
        "imageUrl": to_text(_first(record, "imageUrl", "image")),
    }


def normalize_catalog(entries: Any) -> List[CatalogItem]:
    """
    Converts a backend catalog listing into ``CatalogItem`` objects.

    Args:
        entries (Any): The list returned by the backend, in rows or records shape.

    Returns:
        list[CatalogItem]: One item per input entry with a non-empty name, in input order.
    """
    shape = detect_shape(entries)
    if shape is Shape.ROWS:
        convert, accepts = _from_row, (list, tuple)
    elif shape is Shape.RECORDS:
        convert, accepts = _from_record, dict
    else:
        if shape is Shape.UNKNOWN:
            log.warning(f"Unknown catalog shape ({type(entries).__name__}), returning empty catalog.")
        return []

    items = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, accepts):
            continue
        fields = convert(entry, index)
        if fields["name"]:
            items.append(CatalogItem(**fields))

    dropped = len(entries) - len(items)
    if dropped:
        log.debug(f"Catalog normalization dropped {dropped} of {len(entries)} entries.")
    return items


def extract_listing(result: Any, action: str) -> Any:
    """Pulls the catalog list out of a backend answer (bare list or wrapped in an object)."""
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        if result.get("ok") is False:
            raise UpstreamRejected(action, result.get("error"))
        for key in _LIST_KEYS:
            if key in result:
                return result[key]
    return None


class CatalogService:
    """
    Fetches the catalog through an ordered list of backend actions.

    Actions are tried one after another (never concurrently); the first that
    answers with a usable document wins. Only when all of them fail is the
    last failure raised.
    """

    def __init__(self, client, actions: Iterable[str]):
        self.client = client
        self.actions = tuple(actions)
        if not self.actions:
            raise ValueError("at least one catalog action is required")

    async def fetch(self) -> List[CatalogItem]:
        last_error = None
        for action in self.actions:
            try:
                result = await self.client.get(action)
                listing = extract_listing(result, action)
            except UpstreamError as e:
                log.warning(f"[Action: {action}] Catalog strategy failed ({e.code}), trying next.")
                last_error = e
                continue
            items = normalize_catalog(listing)
            log.info(f"[Action: {action}] Catalog loaded: {len(items)} items.")
            return items
        raise last_error
