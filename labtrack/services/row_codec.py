"""Conversion between raw table rows and header-keyed records.

Cell typing rules:
- ``usedBy`` and ``fields`` hold JSON lists encoded as strings; an unreadable
  cell decodes to an empty list.
- ``qty`` and ``minQty`` are numbers when non-empty and stay "" when empty.
- ``id`` and ``itemId`` are always strings, whatever the store returned.
"""
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

LIST_FIELDS = frozenset({"usedBy", "fields"})
NUMBER_FIELDS = frozenset({"qty", "minQty"})
ID_FIELDS = frozenset({"id", "itemId"})


def _to_id(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: Any) -> Any:
    if value == "" or value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        n = value
    else:
        try:
            n = float(str(value).strip())
        except ValueError:
            logger.debug("Leaving non-numeric quantity %r untyped", value)
            return value
    if isinstance(n, float) and n.is_integer():
        return int(n)
    return n


def _to_list(value: Any) -> list:
    if isinstance(value, list):
        return list(value)
    if not isinstance(value, str) or not value.strip():
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        return []
    return parsed if isinstance(parsed, list) else []


def decode_cell(header: str, value: Any) -> Any:
    if header in LIST_FIELDS:
        return _to_list(value)
    if header in ID_FIELDS:
        return _to_id(value)
    if header in NUMBER_FIELDS:
        return _to_number(value)
    return value


def decode_row(headers: list[str], row: list[Any]) -> dict[str, Any]:
    padded = list(row) + [""] * (len(headers) - len(row))
    return {h: decode_cell(h, padded[i]) for i, h in enumerate(headers)}


def decode(headers: list[str], rows: list[list[Any]]) -> list[dict[str, Any]]:
    return [decode_row(headers, row) for row in rows]


def encode_cell(header: str, value: Any) -> Any:
    if value is None:
        return ""
    if header in LIST_FIELDS and isinstance(value, (list, tuple)):
        return json.dumps(list(value))
    return value


def encode(record: dict[str, Any], headers: list[str]) -> list[Any]:
    """Row for ``record`` in header order; fields not in ``headers`` are dropped."""
    return [encode_cell(h, record.get(h)) for h in headers]
