import math
import re

_TRAILING_ZEROS = re.compile(r"\.0+$")


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _number(text: str) -> float | None:
    if not text:
        return None
    try:
        n = float(text)
    except ValueError:
        return None
    return None if math.isnan(n) else n


def ids_match(stored, requested) -> bool:
    """Whether a stored row id and a requested id denote the same record.

    The row store may hand ids back as numbers ("123" -> 123, or 123.0), so
    after exact text equality we fall back to numeric equality and then to
    comparing with any trailing ".0" stripped. The stored value is never
    rewritten.
    """
    a = _text(stored)
    b = _text(requested)
    if a == b:
        return True

    na, nb = _number(a), _number(b)
    if na is not None and nb is not None and na == nb:
        return True

    return bool(a) and _TRAILING_ZEROS.sub("", a) == _TRAILING_ZEROS.sub("", b)


def find_position(records: list[dict], requested_id, field: str = "id") -> int | None:
    """Position of the first record whose ``field`` matches ``requested_id``."""
    for position, record in enumerate(records):
        if ids_match(record.get(field), requested_id):
            return position
    return None
