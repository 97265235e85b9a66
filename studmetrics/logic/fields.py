"""Field resolution for snapshot rows.

Rows come from several tables and enrichment passes, so one logical field can
live under different keys. Each table below lists the candidates in priority
order; a candidate is a column name or a path into nested JSON
(``("details", "product", "variants", 0, "price")``).
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence, Union

FieldPath = Union[str, tuple[Union[str, int], ...]]

PRICE_FIELDS: tuple[FieldPath, ...] = (
    "enriched_price_usd",
    "price_usd",
    ("details", "product", "variants", 0, "price"),
)
LIST_PRICE_FIELDS: tuple[FieldPath, ...] = ("enriched_list_price_usd", "list_price_usd")
RATING_FIELDS: tuple[FieldPath, ...] = ("enriched_rating", "rating")
PIECE_COUNT_FIELDS: tuple[FieldPath, ...] = ("enriched_piece_count", "piece_count")
IMAGE_FIELDS: tuple[FieldPath, ...] = (
    "image_url",
    "img_url",
    "primary_image_url",
    "thumbnail_url",
    "image",
    "product_image_url",
)

TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0"})


def _lookup(row: Any, path: FieldPath) -> Any:
    steps = (path,) if isinstance(path, str) else path
    current = row
    for step in steps:
        if isinstance(step, int):
            if not isinstance(current, Sequence) or isinstance(current, (str, bytes)):
                return None
            if step >= len(current):
                return None
            current = current[step]
        elif isinstance(current, Mapping):
            current = current.get(step)
        else:
            return None
        if current is None:
            return None
    return current


def resolve_field(row: Mapping[str, Any], candidates: Sequence[FieldPath]) -> Any:
    """First candidate value that is neither ``None`` nor blank."""
    for path in candidates:
        value = _lookup(row, path)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        try:
            number = float(Decimal(str(value).strip().lstrip("$").replace(",", "")))
        except (InvalidOperation, ValueError):
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_number(row: Mapping[str, Any], candidates: Sequence[FieldPath]) -> float | None:
    """First candidate that parses to a non-zero number."""
    for path in candidates:
        number = to_number(_lookup(row, path))
        if number:
            return number
    return None


def resolve_price(row: Mapping[str, Any]) -> float | None:
    return resolve_number(row, PRICE_FIELDS)


def resolve_list_price(row: Mapping[str, Any]) -> float | None:
    return resolve_number(row, LIST_PRICE_FIELDS)


def resolve_rating(row: Mapping[str, Any]) -> float | None:
    return resolve_number(row, RATING_FIELDS)


def resolve_piece_count(row: Mapping[str, Any]) -> int | None:
    number = resolve_number(row, PIECE_COUNT_FIELDS)
    return int(number) if number is not None else None


def resolve_image(row: Mapping[str, Any]) -> str | None:
    value = resolve_field(row, IMAGE_FIELDS)
    return str(value) if value is not None else None


def coerce_bool(value: Any) -> bool | None:
    """Database booleans, ints and strings to ``bool``; unknown stays ``None``."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    return None
