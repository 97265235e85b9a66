"""Availability status normalization.

Raw ``availability_status`` values arrive in several vendor formats. The LEGO
API codes are the primary ones::

    A_PRE_ORDER_FOR_DATE   -> "Pre-order this item today, it will ship from ..."
    B_COMING_SOON_AT_DATE  -> "Coming Soon on ..."
    E_AVAILABLE            -> "Available now"
    F_BACKORDER_FOR_DATE   -> "Will ship by ..."
    G_BACKORDER            -> "Will ship in 60 days"
    H_OUT_OF_STOCK         -> "Temporarily out of stock"
    K_SOLD_OUT             -> "Sold out"
    R_RETIRED              -> "Retired Product"

Older rows carry free-text strings ("Available", "backordered", "P_outofstock",
"last chance", ...). Everything collapses to one of the ``StatusCategory``
members below, and every chart, filter and aggregate asks this module whether
a row counts as available instead of reading ``in_stock`` directly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class StatusCategory(str, Enum):
    IN_STOCK = "in_stock"
    LIMITED = "limited"
    BACKORDER = "backorder"
    UNAVAILABLE = "unavailable"
    OUT_OF_STOCK = "out_of_stock"
    RETIRING = "retiring"
    DISCONTINUED = "discontinued"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class StatusInfo:
    label: str
    color: str
    is_available: bool
    sort_order: int


CATEGORY_INFO: Mapping[StatusCategory, StatusInfo] = MappingProxyType(
    {
        StatusCategory.IN_STOCK: StatusInfo("In Stock", "#34d399", True, 1),
        StatusCategory.LIMITED: StatusInfo("Limited", "#818cf8", False, 2),
        StatusCategory.BACKORDER: StatusInfo("Backorder", "#fbbf24", False, 3),
        StatusCategory.UNAVAILABLE: StatusInfo("Unavailable", "#f97316", False, 4),
        StatusCategory.OUT_OF_STOCK: StatusInfo("Out of Stock", "#f87171", False, 5),
        StatusCategory.RETIRING: StatusInfo("Retiring Soon", "#fb923c", False, 6),
        StatusCategory.DISCONTINUED: StatusInfo("Discontinued", "#4b5563", False, 7),
        StatusCategory.UNKNOWN: StatusInfo("Unknown", "#6b7280", False, 8),
    }
)

UNKNOWN_INFO = CATEGORY_INFO[StatusCategory.UNKNOWN]

# Keys are lower-cased and stripped.
STATUS_CATEGORIES: Mapping[str, StatusCategory] = MappingProxyType(
    {
        # LEGO API codes
        "a_pre_order_for_date": StatusCategory.LIMITED,
        "b_coming_soon_at_date": StatusCategory.LIMITED,
        "e_available": StatusCategory.IN_STOCK,
        "f_backorder_for_date": StatusCategory.BACKORDER,
        "g_backorder": StatusCategory.BACKORDER,
        "h_out_of_stock": StatusCategory.OUT_OF_STOCK,
        "k_sold_out": StatusCategory.OUT_OF_STOCK,
        "r_retired": StatusCategory.DISCONTINUED,
        # legacy strings
        "available": StatusCategory.IN_STOCK,
        "available now": StatusCategory.IN_STOCK,
        "in stock": StatusCategory.IN_STOCK,
        "in_stock": StatusCategory.IN_STOCK,
        "instock": StatusCategory.IN_STOCK,
        "pre-order": StatusCategory.LIMITED,
        "preorder": StatusCategory.LIMITED,
        "pre_order": StatusCategory.LIMITED,
        "coming soon": StatusCategory.LIMITED,
        "coming_soon": StatusCategory.LIMITED,
        "backorder": StatusCategory.BACKORDER,
        "backordered": StatusCategory.BACKORDER,
        "temporarily_unavailable": StatusCategory.UNAVAILABLE,
        "temporarily unavailable": StatusCategory.UNAVAILABLE,
        "temp_unavailable": StatusCategory.UNAVAILABLE,
        "out_of_stock": StatusCategory.OUT_OF_STOCK,
        "out of stock": StatusCategory.OUT_OF_STOCK,
        "p_outofstock": StatusCategory.OUT_OF_STOCK,
        "outofstock": StatusCategory.OUT_OF_STOCK,
        "sold_out": StatusCategory.OUT_OF_STOCK,
        "sold out": StatusCategory.OUT_OF_STOCK,
        "f_retiring": StatusCategory.RETIRING,
        "retiring": StatusCategory.RETIRING,
        "retiring_soon": StatusCategory.RETIRING,
        "retiring soon": StatusCategory.RETIRING,
        "last_chance": StatusCategory.RETIRING,
        "last chance": StatusCategory.RETIRING,
        "leaving_soon": StatusCategory.RETIRING,
        "leaving soon": StatusCategory.RETIRING,
        "retired": StatusCategory.DISCONTINUED,
        "retired product": StatusCategory.DISCONTINUED,
        "discontinued": StatusCategory.DISCONTINUED,
    }
)

# Order matters: the first pattern that matches wins.
FUZZY_PATTERNS: tuple[tuple[re.Pattern[str], StatusCategory], ...] = (
    # "unavailable" must not read as "available"
    (re.compile(r"(?<![a-z])available|(?<![a-z])in[\s_-]?stock"), StatusCategory.IN_STOCK),
    (re.compile(r"back[\s_-]?order"), StatusCategory.BACKORDER),
    (re.compile(r"pre[\s_-]?order|coming[\s_-]?soon"), StatusCategory.LIMITED),
    (re.compile(r"retiring|leaving|last[\s_-]?chance"), StatusCategory.RETIRING),
    (re.compile(r"discontinu|retired"), StatusCategory.DISCONTINUED),
    (re.compile(r"sold[\s_-]?out|out[\s_-]?of[\s_-]?stock"), StatusCategory.OUT_OF_STOCK),
    (re.compile(r"unavailable|temp"), StatusCategory.UNAVAILABLE),
)

SOLD_OUT_RE = re.compile(r"sold[\s_-]?out")
VENDOR_CODE_RE = re.compile(r"^[A-Z]_")
MAX_CLEAN_LABEL_LENGTH = 30


def _from_flag(in_stock: bool | None) -> StatusCategory | None:
    if in_stock is None:
        return None
    return StatusCategory.IN_STOCK if in_stock else StatusCategory.OUT_OF_STOCK


def normalize_status(raw: str | None, in_stock: bool | None = None) -> StatusCategory:
    """Map a raw status string and the optional in-stock flag to a category.

    Exact table first, then the fuzzy patterns in order, then the flag. An
    ``in_stock`` of ``None`` means the flag was not observed.
    """
    text = str(raw).strip().lower() if raw is not None else ""
    if not text:
        return _from_flag(in_stock) or StatusCategory.UNKNOWN

    category = STATUS_CATEGORIES.get(text)
    if category is not None:
        return category

    for pattern, fuzzy_category in FUZZY_PATTERNS:
        if pattern.search(text):
            return fuzzy_category

    return _from_flag(in_stock) or StatusCategory.UNKNOWN


def get_status_info(category: StatusCategory | str | None) -> StatusInfo:
    try:
        return CATEGORY_INFO[StatusCategory(category)]
    except ValueError:
        return UNKNOWN_INFO


def get_display_label(raw: str | None, in_stock: bool | None = None) -> str:
    """Human label for a status: the raw text when it reads cleanly.

    Short vendor strings ("Available now") pass through; cryptic codes
    ("F_BACKORDER_FOR_DATE") and long sentences collapse to the category label.
    """
    text = str(raw).strip() if raw is not None else ""
    if text and len(text) < MAX_CLEAN_LABEL_LENGTH and not VENDOR_CODE_RE.match(text):
        return text
    return get_status_info(normalize_status(raw, in_stock)).label


def get_short_label(raw: str | None, in_stock: bool | None = None) -> str:
    return get_status_info(normalize_status(raw, in_stock)).label


def is_available(raw: str | None, in_stock: bool | None = None) -> bool:
    return get_status_info(normalize_status(raw, in_stock)).is_available


def is_sold_out(raw: str | None) -> bool:
    """Sold-out spellings share the out-of-stock category but mark a product exit."""
    if raw is None:
        return False
    return bool(SOLD_OUT_RE.search(str(raw).strip().lower()))


def status_color(raw: str | None, in_stock: bool | None = None) -> str:
    return get_status_info(normalize_status(raw, in_stock)).color


def all_categories() -> list[tuple[StatusCategory, StatusInfo]]:
    """Categories for chart legends, in display order, without ``unknown``."""
    entries = [(key, info) for key, info in CATEGORY_INFO.items() if key is not StatusCategory.UNKNOWN]
    return sorted(entries, key=lambda item: item[1].sort_order)


def label_sort_key(label: str) -> tuple[int, str]:
    """Sort key placing category labels in legend order, unknown labels last."""
    for info in CATEGORY_INFO.values():
        if info.label == label:
            return (info.sort_order, label)
    return (len(CATEGORY_INFO) + 1, label)
