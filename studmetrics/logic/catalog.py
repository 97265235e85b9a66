"""Catalog browsing: filtering and comparing the latest record per product."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from studmetrics.ingest.models import Snapshot
from studmetrics.logic.fields import to_number
from studmetrics.logic.rollup import latest_per_product, same_theme
from studmetrics.logic.status import is_available

MAX_COMPARE = 4
DEFAULT_LIMIT = 200


@dataclass(slots=True)
class ProductFilter:
    search: str | None = None
    theme: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_pieces: int | None = None
    max_pieces: int | None = None
    min_rating: float | None = None
    age_range: str | None = None
    availability: str | None = None
    in_stock: bool = False
    on_sale: bool = False
    is_new: bool = False
    sort_by: str | None = None
    sort_dir: Literal["asc", "desc"] = "desc"
    limit: int = DEFAULT_LIMIT


def _selected(value: str | None) -> bool:
    return bool(value) and value != "all"


def _within(value: float | int | None, low: float | None, high: float | None) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def matches(record: Snapshot, product_filter: ProductFilter) -> bool:
    if product_filter.search:
        needle = product_filter.search.strip().lower()
        if needle not in (record.product_name or "").lower():
            return False
    if _selected(product_filter.theme) and not same_theme(record.theme, product_filter.theme):
        return False
    if not _within(record.price_usd, product_filter.min_price, product_filter.max_price):
        return False
    if not _within(record.piece_count, product_filter.min_pieces, product_filter.max_pieces):
        return False
    if product_filter.min_rating is not None and (record.rating or 0) < product_filter.min_rating:
        return False
    if _selected(product_filter.age_range) and record.age_range != product_filter.age_range:
        return False
    if _selected(product_filter.availability) and record.availability_status != product_filter.availability:
        return False
    if product_filter.in_stock and not is_available(record.availability_status, record.in_stock):
        return False
    if product_filter.on_sale and not record.on_sale:
        return False
    if product_filter.is_new and not record.is_new:
        return False
    return True


def _sort_key(key: str, sign: int):
    def sort_key(record: Snapshot) -> tuple[bool, float]:
        value = to_number(getattr(record, key, None))
        # missing values go last in either direction
        return (value is None, sign * (value or 0))

    return sort_key


def filter_products(records: Iterable[Snapshot], product_filter: ProductFilter) -> list[Snapshot]:
    """Latest record per product matching the filter, sorted and limited."""
    found = [record for record in latest_per_product(records) if matches(record, product_filter)]
    if product_filter.sort_by:
        sign = 1 if product_filter.sort_dir == "asc" else -1
        found.sort(key=_sort_key(product_filter.sort_by, sign))
    return found[: max(product_filter.limit, 0)]


def compare_products(records: Iterable[Snapshot], slugs: Sequence[str]) -> list[Snapshot]:
    """Latest record for up to four slugs, in the order requested."""
    wanted = list(dict.fromkeys(slugs))[:MAX_COMPARE]
    by_slug: dict[str, Snapshot] = {}
    for record in latest_per_product(records):
        if record.slug in wanted and record.slug not in by_slug:
            by_slug[record.slug] = record
    return [by_slug[slug] for slug in wanted if slug in by_slug]
