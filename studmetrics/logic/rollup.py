"""Catalog-wide and per-theme statistics."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterable, Literal, Sequence

from studmetrics.ingest.models import Snapshot
from studmetrics.logic.fields import to_number
from studmetrics.logic.signals import positive, safe_mean, safe_median, safe_pct, safe_sum
from studmetrics.logic.status import is_available

Aggregation = Literal["avg", "sum", "min", "max", "count"]

DATE_AXES = frozenset({"scraped_date", "date", "first_seen", "last_seen"})
OTHER_THEME_PREFIX = "other"
BEST_VALUE_LIMIT = 15


@dataclass(slots=True)
class MarketStats:
    total_products: int = 0
    unique_themes: int = 0
    avg_price: float = 0.0
    median_price: float = 0.0
    total_catalog_value: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0
    avg_rating: float = 0.0
    avg_pieces: int = 0
    total_pieces: int = 0
    in_stock_count: int = 0
    in_stock_pct: int = 0
    on_sale_count: int = 0
    new_count: int = 0


@dataclass(slots=True)
class ThemeStats:
    theme: str
    product_count: int
    avg_price: float
    min_price: float
    max_price: float
    avg_rating: float
    in_stock_count: int
    on_sale_count: int
    new_count: int
    avg_price_per_piece: float


@dataclass(slots=True)
class GroupRow:
    name: str
    value: float


@dataclass(slots=True)
class PriceTier:
    label: str
    min: float
    max: float | None
    count: int
    pct: float


PRICE_TIERS: tuple[tuple[str, float, float | None], ...] = (
    ("Under $25", 0, 25),
    ("$25–$50", 25, 50),
    ("$50–$100", 50, 100),
    ("$100–$200", 100, 200),
    ("$200–$400", 200, 400),
    ("$400+", 400, None),
)


def latest_per_product(records: Iterable[Snapshot]) -> list[Snapshot]:
    """Most recent record for each product, newest first.

    Sorted by date descending and inserted into an ordered map that skips
    codes already present. The input is reversed before the stable sort so a
    duplicate (product_code, scraped_date) pair resolves to the record that
    came last in input order.
    """
    ordered = sorted(reversed(list(records)), key=lambda record: record.scraped_date, reverse=True)
    latest: dict[str, Snapshot] = {}
    for record in ordered:
        if record.product_code in latest:
            continue
        latest[record.product_code] = record
    return list(latest.values())


def compute_snapshot(records: Sequence[Snapshot]) -> MarketStats:
    """Point-in-time stats over one record per product.

    Callers dedupe first (see ``latest_per_product``). Prices, ratings and
    piece counts at or below zero are left out of every average.
    """
    if not records:
        return MarketStats()
    prices = positive(record.price_usd for record in records)
    ratings = positive(record.rating for record in records)
    pieces = positive(record.piece_count for record in records)
    in_stock = sum(1 for record in records if is_available(record.availability_status, record.in_stock))
    return MarketStats(
        total_products=len(records),
        unique_themes=len({record.theme for record in records if record.theme}),
        avg_price=round(safe_mean(prices), 2),
        median_price=round(safe_median(prices), 2),
        total_catalog_value=round(safe_sum(prices), 2),
        min_price=min(prices) if prices else 0.0,
        max_price=max(prices) if prices else 0.0,
        avg_rating=round(safe_mean(ratings), 1),
        avg_pieces=round(safe_mean(pieces)),
        total_pieces=int(safe_sum(pieces)),
        in_stock_count=in_stock,
        in_stock_pct=round(safe_pct(in_stock, len(records))),
        on_sale_count=sum(1 for record in records if record.on_sale),
        new_count=sum(1 for record in records if record.is_new),
    )


def same_theme(theme: str | None, wanted: str) -> bool:
    """Theme match ignoring case and surrounding whitespace."""
    return (theme or "").strip().lower() == wanted.strip().lower()


def filter_theme(records: Iterable[Snapshot], theme: str) -> list[Snapshot]:
    return [record for record in records if same_theme(record.theme, theme)]


def compute_theme_snapshot(records: Iterable[Snapshot], theme: str) -> MarketStats:
    return compute_snapshot(latest_per_product(filter_theme(records, theme)))


def compute_time_bucketed(records: Iterable[Snapshot], bucket_key: str = "scraped_date") -> list[dict[str, Any]]:
    """One row per bucket value, ascending, every snapshot in its own bucket."""
    buckets: dict[Any, list[Snapshot]] = defaultdict(list)
    for record in records:
        key = getattr(record, bucket_key, None)
        if key is None:
            continue
        buckets[key].append(record)
    rows: list[dict[str, Any]] = []
    for key in sorted(buckets):
        bucket = buckets[key]
        row: dict[str, Any] = {bucket_key: key}
        row.update(asdict(compute_snapshot(bucket)))
        row["product_count"] = len({record.product_code for record in bucket})
        rows.append(row)
    return rows


def group_label(value: Any) -> str:
    if value is True:
        return "Yes"
    if value is False:
        return "No"
    if value is None or (isinstance(value, str) and not value.strip()):
        return "Unknown"
    return str(value)


AGGREGATIONS: dict[str, Callable[[list[float]], float]] = {
    "avg": lambda values: safe_mean(values),
    "sum": lambda values: safe_sum(values),
    "min": lambda values: min(values) if values else 0.0,
    "max": lambda values: max(values) if values else 0.0,
    "count": lambda values: float(len(values)),
}


def is_date_axis(field_name: str) -> bool:
    return field_name in DATE_AXES or field_name.endswith("_date")


def compute_by_group(
    records: Iterable[Snapshot],
    group_by: str,
    metric: str,
    agg: Aggregation = "avg",
) -> list[GroupRow]:
    """Bucket records by ``group_by`` and reduce ``metric`` per bucket.

    Non-numeric and zero metric values are dropped. Rows come back largest
    value first, except on date axes, which stay chronological.
    """
    reducer = AGGREGATIONS.get(agg)
    if reducer is None:
        raise ValueError(f"Unsupported aggregation {agg!r}")
    groups: dict[str, list[float]] = {}
    for record in records:
        label = group_label(getattr(record, group_by, None))
        values = groups.setdefault(label, [])
        number = to_number(getattr(record, metric, None))
        if number:
            values.append(number)
    rows = [GroupRow(name=name, value=round(reducer(values), 2)) for name, values in groups.items()]
    if is_date_axis(group_by):
        rows.sort(key=lambda row: row.name)
    else:
        rows.sort(key=lambda row: (-row.value, row.name))
    return rows


def theme_summary(records: Iterable[Snapshot]) -> list[ThemeStats]:
    """Per-theme comparison over the latest record per product, biggest first."""
    by_theme: dict[str, list[Snapshot]] = defaultdict(list)
    for record in latest_per_product(records):
        if record.theme:
            by_theme[record.theme].append(record)
    rows: list[ThemeStats] = []
    for theme, members in by_theme.items():
        stats = compute_snapshot(members)
        per_piece = [record.price_per_piece for record in members if record.price_per_piece is not None]
        rows.append(
            ThemeStats(
                theme=theme,
                product_count=stats.total_products,
                avg_price=stats.avg_price,
                min_price=stats.min_price,
                max_price=stats.max_price,
                avg_rating=stats.avg_rating,
                in_stock_count=stats.in_stock_count,
                on_sale_count=stats.on_sale_count,
                new_count=stats.new_count,
                avg_price_per_piece=round(safe_mean(per_piece), 3),
            )
        )
    rows.sort(key=lambda row: (-row.product_count, row.theme))
    return rows


def price_distribution(records: Sequence[Snapshot]) -> list[PriceTier]:
    prices = positive(record.price_usd for record in records)
    tiers: list[PriceTier] = []
    for label, low, high in PRICE_TIERS:
        upper = math.inf if high is None else high
        count = sum(1 for price in prices if low <= price < upper)
        tiers.append(PriceTier(label=label, min=low, max=high, count=count, pct=round(safe_pct(count, len(records)), 1)))
    return tiers


def best_value(records: Iterable[Snapshot], limit: int = BEST_VALUE_LIMIT) -> list[Snapshot]:
    """Latest record per product ranked by lowest price per piece.

    Products without a usable price or piece count are not ranked.
    """
    ranked = [record for record in latest_per_product(records) if record.price_per_piece is not None]
    ranked.sort(key=lambda record: (record.price_per_piece, record.product_code))
    return ranked[: max(limit, 0)]


def exclude_other_themes(records: Iterable[Snapshot]) -> list[Snapshot]:
    """Drop records without a theme or filed under the catch-all "Other(s)" theme."""
    return [
        record
        for record in records
        if record.theme and not record.theme.strip().lower().startswith(OTHER_THEME_PREFIX)
    ]


def distinct_values(records: Iterable[Snapshot], field_name: str) -> list[str]:
    """Sorted distinct non-empty values of a field, for filter dropdowns."""
    values = {getattr(record, field_name, None) for record in records}
    return sorted(str(value) for value in values if value not in (None, ""))
