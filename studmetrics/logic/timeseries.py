"""Per-product event detection over the snapshot history."""

from __future__ import annotations

import os
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from studmetrics.ingest.models import Snapshot
from studmetrics.logic.signals import Direction, discount_percentage, percent_change, price_direction
from studmetrics.logic.status import (
    StatusCategory,
    get_display_label,
    get_short_label,
    is_sold_out,
    label_sort_key,
    normalize_status,
)

EVENT_CAP = int(os.environ.get("ALERT_EVENT_CAP", 50))
DEBUT_WINDOW_DATES = int(os.environ.get("DEBUT_WINDOW_DATES", 3))

# Destinations that always count as a product leaving the shelf.
EXIT_CATEGORIES = frozenset({StatusCategory.RETIRING, StatusCategory.DISCONTINUED})


@dataclass(slots=True)
class PriceSwing:
    product_code: str
    slug: str | None
    product_name: str | None
    theme: str | None
    first_price: float
    last_price: float
    change: float
    change_pct: float
    abs_change: float
    abs_pct: float
    max_price: float
    min_price: float
    direction: Direction
    first_date: str
    last_date: str


@dataclass(slots=True)
class StatusTransition:
    product_code: str
    slug: str | None
    product_name: str | None
    theme: str | None
    from_category: StatusCategory
    to_category: StatusCategory
    from_label: str
    to_label: str
    date: str
    price: float | None
    sold_out: bool = False


@dataclass(slots=True)
class NewDebut:
    product_code: str
    slug: str | None
    product_name: str | None
    theme: str | None
    price: float
    piece_count: int | None
    is_new: bool
    first_seen: str


@dataclass(slots=True)
class SaleStart:
    product_code: str
    slug: str | None
    product_name: str | None
    theme: str | None
    date: str
    price: float | None
    list_price: float | None
    discount: float
    sale_pct: float


@dataclass(slots=True)
class StatusDistribution:
    statuses: list[str] = field(default_factory=list)
    data: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class DateRange:
    first: str
    last: str


@dataclass(slots=True)
class AlertSummary:
    price_swings: list[PriceSwing]
    new_debuts: list[NewDebut]
    status_changes: list[StatusTransition]
    discontinued: list[StatusTransition]
    new_sales: list[SaleStart]
    status_over_time: StatusDistribution
    total_products: int
    date_range: DateRange | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "priceSwings": [_event_dict(item) for item in self.price_swings],
            "newDebuts": [_event_dict(item) for item in self.new_debuts],
            "statusChanges": [_event_dict(item) for item in self.status_changes],
            "discontinued": [_event_dict(item) for item in self.discontinued],
            "newSales": [_event_dict(item) for item in self.new_sales],
            "statusOverTime": {
                "statuses": list(self.status_over_time.statuses),
                "data": [dict(row) for row in self.status_over_time.data],
            },
            "totalProducts": self.total_products,
            "dateRange": asdict(self.date_range) if self.date_range else None,
        }


def _plain(items: list[tuple[str, Any]]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in items}


def _event_dict(event: Any) -> dict[str, Any]:
    return asdict(event, dict_factory=_plain)


def partition_by_product(snapshots: Iterable[Snapshot]) -> dict[str, list[Snapshot]]:
    """Group snapshots per product, one per date, oldest first.

    When the same (product_code, scraped_date) pair appears more than once the
    last record in input order is kept.
    """
    by_product: dict[str, dict[str, Snapshot]] = defaultdict(dict)
    for snapshot in snapshots:
        by_product[snapshot.product_code][snapshot.scraped_date] = snapshot
    return {
        code: [dated[day] for day in sorted(dated)]
        for code, dated in by_product.items()
    }


def price_swing(history: list[Snapshot]) -> PriceSwing | None:
    priced = [record for record in history if record.usable_price is not None]
    if len(priced) < 2:
        return None
    first, last = priced[0], priced[-1]
    prices = [record.usable_price for record in priced]
    change = last.price_usd - first.price_usd
    change_pct = percent_change(last.price_usd, first.price_usd) or 0.0
    return PriceSwing(
        product_code=last.product_code,
        slug=last.slug,
        product_name=last.product_name,
        theme=last.theme,
        first_price=first.price_usd,
        last_price=last.price_usd,
        change=change,
        change_pct=change_pct,
        abs_change=abs(change),
        abs_pct=abs(change_pct),
        max_price=max(prices),
        min_price=min(prices),
        direction=price_direction(change),
        first_date=first.scraped_date,
        last_date=last.scraped_date,
    )


def recent_dates(all_dates: list[str], window: int = DEBUT_WINDOW_DATES) -> frozenset[str]:
    if window <= 0:
        return frozenset()
    return frozenset(all_dates[-window:])


def is_exit_transition(transition: StatusTransition) -> bool:
    """Retiring/discontinued or sold-out destinations, or a fresh stock-out from in stock.

    A backorder that turns into a plain out-of-stock code is a relabel, not an exit.
    """
    if transition.to_category in EXIT_CATEGORIES or transition.sold_out:
        return True
    return (
        transition.to_category is StatusCategory.OUT_OF_STOCK
        and transition.from_category is StatusCategory.IN_STOCK
    )


def _transition(before: Snapshot, after: Snapshot, old: StatusCategory, new: StatusCategory) -> StatusTransition:
    return StatusTransition(
        product_code=after.product_code,
        slug=after.slug,
        product_name=after.product_name,
        theme=after.theme,
        from_category=old,
        to_category=new,
        from_label=get_display_label(before.availability_status, before.in_stock),
        to_label=get_display_label(after.availability_status, after.in_stock),
        date=after.scraped_date,
        price=after.usable_price,
        sold_out=is_sold_out(after.availability_status),
    )


def _sale_start(after: Snapshot) -> SaleStart:
    price = after.usable_price
    list_price = after.list_price_usd
    if after.discount_usd is not None:
        discount = after.discount_usd
    elif price is not None and list_price is not None and list_price > price:
        discount = list_price - price
    else:
        discount = 0.0
    if after.sale_percentage is not None:
        sale_pct = after.sale_percentage
    else:
        sale_pct = discount_percentage(price, list_price)
    return SaleStart(
        product_code=after.product_code,
        slug=after.slug,
        product_name=after.product_name,
        theme=after.theme,
        date=after.scraped_date,
        price=price,
        list_price=list_price,
        discount=discount,
        sale_pct=sale_pct,
    )


def _newest_first(events: list, cap: int) -> list:
    events.sort(key=lambda event: event.product_code)
    events.sort(key=lambda event: event.date, reverse=True)
    return events[:cap]


def compute_alerts(
    snapshots: Iterable[Snapshot],
    *,
    cap: int = EVENT_CAP,
    debut_window: int = DEBUT_WINDOW_DATES,
) -> AlertSummary:
    """Derive every alert collection from a fully materialized snapshot set.

    Input order does not matter and the input is never mutated.
    """
    histories = partition_by_product(snapshots)
    all_dates = sorted({record.scraped_date for history in histories.values() for record in history})
    window = recent_dates(all_dates, debut_window)

    swings: list[PriceSwing] = []
    debuts: list[NewDebut] = []
    transitions: list[StatusTransition] = []
    sales: list[SaleStart] = []
    label_counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for history in histories.values():
        swing = price_swing(history)
        if swing is not None:
            swings.append(swing)

        first = history[0]
        if first.scraped_date in window:
            debuts.append(
                NewDebut(
                    product_code=first.product_code,
                    slug=first.slug,
                    product_name=first.product_name,
                    theme=first.theme,
                    price=first.usable_price or 0.0,
                    piece_count=first.piece_count,
                    is_new=first.is_new,
                    first_seen=first.scraped_date,
                )
            )

        previous: Snapshot | None = None
        previous_category: StatusCategory | None = None
        for record in history:
            category = normalize_status(record.availability_status, record.in_stock)
            label_counts[record.scraped_date][get_short_label(record.availability_status, record.in_stock)] += 1
            if previous is not None:
                if category is not previous_category:
                    transitions.append(_transition(previous, record, previous_category, category))
                if not previous.on_sale and record.on_sale:
                    sales.append(_sale_start(record))
            previous, previous_category = record, category

    swings.sort(key=lambda swing: (-swing.abs_pct, swing.product_code))
    debuts.sort(key=lambda debut: (-debut.price, debut.product_code))
    transitions = _newest_first(transitions, len(transitions))
    exits = [transition for transition in transitions if is_exit_transition(transition)]

    return AlertSummary(
        price_swings=swings[:cap],
        new_debuts=debuts[:cap],
        status_changes=transitions[:cap],
        discontinued=exits[:cap],
        new_sales=_newest_first(sales, cap),
        status_over_time=status_distribution(all_dates, label_counts),
        total_products=len(histories),
        date_range=DateRange(first=all_dates[0], last=all_dates[-1]) if all_dates else None,
    )


def status_distribution(
    all_dates: list[str], label_counts: Mapping[str, Mapping[str, int]]
) -> StatusDistribution:
    """Stacked-area rows: every row carries every label, zero-filled."""
    labels = sorted({label for counts in label_counts.values() for label in counts}, key=label_sort_key)
    data: list[dict[str, Any]] = []
    for day in all_dates:
        counts = label_counts.get(day, {})
        row: dict[str, Any] = {"date": day}
        for label in labels:
            row[label] = counts.get(label, 0)
        data.append(row)
    return StatusDistribution(statuses=labels, data=data)
