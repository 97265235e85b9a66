"""Ranking, filtering and paging of derived alert events for display."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Sequence, TypeVar

from studmetrics.logic.timeseries import AlertSummary, NewDebut, PriceSwing

T = TypeVar("T")

SwingFilter = Literal["all", "drops", "increases"]

MAX_THEME_NAME = 20


@dataclass(slots=True)
class Page:
    items: list
    page: int
    page_size: int
    total: int
    pages: int


@dataclass(slots=True)
class AlertOverview:
    price_changes: int
    new_debuts: int
    status_changes: int
    discontinued: int
    new_sales: int
    biggest_drop: PriceSwing | None
    biggest_increase: PriceSwing | None


@dataclass(slots=True)
class ThemeDebuts:
    name: str
    count: int
    value: int


def _largest(swings: Sequence[PriceSwing], direction: str) -> PriceSwing | None:
    candidates = [swing for swing in swings if swing.direction == direction]
    if not candidates:
        return None
    return max(candidates, key=lambda swing: swing.abs_pct)


def biggest_drop(swings: Sequence[PriceSwing]) -> PriceSwing | None:
    return _largest(swings, "down")


def biggest_increase(swings: Sequence[PriceSwing]) -> PriceSwing | None:
    return _largest(swings, "up")


def filter_swings(swings: Sequence[PriceSwing], mode: SwingFilter = "all") -> list[PriceSwing]:
    """Swings for one table tab; ``all`` hides flat products."""
    if mode == "drops":
        return [swing for swing in swings if swing.direction == "down"]
    if mode == "increases":
        return [swing for swing in swings if swing.direction == "up"]
    return [swing for swing in swings if swing.direction != "flat"]


def truncate(items: Sequence[T], limit: int) -> list[T]:
    if limit <= 0:
        return []
    return list(items[:limit])


def paginate(items: Sequence[T], page: int = 1, page_size: int = 30) -> Page:
    page_size = max(page_size, 1)
    total = len(items)
    pages = max(math.ceil(total / page_size), 1)
    page = min(max(page, 1), pages)
    start = (page - 1) * page_size
    return Page(items=list(items[start:start + page_size]), page=page, page_size=page_size, total=total, pages=pages)


def summarize(summary: AlertSummary) -> AlertOverview:
    swings = summary.price_swings
    return AlertOverview(
        price_changes=sum(1 for swing in swings if swing.direction != "flat"),
        new_debuts=len(summary.new_debuts),
        status_changes=len(summary.status_changes),
        discontinued=len(summary.discontinued),
        new_sales=len(summary.new_sales),
        biggest_drop=biggest_drop(swings),
        biggest_increase=biggest_increase(swings),
    )


def debuts_by_theme(debuts: Sequence[NewDebut], limit: int = 15) -> list[ThemeDebuts]:
    counts: dict[str, list[float]] = {}
    for debut in debuts:
        theme = debut.theme or "Unknown"
        counts.setdefault(theme, []).append(debut.price)
    rows = [
        ThemeDebuts(name=_short_name(theme), count=len(prices), value=round(sum(prices)))
        for theme, prices in counts.items()
    ]
    rows.sort(key=lambda row: (-row.count, row.name))
    return truncate(rows, limit)


def _short_name(name: str) -> str:
    if len(name) > MAX_THEME_NAME:
        return name[:MAX_THEME_NAME] + "…"
    return name
