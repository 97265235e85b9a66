"""Numeric building blocks shared by the aggregators."""

from __future__ import annotations

from typing import Iterable, Literal, Sequence

import numpy as np

Direction = Literal["up", "down", "flat"]


def percent_change(new: float | None, old: float | None) -> float | None:
    if new is None or old in (None, 0):
        return None
    return (new - old) / old * 100


def price_direction(change: float) -> Direction:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "flat"


def discount_percentage(price: float | None, list_price: float | None) -> float:
    if not price or not list_price or list_price <= 0 or price >= list_price:
        return 0.0
    return (list_price - price) / list_price * 100


def positive(values: Iterable[float | int | None]) -> list[float]:
    """Values that are present and greater than zero."""
    return [float(v) for v in values if v is not None and v > 0]


def safe_mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def safe_median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.median(values))


def safe_sum(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.sum(values))


def safe_pct(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return part / whole * 100
