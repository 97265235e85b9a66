"""Snapshot data model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from studmetrics.logic.fields import (
    coerce_bool,
    resolve_image,
    resolve_list_price,
    resolve_piece_count,
    resolve_price,
    resolve_rating,
    to_number,
)
from studmetrics.utils.dates import to_iso_date


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One observation of one product on one scrape date."""

    product_code: str
    scraped_date: str
    slug: str | None = None
    product_name: str | None = None
    theme: str | None = None
    price_usd: float | None = None
    list_price_usd: float | None = None
    discount_usd: float | None = None
    sale_percentage: float | None = None
    piece_count: int | None = None
    rating: float | None = None
    availability_status: str | None = None
    in_stock: bool | None = None
    on_sale: bool = False
    is_new: bool = False
    age_range: str | None = None
    vip_points: float | None = None
    image_url: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Snapshot":
        discount = to_number(row.get("discount_usd"))
        return cls(
            product_code=str(row["product_code"]),
            scraped_date=to_iso_date(row.get("scraped_date")) or "",
            slug=row.get("slug"),
            product_name=row.get("product_name"),
            theme=row.get("theme"),
            price_usd=resolve_price(row),
            list_price_usd=resolve_list_price(row),
            discount_usd=abs(discount) if discount is not None else None,
            sale_percentage=to_number(row.get("sale_percentage")),
            piece_count=resolve_piece_count(row),
            rating=resolve_rating(row),
            availability_status=row.get("availability_status"),
            in_stock=coerce_bool(row.get("in_stock")),
            on_sale=bool(coerce_bool(row.get("on_sale"))),
            is_new=bool(coerce_bool(row.get("is_new"))),
            age_range=row.get("age_range"),
            vip_points=to_number(row.get("vip_points")),
            image_url=resolve_image(row),
        )

    @property
    def usable_price(self) -> float | None:
        if self.price_usd is not None and self.price_usd > 0:
            return self.price_usd
        return None

    @property
    def price_per_piece(self) -> float | None:
        if self.usable_price is None or not self.piece_count or self.piece_count <= 0:
            return None
        return self.usable_price / self.piece_count
