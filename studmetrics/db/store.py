"""Paged reads from the daily snapshot table."""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import Any, Iterable, Iterator

from sqlalchemy import bindparam
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from studmetrics.ingest import snapshots_from_rows
from studmetrics.ingest.models import Snapshot
from studmetrics.utils.dates import format_date

logger = logging.getLogger(__name__)

PAGE_SIZE = int(os.environ.get("SNAPSHOT_PAGE_SIZE", 500))

SNAPSHOT_COLUMNS = (
    "product_code",
    "scraped_date",
    "slug",
    "product_name",
    "theme",
    "price_usd",
    "list_price_usd",
    "discount_usd",
    "sale_percentage",
    "piece_count",
    "rating",
    "availability_status",
    "in_stock",
    "on_sale",
    "is_new",
    "age_range",
    "vip_points",
    "image_url",
)


class SnapshotReadError(RuntimeError):
    """A page read failed; carries how far the read got."""

    def __init__(self, message: str, *, pages_read: int, rows_read: int) -> None:
        super().__init__(message)
        self.pages_read = pages_read
        self.rows_read = rows_read


class SnapshotStore:
    """Read-only access to ``fact_product_daily_snapshot``.

    Reads go out in fixed-size pages and stop at the first short page, so no
    single request has to carry the whole table. Callers get fully
    materialized lists; the analytics functions never fetch on their own.
    """

    table = "fact_product_daily_snapshot"

    def __init__(self, engine: Engine, *, page_size: int = PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.engine = engine
        self.page_size = page_size

    def iter_pages(self, where: str = "", params: dict[str, Any] | None = None) -> Iterator[list[Snapshot]]:
        """Yield one page of snapshots at a time; stop iterating to abandon the read."""
        query = text(
            f"SELECT {', '.join(SNAPSHOT_COLUMNS)} FROM {self.table}"
            f"{' WHERE ' + where if where else ''}"
            " ORDER BY product_code, scraped_date"
            " LIMIT :limit OFFSET :offset"
        )
        if params and any(isinstance(value, (list, tuple)) for value in params.values()):
            query = query.bindparams(
                *(bindparam(key, expanding=True) for key, value in params.items() if isinstance(value, (list, tuple)))
            )
        pages_read = 0
        rows_read = 0
        while True:
            bound = {**(params or {}), "limit": self.page_size, "offset": rows_read}
            try:
                with self.engine.connect() as conn:
                    rows = [dict(row) for row in conn.execute(query, bound).mappings()]
            except SQLAlchemyError as exc:
                raise SnapshotReadError(
                    f"Snapshot read failed after {pages_read} pages: {exc}",
                    pages_read=pages_read,
                    rows_read=rows_read,
                ) from exc
            pages_read += 1
            rows_read += len(rows)
            logger.debug("Read snapshot page %d (%d rows)", pages_read, len(rows))
            yield snapshots_from_rows(rows)
            if len(rows) < self.page_size:
                break

    def _collect(self, where: str = "", params: dict[str, Any] | None = None) -> list[Snapshot]:
        snapshots: list[Snapshot] = []
        for page in self.iter_pages(where, params):
            snapshots.extend(page)
        logger.info("Loaded %d snapshots", len(snapshots))
        return snapshots

    def fetch_all(self) -> list[Snapshot]:
        return self._collect()

    def fetch_for_products(self, codes: Iterable[str]) -> list[Snapshot]:
        wanted = sorted(set(codes))
        if not wanted:
            return []
        return self._collect("product_code IN :codes", {"codes": wanted})

    def fetch_between(self, start: date, end: date) -> list[Snapshot]:
        return self._collect(
            "scraped_date BETWEEN :start AND :end",
            {"start": format_date(start), "end": format_date(end)},
        )

    def fetch_theme(self, theme: str) -> list[Snapshot]:
        return self._collect("lower(trim(theme)) = :theme", {"theme": theme.strip().lower()})
