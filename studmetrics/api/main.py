"""FastAPI application serving the dashboard's analytics."""

from __future__ import annotations

import logging
from dataclasses import asdict, fields
from datetime import date
from functools import lru_cache
from typing import Any, Literal

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from studmetrics.db.session import create_engine_from_env
from studmetrics.db.store import SnapshotReadError, SnapshotStore
from studmetrics.ingest.models import Snapshot
from studmetrics.logic.catalog import MAX_COMPARE, ProductFilter, compare_products, filter_products
from studmetrics.logic.ranking import debuts_by_theme, filter_swings, paginate, summarize
from studmetrics.logic.rollup import (
    best_value,
    compute_by_group,
    compute_snapshot,
    compute_theme_snapshot,
    compute_time_bucketed,
    distinct_values,
    exclude_other_themes,
    filter_theme,
    is_date_axis,
    latest_per_product,
    price_distribution,
    theme_summary,
)
from studmetrics.logic.status import all_categories, get_display_label, is_available, status_color
from studmetrics.logic.timeseries import compute_alerts, partition_by_product, price_swing
from studmetrics.pipeline.client import PipelineClient

logger = logging.getLogger(__name__)

app = FastAPI(title="StudMetrics API")

SNAPSHOT_FIELDS = frozenset(field.name for field in fields(Snapshot))


class PageResponse(BaseModel):
    items: list[dict[str, Any]]
    page: int
    page_size: int
    total: int
    pages: int


class FilterOptions(BaseModel):
    themes: list[str]
    availability_statuses: list[str]
    age_ranges: list[str]


class PipelineHealth(BaseModel):
    available: bool


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


def get_store() -> SnapshotStore:
    return SnapshotStore(get_engine())


def _product_row(record: Snapshot) -> dict[str, Any]:
    row = asdict(record)
    row.update(
        status_label=get_display_label(record.availability_status, record.in_stock),
        status_color=status_color(record.availability_status, record.in_stock),
        available=is_available(record.availability_status, record.in_stock),
        price_per_piece=record.price_per_piece,
    )
    return row


@app.exception_handler(SnapshotReadError)
async def snapshot_read_failed(request: Request, exc: SnapshotReadError) -> JSONResponse:
    logger.warning("Snapshot read failed for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Snapshot store unavailable", "pages_read": exc.pages_read},
    )


@app.get("/alerts")
def alerts(store: SnapshotStore = Depends(get_store)) -> dict[str, Any]:
    return compute_alerts(store.fetch_all()).to_payload()


@app.get("/alerts/overview")
def alerts_overview(store: SnapshotStore = Depends(get_store)) -> dict[str, Any]:
    return asdict(summarize(compute_alerts(store.fetch_all())))


@app.get("/alerts/price-swings", response_model=PageResponse)
def price_swings(
    filter: Literal["all", "drops", "increases"] = "all",
    page: int = Query(1, ge=1),
    page_size: int = Query(30, ge=1, le=200),
    store: SnapshotStore = Depends(get_store),
) -> PageResponse:
    swings = filter_swings(compute_alerts(store.fetch_all()).price_swings, filter)
    result = paginate(swings, page, page_size)
    return PageResponse(
        items=[asdict(swing) for swing in result.items],
        page=result.page,
        page_size=result.page_size,
        total=result.total,
        pages=result.pages,
    )


@app.get("/alerts/debuts/themes")
def debut_themes(
    limit: int = Query(15, ge=1, le=100),
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    debuts = compute_alerts(store.fetch_all()).new_debuts
    return [asdict(row) for row in debuts_by_theme(debuts, limit)]


@app.get("/market/snapshot")
def market_snapshot(
    theme: str | None = None,
    exclude_other: bool = False,
    store: SnapshotStore = Depends(get_store),
) -> dict[str, Any]:
    records = store.fetch_all()
    if exclude_other:
        records = exclude_other_themes(records)
    if theme:
        return asdict(compute_theme_snapshot(records, theme))
    return asdict(compute_snapshot(latest_per_product(records)))


@app.get("/market/timeseries")
def market_timeseries(
    theme: str | None = None,
    start: date | None = None,
    end: date | None = None,
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    if start and end:
        if start > end:
            raise HTTPException(status_code=400, detail="start must not be after end")
        records = store.fetch_between(start, end)
        if theme:
            records = [record for record in records if record.theme == theme]
    elif theme:
        records = store.fetch_theme(theme)
    else:
        records = store.fetch_all()
    return compute_time_bucketed(records)


@app.get("/market/themes")
def market_themes(store: SnapshotStore = Depends(get_store)) -> list[dict[str, Any]]:
    return [asdict(row) for row in theme_summary(store.fetch_all())]


@app.get("/market/price-distribution")
def market_price_distribution(
    exclude_other: bool = True,
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    records = store.fetch_all()
    if exclude_other:
        records = exclude_other_themes(records)
    return [asdict(tier) for tier in price_distribution(latest_per_product(records))]


@app.get("/market/best-value")
def market_best_value(
    limit: int = Query(15, ge=1, le=100),
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    return [_product_row(record) for record in best_value(store.fetch_all(), limit)]


@app.get("/market/group")
def market_group(
    group_by: str,
    metric: str,
    agg: Literal["avg", "sum", "min", "max", "count"] = "avg",
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    for name in (group_by, metric):
        if name not in SNAPSHOT_FIELDS:
            raise HTTPException(status_code=400, detail=f"Unknown field {name}")
    records = store.fetch_all()
    if not is_date_axis(group_by):
        records = latest_per_product(records)
    return [asdict(row) for row in compute_by_group(records, group_by, metric, agg)]


@app.get("/products")
def products(
    search: str | None = None,
    theme: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    min_pieces: int | None = None,
    max_pieces: int | None = None,
    min_rating: float | None = Query(None, ge=0, le=5),
    age_range: str | None = None,
    availability: str | None = None,
    in_stock: bool = False,
    on_sale: bool = False,
    is_new: bool = False,
    sort_by: str | None = None,
    sort_dir: Literal["asc", "desc"] = "desc",
    limit: int = Query(200, ge=1, le=1000),
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    if sort_by and sort_by not in SNAPSHOT_FIELDS | {"price_per_piece"}:
        raise HTTPException(status_code=400, detail=f"Unknown sort field {sort_by}")
    product_filter = ProductFilter(
        search=search,
        theme=theme,
        min_price=min_price,
        max_price=max_price,
        min_pieces=min_pieces,
        max_pieces=max_pieces,
        min_rating=min_rating,
        age_range=age_range,
        availability=availability,
        in_stock=in_stock,
        on_sale=on_sale,
        is_new=is_new,
        sort_by=sort_by,
        sort_dir=sort_dir,
        limit=limit,
    )
    return [_product_row(record) for record in filter_products(store.fetch_all(), product_filter)]


@app.get("/products/{product_code}/history")
def product_history(product_code: str, store: SnapshotStore = Depends(get_store)) -> dict[str, Any]:
    history = partition_by_product(store.fetch_for_products([product_code])).get(product_code)
    if not history:
        raise HTTPException(status_code=404, detail=f"Unknown product {product_code}")
    swing = price_swing(history)
    return {
        "product_code": product_code,
        "history": [asdict(record) for record in history],
        "price_swing": asdict(swing) if swing else None,
    }


@app.get("/products/compare")
def products_compare(
    slugs: list[str] = Query(...),
    store: SnapshotStore = Depends(get_store),
) -> list[dict[str, Any]]:
    if len(slugs) > MAX_COMPARE:
        raise HTTPException(status_code=400, detail=f"Compare at most {MAX_COMPARE} products")
    return [_product_row(record) for record in compare_products(store.fetch_all(), slugs)]


@app.get("/filters", response_model=FilterOptions)
def filter_options(store: SnapshotStore = Depends(get_store)) -> FilterOptions:
    records = store.fetch_all()
    return FilterOptions(
        themes=distinct_values(records, "theme"),
        availability_statuses=distinct_values(records, "availability_status"),
        age_ranges=distinct_values(records, "age_range"),
    )


@app.get("/status/categories")
def status_categories() -> list[dict[str, Any]]:
    return [{"key": key.value, **asdict(info)} for key, info in all_categories()]


@app.get("/pipeline/health", response_model=PipelineHealth)
async def pipeline_health() -> PipelineHealth:
    async with PipelineClient() as client:
        return PipelineHealth(available=await client.health())
