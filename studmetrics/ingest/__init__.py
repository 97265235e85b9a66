"""Snapshot ingestion helpers."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from studmetrics.ingest.models import Snapshot


def snapshots_from_rows(rows: Iterable[Mapping[str, Any]]) -> list[Snapshot]:
    """Build snapshots from raw rows, skipping rows without a product code or date."""
    snapshots: list[Snapshot] = []
    for row in rows:
        if not row.get("product_code"):
            continue
        snapshot = Snapshot.from_row(row)
        if not snapshot.scraped_date:
            continue
        snapshots.append(snapshot)
    return snapshots
