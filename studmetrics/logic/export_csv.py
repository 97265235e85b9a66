"""CSV export of the daily alert events."""

from __future__ import annotations

import csv
import os
from datetime import date
from pathlib import Path
from typing import Iterable

from studmetrics.logic.timeseries import AlertSummary
from studmetrics.utils.dates import format_date

OUTPUT_DIR = Path(os.environ.get("CSV_OUTPUT_DIR", "artifacts/csv"))

CSV_COLUMNS = [
    "kind",
    "date",
    "product_code",
    "slug",
    "product",
    "theme",
    "from_status",
    "to_status",
    "old_price",
    "new_price",
    "change_pct",
    "discount",
    "sale_pct",
]


def generate_alerts_csv(summary: AlertSummary, as_of: date, *, output_dir: Path | None = None) -> Path:
    target_dir = output_dir or OUTPUT_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    file_path = target_dir / f"alerts-{format_date(as_of)}.csv"
    with file_path.open("w", newline="") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(alert_rows(summary))
    return file_path


def alert_rows(summary: AlertSummary) -> Iterable[dict[str, object]]:
    for swing in summary.price_swings:
        yield _row(
            "price_swing",
            swing.last_date,
            swing,
            old_price=_money(swing.first_price),
            new_price=_money(swing.last_price),
            change_pct=round(swing.change_pct, 2),
        )
    for debut in summary.new_debuts:
        yield _row("new_debut", debut.first_seen, debut, new_price=_money(debut.price))
    for transition in summary.status_changes:
        yield _row(
            "status_change",
            transition.date,
            transition,
            from_status=transition.from_label,
            to_status=transition.to_label,
            new_price=_money(transition.price),
        )
    for sale in summary.new_sales:
        yield _row(
            "sale_start",
            sale.date,
            sale,
            old_price=_money(sale.list_price),
            new_price=_money(sale.price),
            discount=_money(sale.discount),
            sale_pct=round(sale.sale_pct, 1),
        )


def _row(kind: str, day: str, event: object, **values: object) -> dict[str, object]:
    row: dict[str, object] = {column: None for column in CSV_COLUMNS}
    row.update(
        kind=kind,
        date=day,
        product_code=getattr(event, "product_code"),
        slug=getattr(event, "slug"),
        product=getattr(event, "product_name"),
        theme=getattr(event, "theme"),
    )
    row.update(values)
    return row


def _money(value: float | None) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"
