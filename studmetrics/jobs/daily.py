"""Daily job orchestration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

from studmetrics.db.session import create_engine_from_env
from studmetrics.db.store import SnapshotStore
from studmetrics.logic.export_csv import generate_alerts_csv
from studmetrics.logic.rollup import MarketStats, compute_snapshot, latest_per_product
from studmetrics.logic.timeseries import AlertSummary, compute_alerts
from studmetrics.pipeline.client import PipelineClient, unwrap_list
from studmetrics.utils.dates import today_in_tz

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DailyRun:
    as_of: date
    summary: AlertSummary
    market: MarketStats
    csv_path: Path
    pipeline_available: bool = False
    triggered_alerts: int = 0
    reports_generated: bool = False


async def run_daily(
    as_of: date | None = None,
    *,
    store: SnapshotStore | None = None,
    client: PipelineClient | None = None,
    output_dir: Path | None = None,
) -> DailyRun:
    load_dotenv()
    target_date = as_of or today_in_tz()
    store = store or SnapshotStore(create_engine_from_env())

    snapshots = store.fetch_all()
    summary = compute_alerts(snapshots)
    market = compute_snapshot(latest_per_product(snapshots))
    logger.info(
        "Computed alerts for %d products: %d swings, %d status changes, %d sales",
        summary.total_products,
        len(summary.price_swings),
        len(summary.status_changes),
        len(summary.new_sales),
    )
    csv_path = generate_alerts_csv(summary, target_date, output_dir=output_dir)
    logger.info("Wrote %s", csv_path)

    run = DailyRun(as_of=target_date, summary=summary, market=market, csv_path=csv_path)
    client = client or PipelineClient()
    try:
        await _notify_pipeline(client, run)
    finally:
        await client.close()
    return run


async def _notify_pipeline(client: PipelineClient, run: DailyRun) -> None:
    if not await client.health():
        logger.warning("Pipeline unavailable; skipping alert evaluation and reports")
        return
    run.pipeline_available = True
    evaluation = await client.evaluate_alerts()
    run.triggered_alerts = len(unwrap_list(evaluation, "triggered"))
    logger.info("Pipeline triggered %d alerts", run.triggered_alerts)
    reports = await client.generate_all_reports("daily")
    run.reports_generated = reports is not None
    if not run.reports_generated:
        logger.warning("Daily report generation failed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_daily())
