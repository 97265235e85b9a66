"""Seed the snapshot table with a short demo history."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from dotenv import load_dotenv
from sqlalchemy import text

from studmetrics.db.migrate import run_migrations
from studmetrics.db.session import create_engine_from_env, session_scope
from studmetrics.db.store import SNAPSHOT_COLUMNS
from studmetrics.utils.dates import format_date, today_in_tz

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = [
    {"product_code": "75257", "slug": "millennium-falcon-75257", "product_name": "Millennium Falcon", "theme": "Star Wars", "piece_count": 1351, "rating": 4.7, "age_range": "9+"},
    {"product_code": "10302", "slug": "optimus-prime-10302", "product_name": "Optimus Prime", "theme": "Icons", "piece_count": 1508, "rating": 4.8, "age_range": "18+"},
    {"product_code": "42151", "slug": "bugatti-bolide-42151", "product_name": "Bugatti Bolide", "theme": "Technic", "piece_count": 905, "rating": 4.5, "age_range": "9+"},
]

# Per day: (price, list price, availability, on sale)
DEMO_HISTORY = {
    "75257": [(169.99, 169.99, "E_AVAILABLE", False), (149.99, 169.99, "E_AVAILABLE", True), (149.99, 169.99, "F_RETIRING", True)],
    "10302": [(179.99, 179.99, "K_SOLD_OUT", False), (179.99, 179.99, "E_AVAILABLE", False), (189.99, 189.99, "E_AVAILABLE", False)],
    "42151": [(49.99, 49.99, "E_AVAILABLE", False), (49.99, 49.99, "E_AVAILABLE", False), (49.99, 49.99, "R_RETIRED", False)],
}

UPSERT = text(
    f"INSERT INTO fact_product_daily_snapshot ({', '.join(SNAPSHOT_COLUMNS)})"
    f" VALUES ({', '.join(':' + column for column in SNAPSHOT_COLUMNS)})"
    " ON CONFLICT (product_code, scraped_date) DO NOTHING"
)


def demo_rows(end: date) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for product in DEMO_PRODUCTS:
        history = DEMO_HISTORY[product["product_code"]]
        for offset, (price, list_price, status, on_sale) in enumerate(history):
            day = end - timedelta(days=len(history) - 1 - offset)
            rows.append(
                {
                    **{column: None for column in SNAPSHOT_COLUMNS},
                    **product,
                    "scraped_date": format_date(day),
                    "price_usd": price,
                    "list_price_usd": list_price,
                    "discount_usd": round(list_price - price, 2) if on_sale else None,
                    "availability_status": status,
                    "in_stock": status == "E_AVAILABLE",
                    "on_sale": on_sale,
                    "is_new": offset == 0 and product["product_code"] == "42151",
                }
            )
    return rows


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    engine = create_engine_from_env()
    run_migrations(engine)
    rows = demo_rows(today_in_tz())
    with session_scope(engine) as session:
        session.execute(UPSERT, rows)
    logger.info("Seeded %d snapshot rows", len(rows))


if __name__ == "__main__":
    main()
