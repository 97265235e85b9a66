from datetime import date

import pytest
from sqlalchemy import Boolean, Column, Date, Float, Integer, MetaData, Table, Text, create_engine
from sqlalchemy.pool import StaticPool

from studmetrics.ingest.models import Snapshot

metadata = MetaData()

snapshots = Table(
    "fact_product_daily_snapshot",
    metadata,
    Column("product_code", Text, primary_key=True),
    Column("scraped_date", Date, primary_key=True),
    Column("slug", Text),
    Column("product_name", Text),
    Column("theme", Text),
    Column("price_usd", Float),
    Column("list_price_usd", Float),
    Column("discount_usd", Float),
    Column("sale_percentage", Float),
    Column("piece_count", Integer),
    Column("rating", Float),
    Column("availability_status", Text),
    Column("in_stock", Boolean),
    Column("on_sale", Boolean, default=False),
    Column("is_new", Boolean, default=False),
    Column("age_range", Text),
    Column("vip_points", Float),
    Column("image_url", Text),
)

FALCON = {"product_code": "75257", "slug": "millennium-falcon-75257", "product_name": "Millennium Falcon", "theme": "Star Wars", "piece_count": 1351, "rating": 4.7, "age_range": "9+"}
OPTIMUS = {"product_code": "10302", "slug": "optimus-prime-10302", "product_name": "Optimus Prime", "theme": "Icons", "piece_count": 1508, "rating": 4.8, "age_range": "18+"}
BUGATTI = {"product_code": "42151", "slug": "bugatti-bolide-42151", "product_name": "Bugatti Bolide", "theme": "Technic", "piece_count": 905, "rating": 4.5, "age_range": "9+"}

COLUMNS = [column.name for column in snapshots.columns]


def _row(product, day, **values):
    row = {name: None for name in COLUMNS}
    row.update(on_sale=False, is_new=False)
    row.update(product, scraped_date=day, **values)
    return row


SEED_ROWS = [
    _row(FALCON, date(2024, 1, 1), price_usd=169.99, list_price_usd=169.99, availability_status="E_AVAILABLE", in_stock=True, on_sale=False),
    _row(FALCON, date(2024, 1, 2), price_usd=149.99, list_price_usd=169.99, discount_usd=20.0, availability_status="E_AVAILABLE", in_stock=True, on_sale=True),
    _row(FALCON, date(2024, 1, 3), price_usd=149.99, list_price_usd=169.99, discount_usd=20.0, availability_status="F_RETIRING", in_stock=True, on_sale=True),
    _row(OPTIMUS, date(2024, 1, 1), price_usd=179.99, list_price_usd=179.99, availability_status="K_SOLD_OUT", in_stock=False, on_sale=False),
    _row(OPTIMUS, date(2024, 1, 2), price_usd=179.99, list_price_usd=179.99, availability_status="E_AVAILABLE", in_stock=True, on_sale=False),
    _row(OPTIMUS, date(2024, 1, 3), price_usd=189.99, list_price_usd=189.99, availability_status="E_AVAILABLE", in_stock=True, on_sale=False),
    _row(BUGATTI, date(2024, 1, 1), price_usd=49.99, list_price_usd=49.99, availability_status="E_AVAILABLE", in_stock=True, on_sale=False, is_new=True),
    _row(BUGATTI, date(2024, 1, 2), price_usd=49.99, list_price_usd=49.99, availability_status="E_AVAILABLE", in_stock=True, on_sale=False),
    _row(BUGATTI, date(2024, 1, 3), price_usd=49.99, list_price_usd=49.99, availability_status="R_RETIRED", in_stock=False, on_sale=False),
]


def make_engine():
    return create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def engine():
    engine = make_engine()
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def empty_engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture()
def seeded_engine(engine):
    with engine.begin() as conn:
        conn.execute(snapshots.insert(), SEED_ROWS)
    return engine


@pytest.fixture()
def seed_snapshots():
    return [
        Snapshot.from_row({**row, "scraped_date": row["scraped_date"].isoformat()})
        for row in SEED_ROWS
    ]
