from studmetrics.ingest.models import Snapshot
from studmetrics.logic.ranking import (
    biggest_drop,
    biggest_increase,
    debuts_by_theme,
    filter_swings,
    paginate,
    summarize,
    truncate,
)
from studmetrics.logic.timeseries import NewDebut, compute_alerts


def _swings():
    records = []
    for code, start, end in [("A", 100, 80), ("B", 100, 130), ("C", 50, 50), ("D", 200, 100), ("E", 10, 11)]:
        records += [
            Snapshot(product_code=code, scraped_date="2024-01-01", price_usd=start),
            Snapshot(product_code=code, scraped_date="2024-01-02", price_usd=end),
        ]
    return compute_alerts(records).price_swings


def test_biggest_drop_and_increase():
    swings = _swings()
    assert biggest_drop(swings).product_code == "D"
    assert biggest_increase(swings).product_code == "B"
    assert biggest_drop([]) is None


def test_filter_swings():
    swings = _swings()
    assert {swing.product_code for swing in filter_swings(swings)} == {"A", "B", "D", "E"}
    assert [swing.product_code for swing in filter_swings(swings, "drops")] == ["D", "A"]
    assert [swing.product_code for swing in filter_swings(swings, "increases")] == ["B", "E"]


def test_paginate_clamps_page():
    page = paginate(list(range(65)), page=9, page_size=30)
    assert page.page == 3
    assert page.pages == 3
    assert page.items == list(range(60, 65))
    empty = paginate([], page=2)
    assert (empty.page, empty.pages, empty.items) == (1, 1, [])


def test_summarize(seed_snapshots):
    overview = summarize(compute_alerts(seed_snapshots))
    assert overview.price_changes == 2
    assert overview.discontinued == 2
    assert overview.biggest_drop.product_code == "75257"
    assert overview.biggest_increase.product_code == "10302"


def test_debuts_by_theme():
    debuts = [
        NewDebut("1", None, None, "Harry Potter Collectible Series", 20.0, None, True, "2024-01-01"),
        NewDebut("2", None, None, "Harry Potter Collectible Series", 30.4, None, False, "2024-01-01"),
        NewDebut("3", None, None, None, 5.0, None, False, "2024-01-01"),
    ]
    rows = debuts_by_theme(debuts)
    assert rows[0].name == "Harry Potter Collect…"
    assert (rows[0].count, rows[0].value) == (2, 50)
    assert rows[1].name == "Unknown"


def test_truncate():
    assert truncate([1, 2, 3], 2) == [1, 2]
    assert truncate([1, 2, 3], 0) == []
