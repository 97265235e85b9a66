from studmetrics.ingest.models import Snapshot
from studmetrics.logic.status import StatusCategory
from studmetrics.logic.timeseries import compute_alerts, partition_by_product, price_swing


def snap(code, day, **values):
    return Snapshot(product_code=code, scraped_date=day, **values)


def test_price_swing_first_vs_last():
    summary = compute_alerts([snap("X", "2024-01-08", price_usd=80), snap("X", "2024-01-01", price_usd=100)])
    swing = summary.price_swings[0]
    assert swing.change == -20
    assert swing.change_pct == -20
    assert swing.direction == "down"
    assert (swing.first_date, swing.last_date) == ("2024-01-01", "2024-01-08")


def test_swing_uses_endpoints_and_reports_extremes():
    history = [
        snap("X", "2024-01-01", price_usd=50),
        snap("X", "2024-01-02", price_usd=90),
        snap("X", "2024-01-03", price_usd=20),
        snap("X", "2024-01-04", price_usd=50),
    ]
    swing = price_swing(history)
    assert swing.direction == "flat"
    assert swing.change == 0
    assert (swing.min_price, swing.max_price) == (20, 90)


def test_unpriced_products_have_no_swing():
    summary = compute_alerts(
        [
            snap("Z", "2024-01-01", price_usd=0),
            snap("Z", "2024-01-02"),
            snap("Z", "2024-01-03", price_usd=-5),
            snap("Y", "2024-01-01", price_usd=10),
        ]
    )
    assert summary.price_swings == []


def test_direction_matches_sign():
    records = []
    for index, (start, end) in enumerate([(10, 12), (12, 10), (10, 10), (99.99, 79.99)]):
        code = f"P{index}"
        records += [snap(code, "2024-02-01", price_usd=start), snap(code, "2024-02-02", price_usd=end)]
    for swing in compute_alerts(records).price_swings:
        change = swing.last_price - swing.first_price
        expected = "up" if change > 0 else "down" if change < 0 else "flat"
        assert swing.direction == expected


def test_swings_sorted_by_absolute_percentage():
    records = [
        snap("A", "2024-01-01", price_usd=100), snap("A", "2024-01-02", price_usd=95),
        snap("B", "2024-01-01", price_usd=100), snap("B", "2024-01-02", price_usd=150),
        snap("C", "2024-01-01", price_usd=100), snap("C", "2024-01-02", price_usd=70),
    ]
    assert [swing.product_code for swing in compute_alerts(records).price_swings] == ["B", "C", "A"]


def test_fresh_stock_out_is_a_discontinued_event():
    summary = compute_alerts(
        [
            snap("Y", "2024-01-01", availability_status="Available", in_stock=True),
            snap("Y", "2024-01-08", availability_status="P_outofstock", in_stock=False),
        ]
    )
    assert len(summary.status_changes) == 1
    transition = summary.status_changes[0]
    assert transition.from_category is StatusCategory.IN_STOCK
    assert transition.to_category is StatusCategory.OUT_OF_STOCK
    assert transition.date == "2024-01-08"
    assert summary.discontinued == [transition]


def test_sold_out_destination_is_discontinued():
    summary = compute_alerts(
        [
            snap("B", "2024-01-01", availability_status="G_BACKORDER"),
            snap("B", "2024-01-02", availability_status="K_SOLD_OUT"),
            snap("P", "2024-01-01", availability_status="A_PRE_ORDER_FOR_DATE"),
            snap("P", "2024-01-02", availability_status="Sold-out online"),
        ]
    )
    assert len(summary.status_changes) == 2
    assert {t.product_code for t in summary.discontinued} == {"B", "P"}
    assert all(t.to_category is StatusCategory.OUT_OF_STOCK for t in summary.discontinued)


def test_backorder_relabel_is_not_discontinued():
    summary = compute_alerts(
        [
            snap("B", "2024-01-01", availability_status="F_BACKORDER_FOR_DATE"),
            snap("B", "2024-01-02", availability_status="H_OUT_OF_STOCK"),
        ]
    )
    assert len(summary.status_changes) == 1
    assert summary.status_changes[0].sold_out is False
    assert summary.discontinued == []


def test_retirement_is_discontinued_from_any_origin():
    summary = compute_alerts(
        [
            snap("R", "2024-01-01", availability_status="backorder"),
            snap("R", "2024-01-02", availability_status="F_RETIRING"),
            snap("R", "2024-01-03", availability_status="R_RETIRED"),
        ]
    )
    assert [t.to_category for t in summary.discontinued] == [StatusCategory.DISCONTINUED, StatusCategory.RETIRING]


def test_cosmetic_status_changes_are_ignored():
    summary = compute_alerts(
        [
            snap("A", "2024-01-01", availability_status="Available"),
            snap("A", "2024-01-02", availability_status="available"),
            snap("B", "2024-01-01", availability_status="F_backorder_for_date"),
            snap("B", "2024-01-02", availability_status="backordered"),
        ]
    )
    assert summary.status_changes == []


def test_transition_labels_prefer_clean_raw_text():
    summary = compute_alerts(
        [
            snap("A", "2024-01-01", availability_status="Available now"),
            snap("A", "2024-01-02", availability_status="K_SOLD_OUT"),
        ]
    )
    transition = summary.status_changes[0]
    assert (transition.from_label, transition.to_label) == ("Available now", "Out of Stock")


def test_new_debut_window():
    days = [f"2024-03-{day:02d}" for day in range(1, 11)]
    records = [snap("FILLER", day, price_usd=10) for day in days]
    records.append(snap("LATE", days[8], price_usd=30))
    records.append(snap("EARLY", days[4], price_usd=40))
    debuts = compute_alerts(records).new_debuts
    assert [debut.product_code for debut in debuts] == ["LATE"]
    assert debuts[0].first_seen == "2024-03-09"


def test_debuts_sorted_by_price():
    records = [snap(code, "2024-01-01", price_usd=price) for code, price in [("A", 10), ("B", 30), ("C", 20)]]
    assert [debut.product_code for debut in compute_alerts(records).new_debuts] == ["B", "C", "A"]


def test_single_snapshot_only_debuts():
    summary = compute_alerts([snap("S", "2024-01-01", price_usd=10, availability_status="Available", on_sale=True)])
    assert summary.price_swings == []
    assert summary.status_changes == []
    assert summary.new_sales == []
    assert len(summary.new_debuts) == 1


def test_sale_start_carries_later_record():
    summary = compute_alerts(
        [
            snap("S", "2024-01-01", price_usd=100, list_price_usd=100, on_sale=False),
            snap("S", "2024-01-02", price_usd=80, list_price_usd=100, discount_usd=20, sale_percentage=20, on_sale=True),
            snap("S", "2024-01-03", price_usd=80, list_price_usd=100, on_sale=True),
        ]
    )
    assert len(summary.new_sales) == 1
    sale = summary.new_sales[0]
    assert (sale.date, sale.price, sale.list_price, sale.discount, sale.sale_pct) == ("2024-01-02", 80, 100, 20, 20)


def test_sale_start_derives_missing_discount():
    summary = compute_alerts(
        [
            snap("S", "2024-01-01", price_usd=50, list_price_usd=50),
            snap("S", "2024-01-02", price_usd=40, list_price_usd=50, on_sale=True),
        ]
    )
    sale = summary.new_sales[0]
    assert sale.discount == 10
    assert sale.sale_pct == 20


def test_events_sorted_newest_first_and_capped():
    records = []
    for index in range(5):
        code = f"P{index}"
        records += [
            snap(code, "2024-01-01", availability_status="Available", price_usd=10),
            snap(code, f"2024-01-0{index + 2}", availability_status="Sold out", price_usd=10 + index + 1),
        ]
    summary = compute_alerts(records, cap=2)
    assert [t.date for t in summary.status_changes] == ["2024-01-06", "2024-01-05"]
    assert len(summary.price_swings) == 2
    assert len(summary.discontinued) == 2


def test_status_distribution_rows_share_keys():
    summary = compute_alerts(
        [
            snap("A", "2024-01-01", availability_status="Available"),
            snap("A", "2024-01-02", availability_status="Sold out"),
            snap("B", "2024-01-02", availability_status="Retiring soon"),
        ]
    )
    distribution = summary.status_over_time
    assert distribution.statuses == ["In Stock", "Out of Stock", "Retiring Soon"]
    assert distribution.data == [
        {"date": "2024-01-01", "In Stock": 1, "Out of Stock": 0, "Retiring Soon": 0},
        {"date": "2024-01-02", "In Stock": 0, "Out of Stock": 1, "Retiring Soon": 1},
    ]


def test_duplicate_dates_keep_last_record():
    records = [
        snap("D", "2024-01-01", price_usd=10),
        snap("D", "2024-01-01", price_usd=20),
        snap("D", "2024-01-02", price_usd=40),
    ]
    assert [record.price_usd for record in partition_by_product(records)["D"]] == [20, 40]
    assert compute_alerts(records).price_swings[0].first_price == 20


def test_empty_input():
    summary = compute_alerts([])
    assert summary.total_products == 0
    assert summary.date_range is None
    assert summary.price_swings == summary.new_debuts == summary.status_changes == []
    assert summary.status_over_time.data == []


def test_idempotent_and_input_untouched(seed_snapshots):
    before = list(seed_snapshots)
    first = compute_alerts(seed_snapshots)
    second = compute_alerts(list(reversed(seed_snapshots)))
    assert first == second
    assert seed_snapshots == before


def test_seeded_summary(seed_snapshots):
    summary = compute_alerts(seed_snapshots)
    assert summary.total_products == 3
    assert (summary.date_range.first, summary.date_range.last) == ("2024-01-01", "2024-01-03")
    assert {t.product_code for t in summary.discontinued} == {"75257", "42151"}
    assert [sale.product_code for sale in summary.new_sales] == ["75257"]


def test_payload_shape(seed_snapshots):
    payload = compute_alerts(seed_snapshots).to_payload()
    assert set(payload) == {
        "priceSwings",
        "newDebuts",
        "statusChanges",
        "discontinued",
        "newSales",
        "statusOverTime",
        "totalProducts",
        "dateRange",
    }
    assert payload["statusChanges"][0]["to_category"] in {"retiring", "discontinued"}
    assert type(payload["statusChanges"][0]["to_category"]) is str
    assert payload["dateRange"] == {"first": "2024-01-01", "last": "2024-01-03"}
