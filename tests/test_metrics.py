from __future__ import annotations

import math

import pandas as pd
import pytest

from ads_insights.config import Settings
from ads_insights.metrics import (
    analysis_table,
    collect_entity_performance,
    performance_tables,
    table_to_rows,
)


def _ads(rows: list) -> pd.DataFrame:
    cols = ["row", "url", "impressions", "clicks", "ctr", "cost", "objects", "labels", "text"]
    return pd.DataFrame(rows, columns=cols)


ROWS = [
    [2, "a", 100, 10, 0.10, 5.0, "Car,Wheel", "car,vehicle", "BIG SALE"],
    [3, "b", 200, 4, 0.02, 8.0, "Car", "car", "SALE\ntoday"],
    [4, "c", 300, 30, 0.10, 2.0, "Person", "car,person", ""],
]


def test_car_label_average_impressions() -> None:
    perf = collect_entity_performance(_ads(ROWS), "labels")
    assert perf["car"].impressions == [100, 200, 300]
    table = analysis_table(perf, "Labels")
    car = table.set_index("Labels").loc["car"]
    assert car["Impressions"] == pytest.approx(200)
    assert car["Clicks"] == pytest.approx(44 / 3)


def test_single_row_average_is_the_value() -> None:
    table = analysis_table(collect_entity_performance(_ads(ROWS), "labels"), "Labels")
    vehicle = table.set_index("Labels").loc["vehicle"]
    assert list(vehicle) == [100, 10, 0.10, 5.0]


def test_first_insertion_order_and_no_phantom_entities() -> None:
    perf = collect_entity_performance(_ads(ROWS), "objects")
    assert list(perf) == ["Car", "Wheel", "Person"]
    words = collect_entity_performance(_ads(ROWS), "text")
    assert list(words) == ["BIG", "SALE", "today"]
    assert words["SALE"].cost == [5.0, 8.0]


def test_kinds_are_aggregated_independently() -> None:
    tables = performance_tables(_ads(ROWS), Settings())
    assert set(tables) == {"Objects Analysis", "Labels Analysis", "Words Analysis"}
    assert list(tables["Objects Analysis"].columns) == ["Objects", "Impressions", "Clicks", "CTR", "Cost"]
    assert "car" not in set(tables["Objects Analysis"]["Objects"])
    assert list(tables["Words Analysis"].columns)[0] == "Words"


def test_row_order_does_not_change_the_summary() -> None:
    fwd = performance_tables(_ads(ROWS), Settings())
    rev = performance_tables(_ads(list(reversed(ROWS))), Settings())
    for sheet, table in fwd.items():
        key = table.columns[0]
        a = table.sort_values(key).reset_index(drop=True)
        b = rev[sheet].sort_values(key).reset_index(drop=True)
        pd.testing.assert_frame_equal(a, b)


def test_missing_metrics_are_ignored_in_means() -> None:
    rows = [
        [2, "a", 100, None, 0.1, None, "", "car", ""],
        [3, "b", float("nan"), None, 0.3, None, "", "car", ""],
    ]
    table = analysis_table(collect_entity_performance(_ads(rows), "labels"), "Labels")
    car = table.iloc[0]
    assert car["Impressions"] == 100
    assert car["CTR"] == pytest.approx(0.2)
    assert math.isnan(car["Cost"])
    assert table_to_rows(table)[1][4] == ""


def test_table_to_rows_includes_header_and_skips_empty() -> None:
    table = analysis_table(collect_entity_performance(_ads(ROWS[:1]), "objects"), "Objects")
    rows = table_to_rows(table)
    assert rows[0] == ["Objects", "Impressions", "Clicks", "CTR", "Cost"]
    assert rows[1] == ["Car", 100.0, 10.0, 0.1, 5.0]
    assert table_to_rows(analysis_table({}, "Objects")) == []
