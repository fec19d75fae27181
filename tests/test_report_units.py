import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import report_parse
import report_series
import report_units


@pytest.mark.parametrize(
    "label, key",
    [
        ("One Bedroom", "1br"),
        ("1 BR", "1br"),
        ("1BRs", "1br"),
        ("two bedrooms", "2br"),
        ("3 Bed", "3br"),
        ("Studio", "studio"),
        ("ST", "studio"),
        ("Studios", "studio"),
        ("Name", "name"),
    ],
)
def test_normalize_unit_label(label, key):
    assert report_units.normalize_unit_label(label) == key


def test_parse_compound_value_colon_pairs():
    assert report_units.parse_compound_value("Studio: 10; 1BR: 20") == [("Studio", "10"), ("1BR", "20")]


def test_parse_compound_value_dash_pairs():
    assert report_units.parse_compound_value("Studio - 4, 2 BR - 8") == [("Studio", "4"), ("2 BR", "8")]


def test_parse_compound_value_label_number_pairs():
    assert report_units.parse_compound_value("Studio 5, One Bedroom 12") == [("Studio", "5"), ("One Bedroom", "12")]
    assert report_units.parse_compound_value("nothing useful") == []


def test_end_to_end_unit_map_and_series():
    table = report_parse.parse_csv(
        """Property,Title,Label,Value,TextData
P1,Property Data,Name,,Lakeview
P1,Unit Types,Studio,,10
P1,Unit Types,1BR,,20
"""
    )
    assert len(table.rows) == 3
    assert report_units.extract_unit_map(table, "P1") == {"studio": "10", "1br": "20"}
    assert report_units.extract_unit_entries(table, "P1")["name"] == "Lakeview"
    titles = [g.title for g in report_series.group_by_series(table, "P1")]
    assert titles == ["Property Data", "Unit Types"]


def test_unit_map_from_compound_value_in_fixed_order():
    table = report_parse.parse_csv(
        """Property,Title,Label,Value,TextData
P2,Unit Mix,,"3BR: 2; Studio: 10; 1 BR: 20; Penthouse: 1",
P3,Unit Types,Studio,,99
"""
    )
    units = report_units.extract_unit_map(table, "P2")
    assert list(units) == ["studio", "1br", "3br"]
    assert units["3br"] == "2"
    assert "penthouse" in report_units.extract_unit_entries(table, "P2")


def test_rows_with_other_titles_are_ignored():
    table = report_parse.parse_csv("Property,Title,Label,Value\nP1,Occupancy,Studio,50\n")
    assert report_units.extract_unit_map(table, "P1") == {}


def test_unit_total_fallback_sum():
    assert report_units.unit_total({"studio": "10", "1br": "20", "2br": "15"}) == 45
    assert report_units.unit_total({"studio": "1,200", "1br": "(30)", "2br": "n/a"}) == 1230
    assert report_units.unit_total({"penthouse": "4"}) is None


def test_extract_number():
    assert report_units.extract_number("approx. 1,250 units") == 1250.0
    assert report_units.extract_number("12.5%") == 12.5
    assert report_units.extract_number(7) == 7.0
    assert report_units.extract_number("none") is None


def test_unit_breakdown_prefers_explicit_count():
    table = report_parse.parse_csv(
        """Property,Title,Label,Value,TextData
P1,Property Details,Unit Count,48,
P1,Unit Types,Studio,10,
P1,Unit Types,2 Bedroom,15,
"""
    )
    breakdown = report_units.unit_breakdown(table, "P1")
    assert breakdown.units == {"studio": "10", "2br": "15"}
    assert breakdown.total == 48
    assert breakdown.total_is_explicit


def test_unit_breakdown_sums_without_explicit_count():
    table = report_parse.parse_csv(
        """Property,Title,Label,Value
P1,Unit Types,Studio,10
P1,Unit Types,1BR,20
P1,Unit Types,2BR,15
"""
    )
    breakdown = report_units.unit_breakdown(table, "P1")
    assert breakdown.total == 45
    assert not breakdown.total_is_explicit
