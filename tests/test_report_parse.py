import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import report_parse


def _sample_csv() -> str:
    return """Property,Title,Label,Value,TextData
P1,Property Data,Name,,Lakeview
P1,Unit Types,Studio,,10
P1,Unit Types,1BR,,20
"""


def test_tokenize_plain_fields_round_trip():
    fields = ["Bldg1", "Occupancy", "Pct", "85", "note"]
    assert report_parse.tokenize(",".join(fields)) == fields


def test_tokenize_quoted_comma_and_escaped_quote():
    assert report_parse.tokenize('a,"b,c",d') == ["a", "b,c", "d"]
    assert report_parse.tokenize('"a""b"') == ['a"b']


def test_tokenize_edge_cases():
    assert report_parse.tokenize("") == [""]
    assert report_parse.tokenize("a,b,") == ["a", "b", ""]
    assert report_parse.tokenize("  a ,  b  ") == ["a", "b"]
    # Unterminated quote keeps the rest of the line in one field.
    assert report_parse.tokenize('x,"open, still open') == ["x", "open, still open"]


def test_resolve_headers_detects_header_row():
    result = report_parse.resolve_headers(["Property", "Title", "Label", "Value", "TextData"])
    assert isinstance(result, report_parse.HeaderedResult)
    assert result.headers == tuple(report_parse.EXPECTED_HEADERS)
    assert result.index_map == (0, 1, 2, 3, 4, None)
    assert result.data_start_line == 1


def test_resolve_headers_matches_case_insensitive_and_reordered():
    result = report_parse.resolve_headers(["value", "LABEL", "exportdate"])
    assert isinstance(result, report_parse.HeaderedResult)
    assert result.index_map == (None, None, 1, 0, None, 2)


def test_resolve_headers_without_header_row_is_positional():
    result = report_parse.resolve_headers(["Bldg1", "Occupancy", "Pct", "85", "note"])
    assert isinstance(result, report_parse.PositionalResult)
    assert result.headers == tuple(report_parse.BASE_HEADERS)
    assert result.index_map == (0, 1, 2, 3, 4)
    assert result.data_start_line == 0


@pytest.mark.parametrize(
    "count, expected",
    [
        (3, report_parse.BASE_HEADERS[:3]),
        (6, report_parse.EXPECTED_HEADERS),
        (8, report_parse.EXPECTED_HEADERS),
    ],
)
def test_resolve_headers_positional_arity(count, expected):
    fields = [f"c{i}" for i in range(count)]
    result = report_parse.resolve_headers(fields)
    assert list(result.headers) == expected
    assert len(result.index_map) == len(result.headers)


def test_resolve_headers_empty_fields_fall_back_to_base():
    result = report_parse.resolve_headers([])
    assert list(result.headers) == report_parse.BASE_HEADERS


def test_materialize_is_repeatable_and_skips_blank_lines():
    lines = ["A,X,l1,1,t", " , , ", "", "A,Y,l2,2,t"]
    resolution = report_parse.resolve_headers(report_parse.tokenize(lines[0]))
    first = report_parse.materialize(lines, resolution)
    second = report_parse.materialize(lines, resolution)
    assert first == second
    assert [row["Title"] for row in first] == ["X", "Y"]


def test_materialize_fills_missing_columns_with_empty_string():
    lines = ["Title,Value", "Occupancy"]
    resolution = report_parse.resolve_headers(report_parse.tokenize(lines[0]))
    rows = report_parse.materialize(lines, resolution)
    assert rows == [
        {"Property": "", "Title": "Occupancy", "Label": "", "Value": "", "TextData": "", "ExportDate": ""}
    ]


def test_coerce_cell_numbers_and_strings():
    assert report_parse.coerce_cell("45000") == 45000
    assert isinstance(report_parse.coerce_cell("45000"), int)
    assert report_parse.coerce_cell(" 12.5 ") == 12.5
    assert report_parse.coerce_cell("Q1-2024") == "Q1-2024"
    assert report_parse.coerce_cell("") == ""
    assert report_parse.coerce_cell("nan") == "nan"


def test_parse_csv_end_to_end():
    table = report_parse.parse_csv(_sample_csv())
    assert len(table.rows) == 3
    assert list(table.headers[:5]) == report_parse.BASE_HEADERS
    assert table.rows[1]["TextData"] == 10
    assert table.rows[0]["Value"] == ""


def test_parse_csv_headerless_first_line_is_data():
    table = report_parse.parse_csv("Bldg1,Occupancy,Pct,85,note\r\nBldg2,Occupancy,Pct,90,\r\n")
    assert table.headers == tuple(report_parse.BASE_HEADERS)
    assert [row["Property"] for row in table.rows] == ["Bldg1", "Bldg2"]
    assert table.rows[0]["Value"] == 85


def test_parse_csv_empty_input_raises():
    with pytest.raises(report_parse.EmptyInputError):
        report_parse.parse_csv("  \n\n")


def test_parse_csv_strips_byte_order_mark():
    table = report_parse.parse_csv("\ufeffProperty,Title\nP1,Occupancy\n")
    assert table.rows[0]["Property"] == "P1"


def test_table_to_frame_keeps_header_order():
    frame = report_parse.table_to_frame(report_parse.parse_csv(_sample_csv()))
    assert list(frame.columns) == report_parse.EXPECTED_HEADERS
    assert len(frame) == 3


def test_cell_text():
    assert report_parse.cell_text(10.0) == "10"
    assert report_parse.cell_text(2.5) == "2.5"
    assert report_parse.cell_text(" x ") == "x"
