#!/usr/bin/env python3
"""Turn flat report rows into per-series chart datasets.

Rows are partitioned by the category column (``Property``) and the series
title column (``Title``). Each (category, title) pair becomes one chart whose
x values come from ``Label`` and y values from ``Value`` when those columns
exist.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from report_parse import ParsedTable, Row, cell_text, find_header

CATEGORY_FIELD = "Property"
TITLE_FIELD = "Title"
CHART_TYPES = ("bar", "line", "pie", "doughnut")
DEFAULT_CHART_TYPE = "bar"
REPORT_HEADING = "Demographics report"


def sanitize_title_key(title: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", str(title))


def _distinct(values) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _row_category(row: Row) -> str:
    return cell_text(row.get(CATEGORY_FIELD, ""))


def _row_title(row: Row) -> str:
    return cell_text(row.get(TITLE_FIELD, ""))


def list_categories(table: ParsedTable) -> List[str]:
    return _distinct(_row_category(r) for r in table.rows)


def list_series_titles(table: ParsedTable, category: str) -> List[str]:
    wanted = str(category).strip()
    return _distinct(_row_title(r) for r in table.rows if _row_category(r) == wanted)


def list_titles(table: ParsedTable) -> List[str]:
    """All series titles in the file, regardless of category."""
    title_header = table.headers[1] if len(table.headers) > 1 else TITLE_FIELD
    return _distinct(cell_text(r.get(title_header, "")) for r in table.rows)


def resolve_axes(headers) -> Tuple[str, str]:
    """Return (x_field, y_field) for a header set."""
    headers = list(headers)
    if not headers:
        return "", ""
    x_field = find_header(headers, "label") or headers[0]
    y_field = find_header(headers, "value") or (headers[1] if len(headers) > 1 else headers[0])
    return x_field, y_field


@dataclass
class SeriesGroup:
    category: str
    title: str
    rows: List[Row]
    x_field: str
    y_field: str
    label: str

    @property
    def key(self) -> str:
        return sanitize_title_key(self.title)


@dataclass
class SeriesDisplayConfig:
    """Per-series overrides keyed by sanitized title."""

    labels: Dict[str, str] = field(default_factory=dict)
    visibility: Dict[str, bool] = field(default_factory=dict)
    hide_axis_names: Dict[str, bool] = field(default_factory=dict)
    chart_types: Dict[str, str] = field(default_factory=dict)
    default_chart_type: str = DEFAULT_CHART_TYPE

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SeriesDisplayConfig":
        def _mapping(name: str) -> dict:
            value = data.get(name) or {}
            return dict(value) if isinstance(value, dict) else {}

        default_type = str(data.get("default_chart_type") or DEFAULT_CHART_TYPE).lower()
        if default_type not in CHART_TYPES:
            raise ValueError(f"Unsupported chart type: {default_type}")
        return cls(
            labels={str(k): str(v) for k, v in _mapping("labels").items()},
            visibility={str(k): bool(v) for k, v in _mapping("visibility").items()},
            hide_axis_names={str(k): bool(v) for k, v in _mapping("hide_axis_names").items()},
            chart_types={str(k): str(v).lower() for k, v in _mapping("chart_types").items()},
            default_chart_type=default_type,
        )

    def is_visible(self, group: SeriesGroup) -> bool:
        return self.visibility.get(group.key, True)

    def axis_names_hidden(self, group: SeriesGroup) -> bool:
        return self.hide_axis_names.get(group.key, False)

    def chart_type_for(self, group: SeriesGroup) -> str:
        chart_type = self.chart_types.get(group.key, self.default_chart_type)
        return chart_type if chart_type in CHART_TYPES else self.default_chart_type


def group_by_series(table: ParsedTable, category: str,
                    labels: Optional[Dict[str, str]] = None) -> List[SeriesGroup]:
    wanted = str(category).strip()
    in_category = [r for r in table.rows if _row_category(r) == wanted]
    x_field, y_field = resolve_axes(table.headers)
    labels = labels or {}

    groups: List[SeriesGroup] = []
    for title in _distinct(_row_title(r) for r in in_category):
        members = [r for r in in_category if _row_title(r) == title]
        override = (labels.get(sanitize_title_key(title)) or "").strip()
        groups.append(SeriesGroup(
            category=wanted,
            title=title,
            rows=members,
            x_field=x_field,
            y_field=y_field,
            label=override or title,
        ))
    return groups


def visible_series(groups: List[SeriesGroup], config: Optional[SeriesDisplayConfig]) -> List[SeriesGroup]:
    if config is None:
        return list(groups)
    return [g for g in groups if config.is_visible(g)]


def _leading_number(value: object) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)", str(value))
    return float(match.group(1)) if match else 0.0


def series_chart_data(group: SeriesGroup) -> Tuple[List[str], List[float]]:
    """Labels and numeric values for one series (unparseable values count as 0)."""
    labels: List[str] = []
    values: List[float] = []
    for row in group.rows:
        if group.x_field not in row or group.y_field not in row:
            continue
        labels.append(cell_text(row[group.x_field]))
        values.append(_leading_number(row[group.y_field]))
    return labels, values


# ------------------------------ Report period --------------------------------

def _export_date_header(headers) -> Optional[str]:
    for header in headers:
        lowered = str(header).lower()
        if "export" in lowered:
            return header
    return None


def report_period(table: ParsedTable, today: Optional[date] = None) -> Tuple[str, int]:
    """(month name, year) of the export, taken from the first row when possible."""
    today = today or date.today()
    header = _export_date_header(table.headers)
    if table.rows and header is not None:
        raw = cell_text(table.rows[0].get(header, ""))
        stamp = pd.to_datetime(raw, errors="coerce") if raw else pd.NaT
        if not pd.isna(stamp):
            return stamp.strftime("%B"), int(stamp.year)
    return today.strftime("%B"), today.year


def report_heading(table: ParsedTable, today: Optional[date] = None, title: str = REPORT_HEADING) -> str:
    month, year = report_period(table, today)
    return f"{title} ({month} - {year})"
