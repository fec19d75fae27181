#!/usr/bin/env python3
"""Best-effort extraction of unit-type counts from free-text report rows.

Unit mixes are typed in by hand, e.g. a row per type::

  P1,Unit Types,Studio,,10
  P1,Unit Types,One Bedroom,,20

or a single compound value such as ``"Studio: 10; 1BR: 20"``. Labels are
normalized to keys like ``studio`` / ``1br`` / ``2br``. The matching is
heuristic and may under-extract unusual phrasing.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from report_parse import ParsedTable, Row, cell_text

CANONICAL_UNIT_KEYS = ("studio", "1br", "2br", "3br")
UNIT_COUNT_KEYS = ("unitcount", "totalunits", "units", "numberofunits")

NUMBER_WORDS = {"one": "1", "two": "2", "three": "3"}

UNIT_TITLE_RE = re.compile(r"unit\s*types?|unit\s*mix", re.I)
PROPERTY_TITLE_RE = re.compile(r"property\s*(?:details?|data)", re.I)

UnitMap = Dict[str, str]
Number = Union[int, float]


def normalize_unit_label(label: str) -> str:
    key = str(label or "").strip().lower()
    for word, digit in NUMBER_WORDS.items():
        key = re.sub(rf"\b{word}\b", digit, key)
    key = re.sub(r"[^a-z0-9]+", "", key)
    if key in ("st", "studio", "studios") or key.startswith("studio"):
        return "studio"
    return re.sub(r"(\d)(?:bedrooms?|beds?|bdrms?|bds?|brs?)$", r"\1br", key)


# ---------------------------- Compound values --------------------------------

_PAIR_PATTERNS = (
    re.compile(r"([A-Za-z0-9][A-Za-z0-9 ]*?)\s*:\s*([^;,\n:]+)"),
    re.compile(r"([A-Za-z0-9][A-Za-z0-9 ]*?)\s+[-–]\s*([^;,\n]+)"),
)


def parse_compound_value(text: str) -> List[Tuple[str, str]]:
    """Split ``"Studio: 10; 1BR: 20"`` style text into (label, value) pairs."""
    text = str(text or "")
    for pattern in _PAIR_PATTERNS:
        pairs = [(m.group(1).strip(), m.group(2).strip()) for m in pattern.finditer(text)]
        pairs = [(label, value) for label, value in pairs if label and value]
        if pairs:
            return pairs

    pairs = []
    for segment in re.split(r"[;,\n]", text):
        match = re.match(r"^\s*(.+?)\s+(\d[\d.]*)\s*$", segment)
        if match:
            pairs.append((match.group(1).strip(), match.group(2)))
    return pairs


# ------------------------------ Extraction -----------------------------------

def _is_unit_row(row: Row) -> bool:
    title = cell_text(row.get("Title", ""))
    return bool(UNIT_TITLE_RE.search(title) or PROPERTY_TITLE_RE.search(title))


def _row_value(row: Row) -> str:
    return cell_text(row.get("Value", "")) or cell_text(row.get("TextData", ""))


def extract_unit_entries(table: ParsedTable, category: str) -> UnitMap:
    """Every label/value pair found for the category, normalized keys."""
    wanted = str(category).strip()
    entries: UnitMap = {}
    for row in table.rows:
        if cell_text(row.get("Property", "")) != wanted or not _is_unit_row(row):
            continue
        label = cell_text(row.get("Label", ""))
        value = _row_value(row)
        if not value:
            continue
        if label:
            key = normalize_unit_label(label)
            if key:
                entries[key] = value
            continue
        for part_label, part_value in parse_compound_value(value):
            key = normalize_unit_label(part_label)
            if key:
                entries[key] = part_value
    return entries


def extract_unit_map(table: ParsedTable, category: str) -> UnitMap:
    entries = extract_unit_entries(table, category)
    return {key: entries[key] for key in CANONICAL_UNIT_KEYS if key in entries}


def extract_number(text: object) -> Optional[float]:
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = re.sub(r"[,()]", "", str(text or ""))
    match = re.search(r"-?\d+(?:\.\d+)?", cleaned)
    return float(match.group(0)) if match else None


def _as_number(total: float) -> Number:
    return int(total) if float(total).is_integer() else total


def unit_total(unit_map: UnitMap) -> Optional[Number]:
    """Sum of the canonical unit counts; non-numeric values are skipped."""
    numbers = [extract_number(unit_map[k]) for k in CANONICAL_UNIT_KEYS if k in unit_map]
    numbers = [n for n in numbers if n is not None]
    if not numbers:
        return None
    return _as_number(sum(numbers))


@dataclass
class UnitBreakdown:
    units: UnitMap
    total: Optional[Number]
    total_is_explicit: bool = False


def unit_breakdown(table: ParsedTable, category: str) -> UnitBreakdown:
    entries = extract_unit_entries(table, category)
    units = {key: entries[key] for key in CANONICAL_UNIT_KEYS if key in entries}
    for key in UNIT_COUNT_KEYS:
        explicit = extract_number(entries.get(key, ""))
        if explicit is not None:
            return UnitBreakdown(units=units, total=_as_number(explicit), total_is_explicit=True)
    return UnitBreakdown(units=units, total=unit_total(units))
