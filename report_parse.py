#!/usr/bin/env python3
"""Parse hand-exported report CSV files into canonical rows.

The exports are maintained by hand, so headers may be missing, partial or
reordered. Every row is mapped onto a fixed canonical header set:

  Property | Title | Label | Value | TextData [| ExportDate]

Header detection:
  - If any canonical name appears in the first line (case-insensitive), the
    first line is a header and columns are mapped by name.
  - Otherwise the file is header-less, the first line is data and columns are
    mapped by position, choosing the header set by the number of fields.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

BASE_HEADERS = ["Property", "Title", "Label", "Value", "TextData"]
EXPECTED_HEADERS = BASE_HEADERS + ["ExportDate"]

CellValue = Union[int, float, str]
Row = Mapping[str, CellValue]

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


class ReportError(RuntimeError):
    """Base class for report pipeline failures."""


class EmptyInputError(ReportError):
    """Raised when a CSV source contains no content lines at all."""


@dataclass(frozen=True)
class ParsedTable:
    """Rows are read-only mappings; cached tables are shared between callers."""

    headers: Tuple[str, ...]
    rows: Tuple[Row, ...]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class HeaderResolution:
    headers: Tuple[str, ...]
    index_map: Tuple[Optional[int], ...]
    data_start_line: int


@dataclass(frozen=True)
class HeaderedResult(HeaderResolution):
    """First line named at least one canonical column."""


@dataclass(frozen=True)
class PositionalResult(HeaderResolution):
    """No canonical names found; the first line is already data."""


# ------------------------------- Tokenizer ----------------------------------

def tokenize(line: str) -> List[str]:
    """Split one CSV line into trimmed fields.

    Quoted fields may contain commas; a doubled quote inside quotes is a
    literal quote. An unterminated quote swallows the rest of the line.
    """
    fields: List[str] = []
    current: List[str] = []
    inside_quotes = False
    i = 0
    length = len(line)
    while i < length:
        char = line[i]
        if char == '"':
            if inside_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == "," and not inside_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current).strip())
    return fields


# ---------------------------- Header detection -------------------------------

def find_header(headers: Sequence[str], name: str) -> Optional[str]:
    """Return the header equal to ``name`` ignoring case, if any."""
    key = name.strip().lower()
    for header in headers:
        if str(header).strip().lower() == key:
            return header
    return None


def resolve_headers(first_line_fields: Sequence[str]) -> HeaderResolution:
    lowered = [str(f).strip().lower() for f in first_line_fields]
    by_name: List[Optional[int]] = []
    for name in EXPECTED_HEADERS:
        key = name.lower()
        by_name.append(lowered.index(key) if key in lowered else None)

    if any(idx is not None for idx in by_name):
        # Partial matches are trusted as a header row.
        return HeaderedResult(
            headers=tuple(EXPECTED_HEADERS),
            index_map=tuple(by_name),
            data_start_line=1,
        )

    count = len(first_line_fields)
    if count == len(BASE_HEADERS):
        headers = list(BASE_HEADERS)
    elif count >= len(EXPECTED_HEADERS):
        headers = list(EXPECTED_HEADERS)
    elif 0 < count < len(BASE_HEADERS):
        headers = BASE_HEADERS[:count]
    else:
        headers = list(BASE_HEADERS)
    return PositionalResult(
        headers=tuple(headers),
        index_map=tuple(range(len(headers))),
        data_start_line=0,
    )


# ----------------------------- Row building ----------------------------------

def coerce_cell(text: str) -> CellValue:
    """Return ``text`` as int/float when it is a plain number, else trimmed."""
    cleaned = (text or "").strip()
    if not cleaned or not _NUMBER_RE.fullmatch(cleaned):
        return cleaned
    if re.search(r"[.eE]", cleaned):
        return float(cleaned)
    return int(cleaned)


def _is_blank(fields: Sequence[str]) -> bool:
    return not fields or all(not f for f in fields)


def materialize(lines: Sequence[str], resolution: HeaderResolution) -> List[Row]:
    rows: List[Row] = []
    for line in lines[resolution.data_start_line:]:
        fields = tokenize(line)
        if _is_blank(fields):
            continue
        row: Dict[str, CellValue] = {}
        for header, src_idx in zip(resolution.headers, resolution.index_map):
            raw = fields[src_idx] if src_idx is not None and src_idx < len(fields) else ""
            row[header] = coerce_cell(raw)
        rows.append(MappingProxyType(row))
    return rows


def split_lines(text: str) -> List[str]:
    cleaned = (text or "").lstrip("\ufeff").strip()
    if not cleaned:
        return []
    return re.split(r"\r?\n", cleaned)


def parse_csv(text: str) -> ParsedTable:
    lines = split_lines(text)
    if not lines:
        raise EmptyInputError("CSV file is empty")
    resolution = resolve_headers(tokenize(lines[0]))
    rows = materialize(lines, resolution)
    return ParsedTable(headers=resolution.headers, rows=tuple(rows))


def table_to_frame(table: ParsedTable) -> pd.DataFrame:
    """Tabular preview of a parsed table, columns in header order."""
    return pd.DataFrame([dict(row) for row in table.rows], columns=list(table.headers))


def cell_text(value: object) -> str:
    """Render a cell back to text (``10.0`` becomes ``"10"``)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
