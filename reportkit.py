#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
reportkit – fetch a report CSV from a document library, group it into series and chart it

Remote file address:
  <site url>/<web path>/<library>/<folder>/<file>
  e.g. https://contoso.sharepoint.com  /sites/TheLoop  Shared Documents  Reports/2024  data.csv

CSV schema (headers optional, matched case-insensitively):
  Property | Title | Label | Value | TextData | ExportDate

Outputs (with --output):
  <output>/charts/<property>/<title>.png
  <output>/charts/<property>/report.pdf

Run:
  python reportkit.py --site-url https://contoso.sharepoint.com --web-path /sites/TheLoop --list
  python reportkit.py --site-url ... --web-path ... --folder Reports --file data.csv --property P1 --units
  python reportkit.py --site-url ... --link "https://contoso.sharepoint.com/:x:/r/sites/TheLoop/Shared%20Documents/data.csv"
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from report_fetch import DEFAULT_LIBRARY, DEFAULT_TIMEOUT_S, RequestsTransport, ResourceFetcher
from report_parse import ParsedTable, ReportError, table_to_frame
from report_series import (
    CHART_TYPES,
    SeriesDisplayConfig,
    group_by_series,
    list_categories,
    report_heading,
    sanitize_title_key,
    visible_series,
)
from report_units import CANONICAL_UNIT_KEYS, unit_breakdown

DEFAULT_OUTPUT_DIR = "report_output"
UNIT_DISPLAY_NAMES = {"studio": "Studio", "1br": "1 BR", "2br": "2 BR", "3br": "3 BR"}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a report CSV, group it by property/title and chart it.")
    parser.add_argument("--site-url", default=os.environ.get("REPORTS_SITE_URL", ""),
                        help="Absolute site URL (env REPORTS_SITE_URL)")
    parser.add_argument("--web-path", default=os.environ.get("REPORTS_WEB_PATH", ""),
                        help="Server-relative URL of the web, e.g. /sites/TheLoop (env REPORTS_WEB_PATH)")
    parser.add_argument("--library", default=os.environ.get("REPORTS_LIBRARY", DEFAULT_LIBRARY))
    parser.add_argument("--folder", default=os.environ.get("REPORTS_FOLDER", ""), help="Folder inside the library")
    parser.add_argument("--file", default=os.environ.get("REPORTS_FILE", ""), help="CSV file name")
    parser.add_argument("--link", default="", help="Sharing link to the CSV file (instead of --file)")
    parser.add_argument("--list", action="store_true", help="List CSV files in the folder and exit")
    parser.add_argument("--property", default="", help="Property (category) to chart; default: all")
    parser.add_argument("--units", action="store_true", help="Print the unit-type breakdown per property")
    parser.add_argument("--preview", type=int, default=0, help="Print the first N parsed rows")
    parser.add_argument("--output", default=os.environ.get("REPORTS_OUTPUT", ""),
                        help=f"Write charts below this folder (e.g. {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("--pdf", action="store_true", help="Also write one PDF per property (needs --output)")
    parser.add_argument("--chart-type", default="bar", choices=CHART_TYPES)
    parser.add_argument("--display-config", default="", help="JSON file with labels/visibility/chart_types per title")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S)
    parser.add_argument("--verbose", action="store_true", help="Print every request attempt")
    return parser.parse_args(argv)


def load_display_config(path: str, chart_type: str) -> SeriesDisplayConfig:
    data = {}
    if path:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    data.setdefault("default_chart_type", chart_type)
    return SeriesDisplayConfig.from_dict(data)


def build_fetcher(args: argparse.Namespace) -> ResourceFetcher:
    return ResourceFetcher(
        args.site_url,
        web_path=args.web_path,
        transport=RequestsTransport(timeout=args.timeout),
        verbose=args.verbose,
    )


def print_units(table: ParsedTable, prop: str) -> None:
    breakdown = unit_breakdown(table, prop)
    if not breakdown.units and breakdown.total is None:
        print(f"  [{prop}] No unit types found.")
        return
    print(f"  [{prop}] Unit types:")
    for key in CANONICAL_UNIT_KEYS:
        if key in breakdown.units:
            print(f"    {UNIT_DISPLAY_NAMES[key]:<7} {breakdown.units[key]}")
    if breakdown.total is not None:
        source = "reported" if breakdown.total_is_explicit else "sum"
        print(f"    {'Total':<7} {breakdown.total} ({source})")


def report_property(table: ParsedTable, prop: str, args: argparse.Namespace,
                    config: SeriesDisplayConfig) -> None:
    groups = group_by_series(table, prop, config.labels)
    shown = visible_series(groups, config)
    print(f"  [{prop}] {len(groups)} series ({len(shown)} visible)")
    for group in groups:
        marker = "" if config.is_visible(group) else " (hidden)"
        print(f"    - {group.label}: {len(group.rows)} row(s), x={group.x_field} y={group.y_field}{marker}")

    if args.units:
        print_units(table, prop)

    if args.output:
        # Imported lazily so listing/printing works without a plotting backend.
        from report_charts import export_pdf, render_series_pngs

        out_dir = Path(args.output).resolve() / "charts" / (sanitize_title_key(prop) or "property")
        written = render_series_pngs(groups, out_dir, config)
        print(f"  [{prop}] {len(written)} chart(s) saved -> {out_dir}")
        if args.pdf:
            pdf_path = out_dir / "report.pdf"
            pages = export_pdf(groups, pdf_path, report_heading(table), config)
            print(f"  [{prop}] PDF saved ({pages} page(s)) -> {pdf_path}")


def run(args: argparse.Namespace, fetcher: ResourceFetcher) -> int:
    if args.list or not (args.file or args.link):
        files = fetcher.list_entries(args.library, args.folder)
        if not files:
            print("No CSV files found. Please check the library name and folder path.")
            return 0
        print(f"CSV files in {fetcher.build_folder_locator(args.library, args.folder)}:")
        for name in files:
            print(f"  {name}")
        return 0

    if args.link:
        table = fetcher.fetch_table_from_link(args.link)
    else:
        table = fetcher.get_table(args.library, args.folder, args.file)
    print(f"Parsed {len(table.rows)} row(s); columns: {', '.join(table.headers)}")
    if not table.rows:
        print("The CSV file is empty. Please check the file and try again.")
        return 0

    if args.preview > 0:
        print(table_to_frame(table).head(args.preview).to_string(index=False))

    config = load_display_config(args.display_config, args.chart_type)
    properties = [args.property] if args.property else list_categories(table)
    if not properties:
        print("No Property values found.")
        return 0
    for prop in properties:
        report_property(table, prop, args, config)
    print("Done.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if not args.site_url:
        print("No site URL given (use --site-url or REPORTS_SITE_URL).", file=sys.stderr)
        return 1
    try:
        return run(args, build_fetcher(args))
    except ReportError as exc:
        print(f"Report error: {exc}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
