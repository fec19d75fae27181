#!/usr/bin/env python3
"""Render series groups as bar/line/pie/doughnut charts with matplotlib.

Outputs:
  <out_dir>/<sanitized title>.png   one chart per visible series
  <pdf_path>                        all visible charts, two per row, A4 portrait
"""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.backends.backend_pdf import PdfPages  # noqa: E402

from report_series import (  # noqa: E402
    DEFAULT_CHART_TYPE,
    SeriesDisplayConfig,
    SeriesGroup,
    series_chart_data,
    visible_series,
)

PALETTE = [
    "#0078d4",
    "#107c10",
    "#d83b01",
    "#8661c5",
    "#00b7c3",
    "#f50f0f",
    "#ffb900",
    "#00bcf2",
]
A4_PORTRAIT_IN = (8.27, 11.69)
CHARTS_PER_ROW = 2
ROWS_PER_PAGE = 3


def _colors(n: int) -> List[str]:
    return [PALETTE[i % len(PALETTE)] for i in range(n)]


def draw_series(ax, group: SeriesGroup, chart_type: str = DEFAULT_CHART_TYPE,
                hide_axis_names: bool = False) -> bool:
    """Draw one series onto ``ax``; returns False when there is nothing to plot."""
    labels, values = series_chart_data(group)
    if not labels:
        ax.axis("off")
        ax.text(0.5, 0.5, "No data available for the selected columns",
                ha="center", va="center", transform=ax.transAxes)
        return False

    if chart_type in ("pie", "doughnut"):
        safe = np.clip(np.asarray(values, dtype=float), 0.0, None)
        if not np.any(safe > 0):
            ax.axis("off")
            ax.text(0.5, 0.5, "No positive values to chart", ha="center", va="center",
                    transform=ax.transAxes)
            return False
        wedge = {"width": 0.45} if chart_type == "doughnut" else None
        ax.pie(safe, labels=labels, colors=_colors(len(labels)), autopct="%1.1f%%",
               startangle=90, counterclock=False, wedgeprops=wedge)
        ax.axis("equal")
    else:
        positions = np.arange(len(labels))
        if chart_type == "line":
            ax.plot(positions, values, marker="o", color=PALETTE[0], linewidth=2.0, label=group.y_field)
        else:
            ax.bar(positions, values, color=_colors(len(labels)), label=group.y_field)
        ax.set_xticks(positions)
        ax.set_xticklabels([textwrap.shorten(l, width=18, placeholder="…") for l in labels],
                           rotation=30, ha="right")
        ax.grid(True, axis="y", alpha=0.3)
        if not hide_axis_names:
            ax.set_xlabel(group.x_field)
            ax.set_ylabel(group.y_field)
    ax.set_title(group.label, fontsize=11, fontweight="bold")
    return True


def render_series_pngs(groups: List[SeriesGroup], out_dir: Path,
                       config: Optional[SeriesDisplayConfig] = None) -> List[Path]:
    config = config or SeriesDisplayConfig()
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for group in visible_series(groups, config):
        fig, ax = plt.subplots(figsize=(8, 5), dpi=120)
        try:
            drawn = draw_series(ax, group, config.chart_type_for(group), config.axis_names_hidden(group))
            if not drawn:
                print(f"    Skipping '{group.title}' (no data).")
                continue
            fig.tight_layout()
            destination = out_dir / f"{group.key or 'series'}.png"
            fig.savefig(destination)
            written.append(destination)
        finally:
            plt.close(fig)
    return written


def export_pdf(groups: List[SeriesGroup], pdf_path: Path, heading: str,
               config: Optional[SeriesDisplayConfig] = None) -> int:
    """Write visible charts two per row; returns the number of pages."""
    config = config or SeriesDisplayConfig()
    shown = visible_series(groups, config)
    per_page = CHARTS_PER_ROW * ROWS_PER_PAGE
    pdf_path.parent.mkdir(parents=True, exist_ok=True)

    pages = 0
    with PdfPages(pdf_path) as pdf:
        for start in range(0, max(len(shown), 1), per_page):
            chunk = shown[start:start + per_page]
            fig, axes = plt.subplots(ROWS_PER_PAGE, CHARTS_PER_ROW, figsize=A4_PORTRAIT_IN)
            fig.suptitle(heading, fontsize=16)
            for ax in axes.flat:
                ax.axis("off")
            for ax, group in zip(axes.flat, chunk):
                ax.axis("on")
                draw_series(ax, group, config.chart_type_for(group), config.axis_names_hidden(group))
            fig.tight_layout(rect=(0.03, 0.03, 0.97, 0.95))
            pdf.savefig(fig)
            plt.close(fig)
            pages += 1
    return pages
