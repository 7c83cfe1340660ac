from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.path as mpath
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch

from .wbs_models import FlatRenderRow, Status

ROUTE_X_PAD = 0.35  # horizontal gap from bar edges to start/end of connector
BRACKET_LW = 2.5
TIMELINE_PAD_DAYS = 7  # add breathing room before first and after last date
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TOP_MARGIN_FRAC = 0.85
TITLE_Y = 0.985
INDENT_STEP = 0.03  # label axis fraction per hierarchy level

STATUS_EDGE_COLORS = {
    Status.NOT_STARTED: "#7a7a7a",
    Status.IN_PROGRESS: "#1f77b4",
    Status.COMPLETED: "#2ca02c",
    Status.DELAYED: "#d62728",
    Status.ON_HOLD: "#ff9f1c",
}


def render_gantt(
    rows: list[FlatRenderRow],
    out_path: str,
    title: str,
    min_date: dt.date | None = None,
    max_date: dt.date | None = None,
) -> None:
    """
    Render a static SVG Gantt chart of a WBS schedule to `out_path`.

    - Expects rows from to_render_rows (dates already scheduled).
    - Stage headings are label-only rows; indentation follows the WBS level.
    - Bars show progress as a darker fill; the outline colour reflects status.
    - Deterministic stage colours based on sorted stage paths.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    min_date, max_date = _resolve_date_window(rows, min_date, max_date)

    stage_colors = _stage_colors(rows)
    row_height = 0.6

    span_days = (max_date - min_date).days + 1
    fig_height = max(3.0, row_height * len(rows) + 2.0)
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 2.0 + 6.0))
    fig = plt.figure(figsize=(fig_width, fig_height))
    # Allocate explicit grid: left column for labels, right for chart.
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.06, right=0.98, top=TOP_MARGIN_FRAC, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    # Configure axes: dates on x, rows on y.
    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(
        mdates.date2num(min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)),
        mdates.date2num(max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)),
    )
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"wbs-scheduler v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    bar_rects: dict[str, tuple[float, float, float, float]] = {}

    for y, row in enumerate(rows):
        text_weight = "bold" if row.node_type == "stage" else "normal"
        label_ax.text(
            0.02 + INDENT_STEP * row.indent,
            y,
            f"{row.wbs}  {row.name}",
            ha="left",
            va="center",
            fontsize=LABEL_FONT,
            fontweight=text_weight,
            transform=label_ax.transData,
        )

        if row.start_date is None or row.finish_date is None:
            continue

        x_start = mdates.date2num(row.start_date)
        x_end = mdates.date2num(row.finish_date + dt.timedelta(days=1))
        color = stage_colors.get(row.stage, "#999999")

        if row.node_type == "bar":
            width = x_end - x_start
            ax.barh(
                y,
                width=width,
                left=x_start,
                height=row_height,
                color=color,
                alpha=0.45,
                edgecolor=STATUS_EDGE_COLORS.get(row.status, "black"),
                linewidth=1.0,
            )
            if row.progress > 0:
                ax.barh(y, width=width * row.progress / 100.0, left=x_start, height=row_height * 0.5, color=color)
            bar_rects[row.node_id] = (x_start, x_end, y - row_height / 2, y + row_height / 2)
        else:
            cap = row_height / 2.2
            ax.plot([x_start, x_end], [y, y], color=color, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_start, x_start], [y - cap, y + cap], color=color, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_end, x_end], [y - cap, y + cap], color=color, linewidth=BRACKET_LW, zorder=2)

    _draw_dependencies(ax, rows, bar_rects)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _stage_colors(rows: Iterable[FlatRenderRow]) -> dict[str, str]:
    stage_ids = sorted({row.stage for row in rows if row.stage})
    palette = plt.get_cmap("tab20")
    return {sid: matplotlib.colors.to_hex(palette(i % palette.N)) for i, sid in enumerate(stage_ids)}


def _resolve_date_window(
    rows: Iterable[FlatRenderRow], min_date: dt.date | None, max_date: dt.date | None
) -> tuple[dt.date, dt.date]:
    starts: list[dt.date] = []
    finishes: list[dt.date] = []
    for row in rows:
        if row.start_date:
            starts.append(row.start_date)
        if row.finish_date:
            finishes.append(row.finish_date)
    if not starts and min_date is None:
        raise ValueError("Cannot infer min_date; no date values present")

    computed_min = min_date or min(starts)
    computed_max_candidates = finishes + starts
    if not computed_max_candidates and max_date is None:
        raise ValueError("Cannot infer max_date; no date values present")
    computed_max = max_date or max(computed_max_candidates)
    return computed_min, computed_max


def _tool_version() -> str:
    try:
        return metadata.version("wbs-scheduler")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")


def _connector(
    a_rect: tuple[float, float, float, float],
    b_rect: tuple[float, float, float, float],
) -> list[tuple[float, float]]:
    """Three-segment pattern: right → vertical → right."""
    axmin, axmax, aymin, aymax = a_rect
    bxmin, bxmax, bymin, bymax = b_rect
    start = (axmax + ROUTE_X_PAD, (aymin + aymax) / 2)
    goal = (bxmin - ROUTE_X_PAD, (bymin + bymax) / 2)
    x_lane = (start[0] + goal[0]) / 2
    return [start, (x_lane, start[1]), (x_lane, goal[1]), goal]


def _draw_dependencies(
    ax: plt.Axes,
    rows: list[FlatRenderRow],
    bar_rects: dict[str, tuple[float, float, float, float]],
) -> None:
    for row in rows:
        b_rect = bar_rects.get(row.node_id)
        if b_rect is None:
            continue
        for dep_id in row.depends_on:
            a_rect = bar_rects.get(dep_id)
            if a_rect is None:
                continue
            points = _connector(a_rect, b_rect)
            codes = [mpath.Path.MOVETO] + [mpath.Path.LINETO] * (len(points) - 1)
            arrow = FancyArrowPatch(
                path=mpath.Path(points, codes),
                arrowstyle="-|>",
                mutation_scale=8.0,
                lw=0.9,
                color="#3a3a3a",
                shrinkA=0.5,
                shrinkB=0.5,
            )
            ax.add_patch(arrow)
