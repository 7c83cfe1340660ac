from __future__ import annotations

from datetime import date
from typing import List

from .wbs_models import FlatRenderRow, WBSItem


def to_render_rows(roots: list[WBSItem]) -> list[FlatRenderRow]:
    """
    Convert a WBS tree into a flat list of render rows with indentation.

    Roots that own children become stage headings; other parents render as
    brackets spanning their descendants, leaves as bars. Rows follow tree
    order with parents before their children.
    """

    rows: List[FlatRenderRow] = []
    order = 0
    for root in roots:
        order = _append_item(root, rows, order, indent=0, stage_wbs=root.wbs_id)
    return rows


def item_span(item: WBSItem) -> tuple[date | None, date | None]:
    """Earliest start and latest finish across the item's leaves."""
    if not item.children:
        return item.start_date, item.finish_date

    starts: list[date] = []
    finishes: list[date] = []
    for child in item.children:
        start, finish = item_span(child)
        if start is not None:
            starts.append(start)
        if finish is not None:
            finishes.append(finish)
    return (min(starts) if starts else None, max(finishes) if finishes else None)


def _append_item(item: WBSItem, rows: List[FlatRenderRow], order: int, indent: int, stage_wbs: str) -> int:
    """Append the given item and its children (if any); return updated order counter."""

    if not item.children:
        node_type = "bar"
    elif indent == 0:
        node_type = "stage"
    else:
        node_type = "bracket"

    start, finish = item_span(item)
    rows.append(
        FlatRenderRow(
            order=order,
            indent=indent,
            node_type=node_type,
            node_id=item.id,
            wbs=item.wbs_id,
            name=item.title or item.wbs_id,
            stage=stage_wbs,
            depends_on=[pred.id for pred in item.predecessors],
            start_date=start,
            finish_date=finish,
            progress=item.progress,
            status=item.status,
        )
    )
    order += 1
    for child in item.children:
        order = _append_item(child, rows, order, indent=indent + 1, stage_wbs=stage_wbs)
    return order
