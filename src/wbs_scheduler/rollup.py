from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from .wbs_models import RollupResult, RollupUpdate, Status, WBSItem


def rollup_progress(children: Sequence[WBSItem]) -> int:
    """Mean child progress rounded half up."""
    total = sum(child.progress for child in children)
    count = len(children)
    return (2 * total + count) // (2 * count)


def rollup_status(children: Sequence[WBSItem]) -> Status:
    """Derive a parent status; rules are checked in priority order, first match wins."""
    if all(child.progress == 100 for child in children) or all(
        child.status == Status.COMPLETED for child in children
    ):
        return Status.COMPLETED
    if any(child.status == Status.IN_PROGRESS or child.progress > 0 for child in children):
        return Status.IN_PROGRESS
    if any(child.status == Status.DELAYED for child in children):
        return Status.DELAYED
    if any(child.status == Status.ON_HOLD for child in children):
        return Status.ON_HOLD
    return Status.NOT_STARTED


def update_parent_rollups(items: list[WBSItem], changed_item_id: str) -> RollupResult:
    """
    Recompute progress/status of every ancestor of changed_item_id.

    Returns a new tree plus the ancestors whose values changed, deepest first,
    so the caller can persist exactly those rows. The input tree is not modified.
    """

    parents_to_update: list[RollupUpdate] = []
    updated_items = [_visit(root, changed_item_id, parents_to_update)[0] for root in items]
    return RollupResult(updated_items=updated_items, parents_to_update=parents_to_update)


def recalculate_all_rollups(items: list[WBSItem]) -> RollupResult:
    """Recompute every parent in the tree, e.g. after a bulk import."""
    parents_to_update: list[RollupUpdate] = []
    updated_items = [_visit(root, None, parents_to_update)[0] for root in items]
    return RollupResult(updated_items=updated_items, parents_to_update=parents_to_update)


def _visit(node: WBSItem, changed_item_id: str | None, out: list[RollupUpdate]) -> tuple[WBSItem, bool]:
    """Return the rebuilt node and whether its subtree holds the changed item."""

    is_changed = node.id == changed_item_id
    if not node.children:
        return node, is_changed

    children: list[WBSItem] = []
    below = False
    for child in node.children:
        new_child, child_hit = _visit(child, changed_item_id, out)
        children.append(new_child)
        below = below or child_hit

    updated = replace(node, children=children)
    if below or changed_item_id is None:
        progress = rollup_progress(children)
        status = rollup_status(children)
        if progress != node.progress or status != node.status:
            updated = replace(updated, progress=progress, status=status)
            out.append(RollupUpdate(id=node.id, progress=progress, status=status))

    return updated, below or is_changed
