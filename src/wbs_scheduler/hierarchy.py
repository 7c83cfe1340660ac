from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping

from .parse_rows import rows_to_items
from .wbs_models import WBSItem, expected_level

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def wbs_sort_key(wbs_id: str) -> tuple[tuple[int, ...], str]:
    """Numeric path ordering so that "2.10" sorts after "2.9"."""
    numbers = []
    for part in wbs_id.split("."):
        try:
            numbers.append(int(part))
        except ValueError:
            numbers.append(0)
    return tuple(numbers), wbs_id


def build_hierarchy(rows: Iterable[Mapping[str, Any] | WBSItem]) -> list[WBSItem]:
    """
    Rebuild the WBS tree from flat rows and return its roots.

    - Rows sharing a wbs_id are collapsed to one (closest declared level, then newest).
    - Parentage comes from the wbs_id path; stored parent_id is ignored.
    - Items whose parent path is absent become roots instead of being dropped.
    - Siblings are ordered by numeric path comparison.

    Input rows and items are not modified.
    """

    by_wbs: dict[str, WBSItem] = {}
    for candidate in rows_to_items(rows):
        candidate = replace(candidate, children=[])
        current = by_wbs.get(candidate.wbs_id)
        if current is None or _preferred(candidate, current):
            by_wbs[candidate.wbs_id] = candidate

    roots: list[WBSItem] = []
    for item in sorted(by_wbs.values(), key=lambda i: wbs_sort_key(i.wbs_id)):
        parent_path = item.parent_wbs_id
        parent = by_wbs.get(parent_path) if parent_path is not None else None
        if parent is None:
            roots.append(item)
        else:
            parent.children.append(item)

    _sort_tree(roots)
    return roots


def flatten_wbs_hierarchy(items: Iterable[WBSItem]) -> list[WBSItem]:
    """Pre-order list of every node in the tree."""
    return list(_walk_items(items))


def find_wbs_item(items: Iterable[WBSItem], item_id: str) -> WBSItem | None:
    for item in _walk_items(items):
        if item.id == item_id:
            return item
    return None


def update_items_recursively(items: list[WBSItem], item_id: str, updates: Mapping[str, Any]) -> list[WBSItem]:
    """Return a new tree with the given fields replaced on item_id."""
    result = []
    for item in items:
        if item.id == item_id:
            result.append(replace(item, **updates))
        elif item.children:
            result.append(replace(item, children=update_items_recursively(item.children, item_id, updates)))
        else:
            result.append(item)
    return result


def remove_item_recursively(items: list[WBSItem], item_id: str) -> list[WBSItem]:
    """Return a new tree without item_id; its whole subtree goes with it."""
    result = []
    for item in items:
        if item.id == item_id:
            continue
        if item.children:
            item = replace(item, children=remove_item_recursively(item.children, item_id))
        result.append(item)
    return result


def collect_subtree_ids(items: Iterable[WBSItem], item_id: str) -> list[str]:
    """Ids of item_id and all its descendants, i.e. every row a delete must remove."""
    node = find_wbs_item(items, item_id)
    if node is None:
        return []
    return [item.id for item in _walk_items([node])]


def strip_predecessor_references(items: Iterable[WBSItem], removed_ids: Iterable[str]) -> list[WBSItem]:
    """Return the items that referenced removed ids, with those links dropped."""
    removed = set(removed_ids)
    changed = []
    for item in items:
        kept = [pred for pred in item.predecessors if pred.id not in removed]
        if len(kept) != len(item.predecessors):
            changed.append(replace(item, predecessors=kept))
    return changed


def _preferred(candidate: WBSItem, current: WBSItem) -> bool:
    cand_score = _level_score(candidate)
    curr_score = _level_score(current)
    if cand_score != curr_score:
        return cand_score < curr_score
    cand_updated = sortable_timestamp(candidate.updated_at)
    curr_updated = sortable_timestamp(current.updated_at)
    if cand_updated != curr_updated:
        return cand_updated > curr_updated
    return candidate.id < current.id


def sortable_timestamp(value: datetime | None) -> datetime:
    """Comparable timestamp; missing values sort first, naive values are taken as UTC."""
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _level_score(item: WBSItem) -> int:
    expected = expected_level(item.wbs_id)
    declared = item.declared_level if item.declared_level is not None else expected
    return abs(declared - expected)


def _sort_tree(nodes: list[WBSItem]) -> None:
    nodes.sort(key=lambda n: wbs_sort_key(n.wbs_id))
    for node in nodes:
        _sort_tree(node.children)


def _walk_items(items: Iterable[WBSItem]) -> Iterator[WBSItem]:
    for item in items:
        yield item
        yield from _walk_items(item.children)
