from __future__ import annotations

from typing import Iterable

from .hierarchy import flatten_wbs_hierarchy, sortable_timestamp, wbs_sort_key
from .scheduling import WBSValidationError
from .wbs_models import MAX_LEVEL, RenumberUpdate, WBSItem


def generate_wbs_id(items: Iterable[WBSItem], parent_id: str | None = None) -> str:
    """
    Allocate the wbs_id for a new item.

    Without a parent this is the smallest free root number ("1", "2", ...).
    With parent_id it is the smallest free child number under that parent,
    e.g. "2.3" when "2.1" and "2.2" exist. Gaps left by deletions are reused.
    """

    flat = flatten_wbs_hierarchy(items)

    if parent_id is None:
        used = {_leading_number(item.wbs_id) for item in flat if item.level == 0}
        return str(_first_free(used))

    parent = next((item for item in flat if item.id == parent_id), None)
    if parent is None:
        raise WBSValidationError(f"Cannot allocate child id: unknown parent '{parent_id}'")
    if parent.level >= MAX_LEVEL:
        raise WBSValidationError(
            f"Cannot allocate child id under '{parent.wbs_id}': maximum depth of {MAX_LEVEL + 1} levels reached"
        )

    used = {_trailing_number(item.wbs_id) for item in flat if item.parent_wbs_id == parent.wbs_id}
    return f"{parent.wbs_id}.{_first_free(used)}"


def renumber_all_wbs_items(items: Iterable[WBSItem]) -> list[RenumberUpdate]:
    """
    Renumber the whole tree to flat sequential ids "1", "2", "3", ...

    Items are ordered by creation time (missing timestamps last, path order
    breaks ties). Only items whose id actually changes are returned.
    """

    flat = flatten_wbs_hierarchy(items)
    ordered = sorted(
        flat,
        key=lambda item: (
            item.created_at is None,
            sortable_timestamp(item.created_at),
            wbs_sort_key(item.wbs_id),
        ),
    )

    updates: list[RenumberUpdate] = []
    for position, item in enumerate(ordered, start=1):
        new_wbs_id = str(position)
        if new_wbs_id != item.wbs_id:
            updates.append(RenumberUpdate(item=item, new_wbs_id=new_wbs_id))
    return updates


def _first_free(used: set[int | None]) -> int:
    candidate = 1
    while candidate in used:
        candidate += 1
    return candidate


def _leading_number(wbs_id: str) -> int | None:
    return _to_int(wbs_id.split(".")[0])


def _trailing_number(wbs_id: str) -> int | None:
    return _to_int(wbs_id.split(".")[-1])


def _to_int(segment: str) -> int | None:
    try:
        return int(segment)
    except ValueError:
        return None
