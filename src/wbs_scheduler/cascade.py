from __future__ import annotations

import inspect
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Mapping, Union

from .log import get_logger
from .scheduling import auto_schedule_wbs_task
from .wbs_models import WBSItem

logger = get_logger(__name__)

PersistCallback = Callable[[str, Mapping[str, Any]], Union[Awaitable[None], None]]
"""Caller-supplied write of a partial update; expected to raise on failure."""


@dataclass
class CascadeResult:
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


async def auto_schedule_dependent_wbs_tasks(
    changed_task_id: str,
    all_tasks: list[WBSItem],
    persist: PersistCallback,
    processed: set[str] | None = None,
) -> CascadeResult:
    """
    Reschedule every task that depends, directly or transitively, on changed_task_id.

    Dependents are visited in dependency order and each is rescheduled at most
    once. Every accepted update is persisted through `persist(id, updates)` and
    written back into `all_tasks` (replacing the item in the list) so later
    calculations see it. A persist failure is logged and recorded; the cascade
    carries on with the remaining dependents. Dependents of a failed task are
    scheduled from its stored dates, since its new dates were never written.

    `processed` may be shared between calls to skip tasks already handled.
    """

    if processed is None:
        processed = set()
    result = CascadeResult()
    if changed_task_id in processed:
        return result
    processed.add(changed_task_id)

    dependents_of = _dependents_map(all_tasks)
    discovered = _collect_dependents(changed_task_id, dependents_of)
    order, leftover = _toposort(discovered, dependents_of)
    if leftover:
        logger.warning("cascade.cycle_detected", changed_task_id=changed_task_id, task_ids=leftover)

    positions = {task.id: idx for idx, task in enumerate(all_tasks)}
    for task_id in order + leftover:
        if task_id in processed:
            continue
        processed.add(task_id)

        task = all_tasks[positions[task_id]]
        update = auto_schedule_wbs_task(task, all_tasks)
        if update is None:
            continue

        try:
            outcome = persist(task_id, update.as_row())
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("cascade.persist_failed", task_id=task_id, changed_task_id=changed_task_id)
            result.failed.append(task_id)
            continue

        all_tasks[positions[task_id]] = replace(task, start_date=update.start_date, end_date=update.end_date)
        result.updated.append(task_id)
        logger.debug(
            "cascade.task_rescheduled",
            task_id=task_id,
            start_date=update.start_date.isoformat(),
            end_date=update.end_date.isoformat(),
        )

    return result


def _dependents_map(all_tasks: list[WBSItem]) -> dict[str, list[str]]:
    dependents: dict[str, list[str]] = {}
    for task in all_tasks:
        for pred in task.predecessors:
            dependents.setdefault(pred.id, []).append(task.id)
    return dependents


def _collect_dependents(start_id: str, dependents_of: Mapping[str, list[str]]) -> list[str]:
    """Transitive dependents of start_id in breadth-first discovery order (start_id excluded)."""
    seen = {start_id}
    found: list[str] = []
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        for dep_id in dependents_of.get(current, []):
            if dep_id not in seen:
                seen.add(dep_id)
                found.append(dep_id)
                queue.append(dep_id)
    return found


def _toposort(task_ids: list[str], dependents_of: Mapping[str, list[str]]) -> tuple[list[str], list[str]]:
    # Preserve discovery order by using it for seeds and adjacency.
    members = set(task_ids)
    indegree: dict[str, int] = {task_id: 0 for task_id in task_ids}
    for task_id in task_ids:
        for dep_id in dependents_of.get(task_id, []):
            if dep_id in members:
                indegree[dep_id] += 1

    queue = deque([task_id for task_id in task_ids if indegree[task_id] == 0])
    ordered: list[str] = []
    while queue:
        current = queue.popleft()
        ordered.append(current)
        for dep_id in dependents_of.get(current, []):
            if dep_id not in members:
                continue
            indegree[dep_id] -= 1
            if indegree[dep_id] == 0:
                queue.append(dep_id)

    # Anything left sits on (or behind) a cycle; keep discovery order for it.
    placed = set(ordered)
    leftover = [task_id for task_id in task_ids if task_id not in placed]
    return ordered, leftover
