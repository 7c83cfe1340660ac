from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Mapping

from .wbs_models import DependencyType, Predecessor, ScheduleUpdate, ScheduleValidation, WBSItem


class WBSError(Exception):
    """Base class for errors raised by the scheduling engine."""


class WBSValidationError(WBSError):
    """Raised when rows or allocation requests are invalid (missing ids, bad parents, depth)."""


class SchedulingError(WBSError):
    """Raised when a schedule edit cannot be accepted."""


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:
        return " -> ".join(self.path)


class DependencyCycleError(SchedulingError):
    """Raised when a predecessor edit would close a dependency cycle."""

    def __init__(self, cycle: Cycle):
        super().__init__(f"Dependency cycle detected: {cycle}")
        self.cycle = cycle


def get_dependency_type_label(dependency_type: DependencyType | str) -> str:
    return DependencyType(dependency_type).label


def calculate_duration(start: date | None, end: date | None) -> int:
    """Inclusive day count between two dates; 0 when either is missing or end precedes start."""
    if start is None or end is None or end < start:
        return 0
    return (end - start).days + 1


def calculate_dependency_date(
    predecessor: WBSItem,
    dependency_type: DependencyType | str,
    lag: int = 0,
) -> date | None:
    """
    Return the constraint date a predecessor imposes on its successor.

    FS and SS constrain the successor's start, FF and SF its finish.
    Returns None when the anchor the rule needs is unknown, which makes the
    relationship non-binding.
    """

    dependency_type = DependencyType(dependency_type)
    if dependency_type is DependencyType.FS:
        anchor = predecessor.finish_date
        if anchor is not None:
            anchor += timedelta(days=1)
    elif dependency_type is DependencyType.FF:
        anchor = predecessor.finish_date
    else:
        anchor = predecessor.start_date

    if anchor is None:
        return None
    return anchor + timedelta(days=lag)


def find_dependent_wbs_tasks(task_id: str, all_tasks: Iterable[WBSItem]) -> list[WBSItem]:
    """Tasks that list task_id among their predecessors, in input order."""
    return [task for task in all_tasks if any(pred.id == task_id for pred in task.predecessors)]


def calculate_earliest_start(task: WBSItem, all_tasks: Iterable[WBSItem]) -> date | None:
    """Latest start imposed by the task's start-constraining (FS/SS) predecessors."""
    lookup = _task_lookup(all_tasks)
    return _latest_constraint(task, lookup, start_constraints=True)


def auto_schedule_wbs_task(task: WBSItem, all_tasks: Iterable[WBSItem]) -> ScheduleUpdate | None:
    """
    Propose the earliest feasible start/end for a task given all its predecessors.

    Finish constraints (FF/SF) are converted to the start that makes the task
    finish on the constraint date. Returns None when no predecessor binds the
    task, or when the task already sits on the proposed dates.
    """

    lookup = _task_lookup(all_tasks)
    earliest_start = _latest_constraint(task, lookup, start_constraints=True)
    latest_finish = _latest_constraint(task, lookup, start_constraints=False)

    duration = _schedule_duration(task)
    candidates = [earliest_start] if earliest_start is not None else []
    if latest_finish is not None:
        candidates.append(latest_finish - timedelta(days=duration - 1))
    if not candidates:
        return None

    proposed_start = max(candidates)
    proposed_end = proposed_start + timedelta(days=duration - 1)
    if task.start_date == proposed_start and task.end_date == proposed_end:
        return None
    return ScheduleUpdate(start_date=proposed_start, end_date=proposed_end)


def validate_wbs_task_schedule(task: WBSItem, all_tasks: Iterable[WBSItem]) -> ScheduleValidation:
    """Advisory check of the task's current dates against each predecessor."""

    if not task.predecessors:
        return ScheduleValidation(is_valid=True)

    task_start = task.start_date
    task_end = task.finish_date
    if task_start is None or task_end is None:
        return ScheduleValidation(is_valid=False, violations=["Task must have both start and end dates"])

    lookup = _task_lookup(all_tasks)
    violations: list[str] = []
    for pred in task.predecessors:
        predecessor = lookup.get(pred.id)
        if predecessor is None:
            continue
        constraint = calculate_dependency_date(predecessor, pred.type, pred.lag)
        if constraint is None:
            continue
        if pred.type.constrains_start:
            if task_start < constraint:
                violations.append(
                    f"{pred.type.label} violation: Task cannot start before {constraint.isoformat()}"
                )
        elif task_end < constraint:
            violations.append(f"{pred.type.label} violation: Task cannot finish before {constraint.isoformat()}")

    return ScheduleValidation(is_valid=not violations, violations=violations)


def detect_circular_dependencies(task_id: str, all_tasks: Iterable[WBSItem]) -> bool:
    """Return True when a predecessor chain starting at task_id loops back onto itself."""

    dependencies = _dependency_map(all_tasks)
    visited: set[str] = {task_id}
    path: set[str] = {task_id}
    # Explicit frames; predecessor chains are not bounded by the tree depth.
    frames = [(task_id, iter(dependencies.get(task_id, [])))]

    while frames:
        node_id, pending = frames[-1]
        for dep_id in pending:
            if dep_id in path:
                return True
            if dep_id not in visited:
                visited.add(dep_id)
                path.add(dep_id)
                frames.append((dep_id, iter(dependencies.get(dep_id, []))))
                break
        else:
            frames.pop()
            path.discard(node_id)

    return False


def find_cycle(all_tasks: Iterable[WBSItem]) -> Cycle | None:
    """Return the first dependency cycle found in the task set, or None for a DAG."""
    tasks = list(all_tasks)
    return _find_cycle([task.id for task in tasks], _dependency_map(tasks))


def check_predecessor_edit(task_id: str, predecessors: Iterable[Predecessor], all_tasks: Iterable[WBSItem]) -> None:
    """
    Raise DependencyCycleError if giving task_id these predecessors would close a cycle.

    Call before persisting a predecessor edit; the task set is not modified.
    """

    dependencies = _dependency_map(all_tasks)
    dependencies[task_id] = [pred.id for pred in predecessors]
    cycle = _find_cycle([task_id], dependencies)
    if cycle:
        raise DependencyCycleError(cycle)


def _find_cycle(order: list[str], dependencies: Mapping[str, list[str]]) -> Cycle | None:
    state: dict[str, str] = {}

    for root_id in order:
        if state.get(root_id) is not None:
            continue

        state[root_id] = "visiting"
        stack: list[str] = [root_id]
        positions: dict[str, int] = {root_id: 0}
        frames = [(root_id, iter(dependencies.get(root_id, [])))]

        while frames:
            node_id, pending = frames[-1]
            for dep_id in pending:
                dep_state = state.get(dep_id)
                if dep_state == "visiting":
                    return Cycle(stack[positions[dep_id] :] + [dep_id])
                if dep_state is None:
                    state[dep_id] = "visiting"
                    positions[dep_id] = len(stack)
                    stack.append(dep_id)
                    frames.append((dep_id, iter(dependencies.get(dep_id, []))))
                    break
            else:
                frames.pop()
                stack.pop()
                positions.pop(node_id, None)
                state[node_id] = "done"

    return None


def _dependency_map(all_tasks: Iterable[WBSItem]) -> dict[str, list[str]]:
    return {task.id: [pred.id for pred in task.predecessors] for task in all_tasks}


def _task_lookup(all_tasks: Iterable[WBSItem]) -> dict[str, WBSItem]:
    return {task.id: task for task in all_tasks}


def _latest_constraint(task: WBSItem, lookup: Mapping[str, WBSItem], start_constraints: bool) -> date | None:
    latest: date | None = None
    for pred in task.predecessors:
        if pred.type.constrains_start != start_constraints:
            continue
        predecessor = lookup.get(pred.id)
        if predecessor is None:
            continue
        constraint = calculate_dependency_date(predecessor, pred.type, pred.lag)
        if constraint is not None and (latest is None or constraint > latest):
            latest = constraint
    return latest


def _schedule_duration(task: WBSItem) -> int:
    if task.duration > 0:
        return task.duration
    span = calculate_duration(task.start_date, task.end_date)
    return span if span > 0 else 1
