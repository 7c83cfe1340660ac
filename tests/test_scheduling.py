import dataclasses
import datetime as dt

import pytest

from wbs_scheduler.scheduling import (
    DependencyCycleError,
    auto_schedule_wbs_task,
    calculate_dependency_date,
    calculate_duration,
    calculate_earliest_start,
    check_predecessor_edit,
    detect_circular_dependencies,
    find_cycle,
    find_dependent_wbs_tasks,
    get_dependency_type_label,
    validate_wbs_task_schedule,
)
from wbs_scheduler.wbs_models import DependencyType, Predecessor, WBSItem


def _task(task_id, start=None, duration=0, end=None, preds=()):
    return WBSItem(
        id=task_id,
        wbs_id=task_id,
        start_date=start,
        end_date=end,
        duration=duration,
        predecessors=list(preds),
    )


def _predecessor_task():
    # 2024-01-01 .. 2024-01-05 with no stored end_date
    return _task("P", start=dt.date(2024, 1, 1), duration=5)


@pytest.mark.parametrize(
    "dep_type, lag, expected",
    [
        (DependencyType.FS, 0, dt.date(2024, 1, 6)),
        (DependencyType.FS, -2, dt.date(2024, 1, 4)),
        (DependencyType.SS, 2, dt.date(2024, 1, 3)),
        (DependencyType.FF, 0, dt.date(2024, 1, 5)),
        (DependencyType.SF, -1, dt.date(2023, 12, 31)),
    ],
)
def test_dependency_date_rules(dep_type, lag, expected):
    assert calculate_dependency_date(_predecessor_task(), dep_type, lag) == expected


def test_dependency_date_accepts_plain_type_strings():
    assert calculate_dependency_date(_predecessor_task(), "SS") == dt.date(2024, 1, 1)


def test_dependency_date_is_non_binding_without_anchor():
    undated = _task("P")
    start_only = _task("Q", start=dt.date(2024, 1, 1))

    assert calculate_dependency_date(undated, DependencyType.SS) is None
    assert calculate_dependency_date(undated, DependencyType.FS) is None
    assert calculate_dependency_date(start_only, DependencyType.FS) is None
    assert calculate_dependency_date(start_only, DependencyType.SF, 3) == dt.date(2024, 1, 4)


def test_finish_to_start_schedules_day_after_predecessor_finish():
    pred = _predecessor_task()
    succ = _task("S", duration=2, preds=[Predecessor("P", DependencyType.FS)])

    update = auto_schedule_wbs_task(succ, [pred, succ])

    assert update.start_date == dt.date(2024, 1, 6)
    assert update.end_date == dt.date(2024, 1, 7)
    assert update.as_row() == {"start_date": "2024-01-06", "end_date": "2024-01-07"}


def test_finish_to_finish_aligns_successor_finish():
    pred = _predecessor_task()
    succ = _task("S", duration=3, preds=[Predecessor("P", DependencyType.FF)])

    update = auto_schedule_wbs_task(succ, [pred, succ])

    assert update.start_date == dt.date(2024, 1, 3)
    assert update.end_date == dt.date(2024, 1, 5)


def test_start_to_finish_with_negative_lag():
    pred = _predecessor_task()
    succ = _task("S", duration=4, preds=[Predecessor("P", DependencyType.SF, -1)])

    update = auto_schedule_wbs_task(succ, [pred, succ])

    assert update.start_date == dt.date(2023, 12, 28)
    assert update.end_date == dt.date(2023, 12, 31)


def test_most_restrictive_constraint_wins_across_start_and_finish():
    pred = _predecessor_task()
    long_pred = _task("Q", start=dt.date(2024, 1, 1), duration=20)
    succ = _task(
        "S",
        duration=3,
        preds=[Predecessor("P", DependencyType.FS), Predecessor("Q", DependencyType.FF)],
    )

    update = auto_schedule_wbs_task(succ, [pred, long_pred, succ])

    assert update.start_date == dt.date(2024, 1, 18)
    assert update.end_date == dt.date(2024, 1, 20)


def test_auto_schedule_is_idempotent():
    pred = _predecessor_task()
    succ = _task("S", duration=2, preds=[Predecessor("P", DependencyType.FS)])

    first = auto_schedule_wbs_task(succ, [pred, succ])
    scheduled = dataclasses.replace(succ, start_date=first.start_date, end_date=first.end_date)

    assert auto_schedule_wbs_task(scheduled, [pred, scheduled]) is None


def test_auto_schedule_repairs_inconsistent_end_date():
    pred = _predecessor_task()
    succ = _task(
        "S",
        start=dt.date(2024, 1, 6),
        end=dt.date(2024, 1, 30),
        duration=2,
        preds=[Predecessor("P", DependencyType.FS)],
    )

    update = auto_schedule_wbs_task(succ, [pred, succ])

    assert update.start_date == dt.date(2024, 1, 6)
    assert update.end_date == dt.date(2024, 1, 7)


def test_auto_schedule_returns_none_without_binding_predecessors():
    lonely = _task("S", duration=2)
    dangling = _task("T", duration=2, preds=[Predecessor("missing")])
    undated_pred = _task("U")
    waiting = _task("W", duration=2, preds=[Predecessor("U")])

    assert auto_schedule_wbs_task(lonely, [lonely]) is None
    assert auto_schedule_wbs_task(dangling, [dangling]) is None
    assert auto_schedule_wbs_task(waiting, [undated_pred, waiting]) is None


def test_zero_duration_is_scheduled_as_single_day():
    pred = _predecessor_task()
    succ = _task("S", preds=[Predecessor("P")])

    update = auto_schedule_wbs_task(succ, [pred, succ])

    assert update.start_date == update.end_date == dt.date(2024, 1, 6)


def test_earliest_start_ignores_finish_constraints():
    pred = _predecessor_task()
    succ = _task(
        "S",
        duration=3,
        preds=[Predecessor("P", DependencyType.SS, 1), Predecessor("P2", DependencyType.FF)],
    )
    other = _task("P2", start=dt.date(2024, 3, 1), duration=1)

    assert calculate_earliest_start(succ, [pred, other, succ]) == dt.date(2024, 1, 2)


def test_find_dependents():
    a = _task("A")
    b = _task("B", preds=[Predecessor("A")])
    c = _task("C", preds=[Predecessor("B"), Predecessor("A", DependencyType.SS)])

    assert [t.id for t in find_dependent_wbs_tasks("A", [a, b, c])] == ["B", "C"]
    assert find_dependent_wbs_tasks("C", [a, b, c]) == []


def test_validate_reports_start_violation():
    pred = _predecessor_task()
    succ = _task("S", start=dt.date(2024, 1, 3), duration=2, preds=[Predecessor("P")])

    result = validate_wbs_task_schedule(succ, [pred, succ])

    assert not result.is_valid
    assert result.violations == ["Finish-to-Start violation: Task cannot start before 2024-01-06"]


def test_validate_reports_finish_violation():
    pred = _predecessor_task()
    succ = _task(
        "S",
        start=dt.date(2024, 1, 1),
        end=dt.date(2024, 1, 2),
        preds=[Predecessor("P", DependencyType.FF)],
    )

    result = validate_wbs_task_schedule(succ, [pred, succ])

    assert result.violations == ["Finish-to-Finish violation: Task cannot finish before 2024-01-05"]


def test_validate_accepts_feasible_schedule_and_requires_dates():
    pred = _predecessor_task()
    ok = _task("S", start=dt.date(2024, 1, 6), duration=2, preds=[Predecessor("P")])
    undated = _task("U", preds=[Predecessor("P")])
    free = _task("F")

    assert validate_wbs_task_schedule(ok, [pred, ok]).is_valid
    assert validate_wbs_task_schedule(free, [free]).is_valid
    assert validate_wbs_task_schedule(undated, [pred, undated]).violations == [
        "Task must have both start and end dates"
    ]


def test_dependency_cycle_is_detected():
    a = _task("A", preds=[Predecessor("C")])
    b = _task("B", preds=[Predecessor("A")])
    c = _task("C", preds=[Predecessor("B")])
    tasks = [a, b, c]

    assert detect_circular_dependencies("A", tasks)
    cycle = find_cycle(tasks)
    assert cycle is not None
    assert cycle.path[0] == cycle.path[-1]
    assert set(cycle.path) == {"A", "B", "C"}


def test_dag_has_no_cycle():
    a = _task("A")
    b = _task("B", preds=[Predecessor("A")])
    c = _task("C", preds=[Predecessor("A"), Predecessor("B", DependencyType.SS)])
    d = _task("D", preds=[Predecessor("missing")])
    tasks = [a, b, c, d]

    assert not any(detect_circular_dependencies(t.id, tasks) for t in tasks)
    assert find_cycle(tasks) is None


def test_cycle_checks_handle_long_predecessor_chains():
    tasks = [_task("T0")] + [_task(f"T{i}", preds=[Predecessor(f"T{i - 1}")]) for i in range(1, 3000)]

    assert not detect_circular_dependencies("T2999", tasks)
    assert find_cycle(tasks) is None
    check_predecessor_edit("T0", [], tasks)

    with pytest.raises(DependencyCycleError) as excinfo:
        check_predecessor_edit("T0", [Predecessor("T2999")], tasks)
    assert len(excinfo.value.cycle.path) == 3001

    looped = [dataclasses.replace(tasks[0], predecessors=[Predecessor("T2999")])] + tasks[1:]
    assert detect_circular_dependencies("T2999", looped)


def test_cyclic_predecessor_edit_is_rejected():
    a = _task("A")
    b = _task("B", preds=[Predecessor("A")])
    c = _task("C", preds=[Predecessor("B")])
    tasks = [a, b, c]

    with pytest.raises(DependencyCycleError) as excinfo:
        check_predecessor_edit("A", [Predecessor("C")], tasks)
    assert excinfo.value.cycle.path == ["A", "C", "B", "A"]
    assert str(excinfo.value) == "Dependency cycle detected: A -> C -> B -> A"

    with pytest.raises(DependencyCycleError):
        check_predecessor_edit("B", [Predecessor("B")], tasks)

    check_predecessor_edit("C", [Predecessor("A"), Predecessor("B")], tasks)


def test_duration_and_labels():
    assert calculate_duration(dt.date(2024, 1, 1), dt.date(2024, 1, 5)) == 5
    assert calculate_duration(dt.date(2024, 1, 5), dt.date(2024, 1, 1)) == 0
    assert calculate_duration(None, dt.date(2024, 1, 1)) == 0
    assert get_dependency_type_label("SF") == "Start-to-Finish"
    assert get_dependency_type_label(DependencyType.FS) == "Finish-to-Start"
