"""Work Breakdown Structure scheduling engine."""

from .cascade import CascadeResult, auto_schedule_dependent_wbs_tasks
from .hierarchy import (
    build_hierarchy,
    collect_subtree_ids,
    find_wbs_item,
    flatten_wbs_hierarchy,
    remove_item_recursively,
    strip_predecessor_references,
    update_items_recursively,
)
from .identifiers import generate_wbs_id, renumber_all_wbs_items
from .parse_rows import dump_rows, item_to_row, load_rows, row_to_item
from .rollup import recalculate_all_rollups, update_parent_rollups
from .scheduling import (
    Cycle,
    DependencyCycleError,
    SchedulingError,
    WBSError,
    WBSValidationError,
    auto_schedule_wbs_task,
    calculate_dependency_date,
    calculate_earliest_start,
    check_predecessor_edit,
    detect_circular_dependencies,
    find_cycle,
    find_dependent_wbs_tasks,
    validate_wbs_task_schedule,
)
from .wbs_models import DependencyType, Predecessor, ScheduleUpdate, Status, WBSItem

__all__ = [
    "CascadeResult",
    "Cycle",
    "DependencyCycleError",
    "DependencyType",
    "Predecessor",
    "ScheduleUpdate",
    "SchedulingError",
    "Status",
    "WBSError",
    "WBSItem",
    "WBSValidationError",
    "auto_schedule_dependent_wbs_tasks",
    "auto_schedule_wbs_task",
    "build_hierarchy",
    "calculate_dependency_date",
    "calculate_earliest_start",
    "check_predecessor_edit",
    "collect_subtree_ids",
    "detect_circular_dependencies",
    "dump_rows",
    "find_cycle",
    "find_dependent_wbs_tasks",
    "find_wbs_item",
    "flatten_wbs_hierarchy",
    "generate_wbs_id",
    "item_to_row",
    "load_rows",
    "recalculate_all_rollups",
    "remove_item_recursively",
    "renumber_all_wbs_items",
    "row_to_item",
    "strip_predecessor_references",
    "update_items_recursively",
    "update_parent_rollups",
    "validate_wbs_task_schedule",
]
