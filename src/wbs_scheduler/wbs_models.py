from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Literal

MAX_LEVEL = 4
"""Deepest level of the breakdown (Stage=0 ... 4)."""

NodeKind = Literal["stage", "bar", "bracket"]
"""Allowed render node types: stage heading, bar (leaf item), bracket (parent item)."""


class Status(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DELAYED = "Delayed"
    ON_HOLD = "On Hold"


class DependencyType(str, Enum):
    FS = "FS"
    SS = "SS"
    FF = "FF"
    SF = "SF"

    @property
    def label(self) -> str:
        return _DEPENDENCY_LABELS[self]

    @property
    def constrains_start(self) -> bool:
        """FS and SS bound the successor's start; FF and SF bound its finish."""
        return self in (DependencyType.FS, DependencyType.SS)


_DEPENDENCY_LABELS = {
    DependencyType.FS: "Finish-to-Start",
    DependencyType.SS: "Start-to-Start",
    DependencyType.FF: "Finish-to-Finish",
    DependencyType.SF: "Start-to-Finish",
}


@dataclass(frozen=True)
class Predecessor:
    """Directed edge from a successor to the item it waits on."""

    id: str
    type: DependencyType = DependencyType.FS
    lag: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", DependencyType(self.type))


def path_segments(wbs_id: str) -> list[str] | None:
    """Split a dot-delimited WBS path; None when the path is malformed."""
    if not wbs_id:
        return None
    parts = wbs_id.split(".")
    if any(not part.strip() for part in parts):
        return None
    return parts


def expected_level(wbs_id: str) -> int:
    """Level implied by the path depth, clamped to 0..MAX_LEVEL."""
    parts = path_segments(wbs_id)
    if parts is None:
        return 0
    return max(0, min(MAX_LEVEL, len(parts) - 1))


@dataclass
class WBSItem:
    """Node of the breakdown structure, reconstructed from a persisted row."""

    id: str
    wbs_id: str
    title: str = ""
    parent_id: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    duration: int = 0
    progress: int = 0
    status: Status = Status.NOT_STARTED
    declared_level: int | None = None
    predecessors: list[Predecessor] = field(default_factory=list)
    children: list["WBSItem"] = field(default_factory=list)
    is_expanded: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    meta: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        self.status = Status(self.status)

    @property
    def level(self) -> int:
        """Authoritative level, always derived from wbs_id."""
        return expected_level(self.wbs_id)

    @property
    def parent_wbs_id(self) -> str | None:
        """Path of the parent node, or None for roots and malformed paths."""
        parts = path_segments(self.wbs_id)
        if parts is None or len(parts) == 1:
            return None
        return ".".join(parts[:-1])

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def finish_date(self) -> date | None:
        """Inclusive finish: end_date, else derived from start_date and duration."""
        if self.end_date is not None:
            return self.end_date
        if self.start_date is None or self.duration <= 0:
            return None
        return self.start_date + timedelta(days=self.duration - 1)


@dataclass(frozen=True)
class ScheduleUpdate:
    """Proposed start/end for a task; persisted as ISO date strings."""

    start_date: date
    end_date: date

    def as_row(self) -> dict[str, str]:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}


@dataclass(frozen=True)
class ScheduleValidation:
    is_valid: bool
    violations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RollupUpdate:
    id: str
    progress: int
    status: Status

    def as_row(self) -> dict[str, Any]:
        return {"progress": self.progress, "status": self.status.value}


@dataclass
class RollupResult:
    updated_items: list[WBSItem]
    parents_to_update: list[RollupUpdate] = field(default_factory=list)


@dataclass(frozen=True)
class RenumberUpdate:
    item: WBSItem
    new_wbs_id: str


@dataclass
class FlatRenderRow:
    """
    Flattened view of the hierarchy used by renderers.

    Only the fields relevant to drawing are kept: positional order,
    indentation level, node kind, stage ownership, and date boundaries.
    """

    order: int
    indent: int
    node_type: NodeKind
    node_id: str
    wbs: str
    name: str
    stage: str | None
    depends_on: list[str] = field(default_factory=list)
    start_date: date | None = None
    finish_date: date | None = None
    progress: int = 0
    status: Status = Status.NOT_STARTED
