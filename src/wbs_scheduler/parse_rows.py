from __future__ import annotations

import datetime as _dt
from typing import Any, Iterable, Mapping

import yaml

from .scheduling import WBSValidationError
from .wbs_models import DependencyType, Predecessor, Status, WBSItem

_KNOWN_FIELDS = {
    "id",
    "parent_id",
    "wbs_id",
    "title",
    "description",
    "start_date",
    "end_date",
    "duration",
    "progress",
    "status",
    "level",
    "predecessors",
    "is_expanded",
    "created_at",
    "updated_at",
    "children",
}


def load_rows(path: str) -> list[WBSItem]:
    """Load flat WBS rows from a YAML file at the given path (no hierarchy building)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if isinstance(raw, dict):
        raw = raw.get("rows")
    if not isinstance(raw, list):
        raise WBSValidationError(f"{path}: expected a list of rows or a mapping with 'rows'")
    return rows_to_items(raw)


def dump_rows(items: Iterable[WBSItem]) -> str:
    """Render items as a YAML list of rows."""
    return yaml.safe_dump([item_to_row(item) for item in items], sort_keys=False, allow_unicode=True)


def rows_to_items(rows: Iterable[Mapping[str, Any] | WBSItem]) -> list[WBSItem]:
    items: list[WBSItem] = []
    for idx, row in enumerate(rows):
        if isinstance(row, WBSItem):
            items.append(row)
        else:
            items.append(row_to_item(row, index=idx))
    return items


def row_to_item(row: Mapping[str, Any], index: int | None = None) -> WBSItem:
    """
    Coerce one persisted row into a WBSItem.

    Only id and wbs_id are required. Everything else degrades to a safe
    default, because rows coming from a live editor are often partial.
    """

    where = f"rows[{index}]" if index is not None else "row"
    if not isinstance(row, Mapping):
        raise WBSValidationError(f"{where}: expected mapping for WBS row")

    item_id = _require_str(row, "id", where)
    wbs_id = _require_str(row, "wbs_id", where)
    extras = {key: value for key, value in row.items() if key not in _KNOWN_FIELDS}

    return WBSItem(
        id=item_id,
        wbs_id=wbs_id.strip(),
        title=str(row.get("title") or ""),
        parent_id=_optional_str(row.get("parent_id")),
        description=_optional_str(row.get("description")),
        start_date=_parse_date(row.get("start_date")),
        end_date=_parse_date(row.get("end_date")),
        duration=max(0, _parse_int(row.get("duration"), 0)),
        progress=max(0, min(100, _parse_int(row.get("progress"), 0))),
        status=_parse_status(row.get("status")),
        declared_level=_parse_int(row.get("level"), None),
        predecessors=_parse_predecessors(row.get("predecessors")),
        is_expanded=bool(row.get("is_expanded", True)),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        meta=extras or None,
    )


def item_to_row(item: WBSItem) -> dict[str, Any]:
    """Serialise an item back into a flat row; children are not persisted."""

    row: dict[str, Any] = {
        "id": item.id,
        "parent_id": item.parent_id,
        "wbs_id": item.wbs_id,
        "title": item.title,
        "description": item.description,
        "start_date": _iso(item.start_date),
        "end_date": _iso(item.end_date),
        "duration": item.duration,
        "progress": item.progress,
        "status": item.status.value,
        "level": item.level,
        "predecessors": [{"id": p.id, "type": p.type.value, "lag": p.lag} for p in item.predecessors],
        "is_expanded": item.is_expanded,
        "created_at": _iso(item.created_at),
        "updated_at": _iso(item.updated_at),
    }
    if item.meta:
        row.update(item.meta)
    return row


def _require_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise WBSValidationError(f"{where}.{key}: expected non-empty string")
    return value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _parse_int(value: Any, default: int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_date(value: Any) -> _dt.date | None:
    if value is None or value == "":
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return _dt.date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _parse_timestamp(value: Any) -> _dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, _dt.datetime):
        parsed = value
    elif isinstance(value, _dt.date):
        parsed = _dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = _dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed


def _parse_status(value: Any) -> Status:
    try:
        return Status(value)
    except ValueError:
        return Status.NOT_STARTED


def _parse_predecessors(value: Any) -> list[Predecessor]:
    if not isinstance(value, list):
        return []

    seen: set[str] = set()
    predecessors: list[Predecessor] = []
    for entry in value:
        if isinstance(entry, str):
            pred = Predecessor(id=entry)
        elif isinstance(entry, Mapping) and entry.get("id") is not None:
            try:
                dep_type = DependencyType(entry.get("type") or "FS")
            except ValueError:
                dep_type = DependencyType.FS
            pred = Predecessor(id=str(entry["id"]), type=dep_type, lag=_parse_int(entry.get("lag"), 0))
        else:
            continue
        if pred.id in seen:
            continue
        seen.add(pred.id)
        predecessors.append(pred)
    return predecessors


def _iso(value: _dt.date | None) -> str | None:
    return value.isoformat() if value is not None else None
