from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Mapping

import yaml

from .cascade import auto_schedule_dependent_wbs_tasks
from .config import get_settings
from .hierarchy import build_hierarchy, flatten_wbs_hierarchy
from .identifiers import renumber_all_wbs_items
from .log import configure_logging, get_logger
from .parse_rows import dump_rows, load_rows
from .render_gantt import render_gantt
from .render_rows import to_render_rows
from .rollup import update_parent_rollups
from .scheduling import WBSValidationError, find_cycle, validate_wbs_task_schedule
from .wbs_models import WBSItem

logger = get_logger(__name__)


def _parse_date(value: str):
    import datetime as dt

    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="wbs-scheduler",
        description="WBS scheduling engine",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    tree = sub.add_parser("tree", help="Print the reconstructed hierarchy")
    tree.add_argument("rows", help="Path to WBS rows YAML")

    check = sub.add_parser("check", help="Report dependency cycles and schedule violations")
    check.add_argument("rows", help="Path to WBS rows YAML")

    schedule = sub.add_parser("schedule", help="Cascade a schedule change and recompute rollups")
    schedule.add_argument("rows", help="Path to WBS rows YAML")
    schedule.add_argument("--changed", required=True, help="Id of the item whose schedule changed")
    schedule.add_argument("--out", help="Write updated rows to this YAML file instead of stdout")

    renumber = sub.add_parser("renumber", help="Renumber all items to flat sequential ids")
    renumber.add_argument("rows", help="Path to WBS rows YAML")
    renumber.add_argument("--out", help="Write the renumbering to this YAML file instead of stdout")

    render = sub.add_parser("render", help="Render the schedule as an SVG Gantt chart")
    render.add_argument("rows", help="Path to WBS rows YAML")
    render.add_argument("--out", default=str(Path(settings.DEFAULT_OUT_DIR) / "wbs_gantt.svg"), help="Output SVG path")
    render.add_argument("--title", default=settings.CHART_TITLE, help="Chart title")
    render.add_argument("--min-date", type=_parse_date, help="Override inferred minimum date (YYYY-MM-DD)")
    render.add_argument("--max-date", type=_parse_date, help="Override inferred maximum date (YYYY-MM-DD)")
    return parser


def _write_output(text: str, out: str | None) -> None:
    if out is None:
        sys.stdout.write(text)
        return
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")


def _cmd_tree(items: list[WBSItem], args: argparse.Namespace) -> int:
    for item in flatten_wbs_hierarchy(build_hierarchy(items)):
        start = item.start_date.isoformat() if item.start_date else "?"
        finish = item.finish_date.isoformat() if item.finish_date else "?"
        print(
            f"{'  ' * item.level}{item.wbs_id} {item.title} "
            f"[{item.status.value}, {item.progress}%] {start} .. {finish}"
        )
    return 0


def _cmd_check(items: list[WBSItem], args: argparse.Namespace) -> int:
    problems = 0
    cycle = find_cycle(items)
    if cycle:
        print(f"Dependency cycle: {cycle}")
        problems += 1

    for item in items:
        if not item.predecessors:
            continue
        result = validate_wbs_task_schedule(item, items)
        for violation in result.violations:
            print(f"{item.wbs_id} ({item.id}): {violation}")
            problems += 1

    if problems:
        return 2
    print("No problems found")
    return 0


def _cmd_schedule(items: list[WBSItem], args: argparse.Namespace) -> int:
    cycle = find_cycle(items)
    if cycle:
        print(f"Error: refusing to schedule, dependency cycle: {cycle}", file=sys.stderr)
        return 2
    if not any(item.id == args.changed for item in items):
        print(f"Error: unknown item id '{args.changed}'", file=sys.stderr)
        return 2

    written: dict[str, dict[str, Any]] = {}

    async def persist(item_id: str, updates: Mapping[str, Any]) -> None:
        written.setdefault(item_id, {}).update(updates)

    result = asyncio.run(auto_schedule_dependent_wbs_tasks(args.changed, items, persist))
    logger.info("schedule.cascade_done", changed=args.changed, updated=len(result.updated), failed=len(result.failed))

    rollups = update_parent_rollups(build_hierarchy(items), args.changed)
    for update in rollups.parents_to_update:
        written.setdefault(update.id, {}).update(update.as_row())

    _write_output(dump_rows(flatten_wbs_hierarchy(rollups.updated_items)), args.out)
    print(f"{len(written)} item(s) updated", file=sys.stderr)
    return 0


def _cmd_renumber(items: list[WBSItem], args: argparse.Namespace) -> int:
    updates = renumber_all_wbs_items(build_hierarchy(items))
    payload = [{"id": u.item.id, "old_wbs_id": u.item.wbs_id, "new_wbs_id": u.new_wbs_id} for u in updates]
    _write_output(yaml.safe_dump(payload, sort_keys=False), args.out)
    return 0


def _cmd_render(items: list[WBSItem], args: argparse.Namespace) -> int:
    rows = to_render_rows(build_hierarchy(items))
    render_gantt(rows=rows, out_path=args.out, title=args.title, min_date=args.min_date, max_date=args.max_date)
    print(f"Wrote {args.out}", file=sys.stderr)
    return 0


_COMMANDS = {
    "tree": _cmd_tree,
    "check": _cmd_check,
    "schedule": _cmd_schedule,
    "renumber": _cmd_renumber,
    "render": _cmd_render,
}


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    configure_logging(settings.ENV, settings.LOG_LEVEL)

    parser = _build_parser()
    args = parser.parse_args(argv)
    rows_path = Path(args.rows)

    try:
        items = load_rows(str(rows_path))
    except (yaml.YAMLError, WBSValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: rows file not found: {rows_path}", file=sys.stderr)
        return 1

    try:
        return _COMMANDS[args.command](items, args)
    except (WBSValidationError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # Unexpected
        logger.exception("cli.unexpected_error", command=args.command)
        print(f"Unexpected error while running '{args.command}': {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
