from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from .errors import OverrideValidationError
from .formatting import format_date_jp, format_span
from .logging_config import setup_logging
from .milestones import calculate_milestones
from .parse_overrides import load_overrides
from .progress import ProgressSummary, summarize_progress
from .render_rows import format_rows, rows_to_records, to_render_rows
from .scheduling import try_schedule_backward, try_schedule_forward
from .timeline_models import ProjectOverrides

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-timeline",
        description="Solar project workflow timeline scheduler",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--format", choices=("text", "yaml"), default="text", help="Output format")
    parser.add_argument("--log-level", default="WARNING", help="Logging level for diagnostics on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    forward = sub.add_parser("forward", help="Schedule forward from a start date")
    forward.add_argument("--start", type=_parse_date, required=True, help="Project start date (YYYY-MM-DD)")

    backward = sub.add_parser("backward", help="Schedule backward from a completion month")
    backward.add_argument("--completion-month", required=True, help="Completion month (YYYY-MM)")
    backward.add_argument("--overrides", help="Path to phase overrides YAML/JSON")

    milestones = sub.add_parser("milestones", help="Milestone dates relative to a completion month")
    milestones.add_argument("--completion-month", required=True, help="Completion month (YYYY-MM)")
    milestones.add_argument(
        "--include-optional",
        action="store_true",
        help="Include the farmland zoning exclusion milestone",
    )

    progress = sub.add_parser("progress", help="Progress view for a completion month")
    progress.add_argument("--completion-month", required=True, help="Completion month (YYYY-MM)")
    progress.add_argument("--overrides", help="Path to phase overrides YAML/JSON")
    progress.add_argument(
        "--completed",
        action="append",
        default=[],
        metavar="TITLE",
        help="Title of a completed phase or sub-phase (repeatable)",
    )
    progress.add_argument("--today", type=_parse_date, help="Reference date; defaults to today")
    return parser


def _load_overrides(path: str | None) -> ProjectOverrides:
    if path is None:
        return ProjectOverrides()
    return load_overrides(path)


def _emit(records: Any, text: str, fmt: str) -> None:
    if fmt == "yaml":
        print(yaml.safe_dump(records, sort_keys=False, allow_unicode=True), end="")
    else:
        print(text)


def _progress_text(summary: ProgressSummary) -> str:
    lines = [f"Overall progress: {summary.overall_progress}%"]
    for phase in summary.phases:
        flags = []
        if phase.is_overdue:
            flags.append("OVERDUE")
        if phase.is_upcoming:
            flags.append("due soon")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        lines.append(
            f"[{phase.group_label}] {phase.title}: {phase.status} "
            f"{phase.completed_subs}/{phase.total_subs} {format_span(phase.start_date, phase.end_date)}{suffix}"
        )
    if summary.next_action is not None:
        lines.append(f"Next: {summary.next_action.title} ({summary.next_action.phase_title})")
    return "\n".join(lines)


def _progress_records(summary: ProgressSummary) -> dict[str, Any]:
    return {
        "overall_progress": summary.overall_progress,
        "overdue": summary.overdue_count,
        "upcoming": summary.upcoming_count,
        "next_action": summary.next_action.title if summary.next_action else None,
        "phases": [
            {
                "key": phase.key,
                "status": phase.status,
                "completed": phase.completed_subs,
                "total": phase.total_subs,
                "start": phase.start_date.isoformat() if phase.start_date else None,
                "end": phase.end_date.isoformat() if phase.end_date else None,
                "overdue": phase.is_overdue,
                "upcoming": phase.is_upcoming,
            }
            for phase in summary.phases
        ],
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "forward":
        forward = try_schedule_forward(args.start)
        if not forward.ok:
            print(f"Error: {forward.rejected_reason}", file=sys.stderr)
            return 2
        rows = to_render_rows(forward.phases)
        _emit(rows_to_records(rows), format_rows(rows), args.format)
        return 0

    if args.command == "milestones":
        milestones = calculate_milestones(args.completion_month, include_optional=args.include_optional)
        if not milestones:
            print(f"Error: invalid completion month '{args.completion_month}'", file=sys.stderr)
            return 2
        records = [{"key": m.key, "title": m.title, "date": m.date.isoformat()} for m in milestones]
        text = "\n".join(f"{m.title}: {format_date_jp(m.date)}" for m in milestones)
        _emit(records, text, args.format)
        return 0

    try:
        overrides = _load_overrides(args.overrides)
    except (yaml.YAMLError, OverrideValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: overrides file not found: {Path(args.overrides)}", file=sys.stderr)
        return 1

    result = try_schedule_backward(args.completion_month, overrides)
    if not result.ok:
        print(f"Error: {result.rejected_reason}", file=sys.stderr)
        return 2

    if args.command == "backward":
        rows = to_render_rows(result.phases)
        _emit(rows_to_records(rows), format_rows(rows), args.format)
        return 0

    today = args.today or dt.date.today()
    logger.debug("Summarising progress as of %s", today)
    summary = summarize_progress(result.phases, args.completed, today, overrides)
    _emit(_progress_records(summary), _progress_text(summary), args.format)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
