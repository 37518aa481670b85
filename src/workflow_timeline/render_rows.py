from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, List, Literal, Sequence

from .formatting import format_date_jp, format_span
from .timeline_models import ResolvedSubPhase, WorkflowTimelinePhase

RowKind = Literal["phase", "task", "branch"]
"""Row types: phase heading, dated sub-phase, decision branch."""


@dataclass
class FlatTimelineRow:
    """
    Flattened view of a computed timeline used for text and YAML output.

    Only the fields relevant to display are kept: positional order,
    indentation level, row kind, owning phase and date boundaries.
    """

    order: int
    indent: int
    row_type: RowKind
    key: str
    title: str
    phase: str
    group_label: str
    start_date: date | None = None
    end_date: date | None = None
    duration: int | None = None
    unit: str | None = None
    branches: tuple[str, ...] = ()


def to_render_rows(timeline: Sequence[WorkflowTimelinePhase]) -> list[FlatTimelineRow]:
    """
    Convert a computed timeline into flat rows with indentation.

    Each phase heading is followed by its sub-phases in result order.
    """

    rows: List[FlatTimelineRow] = []
    order = 0

    for phase in timeline:
        rows.append(
            FlatTimelineRow(
                order=order,
                indent=0,
                row_type="phase",
                key=phase.key,
                title=phase.title,
                phase=phase.key,
                group_label=phase.group_label,
                start_date=phase.start_date,
                end_date=phase.end_date,
            )
        )
        order += 1
        for sub in phase.sub_phases or []:
            rows.append(_sub_phase_row(sub, order, phase))
            order += 1

    return rows


def _sub_phase_row(sub: ResolvedSubPhase, order: int, phase: WorkflowTimelinePhase) -> FlatTimelineRow:
    if sub.kind == "branch":
        return FlatTimelineRow(
            order=order,
            indent=1,
            row_type="branch",
            key=sub.key,
            title=sub.title,
            phase=phase.key,
            group_label=phase.group_label,
            branches=tuple(branch.name for branch in sub.branches),
        )
    return FlatTimelineRow(
        order=order,
        indent=1,
        row_type="task",
        key=sub.key,
        title=sub.title,
        phase=phase.key,
        group_label=phase.group_label,
        start_date=sub.date,
        end_date=sub.date,
        duration=sub.duration,
        unit=sub.unit,
    )


def format_rows(rows: Sequence[FlatTimelineRow]) -> str:
    """Render rows as an indented plain-text listing."""

    lines: list[str] = []
    for row in rows:
        label = "  " * row.indent + row.title
        if row.row_type == "phase":
            lines.append(f"[{row.group_label}] {label}: {format_span(row.start_date, row.end_date)}")
        elif row.row_type == "branch":
            lines.append(f"{label}: branch ({' / '.join(row.branches)})")
        else:
            when = format_date_jp(row.start_date) if row.start_date else "-"
            lines.append(f"{label}: {when}")
    return "\n".join(lines)


def rows_to_records(rows: Sequence[FlatTimelineRow]) -> list[dict[str, Any]]:
    """Plain dict records (ISO dates) suitable for yaml.safe_dump."""

    records: list[dict[str, Any]] = []
    for row in rows:
        record: dict[str, Any] = {
            "type": row.row_type,
            "key": row.key,
            "title": row.title,
            "phase": row.phase,
            "group": row.group_label,
        }
        if row.start_date is not None:
            record["start"] = row.start_date.isoformat()
        if row.end_date is not None:
            record["end"] = row.end_date.isoformat()
        if row.duration is not None:
            record["duration"] = row.duration
            record["unit"] = row.unit
        if row.branches:
            record["branches"] = list(row.branches)
        records.append(record)
    return records
