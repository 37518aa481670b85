from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterable, Literal, Mapping, Sequence

from .calendar_math import advance
from .pipeline import WORKFLOW_PHASES, iter_sub_phases
from .subphase_rules import DEFAULT_DURATION, DEFAULT_UNIT, branch_result
from .timeline_models import (
    BranchSubPhase,
    PhaseDefinition,
    PhaseOverride,
    ProjectOverrides,
    ResolvedSubPhase,
    SubPhase,
    WorkflowTimelinePhase,
)

PhaseStatus = Literal["pending", "in_progress", "completed"]

UPCOMING_WINDOW = timedelta(days=7)


@dataclass
class PhaseProgress:
    """Progress view of one phase after overrides and completion markers are applied."""

    key: str
    title: str
    group_label: str
    status: PhaseStatus
    total_subs: int
    completed_subs: int
    sub_phases: list[ResolvedSubPhase] | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_overdue: bool = False
    is_upcoming: bool = False


@dataclass
class NextAction:
    title: str
    group_label: str
    phase_title: str


@dataclass
class ProgressSummary:
    phases: list[PhaseProgress] = field(default_factory=list)
    overall_progress: int = 0
    current_phase: PhaseProgress | None = None
    overdue_count: int = 0
    upcoming_count: int = 0
    next_action: NextAction | None = None


def summarize_progress(
    timeline: Sequence[WorkflowTimelinePhase],
    completed_titles: Iterable[str],
    today: date,
    overrides: ProjectOverrides | Mapping[str, PhaseOverride] | None = None,
    phases: Sequence[PhaseDefinition] = WORKFLOW_PHASES,
) -> ProgressSummary:
    """
    Merge a computed timeline with completion markers into a progress view.

    - Sub-phases moved between phases, skipped or reordered by overrides are
      applied; their dates are re-chained from the phase start when the order
      or membership changed, otherwise they are sorted by date.
    - A phase is completed when all its sub-phase titles (or its own title
      when it has none) are marked completed.
    - Manual phase start/end overrides take precedence over computed dates.
    """

    project_overrides = _as_project_overrides(overrides)
    completed = set(completed_titles)
    calculated = {phase.key: phase for phase in timeline}
    definitions = _sub_phase_catalogue()

    rows = [
        _phase_progress(
            phase,
            calculated.get(phase.key),
            project_overrides,
            completed,
            definitions,
            today,
        )
        for phase in phases
    ]

    total = sum(row.total_subs for row in rows)
    done = sum(row.completed_subs for row in rows)
    current = next((row for row in rows if row.status == "in_progress"), None)
    if current is None:
        current = next((row for row in rows if row.status == "pending"), None)

    return ProgressSummary(
        phases=rows,
        overall_progress=_round_half_up(done / total * 100) if total else 0,
        current_phase=current,
        overdue_count=sum(1 for row in rows if row.is_overdue),
        upcoming_count=sum(1 for row in rows if row.is_upcoming),
        next_action=_next_action(rows, completed),
    )


def _phase_progress(
    phase: PhaseDefinition,
    calculated: WorkflowTimelinePhase | None,
    overrides: ProjectOverrides,
    completed: set[str],
    definitions: Mapping[str, ResolvedSubPhase],
    today: date,
) -> PhaseProgress:
    override = overrides.phases.get(phase.key)

    if calculated is not None and calculated.sub_phases is not None:
        raw_subs: list[ResolvedSubPhase] | None = calculated.sub_phases
    elif phase.sub_phases:
        raw_subs = [_undated(sub) for sub in phase.sub_phases]
    else:
        raw_subs = None

    processed = _process_sub_phases(phase.key, raw_subs, override, overrides.task_assignments, definitions)

    has_custom_order = override is not None and override.has_custom_order
    has_moved = any(target == phase.key for target in overrides.task_assignments.values()) or (
        processed is not None and raw_subs is not None and len(processed) != len(raw_subs)
    )

    start_date = calculated.start_date if calculated is not None else None
    end_date = calculated.end_date if calculated is not None else None
    if override is not None and override.start_date is not None:
        start_date = override.start_date
    if override is not None and override.end_date is not None:
        end_date = override.end_date

    subs = processed
    if processed is not None and (has_custom_order or has_moved):
        subs = _rechain(processed, start_date, override, today)
    elif processed is not None:
        subs = sorted(processed, key=lambda sub: (sub.date is not None, sub.date or date.min))

    if subs:
        total = len(subs)
        done = sum(1 for sub in subs if sub.title in completed)
    else:
        total = 1
        done = 1 if phase.title in completed else 0

    status: PhaseStatus = "pending"
    if done and done >= total:
        status = "completed"
    elif done:
        status = "in_progress"

    is_overdue = status != "completed" and end_date is not None and end_date < today
    is_upcoming = (
        status != "completed"
        and not is_overdue
        and end_date is not None
        and today <= end_date < today + UPCOMING_WINDOW
    )

    return PhaseProgress(
        key=phase.key,
        title=phase.title,
        group_label=phase.group_label,
        status=status,
        total_subs=total,
        completed_subs=done,
        sub_phases=subs,
        start_date=start_date,
        end_date=end_date,
        is_overdue=is_overdue,
        is_upcoming=is_upcoming,
    )


def _process_sub_phases(
    phase_key: str,
    subs: list[ResolvedSubPhase] | None,
    override: PhaseOverride | None,
    task_assignments: Mapping[str, str],
    definitions: Mapping[str, ResolvedSubPhase],
) -> list[ResolvedSubPhase] | None:
    if subs is None and not task_assignments:
        return None

    base = list(subs or [])
    present = {sub.key for sub in base}
    for sub_key, target in task_assignments.items():
        if target == phase_key and sub_key not in present and sub_key in definitions:
            base.append(definitions[sub_key])
            present.add(sub_key)

    skipped = override.skipped_sub_phases if override is not None else set()
    filtered = [
        sub
        for sub in base
        if sub.key not in skipped and task_assignments.get(sub.key, phase_key) == phase_key
    ]

    if override is None or not override.has_custom_order:
        return filtered

    by_key = {sub.key: sub for sub in filtered}
    ordered = [by_key[key] for key in override.sub_phase_order if key in by_key]
    # Sub-phases missing from the custom order keep their place at the end.
    ordered.extend(sub for sub in filtered if sub.key not in override.sub_phase_order)
    return ordered


def _rechain(
    subs: list[ResolvedSubPhase],
    phase_start: date | None,
    override: PhaseOverride | None,
    today: date,
) -> list[ResolvedSubPhase]:
    if not subs:
        return subs

    cursor = phase_start or subs[0].date or today
    fixed_dates = override.fixed_dates if override is not None else {}
    custom_durations = override.custom_durations if override is not None else {}

    chained: list[ResolvedSubPhase] = []
    for sub in subs:
        if sub.kind == "branch":
            chained.append(sub)
            continue
        cursor = fixed_dates.get(sub.key, cursor)
        duration = custom_durations.get(sub.key, sub.duration if sub.duration is not None else DEFAULT_DURATION)
        unit = sub.unit or DEFAULT_UNIT
        chained.append(replace(sub, date=cursor, duration=duration, unit=unit))
        cursor = advance(cursor, duration, unit)
    return chained


def _next_action(rows: Sequence[PhaseProgress], completed: set[str]) -> NextAction | None:
    for row in rows:
        if row.status == "completed":
            continue
        if row.sub_phases:
            for sub in row.sub_phases:
                if sub.title not in completed:
                    return NextAction(sub.title, row.group_label, row.title)
        elif row.title not in completed:
            return NextAction(row.title, row.group_label, row.title)
    return None


def _sub_phase_catalogue() -> dict[str, ResolvedSubPhase]:
    return {sub.key: _undated(sub) for _, sub in iter_sub_phases()}


def _undated(sub: SubPhase) -> ResolvedSubPhase:
    if isinstance(sub, BranchSubPhase):
        return branch_result(sub)
    return ResolvedSubPhase(key=sub.key, title=sub.title, duration=sub.duration, unit=sub.unit)


def _as_project_overrides(overrides: ProjectOverrides | Mapping[str, PhaseOverride] | None) -> ProjectOverrides:
    if overrides is None:
        return ProjectOverrides()
    if isinstance(overrides, ProjectOverrides):
        return overrides
    return ProjectOverrides(phases=dict(overrides))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
