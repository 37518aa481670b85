from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

from .calendar_math import advance, retreat
from .override_chain import resolve_override_chain
from .pipeline import TERMINAL_PHASE_KEY, WORKFLOW_PHASES
from .subphase_rules import resolve_sub_phases
from .timeline_models import (
    PhaseDefinition,
    PhaseOverride,
    ProjectOverrides,
    ResolvedSubPhase,
    ScheduleResult,
    WorkflowTimelinePhase,
)

logger = logging.getLogger(__name__)

COMPLETION_ANCHOR_DAY = 15
_COMPLETION_MONTH = re.compile(r"[0-9]{4}-[0-9]{2}")

Overrides = Mapping[str, PhaseOverride] | ProjectOverrides


@dataclass(frozen=True)
class PhaseWindow:
    """Start/end pair resolved for one phase during the reverse pass."""

    start: date
    end: date


def try_schedule_forward(
    start: date,
    phases: Sequence[PhaseDefinition] = WORKFLOW_PHASES,
) -> ScheduleResult:
    """
    Project the pipeline forward from `start`.

    - Each phase starts where the previous one ended; zero-duration phases
      do not move the cursor.
    - The terminal construction phase is emitted without dates.
    - Sub-phase dates come from the per-phase offset rules, anchored on the
      phase start or on the start of the phase named by `anchor_phase_key`.
    - A start date too late for the pipeline to fit before the end of the
      supported date range is rejected instead of raising.
    """

    try:
        return ScheduleResult(phases=_forward_pass(start, phases))
    except OverflowError:
        reason = f"start date {start.isoformat()} is too late to fit the pipeline"
        logger.info("Rejected forward schedule: %s", reason)
        return ScheduleResult(rejected_reason=reason)


def schedule_forward(
    start: date,
    phases: Sequence[PhaseDefinition] = WORKFLOW_PHASES,
) -> list[WorkflowTimelinePhase]:
    """Fail-soft variant of try_schedule_forward: a rejected start yields an empty list."""

    return try_schedule_forward(start, phases).phases


def _forward_pass(start: date, phases: Sequence[PhaseDefinition]) -> list[WorkflowTimelinePhase]:
    cursor = start
    starts: dict[str, date] = {}
    timeline: list[WorkflowTimelinePhase] = []

    for phase in phases:
        if phase.key == TERMINAL_PHASE_KEY:
            timeline.append(WorkflowTimelinePhase(key=phase.key, title=phase.title, group_label=phase.group_label))
            continue

        phase_start = cursor
        if phase.duration == 0:
            phase_end = cursor
        else:
            phase_end = advance(cursor, phase.duration, phase.unit)
            cursor = phase_end
        starts[phase.key] = phase_start

        anchor = _sub_phase_anchor(phase, phase_start, starts)
        timeline.append(
            _timeline_phase(phase, PhaseWindow(phase_start, phase_end), resolve_sub_phases(phase, anchor))
        )

    return timeline


def parse_completion_month(value: str) -> date | None:
    """Return the 15th of a `YYYY-MM` month, or None when the text is not a valid month."""

    if not isinstance(value, str) or not _COMPLETION_MONTH.fullmatch(value):
        return None
    year, month = (int(part) for part in value.split("-"))
    if not 1 <= month <= 12 or year < 1:
        return None
    return date(year, month, COMPLETION_ANCHOR_DAY)


def try_schedule_backward(
    completion_month: str,
    overrides: Overrides | None = None,
    phases: Sequence[PhaseDefinition] = WORKFLOW_PHASES,
) -> ScheduleResult:
    """
    Schedule backwards from a completion month and report rejected input explicitly.

    Pass 1 walks the pipeline in reverse from the 15th of the completion month
    to fix every phase window. Pass 2 walks forward to date the sub-phases,
    switching to the override chain for phases whose override defines a
    custom sub-phase order.
    """

    completion = parse_completion_month(completion_month)
    if completion is None:
        reason = f"invalid completion month '{completion_month}', expected YYYY-MM with month 01-12"
        logger.info("Rejected backward schedule: %s", reason)
        return ScheduleResult(rejected_reason=reason)

    try:
        return ScheduleResult(phases=_backward_passes(completion, overrides, phases))
    except OverflowError:
        reason = f"completion month '{completion_month}' does not fit the pipeline within the supported date range"
        logger.info("Rejected backward schedule: %s", reason)
        return ScheduleResult(rejected_reason=reason)


def schedule_backward(
    completion_month: str,
    overrides: Overrides | None = None,
    phases: Sequence[PhaseDefinition] = WORKFLOW_PHASES,
) -> list[WorkflowTimelinePhase]:
    """Fail-soft variant of try_schedule_backward: invalid input yields an empty list."""

    return try_schedule_backward(completion_month, overrides, phases).phases


def _backward_passes(
    completion: date,
    overrides: Overrides | None,
    phases: Sequence[PhaseDefinition],
) -> list[WorkflowTimelinePhase]:
    windows = _reverse_pass(completion, phases)
    phase_overrides = _phase_overrides(overrides)
    starts = {key: window.start for key, window in windows.items()}
    timeline: list[WorkflowTimelinePhase] = []
    for phase in phases:
        window = windows[phase.key]
        anchor = _sub_phase_anchor(phase, window.start, starts)
        override = phase_overrides.get(phase.key)
        if override is not None and override.has_custom_order:
            sub_phases = resolve_override_chain(anchor, phase.sub_phases, override)
        else:
            sub_phases = resolve_sub_phases(phase, anchor)
        timeline.append(_timeline_phase(phase, window, sub_phases))

    return timeline


def _reverse_pass(completion: date, phases: Sequence[PhaseDefinition]) -> dict[str, PhaseWindow]:
    cursor = completion
    windows: dict[str, PhaseWindow] = {}
    for phase in reversed(phases):
        phase_end = cursor
        phase_start = phase_end if phase.duration == 0 else retreat(phase_end, phase.duration, phase.unit)
        windows[phase.key] = PhaseWindow(phase_start, phase_end)
        cursor = phase_start
    return windows


def _sub_phase_anchor(phase: PhaseDefinition, own_start: date, starts: Mapping[str, date]) -> date:
    if phase.anchor_phase_key is None:
        return own_start
    anchor = starts.get(phase.anchor_phase_key)
    if anchor is None:
        logger.debug("Anchor phase '%s' of '%s' has no start; using own start", phase.anchor_phase_key, phase.key)
        return own_start
    return anchor


def _phase_overrides(overrides: Overrides | None) -> Mapping[str, PhaseOverride]:
    if overrides is None:
        return {}
    if isinstance(overrides, ProjectOverrides):
        return overrides.phases
    return overrides


def _timeline_phase(
    phase: PhaseDefinition,
    window: PhaseWindow,
    sub_phases: list[ResolvedSubPhase] | None,
) -> WorkflowTimelinePhase:
    return WorkflowTimelinePhase(
        key=phase.key,
        title=phase.title,
        group_label=phase.group_label,
        date=window.start if phase.duration == 0 else None,
        start_date=window.start,
        end_date=window.end,
        sub_phases=sub_phases,
    )
