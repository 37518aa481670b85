from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

from .calendar_math import advance
from .subphase_rules import DEFAULT_DURATION, DEFAULT_UNIT, branch_result
from .timeline_models import DatedSubPhase, PhaseOverride, ResolvedSubPhase, SubPhase

logger = logging.getLogger(__name__)


def order_sub_phases(sub_phases: Iterable[SubPhase], override: PhaseOverride) -> list[SubPhase]:
    """Pick sub-phases in the override's order, dropping unknown and skipped keys."""

    lookup = {sub.key: sub for sub in sub_phases}
    ordered: list[SubPhase] = []
    for key in override.sub_phase_order:
        if key in override.skipped_sub_phases:
            continue
        sub = lookup.get(key)
        if sub is None:
            logger.debug("Dropping unknown sub-phase '%s' from override order", key)
            continue
        ordered.append(sub)
    return ordered


def resolve_override_chain(
    anchor: date,
    sub_phases: Sequence[SubPhase],
    override: PhaseOverride,
) -> list[ResolvedSubPhase]:
    """
    Date sub-phases back to back from `anchor` following a caller-defined order.

    - Each sub-phase starts where the previous one ended (running cursor).
    - A fixed date restarts the cursor at that date.
    - Effective duration: custom duration, else the sub-phase default, else 1.
    - Skipped and unknown keys are absent from the result.
    """

    cursor = anchor
    resolved: list[ResolvedSubPhase] = []
    for sub in order_sub_phases(sub_phases, override):
        if not isinstance(sub, DatedSubPhase):
            resolved.append(branch_result(sub))
            continue

        fixed = override.fixed_dates.get(sub.key)
        if fixed is not None:
            cursor = fixed
        assigned = cursor

        duration = override.custom_durations.get(sub.key)
        if duration is None:
            duration = sub.duration if sub.duration is not None else DEFAULT_DURATION
        unit = sub.unit or DEFAULT_UNIT
        cursor = advance(cursor, duration, unit)

        resolved.append(
            ResolvedSubPhase(
                key=sub.key,
                title=sub.title,
                date=assigned,
                duration=duration,
                unit=unit,
            )
        )
    return resolved
