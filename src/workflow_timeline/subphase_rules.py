from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

from .calendar_math import add_business_days, add_calendar_days, add_months
from .timeline_models import BranchSubPhase, DatedSubPhase, DurationUnit, PhaseDefinition, ResolvedSubPhase

DEFAULT_DURATION = 1
DEFAULT_UNIT: DurationUnit = "business_days"

SURVEY_FINAL_SUB_PHASE = "rough_drawing"
LEGAL_RESPONSE_SUB_PHASE = "legal_response"
POWER_RESPONSE_SUB_PHASE = "power_response"


@dataclass(frozen=True)
class SubPhaseSlot:
    """Date and effective duration a rule assigns to one sub-phase."""

    date: date | None
    duration: int
    unit: DurationUnit


OffsetRule = Callable[[DatedSubPhase, date], SubPhaseSlot]


def _own_slot(sub: DatedSubPhase, when: date | None) -> SubPhaseSlot:
    duration = sub.duration if sub.duration is not None else DEFAULT_DURATION
    return SubPhaseSlot(when, duration, sub.unit or DEFAULT_UNIT)


def _kickoff(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return SubPhaseSlot(anchor, 1, "business_days")


def _initial_survey(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    offset = 3 if sub.key == SURVEY_FINAL_SUB_PHASE else 2
    return _own_slot(sub, add_business_days(anchor, offset))


def _site_confirmation(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return _own_slot(sub, add_business_days(anchor, 3))


def _submission_decision(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return SubPhaseSlot(anchor, 1, "business_days")


def _five_business_days(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return _own_slot(sub, add_business_days(anchor, 5))


def _waiting_period(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    if sub.key == LEGAL_RESPONSE_SUB_PHASE:
        return _own_slot(sub, add_months(anchor, 1))
    if sub.key == POWER_RESPONSE_SUB_PHASE:
        return _own_slot(sub, add_months(anchor, 1.5))
    return SubPhaseSlot(None, 1, "calendar_days")


def _final_design(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return _own_slot(sub, add_calendar_days(anchor, 3))


def _final_settlement(sub: DatedSubPhase, anchor: date) -> SubPhaseSlot:
    return SubPhaseSlot(add_calendar_days(anchor, 5), 1, "calendar_days")


SUB_PHASE_RULES: dict[str, OffsetRule] = {
    "project_kickoff": _kickoff,
    "initial_survey": _initial_survey,
    "site_confirmation": _site_confirmation,
    "submission_decision": _submission_decision,
    "contract_design": _five_business_days,
    # Anchored on the contract phase start through PhaseDefinition.anchor_phase_key.
    "application_filing": _five_business_days,
    "waiting_period": _waiting_period,
    "final_design": _final_design,
    "final_settlement": _final_settlement,
}


def resolve_sub_phases(phase: PhaseDefinition, anchor: date) -> list[ResolvedSubPhase] | None:
    """
    Date the sub-phases of `phase` using the per-phase offset rule.

    Phases without a rule keep each sub-phase's own duration and get no dates.
    Branch nodes are passed through undated.
    """

    if not phase.sub_phases:
        return None

    rule = SUB_PHASE_RULES.get(phase.key)
    resolved: list[ResolvedSubPhase] = []
    for sub in phase.sub_phases:
        if not isinstance(sub, DatedSubPhase):
            resolved.append(branch_result(sub))
            continue
        slot = rule(sub, anchor) if rule is not None else _own_slot(sub, None)
        resolved.append(
            ResolvedSubPhase(
                key=sub.key,
                title=sub.title,
                date=slot.date,
                duration=slot.duration,
                unit=slot.unit,
            )
        )
    return resolved


def branch_result(sub: BranchSubPhase) -> ResolvedSubPhase:
    return ResolvedSubPhase(
        key=sub.key,
        title=sub.title,
        kind="branch",
        criteria=sub.criteria,
        branches=sub.branches,
    )
