from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Literal, Mapping

from .errors import OverrideValidationError, PipelineDefinitionError

DurationUnit = Literal["business_days", "calendar_days"]
"""Unit a duration is counted in: weekdays only, or every calendar day."""

SubPhaseKind = Literal["dated", "branch"]

DURATION_UNITS: tuple[str, ...] = ("business_days", "calendar_days")


@dataclass(frozen=True)
class Branch:
    """One named outcome of a decision node."""

    name: str
    condition: str


@dataclass(frozen=True)
class DatedSubPhase:
    """Task inside a phase that receives a computed date."""

    key: str
    title: str
    duration: int | None = None
    unit: DurationUnit | None = None
    roles: tuple[str, ...] = ()

    kind: SubPhaseKind = field(default="dated", init=False)

    def __post_init__(self) -> None:
        if self.duration is not None and self.duration < 0:
            raise PipelineDefinitionError(f"Sub-phase '{self.key}' has negative duration {self.duration}")


@dataclass(frozen=True)
class BranchSubPhase:
    """Conditional decision point; never carries a date."""

    key: str
    title: str
    criteria: str = ""
    branches: tuple[Branch, ...] = ()

    kind: SubPhaseKind = field(default="branch", init=False)


SubPhase = DatedSubPhase | BranchSubPhase
"""Convenience alias for the two sub-phase variants."""


@dataclass(frozen=True)
class PhaseDefinition:
    """
    One stage of the pipeline.

    Definitions carry no dates; only the schedulers produce them.
    `anchor_phase_key` names another phase whose start date anchors this
    phase's sub-phase dates instead of its own.
    """

    key: str
    title: str
    duration: int
    unit: DurationUnit
    group_label: str
    sub_phases: tuple[SubPhase, ...] = ()
    anchor_phase_key: str | None = None

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise PipelineDefinitionError(f"Phase '{self.key}' has negative duration {self.duration}")
        if self.unit not in DURATION_UNITS:
            raise PipelineDefinitionError(f"Phase '{self.key}' has unknown unit '{self.unit}'")
        seen: set[str] = set()
        for sub in self.sub_phases:
            if sub.key in seen:
                raise PipelineDefinitionError(f"Phase '{self.key}' repeats sub-phase '{sub.key}'")
            seen.add(sub.key)

    def sub_phase(self, key: str) -> SubPhase | None:
        for sub in self.sub_phases:
            if sub.key == key:
                return sub
        return None


@dataclass(frozen=True)
class PhaseOverride:
    """
    Caller customisation of one phase.

    A non-empty `sub_phase_order` switches the phase to cursor chaining;
    `start_date`, `end_date` and `note` are manual phase-level adjustments
    shown in the progress view. Collections are copied into read-only
    containers on construction, so validation holds for the lifetime of
    the override.
    """

    sub_phase_order: tuple[str, ...] = ()
    skipped_sub_phases: frozenset[str] = frozenset()
    custom_durations: Mapping[str, int] = field(default_factory=dict)
    fixed_dates: Mapping[str, date] = field(default_factory=dict)
    start_date: date | None = None
    end_date: date | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "sub_phase_order", tuple(self.sub_phase_order))
        object.__setattr__(self, "skipped_sub_phases", frozenset(self.skipped_sub_phases))
        object.__setattr__(self, "custom_durations", MappingProxyType(dict(self.custom_durations)))
        object.__setattr__(self, "fixed_dates", MappingProxyType(dict(self.fixed_dates)))

        seen: set[str] = set()
        for key in self.sub_phase_order:
            if key in seen:
                raise OverrideValidationError(f"sub-phase '{key}' appears more than once in sub_phase_order")
            seen.add(key)
        for key, value in self.custom_durations.items():
            if value < 0:
                raise OverrideValidationError(f"custom duration for '{key}' must be non-negative, got {value}")

    @property
    def has_custom_order(self) -> bool:
        return bool(self.sub_phase_order)


@dataclass
class ProjectOverrides:
    """All overrides of a project plus sub-phases moved between phases."""

    phases: dict[str, PhaseOverride] = field(default_factory=dict)
    task_assignments: dict[str, str] = field(default_factory=dict)


@dataclass
class ResolvedSubPhase:
    """Sub-phase with its computed date (None for branch nodes and unscheduled tasks)."""

    key: str
    title: str
    kind: SubPhaseKind = "dated"
    date: date | None = None
    duration: int | None = None
    unit: DurationUnit | None = None
    criteria: str | None = None
    branches: tuple[Branch, ...] = ()


@dataclass
class WorkflowTimelinePhase:
    """Computed dates of one phase; `date` is only set for zero-duration phases."""

    key: str
    title: str
    group_label: str
    date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    sub_phases: list[ResolvedSubPhase] | None = None


@dataclass
class ScheduleResult:
    """Outcome of a scheduling call that distinguishes rejected input from an empty timeline."""

    phases: list[WorkflowTimelinePhase] = field(default_factory=list)
    rejected_reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.rejected_reason is None
