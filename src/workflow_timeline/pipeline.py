from __future__ import annotations

from typing import Iterator

from .timeline_models import Branch, BranchSubPhase, DatedSubPhase, PhaseDefinition, SubPhase

TERMINAL_PHASE_KEY = "construction"
"""Open-ended build window; forward scheduling leaves it undated."""

WORKFLOW_PHASES: tuple[PhaseDefinition, ...] = (
    PhaseDefinition(
        key="project_kickoff",
        title="Project Kickoff",
        duration=0,
        unit="business_days",
        group_label="Stage 1",
        sub_phases=(
            DatedSubPhase("project_acquisition", "Project Acquisition", 1, "business_days", ("sales",)),
            DatedSubPhase("initial_photography", "Initial Site Photography", 1, "business_days", ("sales",)),
        ),
    ),
    PhaseDefinition(
        key="initial_survey",
        title="Initial Survey & Design",
        duration=5,
        unit="business_days",
        group_label="Stage 1",
        sub_phases=(
            DatedSubPhase("site_guide_map", "Site Guide Map", 1, "business_days", ("design",)),
            DatedSubPhase("legal_check", "Regulatory Check", 1, "business_days", ("legal",)),
            DatedSubPhase("hazard_map_check", "Hazard Map Check", 1, "business_days", ("design",)),
            DatedSubPhase("rough_drawing", "Rough Layout Drawing", 1, "business_days", ("design",)),
        ),
    ),
    PhaseDefinition(
        key="site_confirmation",
        title="Site Confirmation",
        duration=3,
        unit="business_days",
        group_label="Stage 2",
        sub_phases=(
            DatedSubPhase("site_survey_photos", "On-site Survey (missing photos)", 1, "business_days", ("field",)),
        ),
    ),
    PhaseDefinition(
        key="submission_decision",
        title="Submission Decision",
        duration=0,
        unit="business_days",
        group_label="Stage 2",
        sub_phases=(
            BranchSubPhase(
                "decision_branch",
                "Submission Target",
                criteria="Prefer the primary buyer for firm projects or when the site is better than the photos",
                branches=(
                    Branch("Secondary buyer", "All other projects"),
                    Branch("Primary buyer", "Firm project, or site condition better than photographed"),
                ),
            ),
        ),
    ),
    PhaseDefinition(
        key="contract_design",
        title="Contract & Detailed Design",
        duration=5,
        unit="business_days",
        group_label="Stage 3",
        sub_phases=(
            DatedSubPhase("drawing_revision", "Drawing Revision", 2, "business_days", ("design",)),
            DatedSubPhase("power_simulation", "Power Simulation", 1, "business_days", ("design",)),
            DatedSubPhase("neighbor_greeting", "Neighbor Visits & Clearing Permission", 2, "business_days", ("field",)),
            DatedSubPhase("land_contract", "Land Contract", 1, "business_days", ("sales", "legal")),
            DatedSubPhase("land_category_change", "Land Category Change", 1, "business_days", ("legal",)),
        ),
    ),
    PhaseDefinition(
        key="application_filing",
        title="Application Filing",
        duration=0,
        unit="business_days",
        group_label="Stage 3",
        sub_phases=(
            DatedSubPhase("power_application", "Grid Connection Application", 1, "business_days", ("legal",)),
            DatedSubPhase("legal_application", "Land-use Permit Application", 1, "business_days", ("legal",)),
        ),
        anchor_phase_key="contract_design",
    ),
    PhaseDefinition(
        key="waiting_period",
        title="Waiting Period",
        duration=45,
        unit="calendar_days",
        group_label="Stage 3",
        sub_phases=(
            DatedSubPhase("legal_response", "Land-use Permit Response", 30, "calendar_days", ("legal",)),
            DatedSubPhase("power_response", "Grid Connection Response", 45, "calendar_days", ("legal",)),
        ),
    ),
    PhaseDefinition(
        key="final_design",
        title="Final Design Adjustment",
        duration=3,
        unit="business_days",
        group_label="Stage 3",
        sub_phases=(
            DatedSubPhase("final_design_simulation", "Final Design (re-run simulation)", 3, "calendar_days", ("design",)),
        ),
    ),
    PhaseDefinition(
        key="final_settlement",
        title="Final Settlement",
        duration=5,
        unit="business_days",
        group_label="Stage 4",
        sub_phases=(
            DatedSubPhase("ground_survey_request", "Ground Survey Request", 1, "calendar_days", ("field",)),
            DatedSubPhase("settlement_name_change", "Settlement (title transfer)", 1, "calendar_days", ("legal",)),
        ),
    ),
    PhaseDefinition(
        key=TERMINAL_PHASE_KEY,
        title="Construction",
        duration=90,
        unit="calendar_days",
        group_label="Stage 5",
    ),
)

_BY_KEY = {phase.key: phase for phase in WORKFLOW_PHASES}


def phase_by_key(key: str) -> PhaseDefinition | None:
    return _BY_KEY.get(key)


def iter_sub_phases() -> Iterator[tuple[PhaseDefinition, SubPhase]]:
    """Yield (phase, sub_phase) pairs in pipeline order."""

    for phase in WORKFLOW_PHASES:
        for sub in phase.sub_phases:
            yield phase, sub
