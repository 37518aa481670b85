import dataclasses
import datetime as dt

import pytest

from workflow_timeline.calendar_math import add_business_days, advance
from workflow_timeline.pipeline import WORKFLOW_PHASES, phase_by_key
from workflow_timeline.scheduling import (
    parse_completion_month,
    schedule_backward,
    schedule_forward,
    try_schedule_backward,
    try_schedule_forward,
)
from workflow_timeline.subphase_rules import resolve_sub_phases
from workflow_timeline.timeline_models import DatedSubPhase, PhaseDefinition, PhaseOverride, ProjectOverrides

PIPELINE_KEYS = [phase.key for phase in WORKFLOW_PHASES]


def _by_key(timeline):
    return {phase.key: phase for phase in timeline}


def _sub_dates(phase):
    return {sub.key: sub.date for sub in phase.sub_phases}


def test_pipeline_has_ten_phases_with_filing_anchored_on_contract():
    assert len(WORKFLOW_PHASES) == 10
    assert phase_by_key("application_filing").anchor_phase_key == "contract_design"
    assert phase_by_key("construction").sub_phases == ()


def test_forward_schedule_from_monday():
    timeline = _by_key(schedule_forward(dt.date(2026, 1, 5)))

    kickoff = timeline["project_kickoff"]
    assert kickoff.start_date == kickoff.end_date == kickoff.date == dt.date(2026, 1, 5)
    assert all(sub.date == dt.date(2026, 1, 5) and sub.duration == 1 for sub in kickoff.sub_phases)

    survey = timeline["initial_survey"]
    assert survey.end_date == dt.date(2026, 1, 12)
    assert _sub_dates(survey) == {
        "site_guide_map": dt.date(2026, 1, 7),
        "legal_check": dt.date(2026, 1, 7),
        "hazard_map_check": dt.date(2026, 1, 7),
        "rough_drawing": dt.date(2026, 1, 8),
    }

    assert timeline["site_confirmation"].end_date == dt.date(2026, 1, 15)
    assert _sub_dates(timeline["site_confirmation"]) == {"site_survey_photos": dt.date(2026, 1, 15)}

    contract = timeline["contract_design"]
    assert (contract.start_date, contract.end_date) == (dt.date(2026, 1, 15), dt.date(2026, 1, 22))
    assert set(_sub_dates(contract).values()) == {dt.date(2026, 1, 22)}

    waiting = timeline["waiting_period"]
    assert waiting.end_date == dt.date(2026, 3, 8)
    assert _sub_dates(waiting) == {
        "legal_response": dt.date(2026, 2, 22),
        "power_response": dt.date(2026, 3, 9),
    }

    assert timeline["final_design"].end_date == dt.date(2026, 3, 11)
    assert _sub_dates(timeline["final_design"]) == {"final_design_simulation": dt.date(2026, 3, 11)}

    settlement = timeline["final_settlement"]
    assert settlement.end_date == dt.date(2026, 3, 18)
    assert all(sub.date == dt.date(2026, 3, 16) and sub.unit == "calendar_days" for sub in settlement.sub_phases)


def test_forward_schedule_leaves_construction_undated():
    construction = schedule_forward(dt.date(2026, 1, 5))[-1]

    assert construction.key == "construction"
    assert construction.start_date is None
    assert construction.end_date is None
    assert construction.sub_phases is None


def test_forward_filing_sub_phases_use_contract_start():
    timeline = _by_key(schedule_forward(dt.date(2026, 1, 5)))
    contract_start = timeline["contract_design"].start_date
    filing = timeline["application_filing"]

    assert filing.date == dt.date(2026, 1, 22)
    assert set(_sub_dates(filing).values()) == {add_business_days(contract_start, 5)}


@pytest.mark.parametrize("start", [dt.date(2026, 1, 5), dt.date(2026, 1, 10), dt.date(2027, 2, 26)])
def test_forward_phase_order_durations_and_handoff(start):
    timeline = schedule_forward(start)

    assert [phase.key for phase in timeline] == PIPELINE_KEYS
    dated = [phase for phase in timeline if phase.start_date is not None]
    for phase in dated:
        definition = phase_by_key(phase.key)
        if definition.duration == 0:
            assert phase.start_date == phase.end_date
        else:
            assert phase.end_date == advance(phase.start_date, definition.duration, definition.unit)
    for earlier, later in zip(dated, dated[1:]):
        assert earlier.end_date == later.start_date


def test_backward_schedule_anchors_construction_on_fifteenth():
    timeline = _by_key(schedule_backward("2026-06"))

    construction = timeline["construction"]
    assert construction.end_date == dt.date(2026, 6, 15)
    assert construction.start_date == dt.date(2026, 3, 17)
    assert timeline["final_settlement"].start_date == dt.date(2026, 3, 10)
    assert timeline["final_design"].start_date == dt.date(2026, 3, 5)
    assert timeline["waiting_period"].start_date == dt.date(2026, 1, 19)
    assert timeline["contract_design"].start_date == dt.date(2026, 1, 12)
    assert timeline["project_kickoff"].date == dt.date(2025, 12, 31)


@pytest.mark.parametrize("month", ["2026-06", "2026-01", "2027-11"])
def test_backward_phase_handoff(month):
    timeline = schedule_backward(month)

    assert [phase.key for phase in timeline] == PIPELINE_KEYS
    for earlier, later in zip(timeline, timeline[1:]):
        assert earlier.end_date == later.start_date
    assert timeline[-1].end_date.day == 15


def test_backward_filing_follows_contract_duration():
    timeline = _by_key(schedule_backward("2026-06"))
    assert set(_sub_dates(timeline["application_filing"]).values()) == {dt.date(2026, 1, 19)}

    longer = [
        dataclasses.replace(phase, duration=10) if phase.key == "contract_design" else phase
        for phase in WORKFLOW_PHASES
    ]
    shifted = _by_key(schedule_backward("2026-06", phases=longer))

    contract_start = shifted["contract_design"].start_date
    assert contract_start == dt.date(2026, 1, 5)
    assert shifted["application_filing"].start_date == dt.date(2026, 1, 19)
    assert set(_sub_dates(shifted["application_filing"]).values()) == {add_business_days(contract_start, 5)}


def test_branch_sub_phases_never_receive_dates():
    for timeline in (schedule_forward(dt.date(2026, 1, 5)), schedule_backward("2026-06")):
        decision = _by_key(timeline)["submission_decision"]
        (branch,) = decision.sub_phases
        assert branch.kind == "branch"
        assert branch.date is None
        assert [b.name for b in branch.branches] == ["Secondary buyer", "Primary buyer"]


@pytest.mark.parametrize(
    "month",
    ["2026-13", "2026-00", "2026-6", "26-06", "2026/06", "2026-06\n", "", "0000-05", "２０２６-０６"],
)
def test_invalid_completion_month_yields_empty_list(month):
    assert schedule_backward(month) == []


def test_try_schedule_backward_reports_rejection():
    rejected = try_schedule_backward("2026-13")
    accepted = try_schedule_backward("2026-06")

    assert not rejected.ok
    assert rejected.phases == []
    assert "2026-13" in rejected.rejected_reason
    assert accepted.ok
    assert len(accepted.phases) == 10


def test_completion_month_too_early_is_rejected_not_raised():
    result = try_schedule_backward("0001-01")

    assert not result.ok
    assert result.phases == []


def test_parse_completion_month():
    assert parse_completion_month("2026-06") == dt.date(2026, 6, 15)
    assert parse_completion_month("2026-12") == dt.date(2026, 12, 15)
    assert parse_completion_month("2026-13") is None


def test_backward_override_switches_phase_to_chain():
    override = PhaseOverride(sub_phase_order=["land_contract", "drawing_revision"], skipped_sub_phases={"power_simulation"})
    timeline = _by_key(schedule_backward("2026-06", {"contract_design": override}))

    contract = timeline["contract_design"]
    assert [sub.key for sub in contract.sub_phases] == ["land_contract", "drawing_revision"]
    assert contract.sub_phases[0].date == dt.date(2026, 1, 12)
    assert contract.sub_phases[1].date == dt.date(2026, 1, 13)
    # Other phases keep the rule table.
    assert _sub_dates(timeline["site_confirmation"]) == {"site_survey_photos": dt.date(2026, 1, 12)}


def test_backward_override_without_order_uses_rule_table():
    plain = _by_key(schedule_backward("2026-06"))
    overridden = _by_key(
        schedule_backward("2026-06", ProjectOverrides(phases={"contract_design": PhaseOverride(skipped_sub_phases={"land_contract"})}))
    )

    assert _sub_dates(overridden["contract_design"]) == _sub_dates(plain["contract_design"])


def test_full_width_digits_are_not_a_completion_month():
    assert parse_completion_month("２０２６-０６") is None
    assert not try_schedule_backward("２０２６-０６").ok


def test_forward_start_too_late_is_rejected_not_raised():
    result = try_schedule_forward(dt.date(9999, 12, 1))

    assert not result.ok
    assert result.phases == []
    assert "9999-12-01" in result.rejected_reason
    assert schedule_forward(dt.date(9999, 12, 1)) == []
    assert try_schedule_forward(dt.date(2026, 1, 5)).ok


def test_waiting_period_extra_sub_phase_stays_undated():
    waiting = dataclasses.replace(
        phase_by_key("waiting_period"),
        sub_phases=phase_by_key("waiting_period").sub_phases + (DatedSubPhase("site_patrol", "Site Patrol", 4, "business_days"),),
    )

    resolved = {sub.key: sub for sub in resolve_sub_phases(waiting, dt.date(2026, 1, 22))}

    assert resolved["legal_response"].date == dt.date(2026, 2, 22)
    extra = resolved["site_patrol"]
    assert extra.date is None
    assert (extra.duration, extra.unit) == (1, "calendar_days")


def test_phase_without_rule_keeps_sub_phase_defaults():
    phase = PhaseDefinition(
        key="grid_inspection",
        title="Grid Inspection",
        duration=2,
        unit="business_days",
        group_label="Stage 6",
        sub_phases=(
            DatedSubPhase("bare", "Bare task"),
            DatedSubPhase("sized", "Sized task", 3, "calendar_days"),
        ),
    )

    bare, sized = resolve_sub_phases(phase, dt.date(2026, 1, 5))

    assert bare.date is None
    assert (bare.duration, bare.unit) == (1, "business_days")
    assert sized.date is None
    assert (sized.duration, sized.unit) == (3, "calendar_days")
