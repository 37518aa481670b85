import dataclasses
import datetime as dt

import pytest

from workflow_timeline.errors import OverrideValidationError
from workflow_timeline.override_chain import order_sub_phases, resolve_override_chain
from workflow_timeline.timeline_models import Branch, BranchSubPhase, DatedSubPhase, PhaseOverride

ANCHOR = dt.date(2026, 1, 5)

A = DatedSubPhase("a", "Task A", 2, "business_days")
B = DatedSubPhase("b", "Task B", 1, "business_days")
C = DatedSubPhase("c", "Task C", 3, "calendar_days")
SUBS = (A, B, C)


def test_custom_order_with_skip_chains_from_anchor():
    override = PhaseOverride(sub_phase_order=["c", "a"], skipped_sub_phases={"b"})

    resolved = resolve_override_chain(ANCHOR, SUBS, override)

    assert [sub.key for sub in resolved] == ["c", "a"]
    assert resolved[0].date == ANCHOR
    assert resolved[1].date == ANCHOR + dt.timedelta(days=3)


def test_skipped_key_is_absent_even_when_listed_in_order():
    override = PhaseOverride(sub_phase_order=["a", "b", "c"], skipped_sub_phases={"b"})

    resolved = resolve_override_chain(ANCHOR, SUBS, override)

    assert [sub.key for sub in resolved] == ["a", "c"]
    assert resolved[1].date == dt.date(2026, 1, 7)


def test_fixed_date_resets_cursor():
    override = PhaseOverride(sub_phase_order=["a", "b", "c"], fixed_dates={"b": dt.date(2026, 2, 1)})

    resolved = {sub.key: sub for sub in resolve_override_chain(ANCHOR, SUBS, override)}

    assert resolved["a"].date == ANCHOR
    assert resolved["b"].date == dt.date(2026, 2, 1)
    # 2026-02-01 is a Sunday; one business day later is Monday.
    assert resolved["c"].date == dt.date(2026, 2, 2)


def test_custom_durations_take_precedence_over_defaults():
    override = PhaseOverride(sub_phase_order=["a", "c"], custom_durations={"a": 4})

    resolved = resolve_override_chain(ANCHOR, SUBS, override)

    assert resolved[0].duration == 4
    assert resolved[1].date == dt.date(2026, 1, 9)


def test_missing_duration_and_unit_default_to_one_business_day():
    bare = DatedSubPhase("bare", "Bare task")
    friday = dt.date(2026, 1, 9)
    override = PhaseOverride(sub_phase_order=["bare", "a"])

    resolved = resolve_override_chain(friday, (bare, A), override)

    assert resolved[0].duration == 1
    assert resolved[0].unit == "business_days"
    assert resolved[1].date == dt.date(2026, 1, 12)


def test_unknown_keys_are_dropped():
    override = PhaseOverride(sub_phase_order=["ghost", "b"])

    resolved = resolve_override_chain(ANCHOR, SUBS, override)

    assert [sub.key for sub in resolved] == ["b"]
    assert resolved[0].date == ANCHOR


def test_branch_in_order_stays_undated_and_keeps_cursor():
    branch = BranchSubPhase("pick", "Pick target", branches=(Branch("X", "always"),))
    override = PhaseOverride(sub_phase_order=["a", "pick", "b"])

    resolved = resolve_override_chain(ANCHOR, (A, branch, B), override)

    assert resolved[1].kind == "branch"
    assert resolved[1].date is None
    assert resolved[2].date == dt.date(2026, 1, 7)


def test_order_sub_phases_keeps_given_order():
    override = PhaseOverride(sub_phase_order=["c", "b", "a"])

    assert order_sub_phases(SUBS, override) == [C, B, A]


def test_duplicate_order_keys_are_rejected():
    with pytest.raises(OverrideValidationError):
        PhaseOverride(sub_phase_order=["a", "b", "a"])


def test_negative_custom_duration_is_rejected():
    with pytest.raises(OverrideValidationError):
        PhaseOverride(sub_phase_order=["a"], custom_durations={"a": -1})


def test_override_is_immutable_after_validation():
    order = ["a", "b"]
    durations = {"a": 2}
    override = PhaseOverride(sub_phase_order=order, custom_durations=durations)

    order.append("a")
    durations["a"] = -5
    with pytest.raises(dataclasses.FrozenInstanceError):
        override.sub_phase_order = ["a", "a"]
    with pytest.raises(TypeError):
        override.custom_durations["a"] = -5

    assert override.sub_phase_order == ("a", "b")
    assert override.custom_durations["a"] == 2
    assert [sub.key for sub in resolve_override_chain(ANCHOR, SUBS, override)] == ["a", "b"]
