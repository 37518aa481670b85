from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .errors import OverrideValidationError
from .timeline_models import PhaseOverride, ProjectOverrides

_PHASE_FIELDS = {
    "subPhaseOrder",
    "skippedSubPhases",
    "customDurations",
    "fixedDates",
    "startDate",
    "endDate",
    "note",
}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like phases.contract_design.fixedDates."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_overrides(path: str) -> ProjectOverrides:
    """Load phase overrides from a YAML (or JSON) file at the given path."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_overrides(raw)


def parse_overrides(data: Any) -> ProjectOverrides:
    """
    Build ProjectOverrides from already-decoded data.

    Accepts the flat form `{phase_key: {...}}` as well as
    `{phases: {...}, taskAssignments: {...}}`. Empty input means no overrides.
    """

    path = _Path()
    if data is None:
        return ProjectOverrides()
    if not isinstance(data, dict):
        raise OverrideValidationError(f"{path}: expected mapping at top level")

    if isinstance(data.get("phases"), dict):
        _assert_allowed_keys(data, {"phases", "taskAssignments"}, path)
        phases_raw = data["phases"]
        phases_path = path.child("phases")
        assignments = _parse_str_mapping(data.get("taskAssignments"), path.child("taskAssignments"))
    else:
        phases_raw = data
        phases_path = path
        assignments = {}

    phases: dict[str, PhaseOverride] = {}
    for key, value in phases_raw.items():
        if not isinstance(key, str):
            raise OverrideValidationError(f"{phases_path}: phase keys must be strings, got {key!r}")
        phases[key] = _parse_phase_override(value, phases_path.child(key))

    return ProjectOverrides(phases=phases, task_assignments=assignments)


def _parse_phase_override(data: Any, path: _Path) -> PhaseOverride:
    if data is None:
        return PhaseOverride()
    if not isinstance(data, dict):
        raise OverrideValidationError(f"{path}: expected mapping for phase override")
    _assert_allowed_keys(data, _PHASE_FIELDS, path)

    durations: dict[str, int] = {}
    durations_raw = _optional_mapping(data, "customDurations", path)
    for key, value in durations_raw.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise OverrideValidationError(f"{path.child('customDurations').child(str(key))}: expected integer")
        if value < 0:
            raise OverrideValidationError(f"{path.child('customDurations').child(str(key))}: must be non-negative")
        durations[str(key)] = value

    fixed: dict[str, _dt.date] = {}
    fixed_raw = _optional_mapping(data, "fixedDates", path)
    for key, value in fixed_raw.items():
        fixed[str(key)] = _parse_date(value, path.child("fixedDates").child(str(key)))

    note = data.get("note")
    if note is not None and not isinstance(note, str):
        raise OverrideValidationError(f"{path.child('note')}: expected string")

    return PhaseOverride(
        sub_phase_order=_parse_key_list(data.get("subPhaseOrder"), path.child("subPhaseOrder"), unique=True),
        skipped_sub_phases=set(_parse_key_list(data.get("skippedSubPhases"), path.child("skippedSubPhases"))),
        custom_durations=durations,
        fixed_dates=fixed,
        start_date=_parse_optional_date(data.get("startDate"), path.child("startDate")),
        end_date=_parse_optional_date(data.get("endDate"), path.child("endDate")),
        note=note,
    )


def _parse_key_list(value: Any, path: _Path, unique: bool = False) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise OverrideValidationError(f"{path}: expected list of sub-phase keys")
    keys: list[str] = []
    for idx, key in enumerate(value):
        if not isinstance(key, str) or not key.strip():
            raise OverrideValidationError(f"{path}[{idx}]: expected non-empty string")
        if unique and key in keys:
            raise OverrideValidationError(f"{path}[{idx}]: duplicate sub-phase '{key}'")
        keys.append(key)
    return keys


def _parse_str_mapping(value: Any, path: _Path) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise OverrideValidationError(f"{path}: expected mapping")
    result: dict[str, str] = {}
    for key, target in value.items():
        if not isinstance(key, str) or not isinstance(target, str):
            raise OverrideValidationError(f"{path}: expected string keys and values, got {key!r}: {target!r}")
        result[key] = target
    return result


def _optional_mapping(data: dict[str, Any], key: str, path: _Path) -> dict[Any, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise OverrideValidationError(f"{path.child(key)}: expected mapping")
    return value


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise OverrideValidationError(f"{path}: unexpected fields {extras}")


def _parse_optional_date(value: Any, path: _Path) -> _dt.date | None:
    if value is None or value == "":
        return None
    return _parse_date(value, path)


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # YAML already decodes unquoted ISO dates.
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise OverrideValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        return _dt.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise OverrideValidationError(f"{path}: expected YYYY-MM-DD string") from exc
