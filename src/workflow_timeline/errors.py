from __future__ import annotations


class TimelineError(Exception):
    """Base class for workflow timeline errors."""


class OverrideValidationError(TimelineError):
    """Raised when a phase override is malformed (duplicate order keys, negative durations, bad fields)."""


class PipelineDefinitionError(TimelineError):
    """Raised when a phase or sub-phase definition is inconsistent."""
