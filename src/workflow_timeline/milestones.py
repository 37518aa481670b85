from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from .calendar_math import add_months
from .scheduling import parse_completion_month

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MilestoneOffset:
    """Milestone placed a fractional number of months before (or after) completion."""

    key: str
    title: str
    months_offset: float
    optional: bool = False


@dataclass
class Milestone:
    key: str
    title: str
    date: date
    optional: bool = False


MILESTONE_OFFSETS: tuple[MilestoneOffset, ...] = (
    MilestoneOffset("farmland_exclusion", "Farmland Zoning Exclusion", -10.1, optional=True),
    MilestoneOffset("power_application", "Grid Connection Application", -5.8),
    MilestoneOffset("site_survey", "Site Survey", -5.5),
    MilestoneOffset("project_submission", "Project Submission", -5.0),
    MilestoneOffset("ground_survey_request", "Ground Survey Request", -2.7),
    MilestoneOffset("power_response", "Grid Connection Response", -2.5),
    MilestoneOffset("legal_application", "Land-use Permit Application", -2.5),
    MilestoneOffset("land_contract", "Land Contract", -2.4),
    MilestoneOffset("construction_start", "Construction Start", -1.9),
    MilestoneOffset("ground_survey", "Ground Survey", -1.8),
    MilestoneOffset("land_settlement", "Land Settlement", -1.1),
    MilestoneOffset("completion", "Completion", 0),
    MilestoneOffset("grid_connection", "Grid Connection", 2.7),
)


def calculate_milestones(completion_month: str, include_optional: bool = False) -> list[Milestone]:
    """
    Place each milestone relative to the 15th of the completion month.

    Optional milestones (farmland zoning exclusion) are only included when
    the project needs them. An invalid month, or one whose milestones fall
    outside the supported date range, yields an empty list.
    """

    base = parse_completion_month(completion_month)
    if base is None:
        logger.info("Rejected milestone projection for completion month %r", completion_month)
        return []

    try:
        return [
            Milestone(
                key=offset.key,
                title=offset.title,
                date=add_months(base, offset.months_offset),
                optional=offset.optional,
            )
            for offset in MILESTONE_OFFSETS
            if include_optional or not offset.optional
        ]
    except OverflowError:
        logger.info("Milestones for completion month %r fall outside the supported date range", completion_month)
        return []
