"""Validate run filters and turn them into a segmentations query."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from hs_campaigns.models import CampaignFilters

VALID_DAYS_FILTERS = ("today", "t+1", "t+2", "t+3", "all")
VALID_MODE_FILTERS = ("BAU", "re-engagement", "re-activation")

REENGAGEMENT_PATTERN = "re-engagement"
REACTIVATION_PATTERN = "re-activation"


class InvalidFiltersError(ValueError):
    pass


class NoCampaignsError(Exception):
    pass


def validate_filters(days: Optional[str], mode: Optional[str]) -> CampaignFilters:
    if not days or days not in VALID_DAYS_FILTERS:
        raise InvalidFiltersError(
            f"Invalid date filter {days!r}. Valid values are: {', '.join(VALID_DAYS_FILTERS)}"
        )
    if not mode or mode not in VALID_MODE_FILTERS:
        raise InvalidFiltersError(
            f"Invalid mode filter {mode!r}. Valid values are: {', '.join(VALID_MODE_FILTERS)}"
        )
    return CampaignFilters(days=days, mode=mode)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def resolve_filter_date(days: str, today: Optional[date] = None) -> Optional[date]:
    """'today' -> today, 't+N' -> today + N days, anything else -> None."""
    today = today or utc_today()
    if days == "today":
        return today
    match = re.fullmatch(r"t\+(\d+)", days or "")
    if match:
        return today + timedelta(days=int(match.group(1)))
    return None


def build_config_query(filters: CampaignFilters, today: Optional[date] = None) -> Tuple[str, List[Any]]:
    """WHERE clause (without the keyword) and its parameters.

    BAU excludes re-engagement and re-activation campaigns; the two other
    modes keep only campaigns whose name mentions them.
    """
    clauses: List[str] = []
    values: List[Any] = []

    if filters.days != "all":
        filter_date = resolve_filter_date(filters.days, today)
        if filter_date is None:
            raise InvalidFiltersError(f"Could not calculate date from filter {filters.days!r}")
        clauses.append("date = %s")
        values.append(filter_date)

    if filters.mode == "BAU":
        clauses.append("campaign NOT ILIKE %s")
        values.append(f"%{REENGAGEMENT_PATTERN}%")
        clauses.append("campaign NOT ILIKE %s")
        values.append(f"%{REACTIVATION_PATTERN}%")
    else:
        pattern = REENGAGEMENT_PATTERN if filters.mode == "re-engagement" else REACTIVATION_PATTERN
        clauses.append("campaign ILIKE %s")
        values.append(f"%{pattern}%")

    return " AND ".join(clauses) or "TRUE", values
