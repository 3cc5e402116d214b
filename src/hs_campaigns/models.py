"""Typed records flowing through the list pipeline."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MANUAL_PROCESSING_TYPE = "MANUAL"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fulfillment(added: int, requested: int) -> int:
    """Percentage of requested contacts that actually landed in a list."""
    if requested <= 0:
        return 0
    return round_half_up(added / requested * 100)


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CampaignFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: str
    mode: str


class CampaignConfig(BaseModel):
    """One scheduled email/list to create, as stored in the segmentations table."""

    model_config = ConfigDict(frozen=True)

    brand: str
    campaign: str
    primary_list_id: str
    secondary_list_id: Optional[str] = None
    count: int = Field(ge=0)
    domain: str
    target_date: date
    send_contact_list_id: Optional[str] = None
    last_marketing_email_sent_brand: Optional[str] = None
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CampaignConfig":
        """Build from a segmentations row; blank optional ids become None."""

        def _opt(key: str) -> Optional[str]:
            val = row.get(key)
            if val is None or str(val).strip() == "":
                return None
            return str(val).strip()

        return cls(
            brand=row["brand"],
            campaign=row["campaign"],
            primary_list_id=str(row["primary_list_id"]),
            secondary_list_id=_opt("secondary_list_id"),
            count=int(row.get("count") or 0),
            domain=row.get("domain") or "",
            target_date=row["date"],
            send_contact_list_id=_opt("send_contact_list_id"),
            last_marketing_email_sent_brand=_opt("last_marketing_email_sent_brand"),
            sort_order=int(row.get("sort_order") or 0),
        )


class RemoteList(BaseModel):
    """Canonical shape of a HubSpot ILS list."""

    list_id: int
    legacy_list_id: Optional[int] = None
    name: Optional[str] = None
    processing_type: Optional[str] = None

    @property
    def is_manual(self) -> bool:
        return self.processing_type == MANUAL_PROCESSING_TYPE

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> Optional["RemoteList"]:
        """Normalize a list payload, unwrapping the optional ``list`` key.

        Returns None when the payload carries no primary id.
        """
        data = payload.get("list", payload) if isinstance(payload, dict) else {}
        if not isinstance(data, dict):
            return None
        list_id = _to_int(data.get("listId"))
        if list_id is None:
            return None
        return cls(
            list_id=list_id,
            legacy_list_id=_to_int(data.get("legacyListId")),
            name=data.get("name") or data.get("listName"),
            processing_type=data.get("processingType") or data.get("processing_type"),
        )


class CreatedListRecord(BaseModel):
    name: str
    list_id: int
    legacy_list_id: Optional[int] = None
    requested_count: int = 0
    contact_count: int = 0
    available_count: int = 0
    filtered_count: int = 0
    fulfillment_percentage: int = 0
    created_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    deleted: Optional[bool] = None
    filter_criteria: Dict[str, Any] = Field(default_factory=dict)
    campaign_details: Dict[str, Any] = Field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="python")


class CampaignResult(BaseModel):
    success: bool
    campaign: str
    list_name: Optional[str] = None
    list_id: Optional[int] = None
    legacy_list_id: Optional[int] = None
    requested_count: int = 0
    contact_count: int = 0
    available_count: int = 0
    filtered_count: int = 0
    fulfillment_percentage: int = 0
    selected_ids: List[int] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    record: Optional[Dict[str, Any]] = None

    @classmethod
    def failed(cls, config: CampaignConfig, error: BaseException) -> "CampaignResult":
        return cls(
            success=False,
            campaign=config.campaign,
            requested_count=config.count,
            error=str(error) or error.__class__.__name__,
        )


class RunReport(BaseModel):
    run_id: str
    succeeded: int = 0
    failed: int = 0
    total_requested: int = 0
    total_fulfilled: int = 0
    average_fulfillment: int = 0
    results: List[CampaignResult] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def summarize(
        cls,
        run_id: str,
        configs: List[CampaignConfig],
        results: List[CampaignResult],
        *,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ) -> "RunReport":
        successes = [r for r in results if r.success]
        average = 0
        if successes:
            average = round_half_up(sum(r.fulfillment_percentage for r in successes) / len(successes))
        return cls(
            run_id=run_id,
            succeeded=len(successes),
            failed=len(results) - len(successes),
            total_requested=sum(c.count for c in configs),
            total_fulfilled=sum(r.contact_count for r in successes),
            average_fulfillment=average,
            results=results,
            started_at=started_at,
            finished_at=finished_at,
        )
