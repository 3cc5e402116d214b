"""Process one campaign configuration: source, dedupe, create, populate, record.

The dedup set is owned by the caller (one per run) and mutated here so that
later campaigns of the same run never reuse a contact.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Optional, Set, Tuple

from hs_campaigns.models import (
    CampaignConfig,
    CampaignFilters,
    CampaignResult,
    CreatedListRecord,
    fulfillment,
)
from hs_campaigns.services import contact_properties, list_manager, list_reader, list_store, membership
from hs_campaigns.services.hubspot_client import HubSpotClient, LegacyListError

logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_list_date(value: date) -> str:
    """``5 Mar 2025`` style, no zero padding."""
    return f"{value.day} {MONTH_NAMES[value.month - 1]} {value.year}"


def build_list_name(config: CampaignConfig) -> str:
    return f"{config.brand} - {config.campaign} - {config.domain} - {format_list_date(config.target_date)}"


def overfetch_count(needed: int, multiplier: int, minimum: int) -> int:
    return max(needed * multiplier, minimum)


async def _source_contacts(
    client: HubSpotClient,
    list_id: str,
    fetch_count: int,
    used: Set[int],
    errors: List[str],
) -> Tuple[List[int], int]:
    """Fetch candidates from one list and drop ids already used in the run.

    Returns (survivors, available_before_filter). Errors are recorded in
    ``errors`` and yield an empty result.
    """
    try:
        candidates = await list_reader.fetch_list_members(client, list_id, fetch_count)
    except LegacyListError as e:
        logger.error("Source list %s needs migration to ILS: %s", list_id, e)
        errors.append(f"legacy_list:{list_id}: {e}")
        return [], 0
    except Exception as e:
        logger.error("Error fetching contacts from list %s: %s", list_id, e)
        errors.append(f"retrieval_failed:{list_id}: {e}")
        return [], 0
    survivors = [vid for vid in candidates if vid not in used]
    return survivors, len(candidates)


async def process_campaign(
    client: HubSpotClient,
    config: CampaignConfig,
    dedup_set: Set[int],
    *,
    filters: Optional[CampaignFilters] = None,
) -> CampaignResult:
    """Run the full pipeline for one campaign and return its outcome.

    List creation failures propagate; everything after creation degrades
    to partial results.
    """
    settings = client.settings
    count = config.count
    errors: List[str] = []

    logger.info(
        "Starting campaign: %s | Brand: %s | Domain: %s",
        config.campaign,
        config.brand,
        config.domain,
    )

    primary_fetch = overfetch_count(count, settings.overfetch_multiplier, settings.overfetch_minimum)
    primary, primary_before = await _source_contacts(
        client, config.primary_list_id, primary_fetch, dedup_set, errors
    )
    primary_after = len(primary)

    secondary: List[int] = []
    secondary_before = 0
    if primary_after < count and config.secondary_list_id:
        shortfall = count - primary_after
        secondary_fetch = overfetch_count(shortfall, settings.overfetch_multiplier, settings.overfetch_minimum)
        secondary, secondary_before = await _source_contacts(
            client, config.secondary_list_id, secondary_fetch, dedup_set, errors
        )
    secondary_after = len(secondary)

    # Primary contacts always win; a contact present in both lists is kept once.
    selected: List[int] = []
    seen: Set[int] = set()
    for vid in primary + secondary:
        if len(selected) >= count:
            break
        if vid in seen:
            continue
        seen.add(vid)
        selected.append(vid)
    dedup_set.update(selected)

    available = primary_before + secondary_before
    filtered = (primary_before - primary_after) + (secondary_before - secondary_after)

    logger.info(
        "Primary list %s: %d available | %d filtered | %d remaining",
        config.primary_list_id,
        primary_before,
        primary_before - primary_after,
        primary_after,
    )
    if config.secondary_list_id:
        logger.info(
            "Secondary list %s: %d available | %d filtered | %d remaining",
            config.secondary_list_id,
            secondary_before,
            secondary_before - secondary_after,
            secondary_after,
        )
    logger.info(
        "Final selection: %d of %d requested (%d%%)",
        len(selected),
        count,
        fulfillment(len(selected), count),
    )

    list_name = build_list_name(config)
    # Created even when empty so every config maps to exactly one list.
    new_list = await list_manager.create_list(client, list_name)

    added = 0
    if selected:
        try:
            if config.send_contact_list_id:
                await membership.add_members(
                    client, config.send_contact_list_id, selected, skip_verification=True
                )
            added = await membership.add_members(
                client, str(new_list.list_id), selected, skip_verification=True
            )
            await contact_properties.update_contact_properties(
                client, selected, config.target_date, config.last_marketing_email_sent_brand
            )
        except Exception as e:
            logger.error("Error adding contacts for %s: %s", config.campaign, e)
            errors.append(f"population_failed: {e}")

    percentage = fulfillment(added, count)
    logger.info(
        "List created: %s | ILS ID: %s | Legacy ID: %s | %d added",
        list_name,
        new_list.list_id,
        new_list.legacy_list_id or "N/A",
        added,
    )

    record = CreatedListRecord(
        name=list_name,
        list_id=new_list.list_id,
        legacy_list_id=new_list.legacy_list_id,
        requested_count=count,
        contact_count=added,
        available_count=available,
        filtered_count=filtered,
        fulfillment_percentage=percentage,
        filter_criteria=filters.model_dump() if filters else {},
        campaign_details={
            "brand": config.brand,
            "campaign": config.campaign,
            "date": config.target_date.isoformat(),
        },
    )
    stored = None
    try:
        stored = await asyncio.to_thread(list_store.insert_created_list, record, settings=settings)
    except Exception as e:
        logger.error("Failed to persist created list %s: %s", new_list.list_id, e)
        errors.append(f"persist_failed: {e}")

    return CampaignResult(
        success=True,
        campaign=config.campaign,
        list_name=list_name,
        list_id=new_list.list_id,
        legacy_list_id=new_list.legacy_list_id,
        requested_count=count,
        contact_count=added,
        available_count=available,
        filtered_count=filtered,
        fulfillment_percentage=percentage,
        selected_ids=selected,
        warnings=errors,
        record=stored,
    )
