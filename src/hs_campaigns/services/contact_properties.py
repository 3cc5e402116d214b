"""Stamp marketing send-date / brand properties on contacts."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Sequence, Union

from hs_campaigns.services.hubspot_client import HubSpotClient, HubSpotError

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def _to_utc_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text or " " in text:
        return _to_utc_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return date.fromisoformat(text)


def start_of_utc_day_millis(value: DateLike) -> str:
    """Epoch milliseconds of 00:00 UTC on the day of ``value``, as a string.

    Naive datetimes are read as UTC.
    """
    day = _to_utc_date(value)
    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return str(int(midnight.timestamp() * 1000))


def chunked(items: Sequence[Any], size: int) -> List[List[Any]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def update_contact_properties(
    client: HubSpotClient,
    contact_ids: Sequence[int],
    date_value: DateLike,
    brand_value: Any,
) -> int:
    """Batch-update the sent-date and brand properties; best-effort.

    A failed batch is logged and skipped. Returns the number of contacts in
    batches that succeeded.
    """
    settings = client.settings
    epoch_midnight = start_of_utc_day_millis(date_value)
    logger.info("Updating properties for %d contacts", len(contact_ids))

    updated = 0
    for chunk in chunked(list(contact_ids), settings.property_batch_size):
        payload: Dict[str, Any] = {
            "inputs": [
                {
                    "id": str(contact_id),
                    "properties": {
                        settings.sent_date_property: epoch_midnight,
                        settings.brand_property: brand_value,
                    },
                }
                for contact_id in chunk
            ]
        }
        try:
            await client.post("crm/v3/objects/contacts/batch/update", payload)
            updated += len(chunk)
            logger.debug("Updated batch of %d contacts", len(chunk))
        except HubSpotError as e:
            logger.error("Failed batch update of %d contacts: %s", len(chunk), e)
        await asyncio.sleep(settings.property_batch_delay)
    return updated


async def fetch_brand_options(client: HubSpotClient) -> List[Dict[str, Any]]:
    """Return the ``{label, value}`` options of the brand contact property."""
    prop = client.settings.brand_property
    data = await client.get(f"crm/v3/properties/contacts/{prop}")
    return [
        {"label": opt.get("label"), "value": opt.get("value")}
        for opt in data.get("options") or []
    ]
