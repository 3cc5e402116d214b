"""Create, inspect and delete HubSpot ILS lists.

Every list payload goes through ``RemoteList.from_api`` so callers never
deal with the optional ``list`` wrapper the v3 API sometimes adds.
"""

from __future__ import annotations

import logging
from typing import Optional

from hs_campaigns.models import MANUAL_PROCESSING_TYPE, RemoteList
from hs_campaigns.services.hubspot_client import HubSpotClient, HubSpotError
from hs_campaigns.services.retry import with_exponential_backoff

logger = logging.getLogger(__name__)

CONTACT_OBJECT_TYPE_ID = "0-1"


class ListCreationError(Exception):
    pass


async def create_list(client: HubSpotClient, name: str) -> RemoteList:
    """Create a MANUAL (static) contact list and resolve its legacy id.

    The legacy id lookup is best-effort; a missing legacy id is logged and
    left as None.
    """
    logger.info("Creating list: %s", name)
    data = await client.post(
        "crm/v3/lists",
        {
            "name": name,
            "objectTypeId": CONTACT_OBJECT_TYPE_ID,
            "processingType": MANUAL_PROCESSING_TYPE,
        },
    )
    created = RemoteList.from_api(data)
    if created is None:
        raise ListCreationError(f"List {name!r} created but listId not returned from HubSpot API")
    if not created.name:
        created = created.model_copy(update={"name": name})
    if not created.processing_type:
        created = created.model_copy(update={"processing_type": MANUAL_PROCESSING_TYPE})

    legacy_id = await resolve_legacy_id(client, created.list_id)
    if legacy_id is not None:
        created = created.model_copy(update={"legacy_list_id": legacy_id})
    return created


async def resolve_legacy_id(client: HubSpotClient, list_id: int) -> Optional[int]:
    """Look up the classic (legacy) segment id of an ILS list, or None."""
    prop = client.settings.legacy_id_property
    try:
        data = await client.post(
            "crm/v3/lists/search",
            {"listIds": [str(list_id)], "additionalProperties": [prop]},
        )
    except HubSpotError as e:
        logger.warning("Failed to fetch legacy segment id for ILS list %s: %s", list_id, e)
        return None

    lists = data.get("lists") or []
    if not lists:
        logger.warning("No lists found in search response for ILS list %s", list_id)
        return None
    raw = (lists[0].get("additionalProperties") or {}).get(prop)
    if raw in (None, ""):
        logger.warning("No %s in search response for ILS list %s", prop, list_id)
        return None
    try:
        legacy_id = int(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable legacy id %r for ILS list %s", raw, list_id)
        return None
    logger.info("Found legacy segment id %s for ILS list %s", legacy_id, list_id)
    return legacy_id


async def get_list(client: HubSpotClient, list_id: str) -> RemoteList:
    data = await client.get(f"crm/v3/lists/{list_id}")
    remote = RemoteList.from_api(data)
    if remote is None:
        raise HubSpotError(f"List {list_id} response did not include a listId")
    return remote


async def verify_manual(client: HubSpotClient, list_id: str) -> bool:
    """True only when the list is confirmed MANUAL; any error counts as False."""
    try:
        remote = await get_list(client, list_id)
    except Exception as e:
        logger.warning("Could not verify processing type of list %s: %s", list_id, e)
        return False
    if not remote.is_manual:
        logger.warning(
            "List %s is %s, not %s; membership writes skipped",
            list_id,
            remote.processing_type,
            MANUAL_PROCESSING_TYPE,
        )
        return False
    return True


@with_exponential_backoff(max_attempts=2, base_delay=1.0, max_delay=5.0)
async def _delete_remote_list(client: HubSpotClient, list_id: int) -> None:
    await client.delete(f"crm/v3/lists/{list_id}")


async def delete_list(client: HubSpotClient, list_id: int) -> bool:
    try:
        await _delete_remote_list(client, list_id)
    except HubSpotError as e:
        logger.warning("Failed to delete list %s from HubSpot: %s", list_id, e)
        return False
    logger.info("Deleted list %s from HubSpot", list_id)
    return True
