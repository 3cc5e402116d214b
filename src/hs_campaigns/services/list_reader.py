"""Read the member contact ids of a HubSpot list.

Pages through ``crm/v3/lists/{id}/memberships`` with the ``after`` cursor.
A 404 on the very first request means the list only exists in the legacy format,
which the v3 endpoint cannot read at all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from hs_campaigns.services.hubspot_client import HubSpotClient, HubSpotError, LegacyListError

logger = logging.getLogger(__name__)

LEGACY_PAGE_SIZE = 100


class ListRetrievalError(Exception):
    def __init__(self, list_id: str, cause: BaseException) -> None:
        super().__init__(f"Unable to fetch contacts from list {list_id}: {cause}")
        self.list_id = str(list_id)
        self.cause = cause


def dedupe_ids(ids: Iterable[int], max_count: Optional[int] = None) -> List[int]:
    """Drop repeated ids, keeping first-seen order, then cap the result."""
    seen = set()
    unique: List[int] = []
    for contact_id in ids:
        if contact_id in seen:
            continue
        seen.add(contact_id)
        unique.append(contact_id)
    if max_count is not None:
        return unique[:max_count]
    return unique


def _record_ids(results: List[Dict[str, Any]]) -> List[int]:
    ids: List[int] = []
    for record in results or []:
        raw = record.get("recordId")
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            logger.debug("Skipping membership row without numeric recordId: %r", record)
    return ids


async def fetch_list_members(
    client: HubSpotClient,
    list_id: str,
    max_count: Optional[int] = None,
) -> List[int]:
    """Return unique contact ids of ``list_id`` in first-seen order.

    Args:
        client: HubSpot client
        list_id: ILS list id
        max_count: Cap on returned ids (None = no cap)

    Raises:
        LegacyListError: the first request (before any retry) returned 404
        ListRetrievalError: retries exhausted before any contact was read
    """
    settings = client.settings
    policy = settings.retry_policy("read")
    path = f"crm/v3/lists/{list_id}/memberships"

    contacts: List[int] = []
    after: Optional[str] = None
    first_page = True
    requests_made = 0

    async def _get_page(params: Dict[str, Any]) -> Dict[str, Any]:
        nonlocal requests_made
        requests_made += 1
        return await client.get(path, params)

    def _is_legacy(exc: Exception) -> bool:
        # Only a 404 on the very first request marks a legacy list; a 404
        # after a failed attempt is treated like any other transient error.
        return first_page and requests_made == 1 and isinstance(exc, HubSpotError) and exc.is_not_found

    while max_count is None or len(contacts) < max_count:
        limit = settings.page_size
        if max_count is not None:
            limit = min(limit, max_count - len(contacts))
        params: Dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after

        try:
            data = await policy.call(
                _get_page,
                params,
                label=f"memberships({list_id})",
                should_retry=lambda exc: not _is_legacy(exc),
            )
        except HubSpotError as e:
            if _is_legacy(e):
                logger.error("List %s is a legacy list; v3 memberships returned 404", list_id)
                raise LegacyListError(list_id) from e
            if contacts:
                logger.warning(
                    "Returning %d partial contacts for list %s after retries exhausted: %s",
                    len(contacts),
                    list_id,
                    e,
                )
                break
            raise ListRetrievalError(list_id, e) from e

        first_page = False
        contacts.extend(_record_ids(data.get("results") or []))
        next_after = ((data.get("paging") or {}).get("next") or {}).get("after")
        if not next_after:
            break
        if next_after == after:
            logger.warning("Memberships cursor for list %s did not advance past %s; stopping", list_id, after)
            break
        after = next_after
        if max_count is not None and len(contacts) >= max_count:
            break
        await asyncio.sleep(settings.page_delay)

    if not contacts and settings.legacy_fallback:
        try:
            contacts = await fetch_legacy_list_members(client, list_id, max_count)
        except Exception as e:
            logger.info("Legacy fallback for empty list %s failed: %s", list_id, e)

    unique = dedupe_ids(contacts, max_count)
    logger.info("Fetched %d contacts from list %s", len(unique), list_id)
    return unique


async def fetch_legacy_list_members(
    client: HubSpotClient,
    list_id: str,
    max_count: Optional[int] = None,
) -> List[int]:
    """Best-effort read through the v1 static-list endpoint (vid offset paging)."""
    path = f"contacts/v1/lists/{list_id}/contacts/all"
    vids: List[int] = []
    offset: Optional[int] = None
    while max_count is None or len(vids) < max_count:
        params: Dict[str, Any] = {"count": LEGACY_PAGE_SIZE}
        if offset is not None:
            params["vidOffset"] = offset
        data = await client.get(path, params)
        for contact in data.get("contacts") or []:
            vid = contact.get("vid")
            if vid is not None:
                vids.append(int(vid))
        if not data.get("has-more"):
            break
        next_offset = data.get("vid-offset")
        if next_offset is None or next_offset == offset:
            logger.warning(
                "Legacy cursor for list %s did not advance (vid-offset=%r); stopping",
                list_id,
                next_offset,
            )
            break
        offset = next_offset
        await asyncio.sleep(client.settings.page_delay)
    if vids:
        logger.info("Legacy endpoint returned %d contacts for list %s", len(vids), list_id)
    return vids
