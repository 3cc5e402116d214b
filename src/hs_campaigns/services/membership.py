"""Add contacts to a MANUAL list in progressively smaller batches."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence, TypeVar

from hs_campaigns.services import list_manager
from hs_campaigns.services.hubspot_client import HubSpotClient, HubSpotError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZES = (300, 100, 50)


def progressive_chunks(items: Sequence[T], sizes: Sequence[int] = DEFAULT_CHUNK_SIZES) -> List[List[T]]:
    """Split ``items`` large-to-small.

    Every size but the last is used once; the last size repeats until the
    input is exhausted. 650 items with the default sizes give
    [300, 100, 50, 50, 50, 50, 50].
    """
    sizes = [size for size in sizes if size > 0] or [1]
    chunks: List[List[T]] = []
    index = 0
    for position, size in enumerate(sizes):
        last = position == len(sizes) - 1
        while index < len(items):
            chunks.append(list(items[index:index + size]))
            index += size
            if not last:
                break
    return chunks


async def add_members(
    client: HubSpotClient,
    list_id: str,
    contact_ids: Sequence[int],
    skip_verification: bool = False,
) -> int:
    """Add ``contact_ids`` to ``list_id``; return how many were actually added.

    A batch that still fails after the retry ceiling is dropped; it never
    aborts the remaining batches.
    """
    if not contact_ids:
        return 0

    if not skip_verification and not await list_manager.verify_manual(client, list_id):
        return 0

    settings = client.settings
    policy = settings.retry_policy("write")
    path = f"crm/v3/lists/{list_id}/memberships/add"

    added = 0
    failed_batches = 0
    for chunk in progressive_chunks(list(contact_ids), settings.chunk_sizes):
        # The v3 endpoint takes a bare JSON array of string ids.
        payload = [str(contact_id) for contact_id in chunk]
        try:
            await policy.call(client.put, path, payload, label=f"memberships/add({list_id})")
        except HubSpotError as e:
            failed_batches += 1
            logger.error("Dropped batch of %d contacts for list %s: %s", len(chunk), list_id, e)
            continue
        added += len(chunk)
        logger.debug("Added batch of %d contacts to list %s", len(chunk), list_id)
        await asyncio.sleep(settings.batch_delay)

    logger.info(
        "Added %d/%d contacts to list %s (%d failed batches)",
        added,
        len(contact_ids),
        list_id,
        failed_batches,
    )
    return added
