"""Delete created lists from HubSpot and from the created_lists table."""

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from hs_campaigns.services import list_manager, list_store
from hs_campaigns.services.hubspot_client import HubSpotClient

logger = logging.getLogger(__name__)


async def delete_created_lists(client: HubSpotClient, record_ids: Sequence[Any]) -> Dict[str, Any]:
    """Delete each stored list remotely, then drop its row.

    A failed HubSpot delete is logged and the row is still removed; a
    missing row or store failure is collected per record.
    """
    if not record_ids:
        return {"success": False, "deleted_count": 0, "errors": [{"id": None, "error": "No list ids provided"}]}

    deleted = 0
    errors: List[Dict[str, Any]] = []
    delay = client.settings.maintenance_delay

    logger.info("Deleting %d created list(s)", len(record_ids))

    for position, record_id in enumerate(record_ids, start=1):
        try:
            record = list_store.get_created_list(record_id, settings=client.settings)
            if not record or not record.get("list_id"):
                errors.append({"id": record_id, "error": "List not found or missing list id"})
            else:
                await list_manager.delete_list(client, record["list_id"])
                list_store.delete_created_list(record_id, settings=client.settings)
                deleted += 1
                logger.info("Deleted created list %s (%s)", record_id, record.get("name"))
        except Exception as e:
            logger.error("Error deleting created list %s: %s", record_id, e)
            errors.append({"id": record_id, "error": str(e)})

        if position < len(record_ids) and delay > 0:
            await asyncio.sleep(delay)

    logger.info("List deletion complete: %d/%d deleted", deleted, len(record_ids))
    return {"success": True, "deleted_count": deleted, "errors": errors}
