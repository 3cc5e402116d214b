"""Repair the stored legacy (classic segment) ids of created lists.

HubSpot assigns the classic id asynchronously, so lists created during a run
may be stored without one. These helpers fill it in afterwards.

Usage:
    python -m hs_campaigns.workers.legacy_ids
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from hs_campaigns.config.settings import Settings
from hs_campaigns.services import list_manager, list_store
from hs_campaigns.services.hubspot_client import HubSpotClient
from hs_campaigns.workers.utils import load_env_files

logger = logging.getLogger(__name__)


def _same_id(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    return str(a).strip() == str(b).strip()


async def reconcile_legacy_id(client: HubSpotClient, list_id: int) -> Optional[int]:
    """Resolve the legacy id from HubSpot and store it when it differs.

    Returns the resolved id, or None when HubSpot has none yet.
    """
    legacy_id = await list_manager.resolve_legacy_id(client, list_id)
    if legacy_id is None:
        return None

    record = list_store.find_created_list(list_id, settings=client.settings)
    if record is not None and not _same_id(record.get("legacy_list_id"), legacy_id):
        list_store.update_legacy_list_id(list_id, legacy_id, settings=client.settings)
        logger.info(
            "Updated legacy id for list %s: %s -> %s",
            list_id,
            record.get("legacy_list_id"),
            legacy_id,
        )
    return legacy_id


def set_legacy_id(list_id: int, legacy_id: int, *, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Manually correct the stored legacy id of one created list."""
    if not list_id or not legacy_id:
        return {"success": False, "message": "Both list_id and legacy_id are required"}

    record = list_store.find_created_list(list_id, settings=settings)
    if record is None:
        return {"success": False, "message": f"No stored record for ILS list {list_id}"}

    old_legacy_id = record.get("legacy_list_id")
    list_store.update_legacy_list_id(list_id, int(legacy_id), settings=settings)
    logger.info("Updated legacy id for list %s: %s -> %s", list_id, old_legacy_id, legacy_id)
    return {
        "success": True,
        "list_id": int(list_id),
        "old_legacy_id": old_legacy_id,
        "new_legacy_id": int(legacy_id),
        "list_name": record.get("name"),
    }


async def fix_all_legacy_ids(client: HubSpotClient) -> Dict[str, Any]:
    """Sweep every stored list and align its legacy id with HubSpot.

    Lists are processed one at a time with the maintenance delay between
    lookups. A stored legacy id equal to the ILS id is always wrong.
    """
    records = list_store.fetch_created_lists(include_deleted=True, settings=client.settings)
    stats = {"total": 0, "fixed": 0, "already_correct": 0, "errors": 0}
    fixed_lists: List[Dict[str, Any]] = []
    error_lists: List[Dict[str, Any]] = []
    delay = client.settings.maintenance_delay

    logger.info("Legacy id sweep started: %d stored lists", len(records))

    for position, record in enumerate(records, start=1):
        stats["total"] += 1
        list_id = record.get("list_id")
        current = record.get("legacy_list_id")

        if _same_id(current, list_id):
            logger.warning(
                "[%d/%d] %s stores its ILS id %s as legacy id",
                position,
                len(records),
                record.get("name"),
                list_id,
            )

        correct = await list_manager.resolve_legacy_id(client, list_id)
        if correct is None:
            stats["errors"] += 1
            error_lists.append(
                {"name": record.get("name"), "list_id": list_id, "reason": "HubSpot lookup failed"}
            )
        elif _same_id(current, correct):
            stats["already_correct"] += 1
        else:
            try:
                list_store.update_legacy_list_id(list_id, correct, settings=client.settings)
            except Exception as e:
                logger.error("Failed to store legacy id for list %s: %s", list_id, e)
                stats["errors"] += 1
                error_lists.append({"name": record.get("name"), "list_id": list_id, "reason": str(e)})
            else:
                stats["fixed"] += 1
                fixed_lists.append(
                    {
                        "name": record.get("name"),
                        "list_id": list_id,
                        "old_legacy_id": current,
                        "new_legacy_id": correct,
                    }
                )
                logger.info("[%d/%d] %s: %s -> %s", position, len(records), record.get("name"), current, correct)

        if position < len(records) and delay > 0:
            await asyncio.sleep(delay)

    logger.info(
        "Legacy id sweep complete: %d total, %d fixed, %d already correct, %d errors",
        stats["total"],
        stats["fixed"],
        stats["already_correct"],
        stats["errors"],
    )
    return {"success": True, "stats": stats, "fixed_lists": fixed_lists, "error_lists": error_lists}


async def _run_sweep() -> Dict[str, Any]:
    async with HubSpotClient() as client:
        return await fix_all_legacy_ids(client)


def main() -> None:
    load_env_files()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_run_sweep())


if __name__ == "__main__":
    main()
