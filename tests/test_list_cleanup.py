"""Tests for created-list cleanup."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (SRC, ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from hs_campaigns.workers import list_cleanup


def test_delete_created_lists_continues_past_errors(hubspot):
    rows = {
        "a": {"id": "a", "name": "first", "list_id": 5001},
        "c": {"id": "c", "name": "third", "list_id": 5003},
    }
    client = hubspot.client()

    with patch("hs_campaigns.workers.list_cleanup.list_store") as store:
        store.get_created_list.side_effect = lambda record_id, **_: rows.get(record_id)
        result = asyncio.run(list_cleanup.delete_created_lists(client, ["a", "b", "c"]))

    assert result["deleted_count"] == 2
    assert result["errors"] == [{"id": "b", "error": "List not found or missing list id"}]
    assert hubspot.deleted == ["5001", "5003"]
    assert [c.args[0] for c in store.delete_created_list.call_args_list] == ["a", "c"]


def test_delete_created_lists_removes_row_when_remote_delete_fails(hubspot):
    hubspot.failures[("DELETE", "/crm/v3/lists/5001")] = [404, 404]
    client = hubspot.client()

    with patch("hs_campaigns.workers.list_cleanup.list_store") as store:
        store.get_created_list.return_value = {"id": "a", "name": "gone", "list_id": 5001}
        result = asyncio.run(list_cleanup.delete_created_lists(client, ["a"]))

    assert result["deleted_count"] == 1
    store.delete_created_list.assert_called_once_with("a", settings=client.settings)


def test_delete_created_lists_without_ids(hubspot):
    result = asyncio.run(list_cleanup.delete_created_lists(hubspot.client(), []))

    assert result["success"] is False
    assert result["deleted_count"] == 0
    assert hubspot.requests == []
