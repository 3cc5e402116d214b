"""Shared fixtures: zero-delay settings and an in-memory HubSpot API."""

import json
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (SRC, ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

import httpx
import pytest

from hs_campaigns.config.settings import Settings
from hs_campaigns.services.hubspot_client import HubSpotClient


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        hubspot_access_token="test-token",
        page_delay=0,
        batch_delay=0,
        property_batch_delay=0,
        maintenance_delay=0,
        retry_base_delay=0,
        inter_list_delay_minutes=0,
        postgres_url=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(handler, **overrides: Any) -> HubSpotClient:
    return HubSpotClient(make_settings(**overrides), transport=httpx.MockTransport(handler))


class FakeHubSpot:
    """Just enough of the v3 lists API to drive the pipeline end to end.

    ``failures[(method, path)]`` is a queue of status codes returned before
    the route starts answering normally.
    """

    def __init__(self) -> None:
        self.lists: Dict[str, List[int]] = {}
        self.legacy_lists: Dict[str, List[int]] = {}
        self.processing_types: Dict[str, str] = {}
        self.created: List[Dict[str, Any]] = []
        self.added: Dict[str, List[str]] = defaultdict(list)
        self.property_updates: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.failures: Dict[Tuple[str, str], List[int]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.next_list_id = 5000
        self.legacy_offset = 100000
        self.create_response_wrapped = True

    def _memberships(self, list_id: str, request: httpx.Request) -> httpx.Response:
        if list_id not in self.lists:
            return httpx.Response(404, json={"message": "list not found"})
        members = self.lists[list_id]
        limit = int(request.url.params.get("limit", 100))
        start = int(request.url.params.get("after", 0))
        page = members[start:start + limit]
        body: Dict[str, Any] = {"results": [{"recordId": str(vid)} for vid in page]}
        if start + limit < len(members):
            body["paging"] = {"next": {"after": str(start + limit)}}
        return httpx.Response(200, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.requests.append((method, path))

        queue = self.failures.get((method, path))
        if queue:
            return httpx.Response(queue.pop(0), json={"message": "injected failure"})

        parts = path.strip("/").split("/")
        body: Optional[Any] = json.loads(request.content) if request.content else None

        if path == "/crm/v3/lists" and method == "POST":
            list_id = str(self.next_list_id)
            self.next_list_id += 1
            self.lists[list_id] = []
            self.created.append({"listId": list_id, **body})
            payload = {"listId": list_id, "name": body["name"], "processingType": body["processingType"]}
            return httpx.Response(200, json={"list": payload} if self.create_response_wrapped else payload)

        if path == "/crm/v3/lists/search" and method == "POST":
            list_id = body["listIds"][0]
            legacy = str(int(list_id) + self.legacy_offset)
            return httpx.Response(
                200,
                json={"lists": [{"listId": list_id, "additionalProperties": {"hs_classic_list_id": legacy}}]},
            )

        if path == "/crm/v3/objects/contacts/batch/update" and method == "POST":
            self.property_updates.append(body)
            return httpx.Response(200, json={"status": "COMPLETE"})

        if parts[:3] == ["crm", "v3", "lists"] and len(parts) >= 4:
            list_id = parts[3]
            if len(parts) == 4 and method == "GET":
                return httpx.Response(
                    200,
                    json={"list": {"listId": list_id, "processingType": self.processing_types.get(list_id, "MANUAL")}},
                )
            if len(parts) == 4 and method == "DELETE":
                self.deleted.append(list_id)
                return httpx.Response(204)
            if parts[4:] == ["memberships"] and method == "GET":
                return self._memberships(list_id, request)
            if parts[4:] == ["memberships", "add"] and method == "PUT":
                self.added[list_id].extend(body)
                return httpx.Response(200, json={"recordIdsAdded": body})

        if parts[:3] == ["contacts", "v1", "lists"] and method == "GET":
            vids = self.legacy_lists.get(parts[3], [])
            return httpx.Response(200, json={"contacts": [{"vid": v} for v in vids], "has-more": False})

        return httpx.Response(404, json={"message": f"no route for {method} {path}"})

    def client(self, **overrides: Any) -> HubSpotClient:
        return make_client(self.handler, **overrides)


@pytest.fixture
def hubspot() -> FakeHubSpot:
    return FakeHubSpot()
