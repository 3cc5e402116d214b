"""Tests for single-campaign processing."""

import asyncio
import sys
from datetime import date
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (SRC, ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

import pytest

from hs_campaigns.models import CampaignConfig, CampaignFilters
from hs_campaigns.workers import campaign_processor


def _config(**overrides):
    values = dict(
        brand="Acme",
        campaign="Spring",
        primary_list_id="1",
        count=3,
        domain="acme.com",
        target_date=date(2025, 3, 5),
        last_marketing_email_sent_brand="Acme",
    )
    values.update(overrides)
    return CampaignConfig(**values)


@pytest.fixture
def store():
    with patch("hs_campaigns.workers.campaign_processor.list_store") as mock_store:
        mock_store.insert_created_list.side_effect = lambda record, **_: {"id": 1, **record.to_row()}
        yield mock_store


def test_build_list_name():
    assert campaign_processor.build_list_name(_config()) == "Acme - Spring - acme.com - 5 Mar 2025"
    assert campaign_processor.format_list_date(date(2025, 12, 25)) == "25 Dec 2025"


def test_overfetch_count():
    assert campaign_processor.overfetch_count(100, 3, 500) == 500
    assert campaign_processor.overfetch_count(400, 3, 500) == 1200


def test_full_pipeline_for_one_campaign(hubspot, store):
    hubspot.lists["1"] = [11, 12, 13, 14]
    hubspot.lists["90"] = []
    client = hubspot.client()
    dedup = set()

    result = asyncio.run(
        campaign_processor.process_campaign(
            client,
            _config(send_contact_list_id="90"),
            dedup,
            filters=CampaignFilters(days="today", mode="BAU"),
        )
    )

    assert result.success
    assert result.selected_ids == [11, 12, 13]
    assert result.contact_count == 3
    assert result.fulfillment_percentage == 100
    assert result.list_name == "Acme - Spring - acme.com - 5 Mar 2025"
    assert result.legacy_list_id == 105000
    assert dedup == {11, 12, 13}
    assert hubspot.added["90"] == ["11", "12", "13"]
    assert hubspot.added[str(result.list_id)] == ["11", "12", "13"]
    assert len(hubspot.property_updates) == 1

    record = store.insert_created_list.call_args[0][0]
    assert record.requested_count == 3
    assert record.contact_count == 3
    assert record.available_count == 4
    assert record.filtered_count == 0
    assert record.filter_criteria == {"days": "today", "mode": "BAU"}
    assert record.campaign_details == {"brand": "Acme", "campaign": "Spring", "date": "2025-03-05"}
    assert store.insert_created_list.call_args.kwargs["settings"] is client.settings


def test_contacts_not_reused_across_campaigns(hubspot, store):
    hubspot.lists["1"] = [1, 2, 3, 4, 5]
    client = hubspot.client()
    dedup = set()

    first = asyncio.run(campaign_processor.process_campaign(client, _config(campaign="A"), dedup))
    second = asyncio.run(campaign_processor.process_campaign(client, _config(campaign="B"), dedup))

    assert first.selected_ids == [1, 2, 3]
    assert second.selected_ids == [4, 5]
    assert not set(first.selected_ids) & set(second.selected_ids)
    assert second.filtered_count == 3
    assert second.fulfillment_percentage == 67


def test_secondary_list_fills_shortfall_without_duplicates(hubspot, store):
    hubspot.lists["1"] = [1, 2]
    hubspot.lists["2"] = [2, 3, 4]
    client = hubspot.client()

    result = asyncio.run(
        campaign_processor.process_campaign(client, _config(secondary_list_id="2"), set())
    )

    assert result.selected_ids == [1, 2, 3]


def test_secondary_not_read_when_primary_suffices(hubspot, store):
    hubspot.lists["1"] = [1, 2, 3]
    hubspot.lists["2"] = [4]
    client = hubspot.client()

    asyncio.run(campaign_processor.process_campaign(client, _config(secondary_list_id="2"), set()))

    assert ("GET", "/crm/v3/lists/2/memberships") not in hubspot.requests


def test_empty_selection_still_creates_list(hubspot, store):
    hubspot.lists["1"] = [1, 2]
    client = hubspot.client()

    result = asyncio.run(campaign_processor.process_campaign(client, _config(), {1, 2}))

    assert result.success
    assert result.contact_count == 0
    assert result.fulfillment_percentage == 0
    assert len(hubspot.created) == 1
    assert not [r for r in hubspot.requests if r[0] == "PUT"]
    assert hubspot.property_updates == []


def test_legacy_source_list_is_recorded_not_raised(hubspot, store):
    client = hubspot.client()

    result = asyncio.run(campaign_processor.process_campaign(client, _config(primary_list_id="404"), set()))

    assert result.success
    assert result.contact_count == 0
    assert result.warnings and result.warnings[0].startswith("legacy_list:404")
    assert len(hubspot.created) == 1


def test_list_creation_failure_propagates(hubspot, store):
    hubspot.lists["1"] = [1]
    hubspot.failures[("POST", "/crm/v3/lists")] = [500]
    client = hubspot.client()

    with pytest.raises(Exception):
        asyncio.run(campaign_processor.process_campaign(client, _config(), set()))
    store.insert_created_list.assert_not_called()


def test_persist_failure_keeps_result(hubspot, store):
    hubspot.lists["1"] = [1, 2, 3]
    store.insert_created_list.side_effect = RuntimeError("db down")
    client = hubspot.client()

    result = asyncio.run(campaign_processor.process_campaign(client, _config(), set()))

    assert result.success
    assert result.contact_count == 3
    assert result.record is None
    assert any(w.startswith("persist_failed") for w in result.warnings)


def test_fulfillment_uses_actual_added_count(hubspot, store):
    hubspot.lists["1"] = [1, 2, 3]
    client = hubspot.client()

    async def partial_add(client, list_id, contact_ids, skip_verification=False):
        return len(contact_ids) - 1

    with patch("hs_campaigns.workers.campaign_processor.membership.add_members", side_effect=partial_add):
        result = asyncio.run(campaign_processor.process_campaign(client, _config(), set()))

    assert result.selected_ids == [1, 2, 3]
    assert result.contact_count == 2
    assert result.fulfillment_percentage == 67
