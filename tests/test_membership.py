"""Tests for progressive membership writes."""

import asyncio
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (SRC, ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

import httpx

from conftest import make_client
from hs_campaigns.services import membership


def test_progressive_chunks_650():
    chunks = membership.progressive_chunks(list(range(650)))
    assert [len(c) for c in chunks] == [300, 100, 50, 50, 50, 50, 50]
    assert [x for c in chunks for x in c] == list(range(650))


def test_progressive_chunks_small_input():
    assert [len(c) for c in membership.progressive_chunks(list(range(120)))] == [120]
    assert [len(c) for c in membership.progressive_chunks(list(range(350)))] == [300, 50]
    assert membership.progressive_chunks([]) == []


def test_add_members_puts_string_arrays(hubspot):
    client = hubspot.client()

    added = asyncio.run(membership.add_members(client, "10", list(range(1, 651))))

    assert added == 650
    assert hubspot.added["10"] == [str(i) for i in range(1, 651)]
    puts = [r for r in hubspot.requests if r[0] == "PUT"]
    assert len(puts) == 7


def test_add_members_empty_input_makes_no_calls(hubspot):
    client = hubspot.client()

    assert asyncio.run(membership.add_members(client, "10", [])) == 0
    assert hubspot.requests == []


def test_add_members_skips_non_manual_list(hubspot):
    hubspot.processing_types["10"] = "DYNAMIC"
    client = hubspot.client()

    assert asyncio.run(membership.add_members(client, "10", [1, 2, 3])) == 0
    assert not [r for r in hubspot.requests if r[0] == "PUT"]


def test_failed_batch_is_dropped_and_rest_continue():
    put_calls = [0]
    accepted = []

    def handler(request):
        put_calls[0] += 1
        # Second batch (100 ids) fails on all three attempts.
        if put_calls[0] in (2, 3, 4):
            return httpx.Response(500, json={"message": "boom"})
        accepted.extend(json.loads(request.content))
        return httpx.Response(200, json={})

    client = make_client(handler)
    added = asyncio.run(membership.add_members(client, "10", list(range(650)), skip_verification=True))

    assert added == 550
    assert len(accepted) == 550
    assert put_calls[0] == 9


def test_transient_write_failure_is_retried():
    put_calls = [0]

    def handler(request):
        put_calls[0] += 1
        if put_calls[0] == 1:
            return httpx.Response(429, json={"message": "slow down"})
        return httpx.Response(200, json={})

    client = make_client(handler)
    added = asyncio.run(membership.add_members(client, "10", [1, 2], skip_verification=True))

    assert added == 2
    assert put_calls[0] == 2
