"""Tests for the gamification webhook client retry behaviour"""

import asyncio
import httpx
import pytest
from splitez.infrastructure.clients.gamification import (
    GamificationClient,
    expense_added_event,
    settlement_paid_event,
)


def make_client(responses: list[int], seen: list[httpx.Request]) -> GamificationClient:
    statuses = iter(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(next(statuses))

    client = GamificationClient(webhook_url="http://gamification.test/events", transport=httpx.MockTransport(handler))
    client.backoff_base = 0
    return client


def test_event_payloads():
    assert expense_added_event("e1", "g1", "u1") == {
        "event": "EXPENSE_ADDED",
        "expense_id": "e1",
        "group_id": "g1",
        "account_id": "u1",
        "points": 10,
    }
    assert settlement_paid_event("s1", "u2")["points"] == 20


def test_send_event_delivers_json():
    seen: list[httpx.Request] = []
    client = make_client([200], seen)

    asyncio.run(client.send_event({"event": "EXPENSE_ADDED", "account_id": "u1"}))

    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert b'"account_id":"u1"' in seen[0].content.replace(b" ", b"")


def test_send_event_retries_server_errors():
    seen: list[httpx.Request] = []
    client = make_client([503, 502, 200], seen)

    asyncio.run(client.send_event({"event": "SETTLEMENT_PAID"}))

    assert len(seen) == 3


def test_send_event_gives_up_after_max_retries():
    seen: list[httpx.Request] = []
    client = make_client([500] * 10, seen)
    client.max_retries = 3

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send_event({"event": "SETTLEMENT_PAID"}))

    assert len(seen) == 3


def test_send_event_does_not_retry_client_errors():
    seen: list[httpx.Request] = []
    client = make_client([400, 200], seen)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send_event({"event": "SETTLEMENT_PAID"}))

    assert len(seen) == 1
