"""Gamification webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Dict, Any
from splitez.config import settings
from splitez.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

EXPENSE_ADDED = "EXPENSE_ADDED"
SETTLEMENT_PAID = "SETTLEMENT_PAID"


def expense_added_event(expense_id: str, group_id: str, account_id: str) -> Dict[str, Any]:
    return {
        "event": EXPENSE_ADDED,
        "expense_id": expense_id,
        "group_id": group_id,
        "account_id": account_id,
        "points": settings.expense_added_points,
    }


def settlement_paid_event(settlement_id: str, account_id: str) -> Dict[str, Any]:
    return {
        "event": SETTLEMENT_PAID,
        "settlement_id": settlement_id,
        "account_id": account_id,
        "points": settings.settlement_paid_points,
    }


class GamificationClient:
    """Client for posting point-earning facts to the gamification service"""

    def __init__(self, webhook_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.webhook_url = webhook_url or settings.gamification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver an event, retrying on 5xx responses and network failures.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ...
        - 4xx responses are not retried (the payload will not get better)
        - Tracks latency histogram and failure counter

        Raises:
            httpx.HTTPError: Final failure after all retries
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except httpx.HTTPStatusError as e:
                    webhook_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise

                except httpx.RequestError:
                    webhook_failure_counter.inc()
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise

                await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))
