"""Webhook delivery over HTTP."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from txmonitor.monitor.config import WebhookConfig
from txmonitor.monitor.models import WebhookPayload
from txmonitor.monitor.ports import WebhookNotifier, WebhookResult

logger = structlog.get_logger()


class HttpxWebhookNotifier(WebhookNotifier):
    """
    POSTs webhook payloads as JSON.

    Any transport error or non-2xx response is reported as an undelivered
    result. Deliveries are never retried.
    """

    def __init__(
        self,
        config: Optional[WebhookConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or WebhookConfig()
        self._transport = transport

    async def notify(
        self, url: str, payload: WebhookPayload, idempotency_key: str
    ) -> WebhookResult:
        headers = {
            "User-Agent": self.config.user_agent,
            "Idempotency-Key": idempotency_key,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload.to_json(), headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return WebhookResult(url=url, delivered=False, error=str(e))

        if response.is_success:
            logger.info(
                "webhook.delivered",
                tx_hash=payload.tx_hash,
                url=url,
                status_code=response.status_code,
            )
            return WebhookResult(
                url=url, delivered=True, status_code=response.status_code
            )

        return WebhookResult(
            url=url,
            delivered=False,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}: {response.text[:200]}",
        )
