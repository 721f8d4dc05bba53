"""HTTP delivery of webhook payloads."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .config import OneShipConfig, WebhookConfig, load_config
from .errors import WebhookDeliveryError

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """POST JSON payloads to webhook endpoints.

    ``deliver`` matches the webhook caller signature expected by
    :class:`~oneship.workflow.WorkflowEngine`. A single dispatcher can be shared
    by every webhook step of every execution.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self._client = client

    @classmethod
    def from_config(
        cls, config: Optional[OneShipConfig] = None
    ) -> "WebhookDispatcher":
        webhook_config: WebhookConfig = (config or load_config()).webhook
        return cls(timeout=webhook_config.timeout, headers=webhook_config.headers)

    async def deliver(self, url: str, payload: Dict[str, Any]) -> None:
        """Send ``payload`` to ``url``.

        Raises:
            WebhookDeliveryError: On connection errors, timeouts or a non-2xx
                response.
        """
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload, headers=self.headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook to {url}: {e}")
            raise WebhookDeliveryError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.error(f"Webhook {url} responded with {response.status_code}")
            raise WebhookDeliveryError(
                url,
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        logger.debug(f"Delivered {payload.get('event')} webhook to {url}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
