"""Webhook sender.

Posts rendered payloads to the URLs configured by webhook owners. Each
request carries the webhook's shared secret in an ``X-<Namespace>-Secret``
header so receivers can check the request comes from us.

Failures are classified so the worker knows whether to retry:
- Transport errors (connection refused, timeouts, broken connections),
  5xx responses, 408 and 429: retryable.
- Malformed URLs or headers and any other 4xx response: terminal.

The response body is never read; the response is always closed so the
connection goes back to the pool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from hubnotify.core.config import DEFAULT_PAYLOAD_CONTENT_TYPE
from hubnotify.services.delivery import DeliveryResult

if TYPE_CHECKING:
    from hubnotify.services.notifications import WebhookTarget

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# 4xx statuses that signal a temporary condition on the receiver side
_RETRYABLE_CLIENT_ERRORS = {408, 429}


class WebhookSender:
    """Delivers payloads to webhooks over HTTP.

    The HTTP client is created lazily unless one is injected, and must be
    released with close() when the sender is no longer needed.

    Attributes:
        namespace: Namespace used in the secret header name.
        default_content_type: Content type used when the webhook has none.
    """

    def __init__(
        self,
        namespace: str = "ArtifactHub",
        timeout: float = DEFAULT_TIMEOUT,
        default_content_type: str = DEFAULT_PAYLOAD_CONTENT_TYPE,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.namespace = namespace
        self.default_content_type = default_content_type
        self._timeout = timeout
        self._http_client = http_client

    @property
    def secret_header(self) -> str:
        return f"X-{self.namespace}-Secret"

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client for webhook delivery."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, target: WebhookTarget, payload: str) -> DeliveryResult:
        """Post a payload to a webhook.

        Args:
            target: The webhook to call.
            payload: Rendered request body.

        Returns:
            DeliveryResult describing how the call ended.
        """
        client = self._get_http_client()
        headers = {
            "Content-Type": target.content_type or self.default_content_type,
            self.secret_header: target.secret or "",
        }

        try:
            request = client.build_request(
                "POST",
                target.url,
                content=payload.encode("utf-8"),
                headers=headers,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            return DeliveryResult.terminal(f"invalid webhook url: {e}")
        except ValueError as e:
            # Header values must be ASCII
            return DeliveryResult.terminal(f"invalid webhook configuration: {e}")

        try:
            response = await client.send(request, stream=True)
        except httpx.UnsupportedProtocol as e:
            return DeliveryResult.terminal(f"invalid webhook url: {e}")
        except httpx.LocalProtocolError as e:
            return DeliveryResult.terminal(f"invalid webhook configuration: {e}")
        except httpx.TransportError as e:
            logger.warning(
                "Webhook request failed: webhook_id=%s, error=%s",
                target.webhook_id,
                e,
            )
            return DeliveryResult.retryable(f"webhook request failed: {e!r}")

        try:
            status_code = response.status_code
        finally:
            await response.aclose()

        if status_code < 400:
            logger.debug(
                "Webhook delivered: webhook_id=%s, status=%d",
                target.webhook_id,
                status_code,
            )
            return DeliveryResult.delivered()

        error = f"unexpected status code: {status_code}"
        if status_code >= 500 or status_code in _RETRYABLE_CLIENT_ERRORS:
            return DeliveryResult.retryable(error)
        return DeliveryResult.terminal(error)
