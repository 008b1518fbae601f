"""HTTP transport adapter built on httpx.

Reliable deliveries go through an ``httpx.AsyncClient`` and report the
outcome. Best-effort deliveries are used at teardown and for critical errors.
There is no unload-safe primitive to lean on, so they are a synchronous
POST with a short timeout whose outcome is only advisory. The recorder runs them
in the event loop's executor when a loop is running, so the POST never
blocks the loop.
"""

import logging
from typing import Any

import httpx

from telemetripy.config import TelemetryConfig
from telemetripy.core.encoding.payload import dumps
from telemetripy.core.models import Channel

logger = logging.getLogger(__name__)

_CONTENT_TYPE = "application/json"


class HttpTransport:
    """HTTP implementation of TransportPort.

    Args:
        config: Supplies the endpoint URLs, session header and timeouts.
        client: Async client for reliable deliveries (created lazily).
        sync_client: Client for best-effort deliveries (created lazily).
    """

    def __init__(
        self,
        config: TelemetryConfig,
        client: httpx.AsyncClient | None = None,
        sync_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self._client = client
        self._sync_client = sync_client
        self._owns_client = client is None
        self._owns_sync_client = sync_client is None

    def _headers(self, payload: dict[str, Any]) -> dict[str, str]:
        headers = {"content-type": _CONTENT_TYPE}
        session_id = payload.get("sessionId")
        if session_id:
            headers[self.config.session_header] = str(session_id)
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout)
        return self._client

    @property
    def sync_client(self) -> httpx.Client:
        if self._sync_client is None:
            self._sync_client = httpx.Client(timeout=self.config.best_effort_timeout)
        return self._sync_client

    async def send_reliable(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """POST a payload and wait for the collector's answer.

        Returns:
            True for a 2xx status; False for any other status or an httpx
            transport error.
        """
        url = self.config.endpoint_url(channel)
        try:
            response = await self.client.post(
                url, content=dumps(payload), headers=self._headers(payload)
            )
        except httpx.HTTPError as exc:
            logger.warning("Delivery to %s failed: %s", url, exc)
            return False

        if not response.is_success:
            logger.warning("Delivery to %s rejected with status %d", url, response.status_code)
            return False
        return True

    def send_best_effort(self, channel: Channel, payload: dict[str, Any]) -> bool:
        """POST a payload with a short timeout; never raises.

        Returns:
            Whether the collector acknowledged the payload. Callers must not
            retry on False.
        """
        url = self.config.endpoint_url(channel)
        try:
            response = self.sync_client.post(
                url,
                content=dumps(payload),
                headers=self._headers(payload),
                timeout=self.config.best_effort_timeout,
            )
        except httpx.HTTPError as exc:
            logger.debug("Best-effort delivery to %s dropped: %s", url, exc)
            return False
        return response.is_success

    async def aclose(self) -> None:
        """Close the clients this transport created."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self.close()

    def close(self) -> None:
        """Close the synchronous client if this transport created it."""
        if self._owns_sync_client and self._sync_client is not None:
            self._sync_client.close()
            self._sync_client = None
