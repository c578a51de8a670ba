"""HTTP client for the remote event collector."""

from typing import Any

import httpx
import structlog

from pulsetrack.models.event import Event
from pulsetrack.utils.exceptions import DeliveryError

logger = structlog.get_logger()


class CollectorClient:
    """POSTs event batches as ``{"events": [...]}`` JSON."""

    def __init__(
        self,
        endpoint: str,
        base_url: str = "",
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            endpoint: Collector URL, absolute or relative to ``base_url``.
            base_url: Base URL for relative endpoints.
            timeout: Request timeout in seconds.
            headers: Extra request headers.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.endpoint = endpoint
        self.base_url = base_url
        self.timeout = timeout
        self.headers = headers or {}
        self.transport = transport

    def build_body(self, events: list[Event]) -> dict[str, Any]:
        return {"events": [event.to_storage() for event in events]}

    async def send(self, events: list[Event]) -> int:
        """Deliver one batch.

        Returns:
            The collector's HTTP status code.

        Raises:
            DeliveryError: On transport failure, timeout or a non-2xx response.
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    self.endpoint,
                    json=self.build_body(events),
                    headers=self.headers,
                )
        except httpx.TimeoutException as e:
            raise DeliveryError(self.endpoint, message="Collector request timed out", original_error=str(e)) from e
        except httpx.HTTPError as e:
            raise DeliveryError(
                self.endpoint,
                message=f"Collector request failed: {e}",
                original_error=str(e),
            ) from e

        if not response.is_success:
            raise DeliveryError(
                self.endpoint,
                message=f"Collector returned {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug("Collector accepted batch", endpoint=self.endpoint, events=len(events))
        return response.status_code
