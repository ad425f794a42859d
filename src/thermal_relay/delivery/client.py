"""
Collector Client
================

Async HTTP client for the remote collector.

Routes:
    POST {base_url}{temperature_path}  - TemperatureRecord body
    POST {base_url}{alerts_path}       - AlertRecord body

Failure Classification:
    - Connection/transport failure (unreachable, timeout): DeliveryError
      with status_code None
    - Non-2xx response: DeliveryError with the response status code
    Both are retryable; the caller decides how often to retry.
    - Body that cannot be encoded as strict JSON (NaN, Infinity): DeliveryError
      with retryable False, raised before any request is made
"""

import json
import logging
from typing import Optional

import httpx

from thermal_relay.models.records import OutboundRecord


logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when a record could not be delivered to the collector."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable

    @property
    def is_connection_error(self) -> bool:
        """True when the collector could not be reached at all."""
        return self.status_code is None


class CollectorClient:
    """
    Sends outbound records to the collector's routes.

    Attributes:
        base_url: Collector base URL
        temperature_path: Route for temperature records
        alerts_path: Route for alert records

    Example:
        client = CollectorClient("http://collector:8000", timeout=5.0)
        await client.send(record)
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        temperature_path: str = "/temperature-data",
        alerts_path: str = "/alerts",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize collector client.

        Args:
            base_url: Collector base URL
            temperature_path: Route for temperature records
            alerts_path: Route for alert records
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.temperature_path = temperature_path
        self.alerts_path = alerts_path
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

        logger.info(
            f"CollectorClient initialized: {self.base_url} "
            f"(temperature={temperature_path}, alerts={alerts_path}, timeout={timeout}s)"
        )

    def path_for(self, record: OutboundRecord) -> str:
        """Route for a record's kind."""
        return self.alerts_path if record.kind == "alert" else self.temperature_path

    async def send(self, record: OutboundRecord) -> None:
        """
        POST one record.

        Raises:
            DeliveryError: On connection failure, non-2xx response or an
                unencodable record (not retryable)
        """
        path = self.path_for(record)
        try:
            body = json.dumps(record.to_payload(), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise DeliveryError(
                f"Cannot encode {record.kind} record for sensor {record.sensor_id}: {e}",
                retryable=False,
            ) from e

        try:
            response = await self._client.post(
                path,
                content=body,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise DeliveryError(
                f"Collector rejected {record.kind} record: {status} {e.response.reason_phrase}",
                status_code=status,
            ) from e
        except httpx.RequestError as e:
            raise DeliveryError(
                f"Collector unreachable at {self.base_url}{path}: {e!r}"
            ) from e

        logger.debug(
            f"Delivered {record.kind} record for sensor {record.sensor_id}: {response.status_code}"
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
