"""
HTTP transport for batch delivery, using httpx AsyncClient.

Supports:
- JSON bodies from dicts, lists or pydantic models
- Optional gzip compression above a size threshold (replay snapshots)
- Connection pooling via a persistent client
"""

import gzip
import json
import time
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel

from telemetry_shipper.transport.base_client import BaseTransportClient, SendResult

logger = structlog.get_logger(__name__)


class HttpTransportClient(BaseTransportClient):
    """
    POSTs batch payloads to {base_url}{path}.

    Headers: Content-Type and Accept are application/json; Content-Encoding
    is gzip when compression kicked in. A 2xx response is a success, any
    other status is reported as-is, and transport-level failures are
    reported with status 0.
    """

    def __init__(
        self,
        base_url: str,
        path: str = "/batch",
        timeout: float = 10,
        gzip_threshold_bytes: Optional[int] = None,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP transport.

        Args:
            base_url: Ingestion host
            path: Endpoint path (/batch for events, /s/ for replay)
            timeout: Request timeout in seconds
            gzip_threshold_bytes: Compress bodies larger than this (None = never)
            connection_limits: httpx pool limits (default: 5 max connections)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(base_url, timeout)
        self.path = path if path.startswith("/") else f"/{path}"
        self.gzip_threshold_bytes = gzip_threshold_bytes

        if connection_limits is None:
            connection_limits = httpx.Limits(
                max_keepalive_connections=2,
                max_connections=5,
                keepalive_expiry=30.0,
            )

        self._client: Optional[httpx.AsyncClient] = None
        self._connection_limits = connection_limits
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                transport=self._transport,
            )
            logger.debug("Created new httpx AsyncClient", url=self.url)
        return self._client

    def _encode(self, payload: Any) -> tuple[bytes, dict[str, str]]:
        if isinstance(payload, BaseModel):
            body = payload.model_dump_json().encode("utf-8")
        else:
            body = json.dumps(payload, default=str).encode("utf-8")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.gzip_threshold_bytes is not None and len(body) > self.gzip_threshold_bytes:
            body = gzip.compress(body)
            headers["Content-Encoding"] = "gzip"
        return body, headers

    async def send(self, payload: Any) -> SendResult:
        start_time = time.monotonic()
        try:
            body, headers = self._encode(payload)
        except (TypeError, ValueError) as e:
            logger.error("Failed to encode batch payload", url=self.url, error=str(e))
            return SendResult(success=False, status_code=0)

        logger.debug(
            "Sending batch",
            url=self.url,
            size_bytes=len(body),
            compressed="Content-Encoding" in headers,
        )

        try:
            client = await self._get_client()
            response = await client.post(self.url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Batch send timeout", url=self.url, timeout=self.timeout, error=str(e))
            return SendResult(success=False, status_code=0)
        except httpx.HTTPError as e:
            logger.warning(
                "Batch send network error",
                url=self.url,
                error_type=type(e).__name__,
                error=str(e),
            )
            return SendResult(success=False, status_code=0)
        except httpx.InvalidURL as e:
            logger.warning("Batch send invalid URL", url=self.url, error=str(e))
            return SendResult(success=False, status_code=0)

        latency_ms = int((time.monotonic() - start_time) * 1000)
        if response.is_success:
            logger.debug(
                "Batch sent successfully",
                url=self.url,
                status_code=response.status_code,
                latency_ms=latency_ms,
            )
            return SendResult(success=True, status_code=response.status_code)

        logger.warning(
            "Batch send failed",
            url=self.url,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return SendResult(success=False, status_code=response.status_code)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed httpx AsyncClient", url=self.url)
        self._client = None
