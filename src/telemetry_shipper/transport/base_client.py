"""
Abstract base transport for batch delivery.

Defines the interface the delivery queues send through. The queue owns all
retry decisions; a transport only reports what happened.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)


class SendResult(BaseModel):
    """
    Outcome of one batch send.

    status_code is the HTTP status, or 0 when no response was received
    (timeout, DNS failure, refused connection...).
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    status_code: int = Field(default=0, ge=0)


class BaseTransportClient(ABC):
    """
    Abstract base class for batch transports.

    Responsibilities:
    - Encode and send one batch payload
    - Map the outcome to SendResult

    Does NOT handle:
    - Retries or backoff (that's the queue's job)
    - Choosing which records go into a batch

    Implementations must never raise from send(): timeouts and connection
    errors are reported as SendResult(success=False, status_code=0).
    """

    def __init__(self, base_url: str, timeout: float = 10):
        """
        Initialize base transport.

        Args:
            base_url: Ingestion host (e.g. https://us.i.posthog.com)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @abstractmethod
    async def send(self, payload: Any) -> SendResult:
        """
        Send one batch payload.

        Args:
            payload: JSON-serializable object or pydantic model

        Returns:
            SendResult with success flag and status code
        """
        pass

    async def close(self) -> None:
        """
        Close connections and cleanup resources.

        Default implementation does nothing.
        """
        logger.debug("Closing transport", transport_class=self.__class__.__name__)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"base_url={self.base_url}, "
            f"timeout={self.timeout}s)"
        )
