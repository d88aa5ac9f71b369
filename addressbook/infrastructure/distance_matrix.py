"""HTTP client for the distancematrix.ai distance-matrix API.

The service is treated as opaque: a GET with ``origins``, ``destinations``
and ``key`` query parameters returns a JSON document that is relayed to the
caller without being parsed. Any non-2xx answer or transport failure becomes
an ``ExternalServiceError``.

One ``httpx.AsyncClient`` is shared by all requests. It is created and
closed by the application lifespan (see ``create_http_client``).
"""

import time
from typing import Final

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict

from addressbook.core.config import DistanceMatrixConfig
from addressbook.core.constants import MILLISECONDS_PER_SECOND
from addressbook.core.exceptions import ExternalServiceError
from addressbook.core.observability import trace_operation

SERVICE_NAME: Final[str] = "distancematrix.ai"
DEFAULT_CONTENT_TYPE: Final[str] = "application/json"


class DistanceMatrixResponse(BaseModel):
    """Undecoded body of a successful distance-matrix answer."""

    model_config = ConfigDict(frozen=True)

    body: bytes
    content_type: str = DEFAULT_CONTENT_TYPE


def create_http_client(config: DistanceMatrixConfig) -> httpx.AsyncClient:
    """Create the long-lived outbound client used for distance lookups.

    Args:
        config: Distance-matrix settings.

    Returns:
        httpx.AsyncClient: Client the caller is responsible for closing.
    """
    return httpx.AsyncClient(timeout=config.timeout_seconds)


class DistanceMatrixClient:
    """Forwards origin/destination address strings to the distance-matrix API.

    Args:
        http_client: Shared async HTTP client.
        config: Endpoint URL and API key.
    """

    def __init__(
        self, http_client: httpx.AsyncClient, config: DistanceMatrixConfig
    ) -> None:
        self.http_client = http_client
        self.config = config

    async def lookup(self, origin: str, destination: str) -> DistanceMatrixResponse:
        """Request the distance between two free-form addresses.

        Args:
            origin: Origin address as a single line of text.
            destination: Destination address as a single line of text.

        Returns:
            DistanceMatrixResponse: The upstream body and content type.

        Raises:
            ExternalServiceError: If the service cannot be reached or answers
                with a non-success status.
        """
        params = {
            "origins": origin,
            "destinations": destination,
            "key": self.config.api_key,
        }

        with trace_operation("distance_matrix.lookup", service=SERVICE_NAME) as span:
            start_time = time.perf_counter()
            try:
                response = await self.http_client.get(
                    self.config.base_url, params=params
                )
            except httpx.RequestError as exc:
                logger.warning(
                    "Distance matrix request failed: {}",
                    type(exc).__name__,
                    service=SERVICE_NAME,
                )
                raise ExternalServiceError(
                    "Distance matrix service could not be reached",
                    context={"service": SERVICE_NAME},
                    cause=exc,
                ) from exc

            duration_ms = (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND
            span.set_attribute("http.status_code", response.status_code)

        if not response.is_success:
            logger.warning(
                "Distance matrix service answered {}",
                response.status_code,
                service=SERVICE_NAME,
                upstream_status=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            raise ExternalServiceError(
                "Distance matrix service returned an error",
                context={
                    "service": SERVICE_NAME,
                    "upstream_status": response.status_code,
                },
            )

        logger.info(
            "Distance matrix lookup completed",
            service=SERVICE_NAME,
            duration_ms=round(duration_ms, 2),
            response_size=len(response.content),
        )

        return DistanceMatrixResponse(
            body=response.content,
            content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        )
