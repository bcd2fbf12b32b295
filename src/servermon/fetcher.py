"""HTTP client for the live metrics endpoint."""

import logging

import httpx

from servermon.errors import (
    ConfigurationError,
    ContentTypeError,
    HttpError,
    NetworkError,
    PayloadError,
)
from servermon.models import MetricsSnapshot

logger = logging.getLogger(__name__)

LIVE_PATH = "/api/live/"

_HEADERS = {
    "Accept": "application/json",
    # Every poll must reach the origin
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


class MetricsFetcher:
    """
    Fetches one MetricsSnapshot per call from ``{base_url}/api/live/``.

    The base URL is only checked when a request is made, so a missing or
    malformed value shows up as a ConfigurationError on every poll.
    """

    def __init__(
        self,
        base_url: str | None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the MetricsFetcher.

        Args:
            base_url: Origin of the metrics API, e.g. ``http://host:8000``.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=_HEADERS,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @property
    def endpoint(self) -> str:
        """Full URL of the live metrics endpoint."""
        base = (self._base_url or "").strip()
        if not base:
            raise ConfigurationError("Metrics API base URL is not configured")

        try:
            url = httpx.URL(base)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Invalid metrics API base URL {base!r}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"Invalid metrics API base URL {base!r}")

        return base.rstrip("/") + LIVE_PATH

    async def fetch_metrics(self) -> MetricsSnapshot:
        """
        Fetch and validate one snapshot.

        Raises:
            ConfigurationError: The base URL is missing or malformed.
            NetworkError: The request could not be completed.
            HttpError: The response status is not 2xx.
            ContentTypeError: The response is not JSON.
            PayloadError: The JSON body is not a valid snapshot.
        """
        url = self.endpoint

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Metrics request to %s failed: %s", url, exc)
            raise NetworkError(f"Could not reach metrics API at {url}: {exc}") from exc

        if not response.is_success:
            logger.warning("Metrics API returned status %d", response.status_code)
            logger.debug("Error body: %s", response.text[:200])
            raise HttpError(response.status_code)

        content_type = response.headers.get("content-type")
        if not content_type or "application/json" not in content_type:
            logger.warning("Metrics API returned non-JSON content type %r", content_type)
            logger.debug("Non-JSON body: %s", response.text[:200])
            raise ContentTypeError(content_type)

        try:
            payload = response.json()
        except ValueError as exc:
            raise PayloadError(f"API returned malformed JSON: {exc}") from exc

        return MetricsSnapshot.from_payload(payload)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
