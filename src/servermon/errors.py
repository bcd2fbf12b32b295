"""Failure taxonomy for the metrics fetcher."""


class FetchError(Exception):
    """Base class for every failure of a single metrics fetch."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class HttpError(FetchError):
    """The API answered with a non-2xx status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Failed to fetch metrics: {status}")
        self.status = status


class ContentTypeError(FetchError):
    """The API answered successfully but not with JSON."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__("API returned non-JSON response")
        self.content_type = content_type


class NetworkError(FetchError):
    """The request could not be completed."""


class ConfigurationError(NetworkError):
    """The API base URL is missing or malformed."""


class PayloadError(FetchError):
    """The response body does not have the shape of a metrics snapshot."""
