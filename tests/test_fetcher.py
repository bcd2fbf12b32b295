"""Tests for the MetricsFetcher HTTP client."""

import httpx
import pytest

from helpers import make_payload
from servermon.errors import (
    ConfigurationError,
    ContentTypeError,
    HttpError,
    NetworkError,
    PayloadError,
)
from servermon.fetcher import MetricsFetcher
from servermon.models import MetricsSnapshot

BASE_URL = "http://metrics.test"


def make_fetcher(handler, base_url=BASE_URL) -> MetricsFetcher:
    return MetricsFetcher(base_url, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_returns_snapshot():
    """Test a 200 JSON response is turned into a snapshot."""
    fetcher = make_fetcher(lambda request: httpx.Response(200, json=make_payload(cpu=33)))
    try:
        snapshot = await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    assert isinstance(snapshot, MetricsSnapshot)
    assert snapshot.cpu.usage == 33.0


@pytest.mark.asyncio
async def test_request_targets_live_endpoint_uncached():
    """Test the request path and the JSON/no-cache headers."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=make_payload())

    fetcher = make_fetcher(handler, base_url=BASE_URL + "/")
    try:
        await fetcher.fetch_metrics()
        await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    # Every call hits the origin
    assert len(seen) == 2
    request = seen[0]
    assert request.method == "GET"
    assert str(request.url) == "http://metrics.test/api/live/"
    assert request.headers["accept"] == "application/json"
    assert "no-store" in request.headers["cache-control"]
    assert request.headers["pragma"] == "no-cache"


@pytest.mark.asyncio
async def test_http_500_raises_http_error():
    """Test a failing status surfaces HttpError with the status code."""
    fetcher = make_fetcher(lambda request: httpx.Response(500, text="boom"))
    try:
        with pytest.raises(HttpError) as excinfo:
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    assert excinfo.value.status == 500
    assert excinfo.value.message == "Failed to fetch metrics: 500"


@pytest.mark.asyncio
async def test_html_response_raises_content_type_error(monkeypatch):
    """Test a 200 text/html response is rejected without parsing JSON."""

    def fail_json(self, **kwargs):
        raise AssertionError("JSON parsing must not be attempted")

    monkeypatch.setattr(httpx.Response, "json", fail_json)
    fetcher = make_fetcher(lambda request: httpx.Response(200, html="<html>Not found</html>"))
    try:
        with pytest.raises(ContentTypeError) as excinfo:
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    assert "text/html" in excinfo.value.content_type


@pytest.mark.asyncio
async def test_missing_content_type_raises_content_type_error():
    fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"{}"))
    try:
        with pytest.raises(ContentTypeError):
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.ReadTimeout])
async def test_transport_failure_raises_network_error(exc_type):
    """Test connection failures and timeouts become NetworkError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("unreachable", request=request)

    fetcher = make_fetcher(handler)
    try:
        with pytest.raises(NetworkError) as excinfo:
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    assert isinstance(excinfo.value.__cause__, exc_type)


@pytest.mark.asyncio
@pytest.mark.parametrize("base_url", [None, "", "   ", "not a url", "ftp://metrics.test", "http://"])
async def test_bad_base_url_raises_configuration_error(base_url):
    """Test a missing or malformed base URL surfaces at call time."""
    calls = []
    fetcher = make_fetcher(lambda request: calls.append(request), base_url=base_url)
    try:
        with pytest.raises(ConfigurationError) as excinfo:
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    # Configuration errors are network errors in practice
    assert isinstance(excinfo.value, NetworkError)
    assert calls == []


def test_construction_does_not_validate_base_url():
    """Test the fetcher can be built with no base URL."""
    fetcher = MetricsFetcher(None)
    assert fetcher.base_url is None


@pytest.mark.asyncio
async def test_malformed_json_raises_payload_error():
    fetcher = make_fetcher(
        lambda request: httpx.Response(
            200, content=b"{not json", headers={"content-type": "application/json"}
        )
    )
    try:
        with pytest.raises(PayloadError):
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()


@pytest.mark.asyncio
async def test_wrong_shape_raises_payload_error():
    fetcher = make_fetcher(lambda request: httpx.Response(200, json={"cpu": {"usage": 10}}))
    try:
        with pytest.raises(PayloadError):
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()


@pytest.mark.asyncio
async def test_non_finite_json_raises_payload_error():
    """Test a body with Infinity is a PayloadError rather than an escaping crash."""
    body = (
        b'{"cpu": {"usage": 10, "cores": Infinity},'
        b' "memory": {"percent": 1, "used": "1", "total": "2"},'
        b' "disk": {"percent": 1, "used": "1", "total": "2"},'
        b' "network": {"total": "0", "download": "0", "upload": "0"}}'
    )
    fetcher = make_fetcher(
        lambda request: httpx.Response(
            200, content=body, headers={"content-type": "application/json"}
        )
    )
    try:
        with pytest.raises(PayloadError):
            await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()


@pytest.mark.asyncio
async def test_redirects_are_followed():
    """Test an http to https redirect reaches the final endpoint."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.scheme == "http":
            return httpx.Response(
                301, headers={"location": "https://metrics.test/api/live/"}
            )
        return httpx.Response(200, json=make_payload(disk=91))

    fetcher = make_fetcher(handler)
    try:
        snapshot = await fetcher.fetch_metrics()
    finally:
        await fetcher.aclose()

    assert seen == ["http://metrics.test/api/live/", "https://metrics.test/api/live/"]
    assert snapshot.disk.percent == 91.0
