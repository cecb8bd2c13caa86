"""
Tests for graph/client.py.

Covers:
- pagination through @odata.nextLink
- max_items early stop
- status code mapping (401 / 403 / 500)
- bounded retry on throttling, honouring Retry-After
- timeouts, connection errors and other httpx failures
"""
import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from m365_license_probe.config import GraphSettings
from m365_license_probe.errors import AuthenticationFailure, SafetyViolation, UpstreamError, UpstreamUnavailable
from m365_license_probe.graph.client import GraphAPIError, GraphClient
from m365_license_probe.safety.guardian import SafetyGuardian


def call(handler, coro_factory, settings=None):
    """Open a GraphClient over a MockTransport and await coro_factory(client)."""
    async def go():
        transport = httpx.MockTransport(handler)
        async with GraphClient("token", SafetyGuardian(), settings, transport=transport) as client:
            return await coro_factory(client)
    return asyncio.run(go())


class TestPagination:
    """Tests for get_all_pages."""

    def test_follows_next_link(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            if "skiptoken" in str(request.url):
                return httpx.Response(200, json={"value": [{"id": 3}]})
            return httpx.Response(200, json={
                "value": [{"id": 1}, {"id": 2}],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/users?$skiptoken=abc",
            })

        items = call(handler, lambda c: c.get_all_pages("users", params={"$select": "id"}))
        assert [i["id"] for i in items] == [1, 2, 3]
        assert len(seen) == 2
        # nextLink is followed verbatim, without re-sending the original params
        assert "select" not in seen[1]

    def test_max_items_stops_early(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={
                "value": [{"id": 1}, {"id": 2}],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/users?$skiptoken=abc",
            })

        items = call(handler, lambda c: c.get_all_pages("users", top=1, max_items=1))
        assert items == [{"id": 1}]
        assert len(calls) == 1
        assert calls[0].url.params["$top"] == "1"

    def test_early_stop_closes_stream(self):
        closed = []

        async def stream(self, endpoint, params=None, top=None):
            try:
                yield {"id": 1}
                yield {"id": 2}
            finally:
                closed.append(endpoint)

        async def go(client):
            items = await client.get_all_pages("users", max_items=1)
            return items, list(closed)

        with patch.object(GraphClient, "get_all_pages_stream", stream):
            items, closed_before_return = call(lambda r: httpx.Response(200, json={}), go)
        assert items == [{"id": 1}]
        assert closed_before_return == ["users"]

    def test_empty_body(self):
        items = call(lambda r: httpx.Response(200, content=b""), lambda c: c.get_all_pages("users"))
        assert items == []

    def test_sends_auth_headers(self):
        headers = {}

        def handler(request):
            headers.update(request.headers)
            return httpx.Response(200, json={"value": []})

        call(handler, lambda c: c.get("organization"))
        assert headers["authorization"] == "Bearer token"
        assert headers["consistencylevel"] == "eventual"


class TestStatusMapping:
    """Tests for error status handling."""

    def test_401_is_authentication_failure(self):
        handler = lambda r: httpx.Response(401, json={"error": {"message": "expired"}})
        with pytest.raises(AuthenticationFailure, match="expired"):
            call(handler, lambda c: c.get("organization"))

    def test_403_is_graph_api_error(self):
        handler = lambda r: httpx.Response(403, json={"error": {"message": "Insufficient privileges"}})
        with pytest.raises(GraphAPIError) as exc_info:
            call(handler, lambda c: c.get("organization"))
        assert exc_info.value.status_code == 403
        assert "Insufficient privileges" in exc_info.value.message

    def test_500_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="boom")

        with pytest.raises(UpstreamError):
            call(handler, lambda c: c.get("organization"))
        assert len(calls) == 1

    def test_non_json_body(self):
        handler = lambda r: httpx.Response(200, content=b"<html>")
        with pytest.raises(UpstreamError, match="Non-JSON"):
            call(handler, lambda c: c.get("organization"))

    def test_error_body_not_a_dict(self):
        handler = lambda r: httpx.Response(400, json={"error": "bad"})
        with pytest.raises(GraphAPIError):
            call(handler, lambda c: c.get("organization"))


class TestThrottling:
    """Tests for bounded retry on 429/503/504."""

    def test_retries_then_succeeds(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={"value": [{"id": "org"}]}),
        ]
        handler = lambda r: responses.pop(0)
        with patch("m365_license_probe.graph.client.asyncio.sleep", new=AsyncMock()) as sleep:
            data = call(handler, lambda c: c.get("organization"))
        assert data["value"][0]["id"] == "org"
        sleep.assert_awaited_once_with(3.0)

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        with patch("m365_license_probe.graph.client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(UpstreamUnavailable, match="throttled"):
                call(handler, lambda c: c.get("organization"), GraphSettings(max_retries=2))
        assert len(calls) == 3

    def test_zero_retries(self):
        with pytest.raises(UpstreamUnavailable):
            call(lambda r: httpx.Response(429), lambda c: c.get("organization"), GraphSettings(max_retries=0))


class TestTransportFailures:
    """Tests for timeouts and connection errors."""

    def test_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(UpstreamUnavailable, match="Timed out"):
            call(handler, lambda c: c.get("organization"))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamUnavailable, match="Connection error"):
            call(handler, lambda c: c.get("organization"))

    @pytest.mark.parametrize("error_cls", [httpx.DecodingError, httpx.TooManyRedirects])
    def test_other_httpx_errors(self, error_cls):
        def handler(request):
            raise error_cls("broken response", request=request)

        with pytest.raises(UpstreamError, match=error_cls.__name__):
            call(handler, lambda c: c.get("organization"))


class TestSafety:
    """Requests are validated before they leave the client."""

    def test_disallowed_resource_never_sent(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        with pytest.raises(SafetyViolation):
            call(handler, lambda c: c.get("auditLogs/signIns"))
        assert calls == []

    def test_stats(self):
        async def go(client):
            await client.get("organization")
            return client.get_stats()

        stats = call(lambda r: httpx.Response(200, json={"value": []}), go)
        assert stats == {"total_requests": 1, "throttle_events": 0}
