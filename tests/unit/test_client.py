"""Unit tests for the resilient Graph client."""

import aiohttp
import pytest

from conftest import BASE, FakeResponse
from shareaudit.adapters.graph.client import GraphClient, parse_retry_after
from shareaudit.errors import RequestError

URL = f"{BASE}/sites/s1"


def throttled(retry_after=None):
    headers = {"Retry-After": retry_after} if retry_after is not None else {}
    return FakeResponse(429, {"error": {"code": "tooManyRequests", "message": "slow down"}}, headers=headers)


class TestExecute:
    """Test cases for GraphClient.execute."""

    @pytest.mark.asyncio
    async def test_returns_parsed_body_with_bearer_token(self, client, session):
        session.add("GET", URL, FakeResponse(200, {"id": "s1"}))

        result = await client.execute("sites/s1")

        assert result == {"id": "s1"}
        assert session.calls[0].headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_empty_body_returns_empty_dict(self, client, session):
        session.add("DELETE", URL, FakeResponse(204))

        assert await client.execute(URL, "DELETE") == {}

    @pytest.mark.asyncio
    async def test_json_body_sent_with_content_type(self, client, session):
        session.add("PATCH", URL, FakeResponse(200, {"ok": True}))

        await client.execute(URL, "PATCH", body={"expirationDateTime": "2026-01-01T00:00:00Z"})

        call = session.calls[0]
        assert call.body == {"expirationDateTime": "2026-01-01T00:00:00Z"}
        assert call.headers["Content-Type"] == "application/json"


class TestBackoff:
    """Retry timing for throttling and server errors."""

    @pytest.mark.asyncio
    async def test_exponential_delays_without_hint(self, client, session, sleeps):
        session.add("GET", URL, throttled(), throttled(), throttled(), FakeResponse(200, {"id": "s1"}))

        result = await client.execute(URL)

        assert result == {"id": "s1"}
        assert sleeps == [1.0, 2.0, 4.0]
        assert len(session.calls) == 4

    @pytest.mark.asyncio
    async def test_delay_capped_at_max(self, session, sleeps, fake_sleep):
        async def token():
            return "t"

        client = GraphClient(
            session, token, base_url=BASE, max_retries=3, base_delay=10.0, max_delay=15.0, sleep=fake_sleep
        )
        session.add("GET", URL, throttled(), throttled(), throttled(), FakeResponse(200, {}))

        await client.execute(URL)

        assert sleeps == [10.0, 15.0, 15.0]

    @pytest.mark.asyncio
    async def test_retry_after_overrides_formula(self, client, session, sleeps):
        session.add("GET", URL, throttled(), throttled("7"), FakeResponse(200, {}))

        await client.execute(URL)

        assert sleeps == [1.0, 7.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client, session, sleeps):
        session.add("GET", URL, FakeResponse(503, text="unavailable"))

        with pytest.raises(RequestError) as exc_info:
            await client.execute(URL)

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_transient
        assert len(session.calls) == 4
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, client, session, sleeps):
        session.add("GET", URL, FakeResponse(403, {"error": {"code": "accessDenied", "message": "nope"}}))

        with pytest.raises(RequestError) as exc_info:
            await client.execute(URL)

        assert exc_info.value.status_code == 403
        assert "accessDenied" in exc_info.value.message
        assert len(session.calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_malformed_response_is_permanent(self, client, session, sleeps):
        session.add("GET", URL, FakeResponse(200, text="<html>oops</html>"))

        with pytest.raises(RequestError, match="malformed response"):
            await client.execute(URL)

        assert sleeps == []

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, client, session, sleeps):
        session.add("GET", URL, aiohttp.ClientConnectionError("reset"), FakeResponse(200, {"id": "s1"}))

        assert await client.execute(URL) == {"id": "s1"}
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_retry_listener_sees_status_and_delay(self, session, fake_sleep):
        events = []

        async def token():
            return "t"

        client = GraphClient(
            session,
            token,
            base_url=BASE,
            max_retries=2,
            base_delay=1.0,
            max_delay=60.0,
            sleep=fake_sleep,
            on_retry=lambda status, delay, attempt: events.append((status, delay, attempt)),
        )
        session.add("GET", URL, throttled(), FakeResponse(500, text="boom"), FakeResponse(200, {}))

        await client.execute(URL)

        assert events == [(429, 1.0, 1), (500, 2.0, 2)]


class TestParseRetryAfter:
    """Retry-After header parsing."""

    def test_seconds(self):
        assert parse_retry_after("5") == 5.0

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("soon") is None

    def test_past_http_date_is_zero(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
