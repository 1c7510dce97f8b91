"""Tests for the resilient fetcher (httpx.MockTransport, no network)."""

import httpx
import pytest

from matchfacts.etl.exceptions import FetchError, ParseError
from matchfacts.etl.fetcher import ResilientFetcher, _endpoint_label, compute_xfm_req

API_URL = "https://www.fotmob.com/api/matchDetails?matchId=4506300"
PAGE_URL = "https://www.fotmob.com/match/4506300"


class TestHelpers:
    def test_endpoint_label(self):
        assert _endpoint_label(API_URL) == "matchDetails"
        assert _endpoint_label("https://www.fotmob.com/api/matches?date=20250816") == "matches"
        assert _endpoint_label(PAGE_URL) == "page"

    def test_xfm_req_is_deterministic_base64(self):
        value = compute_xfm_req("/api/matchDetails?matchId=1")
        assert value == compute_xfm_req("/api/matchDetails?matchId=1")
        assert value != compute_xfm_req("/api/matchDetails?matchId=2")
        assert value.endswith("==")  # 16-byte digest

    def test_backoff_is_linear(self, settings):
        fetcher = ResilientFetcher(settings)
        assert fetcher.backoff_delay(0) == pytest.approx(0.2)
        assert fetcher.backoff_delay(1) == pytest.approx(0.4)


class TestRetries:
    """2 retries = 3 attempts, backoff base + attempt * step."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, make_fetcher, sleeper):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"ok": True}))

        assert await fetcher.fetch_json(API_URL) == {"ok": True}
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, make_fetcher, sleeper):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json={"ok": True})

        fetcher = make_fetcher(handler)

        assert await fetcher.fetch_json(API_URL) == {"ok": True}
        assert len(calls) == 2
        assert sleeper.delays == [pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_terminal_status_error(self, make_fetcher, sleeper):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="x" * 500)

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_text(PAGE_URL)

        assert len(calls) == 3
        assert exc_info.value.status == 503
        assert len(exc_info.value.snippet) == 200
        assert sleeper.delays == [pytest.approx(0.2), pytest.approx(0.4)]

    @pytest.mark.asyncio
    async def test_empty_body_is_retried_then_terminal(self, make_fetcher):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="   ")

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_text(PAGE_URL)

        assert len(calls) == 3
        assert exc_info.value.reason == "empty body"

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, make_fetcher):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        fetcher = make_fetcher(handler)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_text(PAGE_URL)

        assert len(calls) == 3
        assert exc_info.value.reason == "timeout"


class TestDecoding:
    @pytest.mark.asyncio
    async def test_empty_object_is_not_a_fetch_failure(self, make_fetcher, sleeper):
        """An empty-but-valid body is the caller's "not found", not retried."""
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="{}"))

        assert await fetcher.fetch_json(API_URL) == {}
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_invalid_json_raises_parse_error_without_retry(self, make_fetcher):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>blocked</html>")

        fetcher = make_fetcher(handler)

        with pytest.raises(ParseError):
            await fetcher.fetch_json(API_URL)
        assert len(calls) == 1


class TestHeaders:
    @pytest.mark.asyncio
    async def test_signature_header_only_on_api_paths(self, make_fetcher):
        seen = {}

        def handler(request):
            seen[request.url.path] = request.headers.get("x-fm-req")
            return httpx.Response(200, text='{"a": 1}')

        fetcher = make_fetcher(handler)
        await fetcher.fetch_json(API_URL)
        await fetcher.fetch_text(PAGE_URL)

        assert seen["/api/matchDetails"] == compute_xfm_req("/api/matchDetails?matchId=4506300")
        assert seen["/match/4506300"] is None

    @pytest.mark.asyncio
    async def test_final_url_after_redirect(self, make_fetcher):
        def handler(request):
            if request.url.path == "/matches/arsenal-vs-chelsea/2tk9mx":
                return httpx.Response(302, headers={"Location": PAGE_URL})
            return httpx.Response(200, text="<html>ok</html>")

        fetcher = make_fetcher(handler)
        page = await fetcher.fetch_text("https://www.fotmob.com/matches/arsenal-vs-chelsea/2tk9mx")

        assert page.final_url == PAGE_URL
        assert page.text == "<html>ok</html>"
