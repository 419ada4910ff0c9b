"""Tests for the httpx-based Coda API client."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest
import respx

from coda_tree_export.coda.client import CodaClient, page_identifier_from_href
from coda_tree_export.coda.exceptions import (
    CodaAuthenticationError,
    CodaClientError,
    CodaNotFoundError,
    CodaRateLimitError,
    ConfigurationError,
    TransientRemoteError,
)
from coda_tree_export.coda.pacing.limiter import RateLimitCategory, RateLimiter
from coda_tree_export.config import RateLimitConfig
from coda_tree_export.schemas import ExportStatus, PageIdentifier, ResourceType
from tests.fixtures.coda_responses import (
    API_ERROR_NOT_FOUND,
    API_ERROR_UNAUTHORIZED,
    BEGIN_EXPORT,
    DOC_ID,
    EXPORT_COMPLETE,
    PAGE_LIST_FIRST,
    PAGE_LIST_LAST,
    PAGE_ROOT,
    RESOLVED_PAGE_LINK,
    RESOLVED_TABLE_LINK,
    WHOAMI,
)

BASE = "https://coda.io/apis/v1"
PAGE_URL = f"{BASE}/docs/{DOC_ID}/pages/canvas-root"
DOWNLOAD_URL = EXPORT_COMPLETE["downloadLink"]


def make_client(token: str = "test-token") -> CodaClient:
    return CodaClient(token, base_url=BASE, rate_limiter=RateLimiter(RateLimitConfig()))


class TestClientSetup:
    """Tests for token handling."""

    def test_missing_token_is_not_an_error_at_construction(self):
        client = CodaClient("", base_url=BASE)

        assert client.is_configured is False
        with pytest.raises(ConfigurationError):
            client.require_token()

    def test_token_from_settings(self, monkeypatch):
        monkeypatch.setenv("CODA_API_TOKEN", "env-token")

        assert CodaClient(base_url=BASE).is_configured is True

    @pytest.mark.asyncio
    async def test_no_request_without_token(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(PAGE_URL).mock(return_value=httpx.Response(200, json=PAGE_ROOT))

            async with make_client(token="  ") as client:
                with pytest.raises(ConfigurationError):
                    await client.get_page(DOC_ID, "canvas-root")

        assert not route.called


class TestPages:
    """Tests for page endpoints."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_page(self):
        route = respx.get(PAGE_URL).mock(return_value=httpx.Response(200, json=PAGE_ROOT))

        async with make_client() as client:
            page = await client.get_page(DOC_ID, "canvas-root")

        assert page.name == "Handbook"
        assert [child.id for child in page.children] == ["canvas-onboarding", "canvas-rituals"]
        assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    @respx.mock
    async def test_iter_pages_follows_continuation(self):
        respx.get(f"{BASE}/docs/{DOC_ID}/pages", params={"pageToken": "eyJsaW1pd"}).mock(
            return_value=httpx.Response(200, json=PAGE_LIST_LAST)
        )
        respx.get(f"{BASE}/docs/{DOC_ID}/pages", params={"limit": "100"}).mock(
            return_value=httpx.Response(200, json=PAGE_LIST_FIRST)
        )

        async with make_client() as client:
            pages = [page async for page in client.iter_pages(DOC_ID)]

        assert [p.id for p in pages] == ["canvas-root", "canvas-onboarding", "canvas-rituals"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_page_scheduled_as_read(self):
        respx.get(PAGE_URL).mock(return_value=httpx.Response(200, json=PAGE_ROOT))
        client = make_client()

        with patch.object(
            client.rate_limiter, "schedule", wraps=client.rate_limiter.schedule
        ) as schedule:
            await client.get_page(DOC_ID, "canvas-root")
        await client.close()

        assert schedule.call_args.args[0] == RateLimitCategory.READ


class TestExport:
    """Tests for export endpoints."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_begin_page_export(self):
        route = respx.post(f"{PAGE_URL}/export").mock(
            return_value=httpx.Response(202, json=BEGIN_EXPORT)
        )
        client = make_client()

        with patch.object(
            client.rate_limiter, "schedule", wraps=client.rate_limiter.schedule
        ) as schedule:
            response = await client.begin_page_export(DOC_ID, "canvas-root")
        await client.close()

        assert response.id == "AbCDeFGH-export-1"
        assert response.status == ExportStatus.IN_PROGRESS
        assert json.loads(route.calls.last.request.content) == {"outputFormat": "markdown"}
        assert schedule.call_args.args[0] == RateLimitCategory.WRITE_CONTENT

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_export_status(self):
        respx.get(f"{PAGE_URL}/export/AbCDeFGH-export-1").mock(
            return_value=httpx.Response(200, json=EXPORT_COMPLETE)
        )

        async with make_client() as client:
            status = await client.get_export_status(DOC_ID, "canvas-root", "AbCDeFGH-export-1")

        assert status.status == ExportStatus.COMPLETE
        assert status.download_link == DOWNLOAD_URL

    @pytest.mark.asyncio
    @respx.mock
    async def test_download_export_is_unauthenticated(self):
        route = respx.get(DOWNLOAD_URL).mock(return_value=httpx.Response(200, text="# Handbook\n"))

        async with make_client() as client:
            content = await client.download_export(DOWNLOAD_URL)

        assert content == "# Handbook\n"
        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_begin_export_without_id_rejected(self):
        respx.post(f"{PAGE_URL}/export").mock(
            return_value=httpx.Response(202, json={"status": "inProgress"})
        )

        async with make_client() as client:
            with pytest.raises(CodaClientError, match="Unexpected payload") as exc_info:
                await client.begin_page_export(DOC_ID, "canvas-root")

        assert not isinstance(exc_info.value, TransientRemoteError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_unknown_export_status_rejected(self):
        respx.get(f"{PAGE_URL}/export/AbCDeFGH-export-1").mock(
            return_value=httpx.Response(200, json={**EXPORT_COMPLETE, "status": "exploded"})
        )

        async with make_client() as client:
            with pytest.raises(CodaClientError, match="Unexpected payload") as exc_info:
                await client.get_export_status(DOC_ID, "canvas-root", "AbCDeFGH-export-1")

        assert not isinstance(exc_info.value, TransientRemoteError)


class TestErrorMapping:
    """Tests for HTTP error to exception mapping."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_not_found(self):
        respx.get(PAGE_URL).mock(return_value=httpx.Response(404, json=API_ERROR_NOT_FOUND))

        async with make_client() as client:
            with pytest.raises(CodaNotFoundError, match="Could not find a page") as exc_info:
                await client.get_page(DOC_ID, "canvas-root")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    @respx.mock
    async def test_unauthorized(self):
        respx.get(f"{BASE}/whoami").mock(
            return_value=httpx.Response(401, json=API_ERROR_UNAUTHORIZED)
        )

        async with make_client() as client:
            with pytest.raises(CodaAuthenticationError):
                await client.whoami()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limited_is_transient(self):
        respx.get(PAGE_URL).mock(
            return_value=httpx.Response(429, headers={"Retry-After": "6"}, text="Too Many Requests")
        )

        async with make_client() as client:
            with pytest.raises(CodaRateLimitError) as exc_info:
                await client.get_page(DOC_ID, "canvas-root")

        assert isinstance(exc_info.value, TransientRemoteError)
        assert exc_info.value.retry_at is not None

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_transient(self):
        respx.get(PAGE_URL).mock(return_value=httpx.Response(503, text="Service Unavailable"))

        async with make_client() as client:
            with pytest.raises(TransientRemoteError) as exc_info:
                await client.get_page(DOC_ID, "canvas-root")

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @respx.mock
    async def test_bad_request_is_not_transient(self):
        respx.post(f"{PAGE_URL}/export").mock(
            return_value=httpx.Response(
                400,
                json={"statusCode": 400, "statusMessage": "Bad Request", "message": "Invalid format"},
            )
        )

        async with make_client() as client:
            with pytest.raises(CodaClientError) as exc_info:
                await client.begin_page_export(DOC_ID, "canvas-root")

        assert not isinstance(exc_info.value, TransientRemoteError)
        assert "Invalid format" in str(exc_info.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_is_transient(self):
        respx.get(PAGE_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        async with make_client() as client:
            with pytest.raises(TransientRemoteError, match="Network error"):
                await client.get_page(DOC_ID, "canvas-root")


class TestLinkResolution:
    """Tests for browser link resolution."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_resolve_page_identifier(self):
        route = respx.get(f"{BASE}/resolveBrowserLink").mock(
            return_value=httpx.Response(200, json=RESOLVED_PAGE_LINK)
        )
        url = RESOLVED_PAGE_LINK["browserLink"]

        async with make_client() as client:
            page = await client.resolve_page_identifier(url)

        assert page == PageIdentifier(DOC_ID, "canvas-root")
        assert route.calls.last.request.url.params["url"] == url

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_page_link_rejected(self):
        respx.get(f"{BASE}/resolveBrowserLink").mock(
            return_value=httpx.Response(200, json=RESOLVED_TABLE_LINK)
        )

        async with make_client() as client:
            link = await client.resolve_browser_link(RESOLVED_TABLE_LINK["browserLink"])
            assert link.resource.type == ResourceType.TABLE
            with pytest.raises(CodaClientError, match="not a page"):
                await client.resolve_page_identifier(RESOLVED_TABLE_LINK["browserLink"])

    @pytest.mark.asyncio
    @respx.mock
    async def test_whoami(self):
        respx.get(f"{BASE}/whoami").mock(return_value=httpx.Response(200, json=WHOAMI))

        async with make_client() as client:
            user = await client.whoami()

        assert user.name == "Ada Example"

    @pytest.mark.parametrize(
        ("href", "expected"),
        [
            (f"{PAGE_URL}", PageIdentifier(DOC_ID, "canvas-root")),
            (f"{PAGE_URL}?x=1", PageIdentifier(DOC_ID, "canvas-root")),
            (f"{BASE}/docs/{DOC_ID}/tables/grid-1", None),
        ],
    )
    def test_page_identifier_from_href(self, href, expected):
        assert page_identifier_from_href(href) == expected
