"""Async Coda API client wrapper using httpx.

This module provides a typed async interface to the Coda REST API for page
discovery and page content export. Every API call is admitted through the
per-category RateLimiter; downloading exported content is not throttled.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from coda_tree_export.config import get_settings
from coda_tree_export.logging import get_logger
from coda_tree_export.schemas.base import CodaModel
from coda_tree_export.schemas.coda_api import (
    ApiError,
    ApiLink,
    BeginExportRequest,
    BeginExportResponse,
    CodaPage,
    CodaUser,
    ExportStatusResponse,
    PageList,
    PageReference,
)
from coda_tree_export.schemas.enums import OutputFormat
from coda_tree_export.schemas.hierarchy import PageIdentifier

from .exceptions import (
    CodaAuthenticationError,
    CodaClientError,
    CodaNotFoundError,
    CodaRateLimitError,
    ConfigurationError,
    TransientRemoteError,
)
from .pacing.limiter import RateLimitCategory, RateLimiter

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=CodaModel)

_PAGE_HREF_PATTERN = re.compile(r"/docs/([^/]+)/pages/([^/?#]+)")


def page_identifier_from_href(href: str) -> PageIdentifier | None:
    """Extract the doc and page ids from an API page link."""
    match = _PAGE_HREF_PATTERN.search(href)
    if match is None:
        return None
    return PageIdentifier(doc_id=match.group(1), page_id=match.group(2))


def _segment(value: str) -> str:
    """Encode a single path segment."""
    return quote(value, safe="")


def _parse(model: type[ModelT], data: Any, what: str) -> ModelT:
    """Validate a response body, reporting malformed payloads as client errors."""
    try:
        return model.from_api(data)
    except ValidationError as e:
        raise CodaClientError(f"Unexpected payload for {what}: {e}") from e


class CodaClient:
    """Async Coda API client for page discovery and export.

    Usage:
        async with CodaClient() as client:
            page = await client.get_page("AbCdEf", "canvas-123")
            print(page.name)

    Or without context manager:
        client = CodaClient()
        page = await client.get_page("AbCdEf", "canvas-123")
        await client.close()
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the Coda client.

        A missing token is not an error here; it is reported by
        ``require_token`` before the first export.

        Args:
            token: Coda API token. If not provided, uses CODA_API_TOKEN from settings.
            base_url: API base URL. If not provided, uses CODA_BASE_URL from settings.
            rate_limiter: Shared RateLimiter. A private one is created if omitted.
            http_client: Pre-built httpx client (tests inject a mocked one).
            timeout: HTTP timeout in seconds.
        """
        settings = get_settings()
        self._token = (token if token is not None else settings.coda_api_token).strip()
        self._base_url = (base_url or settings.coda_base_url).rstrip("/")
        self._rate_limiter = rate_limiter or RateLimiter(settings.rate_limit)
        self._timeout = timeout or settings.export.request_timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def is_configured(self) -> bool:
        """Whether an API token is available."""
        return bool(self._token)

    @property
    def rate_limiter(self) -> RateLimiter:
        """Access the rate limiter shared by all calls."""
        return self._rate_limiter

    def require_token(self) -> None:
        """Fail fast when no token is configured.

        Raises:
            ConfigurationError: If no API token is available
        """
        if not self.is_configured:
            raise ConfigurationError(
                "Coda API token required. Set CODA_API_TOKEN environment variable."
            )

    @property
    def _http(self) -> httpx.AsyncClient:
        """Get or create the httpx client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": "coda-tree-export"},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> CodaClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------
    async def _request(
        self,
        category: RateLimitCategory,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request under the category's quota.

        Returns:
            Decoded JSON body
        """
        self.require_token()
        url = f"{self._base_url}{path}"

        async def send() -> httpx.Response:
            return await self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {self._token}"},
            )

        try:
            response = await self._rate_limiter.schedule(category, send)
        except httpx.TransportError as e:
            raise TransientRemoteError(f"Network error calling {method} {path}: {e}") from e

        if response.is_error:
            raise self._handle_error(response)

        logger.trace("{} {} -> {}", method, path, response.status_code)
        return response.json()

    # -------------------------------------------------------------------------
    # Account & link resolution
    # -------------------------------------------------------------------------
    async def whoami(self) -> CodaUser:
        """Get the user the token belongs to."""
        data = await self._request(RateLimitCategory.READ, "GET", "/whoami")
        return _parse(CodaUser, data, "whoami")

    async def resolve_browser_link(self, url: str) -> ApiLink:
        """Resolve a Coda browser URL to the API resource it points to.

        Raises:
            CodaNotFoundError: If the URL does not point to an accessible resource
        """
        data = await self._request(
            RateLimitCategory.READ,
            "GET",
            "/resolveBrowserLink",
            params={"url": url},
        )
        return _parse(ApiLink, data, f"browser link {url}")

    async def resolve_page_identifier(self, url: str) -> PageIdentifier:
        """Resolve a Coda browser URL to a page identifier.

        Raises:
            CodaClientError: If the URL does not resolve to a page
        """
        link = await self.resolve_browser_link(url)
        page = page_identifier_from_href(link.resource.href)
        if page is None:
            raise CodaClientError(
                f"URL resolves to a {link.resource.type.value}, not a page: {url}"
            )
        return page

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------
    async def iter_pages(self, doc_id: str, *, limit: int = 100) -> AsyncIterator[PageReference]:
        """Iterate over all pages of a doc, following continuation tokens."""
        params: dict[str, Any] = {"limit": limit}
        while True:
            data = await self._request(
                RateLimitCategory.READ,
                "GET",
                f"/docs/{_segment(doc_id)}/pages",
                params=params,
            )
            page_list = _parse(PageList, data, f"pages of {doc_id}")
            for item in page_list.items:
                yield item
            if not page_list.next_page_token:
                return
            params = {"pageToken": page_list.next_page_token}

    async def get_page(self, doc_id: str, page_id: str) -> CodaPage:
        """Get full details of a page, including its ordered children.

        Raises:
            CodaNotFoundError: If the page doesn't exist
        """
        data = await self._request(
            RateLimitCategory.READ,
            "GET",
            f"/docs/{_segment(doc_id)}/pages/{_segment(page_id)}",
        )
        return _parse(CodaPage, data, f"page {doc_id}:{page_id}")

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------
    async def begin_page_export(
        self,
        doc_id: str,
        page_id: str,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
    ) -> BeginExportResponse:
        """Start an asynchronous content export of a page."""
        body = BeginExportRequest(output_format=output_format).to_api()
        data = await self._request(
            RateLimitCategory.WRITE_CONTENT,
            "POST",
            f"/docs/{_segment(doc_id)}/pages/{_segment(page_id)}/export",
            json=body,
        )
        return _parse(BeginExportResponse, data, f"export of {doc_id}:{page_id}")

    async def get_export_status(
        self,
        doc_id: str,
        page_id: str,
        request_id: str,
    ) -> ExportStatusResponse:
        """Check the status of a page content export."""
        data = await self._request(
            RateLimitCategory.READ,
            "GET",
            f"/docs/{_segment(doc_id)}/pages/{_segment(page_id)}/export/{_segment(request_id)}",
        )
        return _parse(ExportStatusResponse, data, f"export status {request_id}")

    async def download_export(self, download_link: str) -> str:
        """Fetch exported content from its time-limited download link.

        The link is pre-signed: no Authorization header is sent and the
        call is not rate limited.
        """
        try:
            response = await self._http.get(download_link)
        except httpx.TransportError as e:
            raise TransientRemoteError(f"Network error downloading export: {e}") from e

        if response.is_error:
            raise self._handle_error(response)
        return response.text

    # -------------------------------------------------------------------------
    # Error Handling
    # -------------------------------------------------------------------------
    def _handle_error(self, response: httpx.Response) -> CodaClientError:
        """Convert an error response to our custom exceptions."""
        status = response.status_code
        message = self._error_message(response)

        if status in (401, 403):
            return CodaAuthenticationError(f"Access denied: {message}", status_code=status)
        elif status == 404:
            return CodaNotFoundError(message, status_code=status)
        elif status == 429:
            retry_after = response.headers.get("retry-after", "")
            retry_at = (
                datetime.now(UTC) + timedelta(seconds=int(retry_after))
                if retry_after.isdigit()
                else None
            )
            return CodaRateLimitError("Coda rate limit exceeded", retry_at=retry_at)
        elif status >= 500:
            return TransientRemoteError(f"Coda API error ({status}): {message}", status_code=status)
        else:
            return CodaClientError(f"Coda API error ({status}): {message}", status_code=status)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return ApiError.from_api(response.json()).message
        except (ValueError, ValidationError):
            return response.text or response.reason_phrase
