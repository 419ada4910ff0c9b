"""Pydantic schemas for parsing Coda API responses.

These schemas map directly to the Coda REST API v1 response structure.
See: https://coda.io/developers/apis/v1
"""

from pydantic import Field

from .base import CodaModel
from .enums import ExportStatus, OutputFormat, ResourceType


class ApiError(CodaModel):
    """Error body returned with non-2xx responses."""

    status_code: int = Field(description="HTTP status code")
    status_message: str = Field(description="HTTP status text")
    message: str = Field(description="Human-readable error")


class WorkspaceReference(CodaModel):
    """Workspace the token belongs to."""

    id: str = Field(description="Workspace ID")
    name: str = Field(default="", description="Workspace name")
    browser_link: str | None = Field(default=None, description="Workspace URL")
    organization_id: str | None = Field(default=None, description="Organization ID")


class CodaUser(CodaModel):
    """User object from the /whoami endpoint."""

    name: str = Field(description="Display name")
    login_id: str = Field(description="Login email")
    scoped: bool = Field(default=False, description="Whether the token is scoped")
    token_name: str = Field(default="", description="Name of the API token")
    workspace: WorkspaceReference | None = Field(default=None, description="Token workspace")


class PageReference(CodaModel):
    """Minimal page info used in child lists and page listings."""

    id: str = Field(description="Page ID")
    name: str = Field(default="", description="Page name")
    href: str | None = Field(default=None, description="API link to the page")
    browser_link: str | None = Field(default=None, description="Browser link to the page")


class CodaPage(CodaModel):
    """Full page details.

    Maps to: GET /docs/{docId}/pages/{pageId}
    """

    id: str = Field(description="Page ID")
    name: str = Field(description="Page name")
    href: str | None = Field(default=None, description="API link to the page")
    browser_link: str | None = Field(default=None, description="Browser link to the page")
    subtitle: str | None = Field(default=None, description="Page subtitle")
    content_type: str | None = Field(default=None, description="canvas or embed")
    is_hidden: bool = Field(default=False, description="Whether the page is hidden")
    parent: PageReference | None = Field(default=None, description="Parent page")
    children: list[PageReference] = Field(default_factory=list, description="Subpages in order")
    created_at: str | None = Field(default=None, description="Creation timestamp")
    updated_at: str | None = Field(default=None, description="Last modification timestamp")


class PageList(CodaModel):
    """One page of results from GET /docs/{docId}/pages."""

    items: list[PageReference] = Field(default_factory=list, description="Pages")
    next_page_token: str | None = Field(default=None, description="Continuation token")


class BeginExportRequest(CodaModel):
    """Request body for starting a page content export."""

    output_format: OutputFormat = Field(default=OutputFormat.MARKDOWN)


class BeginExportResponse(CodaModel):
    """Response from starting a page content export.

    Maps to: POST /docs/{docId}/pages/{pageId}/export
    """

    id: str = Field(description="Export request ID")
    status: ExportStatus = Field(description="Initial export status")
    href: str | None = Field(default=None, description="Status polling link")


class ExportStatusResponse(CodaModel):
    """Response from checking a page content export.

    Maps to: GET /docs/{docId}/pages/{pageId}/export/{requestId}
    """

    id: str = Field(description="Export request ID")
    status: ExportStatus = Field(description="Current export status")
    href: str | None = Field(default=None, description="Status polling link")
    download_link: str | None = Field(default=None, description="Time-limited content URL")
    error: str | None = Field(default=None, description="Failure reason")


class ResolvedResource(CodaModel):
    """Resource a browser link points to."""

    type: ResourceType = Field(description="Resource type")
    id: str = Field(description="Resource ID")
    href: str = Field(description="API link to the resource")
    name: str | None = Field(default=None, description="Resource name")


class ApiLink(CodaModel):
    """Response from GET /resolveBrowserLink."""

    href: str = Field(description="API link of the resolution")
    browser_link: str = Field(description="The resolved browser URL")
    resource: ResolvedResource = Field(description="Resolved resource")
