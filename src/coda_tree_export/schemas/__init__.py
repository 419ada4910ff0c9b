"""Pydantic schemas and data models for Coda Tree Export.

This module provides API response parsing models and the page hierarchy types.
"""

from .base import CodaModel
from .coda_api import (
    ApiError,
    ApiLink,
    BeginExportRequest,
    BeginExportResponse,
    CodaPage,
    CodaUser,
    ExportStatusResponse,
    PageList,
    PageReference,
    ResolvedResource,
    WorkspaceReference,
)
from .enums import DisplayFormat, ExportStatus, OutputFormat, ResourceType
from .hierarchy import (
    CIRCULAR_REFERENCE_NAME,
    HierarchyNode,
    PageCountResult,
    PageIdentifier,
)

__all__ = [
    # Base
    "CodaModel",
    # Coda API
    "ApiError",
    "ApiLink",
    "BeginExportRequest",
    "BeginExportResponse",
    "CodaPage",
    "CodaUser",
    "ExportStatusResponse",
    "PageList",
    "PageReference",
    "ResolvedResource",
    "WorkspaceReference",
    # Enums
    "DisplayFormat",
    "ExportStatus",
    "OutputFormat",
    "ResourceType",
    # Hierarchy
    "CIRCULAR_REFERENCE_NAME",
    "HierarchyNode",
    "PageCountResult",
    "PageIdentifier",
]
