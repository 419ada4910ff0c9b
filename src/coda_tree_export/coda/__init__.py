"""Coda API client module.

This module provides:
- CodaClient: Async Coda API client with per-category rate limiting
- Exceptions: CodaExportError and its subclasses
- Request pacing: RateLimiter, RateLimitCategory, RetryPolicy
- Tree export: BatchOrchestrator, TreeExportResult
"""

from .client import CodaClient
from .exceptions import (
    CodaAuthenticationError,
    CodaClientError,
    CodaExportError,
    CodaNotFoundError,
    CodaRateLimitError,
    ConfigurationError,
    ExportTimeoutError,
    QueueClearedError,
    RemoteJobFailure,
    TransientRemoteError,
)
from .export import (
    BatchOrchestrator,
    ContentCache,
    ContentCombiner,
    ExportWorkflow,
    FailedExport,
    HierarchyDiscoverer,
    JobCache,
    TreeExportResult,
    WorkflowState,
)
from .pacing import (
    ExportPhase,
    ExportProgress,
    ProgressReporter,
    RateLimitCategory,
    RateLimiter,
    RetryPolicy,
)

__all__ = [
    # Client
    "CodaClient",
    # Exceptions
    "CodaAuthenticationError",
    "CodaClientError",
    "CodaExportError",
    "CodaNotFoundError",
    "CodaRateLimitError",
    "ConfigurationError",
    "ExportTimeoutError",
    "QueueClearedError",
    "RemoteJobFailure",
    "TransientRemoteError",
    # Pacing
    "ExportPhase",
    "ExportProgress",
    "ProgressReporter",
    "RateLimitCategory",
    "RateLimiter",
    "RetryPolicy",
    # Export
    "BatchOrchestrator",
    "ContentCache",
    "ContentCombiner",
    "ExportWorkflow",
    "FailedExport",
    "HierarchyDiscoverer",
    "JobCache",
    "TreeExportResult",
    "WorkflowState",
]
