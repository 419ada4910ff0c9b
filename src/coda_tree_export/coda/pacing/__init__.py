"""Request pacing for the Coda API.

Components:
- RateLimiter: Per-category reservoir, concurrency and spacing control
- RetryPolicy: Bounded exponential backoff for single calls
- fan_out: Concurrent batch execution with per-item error containment
- ProgressReporter: Observable progress reporting
"""

from .batch import BatchResult, fan_out
from .limiter import CategoryLimiter, RateLimitCategory, RateLimiter
from .progress import ExportPhase, ExportProgress, ProgressCallback, ProgressReporter
from .retry import RetryPolicy, with_retry

__all__ = [
    # Batch execution
    "BatchResult",
    "fan_out",
    # Rate limiting
    "CategoryLimiter",
    "RateLimitCategory",
    "RateLimiter",
    # Progress reporting
    "ExportPhase",
    "ExportProgress",
    "ProgressCallback",
    "ProgressReporter",
    # Retry
    "RetryPolicy",
    "with_retry",
]
