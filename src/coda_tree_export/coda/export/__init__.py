"""Page tree export.

This module provides:
- HierarchyDiscoverer: Builds the page tree below a root page
- ExportWorkflow: Submits, polls and downloads one page export
- JobCache / ContentCache: In-memory reuse of jobs and content
- ContentCombiner: Merges page content in tree order
- BatchOrchestrator: Runs a complete tree export
"""

from .cache import CachedContent, ContentCache, ExportJob, JobCache, utc_now
from .combiner import ContentCombiner
from .discovery import HierarchyDiscoverer, flatten_breadth_first, group_by_depth
from .naming import generate_file_name, slugify_page_id
from .orchestrator import BatchOrchestrator
from .results import FailedExport, TreeExportResult
from .workflow import ExportWorkflow, WorkflowState

__all__ = [
    # Caches
    "CachedContent",
    "ContentCache",
    "ExportJob",
    "JobCache",
    "utc_now",
    # Discovery
    "HierarchyDiscoverer",
    "flatten_breadth_first",
    "group_by_depth",
    # Naming
    "generate_file_name",
    "slugify_page_id",
    # Workflow
    "ExportWorkflow",
    "WorkflowState",
    # Orchestration
    "BatchOrchestrator",
    "ContentCombiner",
    "FailedExport",
    "TreeExportResult",
]
