"""Tree export orchestrator.

Exports a page and its subpages as one combined document in three steps:

1. Discovery builds the page tree; any failure aborts the export.
2. Submission starts one export job per page, one page at a time, reusing
   cached content and cached job ids where possible.
3. Polling waits for every pending job concurrently; the rate limiter is the
   only throttle. Failures are recorded per page and never stop siblings.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from coda_tree_export.coda.exceptions import TransientRemoteError
from coda_tree_export.coda.pacing.batch import fan_out
from coda_tree_export.coda.pacing.progress import ProgressCallback, ProgressReporter
from coda_tree_export.coda.pacing.retry import RetryPolicy, Sleep
from coda_tree_export.config import ExportConfig, NestedExportSettings, get_settings
from coda_tree_export.logging import LogContext, get_logger
from coda_tree_export.schemas.hierarchy import HierarchyNode, PageIdentifier

from .cache import ContentCache, JobCache
from .combiner import ContentCombiner
from .discovery import HierarchyDiscoverer, flatten_breadth_first
from .results import FailedExport, TreeExportResult
from .workflow import ExportWorkflow

if TYPE_CHECKING:
    from coda_tree_export.coda.client import CodaClient

logger = get_logger(__name__)


class BatchOrchestrator:
    """Exports page trees through the Coda API.

    Caches live as long as the orchestrator, so repeated exports of the
    same pages reuse content and job ids.

    Usage:
        async with CodaClient() as client:
            orchestrator = BatchOrchestrator(client)
            result = await orchestrator.export_tree(
                PageIdentifier("AbCdEf", "canvas-123"),
                NestedExportSettings(include_nested=True, depth=2),
                on_progress=lambda p: print(p.message),
            )
            print(result.combined_content)
    """

    def __init__(
        self,
        client: CodaClient,
        *,
        config: ExportConfig | None = None,
        job_cache: JobCache | None = None,
        content_cache: ContentCache | None = None,
        discoverer: HierarchyDiscoverer | None = None,
        combiner: ContentCombiner | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Coda API client
            config: Export configuration (uses settings if not provided)
            job_cache: Cache of submitted jobs
            content_cache: Cache of exported content
            discoverer: Hierarchy discoverer
            combiner: Content combiner
            sleep: Sleep function (injectable for tests)
        """
        self._client = client
        self._config = config or get_settings().export
        self._job_cache = job_cache or JobCache(ttl=self._config.job_cache_ttl)
        self._content_cache = content_cache or ContentCache(
            freshness=self._config.content_freshness
        )
        self._discoverer = discoverer or HierarchyDiscoverer(client)
        self._combiner = combiner or ContentCombiner()
        self._sleep = sleep
        self._retry = RetryPolicy.from_config(
            self._config, retry_on=(TransientRemoteError,), sleep=sleep
        )

    @property
    def job_cache(self) -> JobCache:
        """Cache of submitted jobs."""
        return self._job_cache

    @property
    def content_cache(self) -> ContentCache:
        """Cache of exported content."""
        return self._content_cache

    def _workflow(self, node: HierarchyNode) -> ExportWorkflow:
        return ExportWorkflow(
            node,
            self._client,
            job_cache=self._job_cache,
            content_cache=self._content_cache,
            config=self._config,
            retry=self._retry,
            sleep=self._sleep,
        )

    # -------------------------------------------------------------------------
    # Tree export
    # -------------------------------------------------------------------------
    async def export_tree(
        self,
        root: PageIdentifier,
        settings: NestedExportSettings | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TreeExportResult:
        """Export ``root`` and its subpages as one document.

        Args:
            root: Page to start from
            settings: Nested export settings (uses settings if not provided)
            on_progress: Optional progress callback

        Returns:
            TreeExportResult, possibly with per-page failures

        Raises:
            ConfigurationError: If no API token is configured
            CodaClientError: If discovery fails
        """
        self._client.require_token()
        settings = settings or get_settings().nested

        reporter = ProgressReporter(f"export of {root}")
        if on_progress:
            reporter.on_progress(on_progress)

        start_time = time.monotonic()

        with LogContext(doc=root.doc_id, page=root.page_id):
            reporter.discovering("Discovering nested pages...")
            try:
                discovery = await self._discoverer.discover(root, settings.effective_depth)
            except Exception as e:
                reporter.failed(f"Discovery failed: {e}")
                raise

            result = TreeExportResult(
                total_pages=discovery.total_pages,
                by_depth=dict(discovery.by_depth),
            )
            nodes = [
                node
                for node in flatten_breadth_first(discovery.tree)
                if not node.is_circular_reference
            ]
            total = len(nodes)
            contents: dict[str, str] = {}

            pending = await self._submit_all(nodes, contents, result, reporter)

            if pending:
                logger.debug(
                    "Waiting {:.1f}s for {} export jobs to settle",
                    self._config.settle_delay,
                    len(pending),
                )
                await self._sleep(self._config.settle_delay)

            completed = total - len(pending)

            def on_success(workflow: ExportWorkflow, content: str) -> None:
                nonlocal completed
                contents[workflow.node.page_id] = content
                completed += 1
                reporter.exporting(
                    f"Exported {workflow.node.name} ({completed}/{total})",
                    processed=completed,
                    total=total,
                )

            def on_failure(workflow: ExportWorkflow, error: Exception) -> None:
                nonlocal completed
                result.failed_pages.append(FailedExport.from_node(workflow.node, error))
                completed += 1
                reporter.exporting(
                    f"Failed to export {workflow.node.name} ({completed}/{total})",
                    processed=completed,
                    total=total,
                )

            await fan_out(
                pending,
                lambda workflow: workflow.poll_and_fetch(),
                on_success=on_success,
                on_failure=on_failure,
            )

            reporter.combining("Combining content...", processed=completed, total=total)
            result.combined_content = self._combiner.combine(contents, discovery.tree)
            result.successful_pages = len(contents)
            result.duration_seconds = time.monotonic() - start_time

            if result.success:
                message = f"Export complete! {result.successful_pages} pages exported"
            else:
                message = (
                    f"Export finished: {result.successful_pages} of {total} pages exported, "
                    f"{len(result.failed_pages)} failed"
                )
            reporter.complete(message, processed=completed, total=total)

        return result

    async def _submit_all(
        self,
        nodes: list[HierarchyNode],
        contents: dict[str, str],
        result: TreeExportResult,
        reporter: ProgressReporter,
    ) -> list[ExportWorkflow]:
        """Submit export jobs one page at a time.

        Returns:
            Workflows waiting to be polled
        """
        pending: list[ExportWorkflow] = []
        total = len(nodes)

        for index, node in enumerate(nodes, start=1):
            cached = self._content_cache.get(node.identifier, node.updated_at)
            if cached is not None:
                logger.debug("Using cached content for {}", node.identifier)
                contents[node.page_id] = cached
            else:
                workflow = self._workflow(node)
                job = self._job_cache.get(node.identifier)
                if job is not None:
                    workflow.resume(job.export_id)
                    pending.append(workflow)
                else:
                    try:
                        await workflow.submit()
                    except Exception as e:
                        result.failed_pages.append(FailedExport.from_node(node, e))
                    else:
                        pending.append(workflow)

            reporter.exporting(
                f"Submitted {index} of {total} pages",
                processed=index,
                total=total,
            )

        return pending

    # -------------------------------------------------------------------------
    # Single page export
    # -------------------------------------------------------------------------
    async def export_page(self, page: PageIdentifier) -> str:
        """Export a single page without its subpages.

        Fresh cached content is returned without any remote call.

        Raises:
            ConfigurationError: If no API token is configured
            CodaExportError: If the export fails
        """
        self._client.require_token()

        cached = self._content_cache.get(page)
        if cached is not None:
            logger.debug("Using cached content for {}", page)
            return cached

        node = HierarchyNode(
            page_id=page.page_id,
            doc_id=page.doc_id,
            name=page.page_id,
            depth=0,
            path="0",
        )
        workflow = self._workflow(node)
        job = self._job_cache.get(page)
        if job is not None:
            workflow.resume(job.export_id)
        else:
            await workflow.submit()
            await self._sleep(self._config.settle_delay)

        return await workflow.poll_and_fetch()
