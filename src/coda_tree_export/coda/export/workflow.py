"""Single-page export workflow.

Lifecycle of one page export:

    NOT_STARTED -> SUBMITTED -> POLLING -> COMPLETE
                                        -> FAILED
                                        -> TIMED_OUT

Submission and content download are retried on transient errors. Polling
tolerates transient errors until its last attempt. The settle delay between
submission and polling belongs to the orchestrator, which waits once per
batch.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING

from coda_tree_export.coda.exceptions import (
    ExportTimeoutError,
    RemoteJobFailure,
    TransientRemoteError,
)
from coda_tree_export.coda.pacing.retry import RetryPolicy, Sleep
from coda_tree_export.config import ExportConfig
from coda_tree_export.logging import bind_page
from coda_tree_export.schemas.enums import ExportStatus
from coda_tree_export.schemas.hierarchy import HierarchyNode, PageIdentifier

from .cache import ContentCache, JobCache

if TYPE_CHECKING:
    from coda_tree_export.coda.client import CodaClient


class WorkflowState(StrEnum):
    """State of a single page export."""

    NOT_STARTED = "not_started"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self in (WorkflowState.COMPLETE, WorkflowState.FAILED, WorkflowState.TIMED_OUT)


class ExportWorkflow:
    """Exports the content of one page.

    Usage:
        workflow = ExportWorkflow(node, client, job_cache=jobs, content_cache=contents)
        await workflow.submit()
        await asyncio.sleep(config.settle_delay)
        markdown = await workflow.poll_and_fetch()
    """

    def __init__(
        self,
        node: HierarchyNode,
        client: CodaClient,
        *,
        job_cache: JobCache,
        content_cache: ContentCache,
        config: ExportConfig | None = None,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the workflow.

        Args:
            node: Page to export
            client: Coda API client
            job_cache: Cache of recently submitted jobs
            content_cache: Cache of exported content
            config: Export timing configuration (defaults apply if omitted)
            retry: Retry policy for submission and download
            sleep: Sleep function (injectable for tests)
        """
        self._node = node
        self._client = client
        self._job_cache = job_cache
        self._content_cache = content_cache
        self._config = config or ExportConfig()
        self._retry = retry or RetryPolicy.from_config(
            self._config, retry_on=(TransientRemoteError,), sleep=sleep
        )
        self._sleep = sleep
        self._log = bind_page(node.doc_id, node.page_id)

        self._state = WorkflowState.NOT_STARTED
        self._export_id: str | None = None
        self._error: Exception | None = None

    @property
    def node(self) -> HierarchyNode:
        """Page being exported."""
        return self._node

    @property
    def identifier(self) -> PageIdentifier:
        """Identity of the page being exported."""
        return self._node.identifier

    @property
    def state(self) -> WorkflowState:
        """Current lifecycle state."""
        return self._state

    @property
    def export_id(self) -> str | None:
        """Remote job id once submitted or resumed."""
        return self._export_id

    @property
    def error(self) -> Exception | None:
        """Failure that ended the workflow, if any."""
        return self._error

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------
    async def submit(self) -> str:
        """Start the remote export job.

        Returns:
            The remote job id

        Raises:
            CodaClientError: If submission still fails after retries
        """
        self._expect(WorkflowState.NOT_STARTED)
        try:
            response = await self._retry.run(
                lambda: self._client.begin_page_export(
                    self._node.doc_id,
                    self._node.page_id,
                    self._config.output_format,
                ),
                description=f"Export submission for {self.identifier}",
            )
        except Exception as e:
            self._fail(e)
            raise

        self._export_id = response.id
        self._job_cache.set(self.identifier, response.id)
        self._state = WorkflowState.SUBMITTED
        self._log.debug("Submitted export job {}", response.id)
        return response.id

    def resume(self, export_id: str) -> None:
        """Adopt a previously submitted job instead of submitting a new one."""
        self._expect(WorkflowState.NOT_STARTED)
        self._export_id = export_id
        self._state = WorkflowState.SUBMITTED
        self._log.debug("Resuming cached export job {}", export_id)

    # -------------------------------------------------------------------------
    # Polling & download
    # -------------------------------------------------------------------------
    async def poll_and_fetch(self) -> str:
        """Wait for the job to finish and download its content.

        Returns:
            Exported page content

        Raises:
            RemoteJobFailure: If the job failed remotely
            ExportTimeoutError: If the job did not finish within the poll budget
            CodaClientError: If polling or download failed
        """
        self._expect(WorkflowState.SUBMITTED)
        self._state = WorkflowState.POLLING

        try:
            download_link = await self._poll_until_complete()
            content = await self._retry.run(
                lambda: self._client.download_export(download_link),
                description=f"Content download for {self.identifier}",
            )
        except ExportTimeoutError as e:
            self._error = e
            self._state = WorkflowState.TIMED_OUT
            self._job_cache.invalidate(self.identifier)
            self._log.warning("{}", e)
            raise
        except Exception as e:
            self._fail(e)
            raise

        # A downloaded job only ever yields this content again.
        self._job_cache.invalidate(self.identifier)
        self._content_cache.set(self.identifier, content, self._node.updated_at)
        self._state = WorkflowState.COMPLETE
        self._log.debug("Fetched {} characters", len(content))
        return content

    async def _poll_until_complete(self) -> str:
        assert self._export_id is not None
        max_attempts = self._config.max_poll_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                status = await self._client.get_export_status(
                    self._node.doc_id,
                    self._node.page_id,
                    self._export_id,
                )
            except TransientRemoteError as e:
                if attempt == max_attempts:
                    raise
                self._log.debug("Status check {} failed, will retry: {}", attempt, e)
            else:
                if status.status == ExportStatus.COMPLETE:
                    if not status.download_link:
                        raise RemoteJobFailure("Export completed without a download link")
                    return status.download_link
                if status.status == ExportStatus.FAILED:
                    raise RemoteJobFailure(status.error or "Export failed")

            if attempt < max_attempts:
                await self._sleep(self._config.poll_interval)

        raise ExportTimeoutError(max_attempts)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _expect(self, state: WorkflowState) -> None:
        if self._state != state:
            raise RuntimeError(f"Workflow is {self._state.value}, expected {state.value}")

    def _fail(self, error: Exception) -> None:
        self._error = error
        self._state = WorkflowState.FAILED
        self._job_cache.invalidate(self.identifier)
        self._log.warning("Export failed: {}", error)
