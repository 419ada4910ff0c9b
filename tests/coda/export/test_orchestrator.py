"""Tests for BatchOrchestrator tree and single-page exports.

The Coda client is a mock backed by an in-memory doc (tests.factories);
sleeps are recorded instead of awaited.
"""

import pytest

from coda_tree_export.coda.exceptions import CodaNotFoundError, ConfigurationError
from coda_tree_export.coda.export import BatchOrchestrator, ContentCache, JobCache
from coda_tree_export.coda.pacing import ExportPhase, ExportProgress
from coda_tree_export.config import ExportConfig, NestedExportSettings
from coda_tree_export.schemas import PageIdentifier
from tests.conftest import MAY_1_ISO, MAY_2_ISO
from tests.factories import DOC_ID, content_for, make_mock_client, make_page, remote_call_count

ROOT = PageIdentifier(DOC_ID, "root")
NESTED = NestedExportSettings(include_nested=True, depth=2)
UNLIMITED = NestedExportSettings(include_nested=True, depth="unlimited")


@pytest.fixture
def config() -> ExportConfig:
    return ExportConfig(max_poll_attempts=5)


@pytest.fixture
def make_orchestrator(config, clock, sleep):
    """Build an orchestrator whose caches run on the test clock."""

    def _make(client) -> BatchOrchestrator:
        return BatchOrchestrator(
            client,
            config=config,
            job_cache=JobCache(ttl=config.job_cache_ttl, clock=clock),
            content_cache=ContentCache(freshness=config.content_freshness, clock=clock),
            sleep=sleep,
        )

    return _make


def family_pages():
    return {
        "root": make_page("root", "Root", children=["a", "b"]),
        "a": make_page("a", "Alpha"),
        "b": make_page("b", "Beta"),
    }


class TestExportTree:
    @pytest.mark.asyncio
    async def test_exports_root_and_children(self, make_orchestrator):
        client = make_mock_client(family_pages())

        result = await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert result.success is True
        assert result.total_pages == 3
        assert result.successful_pages == 3
        assert result.failed_pages == []
        assert result.by_depth == {0: 1, 1: 2}
        assert client.begin_page_export.await_count == 3
        assert client.download_export.await_count == 3

    @pytest.mark.asyncio
    async def test_combined_content_in_tree_order(self, make_orchestrator):
        client = make_mock_client(family_pages())

        result = await make_orchestrator(client).export_tree(ROOT, NESTED)

        content = result.combined_content
        assert content.count("=" * 80) == 6
        assert content.index("Page: Root") < content.index("Page: Alpha")
        assert content.index("Page: Alpha") < content.index("Page: Beta")
        for page_id in ("root", "a", "b"):
            assert content_for(page_id) in content

    @pytest.mark.asyncio
    async def test_depth_zero_exports_root_only(self, make_orchestrator):
        client = make_mock_client(family_pages())

        result = await make_orchestrator(client).export_tree(
            ROOT, NestedExportSettings(include_nested=True, depth=0)
        )

        assert result.total_pages == 1
        assert result.successful_pages == 1
        assert client.get_page.await_count == 1

    @pytest.mark.asyncio
    async def test_nested_disabled_exports_root_only(self, make_orchestrator):
        client = make_mock_client(family_pages())

        result = await make_orchestrator(client).export_tree(
            ROOT, NestedExportSettings(include_nested=False, depth=5)
        )

        assert result.total_pages == 1
        assert client.begin_page_export.await_count == 1

    @pytest.mark.asyncio
    async def test_submission_failure_isolated(self, make_orchestrator, config):
        pages = {
            "root": make_page("root", "Root", children=["a"]),
            "a": make_page("a", "Alpha"),
        }
        client = make_mock_client(pages, failing_submissions=["a"])

        result = await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert result.success is False
        assert result.total_pages == 2
        assert result.successful_pages == 1
        assert [f.page_id for f in result.failed_pages] == ["a"]
        assert result.failed_pages[0].path == "0.1"
        assert result.error == "1 page failed to export"
        assert "Page: Root" in result.combined_content
        assert "Page: Alpha" not in result.combined_content
        # first attempt plus every retry
        assert client.begin_page_export.await_count == 1 + config.max_retries + 1

    @pytest.mark.asyncio
    async def test_remote_job_failure_recorded(self, make_orchestrator):
        client = make_mock_client(family_pages(), failing_jobs=["b"])

        result = await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert result.successful_pages == 2
        assert len(result.failed_pages) == 1
        failure = result.failed_pages[0]
        assert failure.page_id == "b"
        assert failure.page_name == "Beta"
        assert failure.error == "Export failed remotely"

    @pytest.mark.asyncio
    async def test_poll_timeout_recorded(self, make_orchestrator, config):
        client = make_mock_client(family_pages(), pending_polls=config.max_poll_attempts)

        result = await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert result.successful_pages == 0
        assert len(result.failed_pages) == 3
        assert all("timed out" in f.error for f in result.failed_pages)
        assert result.combined_content == ""

    @pytest.mark.asyncio
    async def test_circular_reference_counted_not_exported(self, make_orchestrator):
        pages = {
            "root": make_page("root", "Root", children=["a"]),
            "a": make_page("a", "Alpha", children=["root"]),
        }
        client = make_mock_client(pages)

        result = await make_orchestrator(client).export_tree(ROOT, UNLIMITED)

        assert result.total_pages == 3
        assert result.successful_pages == 2
        assert result.success is True
        assert client.begin_page_export.await_count == 2
        assert "Circular Reference" not in result.combined_content

    @pytest.mark.asyncio
    async def test_missing_token_makes_no_remote_calls(self, make_orchestrator):
        client = make_mock_client(family_pages())
        client.require_token.side_effect = ConfigurationError("Coda API token required")

        with pytest.raises(ConfigurationError):
            await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert remote_call_count(client) == 0

    @pytest.mark.asyncio
    async def test_discovery_failure_aborts(self, make_orchestrator):
        client = make_mock_client({})
        events: list[ExportProgress] = []

        with pytest.raises(CodaNotFoundError):
            await make_orchestrator(client).export_tree(ROOT, NESTED, on_progress=events.append)

        assert events[-1].state == ExportPhase.FAILED
        assert "Discovery failed" in events[-1].message
        assert client.begin_page_export.await_count == 0

    @pytest.mark.asyncio
    async def test_progress_events(self, make_orchestrator):
        client = make_mock_client(family_pages())
        events: list[ExportProgress] = []

        await make_orchestrator(client).export_tree(ROOT, NESTED, on_progress=events.append)

        states = [event.state for event in events]
        assert states[0] == ExportPhase.DISCOVERING
        assert states[-2:] == [ExportPhase.COMBINING, ExportPhase.COMPLETE]
        assert states.count(ExportPhase.EXPORTING) == 6
        assert events[-1].pages_processed == 3
        assert events[-1].total_pages == 3
        assert events[-1].progress_percent == 100.0

    @pytest.mark.asyncio
    async def test_settle_delay_before_polling(self, make_orchestrator, config, sleep):
        client = make_mock_client(family_pages())

        await make_orchestrator(client).export_tree(ROOT, NESTED)

        assert sleep.delays == [config.settle_delay]


class TestExportTreeCaching:
    @pytest.mark.asyncio
    async def test_second_run_reuses_content(self, make_orchestrator, sleep):
        client = make_mock_client(family_pages())
        orchestrator = make_orchestrator(client)

        first = await orchestrator.export_tree(ROOT, NESTED)
        sleep.delays.clear()
        second = await orchestrator.export_tree(ROOT, NESTED)

        assert second.combined_content == first.combined_content
        assert second.successful_pages == 3
        assert client.begin_page_export.await_count == 3
        assert client.download_export.await_count == 3
        # no pending jobs, so no settle delay
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_stale_content_exported_again(self, make_orchestrator, clock, config):
        client = make_mock_client(family_pages())
        orchestrator = make_orchestrator(client)

        await orchestrator.export_tree(ROOT, NESTED)
        clock.advance(seconds=config.content_freshness.total_seconds())
        await orchestrator.export_tree(ROOT, NESTED)

        # downloaded jobs are never reused, so every page is submitted again
        assert client.begin_page_export.await_count == 6
        assert client.download_export.await_count == 6

    @pytest.mark.asyncio
    async def test_changed_page_exported_again(self, make_orchestrator, clock):
        pages = family_pages()
        pages["a"] = make_page("a", "Alpha", updated_at=MAY_1_ISO)
        client = make_mock_client(pages)
        orchestrator = make_orchestrator(client)

        first = await orchestrator.export_tree(ROOT, NESTED)
        clock.advance(minutes=1)
        pages["a"] = make_page("a", "Alpha", updated_at=MAY_2_ISO)
        second = await orchestrator.export_tree(ROOT, NESTED)

        assert content_for("a", MAY_1_ISO) in first.combined_content
        assert content_for("a", MAY_2_ISO) in second.combined_content
        assert content_for("a", MAY_1_ISO) not in second.combined_content
        assert client.begin_page_export.await_count == 4
        assert client.begin_page_export.await_args.args[1] == "a"
        assert client.download_export.await_count == 4

    @pytest.mark.asyncio
    async def test_changed_page_cached_under_new_version(self, make_orchestrator, clock):
        root = make_page("root", "Root", updated_at=MAY_1_ISO)
        pages = {"root": root}
        client = make_mock_client(pages)
        orchestrator = make_orchestrator(client)

        await orchestrator.export_tree(ROOT, NESTED)
        clock.advance(minutes=1)
        pages["root"] = make_page("root", "Root", updated_at=MAY_2_ISO)
        await orchestrator.export_tree(ROOT, NESTED)
        clock.advance(hours=5)

        assert orchestrator.content_cache.get(ROOT, MAY_2_ISO) == content_for("root", MAY_2_ISO)


class TestExportPage:
    @pytest.mark.asyncio
    async def test_exports_single_page(self, make_orchestrator, config, sleep):
        client = make_mock_client(family_pages())

        content = await make_orchestrator(client).export_page(ROOT)

        assert content == content_for("root")
        assert client.get_page.await_count == 0
        assert client.begin_page_export.await_count == 1
        assert sleep.delays == [config.settle_delay]

    @pytest.mark.asyncio
    async def test_fresh_content_makes_no_remote_calls(self, make_orchestrator, clock):
        client = make_mock_client(family_pages())
        orchestrator = make_orchestrator(client)

        first = await orchestrator.export_page(ROOT)
        calls = remote_call_count(client)
        clock.advance(minutes=4)
        second = await orchestrator.export_page(ROOT)

        assert second == first
        assert remote_call_count(client) == calls

    @pytest.mark.asyncio
    async def test_cached_job_reused(self, make_orchestrator):
        client = make_mock_client(family_pages())
        orchestrator = make_orchestrator(client)
        orchestrator.job_cache.set(ROOT, "export-root")

        await orchestrator.export_page(ROOT)

        assert client.begin_page_export.await_count == 0
        client.get_export_status.assert_awaited_with(DOC_ID, "root", "export-root")

    @pytest.mark.asyncio
    async def test_missing_token(self, make_orchestrator):
        client = make_mock_client(family_pages())
        client.require_token.side_effect = ConfigurationError("Coda API token required")

        with pytest.raises(ConfigurationError):
            await make_orchestrator(client).export_page(ROOT)

        assert remote_call_count(client) == 0
