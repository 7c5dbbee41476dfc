"""
Tests for watch mode and the status dashboard.
"""

import asyncio
import time

from fastapi.testclient import TestClient

from autodocgen.models import AnalysisResult
from autodocgen.status_server import STATUS_ERROR, BuildStatusTracker, create_app, fallback_html
from autodocgen.watch_service import FileChange, WatchService, diff_snapshots, is_ignored

from .conftest import write_files


class CountingAnalyzer:
    calls = 0

    def __init__(self, error=None):
        self.error = error

    def analyze(self):
        CountingAnalyzer.calls += 1
        if self.error:
            raise self.error
        result = AnalysisResult(framework="express")
        result.refresh_counts()
        return result


class SlowAnalyzer(CountingAnalyzer):
    def analyze(self):
        time.sleep(0.5)
        return super().analyze()


class TestStatusServer:
    """Test the dashboard endpoints."""

    def test_status_endpoint(self):
        """Status JSON uses camelCase keys."""
        tracker = BuildStatusTracker()
        tracker.set_framework("nestjs")
        tracker.increment_files_processed()
        tracker.update_metadata(total_routes=3)

        client = TestClient(create_app(tracker))
        data = client.get("/api/status").json()

        assert data["framework"] == "nestjs"
        assert data["filesProcessed"] == 1
        assert data["isBuilding"] is False
        assert data["metadata"]["totalRoutes"] == 3
        assert data["lastUpdate"]

    def test_health_endpoint(self):
        """Health includes the build status."""
        client = TestClient(create_app(BuildStatusTracker()))
        data = client.get("/health").json()

        assert data["status"] == "ok"
        assert data["buildStatus"]["status"] == "Initializing..."

    def test_dashboard_page(self):
        """The dashboard page escapes errors and reloads itself."""
        tracker = BuildStatusTracker()
        tracker.set_error("<bad> thing")

        response = TestClient(create_app(tracker)).get("/")

        assert response.status_code == 200
        assert "AutoDocGen" in response.text
        assert "&lt;bad&gt; thing" in response.text
        assert "location.reload()" in fallback_html(tracker.status)

    def test_error_state(self):
        """Errors stop the building flag."""
        tracker = BuildStatusTracker()
        tracker.set_building(True)
        tracker.set_error("boom")

        assert tracker.status.status == STATUS_ERROR
        assert tracker.status.is_building is False
        tracker.clear_error()
        assert tracker.status.error is None


class TestChangeDetection:
    """Test ignore patterns and snapshot diffs."""

    def test_ignore_patterns(self, settings):
        """Default patterns ignore build output and declaration files."""
        patterns = settings.watch.ignore_patterns

        assert is_ignored("node_modules/pkg/index.js", patterns)
        assert is_ignored("dist", patterns)
        assert is_ignored("src/types.d.ts", patterns)
        assert is_ignored("types.d.ts", patterns)
        assert is_ignored("server.log", patterns)
        assert not is_ignored("src/app.ts", patterns)

    def test_diff_snapshots(self):
        """Added, changed and removed files are reported by path."""
        changes = diff_snapshots({"a.ts": 1.0, "b.ts": 1.0}, {"a.ts": 2.0, "c.ts": 1.0})

        assert changes == [
            FileChange("change", "a.ts"),
            FileChange("unlink", "b.ts"),
            FileChange("add", "c.ts"),
        ]


class TestWatchService:
    """Test debouncing and the analysis guard."""

    def setup_method(self):
        CountingAnalyzer.calls = 0

    def _service(self, path, settings, **kwargs):
        kwargs.setdefault("analyzer_factory", CountingAnalyzer)
        return WatchService(path, settings, serve_dashboard=False, **kwargs)

    def test_other_files_are_ignored(self, tmp_path, settings):
        """Only .ts and .js changes schedule analyses."""
        service = self._service(tmp_path, settings)

        assert service.handle_change(FileChange("change", "README.md")) is False
        assert service.tracker.status.files_processed == 0

    def test_changes_are_debounced(self, tmp_path, settings):
        """A burst of changes runs one analysis."""
        async def scenario():
            service = self._service(tmp_path, settings, debounce_ms=50)
            service.handle_change(FileChange("change", "src/a.ts"))
            service.handle_change(FileChange("add", "src/b.ts"))
            service.handle_change(FileChange("unlink", "src/c.js"))
            await asyncio.sleep(0.3)
            await service.stop()
            return service

        service = asyncio.run(scenario())

        assert CountingAnalyzer.calls == 1
        assert service.tracker.status.files_processed == 3
        assert service.tracker.status.framework == "express"
        assert service.tracker.status.is_building is False
        assert service.last_result is not None

    def test_stop_waits_for_running_analysis(self, tmp_path, settings):
        """Changes during a running analysis do not let stop() abandon it."""
        async def scenario():
            service = self._service(tmp_path, settings, debounce_ms=10, analyzer_factory=SlowAnalyzer)
            service.handle_change(FileChange("change", "src/a.ts"))
            await asyncio.sleep(0.1)
            service.handle_change(FileChange("change", "src/b.ts"))
            await asyncio.sleep(0.1)
            await service.stop()
            return service

        service = asyncio.run(scenario())

        assert CountingAnalyzer.calls == 1
        assert service.last_result is not None
        assert service.is_analyzing is False
        assert (tmp_path / "docs" / "analysis.json").is_file()

    def test_analysis_guard(self, tmp_path, settings):
        """An analysis is skipped while another one runs."""
        service = self._service(tmp_path, settings)
        service.is_analyzing = True

        assert asyncio.run(service.perform_analysis()) is None
        assert CountingAnalyzer.calls == 0

    def test_failed_analysis_sets_error(self, tmp_path, settings):
        """Analysis errors are reported on the dashboard."""
        service = self._service(tmp_path, settings, analyzer_factory=lambda: CountingAnalyzer(RuntimeError("boom")))

        assert asyncio.run(service.perform_analysis()) is None
        assert "boom" in service.tracker.status.error
        assert service.is_analyzing is False

    def test_analysis_is_saved(self, tmp_path, settings):
        """Successful analyses are written to the output directory."""
        service = self._service(tmp_path, settings)

        asyncio.run(service.perform_analysis())

        assert (tmp_path / "docs" / "analysis.json").is_file()
        assert service.tracker.status.metadata.total_routes == 0

    def test_poll_detects_new_files(self, tmp_path, settings):
        """Polling turns file system changes into events."""
        project = write_files(tmp_path / "project", {"src/app.ts": "export const a = 1;"})
        write_files(project, {"node_modules/pkg/index.js": "x"})

        async def scenario():
            service = self._service(project, settings, debounce_ms=10_000)
            service._snapshot = service.snapshot()
            write_files(project, {"src/new.ts": "export const b = 2;", "dist/out.js": "y"})
            changes = await service.poll_once()
            await service.stop()
            return changes

        changes = asyncio.run(scenario())

        assert changes == [FileChange("add", "src/new.ts")]
        assert CountingAnalyzer.calls == 0
