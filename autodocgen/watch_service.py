"""Watch a project, re-analyze on source changes and report status."""

import asyncio
import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from .analyzer import UniversalAnalyzer, analysis_output_path, save_analysis
from .config import Settings
from .database import DatabaseError, DocumentStore
from .models import AnalysisResult
from .status_server import (
    STATUS_WATCHING,
    BuildStatusTracker,
    DatabaseStats,
    RecentDocument,
    StatusServer,
)

logger = logging.getLogger(__name__)

WATCHED_SUFFIXES = (".ts", ".js")
RECENT_DOCUMENTS_LIMIT = 5


class FileChange(NamedTuple):
    event: str
    path: str


def is_ignored(rel_path: str, patterns: List[str]) -> bool:
    """Match a relative path against glob ignore patterns."""
    for pattern in patterns:
        if fnmatch.fnmatch(rel_path, pattern):
            return True
        # "**/x" also matches x at the root
        if pattern.startswith("**/") and fnmatch.fnmatch(rel_path, pattern[3:]):
            return True
        # "dir/**" matches the directory itself
        if pattern.endswith("/**") and rel_path == pattern[:-3]:
            return True
    return False


def diff_snapshots(old: Dict[str, float], new: Dict[str, float]) -> List[FileChange]:
    """File events between two path -> mtime snapshots."""
    changes: List[FileChange] = []
    for path, mtime in new.items():
        if path not in old:
            changes.append(FileChange("add", path))
        elif old[path] != mtime:
            changes.append(FileChange("change", path))
    for path in old:
        if path not in new:
            changes.append(FileChange("unlink", path))
    return sorted(changes, key=lambda c: c.path)


class WatchService:
    """Polls a project for changes and re-runs the analysis.

    File events restart a debounce timer; when it fires an analysis starts
    unless one is already running. Running analyses are never cancelled.
    """

    def __init__(
        self,
        project_path: Path,
        settings: Settings,
        port: Optional[int] = None,
        debounce_ms: Optional[int] = None,
        auto_analyze: Optional[bool] = None,
        analyzer_factory: Optional[Callable[[], UniversalAnalyzer]] = None,
        serve_dashboard: bool = True,
    ):
        self.project_path = Path(project_path)
        self.settings = settings
        self.port = port if port is not None else settings.watch.port
        self.debounce_ms = debounce_ms if debounce_ms is not None else settings.watch.debounce_ms
        self.auto_analyze = auto_analyze if auto_analyze is not None else settings.watch.auto_analyze
        self.ignore_patterns = list(settings.watch.ignore_patterns)
        self.analyzer_factory = analyzer_factory or (lambda: UniversalAnalyzer(self.project_path, self.settings))

        self.tracker = BuildStatusTracker()
        self.server = StatusServer(self.tracker, self.port) if serve_dashboard else None

        self.is_analyzing = False
        self.last_result: Optional[AnalysisResult] = None
        self._snapshot: Dict[str, float] = {}
        self._stop_event = asyncio.Event()
        self._watch_task: Optional[asyncio.Task] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._analysis_tasks: Set[asyncio.Task] = set()

    def snapshot(self) -> Dict[str, float]:
        """Modification times of every non-ignored file under the project."""
        excluded = set(self.settings.scan.exclude_dirs)
        result: Dict[str, float] = {}

        for dirpath, dirnames, filenames in os.walk(self.project_path, followlinks=False):
            current = Path(dirpath)
            dirnames[:] = [d for d in dirnames if d not in excluded and not (current / d).is_symlink()]
            for file_name in filenames:
                file_path = current / file_name
                rel_path = file_path.relative_to(self.project_path).as_posix()
                if is_ignored(rel_path, self.ignore_patterns):
                    continue
                try:
                    result[rel_path] = file_path.stat().st_mtime
                except OSError:
                    continue
        return result

    def handle_change(self, change: FileChange) -> bool:
        """Record a file event; returns True when it schedules an analysis."""
        if not change.path.endswith(WATCHED_SUFFIXES):
            return False

        logger.info(f"File {change.event}: {change.path}")
        self.tracker.increment_files_processed()
        self.tracker.update(status=f"File {change.event}: {change.path}", is_building=True)
        self.schedule_analysis()
        return True

    def schedule_analysis(self) -> None:
        """Restart the debounce timer."""
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounce())

    async def _debounce(self) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        if self.is_analyzing:
            logger.info("Analysis already in progress, skipping")
            return
        # The analysis runs in its own task so a later reset cannot cancel it
        task = asyncio.create_task(self.perform_analysis())
        self._analysis_tasks.add(task)
        task.add_done_callback(self._analysis_tasks.discard)

    async def perform_analysis(self) -> Optional[AnalysisResult]:
        """Analyze the project unless an analysis is already running."""
        if self.is_analyzing:
            logger.info("Analysis already in progress, skipping")
            return None

        self.is_analyzing = True
        try:
            self.tracker.update(status="Analyzing project...", is_building=True)
            analyzer = self.analyzer_factory()
            result = await asyncio.to_thread(analyzer.analyze)

            self.tracker.set_framework(result.framework)
            self.tracker.clear_error()
            self.tracker.update_metadata(
                total_routes=result.metadata.total_routes,
                total_controllers=result.metadata.total_controllers,
                total_services=result.metadata.total_services,
                total_types=result.metadata.total_types,
                analysis_time=result.metadata.analysis_time,
            )

            await self.update_database_stats()

            if self.settings.files.save_raw_analysis:
                output = save_analysis(result, analysis_output_path(self.settings))
                logger.info(f"Analysis saved to {output}")

            self.tracker.update(status="Analysis complete - watching for changes...", is_building=False)
            self.last_result = result
            return result
        except Exception as e:
            logger.exception(f"Analysis failed: {e}")
            self.tracker.set_error(f"Analysis failed: {e}")
            return None
        finally:
            self.is_analyzing = False

    async def update_database_stats(self) -> None:
        """Refresh dashboard database statistics when MongoDB is enabled."""
        if not self.settings.database.enabled:
            return

        try:
            async with DocumentStore(self.settings.database) as store:
                stats = await store.get_analysis_stats()
                latest = await store.get_latest_documentation(RECENT_DOCUMENTS_LIMIT)
        except DatabaseError as e:
            logger.warning(f"Could not fetch database stats: {e}")
            return

        self.tracker.update_metadata(database_stats=DatabaseStats(
            total_documents=stats.total_documents,
            frameworks=stats.frameworks,
            providers=stats.providers,
            latest_run=stats.latest_run,
            recent_documents=[
                RecentDocument(
                    id=doc.id,
                    source=doc.source,
                    provider=doc.provider,
                    model=doc.model,
                    timestamp=doc.timestamp.isoformat(),
                    run_id=doc.run_id,
                )
                for doc in latest
            ],
        ))

    async def poll_once(self) -> List[FileChange]:
        """Compare the tree against the last snapshot and dispatch events."""
        current = await asyncio.to_thread(self.snapshot)
        changes = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        for change in changes:
            self.handle_change(change)
        return changes

    async def _watch_loop(self) -> None:
        interval = self.settings.watch.poll_interval
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def start(self) -> None:
        if self.server is not None:
            await self.server.start()

        self.tracker.update(status="Starting watch mode...", framework="Detecting...", files_processed=0, is_building=False)
        self._stop_event.clear()
        self._snapshot = await asyncio.to_thread(self.snapshot)
        self.tracker.update(status=STATUS_WATCHING, is_building=False)
        logger.info(f"Watching directory: {self.project_path}")

        if self.auto_analyze:
            self.schedule_analysis()
        self._watch_task = asyncio.create_task(self._watch_loop())

    async def stop(self) -> None:
        self._stop_event.set()

        if self._watch_task is not None:
            await self._watch_task
            self._watch_task = None

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
        self._debounce_task = None

        # Let in-flight analyses finish
        if self._analysis_tasks:
            await asyncio.gather(*self._analysis_tasks)

        if self.server is not None:
            await self.server.stop()
        logger.info("Watch service stopped")

    async def run(self) -> None:
        """Watch until cancelled."""
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()
