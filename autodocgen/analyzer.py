"""Universal analyzer combining detection, scanning and extraction."""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import Settings
from .extractor import GenericExtractor
from .framework_detector import FrameworkDetector, forced_detection
from .models import AnalysisResult, FrameworkDetectionResult, FrameworkType
from .scanner import SourceScanner

logger = logging.getLogger(__name__)


class UniversalAnalyzer:
    """Analyzes a TypeScript/JavaScript project regardless of its framework."""

    def __init__(self, project_path: Path, settings: Optional[Settings] = None, framework: Optional[str] = None):
        self.project_path = Path(project_path)
        self.settings = settings or Settings()
        self.framework = framework
        self.detection: Optional[FrameworkDetectionResult] = None
        self.files_processed = 0

    def detect(self) -> FrameworkDetectionResult:
        if self.framework:
            return forced_detection(self.framework)
        return FrameworkDetector(self.project_path, self.settings.scan).detect_framework()

    def analyze(self) -> AnalysisResult:
        """Run a complete analysis and return a new result.

        Raises ScanError when the project root is missing or not a directory.
        Unreadable files are skipped with a warning.
        """
        start = time.perf_counter()

        scanner = SourceScanner.from_config(self.project_path, self.settings.scan)
        scanner.check_root()

        self.detection = self.detect()
        framework = self.detection.framework
        if framework == FrameworkType.UNKNOWN:
            framework = FrameworkType.GENERIC
        logger.info(
            f"Detected framework: {self.detection.framework.value} "
            f"(confidence {self.detection.confidence}%)"
        )

        extractor = GenericExtractor(framework.value)
        result = AnalysisResult(framework=self.detection.framework.value)
        self.files_processed = 0

        for source in scanner:
            extraction = extractor.extract(source.content, source.relative_path)
            result.routes.extend(extraction.routes)
            result.controllers.extend(extraction.controllers)
            result.services.extend(extraction.services)
            result.types.extend(extraction.types)
            self.files_processed += 1

        result.refresh_counts()
        result.metadata.analysis_time = round(time.perf_counter() - start, 4)

        logger.info(
            f"Analyzed {self.files_processed} files: {result.metadata.total_routes} routes, "
            f"{result.metadata.total_controllers} controllers, {result.metadata.total_services} services, "
            f"{result.metadata.total_types} types"
        )
        return result


def save_analysis(result: AnalysisResult, path: Path) -> Path:
    """Write an analysis as indented UTF-8 JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug(f"Saved analysis to {path}")
    return path


def load_analysis(path: Path) -> AnalysisResult:
    """Read an analysis file written by save_analysis."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return AnalysisResult.from_json_dict(data)


def timestamped(filename: str, enabled: bool) -> str:
    if not enabled:
        return filename
    stem, dot, suffix = filename.rpartition(".")
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    if not dot:
        return f"{filename}-{stamp}"
    return f"{stem}-{stamp}.{suffix}"


def analysis_output_path(settings: Settings, override: Optional[str] = None) -> Path:
    """Where to write the analysis file."""
    if override:
        return Path(override)
    name = timestamped(settings.files.analysis_filename, settings.files.timestamp_files)
    return Path(settings.files.output_dir) / name


def docs_output_path(settings: Settings, override: Optional[str] = None) -> Path:
    """Where to write generated documentation."""
    if override:
        return Path(override)
    name = timestamped(settings.files.docs_filename, settings.files.timestamp_files)
    return Path(settings.files.output_dir) / name
