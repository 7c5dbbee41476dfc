"""Framework detection for TypeScript/JavaScript web projects."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel

from .config import ScanConfig
from .models import FrameworkDetectionResult, FrameworkType
from .scanner import ScanError, SourceScanner

logger = logging.getLogger(__name__)

DEPENDENCY_WEIGHT = 40
PATTERN_WEIGHT = 15
MIN_DETECTION_SCORE = 30
MAX_CONFIDENCE = 100

DEPENDENCY_SECTIONS = ["dependencies", "devDependencies", "peerDependencies"]


class FrameworkPattern(BaseModel):
    """Framework detection pattern."""

    framework: FrameworkType
    dependencies: List[str] = []
    content_patterns: List[str] = []


# Declaration order is the tie-break priority
FRAMEWORK_PATTERNS: List[FrameworkPattern] = [
    FrameworkPattern(
        framework=FrameworkType.NESTJS,
        dependencies=["@nestjs/core", "@nestjs/common", "@nestjs/platform-express", "@nestjs/platform-fastify"],
        content_patterns=["@Controller(", "@Injectable(", "@Module(", "NestFactory.create", "from '@nestjs/"],
    ),
    FrameworkPattern(
        framework=FrameworkType.EXPRESS,
        dependencies=["express"],
        content_patterns=["express()", "express.Router(", "require('express')", "from 'express'", "from \"express\""],
    ),
    FrameworkPattern(
        framework=FrameworkType.FASTIFY,
        dependencies=["fastify"],
        content_patterns=["fastify(", "Fastify(", "fastify.register(", "from 'fastify'", "require('fastify')"],
    ),
    FrameworkPattern(
        framework=FrameworkType.KOA,
        dependencies=["koa", "@koa/router", "koa-router"],
        content_patterns=["new Koa(", "new Router(", "from 'koa'", "require('koa')", "ctx.body"],
    ),
]


class FrameworkDetector:
    """Scores manifest dependencies and source indicators per framework."""

    def __init__(
        self,
        project_path: Path,
        scan_config: Optional[ScanConfig] = None,
        patterns: Optional[List[FrameworkPattern]] = None,
    ):
        self.project_path = Path(project_path)
        self.scan_config = scan_config or ScanConfig()
        self.patterns = patterns if patterns is not None else FRAMEWORK_PATTERNS

    def detect_framework(self) -> FrameworkDetectionResult:
        """Return the best-guess framework with confidence and evidence."""
        if not self.project_path.is_dir():
            return FrameworkDetectionResult(
                framework=FrameworkType.UNKNOWN,
                confidence=0,
                indicators=[f"Could not read project directory: {self.project_path}"],
            )

        dependencies = self._read_dependencies()
        file_contents = self._sample_sources()

        scores: Dict[FrameworkType, int] = {}
        evidence: Dict[FrameworkType, List[str]] = {}

        for pattern in self.patterns:
            score = 0
            found: List[str] = []

            for dep in pattern.dependencies:
                if dep in dependencies:
                    score += DEPENDENCY_WEIGHT
                    found.append(f"Dependency found: {dep}")

            # Each source indicator counts once, in the first file it appears in
            for indicator in pattern.content_patterns:
                for rel_path, content in file_contents.items():
                    if indicator in content:
                        score += PATTERN_WEIGHT
                        found.append(f"Pattern '{indicator}' found in {rel_path}")
                        break

            scores[pattern.framework] = score
            evidence[pattern.framework] = found

        return self._resolve(scores, evidence)

    def _resolve(
        self,
        scores: Dict[FrameworkType, int],
        evidence: Dict[FrameworkType, List[str]],
    ) -> FrameworkDetectionResult:
        best: Optional[FrameworkType] = None
        best_score = 0
        for pattern in self.patterns:
            score = scores.get(pattern.framework, 0)
            if score > best_score:
                best, best_score = pattern.framework, score

        if best is None:
            return FrameworkDetectionResult(
                framework=FrameworkType.UNKNOWN,
                confidence=0,
                indicators=["No framework indicators found"],
            )

        if best_score < MIN_DETECTION_SCORE:
            partial = [item for pattern in self.patterns for item in evidence[pattern.framework]]
            return FrameworkDetectionResult(
                framework=FrameworkType.GENERIC,
                confidence=min(best_score, MAX_CONFIDENCE),
                indicators=partial,
            )

        return FrameworkDetectionResult(
            framework=best,
            confidence=min(best_score, MAX_CONFIDENCE),
            indicators=evidence[best],
        )

    def _read_dependencies(self) -> Set[str]:
        """Collect dependency names declared in package.json."""
        manifest = self.project_path / "package.json"
        if not manifest.is_file():
            return set()

        try:
            data: Dict[str, Any] = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not parse {manifest}: {e}")
            return set()

        names: Set[str] = set()
        if not isinstance(data, dict):
            return names
        for section in DEPENDENCY_SECTIONS:
            deps = data.get(section)
            if isinstance(deps, dict):
                names.update(deps.keys())
        return names

    def _sample_sources(self) -> Dict[str, str]:
        """Read a bounded sample of source files."""
        scanner = SourceScanner.from_config(self.project_path, self.scan_config)
        sample: Dict[str, str] = {}
        try:
            for source in scanner.scan():
                sample[source.relative_path] = source.content
                if len(sample) >= self.scan_config.detection_sample_size:
                    break
        except ScanError as e:
            logger.warning(f"Framework detection could not scan sources: {e}")
        return sample


def forced_detection(framework: str) -> FrameworkDetectionResult:
    """Detection result for a framework chosen by the user."""
    return FrameworkDetectionResult(
        framework=FrameworkType(framework.lower()),
        confidence=MAX_CONFIDENCE,
        indicators=["Framework forced by user"],
    )
