"""Documentation generator that turns analyses into AI-written Markdown files."""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .ai_service import AIService
from .analyzer import save_analysis
from .database import (
    SOURCE_AI_GENERATION,
    SOURCE_AI_GENERATION_CHUNKED,
    DatabaseError,
    DocumentationRecord,
    DocumentStore,
)
from .grouping import build_module_chunks
from .models import AnalysisResult

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    """Documentation written for one project or module."""

    module_name: Optional[str] = None
    output_file: Optional[str] = None
    analysis_file: Optional[str] = None
    documentation: str = ""
    saved_to_db: bool = False
    warnings: List[str] = []


class DocumentationGenerator:
    """Generates documentation files and records them in the document store."""

    def __init__(self, ai_service: AIService, store: Optional[DocumentStore] = None):
        self.ai_service = ai_service
        self.store = store

    async def generate(
        self,
        result: AnalysisResult,
        output_file: Optional[Path] = None,
        template: Optional[str] = None,
    ) -> GenerationResult:
        """Generate documentation for a whole analysis."""
        data = result.to_json_dict()
        documentation = await self.ai_service.generate_documentation(data, template)
        generation = GenerationResult(documentation=documentation)

        if output_file is not None:
            generation.output_file = str(self.save_documentation(documentation, Path(output_file)))

        metadata = {
            "framework": result.framework,
            "totalRoutes": result.metadata.total_routes,
            "totalControllers": result.metadata.total_controllers,
        }
        await self._record(generation, SOURCE_AI_GENERATION, metadata)
        return generation

    async def generate_chunks(
        self,
        result: AnalysisResult,
        output_dir: Path,
        template: Optional[str] = None,
    ) -> List[GenerationResult]:
        """Generate one documentation file per module.

        Writes <module>-analysis.json and <module>.md into output_dir. Chunk
        documents from one run share a run id and chunk timestamp.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        chunks = build_module_chunks(result)
        logger.info(f"Found {len(chunks)} modules to document")

        run_id = uuid.uuid4().hex
        chunk_timestamp = datetime.now(timezone.utc).isoformat()
        generations: List[GenerationResult] = []

        for chunk in chunks:
            module_result = chunk.to_analysis(result)
            analysis_file = save_analysis(module_result, output_dir / f"{chunk.name}-analysis.json")

            logger.info(f"Generating documentation for {chunk.name}")
            documentation = await self.ai_service.generate_documentation(module_result.to_json_dict(), template)
            output_file = self.save_documentation(documentation, output_dir / f"{chunk.name}.md")

            generation = GenerationResult(
                module_name=chunk.name,
                output_file=str(output_file),
                analysis_file=str(analysis_file),
                documentation=documentation,
            )
            metadata = {
                "framework": result.framework,
                "moduleName": chunk.name,
                "totalRoutes": len(chunk.routes),
                "runId": run_id,
                "chunkTimestamp": chunk_timestamp,
            }
            await self._record(generation, SOURCE_AI_GENERATION_CHUNKED, metadata, run_id)
            generations.append(generation)

        return generations

    def save_documentation(self, documentation: str, output_file: Path) -> Path:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(documentation, encoding="utf-8")
        logger.info(f"Documentation saved to {output_file}")
        return output_file

    async def _record(
        self,
        generation: GenerationResult,
        source: str,
        metadata: Dict[str, Any],
        run_id: Optional[str] = None,
    ) -> None:
        if self.store is None:
            return

        record = DocumentationRecord(
            content=generation.documentation,
            source=source,
            provider=self.ai_service.provider_name,
            model=self.ai_service.model,
            metadata=metadata,
            run_id=run_id,
        )
        try:
            await self.store.save_documentation(record)
            generation.saved_to_db = True
        except DatabaseError as e:
            # The written files stay valid when persistence fails
            warning = f"MongoDB save failed: {e}"
            logger.warning(warning)
            generation.warnings.append(warning)
