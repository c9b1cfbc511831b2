"""Main document generator: orchestrates extraction, enrichment and rendering."""

import logging
from dataclasses import replace
from pathlib import Path

from ..editing import update_metadata
from ..enrichment.ai_descriptions import DEFAULT_AI_MODEL, MeasureDescriptionGenerator
from ..models import ExtractionResult, ExtractionWarning, ProjectModel
from ..parsers.pbip_parser import DEFAULT_MAX_FILE_CHARS, PBIPParser
from ..parsers.sources import load_source_files
from .document import document_filename, render_document
from .mermaid import generate_er_diagram

logger = logging.getLogger(__name__)


class DocumentGenerator:
    """Generates the Markdown documentation of a PBIP project folder."""

    def __init__(
        self,
        output_dir: str | Path,
        enrich_with_ai: bool = False,
        anthropic_api_key: str | None = None,
        ai_model: str = DEFAULT_AI_MODEL,
        cache_path: str | Path | None = None,
        include_diagram: bool = True,
        max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
    ):
        """
        Args:
            output_dir: Directory to write the document to.
            enrich_with_ai: Whether to generate AI descriptions for measures.
            anthropic_api_key: Anthropic API key (or set ANTHROPIC_API_KEY env var).
            ai_model: Claude model for AI enrichment.
            cache_path: Path for persistent AI description cache.
            include_diagram: Embed a Mermaid relationship diagram.
            max_file_chars: Skip source files longer than this.
        """
        self.output_dir = Path(output_dir)
        self.enrich_with_ai = enrich_with_ai
        self.anthropic_api_key = anthropic_api_key
        self.ai_model = ai_model
        self.cache_path = cache_path
        self.include_diagram = include_diagram
        self.max_file_chars = max_file_chars

        # Populated after generate() runs
        self.result: ExtractionResult | None = None

    async def generate(self, project_dir: str | Path, title: str | None = None) -> dict:
        """Extract a project folder and write its document.

        Args:
            project_dir: The unpacked .SemanticModel (or parent) folder.
            title: Overrides the extracted title.

        Returns:
            Dict with generation statistics.
        """
        skipped: list[ExtractionWarning] = []
        files = load_source_files(project_dir, self.max_file_chars, skipped)
        result = PBIPParser(max_file_chars=self.max_file_chars).parse(files)
        self.result = replace(result, warnings=tuple(skipped) + result.warnings)
        model = self.result.model

        if title:
            model = update_metadata(model, title=title)

        return await self.generate_from_model(model)

    async def generate_from_model(self, model: ProjectModel) -> dict:
        """Render and write the document of an already extracted model."""
        if self.enrich_with_ai and model.measures:
            logger.info("Enriching measures with AI-generated descriptions...")
            cache = self.cache_path or self.output_dir / ".ai_cache.json"
            enricher = MeasureDescriptionGenerator(
                api_key=self.anthropic_api_key,
                model=self.ai_model,
                cache_path=cache,
            )
            model = await enricher.enrich_model(model)

        diagram = None
        if self.include_diagram and model.tables and model.relationships:
            diagram = generate_er_diagram(list(model.tables), list(model.relationships))

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / document_filename(model.metadata.title)
        path.write_bytes(render_document(model, diagram))
        logger.info(f"Document written to {path}")

        return {
            "tables": len(model.tables),
            "measures": len(model.measures),
            "relationships": len(model.relationships),
            "warnings": len(self.result.warnings) if self.result else 0,
            "path": str(path),
        }
