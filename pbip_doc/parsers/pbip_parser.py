"""Parser for unpacked Power BI Project (PBIP) folders in TMDL format."""

import json
import logging
import re
from datetime import datetime
from typing import Iterable

from ..models import (
    DEFAULT_TITLE,
    ExtractionResult,
    ExtractionWarning,
    Measure,
    ProjectMetadata,
    ProjectModel,
    Relationship,
    SourceFile,
    Table,
)
from .file_classifier import ExtractionError, FileSet, classify_files, path_segments
from .tmdl_extractors import (
    detect_rls,
    extract_measures,
    extract_relationships,
    extract_table,
    table_name_for,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_CHARS = 5_000_000
REPORT_SUFFIX = ".Report"

_FRACTION = re.compile(r"(?<=\d\d:\d\d:\d\d)\.(\d+)")

__all__ = ["ExtractionError", "PBIPParser", "extract_project"]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_project(
    files: Iterable[SourceFile],
    max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
) -> ProjectModel:
    """Extract a ProjectModel from the files of an unpacked PBIP folder.

    Args:
        files: (relative path, content) snapshots of every file in the folder.
        max_file_chars: Files longer than this are skipped with a warning.

    Returns:
        The assembled ProjectModel. Use PBIPParser.parse() to also get the
        per-file warnings.

    Raises:
        ExtractionError: If the files are not recognisable as a model folder.
    """
    return PBIPParser(max_file_chars=max_file_chars).parse(files).model


# ---------------------------------------------------------------------------
# Parser class
# ---------------------------------------------------------------------------

class PBIPParser:
    """Assembles a ProjectModel from classified TMDL and metadata files."""

    def __init__(
        self,
        max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
        default_title: str = DEFAULT_TITLE,
    ):
        self.max_file_chars = max_file_chars
        self.default_title = default_title or DEFAULT_TITLE
        self._warnings: list[ExtractionWarning] = []

    def parse(self, files: Iterable[SourceFile]) -> ExtractionResult:
        """Parse a file set. Per-file failures become warnings, never exceptions."""
        files = list(files)
        file_set = classify_files(files)
        self._warnings = []

        metadata = self._extract_metadata(file_set, files)
        measures, tables = self._extract_tables(file_set.table_files)
        relationships = self._extract_relationships(file_set.relationships_file)

        logger.info(
            f"TMDL parsed: {len(tables)} tables, {len(measures)} measures, "
            f"{len(relationships)} relationships"
        )

        model = ProjectModel(
            metadata=metadata,
            measures=tuple(measures),
            tables=tuple(tables),
            relationships=tuple(relationships),
        )
        return ExtractionResult(model=model, warnings=tuple(self._warnings))

    # -----------------------------------------------------------------------
    # Metadata
    # -----------------------------------------------------------------------

    def _extract_metadata(self, file_set: FileSet, files: list[SourceFile]) -> ProjectMetadata:
        has_rls = detect_rls(file_set.role_files)
        source = file_set.metadata_file

        if source is None:
            return ProjectMetadata(title=self._title_from_folder(files), has_rls=has_rls)

        try:
            data = json.loads(source.content)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            self._warn(source, f"could not read metadata: {e}")
            return ProjectMetadata(title=self.default_title, has_rls=has_rls)

        created_by = data.get("createdBy")
        author = created_by.get("displayName") if isinstance(created_by, dict) else None

        return ProjectMetadata(
            title=_non_empty(data.get("displayName")) or _non_empty(data.get("name")) or self.default_title,
            author=author or _non_empty(data.get("author")),
            created_date=_parse_date(data.get("created")),
            last_modified=_parse_date(data.get("lastModified")),
            description=_non_empty(data.get("description")),
            has_rls=has_rls,
        )

    def _title_from_folder(self, files: list[SourceFile]) -> str:
        """Title from the first path segment of the first file, minus a '.Report' suffix."""
        segments = path_segments(files[0].relative_path) if files else []
        if not segments:
            return self.default_title
        folder = segments[0]
        if folder.endswith(REPORT_SUFFIX):
            folder = folder[:-len(REPORT_SUFFIX)]
        return folder.strip() or self.default_title

    # -----------------------------------------------------------------------
    # Tables, measures, relationships
    # -----------------------------------------------------------------------

    def _extract_tables(self, table_files: list[SourceFile]) -> tuple[list[Measure], list[Table]]:
        measures: list[Measure] = []
        tables: list[Table] = []

        for source in table_files:
            if not self._within_limit(source):
                continue
            table_name = table_name_for(source)

            try:
                problems: list[str] = []
                measures.extend(extract_measures(source.content, table_name, problems))
                for problem in problems:
                    self._warn(source, problem)
            except Exception as e:
                self._warn(source, f"failed to extract measures: {e}")

            try:
                tables.append(extract_table(source.content, table_name))
            except Exception as e:
                self._warn(source, f"failed to extract table: {e}")

            logger.debug(f"Parsed table file {source.relative_path}")

        return measures, tables

    def _extract_relationships(self, source: SourceFile | None) -> list[Relationship]:
        if source is None:
            return []
        if not self._within_limit(source):
            return []
        try:
            problems: list[str] = []
            relationships = extract_relationships(source.content, problems)
        except Exception as e:
            self._warn(source, f"failed to extract relationships: {e}")
            return []
        for problem in problems:
            self._warn(source, problem)
        return relationships

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _within_limit(self, source: SourceFile) -> bool:
        if len(source.content) <= self.max_file_chars:
            return True
        self._warn(source, f"skipped, larger than {self.max_file_chars:,} characters")
        return False

    def _warn(self, source: SourceFile, message: str) -> None:
        logger.warning(f"{source.relative_path}: {message}")
        self._warnings.append(ExtractionWarning(path=source.relative_path, message=message))


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def _non_empty(value) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_date(value) -> datetime | None:
    """Parse an ISO-8601 string. Anything else, or garbage, gives None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # datetime wants exactly 6 fractional digits before 3.11; .NET writes 7
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparsable date: {value!r}")
        return None
