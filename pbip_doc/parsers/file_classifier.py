"""Sorting an unpacked PBIP file set into metadata, table, relationship and role files."""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from ..models import SourceFile

logger = logging.getLogger(__name__)

METADATA_FILE_NAME = "item.metadata.json"
RELATIONSHIPS_FILE_NAME = "relationships.tmdl"
TMDL_SUFFIX = ".tmdl"

_SEPARATORS = re.compile(r"[\\/]")


class ExtractionError(ValueError):
    """Raised when a file set cannot be recognised as a Power BI model folder."""


@dataclass
class FileSet:
    """Result of classifying a flat collection of source files."""
    metadata_file: SourceFile | None = None
    table_files: list[SourceFile] = field(default_factory=list)
    relationships_file: SourceFile | None = None
    role_files: list[SourceFile] = field(default_factory=list)


def path_segments(relative_path: str) -> list[str]:
    """Split a relative path on either separator, dropping empty segments."""
    return [s for s in _SEPARATORS.split(relative_path) if s]


def is_tmdl(source: SourceFile) -> bool:
    return source.name.lower().endswith(TMDL_SUFFIX)


def _in_directory(source: SourceFile, directory: str) -> bool:
    """True if any directory segment (not the file name) equals `directory`."""
    folders = path_segments(source.relative_path)[:-1]
    return any(s.lower() == directory for s in folders)


def classify_files(files: Iterable[SourceFile]) -> FileSet:
    """Classify source files by name and path.

    Args:
        files: Every file of the unpacked project folder.

    Returns:
        The classified FileSet. Table and role files keep input order.

    Raises:
        ExtractionError: If the set is empty, or holds neither a metadata
            descriptor nor any .tmdl file.
    """
    files = list(files)
    if not files:
        raise ExtractionError("No files provided.")

    file_set = FileSet()
    has_tmdl = False
    fallback_relationships: SourceFile | None = None

    for source in files:
        lower_name = source.name.lower()

        if lower_name == METADATA_FILE_NAME:
            if file_set.metadata_file is None:
                file_set.metadata_file = source
            else:
                logger.debug(f"Ignoring extra metadata file: {source.relative_path}")
            continue

        if not is_tmdl(source):
            continue
        has_tmdl = True

        if _in_directory(source, "tables"):
            file_set.table_files.append(source)
        elif _in_directory(source, "roles"):
            file_set.role_files.append(source)

        if lower_name == RELATIONSHIPS_FILE_NAME:
            if file_set.relationships_file is None:
                file_set.relationships_file = source
        elif fallback_relationships is None and "relationships" in source.relative_path.lower():
            fallback_relationships = source

    if file_set.metadata_file is None:
        if not has_tmdl:
            raise ExtractionError(
                "Model metadata not found. Make sure you select the folder ending in "
                "\".SemanticModel\" of your Power BI project."
            )
        logger.info(f"{METADATA_FILE_NAME} not found, but .tmdl files detected. Continuing...")

    if file_set.relationships_file is None:
        file_set.relationships_file = fallback_relationships

    logger.debug(
        f"Classified {len(files)} files: {len(file_set.table_files)} tables, "
        f"relationships={'yes' if file_set.relationships_file else 'no'}, "
        f"{len(file_set.role_files)} roles"
    )
    return file_set
