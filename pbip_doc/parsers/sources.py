"""Reading a PBIP project folder (on disk or zipped) into SourceFile snapshots."""

import io
import logging
import zipfile
from pathlib import Path

from ..models import ExtractionWarning, SourceFile

logger = logging.getLogger(__name__)

# Only text formats the extractor looks at
TEXT_SUFFIXES = (".tmdl", ".json", ".pbip", ".pbir", ".pbism", ".platform")


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _wanted(name: str) -> bool:
    return name.lower().endswith(TEXT_SUFFIXES)


def _too_large(
    relative_path: str,
    size: int,
    max_file_chars: int | None,
    skipped: list[ExtractionWarning] | None,
) -> bool:
    """Size check on the raw byte count, done before anything is read.

    The byte count is an upper bound on the character count, so a
    non-ASCII file can be skipped slightly below the character limit.
    """
    if max_file_chars is None or size <= max_file_chars:
        return False
    message = f"skipped, larger than {max_file_chars:,} characters"
    logger.warning(f"{relative_path}: {message}")
    if skipped is not None:
        skipped.append(ExtractionWarning(path=relative_path, message=message))
    return True


def load_source_files(
    folder: str | Path,
    max_file_chars: int | None = None,
    skipped: list[ExtractionWarning] | None = None,
) -> list[SourceFile]:
    """Read every text file under folder.

    Relative paths start with the folder's own name
    (e.g. ``Sales.SemanticModel/definition/tables/Sales.tmdl``), the same
    shape a browser folder upload produces. Files over max_file_chars bytes
    are not read; they are reported in ``skipped`` when a list is given.
    """
    root = Path(folder)
    if not root.is_dir():
        raise FileNotFoundError(f"Project folder not found: {root}")

    files: list[SourceFile] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or not _wanted(path.name):
            continue
        relative = f"{root.name}/{path.relative_to(root).as_posix()}"
        try:
            if _too_large(relative, path.stat().st_size, max_file_chars, skipped):
                continue
            files.append(SourceFile(relative_path=relative, content=_decode(path.read_bytes())))
        except OSError as e:
            logger.warning(f"Could not read {relative}: {e}")

    logger.info(f"Loaded {len(files)} files from {root}")
    return files


def load_zip_sources(
    data: bytes,
    max_file_chars: int | None = None,
    skipped: list[ExtractionWarning] | None = None,
) -> list[SourceFile]:
    """Read every text file of a zipped project folder, in archive order.

    Members whose uncompressed size exceeds max_file_chars bytes are never
    decompressed.
    """
    files: list[SourceFile] = []
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        for info in archive.infolist():
            name = info.filename
            if info.is_dir() or name.startswith("__MACOSX/") or not _wanted(name):
                continue
            if _too_large(name, info.file_size, max_file_chars, skipped):
                continue
            files.append(SourceFile(relative_path=name, content=_decode(archive.read(info))))

    logger.info(f"Loaded {len(files)} files from zip archive")
    return files
