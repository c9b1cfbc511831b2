"""Regex-based extraction of measures, columns, relationships and roles from TMDL text.

Each extraction rule is a small named function returning a tagged result
(Found / NotFound / Malformed) so it can be exercised on its own. The
``extract_*`` functions drive those rules over a whole file and collect
problems into an optional ``problems`` list instead of raising.
"""

import logging
import re
from dataclasses import dataclass

from ..enrichment.descriptions import describe_measure
from ..models import Measure, Relationship, SourceFile, Table

logger = logging.getLogger(__name__)

UNRESOLVED_COLUMN = "?"

# Lines inside a measure body that are TMDL properties, not DAX
METADATA_LINE_PREFIXES = ("formatString", "lineageTag", "annotation")

# Optionally quoted object name: 'Quoted ''Name''' | "Quoted" | Bare
_NAME = r"(?:'((?:[^'\r\n]|'')+)'|\"([^\"\r\n]+)\"|(\w+))"

MEASURE_PATTERN = re.compile(
    r"\bmeasure\s+" + _NAME + r"\s*=[ \t]*(.*?)(?=\n[ \t]*(?:measure|column)\b|\Z)",
    re.IGNORECASE | re.DOTALL,
)
COLUMN_PATTERN = re.compile(r"\bcolumn\s+" + _NAME, re.IGNORECASE)
MEASURE_KEYWORD = re.compile(r"\bmeasure\s+", re.IGNORECASE)

RELATIONSHIP_HEAD = re.compile(r"^[ \t]*relationship[ \t]+\S", re.IGNORECASE | re.MULTILINE)
_FROM_COLUMN = re.compile(r"^[ \t]*fromColumn[ \t]*:[ \t]*([^\r\n]*)", re.IGNORECASE | re.MULTILINE)
_TO_COLUMN = re.compile(r"^[ \t]*toColumn[ \t]*:[ \t]*([^\r\n]*)", re.IGNORECASE | re.MULTILINE)
_COLUMN_REF = re.compile(
    r"""^(?:'((?:[^']|'')*)'|([^.'\s]+))"""
    r"""(?:\s*\.\s*(?:'((?:[^']|'')*)'|([^'\s]+)))?\s*$"""
)

_FORMAT_STRING = re.compile(r"^[ \t]*formatString[ \t]*:[ \t]*([^\r\n]*?)[ \t]*\r?$", re.MULTILINE)
_ROLE_DECLARATION = re.compile(r"^[ \t]*role[ \t]+\S", re.IGNORECASE | re.MULTILINE)
_TABLE_PERMISSION = re.compile(r"tablePermission\s+'?([^'=\r\n]+?)'?\s*=", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Tagged rule results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Found:
    record: Measure | Relationship


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Malformed:
    reason: str


RuleResult = Found | NotFound | Malformed


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def table_name_for(source: SourceFile) -> str:
    """Table name derived from the file name, e.g. Sales.tmdl -> Sales."""
    name = source.name
    if name.lower().endswith(".tmdl"):
        return name[:-len(".tmdl")]
    return name


def _unescape(quoted: str) -> str:
    return quoted.replace("''", "'")


def _matched_name(match: re.Match, first_group: int) -> str:
    """Pick whichever alternative of a _NAME group triple matched."""
    single, double, bare = match.group(first_group, first_group + 1, first_group + 2)
    if single is not None:
        return _unescape(single).strip()
    return (double or bare or "").strip()


def strip_metadata_lines(formula: str) -> str:
    """Drop formatString/lineageTag/annotation lines, keeping other line breaks.

    Applying this to an already stripped formula returns it unchanged.
    """
    kept = [
        line for line in formula.split("\n")
        if not line.strip().startswith(METADATA_LINE_PREFIXES)
    ]
    return "\n".join(kept).strip()


def find_format_string(body: str) -> str | None:
    """Return the value of a formatString property line, unquoted."""
    match = _FORMAT_STRING.search(body)
    if not match:
        return None
    value = match.group(1).strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return value or None


def parse_column_ref(ref: str) -> tuple[str, str]:
    """Split a `Table.Column` reference (either part optionally quoted).

    Returns ("", "") when the text is not a reference at all; an absent or
    empty column part comes back as UNRESOLVED_COLUMN.
    """
    match = _COLUMN_REF.match(ref.strip())
    if not match:
        return "", ""
    quoted_table, bare_table, quoted_column, bare_column = match.groups()
    table = _unescape(quoted_table) if quoted_table is not None else bare_table
    if quoted_column is not None:
        column = _unescape(quoted_column)
    else:
        column = bare_column or ""
    return table.strip(), column.strip() or UNRESOLVED_COLUMN


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def read_measure(match: re.Match, table_name: str) -> RuleResult:
    """Turn one MEASURE_PATTERN match into a Measure."""
    name = _matched_name(match, 1)
    if not name:
        return Malformed("measure declaration without a name")

    body = match.group(4).strip()
    formula = strip_metadata_lines(body)
    if not formula:
        return Malformed(f"measure '{name}' has no formula")

    return Found(Measure(
        name=name,
        table=table_name,
        formula=formula,
        description=describe_measure(name, formula),
        format_string=find_format_string(body),
    ))


def read_relationship(block: str) -> RuleResult:
    """Read the fromColumn/toColumn endpoints of one relationship block.

    Cardinality, direction and active state are not read from the block;
    every relationship is reported as an active single-direction 1:N.
    """
    from_line = _FROM_COLUMN.search(block)
    to_line = _TO_COLUMN.search(block)
    if not from_line or not to_line:
        return NotFound()

    from_table, from_column = parse_column_ref(from_line.group(1))
    to_table, to_column = parse_column_ref(to_line.group(1))
    if not from_table or not to_table:
        head = block.strip().splitlines()[0] if block.strip() else "relationship"
        return Malformed(f"unresolved table in '{head.strip()}'")

    return Found(Relationship(
        from_table=from_table,
        to_table=to_table,
        from_column=from_column,
        to_column=to_column,
        cardinality="1:N",
        cross_filter_direction="Single",
        is_active=True,
    ))


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

def extract_measures(
    text: str, table_name: str, problems: list[str] | None = None
) -> list[Measure]:
    """Extract measures from a table file, in declaration order."""
    measures: list[Measure] = []
    for match in MEASURE_PATTERN.finditer(text):
        result = read_measure(match, table_name)
        if isinstance(result, Found):
            measures.append(result.record)
        elif isinstance(result, Malformed):
            logger.warning(f"Skipping measure in table {table_name}: {result.reason}")
            if problems is not None:
                problems.append(result.reason)
    return measures


def extract_columns(text: str) -> list[str]:
    """Column names in order of appearance. Duplicates are kept."""
    return [_matched_name(m, 1) for m in COLUMN_PATTERN.finditer(text)]


def count_measures(text: str) -> int:
    """Count `measure` keywords, independently of extract_measures()."""
    return sum(1 for _ in MEASURE_KEYWORD.finditer(text))


def extract_table(text: str, table_name: str) -> Table:
    return Table(
        name=table_name,
        columns=tuple(extract_columns(text)),
        measure_count=count_measures(text),
    )


def split_relationship_blocks(text: str) -> list[str]:
    """Cut the text into blocks, each starting at a `relationship` line."""
    starts = [m.start() for m in RELATIONSHIP_HEAD.finditer(text)]
    return [
        text[start:end]
        for start, end in zip(starts, starts[1:] + [len(text)])
    ]


def extract_relationships(text: str, problems: list[str] | None = None) -> list[Relationship]:
    """Extract relationships from relationships.tmdl, in declaration order."""
    relationships: list[Relationship] = []
    for block in split_relationship_blocks(text):
        result = read_relationship(block)
        if isinstance(result, Found):
            relationships.append(result.record)
        elif isinstance(result, Malformed):
            logger.warning(f"Skipping relationship: {result.reason}")
            if problems is not None:
                problems.append(result.reason)
        else:
            logger.debug("Relationship block without fromColumn/toColumn skipped")
    return relationships


def detect_rls(role_files: list[SourceFile]) -> bool:
    """True when any role file declares a role or a table permission."""
    secured: set[str] = set()
    has_roles = False
    for source in role_files:
        if _ROLE_DECLARATION.search(source.content):
            has_roles = True
        for table_name in _TABLE_PERMISSION.findall(source.content):
            secured.add(table_name.strip())
    if secured:
        logger.info(f"Detected {len(secured)} RLS-secured table(s): {sorted(secured)}")
    return has_roles or bool(secured)
