"""Markdown documentation document for an edited ProjectModel."""

import logging
import re
from datetime import datetime, timezone
from itertools import groupby

from ..models import Measure, ProjectMetadata, ProjectModel, Relationship
from ..utils.markdown import MarkdownHelper as md

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def document_filename(title: str) -> str:
    """File name for the document: whitespace runs in the title become '_'."""
    return f"{_WHITESPACE.sub('_', title)}_Documentation.md"


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def _general_section(model: ProjectModel) -> str:
    meta = model.metadata
    rows = [["Title", meta.title]]
    if meta.area:
        rows.append(["Area", meta.area])
    if meta.author:
        rows.append(["Author", meta.author])
    if meta.created_date:
        rows.append(["Created", _fmt_date(meta.created_date)])
    if meta.last_modified:
        rows.append(["Last Modified", _fmt_date(meta.last_modified)])
    if meta.update_frequency:
        rows.append(["Update Frequency", meta.update_frequency])
    rows.append(["Row-Level Security", "Yes" if meta.has_rls else "No"])
    rows.extend([
        ["Tables", str(len(model.tables))],
        ["DAX Measures", str(len(model.measures))],
        ["Relationships", str(len(model.relationships))],
    ])
    return f"## General Information and Statistics\n\n{md.table(['Field', 'Value'], rows)}\n"


def _objective_section(meta: ProjectMetadata) -> str:
    obj = meta.objective
    fields = [
        ("Description", obj.description),
        ("Problem Resolved", obj.problem_resolved),
        ("Decisions Supported", obj.decision_helper),
        ("Target Audience", obj.target_audience),
        ("Main Question", obj.main_question),
    ]
    filled = [(label, value) for label, value in fields if value]
    if not filled:
        return ""
    body = "\n".join(f"- **{label}:** {value}" for label, value in filled)
    return f"## Dashboard Objective\n\n{body}\n"


def _business_rules_section(meta: ProjectMetadata) -> str:
    if not meta.business_rules:
        return ""
    rows = [[rule.id, rule.title, rule.description] for rule in meta.business_rules]
    return f"## Business Rules\n\n{md.table(['#', 'Rule', 'Description'], rows)}\n"


def _pages_section(meta: ProjectMetadata) -> str:
    if not meta.page_explanations:
        return ""
    parts = ["## Report Pages\n"]
    for page in meta.page_explanations:
        parts.append(f"### {page.title}\n")
        for label, value in (
            ("Objective", page.objective),
            ("KPIs", page.kpis),
            ("Filters", page.filters),
            ("Observations", page.observations),
        ):
            if value:
                parts.append(f"- **{label}:** {value}")
        parts.append("")
    return "\n".join(parts)


def _measures_section(measures: tuple[Measure, ...]) -> str:
    if not measures:
        return "## DAX Measures\n\n_No measures found._\n"

    parts = ["## DAX Measures\n"]
    by_table = sorted(measures, key=lambda m: m.table)
    for table_name, group in groupby(by_table, key=lambda m: m.table):
        parts.append(f"### Table: {table_name}\n")
        for m in group:
            parts.append(f"#### {m.name}\n")
            if m.description:
                parts.append(f"_{m.description}_\n")
            parts.append(md.code_block(m.formula, "dax") + "\n")
            if m.format_string:
                parts.append(f"**Format:** `{m.format_string}`\n")
    return "\n".join(parts)


def _diagram_section(diagram: str | None) -> str:
    if not diagram:
        return ""
    return (
        "## Relationship Diagram\n\n"
        f"{md.code_block(diagram, 'mermaid')}\n\n"
        "_Legend: lines connect related tables; labels show the joined columns._\n"
    )


def _relationships_section(relationships: tuple[Relationship, ...]) -> str:
    if not relationships:
        return "## Relationship Details\n\n_No relationships defined._\n"
    rows = [
        [
            r.from_table, r.from_column, r.to_table, r.to_column,
            r.cardinality, r.cross_filter_direction, "Yes" if r.is_active else "No",
        ]
        for r in relationships
    ]
    headers = ["From Table", "Column", "To Table", "Column", "Cardinality", "Cross Filter", "Active"]
    return f"## Relationship Details\n\n{md.table(headers, rows)}\n"


def render_document(model: ProjectModel, diagram: str | None = None) -> bytes:
    """Render the full documentation as UTF-8 Markdown.

    Args:
        model: The (possibly edited) project model.
        diagram: Optional Mermaid diagram source to embed.
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    meta = model.metadata
    subtitle = meta.description or "Technical documentation of the Power BI report"

    sections = [
        f"_Power BI Documentation · generated on {timestamp}_\n",
        f"# {meta.title}\n\n{subtitle}\n",
        _general_section(model),
        _objective_section(meta),
        _business_rules_section(meta),
        _pages_section(meta),
        _measures_section(model.measures),
        _diagram_section(diagram),
        _relationships_section(model.relationships),
        f"---\n\n_{meta.title}_\n",
    ]
    content = "\n".join(s for s in sections if s)
    logger.info(f"Rendered document for {meta.title}: {len(content):,} characters")
    return content.encode("utf-8")
