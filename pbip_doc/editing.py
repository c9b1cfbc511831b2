"""Copy-on-write edits of an extracted ProjectModel.

Every function returns a new model and leaves its argument untouched, so
the extractor's output always describes the pristine parsed state.
"""

import logging
from dataclasses import replace

from .models import BusinessRule, PageExplanation, ProjectModel

logger = logging.getLogger(__name__)

EDITABLE_METADATA_FIELDS = {
    "title", "author", "description", "area", "update_frequency",
    "objective", "business_rules", "page_explanations", "has_rls",
}


def update_metadata(model: ProjectModel, **fields) -> ProjectModel:
    """Replace metadata fields, e.g. update_metadata(model, title="Sales").

    An empty title is rejected so the document always has a heading.
    """
    unknown = set(fields) - EDITABLE_METADATA_FIELDS
    if unknown:
        raise ValueError(f"Not editable metadata fields: {sorted(unknown)}")
    if "title" in fields and not (fields["title"] or "").strip():
        raise ValueError("Title cannot be empty")
    for key in ("business_rules", "page_explanations"):
        if key in fields:
            fields[key] = tuple(fields[key])
    return replace(model, metadata=replace(model.metadata, **fields))


def update_measure_description(model: ProjectModel, index: int, description: str) -> ProjectModel:
    measures = list(model.measures)
    measures[index] = replace(measures[index], description=description)
    return replace(model, measures=tuple(measures))


def delete_measure(model: ProjectModel, index: int) -> ProjectModel:
    measures = list(model.measures)
    del measures[index]
    return replace(model, measures=tuple(measures))


def delete_relationship(model: ProjectModel, index: int) -> ProjectModel:
    relationships = list(model.relationships)
    del relationships[index]
    return replace(model, relationships=tuple(relationships))


def delete_table(model: ProjectModel, table_name: str) -> ProjectModel:
    """Remove a table with its measures and every relationship touching it."""
    tables = tuple(t for t in model.tables if t.name != table_name)
    measures = tuple(m for m in model.measures if m.table != table_name)
    relationships = tuple(
        r for r in model.relationships
        if r.from_table != table_name and r.to_table != table_name
    )
    logger.debug(
        f"Deleted table {table_name}: {len(model.measures) - len(measures)} measures, "
        f"{len(model.relationships) - len(relationships)} relationships removed"
    )
    return replace(model, tables=tables, measures=measures, relationships=relationships)


def _next_id(existing: tuple) -> str:
    return str(max((int(item.id) for item in existing if item.id.isdigit()), default=0) + 1)


def add_business_rule(model: ProjectModel, title: str, description: str = "") -> ProjectModel:
    rules = model.metadata.business_rules
    rule = BusinessRule(id=_next_id(rules), title=title, description=description)
    return update_metadata(model, business_rules=rules + (rule,))


def remove_business_rule(model: ProjectModel, rule_id: str) -> ProjectModel:
    rules = tuple(r for r in model.metadata.business_rules if r.id != rule_id)
    return update_metadata(model, business_rules=rules)


def add_page_explanation(model: ProjectModel, title: str, **details) -> ProjectModel:
    """Append a page explanation; details are objective, kpis, filters, observations."""
    pages = model.metadata.page_explanations
    page = PageExplanation(id=_next_id(pages), title=title, **details)
    return update_metadata(model, page_explanations=pages + (page,))


def remove_page_explanation(model: ProjectModel, page_id: str) -> ProjectModel:
    pages = tuple(p for p in model.metadata.page_explanations if p.id != page_id)
    return update_metadata(model, page_explanations=pages)
