"""Mermaid diagram generation for Power BI model visualization."""

from ..models import Relationship, Table

# Written as "<to> CONNECTOR <from>", so the left side is the `to` table
_CONNECTORS = {
    "1:1": ("||", "||"),
    "1:N": ("||", "o{"),
    "N:1": ("}o", "||"),
    "N:N": ("}o", "o{"),
}


def _sanitize_name(name: str | None) -> str:
    """Sanitize a name for use as a Mermaid entity identifier.

    Mermaid erDiagram chokes on spaces, hyphens, and most special chars.
    """
    if not name:
        return "UNKNOWN"
    return (
        name.replace(" ", "_")
        .replace("-", "_")
        .replace(".", "_")
        .replace("(", "")
        .replace(")", "")
        .replace("[", "")
        .replace("]", "")
        .replace("/", "_")
        .replace('"', "")
        .replace("'", "")
        .replace("#", "")
        .replace(";", "")
        .replace("%", "pct")
        .replace("&", "and")
        .replace("+", "plus")
        .replace("@", "at")
        .replace("=", "_")
        .replace("{", "")
        .replace("}", "")
    )


def _sanitize_label(text: str | None) -> str:
    """Sanitize text for use inside Mermaid quoted labels."""
    if not text:
        return ""
    return text.replace('"', "'").replace("#", "")


def _connector(rel: Relationship) -> str:
    left, right = _CONNECTORS.get(rel.cardinality, _CONNECTORS["1:N"])
    line = "--" if rel.is_active else ".."
    return f"{left}{line}{right}"


def generate_er_diagram(
    tables: list[Table],
    relationships: list[Relationship],
    include_columns: bool = True,
    max_columns_per_table: int = 10,
) -> str:
    """Generate a Mermaid ER diagram of tables and their relationships.

    Args:
        tables: All tables in the model.
        relationships: Model relationships. Tables they name need not exist.
        include_columns: Whether to show columns inside entity blocks.
        max_columns_per_table: Limit columns shown per table (avoids huge diagrams).
    """
    lines = ["erDiagram"]
    connected_tables: set[str] = set()

    for rel in relationships:
        connected_tables.add(rel.from_table)
        connected_tables.add(rel.to_table)
        label = _sanitize_label(f"{rel.from_column} → {rel.to_column}")
        lines.append(
            f"    {_sanitize_name(rel.to_table)} {_connector(rel)} "
            f"{_sanitize_name(rel.from_table)} : \"{label}\""
        )

    for table in tables:
        safe_name = _sanitize_name(table.name)
        if include_columns and table.columns:
            lines.append(f"    {safe_name} {{")
            for col in table.columns[:max_columns_per_table]:
                lines.append(f"        column {_sanitize_name(col)}")
            if len(table.columns) > max_columns_per_table:
                remaining = len(table.columns) - max_columns_per_table
                lines.append(f"        column ___plus_{remaining}_more___")
            if table.measure_count:
                lines.append(f"        measures count_{table.measure_count}")
            lines.append("    }")
        elif table.name not in connected_tables:
            # Orphaned table: still show it
            lines.append(f"    {safe_name} {{")
            lines.append("        string orphan_table")
            lines.append("    }")

    return "\n".join(lines)
