"""Markdown formatting helpers for document generation."""


class MarkdownHelper:
    """Utility class for generating GitHub-flavored Markdown."""

    @staticmethod
    def heading(text: str, level: int = 1) -> str:
        level = max(1, min(6, level))
        return f"{'#' * level} {text}"

    @staticmethod
    def table(headers: list[str], rows: list[list[str]], alignments: list[str] | None = None) -> str:
        """Generate a Markdown table.

        Args:
            headers: Column header names.
            rows: List of row data (each row is a list of cell strings).
            alignments: Optional list of 'left', 'center', or 'right' per column.
        """
        if not headers:
            return ""

        safe_headers = [MarkdownHelper.escape_cell(h) for h in headers]
        safe_rows = [
            [MarkdownHelper.escape_cell(str(cell)) for cell in row]
            for row in rows
        ]

        if alignments is None:
            alignments = ["left"] * len(headers)

        separators = []
        for align in alignments:
            if align == "right":
                separators.append("---:")
            elif align == "center":
                separators.append(":---:")
            else:
                separators.append("---")

        lines = [
            "| " + " | ".join(safe_headers) + " |",
            "| " + " | ".join(separators) + " |",
        ]
        for row in safe_rows:
            # Pad row if shorter than headers
            padded = row + [""] * (len(headers) - len(row))
            lines.append("| " + " | ".join(padded[:len(headers)]) + " |")

        return "\n".join(lines)

    @staticmethod
    def code_block(code: str, language: str = "") -> str:
        return f"```{language}\n{code}\n```"

    @staticmethod
    def escape_cell(text: str) -> str:
        """Escape pipes and flatten line breaks for use inside a table cell."""
        if text is None:
            return ""
        return " ".join(str(text).replace("|", "\\|").splitlines())
