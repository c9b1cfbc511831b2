"""Data models for Power BI project metadata extracted from PBIP folders."""

from dataclasses import dataclass, field
from datetime import datetime

CARDINALITIES = ("1:1", "1:N", "N:1", "N:N")
CROSS_FILTER_DIRECTIONS = ("Single", "Both")

DEFAULT_TITLE = "Power BI Report"


@dataclass(frozen=True)
class SourceFile:
    """One file of an unpacked project folder."""
    relative_path: str
    content: str
    name: str = ""

    def __post_init__(self):
        if not self.name:
            # Accept both separator conventions
            last = self.relative_path.replace("\\", "/").rsplit("/", 1)[-1]
            object.__setattr__(self, "name", last)


@dataclass(frozen=True)
class DashboardObjective:
    """What the report is for, filled in by the user."""
    description: str = ""
    problem_resolved: str = ""
    decision_helper: str = ""
    target_audience: str = ""
    main_question: str = ""


@dataclass(frozen=True)
class BusinessRule:
    id: str
    title: str
    description: str = ""


@dataclass(frozen=True)
class PageExplanation:
    id: str
    title: str
    objective: str = ""
    kpis: str = ""
    filters: str = ""
    observations: str = ""


@dataclass(frozen=True)
class ProjectMetadata:
    """Report-level metadata plus free-form documentation fields."""
    title: str = DEFAULT_TITLE
    author: str | None = None
    created_date: datetime | None = None
    last_modified: datetime | None = None
    description: str | None = None
    area: str | None = None
    update_frequency: str | None = None
    objective: DashboardObjective = field(default_factory=DashboardObjective)
    business_rules: tuple[BusinessRule, ...] = ()
    page_explanations: tuple[PageExplanation, ...] = ()
    has_rls: bool = False


@dataclass(frozen=True)
class Measure:
    """A DAX measure in the Power BI model."""
    name: str
    table: str
    formula: str
    description: str = ""
    format_string: str | None = None


@dataclass(frozen=True)
class Table:
    """A table summary: column names in declaration order and measure count."""
    name: str
    columns: tuple[str, ...] = ()
    measure_count: int = 0


@dataclass(frozen=True)
class Relationship:
    """A relationship between two tables."""
    from_table: str
    to_table: str
    from_column: str
    to_column: str
    cardinality: str = "1:N"
    cross_filter_direction: str = "Single"
    is_active: bool = True


@dataclass(frozen=True)
class ProjectModel:
    """Complete documentation model for one Power BI project."""
    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    measures: tuple[Measure, ...] = ()
    tables: tuple[Table, ...] = ()
    relationships: tuple[Relationship, ...] = ()


@dataclass(frozen=True)
class ExtractionWarning:
    """A recoverable problem met while extracting one file."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass(frozen=True)
class ExtractionResult:
    """Extracted model together with the warnings raised along the way."""
    model: ProjectModel
    warnings: tuple[ExtractionWarning, ...] = ()
