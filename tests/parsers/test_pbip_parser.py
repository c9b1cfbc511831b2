"""Tests for the model assembler in pbip_doc.parsers.pbip_parser."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pbip_doc.models import DEFAULT_TITLE, SourceFile
from pbip_doc.parsers.pbip_parser import ExtractionError, PBIPParser, extract_project


def test_extract_full_project(project_files: list[SourceFile]) -> None:
    result = PBIPParser().parse(project_files)
    model = result.model

    assert result.warnings == ()
    assert model.metadata.title == "Contoso Sales"
    assert model.metadata.author == "Ana Lima"
    assert model.metadata.created_date == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert model.metadata.last_modified == datetime(2024, 3, 1, 8, 0, 0, 123456, tzinfo=timezone.utc)
    assert model.metadata.has_rls is False

    assert [t.name for t in model.tables] == ["Sales", "Customer"]
    assert model.tables[0].columns == ("Amount", "Order Date", "CustomerID")
    assert model.tables[0].measure_count == 2
    assert model.tables[1].measure_count == 0

    assert [(m.table, m.name) for m in model.measures] == [("Sales", "TotalSales"), ("Sales", "Order Count")]
    assert [(r.from_table, r.to_table) for r in model.relationships] == [
        ("Sales", "Customer"),
        ("Sales", "Calendar Table"),
    ]


def test_sample_single_table_file() -> None:
    files = [SourceFile(
        "Sales.SemanticModel/definition/tables/Sales.tmdl",
        'column Amount\ncolumn Date\nmeasure TotalSales = SUM(Sales[Amount])\n  formatString: "#,0"',
    )]

    model = extract_project(files)

    assert len(model.tables) == 1
    assert model.tables[0].columns == ("Amount", "Date")
    (measure,) = model.measures
    assert (measure.name, measure.table, measure.formula, measure.description) == (
        "TotalSales", "Sales", "SUM(Sales[Amount])", "Calculates the total of Sales",
    )


def test_title_keeps_semantic_model_suffix_without_metadata() -> None:
    files = [SourceFile("MyReport.SemanticModel/definition/tables/Customer.tmdl", "column ID")]

    assert extract_project(files).metadata.title == "MyReport.SemanticModel"


def test_title_strips_report_suffix_without_metadata() -> None:
    files = [SourceFile("Finance.Report/definition/tables/Customer.tmdl", "column ID")]

    assert extract_project(files).metadata.title == "Finance"


def test_title_is_first_segment_even_without_a_folder() -> None:
    files = [SourceFile("relationships.tmdl", "relationship r")]

    assert extract_project(files).metadata.title == "relationships.tmdl"


def test_title_defaults_when_first_path_has_no_segments() -> None:
    files = [SourceFile("", ""), SourceFile("M/tables/A.tmdl", "column ID")]

    assert extract_project(files).metadata.title == DEFAULT_TITLE


def test_default_title_is_configurable() -> None:
    files = [SourceFile(".Report/tables/A.tmdl", "column ID")]

    result = PBIPParser(default_title="Untitled").parse(files)

    assert result.model.metadata.title == "Untitled"


def test_malformed_metadata_json_falls_back_with_warning(project_files: list[SourceFile]) -> None:
    files = [SourceFile(project_files[0].relative_path, "{not json")] + project_files[1:]

    result = PBIPParser().parse(files)

    assert result.model.metadata.title == DEFAULT_TITLE
    assert result.model.metadata.author is None
    assert len(result.model.tables) == 2
    assert len(result.warnings) == 1
    assert result.warnings[0].path.endswith("item.metadata.json")


def test_metadata_name_and_author_fallbacks() -> None:
    files = [SourceFile(
        "M/item.metadata.json",
        '{"displayName": "", "name": "Budget", "author": "Rui", "created": "yesterday"}',
    )]

    meta = extract_project(files).metadata

    assert meta.title == "Budget"
    assert meta.author == "Rui"
    assert meta.created_date is None
    assert meta.last_modified is None


def test_metadata_only_folder_has_empty_model() -> None:
    model = extract_project([SourceFile("M/item.metadata.json", "{}")])

    assert model.metadata.title == DEFAULT_TITLE
    assert model.tables == ()
    assert model.measures == ()
    assert model.relationships == ()


def test_empty_input_is_fatal() -> None:
    with pytest.raises(ExtractionError):
        extract_project([])


def test_unrecognised_folder_is_fatal() -> None:
    with pytest.raises(ExtractionError):
        extract_project([SourceFile("Stuff/readme.md", "hello")])


def test_oversized_file_is_skipped_with_warning() -> None:
    files = [
        SourceFile("M/tables/Big.tmdl", "column A\n" * 100),
        SourceFile("M/tables/Small.tmdl", "column B"),
    ]

    result = PBIPParser(max_file_chars=50).parse(files)

    assert [t.name for t in result.model.tables] == ["Small"]
    assert "Big.tmdl" in str(result.warnings[0])


def test_one_failing_file_does_not_stop_the_others(monkeypatch: pytest.MonkeyPatch) -> None:
    from pbip_doc.parsers import pbip_parser

    real = pbip_parser.extract_measures

    def flaky(text: str, table_name: str, problems=None):
        if table_name == "Broken":
            raise RuntimeError("boom")
        return real(text, table_name, problems)

    monkeypatch.setattr(pbip_parser, "extract_measures", flaky)
    files = [
        SourceFile("M/tables/Broken.tmdl", "measure X = 1"),
        SourceFile("M/tables/Fine.tmdl", "measure Y = 2"),
    ]

    result = PBIPParser().parse(files)

    assert [m.name for m in result.model.measures] == ["Y"]
    assert [t.name for t in result.model.tables] == ["Broken", "Fine"]
    assert "boom" in result.warnings[0].message


def test_failing_relationships_file_gives_no_relationships(monkeypatch: pytest.MonkeyPatch) -> None:
    from pbip_doc.parsers import pbip_parser

    def broken(text, problems=None):
        raise ValueError("bad file")

    monkeypatch.setattr(pbip_parser, "extract_relationships", broken)
    files = [SourceFile("M/definition/relationships.tmdl", "relationship r")]

    result = PBIPParser().parse(files)

    assert result.model.relationships == ()
    assert len(result.warnings) == 1


def test_role_definitions_set_has_rls(project_files: list[SourceFile]) -> None:
    role = SourceFile("Contoso.SemanticModel/definition/roles/EU.tmdl", "role EU\n\tmodelPermission: read\n")

    model = extract_project(project_files + [role])

    assert model.metadata.has_rls is True


def test_dangling_relationship_tables_are_kept(project_files: list[SourceFile]) -> None:
    model = extract_project(project_files)
    table_names = {t.name for t in model.tables}

    assert "Calendar Table" not in table_names
    assert any(r.to_table == "Calendar Table" for r in model.relationships)


@pytest.mark.parametrize(
    ("raw", "microsecond"),
    [
        ("2024-03-01T08:00:00.5Z", 500_000),
        ("2024-03-01T08:00:00.12Z", 120_000),
        ("2024-03-01T08:00:00.1234+00:00", 123_400),
        ("2024-03-01T08:00:00.1234567Z", 123_456),
        ("2024-03-01T08:00:00Z", 0),
    ],
)
def test_metadata_dates_accept_any_fraction_length(raw: str, microsecond: int) -> None:
    files = [SourceFile("M/item.metadata.json", f'{{"lastModified": "{raw}"}}')]

    last_modified = extract_project(files).metadata.last_modified

    assert last_modified == datetime(2024, 3, 1, 8, 0, 0, microsecond, tzinfo=timezone.utc)
