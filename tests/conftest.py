from __future__ import annotations

import json

import pytest

from pbip_doc.models import SourceFile

SALES_TMDL = """table Sales
\tlineageTag: 1a2b

\tmeasure TotalSales = SUM(Sales[Amount])
\t\tformatString: #,0.00
\t\tlineageTag: 3c4d

\tmeasure 'Order Count' =
\t\t\tCOUNTROWS(
\t\t\t\tSales
\t\t\t)
\t\tlineageTag: 5e6f

\tcolumn Amount
\t\tdataType: decimal
\t\tlineageTag: 7a8b

\tcolumn 'Order Date'
\t\tdataType: dateTime

\tcolumn CustomerID
\t\tdataType: int64
"""

CUSTOMER_TMDL = """table Customer

\tcolumn ID
\t\tdataType: int64

\tcolumn Name
\t\tdataType: string
"""

RELATIONSHIPS_TMDL = """relationship 0f1e2d3c-aaaa-bbbb-cccc-123456789abc
\tfromColumn: Sales.CustomerID
\ttoColumn: Customer.ID

relationship 'Sales to Date'
\tcrossFilteringBehavior: bothDirections
\tfromColumn: Sales.'Order Date'
\ttoColumn: 'Calendar Table'.'Date'
"""


@pytest.fixture
def project_files() -> list[SourceFile]:
    """A small but complete .SemanticModel folder."""
    root = "Contoso.SemanticModel"
    metadata = {
        "displayName": "Contoso Sales",
        "createdBy": {"displayName": "Ana Lima"},
        "created": "2024-01-15T10:30:00Z",
        "lastModified": "2024-03-01T08:00:00.1234567Z",
    }
    return [
        SourceFile(f"{root}/item.metadata.json", json.dumps(metadata)),
        SourceFile(f"{root}/definition/model.tmdl", "model Model\n\tculture: en-US\n"),
        SourceFile(f"{root}/definition/tables/Sales.tmdl", SALES_TMDL),
        SourceFile(f"{root}/definition/tables/Customer.tmdl", CUSTOMER_TMDL),
        SourceFile(f"{root}/definition/relationships.tmdl", RELATIONSHIPS_TMDL),
    ]
