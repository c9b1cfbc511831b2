"""Heuristic one-line descriptions for DAX measures."""

import re
from typing import Callable

# (predicate(name_lower, formula_upper), template(name)); first match wins
DescriptionRule = tuple[Callable[[str, str], bool], Callable[[str], str]]


def _without(pattern: str, name: str) -> str:
    """Remove the first case-insensitive occurrence of pattern from name."""
    return re.sub(pattern, "", name, count=1, flags=re.IGNORECASE).strip()


DESCRIPTION_RULES: list[DescriptionRule] = [
    (
        lambda n, f: "total" in n or "SUM(" in f,
        lambda name: f"Calculates the total of {_without('total', name)}",
    ),
    (
        lambda n, f: "count" in n or "COUNT" in f,
        lambda name: f"Counts the number of {_without('count', name)}",
    ),
    (
        lambda n, f: "avg" in n or "media" in n or "AVERAGE" in f,
        lambda name: f"Calculates the average of {_without('avg|media', name)}",
    ),
    (
        lambda n, f: "CALCULATE(" in f,
        lambda name: f"Conditional calculation for {name}",
    ),
]


def describe_measure(name: str, formula: str) -> str:
    """Describe a measure from keywords in its name and formula."""
    name_lower = name.lower()
    formula_upper = formula.upper()
    for predicate, template in DESCRIPTION_RULES:
        if predicate(name_lower, formula_upper):
            return template(name)
    return f"Calculated measure: {name}"
