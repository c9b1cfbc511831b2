"""Optional Claude rewrite of the rule-based measure descriptions.

Each measure is sent with the context a reader of the finished document
would have: its table's columns, the relationships that table takes part
in, the other measures the formula refers to, and the rule-based draft the
extractor already produced. Only measures whose description is still that
draft are rewritten, so edits made in the editor survive.
"""

import asyncio
import hashlib
import json
import logging
import re
from dataclasses import replace
from pathlib import Path

from anthropic import Anthropic

from ..models import Measure, ProjectModel
from .descriptions import describe_measure

logger = logging.getLogger(__name__)

DEFAULT_AI_MODEL = "claude-sonnet-4-20250514"
MAX_PROMPT_COLUMNS = 15

_MEASURE_REF = re.compile(r"\[([^\[\]]+)\]")

INSTRUCTIONS = """You write the measure glossary of a Power BI report handover document.
Readers are business users who never open the model.

You receive one measure with its table, the table's columns and relationships,
and a draft description produced by simple keyword rules. The draft is often
vague or wrong. Replace it with one sentence that says what the number means
for the business: what is counted or summed, over which records, and under
which conditions or time window.

Do not repeat DAX, table or column syntax. Reply with the sentence only."""


def is_heuristic(measure: Measure) -> bool:
    """True when the description is empty or still the rule-based draft."""
    return not measure.description or measure.description == describe_measure(measure.name, measure.formula)


def referenced_measures(measure: Measure, model: ProjectModel) -> list[str]:
    """Names of other measures the formula refers to as [Name]."""
    names = {m.name for m in model.measures if m.name != measure.name}
    found = []
    for ref in _MEASURE_REF.findall(measure.formula):
        if ref in names and ref not in found:
            found.append(ref)
    return found


def build_prompt(measure: Measure, model: ProjectModel) -> str:
    lines = [
        f"Report: {model.metadata.title}",
        f"Measure: {measure.name}",
        f"Table: {measure.table}",
        f"Formula:\n{measure.formula}",
    ]
    if measure.format_string:
        lines.append(f"Display format: {measure.format_string}")

    table = next((t for t in model.tables if t.name == measure.table), None)
    if table and table.columns:
        lines.append(f"Columns of {table.name}: {', '.join(table.columns[:MAX_PROMPT_COLUMNS])}")

    links = [
        f"{r.from_table}.{r.from_column} -> {r.to_table}.{r.to_column}"
        for r in model.relationships
        if measure.table in (r.from_table, r.to_table)
    ]
    if links:
        lines.append("Relationships:\n" + "\n".join(f"- {link}" for link in links))

    refs = referenced_measures(measure, model)
    if refs:
        lines.append(f"Uses measures: {', '.join(refs)}")

    lines.append(f"Draft description: {describe_measure(measure.name, measure.formula)}")
    return "\n".join(lines)


class DescriptionCache:
    """JSON file mapping a prompt snapshot to the description Claude gave for it.

    The key covers the Claude model and the whole prompt, so a changed
    formula, a renamed column or a new relationship asks again.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self.entries: dict[str, str] = {}
        if self.path and self.path.exists():
            try:
                self.entries = json.loads(self.path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable description cache {self.path}: {e}")

    @staticmethod
    def key(ai_model: str, prompt: str) -> str:
        return hashlib.sha256(f"{ai_model}\n{prompt}".encode("utf-8")).hexdigest()

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.entries, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug(f"Description cache written: {len(self.entries)} entries")


class MeasureDescriptionGenerator:
    """Rewrites rule-based measure descriptions of a ProjectModel with Claude."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_AI_MODEL,
        cache_path: str | Path | None = None,
    ):
        """
        Args:
            api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
            model: Claude model to use.
            cache_path: JSON file keeping descriptions between runs.
        """
        self.client = Anthropic(api_key=api_key)
        self.model = model
        self.cache = DescriptionCache(cache_path)

    def _ask(self, prompt: str) -> str:
        """Blocking API call; run through asyncio.to_thread."""
        reply = self.client.messages.create(
            model=self.model,
            max_tokens=200,
            system=INSTRUCTIONS,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(block.text for block in reply.content if block.type == "text")

    async def describe(self, measure: Measure, model: ProjectModel) -> str | None:
        """Claude's description of one measure, or None when the call fails."""
        prompt = build_prompt(measure, model)
        key = self.cache.key(self.model, prompt)
        if key in self.cache.entries:
            return self.cache.entries[key]

        try:
            text = await asyncio.to_thread(self._ask, prompt)
        except Exception as e:
            logger.warning(f"Keeping rule-based description of {measure.table}.{measure.name}: {e}")
            return None

        text = " ".join(text.split())
        if not text:
            return None
        self.cache.entries[key] = text
        return text

    async def enrich_model(self, model: ProjectModel, concurrency: int = 5) -> ProjectModel:
        """Return a copy of model with rule-based descriptions rewritten."""
        semaphore = asyncio.Semaphore(concurrency)

        async def one(measure: Measure) -> Measure:
            if not is_heuristic(measure):
                return measure
            async with semaphore:
                text = await self.describe(measure, model)
            return replace(measure, description=text) if text else measure

        measures = tuple(await asyncio.gather(*(one(m) for m in model.measures)))
        self.cache.save()

        changed = sum(1 for old, new in zip(model.measures, measures) if old is not new)
        logger.info(f"Claude rewrote {changed} of {len(measures)} measure descriptions")
        return replace(model, measures=measures)
