"""
Vocabulary example backfill

Generates an example sentence for every vocabulary word that has none.
One failing word does not stop the others.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import strip_wrapping_quotes
from ..common.record_store import RecordStore
from ..common.schemas import Destination

logger = logging.getLogger("brain.digest.backfill")

EXAMPLE_PROMPT = (
    'Generate a single example sentence demonstrating the word "{word}" '
    "(meaning: {definition}) used naturally in context. "
    "Return ONLY the example sentence, nothing else."
)


@dataclass
class WordResult:
    word: str
    success: bool
    error: Optional[str] = None


@dataclass
class BackfillReport:
    candidates: int = 0
    updated: int = 0
    results: List[WordResult] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.candidates:
            return "All words already have examples"
        return f"Backfilled {self.updated} of {self.candidates} words"

    def to_dict(self) -> dict:
        return {
            "success": True,
            "message": self.message,
            "updated": self.updated,
            "results": [asdict(r) for r in self.results],
        }


class ExampleBackfiller:
    """Fills missing vocabulary examples with the LLM"""

    def __init__(self, store: RecordStore, llm: LLMClient, max_tokens: int = 150):
        self._store = store
        self._llm = llm
        self._max_tokens = max_tokens

    def run(self) -> BackfillReport:
        words = [
            w for w in self._store.list(Destination.VOCABULARY)
            if not (w.example or "").strip()
        ]
        report = BackfillReport(candidates=len(words))

        for word in words:
            try:
                example = self.generate_example(word.word, word.definition)
                self._store.update(Destination.VOCABULARY, word.id, example=example)
            except Exception as e:
                logger.warning("Backfill failed for %r: %s", word.word, e)
                report.results.append(WordResult(word=word.word, success=False, error=str(e)))
                continue
            report.updated += 1
            report.results.append(WordResult(word=word.word, success=True))

        logger.info(report.message)
        return report

    def generate_example(self, word: str, definition: str) -> str:
        raw = self._llm.generate(
            EXAMPLE_PROMPT.format(word=word, definition=definition),
            max_tokens=self._max_tokens,
        )
        example = strip_wrapping_quotes(raw)
        if not example:
            raise ValueError("empty example")
        return example
