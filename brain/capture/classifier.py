"""
Capture Classifier

Routes a free-text thought to one of the five destinations with an LLM and
extracts the destination's fields.

A destination prefix ("idea: ...") overrides the model: the destination is
forced, confidence is fixed at 1.0, and only the remaining text is sent for
field extraction.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import Classification, Destination
from .keywords import split_prefix

logger = logging.getLogger("brain.capture.classifier")

# Fallback title length when the model returns none
TITLE_FALLBACK_CHARS = 80

CLASSIFICATION_PROMPT = """You are the classifier of a personal knowledge tool ("second brain"). Analyze one incoming thought and file it into exactly one category.

Categories:
- people: information about a specific person, relationships, someone you met or need to contact
- projects: active work with multiple steps, goals, ongoing initiatives
- ideas: concepts, insights, things to explore later, thoughts worth keeping
- admin: errands, one-off tasks, appointments, logistics, simple to-dos
- vocabulary: a word or term to learn, with its meaning

Respond with ONLY a JSON object, no prose:
{{
  "destination": "people" | "projects" | "ideas" | "admin" | "vocabulary",
  "confidence": number between 0.0 and 1.0,
  "title": "short human-readable title",
  "extractedFields": {{ ...fields for the destination... }}
}}

extractedFields per destination:
- people: {{"name": "person's name", "context": "how you know them or their role", "followUps": ["things to do or remember about them"]}}
- projects: {{"name": "project name", "nextAction": "the very next concrete action", "notes": "additional context"}}
- ideas: {{"title": "idea title", "oneLiner": "the core insight in one sentence", "notes": "additional thoughts"}}
- admin: {{"task": "the task to complete", "dueDate": "ISO-8601 date if mentioned, otherwise null", "notes": "additional context"}}
- vocabulary: {{"word": "the word", "definition": "clear definition", "partOfSpeech": "noun/verb/... or null", "example": "example sentence or null", "source": "where it was encountered or null"}}

Be decisive. When unsure, give your best guess with a lower confidence; below {threshold:.1f} the thought is held for manual review.
{forced}
Thought to classify:
"{text}\""""

FORCED_DESTINATION_NOTE = """
The user has already filed this thought under "{destination}". Use "{destination}" as the destination and extract the {destination} fields.
"""


class ClassificationError(Exception):
    """The classifier could not produce a usable Classification."""


class Classifier:
    """
    LLM-backed classifier for captures.

    Failures are never retried here: the caller decides what a failed
    classification means for the message.
    """

    def __init__(
        self,
        llm: LLMClient,
        review_threshold: float = 0.6,
        max_tokens: int = 500,
    ):
        """
        Initialize classifier.

        Args:
            llm: Text generation client
            review_threshold: Threshold quoted to the model in the prompt
            max_tokens: Maximum response tokens for one classification
        """
        self._llm = llm
        self._review_threshold = review_threshold
        self._max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def classify(self, text: str) -> Classification:
        """
        Classify a capture, honouring a destination prefix.

        Raises:
            ClassificationError: LLM unavailable, call failed, or output unusable
        """
        forced, remaining = split_prefix(text)
        if forced is not None:
            logger.info("Prefix override detected -> %s", forced.value)
            return self._call_llm(remaining.strip(), forced=forced)
        return self._call_llm(text.strip())

    def _call_llm(self, text: str, forced: Optional[Destination] = None) -> Classification:
        if not self.is_available:
            raise ClassificationError("LLM client is not available")

        prompt = CLASSIFICATION_PROMPT.format(
            threshold=self._review_threshold,
            forced=FORCED_DESTINATION_NOTE.format(destination=forced.value) if forced else "",
            text=text.replace('"', '\\"'),
        )

        try:
            raw = self._llm.generate(prompt, max_tokens=self._max_tokens)
        except Exception as e:
            raise ClassificationError(f"LLM call failed: {e}") from e

        logger.debug("Classifier raw response: %s", raw)
        return self._parse_response(raw, text, forced)

    def _parse_response(
        self,
        raw: str,
        text: str,
        forced: Optional[Destination] = None,
    ) -> Classification:
        """Decode and validate the model's JSON answer"""
        data = parse_llm_json(raw)
        if not data:
            raise ClassificationError(f"Classifier returned no JSON object: {raw[:200]!r}")

        if forced is not None:
            # User-specified destination wins over whatever the model picked
            data["destination"] = forced.value
            data["confidence"] = 1.0

        if not str(data.get("title") or "").strip():
            data["title"] = text[:TITLE_FALLBACK_CHARS]

        try:
            return Classification.model_validate(data)
        except ValidationError as e:
            raise ClassificationError(f"Invalid classification: {e}") from e
