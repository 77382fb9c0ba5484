"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import re

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    text = (raw or "").strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Non-object JSON (lists, strings, numbers) also yields an empty dict.
    """
    if not raw:
        return {}

    text = strip_code_fences(raw)

    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            pass

    return {}


def strip_wrapping_quotes(text: str) -> str:
    """Drop one pair of quotes a model put around a single sentence."""
    text = (text or "").strip()
    return re.sub(r'^["\']|["\']$', "", text)
