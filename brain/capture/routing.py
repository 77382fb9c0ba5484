"""
Routing

Turns a Classification into a record in its destination table, filling
missing fields from the classification title or fixed defaults. Shared by
the capture and correction pipelines so both apply identical rules.

Fallbacks:
    people      name <- title, context <- "", follow_ups <- []
    projects    name <- title, next_action <- "Define next action", notes <- ""
    ideas       title <- title, one_liner <- "", notes <- ""
    admin       task <- title, due_date <- parsed ISO string or unset, notes <- ""
    vocabulary  word <- title, definition <- "", part_of_speech/example/source unset
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from ..common.record_store import RecordStore
from ..common.schemas import CaptureRecord, Classification, Destination

logger = logging.getLogger("brain.capture.routing")

DEFAULT_NEXT_ACTION = "Define next action"


def parse_due_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; None when absent or unparseable"""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text[:10]), datetime.min.time())
        except ValueError:
            logger.info("Ignoring unparseable due date %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _or(value, fallback):
    """Use the fallback when the extracted value is missing or blank"""
    if value is None:
        return fallback
    if isinstance(value, str) and not value.strip():
        return fallback
    return value


def _people_fields(c: Classification) -> Dict[str, Any]:
    f = c.extracted_fields
    return {
        "name": _or(f.name, c.title),
        "context": _or(f.context, ""),
        "follow_ups": [item for item in (f.follow_ups or []) if item and item.strip()],
    }


def _project_fields(c: Classification) -> Dict[str, Any]:
    f = c.extracted_fields
    return {
        "name": _or(f.name, c.title),
        "next_action": _or(f.next_action, DEFAULT_NEXT_ACTION),
        "notes": _or(f.notes, ""),
    }


def _idea_fields(c: Classification) -> Dict[str, Any]:
    f = c.extracted_fields
    return {
        "title": _or(f.title, c.title),
        "one_liner": _or(f.one_liner, ""),
        "notes": _or(f.notes, ""),
    }


def _admin_fields(c: Classification) -> Dict[str, Any]:
    f = c.extracted_fields
    return {
        "task": _or(f.task, c.title),
        "due_date": parse_due_date(f.due_date),
        "notes": _or(f.notes, ""),
    }


def _vocabulary_fields(c: Classification) -> Dict[str, Any]:
    f = c.extracted_fields
    return {
        "word": _or(f.word, c.title),
        "definition": _or(f.definition, ""),
        "part_of_speech": _or(f.part_of_speech, None),
        "example": _or(f.example, None),
        "source": _or(f.source, None),
    }


_FIELD_BUILDERS = {
    Destination.PEOPLE: _people_fields,
    Destination.PROJECTS: _project_fields,
    Destination.IDEAS: _idea_fields,
    Destination.ADMIN: _admin_fields,
    Destination.VOCABULARY: _vocabulary_fields,
}


def record_fields(classification: Classification) -> Dict[str, Any]:
    """Record fields for the classification's destination, with fallbacks applied"""
    builder = _FIELD_BUILDERS.get(classification.destination)
    if builder is None:
        raise ValueError(f"No routing for destination {classification.destination!r}")
    return builder(classification)


def file_classification(store: RecordStore, classification: Classification) -> CaptureRecord:
    """Create a new record in the destination table for a classification"""
    return store.create(classification.destination, **record_fields(classification))
