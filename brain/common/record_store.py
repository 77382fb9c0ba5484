"""
Record Store

Typed persistent tables for People, Projects, Ideas, Admin tasks and
Vocabulary, plus the Inbox Log audit trail.

The store is persisted to a single JSON document (default
~/.brain/store.json). Without a path it lives in memory only, which is what
the tests use.
"""

import json
import logging
import math
import os
import random
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .schemas import (
    AdminStatus,
    CaptureRecord,
    Destination,
    InboxLogEntry,
    InboxStatus,
    Person,
    Project,
    ProjectStatus,
    RECORD_MODELS,
    VocabularyWord,
    generate_record_id,
    utcnow,
)

logger = logging.getLogger("brain.common.record_store")

INBOX_LOG = "inbox_log"
TABLES = tuple(d.value for d in Destination) + (INBOX_LOG,)

# Fields no caller may patch directly
_IMMUTABLE_FIELDS = {"id", "created_at"}
# Only mark_word_shown may move these
_SHOWN_FIELDS = {"times_shown", "last_shown_at"}

Table = Union[Destination, str]


class DuplicateMessageError(Exception):
    """An Inbox Log entry already exists for this source message."""

    def __init__(self, slack_message_id: str):
        super().__init__(f"Inbox entry already exists for message {slack_message_id}")
        self.slack_message_id = slack_message_id


def _table_name(table: Table) -> str:
    name = table.value if isinstance(table, Destination) else str(table)
    if name not in TABLES:
        raise ValueError(f"Unknown table: {name}")
    return name


def _model_for(name: str):
    if name == INBOX_LOG:
        return InboxLogEntry
    return RECORD_MODELS[Destination(name)]


class RecordStore:
    """
    Thread-safe record store.

    Every public operation holds the store lock, so concurrent pipeline
    invocations see each write atomically. Cross-table operations are not
    transactional.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize record store.

        Args:
            path: JSON file to persist to (None: memory only)
        """
        self._path = Path(path).expanduser() if path else None
        self._lock = threading.RLock()
        self._tables: Dict[str, Dict[str, Any]] = {name: {} for name in TABLES}
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Load tables from disk"""
        if not self._path or not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load store %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            logger.warning("Failed to load store %s: expected an object of tables", self._path)
            return

        for name in TABLES:
            model = _model_for(name)
            for raw in data.get(name) or []:
                try:
                    item = model.model_validate(raw)
                except ValidationError as e:
                    row_id = raw.get("id") if isinstance(raw, dict) else None
                    logger.warning(
                        "Skipping invalid %s row %s in %s: %s",
                        name, row_id, self._path, e,
                    )
                    continue
                self._tables[name][item.id] = item

    def _save(self) -> None:
        """Write all tables to disk (temp file + atomic replace)"""
        if not self._path:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            name: [item.model_dump(mode="json") for item in rows.values()]
            for name, rows in self._tables.items()
        }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._path)

    # ------------------------------------------------------------------
    # Generic table operations
    # ------------------------------------------------------------------

    def create(self, destination: Destination, **fields) -> CaptureRecord:
        """Create a record in the table matching the destination"""
        destination = Destination(destination)
        model = RECORD_MODELS[destination]
        now = utcnow()
        fields.setdefault("created_at", now)
        fields.setdefault("updated_at", now)
        record = model(id=generate_record_id(destination), **fields)

        with self._lock:
            self._tables[destination.value][record.id] = record
            self._save()

        logger.info("Created %s record %s", destination.value, record.id)
        return record

    def get(self, table: Table, record_id: str):
        name = _table_name(table)
        with self._lock:
            return self._tables[name].get(record_id)

    def list(self, table: Table) -> List[Any]:
        """All rows of a table, newest first"""
        name = _table_name(table)
        with self._lock:
            rows = list(self._tables[name].values())
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def update(self, table: Table, record_id: str, **changes):
        """
        Patch a record. Only supplied, non-None fields are overwritten.

        Returns:
            The updated record, or None if no such record exists
        """
        name = _table_name(table)
        if name == INBOX_LOG:
            return self.update_inbox_entry(record_id, **changes)

        blocked = set(changes) & _SHOWN_FIELDS
        if blocked:
            raise ValueError(f"Fields only change via mark_word_shown: {sorted(blocked)}")
        return self._patch(name, record_id, changes)

    def delete(self, table: Table, record_id: str) -> bool:
        """Hard-delete a record. The Inbox Log is never hard-deleted."""
        name = _table_name(table)
        if name == INBOX_LOG:
            raise ValueError("Inbox log entries are soft-deleted via their status")
        with self._lock:
            removed = self._tables[name].pop(record_id, None)
            if removed is not None:
                self._save()
        return removed is not None

    def _patch(self, name: str, record_id: str, changes: Dict[str, Any]):
        model = _model_for(name)
        unknown = set(changes) - set(model.model_fields)
        if unknown:
            raise ValueError(f"Unknown fields for {name}: {sorted(unknown)}")
        protected = set(changes) & _IMMUTABLE_FIELDS
        if protected:
            raise ValueError(f"Fields are immutable: {sorted(protected)}")

        updates = {k: v for k, v in changes.items() if v is not None}

        with self._lock:
            current = self._tables[name].get(record_id)
            if current is None:
                return None

            now = utcnow()
            updates["updated_at"] = now
            if isinstance(current, Person):
                updates["last_touched"] = now

            merged = current.model_dump()
            merged.update(updates)
            updated = model.model_validate(merged)
            self._tables[name][record_id] = updated
            self._save()
        return updated

    # ------------------------------------------------------------------
    # Inbox Log
    # ------------------------------------------------------------------

    def create_inbox_entry(self, **fields) -> InboxLogEntry:
        """
        Create the audit entry for one inbound message.

        Raises:
            DuplicateMessageError: an entry already exists for slack_message_id
        """
        entry = InboxLogEntry(id=generate_record_id(INBOX_LOG), **fields)

        with self._lock:
            if self._find_by_message_id(entry.slack_message_id) is not None:
                raise DuplicateMessageError(entry.slack_message_id)
            self._tables[INBOX_LOG][entry.id] = entry
            self._save()

        logger.info(
            "Logged message %s as %s (%s)",
            entry.slack_message_id, entry.status.value, entry.destination.value,
        )
        return entry

    def get_inbox_entry(self, entry_id: str) -> Optional[InboxLogEntry]:
        with self._lock:
            return self._tables[INBOX_LOG].get(entry_id)

    def get_inbox_entry_by_message_id(self, slack_message_id: str) -> Optional[InboxLogEntry]:
        with self._lock:
            return self._find_by_message_id(slack_message_id)

    def _find_by_message_id(self, slack_message_id: str) -> Optional[InboxLogEntry]:
        for entry in self._tables[INBOX_LOG].values():
            if entry.slack_message_id == slack_message_id:
                return entry
        return None

    def update_inbox_entry(self, entry_id: str, **changes) -> Optional[InboxLogEntry]:
        if "slack_message_id" in changes:
            raise ValueError("slack_message_id is the idempotency key and cannot change")
        return self._patch(INBOX_LOG, entry_id, changes)

    def list_inbox(self, status: Optional[InboxStatus] = None) -> List[InboxLogEntry]:
        entries = self.list(INBOX_LOG)
        if status is None:
            return entries
        status = InboxStatus(status)
        return [e for e in entries if e.status == status]

    def recent_inbox(self, days: int) -> List[InboxLogEntry]:
        cutoff = utcnow() - timedelta(days=days)
        return [e for e in self.list(INBOX_LOG) if e.created_at >= cutoff]

    def weekly_activity(self) -> Dict[str, Any]:
        """Capture counts over the last 7 days"""
        recent = self.recent_inbox(7)
        return {
            "total": len(recent),
            "by_destination": {
                d.value: sum(1 for e in recent if e.destination == d)
                for d in Destination
            },
            "needs_review": sum(1 for e in recent if e.status == InboxStatus.NEEDS_REVIEW),
            "corrected": sum(1 for e in recent if e.status == InboxStatus.CORRECTED),
        }

    # ------------------------------------------------------------------
    # Read contracts used by the digest job and the dashboard
    # ------------------------------------------------------------------

    def active_projects(self) -> List[Project]:
        return [p for p in self.list(Destination.PROJECTS) if p.status == ProjectStatus.ACTIVE]

    def stalled_projects(self, days: int = 7) -> List[Project]:
        """Active projects nobody has touched for `days` or more"""
        cutoff = utcnow() - timedelta(days=days)
        return [p for p in self.active_projects() if p.updated_at <= cutoff]

    def recently_completed_projects(self, days: int = 7) -> List[Project]:
        cutoff = utcnow() - timedelta(days=days)
        return [
            p for p in self.list(Destination.PROJECTS)
            if p.status == ProjectStatus.DONE and p.updated_at >= cutoff
        ]

    def overdue_admin(self, now: Optional[datetime] = None):
        now = now or utcnow()
        return [
            t for t in self.list(Destination.ADMIN)
            if t.status == AdminStatus.PENDING and t.due_date and t.due_date < now
        ]

    def due_today_admin(self, now: Optional[datetime] = None):
        today = (now or utcnow()).date()
        return [
            t for t in self.list(Destination.ADMIN)
            if t.status == AdminStatus.PENDING and t.due_date and t.due_date.date() == today
        ]

    def mark_admin_done(self, task_id: str):
        return self._patch(Destination.ADMIN.value, task_id, {"status": AdminStatus.DONE})

    def people_with_follow_ups(self) -> List[Person]:
        return [p for p in self.list(Destination.PEOPLE) if p.follow_ups]

    def recent_count(self, table: Table, days: int) -> int:
        cutoff = utcnow() - timedelta(days=days)
        return sum(1 for r in self.list(table) if r.created_at >= cutoff)

    def total_count(self, table: Table) -> int:
        name = _table_name(table)
        with self._lock:
            return len(self._tables[name])

    def random_vocabulary_word(self, rng: Optional[random.Random] = None) -> Optional[VocabularyWord]:
        """Pick a random word from the less-shown half of the vocabulary"""
        words = sorted(self.list(Destination.VOCABULARY), key=lambda w: w.times_shown)
        if not words:
            return None
        pool = words[:max(1, math.ceil(len(words) / 2))]
        return (rng or random).choice(pool)

    def mark_word_shown(self, word_id: str) -> Optional[VocabularyWord]:
        """Increment times_shown and stamp last_shown_at"""
        name = Destination.VOCABULARY.value
        with self._lock:
            word = self._tables[name].get(word_id)
            if word is None:
                return None
            now = utcnow()
            last_shown = now if word.last_shown_at is None else max(now, word.last_shown_at)
            updated = word.model_copy(update={
                "times_shown": word.times_shown + 1,
                "last_shown_at": last_shown,
                "updated_at": now,
            })
            self._tables[name][word_id] = updated
            self._save()
        return updated

    def search_vocabulary(self, term: str) -> List[VocabularyWord]:
        term = term.lower()
        return [
            w for w in self.list(Destination.VOCABULARY)
            if term in w.word.lower() or term in w.definition.lower()
        ]
