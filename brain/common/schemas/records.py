"""
Record Schemas

Typed records for the five capture tables plus the Inbox Log audit trail.

Core principle: every inbound capture leaves exactly one InboxLogEntry.
A filed or corrected entry points at exactly one record; an entry that
needs review points at none.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class Destination(str, Enum):
    """Record table a capture is routed to"""
    PEOPLE = "people"
    PROJECTS = "projects"
    IDEAS = "ideas"
    ADMIN = "admin"
    VOCABULARY = "vocabulary"


class InboxStatus(str, Enum):
    """Lifecycle of an Inbox Log entry"""
    FILED = "filed"
    NEEDS_REVIEW = "needs_review"
    CORRECTED = "corrected"
    DELETED = "deleted"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    BLOCKED = "blocked"
    SOMEDAY = "someday"
    DONE = "done"


class AdminStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


# ============================================================================
# Capture records
# ============================================================================

class CaptureRecord(BaseModel):
    """Fields shared by every record table"""
    id: str
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Field shown as the record's title in replies and the Inbox Log
    title_field: ClassVar[str]

    @property
    def display_title(self) -> str:
        return getattr(self, self.title_field)


class Person(CaptureRecord):
    title_field = "name"

    name: str
    context: str = ""
    follow_ups: List[str] = Field(default_factory=list)
    last_touched: datetime = Field(default_factory=utcnow)


class Project(CaptureRecord):
    title_field = "name"

    name: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    next_action: str = ""
    notes: str = ""


class Idea(CaptureRecord):
    title_field = "title"

    title: str
    one_liner: str = ""
    notes: str = ""


class AdminTask(CaptureRecord):
    title_field = "task"

    task: str
    due_date: Optional[datetime] = None
    status: AdminStatus = AdminStatus.PENDING
    notes: str = ""

    @field_validator("due_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Date-only inputs arrive naive; treat them as UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class VocabularyWord(CaptureRecord):
    title_field = "word"

    word: str
    definition: str = ""
    part_of_speech: Optional[str] = None
    example: Optional[str] = None
    source: Optional[str] = None
    times_shown: int = Field(default=0, ge=0)
    last_shown_at: Optional[datetime] = None


RECORD_MODELS = {
    Destination.PEOPLE: Person,
    Destination.PROJECTS: Project,
    Destination.IDEAS: Idea,
    Destination.ADMIN: AdminTask,
    Destination.VOCABULARY: VocabularyWord,
}

ID_PREFIXES = {
    Destination.PEOPLE: "per",
    Destination.PROJECTS: "prj",
    Destination.IDEAS: "idea",
    Destination.ADMIN: "adm",
    Destination.VOCABULARY: "voc",
    "inbox_log": "log",
}


# ============================================================================
# Inbox Log
# ============================================================================

class RecordRef(BaseModel):
    """Pointer to a record in one of the capture tables"""
    destination: Destination
    record_id: str


class InboxLogEntry(BaseModel):
    """
    Audit record of one inbound capture attempt.

    Keyed by slack_message_id; never deleted, only soft-marked `deleted`.
    """
    id: str
    original_text: str
    destination: Destination
    record_id: Optional[str] = None
    record_title: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    status: InboxStatus
    slack_message_id: str
    superseded: List[RecordRef] = Field(default_factory=list)
    applied_corrections: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def record_ref(self) -> Optional[RecordRef]:
        if not self.record_id:
            return None
        return RecordRef(destination=self.destination, record_id=self.record_id)


def generate_record_id(table) -> str:
    """Generate a unique ID such as ``prj_3f9c0a1b2d4e``"""
    key = Destination(table) if table != "inbox_log" else table
    return f"{ID_PREFIXES[key]}_{uuid.uuid4().hex[:12]}"
