"""
Second Brain Schemas

Typed capture records, the Inbox Log audit trail, and the transient
Classification produced by the classifier.
"""

from .records import (
    Destination,
    InboxStatus,
    ProjectStatus,
    AdminStatus,
    CaptureRecord,
    Person,
    Project,
    Idea,
    AdminTask,
    VocabularyWord,
    RecordRef,
    InboxLogEntry,
    RECORD_MODELS,
    generate_record_id,
    utcnow,
)
from .classification import (
    Classification,
    PeopleFields,
    ProjectFields,
    IdeaFields,
    AdminFields,
    VocabularyFields,
    FIELD_MODELS,
)

__all__ = [
    "Destination",
    "InboxStatus",
    "ProjectStatus",
    "AdminStatus",
    "CaptureRecord",
    "Person",
    "Project",
    "Idea",
    "AdminTask",
    "VocabularyWord",
    "RecordRef",
    "InboxLogEntry",
    "RECORD_MODELS",
    "generate_record_id",
    "utcnow",
    "Classification",
    "PeopleFields",
    "ProjectFields",
    "IdeaFields",
    "AdminFields",
    "VocabularyFields",
    "FIELD_MODELS",
]
