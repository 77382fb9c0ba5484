"""
Digest data collection

Gathers what the morning digest and the weekly review talk about from the
record store. Selecting the word of the day counts as showing it.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..common.record_store import RecordStore
from ..common.schemas import Destination, utcnow

logger = logging.getLogger("brain.digest.collector")


class ProjectItem(BaseModel):
    name: str
    next_action: str
    status: str


class StalledProjectItem(BaseModel):
    name: str
    next_action: str
    days_since_update: int


class OverdueItem(BaseModel):
    task: str
    days_past_due: int


class FollowUpItem(BaseModel):
    person_name: str
    follow_ups: List[str]


class CompletedItem(BaseModel):
    name: str


class WordOfTheDay(BaseModel):
    word: str
    definition: str
    part_of_speech: Optional[str] = None
    example: Optional[str] = None


class DigestData(BaseModel):
    """Input of the daily digest"""
    active_projects: List[ProjectItem] = Field(default_factory=list)
    stalled_projects: List[StalledProjectItem] = Field(default_factory=list)
    overdue_admin: List[OverdueItem] = Field(default_factory=list)
    pending_follow_ups: List[FollowUpItem] = Field(default_factory=list)
    recently_completed: List[CompletedItem] = Field(default_factory=list)
    vocabulary_word: Optional[WordOfTheDay] = None


class WeeklyActivity(BaseModel):
    total: int = 0
    by_destination: Dict[str, int] = Field(default_factory=dict)
    needs_review: int = 0
    corrected: int = 0


class WeeklyData(DigestData):
    """Input of the weekly review"""
    weekly_activity: WeeklyActivity = Field(default_factory=WeeklyActivity)
    new_people: int = 0
    new_ideas: int = 0
    new_vocabulary: int = 0
    total_vocabulary: int = 0


def _days_between(earlier: datetime, later: datetime) -> int:
    return max(0, (later - earlier).days)


class DigestCollector:
    """Reads digest inputs from the record store"""

    def __init__(self, store: RecordStore, stalled_after_days: int = 7):
        self._store = store
        self._stalled_after_days = stalled_after_days

    def daily(self, now: Optional[datetime] = None) -> DigestData:
        return DigestData(**self._common(now or utcnow()))

    def weekly(self, now: Optional[datetime] = None) -> WeeklyData:
        store = self._store
        return WeeklyData(
            **self._common(now or utcnow()),
            weekly_activity=WeeklyActivity(**store.weekly_activity()),
            new_people=store.recent_count(Destination.PEOPLE, 7),
            new_ideas=store.recent_count(Destination.IDEAS, 7),
            new_vocabulary=store.recent_count(Destination.VOCABULARY, 7),
            total_vocabulary=store.total_count(Destination.VOCABULARY),
        )

    def _common(self, now: datetime) -> dict:
        store = self._store
        data = {
            "active_projects": [
                ProjectItem(name=p.name, next_action=p.next_action, status=p.status.value)
                for p in store.active_projects()
            ],
            "stalled_projects": [
                StalledProjectItem(
                    name=p.name,
                    next_action=p.next_action,
                    days_since_update=_days_between(p.updated_at, now),
                )
                for p in store.stalled_projects(self._stalled_after_days)
            ],
            "overdue_admin": [
                OverdueItem(task=t.task, days_past_due=_days_between(t.due_date, now))
                for t in store.overdue_admin(now)
            ],
            "pending_follow_ups": [
                FollowUpItem(person_name=p.name, follow_ups=p.follow_ups)
                for p in store.people_with_follow_ups()
            ],
            "recently_completed": [
                CompletedItem(name=p.name) for p in store.recently_completed_projects()
            ],
            "vocabulary_word": self._word_of_the_day(),
        }
        return data

    def _word_of_the_day(self) -> Optional[WordOfTheDay]:
        word = self._store.random_vocabulary_word()
        if word is None:
            return None
        self._store.mark_word_shown(word.id)
        logger.info("Word of the day: %s", word.word)
        return WordOfTheDay(
            word=word.word,
            definition=word.definition,
            part_of_speech=word.part_of_speech,
            example=word.example,
        )
