"""Tests for the record store -- tables, Inbox Log and digest read contracts."""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from brain.common.record_store import DuplicateMessageError, RecordStore
from brain.common.schemas import (
    AdminStatus,
    Destination,
    InboxStatus,
    ProjectStatus,
    RecordRef,
    utcnow,
)


@pytest.fixture
def store():
    return RecordStore()


def _entry(store, message_id="1.1", status=InboxStatus.FILED, **fields):
    defaults = dict(
        original_text="Call John",
        destination=Destination.ADMIN,
        confidence=0.9,
        status=status,
        slack_message_id=message_id,
    )
    defaults.update(fields)
    return store.create_inbox_entry(**defaults)


class TestTables:
    def test_create_assigns_id_and_timestamps(self, store):
        person = store.create(Destination.PEOPLE, name="Sarah")
        assert person.id.startswith("per_")
        assert person.created_at == person.updated_at
        assert store.get("people", person.id) == person

    def test_display_title_per_table(self, store):
        assert store.create(Destination.PEOPLE, name="Sarah").display_title == "Sarah"
        assert store.create(Destination.IDEAS, title="AI search").display_title == "AI search"
        assert store.create(Destination.ADMIN, task="Renew passport").display_title == "Renew passport"
        assert store.create(Destination.VOCABULARY, word="sonder").display_title == "sonder"

    def test_unknown_table(self, store):
        with pytest.raises(ValueError, match="Unknown table"):
            store.list("recipes")

    def test_list_newest_first(self, store):
        old = store.create(Destination.IDEAS, title="old", created_at=utcnow() - timedelta(days=2))
        new = store.create(Destination.IDEAS, title="new")
        assert [i.id for i in store.list(Destination.IDEAS)] == [new.id, old.id]

    def test_update_patches_and_bumps_updated_at(self, store):
        project = store.create(Destination.PROJECTS, name="Launch", updated_at=utcnow() - timedelta(days=3))
        updated = store.update(Destination.PROJECTS, project.id, status=ProjectStatus.BLOCKED, notes=None)
        assert updated.status == ProjectStatus.BLOCKED
        assert updated.name == "Launch"
        assert updated.updated_at > project.updated_at

    def test_update_person_touches(self, store):
        person = store.create(Destination.PEOPLE, name="Sam", last_touched=utcnow() - timedelta(days=10))
        updated = store.update(Destination.PEOPLE, person.id, context="Neighbour")
        assert updated.last_touched > person.last_touched

    def test_update_missing_returns_none(self, store):
        assert store.update(Destination.IDEAS, "idea_missing", notes="x") is None

    def test_update_rejects_unknown_and_immutable_fields(self, store):
        idea = store.create(Destination.IDEAS, title="t")
        with pytest.raises(ValueError, match="Unknown fields"):
            store.update(Destination.IDEAS, idea.id, colour="red")
        with pytest.raises(ValueError, match="immutable"):
            store.update(Destination.IDEAS, idea.id, id="other")

    def test_update_rejects_shown_fields(self, store):
        word = store.create(Destination.VOCABULARY, word="sonder")
        with pytest.raises(ValueError, match="mark_word_shown"):
            store.update(Destination.VOCABULARY, word.id, times_shown=5)

    def test_update_validates_values(self, store):
        project = store.create(Destination.PROJECTS, name="Launch")
        with pytest.raises(ValueError):
            store.update(Destination.PROJECTS, project.id, status="finished")

    def test_delete(self, store):
        idea = store.create(Destination.IDEAS, title="t")
        assert store.delete(Destination.IDEAS, idea.id)
        assert not store.delete(Destination.IDEAS, idea.id)
        assert store.get(Destination.IDEAS, idea.id) is None

    def test_inbox_log_never_hard_deleted(self, store):
        entry = _entry(store)
        with pytest.raises(ValueError, match="soft-deleted"):
            store.delete("inbox_log", entry.id)


class TestInboxLog:
    def test_one_entry_per_message(self, store):
        _entry(store, "1.1")
        with pytest.raises(DuplicateMessageError) as exc:
            _entry(store, "1.1", status=InboxStatus.NEEDS_REVIEW)
        assert exc.value.slack_message_id == "1.1"
        assert len(store.list_inbox()) == 1

    def test_lookup_by_message_id(self, store):
        entry = _entry(store, "1.1")
        assert store.get_inbox_entry_by_message_id("1.1") == entry
        assert store.get_inbox_entry_by_message_id("9.9") is None

    def test_message_id_is_immutable(self, store):
        entry = _entry(store)
        with pytest.raises(ValueError, match="idempotency key"):
            store.update_inbox_entry(entry.id, slack_message_id="2.2")

    def test_update_inbox_entry_with_refs(self, store):
        entry = _entry(store, record_id="adm_1")
        updated = store.update_inbox_entry(
            entry.id,
            status=InboxStatus.CORRECTED,
            superseded=[entry.record_ref],
            applied_corrections=["1.2"],
        )
        assert updated.superseded == [RecordRef(destination=Destination.ADMIN, record_id="adm_1")]
        assert updated.applied_corrections == ["1.2"]

    def test_generic_update_routes_inbox_log(self, store):
        entry = _entry(store)
        updated = store.update("inbox_log", entry.id, status=InboxStatus.DELETED)
        assert updated.status == InboxStatus.DELETED

    def test_list_inbox_by_status(self, store):
        _entry(store, "1.1")
        review = _entry(store, "1.2", status=InboxStatus.NEEDS_REVIEW)
        assert store.list_inbox(InboxStatus.NEEDS_REVIEW) == [review]
        assert store.list_inbox("needs_review") == [review]
        assert len(store.list_inbox()) == 2

    def test_weekly_activity(self, store):
        _entry(store, "1.1", destination=Destination.IDEAS)
        _entry(store, "1.2", status=InboxStatus.NEEDS_REVIEW, destination=Destination.IDEAS)
        _entry(store, "1.3", status=InboxStatus.CORRECTED, destination=Destination.PEOPLE)
        _entry(store, "1.4", created_at=utcnow() - timedelta(days=8))

        activity = store.weekly_activity()
        assert activity["total"] == 3
        assert activity["by_destination"] == {
            "people": 1, "projects": 0, "ideas": 2, "admin": 0, "vocabulary": 0,
        }
        assert activity["needs_review"] == 1
        assert activity["corrected"] == 1


class TestPersistence:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "store.json"
        store = RecordStore(path)
        task = store.create(Destination.ADMIN, task="Renew passport",
                            due_date=datetime(2026, 11, 1, tzinfo=timezone.utc))
        _entry(store, "1.1", record_id=task.id, record_title=task.task)

        reloaded = RecordStore(path)
        assert reloaded.get(Destination.ADMIN, task.id) == task
        assert reloaded.get_inbox_entry_by_message_id("1.1").record_id == task.id
        assert "admin" in json.loads(path.read_text())

    def test_corrupt_file_starts_empty(self, tmp_path, caplog):
        path = tmp_path / "store.json"
        path.write_text("{oops")
        store = RecordStore(path)
        assert store.list_inbox() == []
        assert "Failed to load store" in caplog.text

    def test_invalid_row_skipped(self, tmp_path, caplog):
        path = tmp_path / "store.json"
        good = RecordStore(path).create(Destination.IDEAS, title="AI search")
        data = json.loads(path.read_text())
        data["projects"] = [{"id": "prj_broken"}]
        path.write_text(json.dumps(data))

        store = RecordStore(path)

        assert store.get(Destination.IDEAS, good.id) == good
        assert store.list(Destination.PROJECTS) == []
        assert "prj_broken" in caplog.text
        assert "projects" in caplog.text


class TestDigestContracts:
    def test_stalled_and_completed_projects(self, store):
        week_ago = utcnow() - timedelta(days=8)
        stalled = store.create(Destination.PROJECTS, name="Stalled", updated_at=week_ago)
        fresh = store.create(Destination.PROJECTS, name="Fresh")
        done = store.create(Destination.PROJECTS, name="Done", status=ProjectStatus.DONE)
        store.create(Destination.PROJECTS, name="Old done", status=ProjectStatus.DONE, updated_at=week_ago)

        assert {p.id for p in store.active_projects()} == {stalled.id, fresh.id}
        assert [p.id for p in store.stalled_projects()] == [stalled.id]
        assert [p.id for p in store.recently_completed_projects()] == [done.id]

    def test_overdue_and_due_today(self, store):
        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        overdue = store.create(Destination.ADMIN, task="Overdue", due_date=now - timedelta(days=2))
        today = store.create(Destination.ADMIN, task="Today", due_date=now + timedelta(hours=3))
        store.create(Destination.ADMIN, task="Done", due_date=now - timedelta(days=1), status=AdminStatus.DONE)
        store.create(Destination.ADMIN, task="Undated")

        assert [t.id for t in store.overdue_admin(now)] == [overdue.id]
        assert [t.id for t in store.due_today_admin(now)] == [today.id]

    def test_mark_admin_done(self, store):
        task = store.create(Destination.ADMIN, task="Call bank")
        assert store.mark_admin_done(task.id).status == AdminStatus.DONE
        assert store.mark_admin_done("adm_missing") is None

    def test_people_with_follow_ups(self, store):
        sam = store.create(Destination.PEOPLE, name="Sam", follow_ups=["Send deck"])
        store.create(Destination.PEOPLE, name="Ann")
        assert store.people_with_follow_ups() == [sam]

    def test_counts(self, store):
        store.create(Destination.IDEAS, title="new")
        store.create(Destination.IDEAS, title="old", created_at=utcnow() - timedelta(days=30))
        assert store.recent_count(Destination.IDEAS, 7) == 1
        assert store.total_count(Destination.IDEAS) == 2


class TestVocabulary:
    def test_random_word_empty(self, store):
        assert store.random_vocabulary_word() is None

    def test_random_word_from_less_shown_half(self, store):
        fresh = store.create(Destination.VOCABULARY, word="fresh")
        worn = store.create(Destination.VOCABULARY, word="worn")
        for _ in range(3):
            store.mark_word_shown(worn.id)

        rng = random.Random(0)
        picks = {store.random_vocabulary_word(rng).id for _ in range(20)}
        assert picks == {fresh.id}

    def test_mark_word_shown_is_monotonic(self, store):
        word = store.create(Destination.VOCABULARY, word="sonder")
        first = store.mark_word_shown(word.id)
        second = store.mark_word_shown(word.id)
        assert first.times_shown == 1
        assert second.times_shown == 2
        assert second.last_shown_at >= first.last_shown_at
        assert store.mark_word_shown("voc_missing") is None

    def test_search(self, store):
        sonder = store.create(Destination.VOCABULARY, word="Sonder", definition="awareness of others")
        store.create(Destination.VOCABULARY, word="petrichor", definition="smell of rain")
        assert store.search_vocabulary("SOND") == [sonder]
        assert store.search_vocabulary("others") == [sonder]
        assert store.search_vocabulary("zzz") == []
