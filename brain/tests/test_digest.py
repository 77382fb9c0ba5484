"""Tests for digest collection, summarization and vocabulary backfill."""

import json
from datetime import timedelta
from unittest.mock import Mock

import pytest

from brain.common.record_store import RecordStore
from brain.common.schemas import AdminStatus, Destination, InboxStatus, ProjectStatus, utcnow
from brain.digest import DigestCollector, ExampleBackfiller, Summarizer
from brain.digest.collector import DigestData


@pytest.fixture
def store():
    store = RecordStore()
    now = utcnow()
    store.create(Destination.PROJECTS, name="Landing page", next_action="Hero section")
    store.create(Destination.PROJECTS, name="Old thing", next_action="Decide", updated_at=now - timedelta(days=10))
    store.create(Destination.PROJECTS, name="Shipped", status=ProjectStatus.DONE)
    store.create(Destination.ADMIN, task="Renew passport", due_date=now - timedelta(days=3))
    store.create(Destination.ADMIN, task="Paid bill", due_date=now - timedelta(days=3), status=AdminStatus.DONE)
    store.create(Destination.PEOPLE, name="Sarah", follow_ups=["Send deck"])
    store.create(Destination.IDEAS, title="AI search")
    return store


class TestCollector:
    def test_daily(self, store):
        data = DigestCollector(store).daily()

        assert {p.name for p in data.active_projects} == {"Landing page", "Old thing"}
        assert [(p.name, p.days_since_update) for p in data.stalled_projects] == [("Old thing", 10)]
        assert [(t.task, t.days_past_due) for t in data.overdue_admin] == [("Renew passport", 3)]
        assert data.pending_follow_ups[0].person_name == "Sarah"
        assert data.pending_follow_ups[0].follow_ups == ["Send deck"]
        assert [p.name for p in data.recently_completed] == ["Shipped"]
        assert data.vocabulary_word is None

    def test_word_of_the_day_marked_shown(self, store):
        word = store.create(Destination.VOCABULARY, word="sonder", definition="awareness", part_of_speech="noun")

        data = DigestCollector(store).daily()

        assert data.vocabulary_word.word == "sonder"
        assert data.vocabulary_word.part_of_speech == "noun"
        assert store.get(Destination.VOCABULARY, word.id).times_shown == 1

    def test_weekly(self, store):
        store.create_inbox_entry(
            original_text="AI search", destination=Destination.IDEAS, confidence=0.9,
            status=InboxStatus.FILED, slack_message_id="1.1", record_id="idea_1",
        )
        store.create_inbox_entry(
            original_text="hmm", destination=Destination.PEOPLE, confidence=0.2,
            status=InboxStatus.NEEDS_REVIEW, slack_message_id="1.2",
        )
        store.create(Destination.VOCABULARY, word="old", created_at=utcnow() - timedelta(days=30))

        data = DigestCollector(store).weekly()

        assert data.weekly_activity.total == 2
        assert data.weekly_activity.by_destination["ideas"] == 1
        assert data.weekly_activity.needs_review == 1
        assert data.new_people == 1
        assert data.new_ideas == 1
        assert data.new_vocabulary == 0
        assert data.total_vocabulary == 1


class TestSummarizer:
    def test_daily_prompt_carries_data(self):
        llm = Mock()
        llm.generate.return_value = "Good morning!"
        data = DigestData.model_validate({
            "active_projects": [{"name": "Landing page", "next_action": "Hero", "status": "active"}],
        })

        assert Summarizer(llm).daily_digest(data) == "Good morning!"

        prompt = llm.generate.call_args.args[0]
        assert "morning digest" in prompt
        payload = json.loads(prompt[prompt.index("Data:\n") + len("Data:\n"):])
        assert payload["active_projects"][0]["name"] == "Landing page"
        assert "vocabulary_word" not in payload
        assert llm.generate.call_args.kwargs["max_tokens"] == 500
        assert "mrkdwn" in llm.generate.call_args.kwargs["system"]

    def test_empty_answer_raises(self):
        llm = Mock()
        llm.generate.return_value = ""
        with pytest.raises(RuntimeError, match="empty"):
            Summarizer(llm).weekly_review(DigestCollector(RecordStore()).weekly())


class TestBackfill:
    def test_fills_missing_examples_only(self):
        store = RecordStore()
        missing = store.create(Destination.VOCABULARY, word="sonder", definition="awareness")
        blank = store.create(Destination.VOCABULARY, word="petrichor", definition="rain smell", example="  ")
        done = store.create(Destination.VOCABULARY, word="apricity", definition="winter sun", example="Kept.")
        llm = Mock()
        llm.generate.return_value = '"An example."'

        report = ExampleBackfiller(store, llm).run()

        assert report.candidates == 2
        assert report.updated == 2
        assert store.get(Destination.VOCABULARY, missing.id).example == "An example."
        assert store.get(Destination.VOCABULARY, blank.id).example == "An example."
        assert store.get(Destination.VOCABULARY, done.id).example == "Kept."
        assert any("sonder" in call.args[0] for call in llm.generate.call_args_list)

    def test_one_failure_does_not_stop_others(self):
        store = RecordStore()
        store.create(Destination.VOCABULARY, word="sonder", definition="awareness")
        store.create(Destination.VOCABULARY, word="petrichor", definition="rain smell")
        llm = Mock()
        llm.generate.side_effect = [RuntimeError("rate limited"), "Fine."]

        report = ExampleBackfiller(store, llm).run()

        assert report.updated == 1
        assert [r.success for r in report.results].count(False) == 1
        failed = next(r for r in report.results if not r.success)
        assert failed.error == "rate limited"
        assert report.to_dict()["message"] == "Backfilled 1 of 2 words"

    def test_nothing_to_do(self):
        report = ExampleBackfiller(RecordStore(), Mock()).run()
        assert report.to_dict() == {
            "success": True,
            "message": "All words already have examples",
            "updated": 0,
            "results": [],
        }
