"""
Correction Pipeline Scenario Tests

A capture is filed, then corrected through `fix:` thread replies:
- fix to another destination files a new record, keeps the old one
- a second correction chains the superseded references
- `fix: delete` is terminal
- missing parents, unknown targets and redelivered replies
"""

import json
import logging
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from brain.capture.classifier import Classifier
from brain.capture.correction import CorrectionPipeline
from brain.capture.handlers import Message
from brain.capture.pipeline import CapturePipeline, Outcome
from brain.common.record_store import RecordStore
from brain.common.schemas import Destination, InboxStatus, RecordRef

PARENT_TS = "1700000000.000100"


def _answer(destination, title, confidence=0.9, **fields):
    return json.dumps({
        "destination": destination,
        "confidence": confidence,
        "title": title,
        "extractedFields": fields,
    })


class ScriptedLLM:
    """Answers the classification prompt according to the forced destination"""

    is_available = True

    def __init__(self, default):
        self.default = default
        self.prompts = []
        self.fail = False

    def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        if self.fail:
            raise TimeoutError("slow")
        for destination in Destination:
            if f'filed this thought under "{destination.value}"' in prompt:
                return _answer(destination.value, f"{destination.value} title", confidence=0.3)
        return self.default


def _slack():
    slack = Mock()
    slack.post_message = AsyncMock(return_value="9.9")
    slack.add_reaction = AsyncMock(return_value=True)
    return slack


def _reply(text, ts="1700000000.000200", thread_ts=PARENT_TS):
    return Message(text=text, user="U1", channel="C1", source="slack", timestamp=ts, thread_ts=thread_ts)


@pytest_asyncio.fixture
async def env():
    store = RecordStore()
    slack = _slack()
    llm = ScriptedLLM(_answer("projects", "Call John", nextAction="Call John"))
    classifier = Classifier(llm)
    capture = CapturePipeline(store, classifier, slack)
    correction = CorrectionPipeline(store, classifier, slack)

    message = Message(
        text="Call John tomorrow about the proposal",
        user="U1", channel="C1", source="slack", timestamp=PARENT_TS,
    )
    filed = await capture.capture(message)
    assert filed.status == Outcome.FILED
    slack.post_message.reset_mock()

    return Mock(store=store, slack=slack, llm=llm, correction=correction, filed=filed)


def _last_reply(env):
    return env.slack.post_message.call_args


class TestFix:
    @pytest.mark.asyncio
    async def test_fix_moves_capture(self, env):
        old_record = env.filed.record

        result = await env.correction.correct(_reply("fix: admin"))

        assert result.status == Outcome.CORRECTED
        tasks = env.store.list(Destination.ADMIN)
        assert len(tasks) == 1
        assert tasks[0].task == "admin title"

        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.CORRECTED
        assert entry.destination == Destination.ADMIN
        assert entry.record_id == tasks[0].id
        assert entry.record_title == "admin title"
        assert entry.superseded == [RecordRef(destination=Destination.PROJECTS, record_id=old_record.id)]
        assert entry.applied_corrections == ["1700000000.000200"]
        # Original record is kept
        assert env.store.get(Destination.PROJECTS, old_record.id) is not None

        reply = _last_reply(env)
        assert reply.kwargs["thread_ts"] == PARENT_TS
        assert "admin" in reply.args[1]

    @pytest.mark.asyncio
    async def test_forced_prompt_uses_original_text(self, env):
        await env.correction.correct(_reply("fix: idea"))
        prompt = env.llm.prompts[-1]
        assert '"Call John tomorrow about the proposal"' in prompt
        assert 'filed this thought under "ideas"' in prompt

    @pytest.mark.asyncio
    async def test_low_model_confidence_does_not_block_fix(self, env):
        # ScriptedLLM answers forced prompts with confidence 0.3
        result = await env.correction.correct(_reply("fix: people"))
        assert result.status == Outcome.CORRECTED
        assert result.entry.confidence == 0.9  # confidence of the original capture

    @pytest.mark.asyncio
    async def test_second_correction_chains_superseded(self, env):
        first_id = env.filed.record.id
        await env.correction.correct(_reply("fix: admin", ts="2.1"))
        admin_id = env.store.list(Destination.ADMIN)[0].id

        result = await env.correction.correct(_reply("fix: vocab", ts="2.2"))

        assert result.status == Outcome.CORRECTED
        entry = result.entry
        assert entry.destination == Destination.VOCABULARY
        assert entry.superseded == [
            RecordRef(destination=Destination.PROJECTS, record_id=first_id),
            RecordRef(destination=Destination.ADMIN, record_id=admin_id),
        ]
        assert entry.applied_corrections == ["2.1", "2.2"]
        assert len(env.store.list(Destination.VOCABULARY)) == 1

    @pytest.mark.asyncio
    async def test_fix_of_reviewed_capture_files_record(self):
        store, slack = RecordStore(), _slack()
        llm = ScriptedLLM(_answer("ideas", "Boats", confidence=0.2))
        classifier = Classifier(llm)
        capture = CapturePipeline(store, classifier, slack)
        correction = CorrectionPipeline(store, classifier, slack)
        parent = Message(text="boats?", user="U1", channel="C1", source="slack", timestamp=PARENT_TS)
        assert (await capture.capture(parent)).status == Outcome.NEEDS_REVIEW

        result = await correction.correct(_reply("fix: projects"))

        assert result.status == Outcome.CORRECTED
        assert result.entry.superseded == []
        assert result.entry.record_id == store.list(Destination.PROJECTS)[0].id


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_soft_marks_entry(self, env):
        result = await env.correction.correct(_reply("fix: delete"))

        assert result.status == Outcome.DELETED
        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.DELETED
        assert entry.record_id == env.filed.record.id
        assert "Deleted" in _last_reply(env).args[1]

    @pytest.mark.asyncio
    async def test_deleted_is_terminal(self, env):
        await env.correction.correct(_reply("fix: delete", ts="2.1"))

        result = await env.correction.correct(_reply("fix: admin", ts="2.2"))

        assert result.status == Outcome.REJECTED
        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.DELETED
        assert env.store.list(Destination.ADMIN) == []
        assert "deleted" in _last_reply(env).args[1]


class TestRejected:
    @pytest.mark.asyncio
    async def test_missing_parent(self, env):
        result = await env.correction.correct(_reply("fix: idea", thread_ts="5.5"))
        assert result.status == Outcome.NOT_FOUND
        reply = _last_reply(env)
        assert reply.kwargs["thread_ts"] == "5.5"
        assert "couldn't find" in reply.args[1]

    @pytest.mark.asyncio
    async def test_unknown_target(self, env):
        result = await env.correction.correct(_reply("fix: recipes"))

        assert result.status == Outcome.REJECTED
        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.FILED
        text = _last_reply(env).args[1]
        assert "recipes" in text and "vocabulary" in text and "delete" in text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["fix:", "fix:   ", "FIX:\t"])
    async def test_missing_target_lists_options(self, env, text):
        result = await env.correction.correct(_reply(text))

        assert result.status == Outcome.REJECTED
        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.FILED
        assert entry.applied_corrections == []
        reply = _last_reply(env)
        assert reply.kwargs["thread_ts"] == PARENT_TS
        assert "Valid options" in reply.args[1] and "delete" in reply.args[1]

    @pytest.mark.asyncio
    async def test_non_command_ignored(self, env):
        result = await env.correction.correct(_reply("thanks!"))
        assert result.status == Outcome.IGNORED
        env.slack.post_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redelivered_reply_applied_once(self, env):
        await env.correction.correct(_reply("fix: admin"))
        result = await env.correction.correct(_reply("fix: admin"))

        assert result.status == Outcome.DUPLICATE
        assert len(env.store.list(Destination.ADMIN)) == 1
        assert env.slack.post_message.await_count == 1

    @pytest.mark.asyncio
    async def test_classifier_failure_leaves_entry(self, env, caplog):
        env.llm.fail = True

        with caplog.at_level(logging.ERROR, logger="brain.capture.correction"):
            result = await env.correction.correct(_reply("fix: admin"))

        assert result.status == Outcome.FAILED
        entry = env.store.get_inbox_entry_by_message_id(PARENT_TS)
        assert entry.status == InboxStatus.FILED
        assert entry.applied_corrections == []
        assert "stage=classify" in caplog.text
        assert "destination=admin" in caplog.text
        assert "couldn't apply" in _last_reply(env).args[1]
