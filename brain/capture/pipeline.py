"""
Capture Pipeline

Converts one inbound chat message into either a filed record or a
review-pending Inbox Log entry, exactly once.

Pipeline:
1. Idempotency gate (in-flight set, then the Inbox Log)
2. Classify (a destination prefix forces destination and confidence 1.0)
3. Confidence gate: below threshold -> needs_review, no record
4. Create the record, then the `filed` Inbox Log entry
5. React to the source message and confirm in its thread

Notification failures are logged and never undo persistence. Any other
failure is logged with message id, destination and stage, and answered with
an apologetic reply; nothing is retried here (Slack's redelivery is the only
retry, and the idempotency gate absorbs it).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..common.record_store import DuplicateMessageError, RecordStore
from ..common.schemas import CaptureRecord, InboxLogEntry, InboxStatus
from ..common.slack_client import SlackClient
from . import replies
from .classifier import Classifier
from .dedup import PendingMessages
from .handlers import Message
from .routing import file_classification

logger = logging.getLogger("brain.capture.pipeline")


class Outcome(str, Enum):
    """How a pipeline invocation ended"""
    FILED = "filed"
    NEEDS_REVIEW = "needs_review"
    CORRECTED = "corrected"
    DELETED = "deleted"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class PipelineOutcome:
    """Result of one capture or correction"""
    status: Outcome
    entry: Optional[InboxLogEntry] = None
    record: Optional[CaptureRecord] = None


class SlackPipeline:
    """Collaborators and best-effort notifications shared by both pipelines"""

    def __init__(
        self,
        store: RecordStore,
        classifier: Classifier,
        slack: SlackClient,
        pending: Optional[PendingMessages] = None,
    ):
        self._store = store
        self._classifier = classifier
        self._slack = slack
        self._pending = pending if pending is not None else PendingMessages()

    async def _classify(self, text: str):
        # LLM SDK calls block; keep the event loop free for other deliveries
        return await asyncio.to_thread(self._classifier.classify, text)

    async def _reply(self, channel: str, text: str, thread_ts: str) -> None:
        try:
            await self._slack.post_message(channel, text, thread_ts=thread_ts)
        except Exception as e:
            logger.warning("Failed to post reply in thread %s: %s", thread_ts, e)

    async def _react(self, channel: str, timestamp: str, name: str) -> None:
        try:
            await self._slack.add_reaction(channel, timestamp, name)
        except Exception as e:
            logger.warning("Failed to add reaction to %s: %s", timestamp, e)


class CapturePipeline(SlackPipeline):
    """
    Capture pipeline for top-level messages.

    Usage:
        pipeline = CapturePipeline(store, classifier, slack, pending)
        result = await pipeline.capture(message)
    """

    def __init__(
        self,
        store: RecordStore,
        classifier: Classifier,
        slack: SlackClient,
        pending: Optional[PendingMessages] = None,
        confidence_threshold: float = 0.6,
        ack_reaction: str = "white_check_mark",
    ):
        """
        Initialize capture pipeline.

        Args:
            store: Record store (records + Inbox Log)
            classifier: Classifier adapter
            slack: Messaging adapter
            pending: Shared in-flight message set
            confidence_threshold: Minimum confidence to file without review
            ack_reaction: Emoji added to filed messages
        """
        super().__init__(store, classifier, slack, pending)
        self._threshold = confidence_threshold
        self._ack_reaction = ack_reaction

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    async def capture(self, message: Message) -> PipelineOutcome:
        """Process one inbound message at most once"""
        message_id = message.timestamp

        with self._pending.track(message_id) as claimed:
            if not claimed:
                logger.info("Message %s already in flight, skipping redelivery", message_id)
                return PipelineOutcome(Outcome.DUPLICATE)

            existing = self._store.get_inbox_entry_by_message_id(message_id)
            if existing is not None:
                logger.info("Message %s already logged as %s, skipping", message_id, existing.status.value)
                return PipelineOutcome(Outcome.DUPLICATE, entry=existing)

            return await self._process(message)

    async def _process(self, message: Message) -> PipelineOutcome:
        message_id = message.timestamp
        stage = "classify"
        destination = None
        record = None

        try:
            classification = await self._classify(message.text)
            destination = classification.destination.value
            logger.info(
                "Message %s classified as %s (confidence %.2f)",
                message_id, destination, classification.confidence,
            )

            stage = "persist"
            # Another process may have logged it while we were classifying
            if self._store.get_inbox_entry_by_message_id(message_id) is not None:
                logger.info("Message %s logged during classification, skipping", message_id)
                return PipelineOutcome(Outcome.DUPLICATE)

            if classification.confidence < self._threshold:
                entry = self._store.create_inbox_entry(
                    original_text=message.text,
                    destination=classification.destination,
                    record_title=classification.title,
                    confidence=classification.confidence,
                    status=InboxStatus.NEEDS_REVIEW,
                    slack_message_id=message_id,
                )
                stage = "notify"
                await self._reply(
                    message.channel,
                    replies.needs_review(classification.destination, classification.confidence),
                    thread_ts=message_id,
                )
                return PipelineOutcome(Outcome.NEEDS_REVIEW, entry=entry)

            record = file_classification(self._store, classification)
            entry = self._store.create_inbox_entry(
                original_text=message.text,
                destination=classification.destination,
                record_id=record.id,
                record_title=record.display_title,
                confidence=classification.confidence,
                status=InboxStatus.FILED,
                slack_message_id=message_id,
            )

            stage = "notify"
            await self._react(message.channel, message_id, self._ack_reaction)
            await self._reply(
                message.channel,
                replies.filed(classification.destination, record.display_title, classification.confidence),
                thread_ts=message_id,
            )
            return PipelineOutcome(Outcome.FILED, entry=entry, record=record)

        except DuplicateMessageError:
            logger.info("Message %s was logged concurrently, discarding this attempt", message_id)
            if record is not None:
                self._store.delete(destination, record.id)
            return PipelineOutcome(Outcome.DUPLICATE)

        except Exception:
            logger.exception(
                "Capture failed for message %s (destination=%s, stage=%s)",
                message_id, destination, stage,
            )
            if record is not None:
                logger.error("Record %s has no inbox entry (message %s)", record.id, message_id)
            await self._reply(message.channel, replies.capture_failed(), thread_ts=message_id)
            return PipelineOutcome(Outcome.FAILED, record=record)
