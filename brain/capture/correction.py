"""
Correction Pipeline

Applies a `fix: <target>` thread reply to the Inbox Log entry of the
thread's parent message.

- `fix: delete` soft-deletes the entry (status `deleted`, terminal)
- `fix: <destination>` re-runs classification with the destination forced,
  files a new record and marks the entry `corrected`. The previously filed
  record is kept; its reference moves to the entry's `superseded` list.

A reply is applied at most once: its ts is recorded on the entry.
"""

import logging
from typing import Optional

from ..common.schemas import InboxLogEntry, InboxStatus
from . import replies
from .handlers import Message
from .keywords import DELETE_KEYWORD, parse_fix_command, resolve_destination, split_prefix
from .pipeline import Outcome, PipelineOutcome, SlackPipeline
from .routing import file_classification

logger = logging.getLogger("brain.capture.correction")


class CorrectionPipeline(SlackPipeline):
    """
    Correction pipeline for thread replies.

    Usage:
        pipeline = CorrectionPipeline(store, classifier, slack, pending)
        result = await pipeline.correct(reply)
    """

    async def correct(self, message: Message) -> PipelineOutcome:
        """Apply one fix command, at most once per reply"""
        target = parse_fix_command(message.text)
        if target is None or not message.thread_ts:
            return PipelineOutcome(Outcome.IGNORED)

        with self._pending.track(message.timestamp) as claimed:
            if not claimed:
                logger.info("Correction %s already in flight, skipping redelivery", message.timestamp)
                return PipelineOutcome(Outcome.DUPLICATE)
            return await self._process(message, target)

    async def _process(self, message: Message, target: str) -> PipelineOutcome:
        parent_id = message.thread_ts
        stage = "lookup"
        destination: Optional[str] = None

        try:
            entry = self._store.get_inbox_entry_by_message_id(parent_id)
            if entry is None:
                logger.info("No inbox entry for thread %s, correction dropped", parent_id)
                await self._reply(message.channel, replies.original_not_found(), thread_ts=parent_id)
                return PipelineOutcome(Outcome.NOT_FOUND)

            if message.timestamp in entry.applied_corrections:
                logger.info("Correction %s already applied to %s", message.timestamp, entry.id)
                return PipelineOutcome(Outcome.DUPLICATE, entry=entry)

            if entry.status == InboxStatus.DELETED:
                await self._reply(message.channel, replies.already_deleted(), thread_ts=parent_id)
                return PipelineOutcome(Outcome.REJECTED, entry=entry)

            if target == DELETE_KEYWORD:
                stage = "persist"
                updated = self._store.update_inbox_entry(
                    entry.id,
                    status=InboxStatus.DELETED,
                    applied_corrections=entry.applied_corrections + [message.timestamp],
                )
                logger.info("Inbox entry %s deleted by %s", entry.id, message.timestamp)
                stage = "notify"
                await self._reply(message.channel, replies.deleted(), thread_ts=parent_id)
                return PipelineOutcome(Outcome.DELETED, entry=updated)

            forced = resolve_destination(target)
            if forced is None:
                await self._reply(message.channel, replies.unknown_target(target), thread_ts=parent_id)
                return PipelineOutcome(Outcome.REJECTED, entry=entry)
            destination = forced.value

            stage = "classify"
            classification = await self._classify(_forced_text(entry, forced.value))

            stage = "persist"
            record = file_classification(self._store, classification)
            updated = self._store.update_inbox_entry(
                entry.id,
                destination=classification.destination,
                record_id=record.id,
                record_title=record.display_title,
                status=InboxStatus.CORRECTED,
                superseded=_superseded(entry),
                applied_corrections=entry.applied_corrections + [message.timestamp],
            )
            logger.info(
                "Inbox entry %s corrected to %s (record %s)",
                entry.id, destination, record.id,
            )

            stage = "notify"
            await self._reply(
                message.channel,
                replies.corrected(classification.destination, record.display_title),
                thread_ts=parent_id,
            )
            return PipelineOutcome(Outcome.CORRECTED, entry=updated, record=record)

        except Exception:
            logger.exception(
                "Correction failed for reply %s on %s (destination=%s, stage=%s)",
                message.timestamp, parent_id, destination, stage,
            )
            await self._reply(message.channel, replies.correction_failed(), thread_ts=parent_id)
            return PipelineOutcome(Outcome.FAILED)


def _forced_text(entry: InboxLogEntry, destination: str) -> str:
    """Original text with the target destination as its prefix"""
    _, text = split_prefix(entry.original_text)
    return f"{destination}: {text}"


def _superseded(entry: InboxLogEntry):
    refs = list(entry.superseded)
    if entry.record_ref is not None:
        refs.append(entry.record_ref)
    return refs
