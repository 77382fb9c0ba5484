"""
Second Brain

Slack-driven personal knowledge capture. Free-text thoughts posted to a
channel are classified by an LLM and filed into People, Projects, Ideas,
Admin and Vocabulary, with an Inbox Log audit trail and thread-reply
corrections.

Principles:
- A message is processed at most once (the Inbox Log is the durable key)
- Low-confidence captures are held for review, never guessed into a table
- Corrections never destroy the record filed first
- The user's prefix beats the model

Usage:
    from brain.common import load_config, RecordStore
    from brain.common.schemas import Destination, InboxLogEntry
    from brain.capture import Classifier, CapturePipeline, CorrectionPipeline
    from brain.digest import DigestCollector, Summarizer
"""

__version__ = "0.1.0"
