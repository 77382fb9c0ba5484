"""
Second Brain Common Module

Shared infrastructure for the capture pipelines and the digest job.
"""

from .config import BrainConfig, load_config
from .llm_client import LLMClient
from .record_store import RecordStore, DuplicateMessageError
from .slack_client import SlackClient, SlackAPIError

__all__ = [
    "BrainConfig",
    "load_config",
    "LLMClient",
    "RecordStore",
    "DuplicateMessageError",
    "SlackClient",
    "SlackAPIError",
]
