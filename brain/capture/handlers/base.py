"""
Base Handler

Abstract base class for source-specific event handlers.
Provides a common interface for converting events to Messages.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class Message:
    """
    Common message format for all sources.

    `timestamp` is the platform's message identifier and doubles as the
    idempotency key; `thread_ts` is the parent message for replies.
    """
    text: str
    user: str
    channel: str
    source: str  # "slack"
    timestamp: str
    thread_ts: Optional[str] = None
    is_bot: bool = False
    subtype: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None

    @property
    def is_valid(self) -> bool:
        """Check if message has minimum required fields"""
        return bool(self.text and self.text.strip() and self.timestamp)

    @property
    def is_thread_reply(self) -> bool:
        return self.thread_ts is not None and self.thread_ts != self.timestamp


class BaseHandler(ABC):
    """
    Abstract base class for source handlers.

    Each handler must implement:
    - parse_event: Convert raw event to Message
    - verify_signature: Verify webhook signature (if applicable)
    """

    def __init__(self, source_name: str):
        self.source_name = source_name

    @abstractmethod
    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[Message]:
        """
        Parse raw event data into a Message.

        Returns:
            Message object or None if event should be ignored
        """

    @abstractmethod
    def verify_signature(
        self,
        body: bytes,
        signature: str,
        timestamp: str
    ) -> bool:
        """
        Verify the webhook signature.

        Args:
            body: Raw request body
            signature: Signature from headers
            timestamp: Timestamp from headers

        Returns:
            True if signature is valid
        """

    def should_process(self, message: Message) -> bool:
        """Skip empty and bot-authored messages. Override for source rules."""
        if not message.is_valid:
            return False
        if message.is_bot:
            return False
        return True
