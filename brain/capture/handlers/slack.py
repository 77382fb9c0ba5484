"""
Slack Handler

Handles Slack webhook events and converts them to Messages.
"""

import hmac
import hashlib
import logging
import time
from typing import Optional, Dict, Any

from .base import BaseHandler, Message
from ..keywords import parse_fix_command

logger = logging.getLogger("brain.capture.slack")

# Requests older than this are treated as replays
MAX_REQUEST_AGE_SECONDS = 60 * 5

ROUTE_CAPTURE = "capture"
ROUTE_CORRECTION = "correction"


class SlackHandler(BaseHandler):
    """
    Handler for Slack Events API webhooks.

    Processes:
    - top-level channel messages (captures)
    - thread replies of the form "fix: <target>" (corrections)

    Ignores:
    - Bot messages, including the app's own replies
    - Any message subtype (edits, deletions, joins, file shares)
    - Other thread replies
    """

    def __init__(
        self,
        signing_secret: str = "",
        bot_user_id: str = "",
        capture_channel_id: str = "",
    ):
        """
        Initialize Slack handler.

        Args:
            signing_secret: Slack signing secret for verification
            bot_user_id: The app's own user id, so its messages are skipped
            capture_channel_id: Restrict captures to this channel (optional)
        """
        super().__init__("slack")
        self._signing_secret = signing_secret
        self._bot_user_id = bot_user_id
        self._capture_channel_id = capture_channel_id
        if not signing_secret:
            logger.warning("SLACK_SIGNING_SECRET not set, skipping request verification")

    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[Message]:
        """
        Parse Slack event into Message.

        Returns:
            Message object or None if event should be ignored
        """
        if raw_data.get("type") != "event_callback":
            return None

        event = raw_data.get("event", {})
        if event.get("type") != "message":
            return None

        return Message(
            text=event.get("text", ""),
            user=event.get("user", ""),
            channel=event.get("channel", ""),
            source="slack",
            timestamp=event.get("ts", ""),
            thread_ts=event.get("thread_ts"),
            is_bot=bool(event.get("bot_id")) or (
                bool(self._bot_user_id) and event.get("user") == self._bot_user_id
            ),
            subtype=event.get("subtype"),
            raw_data=event,
        )

    def verify_signature(
        self,
        body: bytes,
        signature: str,
        timestamp: str
    ) -> bool:
        """
        Verify Slack request signature.

        Args:
            body: Raw request body
            signature: X-Slack-Signature header
            timestamp: X-Slack-Request-Timestamp header

        Returns:
            True if signature is valid
        """
        if not self._signing_secret:
            return True

        if not signature or not timestamp:
            return False

        # Check timestamp is recent (within 5 minutes)
        try:
            ts = int(timestamp)
        except ValueError:
            return False
        if abs(time.time() - ts) > MAX_REQUEST_AGE_SECONDS:
            return False

        # Signed over the raw bytes; the body need not be valid UTF-8
        sig_basestring = b"v0:" + timestamp.encode("utf-8") + b":" + body
        expected_sig = "v0=" + hmac.new(
            self._signing_secret.encode("utf-8"),
            sig_basestring,
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(expected_sig, signature)

    def should_process(self, message: Message) -> bool:
        if not super().should_process(message):
            return False
        if message.subtype:
            return False
        if self._capture_channel_id and message.channel != self._capture_channel_id:
            return False
        return True

    def route(self, message: Message) -> Optional[str]:
        """
        Decide which pipeline handles a message.

        Returns:
            ROUTE_CAPTURE, ROUTE_CORRECTION, or None to ignore
        """
        if not self.should_process(message):
            return None
        if not message.is_thread_reply:
            return ROUTE_CAPTURE
        if parse_fix_command(message.text) is not None:
            return ROUTE_CORRECTION
        return None

    def is_url_verification(self, raw_data: Dict[str, Any]) -> bool:
        """Check if request is URL verification"""
        return raw_data.get("type") == "url_verification"

    def get_challenge(self, raw_data: Dict[str, Any]) -> Optional[str]:
        """Get challenge for URL verification"""
        if self.is_url_verification(raw_data):
            return raw_data.get("challenge")
        return None
