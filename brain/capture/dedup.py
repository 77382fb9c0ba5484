"""
Pending message tracking

Process-wide set of message ids currently being processed. A fast-path
guard against Slack's at-least-once redelivery while the first delivery is
still in flight; the Inbox Log in the record store is the durable check.
The set is empty after a restart.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Set


class PendingMessages:
    """Concurrent set of in-flight message ids"""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Set[str] = set()

    def claim(self, message_id: str) -> bool:
        """Mark a message as in flight. False if it already was."""
        with self._lock:
            if message_id in self._pending:
                return False
            self._pending.add(message_id)
            return True

    def release(self, message_id: str) -> None:
        with self._lock:
            self._pending.discard(message_id)

    def __contains__(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    @contextmanager
    def track(self, message_id: str) -> Iterator[bool]:
        """
        Claim a message for the duration of a block.

        Yields True when this caller owns the message. The claim is
        released on every exit path; a caller that did not win the claim
        releases nothing.
        """
        claimed = self.claim(message_id)
        try:
            yield claimed
        finally:
            if claimed:
                self.release(message_id)
