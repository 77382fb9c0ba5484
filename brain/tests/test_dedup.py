"""Tests for the in-flight message set."""

import threading

import pytest

from brain.capture.dedup import PendingMessages


class TestPendingMessages:
    def test_claim_once(self):
        pending = PendingMessages()
        assert pending.claim("1.1")
        assert not pending.claim("1.1")
        assert "1.1" in pending
        pending.release("1.1")
        assert "1.1" not in pending
        assert pending.claim("1.1")

    def test_release_unknown_is_noop(self):
        pending = PendingMessages()
        pending.release("never")
        assert len(pending) == 0

    def test_track_releases_on_exit(self):
        pending = PendingMessages()
        with pending.track("1.1") as claimed:
            assert claimed
            assert "1.1" in pending
        assert "1.1" not in pending

    def test_track_releases_on_error(self):
        pending = PendingMessages()
        with pytest.raises(RuntimeError):
            with pending.track("1.1"):
                raise RuntimeError("boom")
        assert len(pending) == 0

    def test_losing_claim_does_not_release_winner(self):
        pending = PendingMessages()
        with pending.track("1.1") as first:
            with pending.track("1.1") as second:
                assert first and not second
            assert "1.1" in pending
        assert "1.1" not in pending

    def test_concurrent_claims_single_winner(self):
        pending = PendingMessages()
        wins = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            wins.append(pending.claim("1.1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert wins.count(True) == 1
