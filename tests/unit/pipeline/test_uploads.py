"""
Tests for ChunkUploadTracker.
"""
from muninn.pipeline.uploads import ChunkUploadTracker


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestChunkUploadTracker:
    def test_running_total(self):
        tracker = ChunkUploadTracker(clock=FakeClock())
        tracker.start("e1", "e1.webm")

        assert tracker.add("e1", 10) == 10
        assert tracker.add("e1", 5) == 15
        assert tracker.get("e1").next_index == 2
        assert "e1" in tracker and len(tracker) == 1

    def test_add_untracked(self):
        assert ChunkUploadTracker().add("missing", 10) is None

    def test_restart_resets_total(self):
        tracker = ChunkUploadTracker(clock=FakeClock())
        tracker.start("e1", "e1.webm")
        tracker.add("e1", 100)

        tracker.start("e1", "e1.ogg")

        assert tracker.get("e1").total_bytes == 0
        assert tracker.get("e1").key == "e1.ogg"

    def test_discard(self):
        tracker = ChunkUploadTracker()
        tracker.start("e1", "e1.webm")

        assert tracker.discard("e1").key == "e1.webm"
        assert tracker.discard("e1") is None

    def test_stale_uploads_are_removed(self):
        clock = FakeClock()
        tracker = ChunkUploadTracker(clock=clock)
        tracker.start("old", "old.webm")
        clock.now += 500
        tracker.start("fresh", "fresh.webm")
        clock.now += 200

        expired = tracker.stale(max_age=600)

        assert [entry_id for entry_id, _ in expired] == ["old"]
        assert "old" not in tracker
        assert "fresh" in tracker

    def test_activity_keeps_upload_alive(self):
        clock = FakeClock()
        tracker = ChunkUploadTracker(clock=clock)
        tracker.start("e1", "e1.webm")
        clock.now += 500
        tracker.add("e1", 1)
        clock.now += 500

        assert tracker.stale(max_age=600) == []
