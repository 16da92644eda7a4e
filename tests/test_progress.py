"""Tests for job progress and job result tracking."""

import pytest

from folder_ingest.models import JobStatus
from folder_ingest.progress import JobProgressTracker, JobResultTracker, compute_percent, compute_time_left


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return JobProgressTracker(clock=clock)


class TestComputations:

    @pytest.mark.parametrize("status,total,processed,expected", [
        (JobStatus.RUNNING, 200, 50, 25),
        (JobStatus.RUNNING, 3, 1, 33),
        (JobStatus.RUNNING, 10, 15, 100),
        (JobStatus.RUNNING, 0, 0, 0),
        (JobStatus.FINISHED, 0, 0, 100),
        (JobStatus.FAILED, 0, 0, 0),
    ])
    def test_percent(self, status, total, processed, expected):
        assert compute_percent(status, total, processed) == expected

    def test_time_left_rounds_up(self):
        assert compute_time_left(JobStatus.RUNNING, 200, 50, 10) == 30
        assert compute_time_left(JobStatus.RUNNING, 10, 3, 1) == 3

    @pytest.mark.parametrize("status,total,processed,elapsed", [
        (JobStatus.FINISHED, 200, 50, 10),
        (JobStatus.RUNNING, 0, 0, 10),
        (JobStatus.RUNNING, 200, 0, 10),
        (JobStatus.RUNNING, 200, 50, 0),
    ])
    def test_time_left_unknown(self, status, total, processed, elapsed):
        assert compute_time_left(status, total, processed, elapsed) is None


class TestJobProgressTracker:

    def test_running_snapshot(self, tracker, clock):
        """200 records, 50 done after 10s -> 25% and 30s left."""
        job_id = tracker.start(200)
        for _ in range(50):
            tracker.increment_processed(job_id)
        clock.now = 10

        progress = tracker.get(job_id)
        assert progress.status == JobStatus.RUNNING
        assert (progress.total_records, progress.processed_records) == (200, 50)
        assert progress.percent == 25
        assert progress.time_left == 30
        assert progress.elapsed_seconds == 10

    def test_unknown_job(self, tracker):
        assert tracker.get("nope") is None
        assert tracker.finish("nope") is False
        tracker.increment_processed("nope")

    def test_terminal_snapshots_are_frozen(self, tracker, clock):
        job_id = tracker.start(4)
        tracker.increment_processed(job_id, 4)
        clock.now = 5
        assert tracker.finish(job_id) is True

        first = tracker.get(job_id)
        clock.now = 500
        tracker.increment_processed(job_id)
        second = tracker.get(job_id)

        assert first == second
        assert first.status == JobStatus.FINISHED
        assert first.percent == 100
        assert first.time_left is None
        assert first.elapsed_seconds == 5

    def test_terminal_transition_happens_once(self, tracker):
        job_id = tracker.start(1)
        assert tracker.fail(job_id) is True
        assert tracker.finish(job_id) is False
        assert tracker.get(job_id).status == JobStatus.FAILED

    def test_empty_job_finishes_at_100(self, tracker):
        job_id = tracker.start(0)
        assert tracker.get(job_id).percent == 0
        tracker.finish(job_id)
        assert tracker.get(job_id).percent == 100

    def test_explicit_job_id(self, tracker):
        assert tracker.start(3, job_id="job-1") == "job-1"
        assert tracker.job_ids() == ["job-1"]

    def test_generated_ids_are_unique(self, tracker):
        assert tracker.start(1) != tracker.start(1)

    def test_purge_completed(self, tracker, clock):
        running = tracker.start(1)
        done = tracker.start(1)
        tracker.finish(done)

        clock.now = 30
        assert tracker.purge_completed(60) == []
        clock.now = 100
        assert tracker.purge_completed(60) == [done]
        assert tracker.job_ids() == [running]


class TestJobResultTracker:

    def test_records_in_order(self):
        results = JobResultTracker()
        results.start("j")
        results.add_treated("j", "a.csv")
        results.add_failed("j", "b.txt", "Unsupported file type: b.txt")
        results.add_treated("j", "c.xml")

        result = results.get("j")
        assert result.files_treated == ["a.csv", "c.xml"]
        assert [(f.file_name, f.detail) for f in result.files_failed] == [("b.txt", "Unsupported file type: b.txt")]

    def test_snapshot_is_a_copy(self):
        results = JobResultTracker()
        results.start("j")
        snapshot = results.get("j")
        snapshot.files_treated.append("x.csv")
        assert results.get("j").files_treated == []

    def test_unknown_job_ignored(self):
        results = JobResultTracker()
        results.add_treated("nope", "a.csv")
        assert results.get("nope") is None
        assert results.purge("nope") is False

    def test_purge(self):
        results = JobResultTracker()
        results.start("j")
        assert results.purge("j") is True
        assert results.get("j") is None
