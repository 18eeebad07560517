import math
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from tubeq.domain.models import JobInfo, ScheduleOutcome, ScoreWindow

# ---------------------------------------------------------------------------
# JobInfo
# ---------------------------------------------------------------------------


def test_job_info_fields():
    job = JobInfo(payload="job-1", score=5.0)
    assert job.payload == "job-1"
    assert job.score == 5.0


def test_job_info_decodes_bytes_payload():
    job = JobInfo(payload=b"caf\xc3\xa9", score=1)
    assert job.payload == "café"


def test_job_info_rejects_non_text_payload():
    with pytest.raises(ValidationError):
        JobInfo(payload=42, score=1)


def test_job_info_is_frozen():
    job = JobInfo(payload="p", score=1)
    with pytest.raises(ValidationError):
        job.score = 2  # type: ignore[misc]


def test_job_info_equality_by_value():
    assert JobInfo(payload="p", score=1) == JobInfo(payload="p", score=1.0)
    assert JobInfo(payload="p", score=1) != JobInfo(payload="p", score=2)


def test_job_info_as_datetime():
    job = JobInfo(payload="p", score=1_700_000_000_500)
    assert job.as_datetime() == datetime(2023, 11, 14, 22, 13, 20, 500000, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# ScoreWindow
# ---------------------------------------------------------------------------


def test_unbounded_window_contains_everything():
    window = ScoreWindow.unbounded()
    assert window.contains(-1e300)
    assert window.contains(0)
    assert window.contains(math.inf)


def test_due_by_is_inclusive_at_now():
    window = ScoreWindow.due_by(100)
    assert window.contains(0)
    assert window.contains(100)
    assert not window.contains(100.5)
    assert not window.contains(-1)


def test_after_is_exclusive_at_now():
    window = ScoreWindow.after(100)
    assert not window.contains(100)
    assert window.contains(101)
    assert window.contains(math.inf)


def test_due_by_and_after_partition_non_negative_scores():
    now = 1_000
    for score in (0, 999, 1_000, 1_001, 10**12):
        assert ScoreWindow.due_by(now).contains(score) != ScoreWindow.after(now).contains(score)


def test_window_rejects_inverted_bounds():
    with pytest.raises(ValidationError):
        ScoreWindow(low=10, high=5)


# ---------------------------------------------------------------------------
# ScheduleOutcome
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("outcome", "accepted"),
    [
        (ScheduleOutcome.SCHEDULED, True),
        (ScheduleOutcome.UPDATED, True),
        (ScheduleOutcome.QUIESCED, False),
        (ScheduleOutcome.IN_FLIGHT, False),
        (ScheduleOutcome.QUEUE_FULL, False),
    ],
)
def test_schedule_outcome_accepted(outcome: ScheduleOutcome, accepted: bool):
    assert outcome.accepted is accepted


def test_schedule_outcome_values_are_strings():
    assert ScheduleOutcome("queue_full") is ScheduleOutcome.QUEUE_FULL
    assert ScheduleOutcome.QUIESCED == "quiesced"
