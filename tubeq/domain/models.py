"""
Domain models for tubeq — backed by Pydantic v2.

All models are frozen (immutable). A job is nothing more than an opaque
payload string and the score it carries in one of the tube's sorted sets;
what the score means depends on the scheduling policy.
"""

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class ScheduleOutcome(str, Enum):
    """Result of DelayedScheduler.schedule()."""

    SCHEDULED = "scheduled"
    UPDATED = "updated"
    QUIESCED = "quiesced"
    IN_FLIGHT = "in_flight"
    QUEUE_FULL = "queue_full"

    @property
    def accepted(self) -> bool:
        """True when the ready queue now holds the payload at the requested score."""
        return self in (ScheduleOutcome.SCHEDULED, ScheduleOutcome.UPDATED)


class JobInfo(BaseModel):
    """
    A job record as it sits in a ready or running queue.

    payload — opaque caller-chosen string; also the dedup identity
    score   — priority, or an epoch-millisecond instant (ready-at / lease expiry)
    """

    model_config = ConfigDict(frozen=True)

    payload: str
    score: float

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, v: str | bytes) -> str:
        """Store clients may hand back raw bytes; payloads are always UTF-8."""
        match v:
            case bytes():
                return v.decode("utf-8")
            case str():
                return v
            case _:
                raise ValueError(
                    f"payload must be str or bytes, got {type(v).__name__}"
                )

    def as_datetime(self) -> datetime:
        """Interpret the score as epoch milliseconds and return it as a UTC datetime."""
        return datetime.fromtimestamp(self.score / 1000.0, tz=timezone.utc)


class ScoreWindow(BaseModel):
    """
    An inclusive score range [low, high], optionally open at the low end.

    Infinite bounds are allowed and mean "no limit on that side".
    """

    model_config = ConfigDict(frozen=True)

    low: float = -math.inf
    high: float = math.inf
    low_exclusive: bool = False

    @model_validator(mode="after")
    def _check_order(self) -> "ScoreWindow":
        if self.low > self.high:
            raise ValueError(f"window low {self.low} is above high {self.high}")
        return self

    @classmethod
    def unbounded(cls) -> "ScoreWindow":
        """Every score qualifies."""
        return cls()

    @classmethod
    def due_by(cls, now: float) -> "ScoreWindow":
        """[0, now] — entries whose instant has already arrived."""
        return cls(low=0.0, high=now)

    @classmethod
    def after(cls, now: float) -> "ScoreWindow":
        """(now, +inf] — entries whose instant is still in the future."""
        return cls(low=now, high=math.inf, low_exclusive=True)

    def contains(self, score: float) -> bool:
        above_low = score > self.low if self.low_exclusive else score >= self.low
        return above_low and score <= self.high
