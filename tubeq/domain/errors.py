"""
Exception hierarchy for tubeq.

TubeqError
└── StoreError   — underlying store or connection failure (wraps original exception)

Absence is never an error in tubeq: operations on unknown payloads return
False or an empty list. Capacity rejection is reported as
ScheduleOutcome.QUEUE_FULL, not raised.
"""

from __future__ import annotations


class TubeqError(Exception):
    """Base class for all tubeq exceptions."""


class StoreError(TubeqError):
    """
    Wraps an underlying failure from a store adapter.

    Attributes
    ----------
    cause : Exception
        The original exception from the store client.
    """

    def __init__(self, message: str, cause: Exception) -> None:
        self.cause = cause
        super().__init__(f"{message}: {cause}")
