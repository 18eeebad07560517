"""
Queue key space — deterministic key names for a tube.

    <prefix><tube>:ready_queue
    <prefix><tube>:running_queue
    <prefix><tube>:paused          (exclusive policy only)

These names are shared with other clients of the same store and must not
change.
"""
from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class TubeKeys:
    """Builds store keys for tubes under a common prefix."""

    prefix: str = ""

    def ready(self, tube: str) -> str:
        return f"{self.prefix}{tube}:ready_queue"

    def running(self, tube: str) -> str:
        return f"{self.prefix}{tube}:running_queue"

    def paused(self, tube: str) -> str:
        return f"{self.prefix}{tube}:paused"
