"""
Codec — translate between tubeq values and the raw wire values of the store.

Scores on the wire
------------------
Redis takes score bounds as strings: "-inf" / "+inf" for infinities and a
leading "(" for an exclusive bound. Finite scores are rendered with repr() so
no precision is lost on epoch-millisecond values.

Script replies
--------------
The reserve and sweep scripts return ZRANGEBYSCORE ... WITHSCORES output
unchanged: a flat array [member, score, member, score, ...] whose elements
are bytes (or str when the client decodes responses).
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from tubeq.domain.models import JobInfo, ScoreWindow


def encode_score(score: float) -> str:
    """Render one score for the store."""
    if math.isinf(score):
        return "+inf" if score > 0 else "-inf"
    return repr(float(score))


def encode_window(window: ScoreWindow) -> tuple[str, str]:
    """Render a window as the (min, max) argument pair of ZRANGEBYSCORE."""
    low = encode_score(window.low)
    if window.low_exclusive:
        low = "(" + low
    return low, encode_score(window.high)


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def decode_flat(reply: Sequence[bytes | str] | None) -> list[JobInfo]:
    """Decode a flat [member, score, ...] reply. None or empty → []."""
    if not reply:
        return []
    if len(reply) % 2:
        raise ValueError(f"expected member/score pairs, got {len(reply)} elements")
    return [
        JobInfo(payload=_text(reply[i]), score=float(_text(reply[i + 1])))
        for i in range(0, len(reply), 2)
    ]


def decode_pairs(reply: Iterable[tuple[bytes | str, float]]) -> list[JobInfo]:
    """Decode a client-side (member, score) tuple list, as returned by withscores=True."""
    return [JobInfo(payload=_text(member), score=float(score)) for member, score in reply]
