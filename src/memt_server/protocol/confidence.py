"""Confidence-vector parser for ``input.confidence``.

The value is a whitespace-separated list of decimal numbers, one per
upstream system.  Parsing is all-or-nothing: every token must be a plain
decimal literal and the scan has to reach the end of the string, so
``"0.9 0.8 x"`` or ``"0.9abc"`` reject the request instead of yielding a
shortened vector.  ``float()`` alone is too lenient here (it accepts
``nan``, ``inf`` and ``1_0``), hence the explicit literal pattern.
"""

from __future__ import annotations

import math
import re

from memt_server.errors import BadConfidenceFormat

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def parse_confidences(raw: str) -> tuple[float, ...]:
    """Parse *raw* into an ordered tuple of floats.

    An empty or whitespace-only string yields ``()``.

    Raises:
        BadConfidenceFormat: If any token is not a decimal literal or
            overflows to infinity.
    """
    values: list[float] = []
    for token in raw.split():
        if not _NUMBER_RE.fullmatch(token):
            raise BadConfidenceFormat(raw)
        value = float(token)
        if not math.isfinite(value):
            raise BadConfidenceFormat(raw)
        values.append(value)
    return tuple(values)
