"""Pure time utility helpers used across the CLI and the render loop."""
from __future__ import annotations

import math

# Tolerance for float comparisons against scripted scene boundaries
TIME_EPSILON = 1e-9


def format_seconds(seconds: float) -> str:
    """Format a duration in seconds as ``HH:MM:SS.mmm``.

    Keeps the sign for negative values, rounds milliseconds to 3 digits.
    """
    sign = '-' if seconds < 0 else ''
    s = abs(seconds)
    hours = int(s // 3600)
    minutes = int((s % 3600) // 60)
    secs = int(s % 60)
    millis = int(round((s - math.floor(s)) * 1000))
    if millis == 1000:
        secs += 1
        millis = 0
    return f"{sign}{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def frame_count(duration: float, fps: int) -> int:
    """Number of redraw ticks ``k/fps`` that fall inside ``[0, duration)``."""
    if duration <= 0:
        return 0
    return int(math.ceil(duration * fps - TIME_EPSILON))


def samples_for(duration: float, sample_rate: int) -> int:
    """Number of audio frames covering ``duration`` seconds at ``sample_rate``."""
    return int(round(max(0.0, float(duration)) * sample_rate))
