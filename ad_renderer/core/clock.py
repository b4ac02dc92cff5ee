"""Render clock and cooperative cancellation for the master render loop.

The clock is the single time reference shared by the compositor (redraw
ticks) and the audio mix graph (source start offsets). In offline mode it
advances instantly; in realtime mode each tick waits for the wall clock.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ad_renderer.services.errors import RenderCancelledError


class CancellationToken:
    """Thread-safe flag a caller can set to abort an in-flight render."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = '') -> None:
        if self._event.is_set():
            suffix = f" while {where}" if where else ''
            raise RenderCancelledError(f"Render cancelled{suffix}")


class RenderClock:
    """Monotonic clock counted in redraw ticks plus idle waits.

    ``now`` is the time of the next tick to be drawn, in seconds since the
    clock was created.
    """

    def __init__(self, fps: int = 30, realtime: bool = False,
                 cancel: Optional[CancellationToken] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 monotonic: Callable[[], float] = time.monotonic):
        if fps <= 0:
            raise ValueError('fps must be positive')
        self.fps = int(fps)
        self.realtime = realtime
        self.cancel = cancel or CancellationToken()
        self._sleep = sleep
        self._monotonic = monotonic
        self._origin = monotonic()
        self._ticks = 0
        self._idle = 0.0

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def frame_interval(self) -> float:
        return 1.0 / self.fps

    @property
    def now(self) -> float:
        return self._ticks / self.fps + self._idle

    def restart_pacing(self) -> None:
        """Re-anchor realtime pacing to the wall clock at the current ``now``.

        Time spent in setup (music fetch, logo load) is not owed to the first
        redraw ticks.
        """
        self._origin = self._monotonic() - self.now

    def tick(self) -> None:
        """Advance by one redraw interval."""
        self.cancel.raise_if_cancelled('drawing frames')
        self._ticks += 1
        self._pace()

    def wait(self, seconds: float, where: str = 'waiting') -> None:
        """Advance the clock by ``seconds`` without producing redraw ticks."""
        self.cancel.raise_if_cancelled(where)
        self._idle += max(0.0, float(seconds))
        self._pace()
        self.cancel.raise_if_cancelled(where)

    def _pace(self) -> None:
        if not self.realtime:
            return
        delay = self._origin + self.now - self._monotonic()
        if delay > 0:
            self._sleep(delay)
