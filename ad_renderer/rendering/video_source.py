"""Per-scene video sources.

A source is opened for one scene, sampled by elapsed scene time and closed
as soon as the scene completes; nothing is cached across scenes.
"""
from __future__ import annotations

import logging

from moviepy import VideoFileClip

from ad_renderer.services.errors import SceneLoadError

logger = logging.getLogger(__name__)


class VideoSource:
    """Interface the compositor expects from a scene's video."""

    def wait_until_ready(self) -> None:
        """Block until the source can be played through without stalling."""
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def frame_at(self, elapsed: float):
        """Return the RGB frame shown ``elapsed`` seconds after playback start."""
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class MoviepyVideoSource(VideoSource):
    """Video file decoded with moviepy; the last frame is held past the clip end."""

    def __init__(self, path):
        self.path = str(path)
        self.clip = None
        self.playing = False

    def wait_until_ready(self) -> None:
        if self.clip is not None:
            return
        try:
            self.clip = VideoFileClip(self.path, audio=False)
        except Exception as e:
            raise SceneLoadError(f"Cannot open video {self.path}: {e}") from e
        if not self.clip.duration or self.clip.duration <= 0:
            self.close()
            raise SceneLoadError(f"Video {self.path} has no playable frames")
        logger.debug("Video ready: %s (%.2fs @ %s fps)", self.path, self.clip.duration, self.clip.fps)

    @property
    def last_frame_time(self) -> float:
        fps = self.clip.fps or 30
        return max(0.0, self.clip.duration - 1.0 / fps)

    def play(self) -> None:
        self.playing = True

    def frame_at(self, elapsed: float):
        if self.clip is None:
            raise SceneLoadError(f"Video {self.path} sampled before it was ready")
        t = min(max(0.0, elapsed), self.last_frame_time)
        return self.clip.get_frame(t)

    def pause(self) -> None:
        self.playing = False

    def close(self) -> None:
        self.playing = False
        if self.clip is not None:
            self.clip.close()
            self.clip = None


def open_video_source(handle) -> VideoSource:
    """Default opener: pass sources through, wrap paths in a moviepy source."""
    if isinstance(handle, VideoSource):
        return handle
    return MoviepyVideoSource(handle)
