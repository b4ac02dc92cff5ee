"""Per-scene draw loop.

For each scene the loop starts the scene's audio and video at the scene's
scripted start ``t0`` and paints one frame per redraw tick until the render
clock reaches ``t0 + duration``. The scripted duration governs pacing: a
short clip holds its last frame, a long one is cut.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from PIL import Image

from ad_renderer.core.clock import RenderClock
from ad_renderer.core.scenes import CANVAS_HEIGHT, CANVAS_WIDTH, LogoOverlayConfig, SceneAsset
from ad_renderer.core.timeutils import TIME_EPSILON
from .mixer import AudioMixGraph
from .surface import MediaSurface
from .video_source import VideoSource

logger = logging.getLogger(__name__)


@dataclass
class PreparedOverlay:
    """Logo resized once per render; drawn with its top-left at ``(left, top)``."""

    image: Image.Image
    left: int
    top: int

    @classmethod
    def from_config(cls, config: LogoOverlayConfig, image: Image.Image,
                    canvas_size=(CANVAS_WIDTH, CANVAS_HEIGHT)) -> 'PreparedOverlay':
        left, top, width, height = config.placement(image.size, canvas_size)
        sized = image if image.size == (width, height) else image.resize((width, height), Image.Resampling.LANCZOS)
        return cls(image=sized, left=left, top=top)


@dataclass
class SceneRun:
    """What happened while one scene was composited."""

    scene_id: int
    started_at: float
    stopped_at: float
    ticks: int
    sfx_kind: str


class CompositorLoop:
    def __init__(self, surface: MediaSurface, clock: RenderClock, mix: AudioMixGraph,
                 emit_frame: Callable, overlay: Optional[PreparedOverlay] = None):
        self.surface = surface
        self.clock = clock
        self.mix = mix
        self.emit_frame = emit_frame
        self.overlay = overlay

    def draw(self, frame) -> None:
        self.surface.draw_frame(frame)
        if self.overlay is not None:
            self.surface.draw_overlay(self.overlay.image, self.overlay.left, self.overlay.top)

    def run(self, scene: SceneAsset, video: VideoSource, t0: float) -> SceneRun:
        self.clock.cancel.raise_if_cancelled('waiting for video')
        video.wait_until_ready()
        self.clock.cancel.raise_if_cancelled('waiting for video')

        sources = self.mix.start_scene(scene, t0)
        video.play()

        end = t0 + float(scene.duration)
        ticks = 0
        while self.clock.now < end - TIME_EPSILON:
            self.draw(video.frame_at(self.clock.now - t0))
            self.emit_frame(self.surface.snapshot())
            self.clock.tick()
            ticks += 1

        video.pause()
        self.mix.stop_scene(sources, end)
        if ticks == 0:
            logger.warning("Scene %s (%s) ends at %.3fs, before the next frame at %.3fs: no frames drawn",
                           scene.id, scene.type, end, self.clock.now)
        logger.info("Scene %s (%s) composited: %d frames, %.2fs", scene.id, scene.type, ticks, scene.duration)
        return SceneRun(scene_id=scene.id, started_at=t0, stopped_at=end, ticks=ticks, sfx_kind=sources.sfx_kind)
