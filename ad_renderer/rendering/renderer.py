"""Master renderer: sequences scenes through the mix graph and the compositor
and turns one recording session into the final master artifact.

Capabilities (surface, audio sink, encoder, video opener, music loader) are
injected so the same pipeline runs headless against real ffmpeg or against
fakes in tests.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ad_renderer.config import Config
from ad_renderer.core.clock import CancellationToken, RenderClock
from ad_renderer.core.scenes import (
    LogoOverlayConfig,
    SceneAsset,
    admissible_scenes,
    scene_timeline,
)
from ad_renderer.services import assets as assets_svc
from ad_renderer.services.errors import (
    AssetLoadError,
    RenderBusyError,
    RenderError,
    ResourceUnavailableError,
)
from .compositor import CompositorLoop, PreparedOverlay, SceneRun
from .mixer import AudioMixGraph, AudioMixingSink
from .recording import MoviepyEncoder, RecordingSession
from .sfx import SfxSynthesizer
from .surface import MediaSurface
from .video_source import open_video_source

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    video_path: str
    audio_path: str
    container: str
    duration: float
    frame_count: int
    rendered_scene_ids: List[int]
    skipped_scene_ids: List[int]
    scene_runs: List[SceneRun] = field(default_factory=list)
    stopped_at: float = 0.0
    logo_applied: bool = False


class MasterRenderer:
    """Renders an ordered scene list into one muxed master file.

    Not reentrant: a render holds the session lock for its whole duration and
    a concurrent call fails fast with :class:`RenderBusyError`.
    """

    def __init__(self, config: Optional[Config] = None, *, encoder=None,
                 video_opener: Callable = open_video_source,
                 music_loader: Optional[Callable] = None,
                 logo_loader: Callable = assets_svc.load_logo_image,
                 surface_factory: Callable = MediaSurface,
                 sink_factory: Callable = AudioMixingSink,
                 synthesizer: Optional[SfxSynthesizer] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.config = config or Config()
        self.encoder = encoder or MoviepyEncoder()
        self.video_opener = video_opener
        self.music_loader = music_loader or self._default_music_loader
        self.logo_loader = logo_loader
        self.surface_factory = surface_factory
        self.sink_factory = sink_factory
        self.synthesizer = synthesizer or SfxSynthesizer()
        self.sleep = sleep
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self) -> None:
        """One-time setup (encoder capability probe). Called lazily by renders."""
        if self._initialized:
            return
        init = getattr(self.encoder, 'initialize', None)
        if init is not None:
            init()
        self._initialized = True

    def _default_music_loader(self):
        return assets_svc.load_music_bed(
            path=self.config.get('music_path'),
            url=self.config.get('music_url'),
            timeout=int(self.config.get('music_timeout', 10)),
        )

    def render_master_ad(self, scenes: Sequence[SceneAsset], logo: Optional[LogoOverlayConfig] = None,
                         cancel: Optional[CancellationToken] = None) -> RenderResult:
        if not self._lock.acquire(blocking=False):
            raise RenderBusyError("A master render is already in progress")
        try:
            return self._render(list(scenes), logo, cancel or CancellationToken())
        finally:
            self._lock.release()

    def _render(self, scenes: List[SceneAsset], logo: Optional[LogoOverlayConfig],
                cancel: CancellationToken) -> RenderResult:
        self.initialize()
        renderable, skipped = admissible_scenes(scenes)
        if not renderable:
            raise RenderError("No scene has both video and narration; nothing to render")

        fps = int(self.config.get('fps', 30))
        sample_rate = int(self.config.get('sample_rate', 48000))
        clock_kwargs = {'sleep': self.sleep} if self.sleep else {}
        clock = RenderClock(fps=fps, realtime=bool(self.config.get('realtime', False)),
                            cancel=cancel, **clock_kwargs)

        try:
            surface = self.surface_factory(*self.config.canvas_size)
            sink = self.sink_factory(sample_rate, 2)
        except ResourceUnavailableError:
            raise
        except Exception as e:
            raise ResourceUnavailableError(f"Cannot allocate render resources: {e}") from e

        mix = AudioMixGraph(sink, gains=self.config.get('gains'), synthesizer=self.synthesizer)
        self._start_music(mix, clock)
        overlay = self._prepare_logo(logo, cancel, surface.size)

        session = RecordingSession(
            self.encoder,
            output_dir=self.config.get('output_dir', './output'),
            size=surface.size,
            fps=fps,
            sample_rate=sample_rate,
            video_bitrate=int(self.config.get('video_bitrate', 12_000_000)),
            audio_bitrate=int(self.config.get('audio_bitrate', 192_000)),
            formats=self.config.format_preferences,
        )
        cancel.raise_if_cancelled('starting the recording')
        clock.restart_pacing()
        session.start(at=clock.now)

        compositor = CompositorLoop(surface, clock, mix, session.write_frame, overlay=overlay)
        runs: List[SceneRun] = []
        try:
            for index, (scene, t0) in enumerate(scene_timeline(renderable), 1):
                logger.info("Rendering scene %d/%d (id=%s, %s, %.2fs)",
                            index, len(renderable), scene.id, scene.type, scene.duration)
                video = self.video_opener(scene.video)
                try:
                    runs.append(compositor.run(scene, video, t0))
                finally:
                    video.close()

            # Settle delay counts from the last narration stop, not from the last tick
            settle_until = runs[-1].stopped_at + float(self.config.get('settle_delay', 1.0))
            clock.wait(max(0.0, settle_until - clock.now), 'settling before stop')
            session.stop(at=settle_until)
            # Audio is cut to the picture so the master lasts exactly the frame count
            audio = mix.mixdown(session.frame_count / float(fps))
            artifact = session.finalize(audio)
        except RenderError:
            session.abort()
            raise
        except Exception as e:
            session.abort()
            raise RenderError(f"Master render failed: {e}") from e

        logger.info("Master ready: %s (%d frames, %d scenes, %d skipped)",
                    artifact.video_path, artifact.frame_count, len(runs), len(skipped))
        return RenderResult(
            video_path=artifact.video_path,
            audio_path=artifact.audio_path,
            container=artifact.container,
            duration=artifact.frame_count / float(fps),
            frame_count=artifact.frame_count,
            rendered_scene_ids=[s.id for s in renderable],
            skipped_scene_ids=[s.id for s in skipped],
            scene_runs=runs,
            stopped_at=session.stopped_at,
            logo_applied=overlay is not None,
        )

    def _start_music(self, mix: AudioMixGraph, clock: RenderClock) -> None:
        if self.config.get('no_music'):
            logger.info("Music bed disabled")
            return
        clock.cancel.raise_if_cancelled('fetching music')
        try:
            buffer = self.music_loader()
        except AssetLoadError as e:
            logger.warning("Music bed unavailable, rendering without it: %s", e)
            return
        clock.cancel.raise_if_cancelled('fetching music')
        mix.start_music(buffer, at=clock.now)

    def _prepare_logo(self, logo: Optional[LogoOverlayConfig], cancel: CancellationToken,
                      canvas_size) -> Optional[PreparedOverlay]:
        if logo is None or logo.image is None:
            return None
        cancel.raise_if_cancelled('loading the logo')
        try:
            image = self.logo_loader(logo.image)
        except AssetLoadError as e:
            logger.warning("Logo unavailable, rendering without overlay: %s", e)
            return None
        cancel.raise_if_cancelled('loading the logo')
        return PreparedOverlay.from_config(logo, image, canvas_size)

    def release(self, result: RenderResult) -> None:
        """Delete the files of a superseded render. Idempotent."""
        for path in (result.video_path, result.audio_path):
            if path and os.path.exists(path):
                os.remove(path)
                logger.info("Released %s", path)
