"""Audio mixing: a sample-accurate mixing sink and the three-bus mix graph.

All sources are scheduled against the render clock's timeline (seconds from
the start of the session), so a scene's narration and SFX start on the same
sample as its first video frame.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ad_renderer.audio_utils import AudioBuffer
from ad_renderer.core.scenes import SceneAsset, select_sfx_kind
from ad_renderer.core.timeutils import samples_for
from ad_renderer.services.errors import ResourceUnavailableError
from .sfx import SfxSynthesizer

logger = logging.getLogger(__name__)

BUS_MUSIC = 'music'
BUS_SFX = 'sfx'
BUS_NARRATION = 'narration'

DEFAULT_GAINS = {
    BUS_MUSIC: 0.1,
    BUS_SFX: 0.2,
    BUS_NARRATION: 1.0,
}


@dataclass
class MixSource:
    """One scheduled buffer on the sink; ``stop_frame`` is exclusive."""

    bus: str
    label: str
    buffer: AudioBuffer
    gain: float
    start_frame: int
    loop: bool = False
    stop_frame: Optional[int] = None

    @property
    def start_time(self) -> float:
        return self.start_frame / float(self.buffer.sample_rate)


class AudioMixingSink:
    """Shared mix destination rendering every scheduled source into one buffer."""

    def __init__(self, sample_rate: int = 48000, channels: int = 2):
        if int(sample_rate) <= 0 or int(channels) <= 0:
            raise ResourceUnavailableError(
                f"Cannot allocate audio sink ({sample_rate} Hz, {channels} ch)")
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.sources: List[MixSource] = []

    def start_source(self, bus: str, label: str, buffer: AudioBuffer, at: float,
                     gain: float = 1.0, loop: bool = False) -> MixSource:
        prepared = buffer.resampled(self.sample_rate).with_channels(self.channels)
        source = MixSource(
            bus=bus,
            label=label,
            buffer=prepared,
            gain=float(gain),
            start_frame=samples_for(at, self.sample_rate),
            loop=loop,
        )
        self.sources.append(source)
        return source

    def stop_source(self, source: MixSource, at: float) -> None:
        source.stop_frame = max(source.start_frame, samples_for(at, self.sample_rate))

    def render(self, duration: float) -> np.ndarray:
        """Mix every source into a ``(frames, channels)`` float32 array."""
        total = samples_for(duration, self.sample_rate)
        out = np.zeros((total, self.channels), dtype=np.float32)
        for source in self.sources:
            end = total if source.stop_frame is None else min(total, source.stop_frame)
            span = end - source.start_frame
            if span <= 0 or source.buffer.frames == 0:
                continue
            data = source.buffer.samples
            if source.loop:
                repeats = -(-span // data.shape[0])
                data = np.tile(data, (repeats, 1))
            span = min(span, data.shape[0])
            out[source.start_frame:source.start_frame + span] += data[:span] * source.gain
        np.clip(out, -1.0, 1.0, out=out)
        return out


@dataclass
class SceneSources:
    scene_id: int
    sfx_kind: str
    sfx: MixSource
    narration: MixSource


class AudioMixGraph:
    """Music, SFX and narration buses feeding one :class:`AudioMixingSink`.

    | bus       | trigger           | lifetime                          |
    |-----------|-------------------|-----------------------------------|
    | music     | session start     | loops until the session ends      |
    | sfx       | each scene start  | decays naturally, never stopped   |
    | narration | each scene start  | stopped at the scene's end        |
    """

    def __init__(self, sink: AudioMixingSink, gains=None, synthesizer: Optional[SfxSynthesizer] = None):
        self.sink = sink
        self.gains = dict(DEFAULT_GAINS)
        if gains:
            self.gains.update({k: float(v) for k, v in gains.items() if k in DEFAULT_GAINS})
        self.synthesizer = synthesizer or SfxSynthesizer()
        self.music: Optional[MixSource] = None

    def start_music(self, buffer: AudioBuffer, at: float = 0.0) -> MixSource:
        self.music = self.sink.start_source(
            BUS_MUSIC, 'music', buffer, at, gain=self.gains[BUS_MUSIC], loop=True)
        logger.debug("Music bed scheduled at %.3fs (%.2fs loop)", at, buffer.duration)
        return self.music

    def start_scene(self, scene: SceneAsset, at: float) -> SceneSources:
        """Schedule the scene's SFX and narration at the same instant ``at``."""
        kind = select_sfx_kind(scene)
        sfx_buffer = self.synthesizer.synthesize(kind, self.sink.sample_rate)
        sfx = self.sink.start_source(BUS_SFX, kind, sfx_buffer, at, gain=self.gains[BUS_SFX])
        narration = self.sink.start_source(
            BUS_NARRATION, f'scene-{scene.id}', scene.narration, at, gain=self.gains[BUS_NARRATION])
        logger.debug("Scene %s audio scheduled at %.3fs (sfx=%s)", scene.id, at, kind)
        return SceneSources(scene_id=scene.id, sfx_kind=kind, sfx=sfx, narration=narration)

    def stop_scene(self, sources: SceneSources, at: float) -> None:
        """Cut the narration at ``at``; the SFX tail is left to decay."""
        self.sink.stop_source(sources.narration, at)

    def bus_sources(self, bus: str) -> List[MixSource]:
        return [s for s in self.sink.sources if s.bus == bus]

    def mixdown(self, duration: float) -> np.ndarray:
        return self.sink.render(duration)
