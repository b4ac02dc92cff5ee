"""Recording session: streams composited frames to the encoder and muxes the
mixed audio into one container when the session is finalized.

States: ``IDLE -> RECORDING -> STOP_REQUESTED -> FINALIZED``. A session is
single-shot; any encoder failure moves it to ``FAILED`` and removes partial
files.
"""
from __future__ import annotations

import logging
import os
import re
import subprocess
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from moviepy.audio.AudioClip import AudioArrayClip
from moviepy.config import FFMPEG_BINARY
from moviepy.video.io.ffmpeg_tools import ffmpeg_merge_video_audio
from moviepy.video.io.ffmpeg_writer import FFMPEG_VideoWriter

from ad_renderer.services.errors import EncodingError, RecordingStateError

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {
    'aac': 'm4a',
    'libopus': 'ogg',
    'libvorbis': 'ogg',
    'libmp3lame': 'mp3',
}


class RecordingState(str, Enum):
    IDLE = 'idle'
    RECORDING = 'recording'
    STOP_REQUESTED = 'stop_requested'
    FINALIZED = 'finalized'
    FAILED = 'failed'


@dataclass(frozen=True)
class EncodingSettings:
    container: str
    video_codec: str
    audio_codec: str
    size: Tuple[int, int]
    fps: int
    sample_rate: int
    video_bitrate: int
    audio_bitrate: int

    @property
    def audio_extension(self) -> str:
        return AUDIO_EXTENSIONS.get(self.audio_codec, 'mka')


@dataclass(frozen=True)
class RecordedArtifact:
    video_path: str
    audio_path: str
    container: str
    frame_count: int


class MoviepyEncoder:
    """Encoder backend on top of moviepy's ffmpeg writers.

    Frames are piped to ``FFMPEG_VideoWriter`` as they are drawn; at finish the
    audio track is encoded once and stream-copied next to the picture.
    """

    def __init__(self, ffmpeg_binary: str = FFMPEG_BINARY, preset: str = 'medium'):
        self.ffmpeg_binary = ffmpeg_binary
        self.preset = preset
        self._encoders = None
        self._writer = None
        self._video_tmp = None

    def initialize(self) -> None:
        """Probe the ffmpeg build once for its available encoders."""
        if self._encoders is None:
            self._encoders = self._list_available_encoders()
            logger.debug("ffmpeg encoders available: %d", len(self._encoders))

    def _list_available_encoders(self) -> set:
        try:
            proc = subprocess.run(
                [self.ffmpeg_binary, '-hide_banner', '-encoders'],
                check=False,
                capture_output=True,
                text=True,
                timeout=12,
            )
            output = f"{proc.stdout}\n{proc.stderr}"
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Cannot list ffmpeg encoders: %s", e)
            return set()

        encoders = set()
        for line in output.splitlines():
            # Es.: " V..... libx264    libx264 H.264 ..."
            match = re.match(r"^[A-Z\.]{6}\s+([A-Za-z0-9_\-]+)\b", line.strip())
            if match:
                encoders.add(match.group(1).lower())
        return encoders

    def supports(self, fmt: Dict[str, str]) -> bool:
        self.initialize()
        return (fmt.get('video_codec', '').lower() in self._encoders
                and fmt.get('audio_codec', '').lower() in self._encoders)

    def open(self, settings: EncodingSettings, video_path: str) -> None:
        self._video_tmp = video_path
        self._writer = FFMPEG_VideoWriter(
            video_path,
            settings.size,
            settings.fps,
            codec=settings.video_codec,
            preset=self.preset,
            bitrate=f"{settings.video_bitrate // 1000}k",
        )

    def write_frame(self, frame: np.ndarray) -> None:
        self._writer.write_frame(frame)

    def finish(self, settings: EncodingSettings, audio: np.ndarray, audio_path: str, output_path: str) -> None:
        self._writer.close()
        self._writer = None

        clip = AudioArrayClip(audio, fps=settings.sample_rate)
        try:
            clip.write_audiofile(
                audio_path,
                fps=settings.sample_rate,
                codec=settings.audio_codec,
                bitrate=f"{settings.audio_bitrate // 1000}k",
                logger=None,
            )
        finally:
            clip.close()

        ffmpeg_merge_video_audio(self._video_tmp, audio_path, output_path,
                                 video_codec='copy', audio_codec='copy', logger=None)
        _remove_quietly(self._video_tmp)
        self._video_tmp = None

    def abort(self) -> None:
        if self._writer is not None:
            try:
                self._writer.close()
            except Exception as e:
                logger.debug("Ignoring writer close failure during abort: %s", e)
            self._writer = None
        if self._video_tmp:
            _remove_quietly(self._video_tmp)
            self._video_tmp = None


def _remove_quietly(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Cannot remove %s: %s", path, e)


def select_format(preferences: Sequence[Dict[str, str]], encoder) -> Dict[str, str]:
    """Return the first container/codec pairing the encoder supports."""
    for fmt in preferences:
        if encoder.supports(fmt):
            return dict(fmt)
        logger.info("Format %s/%s/%s unavailable, trying next",
                    fmt.get('container'), fmt.get('video_codec'), fmt.get('audio_codec'))
    raise EncodingError("No supported container/codec pairing available on this host")


class RecordingSession:
    """Single-shot capture of the canonical surface plus the mixed audio."""

    def __init__(self, encoder, output_dir: str, size=(1280, 720), fps: int = 30,
                 sample_rate: int = 48000, video_bitrate: int = 12_000_000,
                 audio_bitrate: int = 192_000, formats: Optional[List[Dict[str, str]]] = None,
                 name: Optional[str] = None):
        self.encoder = encoder
        self.output_dir = output_dir
        self.size = tuple(size)
        self.fps = int(fps)
        self.sample_rate = int(sample_rate)
        self.video_bitrate = int(video_bitrate)
        self.audio_bitrate = int(audio_bitrate)
        self.formats = list(formats or [{'container': 'mp4', 'video_codec': 'libx264', 'audio_codec': 'aac'}])
        self.name = name or f"master_{datetime.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"
        self.state = RecordingState.IDLE
        self.settings: Optional[EncodingSettings] = None
        self.started_at: Optional[float] = None
        self.stopped_at: Optional[float] = None
        self._frames = 0
        self._paths: Dict[str, str] = {}

    def _require(self, *states: RecordingState) -> None:
        if self.state not in states:
            raise RecordingStateError(
                f"Recording session is {self.state.value}, expected {' or '.join(s.value for s in states)}")

    def start(self, at: float = 0.0) -> None:
        self._require(RecordingState.IDLE)
        try:
            fmt = select_format(self.formats, self.encoder)
            self.settings = EncodingSettings(
                container=fmt['container'],
                video_codec=fmt['video_codec'],
                audio_codec=fmt['audio_codec'],
                size=self.size,
                fps=self.fps,
                sample_rate=self.sample_rate,
                video_bitrate=self.video_bitrate,
                audio_bitrate=self.audio_bitrate,
            )
            os.makedirs(self.output_dir, exist_ok=True)
            base = os.path.join(self.output_dir, self.name)
            self._paths = {
                'video_tmp': f"{base}.video.{self.settings.container}",
                'audio': f"{base}.{self.settings.audio_extension}",
                'output': f"{base}.{self.settings.container}",
            }
            self.encoder.open(self.settings, self._paths['video_tmp'])
        except EncodingError:
            self.state = RecordingState.FAILED
            raise
        except Exception as e:
            self.state = RecordingState.FAILED
            raise EncodingError(f"Cannot start encoder: {e}") from e
        self.started_at = at
        self.state = RecordingState.RECORDING
        logger.info("Recording started: %s (%s, %s/%s)", self.name, self.settings.container,
                    self.settings.video_codec, self.settings.audio_codec)

    def write_frame(self, frame: np.ndarray) -> None:
        self._require(RecordingState.RECORDING)
        try:
            self.encoder.write_frame(frame)
        except Exception as e:
            self.abort()
            raise EncodingError(f"Encoder rejected frame {self._frames}: {e}") from e
        self._frames += 1

    @property
    def frame_count(self) -> int:
        return self._frames

    def stop(self, at: float) -> None:
        self._require(RecordingState.RECORDING)
        self.stopped_at = at
        self.state = RecordingState.STOP_REQUESTED
        logger.info("Recording stop requested at %.3fs after %d frames", at, self._frames)

    def finalize(self, audio: np.ndarray) -> RecordedArtifact:
        """Flush the encoder and mux ``audio`` with the recorded picture."""
        self._require(RecordingState.STOP_REQUESTED)
        try:
            self.encoder.finish(self.settings, audio, self._paths['audio'], self._paths['output'])
        except Exception as e:
            self.abort()
            raise EncodingError(f"Cannot finalize {self._paths['output']}: {e}") from e
        self.state = RecordingState.FINALIZED
        return RecordedArtifact(
            video_path=self._paths['output'],
            audio_path=self._paths['audio'],
            container=self.settings.container,
            frame_count=self._frames,
        )

    def abort(self) -> None:
        """Drop the session and any partial output. Safe to call repeatedly."""
        if self.state == RecordingState.FINALIZED:
            return
        try:
            self.encoder.abort()
        finally:
            for key in ('video_tmp', 'audio', 'output'):
                _remove_quietly(self._paths.get(key))
            self.state = RecordingState.FAILED
