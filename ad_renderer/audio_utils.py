"""
Utilità per decodificare e processare buffer audio
"""
import io
from dataclasses import dataclass

import librosa
import numpy as np
from pydub import AudioSegment


@dataclass
class AudioBuffer:
    """Decoded audio: float32 samples shaped ``(frames, channels)`` in [-1, 1]."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        if samples.ndim != 2:
            raise ValueError('AudioBuffer samples must be 1-D or (frames, channels)')
        self.samples = samples
        self.sample_rate = int(self.sample_rate)
        if self.sample_rate <= 0:
            raise ValueError('sample_rate must be positive')

    @property
    def frames(self) -> int:
        return self.samples.shape[0]

    @property
    def channels(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)

    def resampled(self, sample_rate: int) -> 'AudioBuffer':
        """Ritorna il buffer ricampionato a ``sample_rate`` (librosa)."""
        if int(sample_rate) == self.sample_rate or self.frames == 0:
            return AudioBuffer(self.samples, sample_rate)
        # librosa ricampiona sull'ultimo asse: (channels, frames)
        y = librosa.resample(self.samples.T, orig_sr=self.sample_rate, target_sr=int(sample_rate))
        return AudioBuffer(np.ascontiguousarray(np.atleast_2d(y).T), sample_rate)

    def with_channels(self, channels: int) -> 'AudioBuffer':
        """Adatta il numero di canali (mono duplicato, downmix per media)."""
        if channels == self.channels:
            return self
        if self.channels == 1:
            return AudioBuffer(np.repeat(self.samples, channels, axis=1), self.sample_rate)
        if channels == 1:
            return AudioBuffer(self.samples.mean(axis=1, keepdims=True), self.sample_rate)
        idx = np.arange(channels) % self.channels
        return AudioBuffer(self.samples[:, idx], self.sample_rate)


def segment_to_buffer(segment):
    """Converte un ``AudioSegment`` pydub in ``AudioBuffer`` float32."""
    samples = np.array(segment.get_array_of_samples()).astype(np.float32)
    samples = samples.reshape(-1, segment.channels)
    full_scale = float(1 << (8 * segment.sample_width - 1))
    return AudioBuffer(samples / full_scale, segment.frame_rate)


def decode_audio_bytes(data):
    """Decodifica bytes di un file audio (mp3, wav, ogg...) tramite pydub/ffmpeg."""
    return segment_to_buffer(AudioSegment.from_file(io.BytesIO(data)))


def load_audio_file(path):
    """Carica un file audio da disco"""
    return segment_to_buffer(AudioSegment.from_file(path))


def decode_pcm16(data, sample_rate=24000, channels=1):
    """
    Decodifica PCM grezzo 16 bit little-endian (formato della sintesi vocale)

    Args:
        data: Bytes PCM senza header
        sample_rate: Frequenza di campionamento dei dati
        channels: Numero di canali interleaved
    """
    frame_size = 2 * channels
    usable = len(data) - (len(data) % frame_size)
    segment = AudioSegment(
        data=bytes(data[:usable]),
        sample_width=2,
        frame_rate=sample_rate,
        channels=channels,
    )
    return segment_to_buffer(segment)


def load_pcm16_file(path, sample_rate=24000, channels=1):
    """Carica un file PCM grezzo da disco"""
    with open(path, 'rb') as f:
        return decode_pcm16(f.read(), sample_rate=sample_rate, channels=channels)
