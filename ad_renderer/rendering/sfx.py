"""Procedural sound effects for scene transitions.

No sample files are involved: both effects are synthesized from closed-form
envelopes, so generation cannot fail for a valid sample rate.
"""
from __future__ import annotations

import numpy as np

from ad_renderer.audio_utils import AudioBuffer
from ad_renderer.core.scenes import SFX_IMPACT, SFX_WHOOSH

SFX_DURATION = 0.8
SFX_KINDS = (SFX_WHOOSH, SFX_IMPACT)


class SfxSynthesizer:
    """Builds 0.8 s mono effect buffers.

    - ``whoosh``: uniform noise shaped by ``exp(-8t) * sin(100t)``
    - ``impact``: ``sin(60t) * exp(-15t) * 0.5`` plus a 0.1-scaled noise layer

    Buffers are cached per ``(kind, sample_rate)`` so one render reuses the
    same pair for every scene.
    """

    def __init__(self, seed=None):
        self._rng = np.random.default_rng(seed)
        self._cache = {}

    def synthesize(self, kind: str, sample_rate: int) -> AudioBuffer:
        if kind not in SFX_KINDS:
            raise ValueError(f"Unknown sfx kind: {kind!r}")
        key = (kind, int(sample_rate))
        if key not in self._cache:
            self._cache[key] = self._build(kind, int(sample_rate))
        return self._cache[key]

    def _build(self, kind: str, sample_rate: int) -> AudioBuffer:
        length = int(round(sample_rate * SFX_DURATION))
        t = np.arange(length, dtype=np.float64) / sample_rate
        if kind == SFX_WHOOSH:
            noise = self._rng.uniform(-1.0, 1.0, length)
            data = noise * np.exp(-8.0 * t) * np.sin(100.0 * t)
        else:
            # Noise layer is non-negative, in [0, 0.1)
            noise = self._rng.uniform(0.0, 1.0, length) * 0.1
            data = np.sin(60.0 * t) * np.exp(-15.0 * t) * 0.5 + noise
        return AudioBuffer(data.astype(np.float32), sample_rate)
