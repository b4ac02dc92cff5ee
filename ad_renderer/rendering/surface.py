"""Canonical drawing surface backed by a Pillow image."""
from __future__ import annotations

import numpy as np
from PIL import Image

from ad_renderer.core.scenes import CANVAS_HEIGHT, CANVAS_WIDTH
from ad_renderer.services.errors import ResourceUnavailableError


class MediaSurface:
    """Fixed-size RGB canvas painted once per redraw tick.

    Frames arrive as numpy arrays (``H x W x 3``) and are stretched to the full
    canvas; overlays are pasted at their top-left anchor with alpha.
    """

    def __init__(self, width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT):
        try:
            self.image = Image.new('RGB', (int(width), int(height)), (0, 0, 0))
        except Exception as e:
            raise ResourceUnavailableError(f"Cannot allocate {width}x{height} surface: {e}") from e

    @property
    def size(self):
        return self.image.size

    def draw_frame(self, frame) -> None:
        """Draw a video frame over the whole surface."""
        if isinstance(frame, Image.Image):
            img = frame
        else:
            arr = np.asarray(frame)
            if arr.dtype != np.uint8:
                arr = np.clip(arr, 0, 255).astype(np.uint8)
            img = Image.fromarray(arr)
        if img.mode != 'RGB':
            img = img.convert('RGB')
        if img.size != self.image.size:
            img = img.resize(self.image.size, Image.Resampling.BILINEAR)
        self.image.paste(img, (0, 0))

    def draw_overlay(self, overlay: Image.Image, left: int, top: int) -> None:
        """Paste an already sized overlay with its top-left corner at ``(left, top)``."""
        mask = overlay if overlay.mode == 'RGBA' else None
        self.image.paste(overlay, (left, top), mask)

    def snapshot(self) -> np.ndarray:
        """Ritorna il frame corrente come array RGB per l'encoder"""
        return np.array(self.image)
