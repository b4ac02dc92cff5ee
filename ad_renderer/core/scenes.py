"""Scene and overlay data contracts for the master render.

Validation happens when scenes are consumed (``admissible_scenes``), never at
construction: callers may hand in partially produced storyboards.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ad_renderer.audio_utils import AudioBuffer

logger = logging.getLogger(__name__)

SFX_WHOOSH = 'whoosh'
SFX_IMPACT = 'impact'

# Canonical coordinate space for overlays and the drawing surface
CANVAS_WIDTH = 1280
CANVAS_HEIGHT = 720


class SceneType(str, Enum):
    HOOK = 'Hook'
    INTRODUCTION = 'Introduction'
    BENEFIT = 'Benefit'
    LIFESTYLE = 'Lifestyle'
    TRUST = 'Trust'
    CTA = 'CTA'


@dataclass
class SceneAsset:
    """One narrative unit: scripted duration, a video clip and its narration.

    ``video`` is whatever the configured video opener accepts (a file path by
    default); ``narration`` is a decoded :class:`AudioBuffer`.
    """

    id: int
    type: str
    script: str = ''
    visual_prompt: str = ''
    duration: float = 0.0
    exit_context: str = ''
    product_featured: bool = False
    video: Any = None
    narration: Optional['AudioBuffer'] = None

    @property
    def missing_media(self) -> List[str]:
        missing = []
        if self.video is None:
            missing.append('video')
        if self.narration is None:
            missing.append('narration')
        return missing


@dataclass(frozen=True)
class LogoOverlayConfig:
    """Logo overlay placement in the canonical 1280x720 space.

    ``(x, y)`` is the TOP-LEFT corner of the drawn logo; the drawn size is the
    image's natural size multiplied by ``scale``. Frozen: to move or resize the
    logo build a new config and render again.
    """

    image: Any
    x: float = 100.0
    y: float = 100.0
    scale: float = 0.15

    def placement(self, natural_size: Tuple[int, int],
                  canvas_size: Tuple[int, int] = (CANVAS_WIDTH, CANVAS_HEIGHT)) -> Tuple[int, int, int, int]:
        """Return ``(left, top, width, height)`` of the overlay in canvas pixels.

        Position and size are mapped from the canonical space onto
        ``canvas_size``.
        """
        sx = canvas_size[0] / float(CANVAS_WIDTH)
        sy = canvas_size[1] / float(CANVAS_HEIGHT)
        width = max(1, int(round(natural_size[0] * self.scale * sx)))
        height = max(1, int(round(natural_size[1] * self.scale * sy)))
        return int(round(self.x * sx)), int(round(self.y * sy)), width, height


def admissible_scenes(scenes: Sequence[SceneAsset]) -> Tuple[List[SceneAsset], List[SceneAsset]]:
    """Split ``scenes`` into (renderable, skipped), preserving input order.

    A scene lacking video or narration, or with a non-positive duration, is
    skipped wholesale; the ids of the remaining scenes are left untouched.
    """
    renderable: List[SceneAsset] = []
    skipped: List[SceneAsset] = []
    for scene in scenes:
        missing = scene.missing_media
        if missing:
            logger.warning("Skipping scene %s (%s): missing %s", scene.id, scene.type, ', '.join(missing))
            skipped.append(scene)
            continue
        if not scene.duration or scene.duration <= 0:
            logger.warning("Skipping scene %s (%s): non-positive duration %r", scene.id, scene.type, scene.duration)
            skipped.append(scene)
            continue
        renderable.append(scene)
    return renderable, skipped


def select_sfx_kind(scene: SceneAsset) -> str:
    """Product shots get the impact hit, everything else a transition whoosh."""
    return SFX_IMPACT if scene.product_featured else SFX_WHOOSH


def scene_timeline(scenes: Sequence[SceneAsset]) -> List[Tuple[SceneAsset, float]]:
    """Pair each scene with its scripted start offset on the master timeline."""
    timeline = []
    start = 0.0
    for scene in scenes:
        timeline.append((scene, start))
        start += float(scene.duration)
    return timeline
