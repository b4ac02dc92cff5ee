"""
Core utilities and domain helpers for the master renderer.

This package hosts pure, side-effect-free logic: the scene data model,
manifest parsing, timing helpers and the render clock.
"""

__all__ = [
    "format_seconds",
    "frame_count",
    "SceneAsset",
    "SceneType",
    "LogoOverlayConfig",
    "admissible_scenes",
    "select_sfx_kind",
    "scene_timeline",
    "parse_manifest",
    "RenderClock",
    "CancellationToken",
]

from .timeutils import format_seconds, frame_count
from .scenes import (
    SceneAsset,
    SceneType,
    LogoOverlayConfig,
    admissible_scenes,
    select_sfx_kind,
    scene_timeline,
)
from .manifest import parse_manifest
from .clock import RenderClock, CancellationToken
