"""Thin entry point used by the CLI.

Builds an explicitly constructed :class:`MasterRenderer` from a ``Config``
and runs a single render, keeping the CLI unaware of capability wiring.
"""
from __future__ import annotations

from typing import Optional, Sequence

from ad_renderer.config import Config
from ad_renderer.core.clock import CancellationToken
from ad_renderer.core.scenes import LogoOverlayConfig, SceneAsset
from .renderer import MasterRenderer, RenderResult


def build_renderer(config: Optional[Config] = None, **capabilities) -> MasterRenderer:
    renderer = MasterRenderer(config or Config(), **capabilities)
    renderer.initialize()
    return renderer


def render_master(scenes: Sequence[SceneAsset], logo: Optional[LogoOverlayConfig] = None,
                  config: Optional[Config] = None, cancel: Optional[CancellationToken] = None,
                  **capabilities) -> RenderResult:
    """Render ``scenes`` (with an optional logo) into one master file."""
    renderer = build_renderer(config, **capabilities)
    return renderer.render_master_ad(scenes, logo=logo, cancel=cancel)
