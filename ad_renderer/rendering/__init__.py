"""Rendering layer: procedural SFX, audio mix graph, drawing surface,
per-scene compositor, recording session and the master renderer.

``facade`` offers the stable entry point used by the CLI; dependency
direction stays one-way (CLI -> facade -> renderer).
"""

__all__ = [
    "compositor",
    "facade",
    "mixer",
    "recording",
    "renderer",
    "sfx",
    "surface",
    "video_source",
]
