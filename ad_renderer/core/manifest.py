"""Pure scene manifest parsing.

A manifest is a YAML (or JSON) mapping with a ``scenes`` list and an optional
``logo`` block. Parsing normalizes keys and resolves relative paths against the
manifest directory; no media is opened here.
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple

from .scenes import SceneType

_KEY_ALIASES = {
    'visualPrompt': 'visual_prompt',
    'exitContext': 'exit_context',
    'productFeatured': 'product_featured',
}

_SCENE_TYPES = {t.value.lower(): t.value for t in SceneType}


def _resolve(path: Optional[str], base_dir: str) -> Optional[str]:
    if not path:
        return None
    path = str(path)
    if path.startswith(('http://', 'https://')) or os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(base_dir, path))


def _parse_narration(value: Any, base_dir: str) -> Optional[Dict[str, Any]]:
    if value is None or value == '':
        return None
    if isinstance(value, str):
        return {'path': _resolve(value, base_dir), 'pcm': False}
    if isinstance(value, dict):
        if value.get('pcm'):
            return {
                'path': _resolve(value['pcm'], base_dir),
                'pcm': True,
                'sample_rate': int(value.get('sample_rate', 24000)),
                'channels': int(value.get('channels', 1)),
            }
        if value.get('path'):
            return {'path': _resolve(value['path'], base_dir), 'pcm': False}
    raise ValueError(f'Unsupported narration entry: {value!r}')


def parse_scene_entry(raw: Dict[str, Any], index: int, base_dir: str = '.') -> Dict[str, Any]:
    """Normalize one manifest scene entry. Raises ``ValueError`` on bad data."""
    if not isinstance(raw, dict):
        raise ValueError(f'Scene #{index} is not a mapping')
    entry = {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}

    scene_type = str(entry.get('type', '')).strip()
    if scene_type.lower() not in _SCENE_TYPES:
        raise ValueError(f'Scene #{index}: unknown scene type {scene_type!r}')

    try:
        duration = float(entry.get('duration'))
    except (TypeError, ValueError):
        raise ValueError(f'Scene #{index}: duration must be a number')
    if duration <= 0:
        raise ValueError(f'Scene #{index}: duration must be > 0')

    return {
        'id': int(entry.get('id', index)),
        'type': _SCENE_TYPES[scene_type.lower()],
        'script': str(entry.get('script') or ''),
        'visual_prompt': str(entry.get('visual_prompt') or ''),
        'duration': duration,
        'exit_context': str(entry.get('exit_context') or ''),
        'product_featured': bool(entry.get('product_featured', False)),
        'video': _resolve(entry.get('video'), base_dir),
        'narration': _parse_narration(entry.get('narration'), base_dir),
    }


def parse_logo_entry(raw: Any, base_dir: str = '.') -> Optional[Dict[str, Any]]:
    """Normalize a ``logo`` block (a bare path or ``{path, x, y, scale}``)."""
    if not raw:
        return None
    if isinstance(raw, str):
        raw = {'path': raw}
    if not isinstance(raw, dict) or not raw.get('path'):
        raise ValueError('Logo entry requires a path')
    entry = {'path': _resolve(raw['path'], base_dir)}
    # Only keys present in the manifest; defaults are applied by the caller
    for key in ('x', 'y', 'scale'):
        if raw.get(key) is not None:
            entry[key] = float(raw[key])
    if entry.get('scale', 0.15) <= 0:
        raise ValueError('Logo scale must be > 0')
    return entry


def parse_manifest(data: Any, base_dir: str = '.') -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Return ``(scene_entries, logo_entry)`` from a loaded manifest document.

    A bare list is accepted as the scene list.
    """
    if isinstance(data, list):
        data = {'scenes': data}
    if not isinstance(data, dict):
        raise ValueError('Manifest must be a mapping with a "scenes" list')
    raw_scenes = data.get('scenes') or []
    if not isinstance(raw_scenes, list):
        raise ValueError('"scenes" must be a list')
    entries = [parse_scene_entry(raw, i, base_dir) for i, raw in enumerate(raw_scenes, 1)]
    return entries, parse_logo_entry(data.get('logo'), base_dir)
