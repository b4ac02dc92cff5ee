"""
Command-line interface for the master renderer
"""
import argparse
import logging
import os
import sys

import yaml

from .audio_utils import load_audio_file, load_pcm16_file
from .config import Config
from .core import (
    LogoOverlayConfig,
    SceneAsset,
    admissible_scenes,
    format_seconds,
    parse_manifest,
    scene_timeline,
)
from .rendering.facade import render_master
from .services.errors import RenderError

logger = logging.getLogger(__name__)


def load_narration(entry):
    """Carica la narrazione di una scena; ritorna None se non disponibile."""
    if not entry or not entry.get('path'):
        return None
    try:
        if entry.get('pcm'):
            return load_pcm16_file(entry['path'], entry.get('sample_rate', 24000), entry.get('channels', 1))
        return load_audio_file(entry['path'])
    except Exception as e:
        logger.warning("Cannot load narration %s: %s", entry['path'], e)
        return None


def build_scenes(entries, load_media=True):
    """Costruisce gli SceneAsset dalle voci normalizzate del manifest.

    Video mancanti su disco vengono trattati come assenti (scena saltata).
    """
    scenes = []
    for entry in entries:
        video = entry['video']
        if video and not video.startswith(('http://', 'https://')) and not os.path.exists(video):
            logger.warning("Scene %s: video file not found: %s", entry['id'], video)
            video = None
        narration = entry['narration']
        if load_media:
            narration = load_narration(narration)
        scenes.append(SceneAsset(
            id=entry['id'],
            type=entry['type'],
            script=entry['script'],
            visual_prompt=entry['visual_prompt'],
            duration=entry['duration'],
            exit_context=entry['exit_context'],
            product_featured=entry['product_featured'],
            video=video,
            narration=narration,
        ))
    return scenes


def load_manifest(path, load_media=True):
    """Legge il manifest YAML/JSON e ritorna (scenes, logo_entry)."""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    entries, logo_entry = parse_manifest(data, base_dir=os.path.dirname(os.path.abspath(path)))
    return build_scenes(entries, load_media=load_media), logo_entry


def build_logo(logo_entry, overrides=None):
    """Combina logo da manifest/config con gli override CLI (None non sovrascrive)."""
    merged = dict(logo_entry or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    if not merged.get('path'):
        return None
    return LogoOverlayConfig(
        image=merged['path'],
        x=float(merged.get('x', 100)),
        y=float(merged.get('y', 100)),
        scale=float(merged.get('scale', 0.15)),
    )


def print_timeline(scenes):
    """Stampa la timeline delle scene renderizzabili e quelle saltate"""
    renderable, skipped = admissible_scenes(scenes)
    print(f"\n{'='*60}")
    print(f"Scene renderizzabili: {len(renderable)} / {len(scenes)}")
    print(f"{'='*60}")
    total = 0.0
    for scene, start in scene_timeline(renderable):
        sfx = 'impact' if scene.product_featured else 'whoosh'
        print(f"  [{format_seconds(start)} -> {format_seconds(start + scene.duration)}] "
              f"#{scene.id} {scene.type} ({sfx})")
        if scene.script:
            print(f"     {scene.script[:100]}..." if len(scene.script) > 100 else f"     {scene.script}")
        total = start + scene.duration
    for scene in skipped:
        print(f"  [skip] #{scene.id} {scene.type}: missing {', '.join(scene.missing_media) or 'duration'}")
    print(f"\nDurata totale: {format_seconds(total)}")
    return renderable, skipped


def main(argv=None):
    """Funzione principale CLI"""
    parser = argparse.ArgumentParser(description='Render a multi-scene ad into one master video')
    parser.add_argument('--config', type=str, help='Path to the YAML configuration file')
    parser.add_argument('--manifest', type=str, help='YAML/JSON scene manifest (scenes + optional logo)')
    parser.add_argument('--output-dir', type=str, help='Output directory for the master files')
    parser.add_argument('--logo', type=str, help='Logo image path or URL to burn into the master')
    parser.add_argument('--logo-x', type=float, help='Logo top-left X in 1280x720 space')
    parser.add_argument('--logo-y', type=float, help='Logo top-left Y in 1280x720 space')
    parser.add_argument('--logo-scale', type=float, help='Logo scale relative to its natural size')
    parser.add_argument('--music-path', type=str, help='Local music bed file (overrides music_url)')
    parser.add_argument('--no-music', action='store_true', default=None, help='Render without the music bed')
    parser.add_argument('--realtime', action='store_true', default=None, help='Pace redraw ticks to the wall clock')
    parser.add_argument('--dry-run', action='store_true', help='Stampa solo la timeline delle scene senza renderizzare')
    parser.add_argument('--verbose', action='store_true', help='Log di debug')
    args = parser.parse_args(argv)

    # Minimal logging setup; services use logging for diagnostics.
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    # Se non viene passato --config, prova a usare un file di default (config.yml o config.yaml)
    default_config_path = None
    if not args.config:
        cwd = os.getcwd()
        for candidate in (os.path.join(cwd, 'config.yml'), os.path.join(cwd, 'config.yaml')):
            if os.path.exists(candidate):
                default_config_path = candidate
                break
    config = Config(config_file=args.config or default_config_path)

    # Aggiorna configurazione con argomenti CLI (hanno precedenza)
    config.update_from_args({
        'manifest': args.manifest,
        'output_dir': args.output_dir,
        'music_path': args.music_path,
        'no_music': args.no_music,
        'realtime': args.realtime,
    })

    manifest_path = config.get('manifest')
    if not manifest_path:
        print("Errore: specificare un manifest delle scene (--manifest o 'manifest' nel config).")
        return 2

    try:
        scenes, logo_entry = load_manifest(manifest_path, load_media=not args.dry_run)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Errore nel manifest: {e}")
        return 2

    # Ordine di precedenza logo: CLI > manifest > config
    logo_base = dict(config.get('logo') or {})
    logo_base.update(logo_entry or {})
    logo = build_logo(logo_base, {
        'path': args.logo,
        'x': args.logo_x,
        'y': args.logo_y,
        'scale': args.logo_scale,
    })

    if args.dry_run:
        print_timeline(scenes)
        if logo:
            print(f"Logo: {logo.image} @ ({logo.x:.0f}, {logo.y:.0f}) x{logo.scale}")
        return 0

    print(f"\nRendering master ({len(scenes)} scene)...")
    try:
        result = render_master(scenes, logo=logo, config=config)
    except RenderError as e:
        print(f"Errore durante il rendering: {e}")
        return 1

    print(f"\n{'='*60}")
    print(f"✓ Master: {result.video_path}")
    print(f"✓ Audio: {result.audio_path}")
    print(f"Durata: {format_seconds(result.duration)} - {result.frame_count} frame")
    if result.skipped_scene_ids:
        print(f"Scene saltate: {', '.join(str(i) for i in result.skipped_scene_ids)}")
    print(f"{'='*60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
