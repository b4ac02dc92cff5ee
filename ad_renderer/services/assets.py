"""Asset-related services (music bed, logo image).

Network I/O is isolated here to keep the render loop and tests clean and
mockable. Every failure surfaces as :class:`AssetLoadError`; callers decide
whether the asset is optional.
"""
from __future__ import annotations

import io
import logging
import os
import ssl
import urllib.request

from PIL import Image

from ad_renderer.audio_utils import decode_audio_bytes, load_audio_file
from .errors import AssetLoadError


logger = logging.getLogger(__name__)


def fetch_bytes(url: str, timeout: int = 10) -> bytes:
    """Fetch ``url`` and return the raw response body.

    Uses a relaxed SSL context and a browser UA header. Raises
    ``AssetLoadError`` on failure.
    """
    logger.info("Fetching asset: %s", url)

    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE

    try:
        request = urllib.request.Request(url, headers={"User-Agent": "Mozilla/5.0"})
        with urllib.request.urlopen(request, context=ssl_context, timeout=timeout) as response:
            data = response.read()
        logger.debug("Fetched %d bytes from %s", len(data), url)
        return data
    except Exception as e:
        logger.error("Failed to fetch asset from %s: %s", url, e)
        raise AssetLoadError(str(e)) from e


def load_music_bed(path: str | None = None, url: str | None = None, timeout: int = 10):
    """Load and decode the background music bed.

    A local ``path`` takes precedence over ``url``. Returns an ``AudioBuffer``.
    Raises ``AssetLoadError`` when neither is usable or decoding fails.
    """
    if path:
        try:
            return load_audio_file(path)
        except Exception as e:
            raise AssetLoadError(f"Cannot decode music file {path}: {e}") from e
    if not url:
        raise AssetLoadError("No music bed configured")
    data = fetch_bytes(url, timeout=timeout)
    try:
        return decode_audio_bytes(data)
    except Exception as e:
        raise AssetLoadError(f"Cannot decode music from {url}: {e}") from e


def load_logo_image(image, timeout: int = 10) -> Image.Image:
    """Return the logo as a fully loaded RGBA ``PIL.Image``.

    ``image`` may be a PIL image, raw bytes, a local path or an http(s) URL.
    """
    try:
        if isinstance(image, Image.Image):
            logo = image.copy()
        elif isinstance(image, (bytes, bytearray)):
            logo = Image.open(io.BytesIO(bytes(image)))
        elif isinstance(image, (str, os.PathLike)):
            source = os.fspath(image)
            if source.startswith(("http://", "https://")):
                logo = Image.open(io.BytesIO(fetch_bytes(source, timeout=timeout)))
            else:
                logo = Image.open(source)
        else:
            raise AssetLoadError(f"Unsupported logo image handle: {type(image).__name__}")
        logo.load()
        return logo.convert("RGBA")
    except AssetLoadError:
        raise
    except Exception as e:
        raise AssetLoadError(f"Cannot load logo image: {e}") from e
