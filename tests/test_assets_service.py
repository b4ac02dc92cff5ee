import io
import tempfile
import unittest
from unittest.mock import patch, MagicMock

from PIL import Image

from ad_renderer.services import assets as assets_svc
from ad_renderer.services.errors import AssetLoadError


def _png_bytes(size=(8, 4), color=(255, 0, 0)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class TestAssetsService(unittest.TestCase):
    def _mock_urlopen(self, payload: bytes = b"DATA"):
        mm = MagicMock()
        mm.read.return_value = payload
        ctx = MagicMock()
        ctx.__enter__.return_value = mm
        ctx.__exit__.return_value = False
        return ctx

    @patch("urllib.request.urlopen")
    def test_fetch_bytes_returns_body(self, mock_urlopen):
        mock_urlopen.return_value = self._mock_urlopen(b"\x89PNG\r\n")
        self.assertEqual(assets_svc.fetch_bytes("https://example/image.png"), b"\x89PNG\r\n")
        request = mock_urlopen.call_args[0][0]
        self.assertEqual(request.get_header("User-agent"), "Mozilla/5.0")

    @patch("urllib.request.urlopen", side_effect=RuntimeError("network"))
    def test_fetch_bytes_raises_typed_error(self, _):
        with self.assertRaises(AssetLoadError):
            assets_svc.fetch_bytes("https://example/music.mp3")

    @patch("urllib.request.urlopen")
    def test_music_bed_with_undecodable_bytes(self, mock_urlopen):
        mock_urlopen.return_value = self._mock_urlopen(b"not audio")
        with patch.object(assets_svc, "decode_audio_bytes", side_effect=ValueError("bad header")):
            with self.assertRaises(AssetLoadError):
                assets_svc.load_music_bed(url="https://example/music.mp3")

    def test_music_bed_prefers_local_path(self):
        with patch.object(assets_svc, "load_audio_file", return_value="decoded") as load:
            with patch.object(assets_svc, "fetch_bytes") as fetch:
                self.assertEqual(assets_svc.load_music_bed(path="/tmp/bed.mp3", url="https://x"), "decoded")
        load.assert_called_once_with("/tmp/bed.mp3")
        fetch.assert_not_called()

    def test_music_bed_not_configured(self):
        with self.assertRaises(AssetLoadError):
            assets_svc.load_music_bed()

    def test_logo_from_pil_bytes_and_path(self):
        img = assets_svc.load_logo_image(Image.new("RGB", (4, 4)))
        self.assertEqual(img.mode, "RGBA")
        self.assertEqual(assets_svc.load_logo_image(_png_bytes()).size, (8, 4))
        with tempfile.NamedTemporaryFile(suffix=".png") as tmp:
            tmp.write(_png_bytes((3, 5)))
            tmp.flush()
            self.assertEqual(assets_svc.load_logo_image(tmp.name).size, (3, 5))

    @patch("urllib.request.urlopen")
    def test_logo_from_url(self, mock_urlopen):
        mock_urlopen.return_value = self._mock_urlopen(_png_bytes((6, 2)))
        self.assertEqual(assets_svc.load_logo_image("https://example/logo.png").size, (6, 2))

    def test_logo_failures_are_typed(self):
        with self.assertRaises(AssetLoadError):
            assets_svc.load_logo_image(b"garbage")
        with self.assertRaises(AssetLoadError):
            assets_svc.load_logo_image("/nonexistent/logo.png")
        with self.assertRaises(AssetLoadError):
            assets_svc.load_logo_image(12345)


if __name__ == "__main__":
    unittest.main()
