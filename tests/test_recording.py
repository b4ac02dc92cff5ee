"""
Test per la sessione di registrazione e la selezione del formato
"""
import os
import tempfile
import unittest
from unittest.mock import patch, MagicMock

import numpy as np

from ad_renderer.rendering.recording import (
    EncodingSettings,
    MoviepyEncoder,
    RecordingSession,
    RecordingState,
    select_format,
)
from ad_renderer.services.errors import EncodingError, RecordingStateError

from render_fakes import FakeEncoder

FORMATS = [
    {'container': 'mp4', 'video_codec': 'libx264', 'audio_codec': 'aac'},
    {'container': 'webm', 'video_codec': 'libvpx-vp9', 'audio_codec': 'libopus'},
]

ENCODERS_OUTPUT = """Encoders:
 V..... = Video
 ------
 V....D libvpx-vp9           libvpx VP9 (codec vp9)
 V....D mpeg4                MPEG-4 part 2
 A....D libopus              libopus Opus (codec opus)
 A....D aac                  AAC (Advanced Audio Coding)
"""


class TestRecordingSession(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.output_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _session(self, encoder=None, **kwargs):
        self.encoder = encoder or FakeEncoder()
        return RecordingSession(self.encoder, self.output_dir, size=(64, 36), formats=FORMATS, **kwargs)

    def test_full_lifecycle(self):
        session = self._session()
        self.assertEqual(session.state, RecordingState.IDLE)
        session.start(at=0.0)
        self.assertEqual(session.state, RecordingState.RECORDING)
        for _ in range(3):
            session.write_frame(np.zeros((36, 64, 3), dtype=np.uint8))
        session.stop(at=1.1)
        self.assertEqual(session.state, RecordingState.STOP_REQUESTED)
        artifact = session.finalize(np.zeros((100, 2), dtype=np.float32))

        self.assertEqual(session.state, RecordingState.FINALIZED)
        self.assertEqual(artifact.frame_count, 3)
        self.assertEqual(artifact.container, 'mp4')
        self.assertTrue(artifact.video_path.endswith('.mp4'))
        self.assertTrue(artifact.audio_path.endswith('.m4a'))
        self.assertEqual(session.stopped_at, 1.1)

        settings = self.encoder.open_calls[0][0]
        self.assertEqual(settings.fps, 30)
        self.assertEqual(settings.video_bitrate, 12_000_000)
        self.assertEqual(settings.audio_bitrate, 192_000)

    def test_single_shot(self):
        session = self._session()
        session.start()
        session.stop(at=1.0)
        session.finalize(np.zeros((10, 2), dtype=np.float32))
        with self.assertRaises(RecordingStateError):
            session.start()
        with self.assertRaises(RecordingStateError):
            session.finalize(np.zeros((10, 2), dtype=np.float32))

    def test_illegal_transitions(self):
        session = self._session()
        with self.assertRaises(RecordingStateError):
            session.write_frame(np.zeros((36, 64, 3), dtype=np.uint8))
        with self.assertRaises(RecordingStateError):
            session.stop(at=0.0)
        session.start()
        with self.assertRaises(RecordingStateError):
            session.start()
        with self.assertRaises(RecordingStateError):
            session.finalize(np.zeros((10, 2), dtype=np.float32))

    def test_falls_back_to_next_format(self):
        session = self._session(FakeEncoder(supported={'webm'}))
        session.start()
        self.assertEqual(session.settings.container, 'webm')
        self.assertEqual(session.settings.audio_extension, 'ogg')

    def test_no_format_available(self):
        session = self._session(FakeEncoder(supported=set()))
        with self.assertRaises(EncodingError):
            session.start()
        self.assertEqual(session.state, RecordingState.FAILED)

    def test_frame_failure_aborts(self):
        session = self._session(FakeEncoder(fail_on_frame=1))
        session.start()
        session.write_frame(np.zeros((36, 64, 3), dtype=np.uint8))
        with self.assertRaises(EncodingError):
            session.write_frame(np.zeros((36, 64, 3), dtype=np.uint8))
        self.assertEqual(session.state, RecordingState.FAILED)
        self.assertTrue(self.encoder.aborted)
        self.assertEqual(os.listdir(self.output_dir), [])

    def test_names_are_unique_per_session(self):
        self.assertNotEqual(self._session().name, self._session().name)


class TestFormatSelection(unittest.TestCase):
    @patch('ad_renderer.rendering.recording.subprocess.run')
    def test_encoder_probe_parses_ffmpeg_listing(self, mock_run):
        mock_run.return_value = MagicMock(stdout=ENCODERS_OUTPUT, stderr='')
        encoder = MoviepyEncoder(ffmpeg_binary='ffmpeg')
        self.assertFalse(encoder.supports(FORMATS[0]))
        self.assertTrue(encoder.supports(FORMATS[1]))
        self.assertEqual(select_format(FORMATS, encoder)['container'], 'webm')
        # La lista encoder viene letta una sola volta
        self.assertEqual(mock_run.call_count, 1)

    @patch('ad_renderer.rendering.recording.subprocess.run', side_effect=OSError('missing ffmpeg'))
    def test_missing_ffmpeg_means_no_format(self, _):
        with self.assertRaises(EncodingError):
            select_format(FORMATS, MoviepyEncoder(ffmpeg_binary='ffmpeg'))


class TestMoviepyEncoder(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.video_tmp = os.path.join(self._tmp.name, 'master.video.mp4')
        self.audio_path = os.path.join(self._tmp.name, 'master.m4a')
        self.output_path = os.path.join(self._tmp.name, 'master.mp4')
        self.settings = EncodingSettings(
            container='mp4', video_codec='libx264', audio_codec='aac', size=(64, 36), fps=30,
            sample_rate=48000, video_bitrate=12_000_000, audio_bitrate=192_000,
        )

    def tearDown(self):
        self._tmp.cleanup()

    def _touch_video(self):
        with open(self.video_tmp, 'wb') as f:
            f.write(b'video')

    @patch('ad_renderer.rendering.recording.ffmpeg_merge_video_audio')
    @patch('ad_renderer.rendering.recording.AudioArrayClip')
    @patch('ad_renderer.rendering.recording.FFMPEG_VideoWriter')
    def test_streams_frames_then_encodes_audio_and_merges(self, mock_writer_cls, mock_audio_cls, mock_merge):
        encoder = MoviepyEncoder(ffmpeg_binary='ffmpeg')
        encoder.open(self.settings, self.video_tmp)
        self._touch_video()

        mock_writer_cls.assert_called_once_with(
            self.video_tmp, (64, 36), 30, codec='libx264', preset='medium', bitrate='12000k')

        frame = np.zeros((36, 64, 3), dtype=np.uint8)
        encoder.write_frame(frame)
        mock_writer_cls.return_value.write_frame.assert_called_once_with(frame)

        audio = np.zeros((4800, 2), dtype=np.float32)
        encoder.finish(self.settings, audio, self.audio_path, self.output_path)

        mock_writer_cls.return_value.close.assert_called_once()
        mock_audio_cls.assert_called_once_with(audio, fps=48000)
        clip = mock_audio_cls.return_value
        clip.write_audiofile.assert_called_once_with(
            self.audio_path, fps=48000, codec='aac', bitrate='192k', logger=None)
        clip.close.assert_called_once()
        # Il video viene copiato senza ricodifica accanto all'audio
        mock_merge.assert_called_once_with(
            self.video_tmp, self.audio_path, self.output_path,
            video_codec='copy', audio_codec='copy', logger=None)
        self.assertFalse(os.path.exists(self.video_tmp))

    @patch('ad_renderer.rendering.recording.ffmpeg_merge_video_audio')
    @patch('ad_renderer.rendering.recording.AudioArrayClip')
    @patch('ad_renderer.rendering.recording.FFMPEG_VideoWriter')
    def test_audio_clip_is_closed_when_encoding_fails(self, _writer, mock_audio_cls, mock_merge):
        mock_audio_cls.return_value.write_audiofile.side_effect = IOError('codec missing')
        encoder = MoviepyEncoder(ffmpeg_binary='ffmpeg')
        encoder.open(self.settings, self.video_tmp)

        with self.assertRaises(IOError):
            encoder.finish(self.settings, np.zeros((10, 2), dtype=np.float32), self.audio_path, self.output_path)
        mock_audio_cls.return_value.close.assert_called_once()
        mock_merge.assert_not_called()

    @patch('ad_renderer.rendering.recording.FFMPEG_VideoWriter')
    def test_abort_closes_writer_and_removes_partial_video(self, mock_writer_cls):
        mock_writer_cls.return_value.close.side_effect = BrokenPipeError('ffmpeg died')
        encoder = MoviepyEncoder(ffmpeg_binary='ffmpeg')
        encoder.open(self.settings, self.video_tmp)
        self._touch_video()

        encoder.abort()
        encoder.abort()

        mock_writer_cls.return_value.close.assert_called_once()
        self.assertFalse(os.path.exists(self.video_tmp))


if __name__ == "__main__":
    unittest.main()
