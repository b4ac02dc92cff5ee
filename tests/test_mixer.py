"""
Test per il sink di mix e il grafo a tre bus
"""
import unittest

import numpy as np

from ad_renderer.audio_utils import AudioBuffer
from ad_renderer.rendering.mixer import AudioMixGraph, AudioMixingSink, BUS_NARRATION, BUS_SFX
from ad_renderer.services.errors import ResourceUnavailableError

from render_fakes import make_scene


def ones(frames, rate=1000):
    return AudioBuffer(np.ones(frames, dtype=np.float32), rate)


class TestAudioMixingSink(unittest.TestCase):
    def test_source_lands_at_its_offset_with_gain(self):
        sink = AudioMixingSink(1000, 1)
        sink.start_source('narration', 'n', ones(100), at=0.01, gain=0.5)
        out = sink.render(0.2)
        self.assertEqual(out.shape, (200, 1))
        self.assertTrue(np.all(out[:10] == 0))
        self.assertTrue(np.allclose(out[10:110], 0.5))
        self.assertTrue(np.all(out[110:] == 0))

    def test_stopped_source_is_cut(self):
        sink = AudioMixingSink(1000, 1)
        source = sink.start_source('narration', 'n', ones(100), at=0.01)
        sink.stop_source(source, at=0.05)
        out = sink.render(0.2)
        self.assertTrue(np.allclose(out[10:50], 1.0))
        self.assertTrue(np.all(out[50:] == 0))

    def test_looping_source_fills_the_session(self):
        sink = AudioMixingSink(1000, 1)
        sink.start_source('music', 'm', ones(30), at=0.0, gain=0.1, loop=True)
        out = sink.render(0.1)
        self.assertTrue(np.allclose(out, 0.1))

    def test_mix_is_clipped(self):
        sink = AudioMixingSink(1000, 2)
        sink.start_source('a', 'a', AudioBuffer(np.full(10, 0.8), 1000), at=0)
        sink.start_source('b', 'b', AudioBuffer(np.full(10, 0.8), 1000), at=0)
        out = sink.render(0.01)
        self.assertEqual(out.shape, (10, 2))
        self.assertTrue(np.allclose(out, 1.0))

    def test_sources_are_resampled_to_the_sink_rate(self):
        sink = AudioMixingSink(48000, 2)
        source = sink.start_source('narration', 'n', AudioBuffer(np.zeros(24000), 24000), at=0)
        self.assertEqual(source.buffer.sample_rate, 48000)
        self.assertEqual(source.buffer.frames, 48000)
        self.assertEqual(source.buffer.channels, 2)

    def test_invalid_allocation_raises(self):
        with self.assertRaises(ResourceUnavailableError):
            AudioMixingSink(0, 2)


class TestAudioMixGraph(unittest.TestCase):
    def test_scene_sources_share_the_start_instant(self):
        graph = AudioMixGraph(AudioMixingSink(48000, 2))
        sources = graph.start_scene(make_scene(7, 1, product_featured=True), at=2.5)
        self.assertEqual(sources.sfx_kind, 'impact')
        self.assertEqual(sources.sfx.start_frame, sources.narration.start_frame)
        self.assertEqual(sources.narration.start_frame, 120000)

    def test_stop_scene_cuts_narration_only(self):
        graph = AudioMixGraph(AudioMixingSink(48000, 2))
        sources = graph.start_scene(make_scene(1, 1), at=0.0)
        graph.stop_scene(sources, at=1.0)
        self.assertEqual(sources.narration.stop_frame, 48000)
        self.assertIsNone(sources.sfx.stop_frame)
        self.assertEqual(len(graph.bus_sources(BUS_SFX)), 1)
        self.assertEqual(len(graph.bus_sources(BUS_NARRATION)), 1)

    def test_custom_gains_override_defaults(self):
        graph = AudioMixGraph(AudioMixingSink(48000, 2), gains={'sfx': 0.5, 'unknown': 3})
        self.assertEqual(graph.gains, {'music': 0.1, 'sfx': 0.5, 'narration': 1.0})


if __name__ == "__main__":
    unittest.main()
