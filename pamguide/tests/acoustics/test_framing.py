import numpy as np
import unittest

import pamguide.acoustics as acoustics
from pamguide.acoustics.framing import round_half_up
from pamguide.errors import ConfigError, NumericError


class TestFraming(unittest.TestCase):
    @classmethod
    def setUpClass(self):
        self.fs = 1000
        self.stream = acoustics.SampleStream(
            np.random.default_rng(0).standard_normal(4500), self.fs, name="noise.wav"
        )

    def test_hop_and_frame_count_half_overlap(self):
        for length in [2, 3, 7, 100, 101, 999, 4500]:
            framer = acoustics.Framer(
                self.stream, acoustics.WindowSpec("hann", length, 0.5)
            )
            hop = round_half_up(length / 2)
            self.assertEqual(framer.hop, hop)
            self.assertEqual(len(framer), (len(self.stream) - length) // hop + 1)

    def test_no_frames_when_stream_shorter_than_window(self):
        spec = acoustics.WindowSpec("hann", 11)
        framer = acoustics.Framer(np.zeros(10), spec, fs=100)
        self.assertEqual(len(framer), 0)
        self.assertEqual(list(framer), [])
        self.assertEqual(framer.windowed_frames().shape, (0, 11))

    def test_round_half_up(self):
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.4), 2)
        self.assertEqual(round_half_up(-1.5), -2)

    def test_hop_size_zero_advance(self):
        with self.assertRaises(ConfigError):
            acoustics.hop_size(4, 0.9)
        self.assertEqual(acoustics.hop_size(100, 0.75), 25)

    def test_frame_count(self):
        self.assertEqual(acoustics.frame_count(20000, 10000, 5000), 3)
        self.assertEqual(acoustics.frame_count(9999, 10000, 5000), 0)
        self.assertEqual(acoustics.frame_count(10000, 10000, 5000), 1)
        with self.assertRaises(ValueError):
            acoustics.frame_count(100, 10, 0)
        with self.assertRaises(TypeError):
            acoustics.frame_count(100, 10.0, 5)

    def test_iteration_matches_stacked_frames(self):
        spec = acoustics.WindowSpec("hamming", 256, 0.25)
        framer = acoustics.Framer(self.stream, spec)
        frames = list(framer)
        stacked = framer.windowed_frames()

        self.assertEqual(len(frames), len(framer))
        self.assertEqual(stacked.shape, (len(framer), 256))
        np.testing.assert_array_equal(framer.starts, [f.start for f in frames])
        for i, frame in enumerate(frames):
            np.testing.assert_array_equal(
                frame.samples,
                self.stream.samples[frame.start : frame.start + 256],
            )
            np.testing.assert_allclose(frame.windowed, stacked[i])

        # Restartable
        self.assertEqual(len(list(framer)), len(frames))

    def test_trailing_partial_frame_dropped(self):
        spec = acoustics.WindowSpec("rectangular", 1000, 0.0)
        framer = acoustics.Framer(self.stream, spec)
        self.assertEqual(len(framer), 4)
        self.assertEqual(framer.starts[-1] + 1000, 4000)

    def test_non_finite_samples(self):
        samples = np.zeros(100)
        samples[10] = np.nan
        with self.assertRaises(NumericError):
            acoustics.Framer(samples, acoustics.WindowSpec("hann", 10), fs=10)

    def test_sample_stream(self):
        raw = np.array([0, 1, 2], dtype=np.int16)
        stream = acoustics.SampleStream(raw, 48000)
        self.assertEqual(stream.samples.dtype, np.float64)
        self.assertFalse(stream.samples.flags.writeable)
        self.assertEqual(len(stream), 3)
        self.assertAlmostEqual(stream.duration, 3 / 48000)

        with self.assertRaises(ValueError):
            acoustics.SampleStream(np.zeros((2, 2)), 100)
        with self.assertRaises(ValueError):
            acoustics.SampleStream(np.zeros(2), 0)
        with self.assertRaises(TypeError):
            acoustics.SampleStream(np.zeros(2), "100")

    def test_array_input_requires_fs(self):
        with self.assertRaises(TypeError):
            acoustics.Framer(np.zeros(10), acoustics.WindowSpec("hann", 4))
        with self.assertRaises(TypeError):
            acoustics.Framer(self.stream, ("hann", 4))


if __name__ == "__main__":
    unittest.main()
