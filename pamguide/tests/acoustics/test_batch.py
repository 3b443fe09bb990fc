from os.path import join
import tempfile
import numpy as np
import xarray as xr
import unittest
from scipy.io import wavfile

import pamguide.acoustics as acoustics
from pamguide.config import AnalysisConfig
from pamguide.errors import ConfigError, DecodeError, NumericError
from pamguide.warnings import PAMGuideWarning, TimestampParseWarning


def _noise(name, seed, fs=1000, seconds=2.0):
    rng = np.random.default_rng(seed)
    return acoustics.SampleStream(
        0.1 * rng.standard_normal(int(fs * seconds)), fs, name=name
    )


class TestBatch(unittest.TestCase):
    @classmethod
    def setUpClass(self):
        self.config = AnalysisConfig(
            low_cutoff=10.0,
            high_cutoff=400.0,
            window_length=0.5,
            timestamp_format="%Y%m%dT%H%M%SZ",
        )
        # Deliberately out of time order
        self.names = [
            "dep.20240101T000020Z.wav",
            "dep.20240101T000000Z.wav",
            "dep.20240101T000010Z.wav",
            "dep.20231231T235950Z.wav",
        ]
        self.streams = [_noise(name, i) for i, name in enumerate(self.names)]

    def test_ordered_by_timestamp(self):
        batch = acoustics.process_batch(self.streams, self.config, max_workers=4)
        self.assertEqual(batch.ordered_by, "time")
        self.assertEqual(batch.names, sorted(self.names, key=lambda n: n.split(".")[1]))
        self.assertEqual(len(batch.failures), 0)
        starts = [r.start_time for r in batch]
        self.assertEqual(starts, sorted(starts))
        self.assertEqual(starts[0], np.datetime64("2023-12-31T23:59:50", "ns"))

    def test_deterministic_under_concurrency(self):
        first = acoustics.process_batch(self.streams, self.config, max_workers=4)
        second = acoustics.process_batch(
            list(reversed(self.streams)), self.config, max_workers=3
        )
        serial = acoustics.process_batch(self.streams, self.config, max_workers=1)

        self.assertEqual(first.names, second.names)
        self.assertEqual(first.names, serial.names)
        xr.testing.assert_identical(first.concatenate(), second.concatenate())
        xr.testing.assert_identical(first.concatenate(), serial.concatenate())
        for a, b in zip(first, serial):
            np.testing.assert_array_equal(a.spl.values, b.spl.values)

    def test_timestamp_fallback(self):
        streams = self.streams[:2] + [_noise("unstamped.wav", 9)]
        with self.assertWarns(TimestampParseWarning):
            batch = acoustics.process_batch(streams, self.config, max_workers=2)

        self.assertEqual(batch.ordered_by, "name")
        self.assertEqual(batch.names, sorted(r.name for r in streams))
        unstamped = batch[-1]
        self.assertEqual(unstamped.name, "unstamped.wav")
        self.assertTrue(unstamped.ok)
        self.assertIsNone(unstamped.start_time)
        self.assertEqual(unstamped.time_base, "relative")
        self.assertEqual(len(unstamped.warnings), 1)
        self.assertEqual(batch[0].warnings, [])

    def test_mixed_time_bases_concatenate(self):
        streams = [self.streams[0], _noise("unstamped.wav", 9)]
        with self.assertWarns(TimestampParseWarning):
            batch = acoustics.process_batch(streams, self.config)
        with self.assertWarns(PAMGuideWarning):
            merged = batch.concatenate()
        self.assertEqual(merged.attrs["time_base"], "mixed")
        self.assertTrue(np.issubdtype(merged["time"].dtype, np.floating))
        # Epoch seconds of 2024-01-01T00:00:20
        self.assertEqual(float(merged["time"][0]), 1704067220.0)

    def test_failures_do_not_abort(self):
        bad = acoustics.SampleStream(
            np.full(2000, np.nan), 1000, name="dep.20240101T000005Z.wav"
        )
        short = _noise("dep.20240101T000015Z.wav", 5, seconds=0.25)
        streams = self.streams + [bad, short]
        batch = acoustics.process_batch(streams, self.config, max_workers=3)

        self.assertEqual(len(batch), 6)
        self.assertEqual(len(batch.successes), 4)
        errors = {r.name: r.error for r in batch.failures}
        self.assertIsInstance(errors["dep.20240101T000005Z.wav"], NumericError)
        self.assertIsInstance(errors["dep.20240101T000015Z.wav"], ConfigError)
        # Failed files keep their place in the ordering
        self.assertEqual(batch.names[2], "dep.20240101T000005Z.wav")

        merged = batch.concatenate()
        self.assertEqual(list(np.unique(merged["file"].values)), sorted(self.names))

    def test_decode_failure_from_path(self):
        with tempfile.TemporaryDirectory() as d:
            good = join(d, "dep.20240101T000000Z.wav")
            samples = (self.streams[0].samples * 2**15).astype(np.int16)
            wavfile.write(good, 1000, samples)
            bad = join(d, "dep.20240101T000010Z.wav")
            with open(bad, "wb") as f:
                f.write(b"RIFF")

            batch = acoustics.process_batch([bad, good], self.config, max_workers=2)

        self.assertEqual(
            batch.names, ["dep.20240101T000000Z.wav", "dep.20240101T000010Z.wav"]
        )
        self.assertTrue(batch[0].ok)
        self.assertEqual(batch[0].path, good)
        self.assertIsInstance(batch[1].error, DecodeError)

    def test_loader_pairs(self):
        calls = []

        def loader():
            calls.append(1)
            return self.streams[1]

        batch = acoustics.process_batch(
            [("first.wav", loader), ("second.wav", self.streams[2])],
            self.config.replace(timestamp_format=None),
        )
        self.assertEqual(calls, [1])
        self.assertEqual(batch.names, ["first.wav", "second.wav"])
        self.assertEqual(batch.ordered_by, "name")

        with self.assertRaises(TypeError):
            acoustics.process_batch([42], self.config)
        with self.assertRaises(TypeError):
            acoustics.process_batch([("x.wav", 42)], self.config)

    def test_concatenate_psd_frequency_mismatch(self):
        config = self.config.replace(
            timestamp_format=None, window_unit="samples", window_length=500
        )
        streams = [_noise("a.wav", 1, fs=1000), _noise("b.wav", 2, fs=2000)]
        batch = acoustics.process_batch(streams, config)
        self.assertEqual(len(batch.successes), 2)
        with self.assertRaises(ValueError):
            batch.concatenate()
        # Broadband levels still merge
        merged = batch.concatenate("broadband")
        self.assertEqual(merged.dims, ("time",))

    def test_concatenate_broadband(self):
        config = self.config.replace(analysis_type="broadband")
        batch = acoustics.process_batch(self.streams, config)
        merged = batch.concatenate()
        self.assertEqual(merged.dims, ("time",))
        # 2 s recordings, 0.5 s frames with 50% overlap: 7 blocks each
        self.assertEqual(merged.sizes["time"], 7 * len(self.streams))
        self.assertEqual(merged.attrs["time_base"], "absolute")
        self.assertTrue(np.all(np.diff(merged["time"].values) > np.timedelta64(0)))

    def test_nothing_to_concatenate(self):
        with self.assertRaises(ValueError):
            acoustics.BatchResult().concatenate()

    def test_invalid_configuration_is_fatal(self):
        with self.assertRaises(ConfigError):
            acoustics.process_batch(self.streams, {"low_cutoff": 10.0})
        with self.assertRaises(ValueError):
            acoustics.process_batch(self.streams, self.config, max_workers=0)


if __name__ == "__main__":
    unittest.main()
