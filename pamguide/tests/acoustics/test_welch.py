import warnings
import numpy as np
import unittest

import pamguide.acoustics as acoustics
from pamguide.errors import ConfigError
from pamguide.warnings import PAMGuideWarning


class TestWelch(unittest.TestCase):
    @classmethod
    def setUpClass(self):
        self.spectra = np.random.default_rng(3).random((10, 17))

    def test_factor_one_is_identity(self):
        out = acoustics.welch_average(self.spectra, 1)
        np.testing.assert_array_equal(out, self.spectra)
        self.assertEqual(out.shape, self.spectra.shape)

    def test_group_means(self):
        out = acoustics.welch_average(self.spectra, 5)
        self.assertEqual(out.shape, (2, 17))
        np.testing.assert_allclose(out[0], self.spectra[:5].mean(axis=0))
        np.testing.assert_allclose(out[1], self.spectra[5:].mean(axis=0))

    def test_incomplete_group_dropped(self):
        with self.assertLogs("pamguide.acoustics.welch", level="INFO"):
            out = acoustics.welch_average(self.spectra, 4)
        self.assertEqual(out.shape, (2, 17))
        np.testing.assert_allclose(out[1], self.spectra[4:8].mean(axis=0))

    def test_no_complete_group(self):
        with self.assertWarns(PAMGuideWarning):
            out = acoustics.welch_average(self.spectra, 11)
        self.assertEqual(out.shape, (0, 17))

    def test_invalid_factor(self):
        for factor in [0, -1, 1.5, True]:
            with self.assertRaises(ConfigError):
                acoustics.welch_average(self.spectra, factor)
        with self.assertRaises(ValueError):
            acoustics.welch_average(self.spectra[0], 2)

    def test_block_times_relative(self):
        time = acoustics.block_times(3, 2, 500, 1000)
        np.testing.assert_allclose(time, [0.0, 1.0, 2.0])
        self.assertEqual(acoustics.block_duration(120, 24000, 48000), 60.0)

    def test_block_times_absolute(self):
        start = np.datetime64("2024-07-17T16:47:21")
        time = acoustics.block_times(3, 1, 5000, 10000, start)
        self.assertEqual(time.dtype, np.dtype("datetime64[ns]"))
        expected = start + np.array([0, 500, 1000], dtype="timedelta64[ms]")
        np.testing.assert_array_equal(time, expected.astype("datetime64[ns]"))

    def test_no_warning_for_exact_groups(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            acoustics.welch_average(self.spectra, 2)


if __name__ == "__main__":
    unittest.main()
