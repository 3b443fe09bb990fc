import numpy as np
import unittest

import pamguide.acoustics as acoustics
from pamguide.errors import ConfigError


class TestWindows(unittest.TestCase):
    @classmethod
    def setUpClass(self):
        self.length = 1024

    def test_rectangular_correction_is_one(self):
        window, correction = acoustics.get_window("rectangular", self.length)
        np.testing.assert_array_equal(window, np.ones(self.length))
        self.assertEqual(correction, 1.0)

    def test_reference_correction_factors(self):
        expected = {
            "hann": 8 / 3,
            "hamming": 1 / 0.3974,
            "blackman": 1 / 0.3046,
        }
        for name, factor in expected.items():
            window, correction = acoustics.get_window(name, self.length)
            self.assertGreater(correction, 1.0)
            np.testing.assert_allclose(correction, factor, rtol=1e-9, err_msg=name)
            # Reproducible
            _, again = acoustics.get_window(name, self.length)
            self.assertEqual(correction, again)

    def test_coefficients_in_unit_interval(self):
        for name in acoustics.WINDOW_TYPES:
            window, _ = acoustics.get_window(name, 257)
            self.assertEqual(window.shape, (257,))
            self.assertTrue(np.all(window >= 0), name)
            self.assertTrue(np.all(window <= 1), name)

    def test_hann_is_periodic(self):
        window, _ = acoustics.get_window("hann", 8)
        n = np.arange(8)
        np.testing.assert_allclose(window, 0.5 - 0.5 * np.cos(2 * np.pi * n / 8))

    def test_aliases(self):
        self.assertEqual(acoustics.normalize_window_type("Hanning"), "hann")
        self.assertEqual(acoustics.normalize_window_type("boxcar"), "rectangular")
        self.assertEqual(acoustics.normalize_window_type(" NONE "), "rectangular")

    def test_unknown_window(self):
        with self.assertRaises(ConfigError):
            acoustics.get_window("kaiser", 16)
        with self.assertRaises(ConfigError):
            acoustics.WindowSpec("triangle", 16)

    def test_invalid_length(self):
        for length in [0, -4, 2.5, True]:
            with self.assertRaises(ConfigError):
                acoustics.get_window("hann", length)
            with self.assertRaises(ConfigError):
                acoustics.WindowSpec("hann", length)

    def test_window_spec_overlap_range(self):
        spec = acoustics.WindowSpec("HANN", 100, 0.0)
        self.assertEqual(spec.type, "hann")
        with self.assertRaises(ConfigError):
            acoustics.WindowSpec("hann", 100, 1.0)
        with self.assertRaises(ConfigError):
            acoustics.WindowSpec("hann", 100, -0.1)


if __name__ == "__main__":
    unittest.main()
