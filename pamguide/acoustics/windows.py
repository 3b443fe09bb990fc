"""
Tapering windows applied to each frame before the DFT.

All windows are periodic (DFT-even), i.e. the N-point window is the first
N points of an (N+1)-point symmetric window, which is the convention for
spectral analysis with overlapping frames.

The energy correction factor returned with each window,
``length / sum(w**2)``, is the ratio by which tapering reduces the power of
a stationary signal; multiplying a windowed power estimate by it restores
an unbiased level. It is exactly 1 for the rectangular window and
8/3 for the Hann window.
"""

from dataclasses import dataclass
from typing import Tuple
import numpy as np
from scipy.signal import get_window as _scipy_window

from pamguide.errors import ConfigError

WINDOW_TYPES = ("hann", "hamming", "blackman", "rectangular")

_ALIASES = {
    "hann": "hann",
    "hanning": "hann",
    "hamming": "hamming",
    "blackman": "blackman",
    "rectangular": "rectangular",
    "boxcar": "rectangular",
    "none": "rectangular",
}


def normalize_window_type(window_type: str) -> str:
    """
    Return the canonical name of a window type.

    Parameters
    ----------
    window_type: str
        Case-insensitive window name or alias ('hanning', 'boxcar', 'none').

    Returns
    -------
    name: str
        One of 'hann', 'hamming', 'blackman', 'rectangular'.
    """
    if not isinstance(window_type, str):
        raise ConfigError(f"Window type must be a string. Got: {type(window_type)}")
    name = _ALIASES.get(window_type.strip().lower())
    if name is None:
        raise ConfigError(
            f"Unsupported window type: '{window_type}'. "
            f"Supported types are: {list(WINDOW_TYPES)}"
        )
    return name


@dataclass(frozen=True)
class WindowSpec:
    """Window type, length in samples, and overlap fraction in [0, 1)."""

    type: str
    length: int
    overlap: float = 0.5

    def __post_init__(self):
        object.__setattr__(self, "type", normalize_window_type(self.type))
        if isinstance(self.length, bool) or not isinstance(
            self.length, (int, np.integer)
        ):
            raise ConfigError(f"Window length must be an integer. Got: {self.length!r}")
        if self.length <= 0:
            raise ConfigError(f"Window length must be positive. Got: {self.length}")
        if not 0 <= self.overlap < 1:
            raise ConfigError(
                f"Overlap fraction must be in the range [0, 1). Got: {self.overlap}"
            )


def get_window(window_type: str, length: int) -> Tuple[np.ndarray, float]:
    """
    Window coefficients and energy correction factor.

    Parameters
    ----------
    window_type: str
        'hann', 'hamming', 'blackman' or 'rectangular' (aliases accepted).
    length: int
        Number of coefficients.

    Returns
    -------
    window: numpy.ndarray
        Periodic window coefficients, all in [0, 1].
    correction: float
        Energy correction factor ``length / sum(window**2)``.
    """
    name = normalize_window_type(window_type)
    if isinstance(length, bool) or not isinstance(length, (int, np.integer)):
        raise ConfigError(f"Window length must be an integer. Got: {length!r}")
    if length <= 0:
        raise ConfigError(f"Window length must be positive. Got: {length}")

    if name == "rectangular":
        return np.ones(length), 1.0

    window = _scipy_window(name, int(length), fftbins=True)
    # Blackman reaches -1e-17 at n = 0 through rounding
    window = np.clip(window, 0.0, 1.0)
    energy = np.sum(window**2)
    if energy == 0:
        raise ConfigError(f"A {name} window of length {length} has no energy.")
    correction = length / energy

    return window, float(correction)
