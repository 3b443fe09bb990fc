"""
Single-frame power spectral density estimation.

Each windowed frame is transformed with a real FFT and its squared
magnitude scaled to a one-sided density:

    P[k] = c[k] * |X[k]|**2 / (fs * sum(w**2))

with ``c = 2`` for all bins except 0 Hz and, for even frame lengths,
the Nyquist bin, where ``c = 1`` because those bins have no mirrored
negative-frequency counterpart. With this scaling the PSD integrates
(``sum(P) * fs / nfft``) to the mean-square amplitude of the frame, in
units of digital full scale squared per Hz.
"""

from typing import Optional, Sequence, Union
import numpy as np
import xarray as xr

from pamguide.utils import check_numeric
from .welch import welch_average


def frequencies(nfft: int, fs: Union[int, float]) -> np.ndarray:
    """
    Bin frequencies of a one-sided spectrum.

    Parameters
    ----------
    nfft : int
      The number of samples in a frame.
    fs : float
      The sampling frequency [Hz]

    Returns
    -------
    freq : numpy.ndarray
      ``nfft // 2 + 1`` frequencies from 0 Hz, spaced by ``fs / nfft``.
    """
    return np.fft.rfftfreq(int(nfft), 1 / np.float64(fs))


def _bin_weights(nfft: int) -> np.ndarray:
    weights = np.full(nfft // 2 + 1, 2.0)
    weights[0] = 1.0
    if nfft % 2 == 0:
        weights[-1] = 1.0
    return weights


def periodogram(
    windowed: np.ndarray, fs: Union[int, float], window: np.ndarray
) -> np.ndarray:
    """
    One-sided power spectral density of windowed frame(s).

    Parameters
    ----------
    windowed : numpy.ndarray
      A windowed frame, or a (n_frames, nfft) stack of them.
    fs : float
      The sample rate [Hz].
    window : numpy.ndarray
      The window coefficients that were applied, length nfft.

    Returns
    -------
    psd : numpy.ndarray
      Power per Hz for each of the ``nfft // 2 + 1`` bins (last axis).
    """
    check_numeric(fs, "fs")
    windowed = np.asarray(windowed, dtype=float)
    window = np.asarray(window, dtype=float)
    nfft = windowed.shape[-1]
    if window.shape != (nfft,):
        raise ValueError(
            f"Window length {window.size} does not match frame length {nfft}."
        )

    spectrum = np.fft.rfft(windowed, axis=-1)
    power = spectrum.real**2 + spectrum.imag**2
    scale = _bin_weights(nfft) / (fs * np.sum(window**2))

    return power * scale


def power_spectral_density(
    frames: np.ndarray,
    fs: Union[int, float],
    window: np.ndarray,
    welch_factor: int = 1,
    time: Optional[Sequence] = None,
    attrs: Optional[dict] = None,
) -> xr.DataArray:
    """
    Power spectral density of a stack of windowed frames as a DataArray,
    optionally Welch averaged into time blocks.

    Parameters
    ----------
    frames: numpy.ndarray (n_frames, nfft)
        Windowed frames in temporal order.
    fs: int or float
        Sample rate [Hz].
    window: numpy.ndarray
        Window coefficients applied to the frames.
    welch_factor: int
        Number of consecutive frames averaged into each time block.
        Default: 1 (one block per frame).
    time: array-like, optional
        Time coordinate for each block. Default: block index.
    attrs: dict, optional
        Extra attributes added to the result.

    Returns
    -------
    psd: xarray.DataArray (time, freq)
        Linear power spectral density [FS^2/Hz] indexed by time and frequency
    """
    frames = np.atleast_2d(np.asarray(frames, dtype=float))
    nfft = frames.shape[-1]
    psd = welch_average(periodogram(frames, fs, window), welch_factor)
    if time is None:
        time = np.arange(psd.shape[0])

    attributes = {
        "units": "FS^2/Hz",
        "long_name": "Power Spectral Density",
        "fs": fs,
        "nfft": nfft,
        "welch_factor": welch_factor,
    }
    if attrs:
        attributes.update(attrs)

    return xr.DataArray(
        psd,
        coords={"time": time, "freq": frequencies(nfft, fs)},
        dims=["time", "freq"],
        attrs=attributes,
    )
