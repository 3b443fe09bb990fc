"""
This module contains functions for integrating power spectral density
over a frequency band into a broadband sound pressure level.

1. **Band Selection**:

   - `band_indices`: Validates a frequency band against the Nyquist
     frequency and selects the spectrum bins within it.

2. **Broadband Level**:

   - `band_power`: Linear sum of the in-band bin values.

   - `broadband_level`: Band power as a level, ``10 * log10(power) + offset``.

   - `sound_pressure_level`: Broadband level of every time block in a
     PSD DataArray.

Band power is always summed in the linear domain; levels are only formed
after summation.
"""

from typing import Optional, Union
import warnings
import numpy as np
import xarray as xr

from pamguide.errors import ConfigError
from pamguide.utils import check_numeric, to_numeric_array
from pamguide.warnings import PAMGuideWarning
from .calibration import Calibrator, power_to_db


def _fmax_warning(
    fn: Union[int, float, np.ndarray], fmax: Union[int, float, np.ndarray]
) -> Union[int, float, np.ndarray]:
    """
    Checks that the maximum frequency limit isn't greater than the Nyquist frequency.

    Parameters
    ----------
    fn: int, float, or numpy.ndarray
        The Nyquist frequency in Hz.
    fmax: float
        The maximum frequency limit in Hz.

    Returns
    -------
    fmax: float
        The adjusted maximum frequency limit, ensuring it does not exceed
        the Nyquist frequency.
    """

    check_numeric(fn, "fn")
    check_numeric(fmax, "fmax")

    if fmax > fn:
        warnings.warn(
            f"`fmax` = {fmax} is greater than the Nyquist frequency. Setting "
            f"fmax = {fn}",
            PAMGuideWarning,
        )
        fmax = fn

    return fmax


def band_indices(
    freq: np.ndarray,
    fmin: Union[int, float],
    fmax: Union[int, float],
    fs: Union[int, float],
) -> np.ndarray:
    """
    Indices of the bins with ``fmin <= freq <= fmax``.

    Parameters
    ----------
    freq: numpy.ndarray
        Bin frequencies [Hz], increasing.
    fmin: int or float
        Lower band limit [Hz].
    fmax: int or float
        Upper band limit [Hz]; clipped to the Nyquist frequency with a warning.
    fs: int or float
        Sample rate [Hz].

    Returns
    -------
    idx: numpy.ndarray
        Integer indices into `freq`.

    Raises
    ------
    ConfigError
        If ``fmin >= fmax``, the band lies entirely outside
        ``[0, fs / 2]``, or no bin falls inside it.
    """
    check_numeric(fmin, "fmin")
    check_numeric(fmax, "fmax")
    check_numeric(fs, "fs")

    fn = fs / 2
    if fmin >= fmax:
        raise ConfigError(
            f"Low cutoff ({fmin} Hz) must be less than high cutoff ({fmax} Hz)."
        )
    if fmax < 0 or fmin > fn:
        raise ConfigError(
            f"Band {fmin}-{fmax} Hz lies outside the analyzable range 0-{fn} Hz."
        )
    fmax = _fmax_warning(fn, fmax)

    freq = np.asarray(freq, dtype=float)
    idx = np.flatnonzero((freq >= fmin) & (freq <= fmax))
    if idx.size == 0:
        raise ConfigError(
            f"No frequency bins fall within {fmin}-{fmax} Hz "
            f"(bin spacing {freq[1] - freq[0] if freq.size > 1 else fs} Hz)."
        )
    return idx


def band_power(psd, axis: int = -1):
    """
    Linear sum of spectrum values already restricted to the band.

    Parameters
    ----------
    psd: numpy.ndarray
        Linear PSD of the in-band bins.
    axis: int
        Frequency axis. Default: last.

    Returns
    -------
    power: numpy.ndarray or float
        Summed band power.
    """
    return np.sum(np.asarray(psd, dtype=float), axis=axis)


def broadband_level(
    psd: np.ndarray,
    freq: np.ndarray,
    fmin: Union[int, float],
    fmax: Union[int, float],
    fs: Union[int, float],
    offset_db: Union[int, float] = 0.0,
    idx: Optional[np.ndarray] = None,
) -> Union[float, np.ndarray]:
    """
    Broadband level of one or more linear power spectra.

    Parameters
    ----------
    psd: numpy.ndarray (..., freq)
        Linear PSD [FS^2/Hz] over the full one-sided frequency axis.
    freq: numpy.ndarray
        Bin frequencies [Hz].
    fmin, fmax: int or float
        Closed band limits [Hz].
    fs: int or float
        Sample rate [Hz].
    offset_db: int or float
        Calibration offset added after the log. Default: 0 (dB re FS).
    idx: numpy.ndarray, optional
        In-band bin indices from `band_indices`. Computed if not given.

    Returns
    -------
    level: float or numpy.ndarray
        ``10 * log10(sum(psd[band])) + offset_db``; -inf for zero power.
    """
    psd = to_numeric_array(psd, "psd").astype(float)
    freq = to_numeric_array(freq, "freq").astype(float)
    if psd.shape[-1] != freq.size:
        raise ValueError(
            f"'psd' has {psd.shape[-1]} bins but 'freq' has {freq.size} values."
        )
    if idx is None:
        idx = band_indices(freq, fmin, fmax, fs)
    power = band_power(psd[..., idx])

    return power_to_db(power) + offset_db


def sound_pressure_level(
    psd: xr.DataArray,
    fmin: Union[int, float],
    fmax: Union[int, float],
    calibrator: Optional[Calibrator] = None,
    idx: Optional[np.ndarray] = None,
) -> xr.DataArray:
    """
    Calculates the broadband sound pressure level (SPL) in a frequency band
    from the linear power spectral density of each time block.

    Parameters
    ----------
    psd: xarray.DataArray (time, freq)
        Linear power spectral density [FS^2/Hz] with an 'fs' attribute.
    fmin: int or float
        Lower frequency band limit [Hz].
    fmax: int or float
        Upper frequency band limit [Hz].
    calibrator: Calibrator, optional
        Calibration to apply. Default: uncalibrated (dB re FS).
    idx: numpy.ndarray, optional
        In-band bin indices from `band_indices`. Computed if not given.

    Returns
    -------
    spl: xarray.DataArray (time)
        Sound pressure level indexed by time
    """

    if not isinstance(psd, xr.DataArray):
        raise TypeError("'psd' must be an xarray.DataArray.")
    if ("freq" not in psd.dims) or ("time" not in psd.dims):
        raise ValueError("'psd' must have 'time' and 'freq' as dimensions.")
    if "fs" not in psd.attrs:
        raise ValueError("'psd' must have 'fs' (sampling frequency) in its attributes.")
    if calibrator is None:
        calibrator = Calibrator()

    level = broadband_level(
        psd.transpose("time", "freq").values,
        psd["freq"].values,
        fmin,
        fmax,
        psd.attrs["fs"],
        offset_db=calibrator.offset_db,
        idx=idx,
    )

    attrs = {
        "units": calibrator.level_units(),
        "long_name": "Sound Pressure Level",
        "freq_band_min": fmin,
        "freq_band_max": fmax,
    }
    for key in ("time_base", "start_time"):
        if key in psd.attrs:
            attrs[key] = psd.attrs[key]

    return xr.DataArray(
        np.atleast_1d(level),
        coords={"time": psd["time"]},
        dims=["time"],
        attrs=attrs,
    )
