"""
Welch time averaging of consecutive frame spectra into time blocks.

Frames are grouped into consecutive, non-overlapping blocks of
``welch_factor`` frames and averaged bin by bin. A trailing group with
fewer than ``welch_factor`` frames is dropped so that every block is an
average over the same number of periodograms.

Block ``i`` is stamped at ``start + i * welch_factor * hop / fs``.
"""

from typing import Optional, Union
import logging
import warnings
import numpy as np
import xarray as xr

from pamguide.errors import ConfigError
from pamguide.warnings import PAMGuideWarning

logger = logging.getLogger(__name__)


def _check_welch_factor(welch_factor):
    if (
        isinstance(welch_factor, bool)
        or not isinstance(welch_factor, (int, np.integer))
        or welch_factor < 1
    ):
        raise ConfigError(
            f"'welch_factor' must be an integer >= 1. Got: {welch_factor!r}"
        )


def welch_average(
    spectra: Union[np.ndarray, xr.DataArray], welch_factor: int = 1
) -> np.ndarray:
    """
    Average consecutive groups of frame spectra.

    Parameters
    ----------
    spectra: numpy.ndarray or xarray.DataArray (time, freq)
        Linear power spectra, one row per frame in temporal order.
    welch_factor: int
        Number of frames averaged into each block. 1 returns the input.

    Returns
    -------
    blocks: numpy.ndarray (n_blocks, freq)
        Mean spectrum of each complete group, ``n_blocks = n_frames // welch_factor``.
    """
    _check_welch_factor(welch_factor)
    spectra = np.asarray(spectra, dtype=float)
    if spectra.ndim != 2:
        raise ValueError(
            "'spectra' must be two-dimensional (time, freq). "
            f"Got shape {spectra.shape}."
        )
    if welch_factor == 1:
        return spectra

    n_frames, n_freq = spectra.shape
    n_blocks = n_frames // welch_factor
    dropped = n_frames - n_blocks * welch_factor
    if dropped:
        logger.info(
            "Dropping %d trailing frame(s) that do not fill a Welch block of %d",
            dropped,
            welch_factor,
        )
    if n_blocks == 0:
        warnings.warn(
            f"Only {n_frames} frame(s) available; a Welch factor of "
            f"{welch_factor} yields no time blocks.",
            PAMGuideWarning,
        )

    grouped = spectra[: n_blocks * welch_factor].reshape(n_blocks, welch_factor, n_freq)
    return grouped.mean(axis=1)


def block_duration(welch_factor: int, hop: int, fs: Union[int, float]) -> float:
    """Time between consecutive block stamps [s]."""
    _check_welch_factor(welch_factor)
    return welch_factor * hop / fs


def block_times(
    n_blocks: int,
    welch_factor: int,
    hop: int,
    fs: Union[int, float],
    start_time: Optional[np.datetime64] = None,
) -> np.ndarray:
    """
    Time stamps of Welch blocks.

    Parameters
    ----------
    n_blocks: int
        Number of blocks.
    welch_factor: int
        Frames per block.
    hop: int
        Frame advance in samples.
    fs: int or float
        Sample rate [Hz].
    start_time: numpy.datetime64, optional
        Absolute start of the recording. If None, times are relative.

    Returns
    -------
    time: numpy.ndarray
        ``datetime64[ns]`` stamps when `start_time` is given, otherwise
        float seconds from the start of the recording.
    """
    offsets = np.arange(n_blocks) * block_duration(welch_factor, hop, fs)
    if start_time is None:
        return offsets

    start = np.datetime64(start_time, "ns")
    return start + np.round(offsets * 1e9).astype("int64").astype("timedelta64[ns]")
