"""
This module composes the analysis stages into the pipeline run on a
single recording:

    samples -> frames (windowed) -> periodograms -> Welch blocks
            -> calibrated PSD (cropped to the analysis band)
            -> broadband SPL per block

`analyze` is a pure function of its inputs; the batch driver runs it once
per recording, possibly on several recordings at the same time.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging
import time as _time
import numpy as np
import xarray as xr

from pamguide.errors import ConfigError
from .framing import Framer, SampleStream
from .spectral import power_spectral_density
from .welch import block_times
from .spl import band_indices, sound_pressure_level

logger = logging.getLogger(__name__)


@dataclass
class FileResult:
    """
    Analysis output for one recording.

    Attributes
    ----------
    name: str
        Recording identity (filename).
    psd: xarray.DataArray (time, freq), optional
        Band-limited PSD: linear [FS^2/Hz] when uncalibrated, otherwise
        calibrated level [dB re (1 uPa)^2/Hz or (20 uPa)^2/Hz].
    spl: xarray.DataArray (time), optional
        Broadband level of each time block.
    start_time: numpy.datetime64, optional
        Absolute start of the recording; None for a relative time base.
    warnings: list of str
        Non-fatal problems, e.g. an unparseable timestamp.
    error: Exception, optional
        Set when the recording could not be analyzed.
    """

    name: str
    analysis_type: str = "psd"
    psd: Optional[xr.DataArray] = None
    spl: Optional[xr.DataArray] = None
    start_time: Optional[np.datetime64] = None
    path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def time_base(self) -> str:
        return "relative" if self.start_time is None else "absolute"

    @property
    def output(self) -> Optional[xr.DataArray]:
        """The result selected by the analysis type."""
        return self.spl if self.analysis_type == "broadband" else self.psd

    def __len__(self):
        return 0 if self.psd is None else self.psd.sizes["time"]


def analyze(
    stream: SampleStream,
    config,
    start_time: Optional[np.datetime64] = None,
) -> FileResult:
    """
    Run the full analysis on one recording.

    Parameters
    ----------
    stream: SampleStream
        Decoded, full-scale normalized recording.
    config: AnalysisConfig
        Validated analysis configuration.
    start_time: numpy.datetime64, optional
        Absolute start of the recording. If None, block times are seconds
        from the start of the recording.

    Returns
    -------
    result: FileResult
    """
    if not isinstance(stream, SampleStream):
        raise TypeError("'stream' must be a SampleStream.")

    tic = _time.perf_counter()
    fs = stream.fs
    spec = config.window_spec(fs)
    if spec.length > len(stream):
        raise ConfigError(
            f"Window length of {spec.length} samples exceeds the "
            f"{len(stream)}-sample recording '{stream.name}'."
        )

    framer = Framer(stream, spec)
    time_base = "relative" if start_time is None else "absolute"
    psd = power_spectral_density(
        framer.windowed_frames(),
        fs,
        framer.window,
        welch_factor=config.welch_factor,
        attrs={
            "hop": framer.hop,
            "window": spec.type,
            "overlap": spec.overlap,
            "time_base": time_base,
        },
    )
    n_blocks = psd.sizes["time"]
    psd = psd.assign_coords(
        time=block_times(n_blocks, config.welch_factor, framer.hop, fs, start_time)
    )
    psd["time"].attrs["units"] = "s" if start_time is None else "datetime64[ns]"
    logger.debug(
        "%s: %d frames of %d samples (hop %d) -> %d blocks",
        stream.name,
        len(framer),
        framer.length,
        framer.hop,
        n_blocks,
    )

    calibrator = config.calibrator()
    idx = band_indices(psd["freq"].values, config.low_cutoff, config.high_cutoff, fs)
    spl = sound_pressure_level(
        psd, config.low_cutoff, config.high_cutoff, calibrator, idx=idx
    )

    # Reported spectrum: bins inside the analysis band, without 0 Hz
    idx = idx[psd["freq"].values[idx] > 0]
    psd_out = calibrator.calibrate(psd.isel(freq=idx))

    logger.info(
        "Analyzed %s (%d samples at %g Hz) in %.2f s",
        stream.name or "<unnamed>",
        len(stream),
        fs,
        _time.perf_counter() - tic,
    )

    return FileResult(
        name=stream.name,
        analysis_type=config.analysis_type,
        psd=psd_out,
        spl=spl,
        start_time=start_time,
    )
