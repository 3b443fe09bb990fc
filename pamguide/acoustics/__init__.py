"""
The acoustics module turns passive acoustic monitoring recordings into
power spectral density and broadband sound pressure level time series.
Raw mono *.wav* files are read, divided into overlapping windowed frames,
transformed into periodograms, Welch averaged into time blocks, and
optionally calibrated to absolute sound pressure.

To start using the module, import it directly from pamguide:
``from pamguide import acoustics``. The analysis functions are available
directly from the main import, while the I/O submodule is available from
``acoustics.io``. Batch processing of many recordings is provided by
``acoustics.process_batch``.
"""

from pamguide.acoustics import io
from .windows import WINDOW_TYPES, WindowSpec, get_window, normalize_window_type
from .framing import SampleStream, Frame, Framer, hop_size, frame_count
from .spectral import frequencies, periodogram, power_spectral_density
from .welch import welch_average, block_times, block_duration
from .calibration import (
    CalibrationModel,
    EndToEnd,
    TransducerSensitivity,
    RecorderCalibration,
    Calibrator,
    calibration_model,
    power_to_db,
)
from .spl import band_indices, band_power, broadband_level, sound_pressure_level
from .analysis import FileResult, analyze
from .batch import BatchResult, process_batch
