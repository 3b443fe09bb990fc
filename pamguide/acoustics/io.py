"""
This submodule provides the input/output functions around the analysis
pipeline: decoding WAV recordings into sample streams, finding recordings
in a directory, and exporting results as CSV tables.

Functions Overview
------------------

1. **Data Reading**:

   - `read_wav`: Reads a mono WAV recording and normalizes its samples to
     digital full scale.

   - `find_recordings`: Lists the WAV files in a directory, sorted by name.

2. **Data Export**:

   - `to_dataframe`: Converts a PSD or broadband result into a table with
     one row per time block.

   - `write_csv`: Writes such a table to disk.

   - `output_filename` and `summary_filename`: Build result filenames
     from the recording name and the analysis settings.

3. **Data Extraction**:

   - `_read_wav_metadata`: Extracts the format header of a WAV file.

   - `_full_scale_count`: Maximum count for a given bit depth, used for
     normalization.
"""

from typing import BinaryIO, List, Optional, Union
from pathlib import Path
import logging
import struct
import numpy as np
import pandas as pd
import xarray as xr
from scipy.io import wavfile

from pamguide.errors import DecodeError
from .framing import SampleStream

logger = logging.getLogger(__name__)

_PCM = 1
_IEEE_FLOAT = 3
_EXTENSIBLE = 0xFFFE


def _read_wav_metadata(f: BinaryIO) -> dict:
    """
    Extracts the format header from a WAV file, skipping over any chunks
    that precede it (e.g., 'LIST' or 'JUNK' chunks).

    Parameters
    ----------
    f : BinaryIO
        An open WAV file in binary mode.

    Returns
    -------
    header : dict
        Dictionary containing .wav file's header data
    """

    header = {}
    riff_key = f.read(4)
    header["filesize"] = struct.unpack("<I", f.read(4))[0]
    wave_key = f.read(4)
    if riff_key not in (b"RIFF", b"RF64") or wave_key != b"WAVE":
        raise DecodeError("Invalid file format or file corrupted.")

    # Walk chunks until the format chunk
    while True:
        chunk_key = f.read(4)
        if len(chunk_key) < 4:
            raise DecodeError("No 'fmt ' chunk found in WAV file.")
        chunk_size = struct.unpack("<I", f.read(4))[0]
        if chunk_key == b"fmt ":
            break
        # Chunks are word aligned
        f.seek(chunk_size + (chunk_size % 2), 1)

    header["compression_code"] = struct.unpack("<H", f.read(2))[0]
    header["n_channels"] = struct.unpack("<H", f.read(2))[0]
    header["sample_rate"] = struct.unpack("<I", f.read(4))[0]
    header["bytes_per_sec"] = struct.unpack("<I", f.read(4))[0]
    header["block_align"] = struct.unpack("<H", f.read(2))[0]
    header["bits_per_sample"] = struct.unpack("<H", f.read(2))[0]
    f.seek(chunk_size - 16, 1)

    return header


def _full_scale_count(bits_per_sample: int, dtype: np.dtype) -> float:
    """
    Count corresponding to digital full scale for integer PCM data.

    Parameters
    ----------
    bits_per_sample : int
        Number of bits per sample stored in the WAV file.
    dtype : numpy.dtype
        Data type that scipy decoded the samples into.

    Returns
    -------
    max_count : float
        Value that the decoded samples are divided by.
    """

    if np.issubdtype(dtype, np.floating):
        return 1.0
    if bits_per_sample == 8:
        return 2.0**7
    if bits_per_sample in [16, 32]:
        return 2.0 ** (bits_per_sample - 1)
    if bits_per_sample == 12:
        return 2.0 ** (16 - 1)  # 12 bit read in as 16 bit, left-justified
    if bits_per_sample == 24:
        return 2.0 ** (32 - 1)  # 24 bit read in as 32 bit, left-justified
    raise DecodeError(f"Unknown how to read {bits_per_sample} bit ADC.")


def read_wav(filename: Union[str, Path]) -> SampleStream:
    """
    Read a mono .wav recording and normalize it to digital full scale.

    Supports 8, 12, 16, 24 and 32 bit integer PCM and 32/64 bit float
    data. Integer samples are divided by ``2**(bits - 1)`` so that full
    scale corresponds to an amplitude of 1.

    Parameters
    ----------
    filename: str or pathlib.Path
        Input filename

    Returns
    -------
    stream: SampleStream
        Normalized samples, sample rate and bit depth. The WAV header is
        kept in ``stream.attrs``.

    Raises
    ------
    DecodeError
        If the file cannot be read, is not mono, or uses an unsupported
        sample format.
    """

    if not isinstance(filename, (str, Path)):
        raise TypeError("Filename must be a string or a pathlib.Path object.")

    path = Path(filename)
    try:
        with open(path, "rb") as f:
            header = _read_wav_metadata(f)
        # Read data using scipy (will auto drop as int16 or int32)
        fs, raw = wavfile.read(path)
    except DecodeError as e:
        raise DecodeError(f"Could not decode '{path}': {e}") from e
    except (OSError, ValueError, EOFError, struct.error) as e:
        raise DecodeError(f"Could not decode '{path}': {e}") from e

    if raw.ndim != 1:
        raise DecodeError(
            f"Unsupported channel count in '{path.name}': {raw.shape[1]}. "
            "Only mono files are supported."
        )
    if header["compression_code"] not in (_PCM, _IEEE_FLOAT, _EXTENSIBLE):
        raise DecodeError(
            f"Unsupported WAV compression code {header['compression_code']} "
            f"in '{path.name}'."
        )

    max_count = _full_scale_count(header["bits_per_sample"], raw.dtype)
    # Use 64 bit float for decimal accuracy
    samples = raw.astype(float)
    if raw.dtype == np.uint8:
        samples -= 128.0
    samples /= max_count

    logger.debug(
        "Read %d samples at %d Hz (%d bit) from %s",
        samples.size,
        fs,
        header["bits_per_sample"],
        path,
    )

    return SampleStream(
        samples,
        fs,
        bits_per_sample=header["bits_per_sample"],
        name=path.name,
        attrs=header,
    )


def find_recordings(directory: Union[str, Path]) -> List[Path]:
    """
    WAV files (any case of the .wav extension) in `directory`, sorted by name.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"'{directory}' is not a directory.")
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".wav"),
        key=lambda p: p.name,
    )


def _format_times(time: xr.DataArray) -> List[str]:
    if np.issubdtype(time.dtype, np.datetime64):
        return [
            pd.Timestamp(t).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] for t in time.values
        ]
    return [f"{t:.3f}" for t in np.asarray(time.values, dtype=float)]


def to_dataframe(data: xr.DataArray) -> pd.DataFrame:
    """
    Table with one row per time block.

    Parameters
    ----------
    data: xarray.DataArray (time, freq) or (time)
        PSD or broadband result.

    Returns
    -------
    table: pandas.DataFrame
        Index 'time' (formatted timestamps or relative seconds). PSD columns
        are the bin frequencies; broadband results have one column named by
        their units.
    """
    if not isinstance(data, xr.DataArray):
        raise TypeError("'data' must be an xarray.DataArray.")
    if "time" not in data.dims:
        raise ValueError("'data' must have a 'time' dimension.")

    index = pd.Index(_format_times(data["time"]), name="time")
    if "freq" in data.dims:
        values = data.transpose("time", "freq").values
        columns = [f"{f:.4f}" for f in data["freq"].values]
    else:
        values = data.values[:, None]
        columns = [data.attrs.get("units", "level")]

    return pd.DataFrame(values, index=index, columns=columns)


def _float_format(units: str) -> str:
    # Linear FS^2/Hz values are typically far below 1e-4
    if not units or units.startswith("dB"):
        return "%.4f"
    return "%.6e"


def write_csv(
    data: Union[xr.DataArray, pd.DataFrame],
    filename: Union[str, Path],
    float_format: Optional[str] = None,
) -> Path:
    """
    Write a result table to CSV.

    Parameters
    ----------
    data: xarray.DataArray or pandas.DataFrame
        Result, converted with `to_dataframe` if needed.
    filename: str or pathlib.Path
        Output path; parent directories are created.
    float_format: str, optional
        printf-style format for the values. Default: 4 decimals for levels
        in dB, scientific notation with 7 significant digits for linear
        (uncalibrated) PSD values.

    Returns
    -------
    path: pathlib.Path
    """
    if isinstance(data, xr.DataArray):
        if float_format is None:
            float_format = _float_format(data.attrs.get("units", ""))
        data = to_dataframe(data)
    if not isinstance(data, pd.DataFrame):
        raise TypeError("'data' must be an xarray.DataArray or pandas.DataFrame.")
    if float_format is None:
        float_format = "%.4f"

    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    data.to_csv(path, float_format=float_format)
    logger.info("Output written to: %s", path)
    return path


def _analysis_label(config) -> str:
    return "PSD" if config.analysis_type == "psd" else "Broadband"


def output_filename(recording: Union[str, Path], config) -> str:
    """
    Result filename for one recording, e.g.
    ``AMAR394.20240717T164721Z_Broadband_1.00sHann_50PercentOverlap.csv``.
    """
    stem = Path(recording).stem
    if config.window_unit == "samples":
        length = f"{int(config.window_length)}samples"
    else:
        length = f"{config.window_length:.2f}s"
    window = config.window_type.capitalize()
    return (
        f"{stem}_{_analysis_label(config)}_{length}{window}_"
        f"{config.overlap_percentage:.0f}PercentOverlap.csv"
    )


def summary_filename(config) -> str:
    """Filename of the concatenated batch result."""
    return (
        f"PAMGuide_Batch_{_analysis_label(config)}_"
        f"{config.low_cutoff:.0f}Hz-{config.high_cutoff:.0f}Hz_"
        f"{'Calibrated' if config.calibrated else 'Relative'}_Summary.csv"
    )
