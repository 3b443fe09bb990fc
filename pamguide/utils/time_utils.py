"""
This module provides time conversion helpers: numpy.datetime64 to epoch
seconds, and parsing of recording start times embedded in
filenames.

Functions:
----------
- dt642epoch: Converts numpy.datetime64 to epoch seconds.
- parse_timestamp: Parses a recording start time from a filename.
"""

from pathlib import Path
from typing import Union
import numpy as np
import pandas as pd

from pamguide.errors import TimestampParseError


def dt642epoch(dt64):
    """
    Convert numpy.datetime64 array to epoch time
    (seconds since 1/1/1970 00:00:00)

    Parameters
    ----------
    dt64 : numpy.datetime64
      Single or array of datetime64 object(s)

    Returns
    -------
    time : float
      Epoch time (seconds since 1/1/1970 00:00:00)
    """

    return np.asarray(dt64).astype("datetime64[ns]").astype("int64") / 1e9


def _timestamp_candidates(stem: str):
    # Recorder filenames look like "<deployment>.<timestamp>", e.g.
    # "AMAR394.20240717T164721Z" or "6247.230204150508"
    candidates = []
    if "." in stem:
        candidates.append(stem.split(".", 1)[1])
    candidates.append(stem)
    return candidates


def parse_timestamp(filename: Union[str, Path], fmt: str) -> np.datetime64:
    """
    Parse the start time of a recording from its filename.

    The text after the first '.' of the filename stem is tried first,
    then the whole stem.

    Parameters
    ----------
    filename: str or pathlib.Path
        Recording filename or path. The extension is ignored.
    fmt: str
        strftime-style format string, e.g. "%Y%m%dT%H%M%SZ".

    Returns
    -------
    start_time: numpy.datetime64
        Start time with nanosecond precision.

    Raises
    ------
    TimestampParseError
        If no candidate matches `fmt`.
    """

    if not isinstance(filename, (str, Path)):
        raise TypeError("'filename' must be a string or a pathlib.Path object.")
    if not isinstance(fmt, str) or not fmt:
        raise TypeError("'fmt' must be a non-empty string.")

    stem = Path(filename).stem
    for text in _timestamp_candidates(stem):
        try:
            stamp = pd.to_datetime(text, format=fmt)
        except (ValueError, TypeError):
            continue
        if stamp is pd.NaT:
            continue
        if stamp.tzinfo is not None:
            stamp = stamp.tz_convert("UTC").tz_localize(None)
        return stamp.to_datetime64().astype("datetime64[ns]")

    raise TimestampParseError(
        f"Could not parse a timestamp from '{stem}' with format '{fmt}'."
    )
