"""
Sample streams and their division into overlapping, windowed frames.

The frame advance (hop) is ``round(length * (1 - overlap))`` with halves
rounded away from zero, and a recording of N samples yields
``(N - length) // hop + 1`` frames when ``N >= length`` and none otherwise.
A trailing partial frame is dropped, never zero-padded.
"""

from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Optional, Union
import math
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from pamguide.errors import ConfigError, NumericError
from pamguide.utils import check_positive_int
from pamguide.acoustics.windows import WindowSpec, get_window


@dataclass(frozen=True)
class SampleStream:
    """
    A decoded recording.

    Attributes
    ----------
    samples: numpy.ndarray
        Mono samples normalized to digital full scale (float64, read-only).
    fs: float
        Sample rate [Hz].
    bits_per_sample: int, optional
        Bit depth of the source recording.
    full_scale: float
        Amplitude that corresponds to digital full scale. Default: 1.0
    name: str
        Identity of the recording, usually its filename.
    """

    samples: np.ndarray
    fs: float
    bits_per_sample: Optional[int] = None
    full_scale: float = 1.0
    name: str = ""
    attrs: dict = field(default_factory=dict, compare=False)

    def __post_init__(self):
        samples = np.array(self.samples, dtype=float)
        if samples.ndim != 1:
            raise ValueError(
                f"'samples' must be one-dimensional (mono). Got shape {samples.shape}."
            )
        if isinstance(self.fs, bool) or not isinstance(
            self.fs, (int, float, np.number)
        ):
            raise TypeError("'fs' must be a numeric type (int or float).")
        if self.fs <= 0:
            raise ValueError("'fs' must be a positive number.")
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "fs", float(self.fs))

    def __len__(self):
        return self.samples.size

    @property
    def duration(self) -> float:
        """Length of the recording in seconds."""
        return self.samples.size / self.fs


class Frame(NamedTuple):
    """One frame: its first sample index, raw samples and windowed copy."""

    start: int
    samples: np.ndarray
    windowed: np.ndarray


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(abs(value) + 0.5) * (1 if value >= 0 else -1))


def hop_size(length: int, overlap: float) -> int:
    """
    Frame advance in samples for a window `length` and `overlap` fraction.

    Raises
    ------
    ConfigError
        If the advance rounds to zero samples.
    """
    hop = round_half_up(length * (1 - overlap))
    if hop < 1:
        raise ConfigError(
            f"An overlap of {overlap:.4g} on a {length}-sample window "
            "results in a zero frame advance."
        )
    return hop


def frame_count(n_samples: int, length: int, hop: int) -> int:
    """Number of whole frames that fit in `n_samples`."""
    check_positive_int(length, "length")
    check_positive_int(hop, "hop")
    if n_samples < length:
        return 0
    return (n_samples - length) // hop + 1


class Framer:
    """
    Lazy, restartable sequence of windowed frames over a sample stream.

    Iterating yields :class:`Frame` objects in temporal order; each new
    iteration starts again from the first frame.

    Parameters
    ----------
    stream: SampleStream or numpy.ndarray
        Samples to divide. A bare array requires `fs`.
    window: WindowSpec
        Window type, length and overlap.
    fs: int or float, optional
        Sample rate [Hz], only needed when `stream` is an array.
    """

    def __init__(
        self,
        stream: Union[SampleStream, np.ndarray],
        window: WindowSpec,
        fs: Optional[Union[int, float]] = None,
    ):
        if not isinstance(stream, SampleStream):
            if fs is None:
                raise TypeError("'fs' is required when 'stream' is not a SampleStream.")
            stream = SampleStream(stream, fs)
        if not isinstance(window, WindowSpec):
            raise TypeError("'window' must be a WindowSpec.")
        if not np.all(np.isfinite(stream.samples)):
            raise NumericError(
                f"Recording '{stream.name}' contains non-finite sample values."
            )

        self.stream = stream
        self.spec = window
        self.fs = stream.fs
        self.length = window.length
        self.hop = hop_size(window.length, window.overlap)
        self.window, self.correction = get_window(window.type, window.length)

    def __len__(self):
        return frame_count(self.stream.samples.size, self.length, self.hop)

    def __iter__(self) -> Iterator[Frame]:
        samples = self.stream.samples
        for i in range(len(self)):
            start = i * self.hop
            segment = samples[start : start + self.length]
            yield Frame(start, segment, segment * self.window)

    @property
    def starts(self) -> np.ndarray:
        """First sample index of every frame."""
        return np.arange(len(self)) * self.hop

    def windowed_frames(self) -> np.ndarray:
        """
        All windowed frames stacked as a (n_frames, length) array.
        """
        n_frames = len(self)
        if n_frames == 0:
            return np.empty((0, self.length))
        view = sliding_window_view(self.stream.samples, self.length)[:: self.hop]
        return view[:n_frames] * self.window
