"""
This module runs the analysis over a batch of recordings and merges the
per-recording results.

Each recording is analyzed independently, one task per recording on a
worker pool. Start times are read from the recording names before any
task starts; a name that does not match the timestamp format falls back to
a relative time base with a warning. A recording that fails to decode or
analyze is recorded as failed and the remaining recordings carry on.

Results are ordered by recording start time when every successfully
analyzed recording has one and by name otherwise, independent of the
order in which tasks finish.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import warnings
import numpy as np
import xarray as xr

from pamguide.errors import PAMGuideError, TimestampParseError
from pamguide.utils import dt642epoch, parse_timestamp
from pamguide.warnings import PAMGuideWarning, TimestampParseWarning
from .analysis import FileResult, analyze
from .framing import SampleStream
from .io import read_wav

logger = logging.getLogger(__name__)

Recording = Union[
    SampleStream,
    str,
    Path,
    Tuple[str, Union[SampleStream, Callable[[], SampleStream]]],
]


@dataclass(frozen=True)
class _Task:
    index: int
    name: str
    path: Optional[str]
    loader: Callable[[], SampleStream]


@dataclass
class BatchResult:
    """
    Ordered per-recording results of a batch.

    Attributes
    ----------
    files: list of FileResult
        One entry per input recording, failed ones included, in collation
        order.
    analysis_type: str
        'psd' or 'broadband'.
    ordered_by: str
        'time' when sorted by start time, 'name' otherwise.
    """

    files: List[FileResult] = field(default_factory=list)
    analysis_type: str = "psd"
    ordered_by: str = "name"

    def __iter__(self):
        return iter(self.files)

    def __len__(self):
        return len(self.files)

    def __getitem__(self, item):
        return self.files[item]

    @property
    def successes(self) -> List[FileResult]:
        return [r for r in self.files if r.ok]

    @property
    def failures(self) -> List[FileResult]:
        return [r for r in self.files if not r.ok]

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.files]

    def concatenate(self, analysis_type: Optional[str] = None) -> xr.DataArray:
        """
        Merge the successful results along time, in collation order.

        Parameters
        ----------
        analysis_type: str, optional
            'psd' or 'broadband'. Default: the batch's analysis type.

        Returns
        -------
        out: xarray.DataArray (time, freq) or (time)
            Concatenated result with a 'file' coordinate along time. If
            recordings mix absolute and relative time bases, the time
            coordinate is float seconds (epoch seconds for absolute ones).
        """
        analysis_type = analysis_type or self.analysis_type
        parts = [
            (r.name, r.spl if analysis_type == "broadband" else r.psd)
            for r in self.successes
        ]
        parts = [(name, data) for name, data in parts if data is not None]
        if not parts:
            raise ValueError("No successful results to concatenate.")

        if analysis_type == "psd":
            reference = parts[0][1]["freq"].values
            for name, data in parts[1:]:
                if not np.array_equal(data["freq"].values, reference):
                    raise ValueError(
                        f"Frequency bins of '{name}' ({data.sizes['freq']} bins) "
                        f"do not match those of '{parts[0][0]}' "
                        f"({reference.size} bins). Cannot concatenate PSD results."
                    )

        bases = {data.attrs.get("time_base", "relative") for _, data in parts}
        if len(bases) > 1:
            warnings.warn(
                "Not all recordings have absolute start times; the merged time "
                "coordinate is seconds (epoch seconds for timestamped recordings).",
                PAMGuideWarning,
            )
            converted = []
            for name, data in parts:
                if np.issubdtype(data["time"].dtype, np.datetime64):
                    data = data.assign_coords(time=dt642epoch(data["time"].values))
                converted.append((name, data))
            parts = converted
            time_base = "mixed"
        else:
            time_base = bases.pop()

        labelled = [
            data.assign_coords(file=("time", [name] * data.sizes["time"]))
            for name, data in parts
        ]
        out = xr.concat(labelled, dim="time", combine_attrs="override")
        out.attrs["time_base"] = time_base
        return out


def _as_tasks(recordings: Iterable[Recording]) -> List[_Task]:
    tasks = []
    for i, rec in enumerate(recordings):
        if isinstance(rec, SampleStream):
            name = rec.name or f"recording_{i}"
            tasks.append(_Task(i, name, None, lambda rec=rec: rec))
        elif isinstance(rec, (str, Path)):
            path = Path(rec)
            tasks.append(
                _Task(i, path.name, str(path), lambda path=path: read_wav(path))
            )
        elif isinstance(rec, tuple) and len(rec) == 2:
            name, source = rec
            if isinstance(source, SampleStream):
                tasks.append(_Task(i, str(name), None, lambda s=source: s))
            elif callable(source):
                tasks.append(_Task(i, str(name), None, source))
            else:
                raise TypeError(
                    f"Recording '{name}' must be paired with a SampleStream or a "
                    "callable returning one."
                )
        else:
            raise TypeError(
                "Each recording must be a SampleStream, a path, or a "
                f"(name, loader) pair. Got: {type(rec)}"
            )
    return tasks


def _start_time(
    name: str, fmt: Optional[str]
) -> Tuple[Optional[np.datetime64], Optional[str]]:
    if fmt is None:
        return None, None
    try:
        return parse_timestamp(name, fmt), None
    except TimestampParseError as e:
        message = f"{e} Times for this file are relative to its start."
        warnings.warn(message, TimestampParseWarning)
        logger.warning("%s", message)
        return None, message


def _run(task: _Task, config, start_time) -> FileResult:
    try:
        stream = task.loader()
        if not isinstance(stream, SampleStream):
            raise TypeError(
                f"Loader for '{task.name}' returned {type(stream)}, not a SampleStream."
            )
        result = analyze(stream, config, start_time=start_time)
    except PAMGuideError as e:
        logger.error("Error processing %s: %s. Skipping.", task.name, e)
        return FileResult(
            name=task.name,
            analysis_type=config.analysis_type,
            start_time=start_time,
            path=task.path,
            error=e,
        )
    except Exception as e:  # pylint: disable=broad-except
        logger.exception("Unexpected error processing %s. Skipping.", task.name)
        return FileResult(
            name=task.name,
            analysis_type=config.analysis_type,
            start_time=start_time,
            path=task.path,
            error=e,
        )

    result.name = task.name
    result.path = task.path
    return result


def _collate(tasks: Sequence[_Task], results: dict) -> Tuple[List[FileResult], str]:
    keyed = [(results[t.index], t.index) for t in tasks]
    successes = [r for r, _ in keyed if r.ok]
    by_time = bool(successes) and all(r.start_time is not None for r in successes)

    def key(item):
        result, index = item
        if by_time and result.start_time is not None:
            return (0, result.start_time, result.name, index)
        # Undated failures go after the dated results
        return (1, result.name, index)

    keyed.sort(key=key)
    return [r for r, _ in keyed], "time" if by_time else "name"


def process_batch(
    recordings: Iterable[Recording],
    config,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    Analyze recordings independently and merge the results in a
    deterministic order.

    Parameters
    ----------
    recordings: iterable
        SampleStreams, WAV paths, or ``(name, loader)`` pairs where
        ``loader()`` returns a SampleStream. Decoding happens inside the
        worker.
    config: AnalysisConfig, mapping or path
        Analysis configuration; validated before any recording is read.
    max_workers: int, optional
        Worker threads. Default: ``config.max_workers``, then the
        executor's default. 1 runs serially.

    Returns
    -------
    batch: BatchResult
    """
    # pylint: disable=import-outside-toplevel
    from pamguide.config import load_config

    config = load_config(config)
    tasks = _as_tasks(recordings)
    if max_workers is None:
        max_workers = config.max_workers
    if max_workers is not None and (
        not isinstance(max_workers, int) or max_workers < 1
    ):
        raise ValueError("'max_workers' must be a positive integer or None.")

    logger.info("Processing %d recording(s)", len(tasks))
    starts = {}
    notes = {}
    for task in tasks:
        starts[task.index], notes[task.index] = _start_time(
            task.name, config.timestamp_format
        )

    results = {}
    if max_workers == 1 or len(tasks) <= 1:
        for task in tasks:
            results[task.index] = _run(task, config, starts[task.index])
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(_run, task, config, starts[task.index]): task.index
                for task in tasks
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

    for index, note in notes.items():
        if note is not None:
            results[index].warnings.append(note)

    files, ordered_by = _collate(tasks, results)
    failed = sum(not r.ok for r in files)
    logger.info(
        "Batch finished: %d succeeded, %d failed (ordered by %s)",
        len(files) - failed,
        failed,
        ordered_by,
    )

    return BatchResult(
        files=files, analysis_type=config.analysis_type, ordered_by=ordered_by
    )
