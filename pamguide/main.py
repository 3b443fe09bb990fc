"""
Command-line entry point.

Usage::

    pamguide -c config.toml
    pamguide -c config.yaml -i recordings/ -o results/ -w 4
    python -m pamguide -c config.toml -i AMAR394.20240717T164721Z.wav -v

A single WAV file is analyzed and written to one CSV. A directory is
processed as a batch: every WAV file in it is analyzed, and the results are
written to individual CSV files and/or one concatenated summary, as set in
the configuration.
"""

from pathlib import Path
from typing import List, Optional, Sequence
import argparse
import logging
import sys

from pamguide import __version__
from pamguide.acoustics import io, process_batch
from pamguide.acoustics.batch import BatchResult
from pamguide.config import AnalysisConfig, load_config
from pamguide.errors import ConfigError

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        force=True,
    )
    logging.captureWarnings(True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pamguide",
        description="Power spectral density and broadband SPL analysis of "
        "passive acoustic recordings.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.toml",
        help="configuration file (.toml, .yaml or .yml); default: config.toml",
    )
    parser.add_argument(
        "-i",
        "--input",
        default=None,
        help="WAV file or directory (overrides input_path)",
    )
    parser.add_argument(
        "-o", "--output", default=None, help="output directory (overrides output_dir)"
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="number of worker threads for batch processing",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def export_results(
    batch: BatchResult, config: AnalysisConfig, single: bool = False
) -> List[Path]:
    """
    Write batch results to CSV as configured.

    Parameters
    ----------
    batch: BatchResult
        Processed recordings.
    config: AnalysisConfig
        Output settings (`write_csv`, `create_batch_summary_file`,
        `write_individual_batch_csvs`, `output_dir`).
    single: bool
        True when a single file was given as input; its result is always
        written to its own CSV.

    Returns
    -------
    paths: list of pathlib.Path
        Files written.
    """
    if not config.write_csv:
        logger.info("CSV output disabled")
        return []

    out_dir = Path(config.output_dir)
    paths = []
    if single or config.write_individual_batch_csvs:
        for result in batch.successes:
            paths.append(
                io.write_csv(
                    result.output, out_dir / io.output_filename(result.name, config)
                )
            )

    if not single and config.create_batch_summary_file:
        if batch.successes:
            paths.append(
                io.write_csv(batch.concatenate(), out_dir / io.summary_filename(config))
            )
        else:
            logger.warning("No recordings processed successfully; no summary written")

    return paths


def run(config: AnalysisConfig, max_workers: Optional[int] = None) -> BatchResult:
    """
    Analyze the configured input and write the results.

    Raises
    ------
    ConfigError
        If no input path is configured.
    FileNotFoundError
        If the input path does not exist or holds no WAV files.
    """
    if config.input_path is None:
        raise ConfigError("No input given; set 'input_path' or pass --input.")
    path = Path(config.input_path)

    if path.is_file():
        recordings = [path]
        single = True
    elif path.is_dir():
        recordings = io.find_recordings(path)
        if not recordings:
            raise FileNotFoundError(f"No .wav files found in '{path}'.")
        single = False
        logger.info("Found %d .wav files in %s", len(recordings), path)
    else:
        raise FileNotFoundError(f"Input path '{path}' does not exist.")

    batch = process_batch(recordings, config, max_workers=max_workers)
    export_results(batch, config, single=single)

    for result in batch.failures:
        logger.error("Failed: %s (%s)", result.name, result.error)
    return batch


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = load_config(args.config, input_path=args.input, output_dir=args.output)
        if args.workers is not None and args.workers < 1:
            raise ConfigError("--workers must be a positive integer.")
        batch = run(config, max_workers=args.workers)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1

    logger.info(
        "Done: %d of %d recording(s) analyzed", len(batch.successes), len(batch)
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
