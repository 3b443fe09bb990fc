"""
Analysis configuration: loading, defaults and validation.

A configuration is read once, from a YAML or TOML file or from a mapping,
into a frozen :class:`AnalysisConfig`. Every check runs at construction so
that an invalid setting is reported before any recording is touched; the
resulting object is then passed explicitly to each pipeline call.

Example YAML file::

    input_path: recordings/
    output_dir: results/
    analysis_type: broadband
    environment: water
    low_cutoff: 1000.0
    high_cutoff: 10000.0
    calibrated: true
    calibration_type: EE
    system_sensitivity: -164.1
    welch_factor: 120
    timestamp_format: "%Y%m%dT%H%M%SZ"
"""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging
import tomllib

import yaml

from pamguide.errors import ConfigError
from pamguide.acoustics.windows import WindowSpec, normalize_window_type
from pamguide.acoustics.framing import round_half_up
from pamguide.acoustics.calibration import (
    CalibrationModel,
    Calibrator,
    calibration_model,
)

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("psd", "broadband")
ENVIRONMENTS = ("air", "water")
WINDOW_UNITS = ("seconds", "samples")


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Immutable analysis settings.

    Defaults follow the reference PAMGuide configuration: a 1 s Hann
    window with 50% overlap, no Welch averaging and no calibration.
    """

    low_cutoff: float
    high_cutoff: float
    analysis_type: str = "psd"
    environment: str = "water"

    # Calibration
    calibrated: bool = False
    calibration_type: Optional[str] = None
    # dB re 1 V/uPa (water) or 1 V/Pa (air)
    mic_hydro_sensitivity: Optional[float] = None
    preamp_gain: Optional[float] = None  # dB
    adc_vpeak: Optional[float] = None  # V
    system_sensitivity: Optional[float] = None  # dB

    # DFT / windowing
    window_type: str = "hann"
    window_length: float = 1.0
    window_unit: str = "seconds"
    overlap_percentage: float = 50.0
    welch_factor: int = 1

    # Batch and output
    input_path: Optional[str] = None
    output_dir: str = "."
    timestamp_format: Optional[str] = None
    write_csv: bool = True
    create_batch_summary_file: bool = True
    write_individual_batch_csvs: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self):
        self._normalize("analysis_type", str(self.analysis_type).lower())
        env = str(self.environment).lower()
        self._normalize("environment", "water" if env == "wat" else env)
        self._normalize("window_unit", str(self.window_unit).lower())
        self._normalize("window_type", normalize_window_type(self.window_type))
        if self.calibration_type is not None:
            self._normalize("calibration_type", str(self.calibration_type).upper())
        if self.welch_factor is None:
            self._normalize("welch_factor", 1)
        self._validate()

    def _normalize(self, name, value):
        object.__setattr__(self, name, value)

    def _validate(self):
        if self.analysis_type not in ANALYSIS_TYPES:
            raise ConfigError(
                f"'analysis_type' must be one of {ANALYSIS_TYPES}. "
                f"Got: '{self.analysis_type}'"
            )
        if self.environment not in ENVIRONMENTS:
            raise ConfigError(
                f"'environment' must be one of {ENVIRONMENTS}. "
                f"Got: '{self.environment}'"
            )
        if self.window_unit not in WINDOW_UNITS:
            raise ConfigError(
                f"'window_unit' must be one of {WINDOW_UNITS}. "
                f"Got: '{self.window_unit}'"
            )

        numeric = ("low_cutoff", "high_cutoff", "window_length", "overlap_percentage")
        for name in numeric:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"'{name}' must be a number. Got: {value!r}")
        if self.low_cutoff < 0:
            raise ConfigError("'low_cutoff' must not be negative.")
        if self.low_cutoff >= self.high_cutoff:
            raise ConfigError("'low_cutoff' must be less than 'high_cutoff'.")
        if self.window_length <= 0:
            raise ConfigError("'window_length' must be positive.")
        if self.window_unit == "samples" and self.window_length != int(
            self.window_length
        ):
            raise ConfigError("'window_length' in samples must be a whole number.")
        if not 0 <= self.overlap_percentage < 100:
            raise ConfigError(
                "'overlap_percentage' must be in the range [0, 100). "
                f"Got: {self.overlap_percentage}"
            )
        if (
            isinstance(self.welch_factor, bool)
            or not isinstance(self.welch_factor, int)
            or self.welch_factor < 1
        ):
            raise ConfigError(
                f"'welch_factor' must be an integer >= 1. Got: {self.welch_factor!r}"
            )
        if self.max_workers is not None and (
            not isinstance(self.max_workers, int) or self.max_workers < 1
        ):
            raise ConfigError("'max_workers' must be a positive integer or None.")
        if self.timestamp_format is not None and not isinstance(
            self.timestamp_format, str
        ):
            raise ConfigError("'timestamp_format' must be a string.")

        if self.calibrated:
            # Builds and discards the model; raises ConfigError for missing fields
            self.calibration_model()

    @property
    def overlap(self) -> float:
        """Overlap between consecutive frames as a fraction in [0, 1)."""
        return self.overlap_percentage / 100.0

    def window_samples(self, fs: Union[int, float]) -> int:
        """Window length in samples for sample rate `fs`."""
        if self.window_unit == "samples":
            return int(self.window_length)
        return round_half_up(self.window_length * fs)

    def window_spec(self, fs: Union[int, float]) -> WindowSpec:
        """Window type, length and overlap for a recording sampled at `fs`."""
        return WindowSpec(self.window_type, self.window_samples(fs), self.overlap)

    def calibration_model(self) -> Optional[CalibrationModel]:
        """The active calibration arm, or None when `calibrated` is false."""
        if not self.calibrated:
            return None
        return calibration_model(
            self.calibration_type,
            mic_hydro_sensitivity=self.mic_hydro_sensitivity,
            preamp_gain=self.preamp_gain,
            adc_vpeak=self.adc_vpeak,
            system_sensitivity=self.system_sensitivity,
        )

    def calibrator(self) -> Calibrator:
        return Calibrator(self.calibration_model(), environment=self.environment)

    def replace(self, **changes) -> "AnalysisConfig":
        """Return a validated copy with `changes` applied."""
        values = asdict(self)
        values.update(changes)
        return AnalysisConfig(**values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """
        Build a configuration from a mapping, rejecting unknown keys.

        Parameters
        ----------
        data: Mapping
            Setting names and values, as read from a configuration file.

        Returns
        -------
        config: AnalysisConfig
        """
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Configuration must be a mapping of settings. Got: {type(data)}"
            )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration setting(s): {unknown}")
        missing = [name for name in ("low_cutoff", "high_cutoff") if name not in data]
        if missing:
            raise ConfigError(f"Missing required setting(s): {missing}")
        try:
            return cls(**dict(data))
        except TypeError as e:
            raise ConfigError(str(e)) from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            with open(path, "rb") as f:
                return tomllib.load(f)
        if suffix in (".yaml", ".yml"):
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse configuration file '{path}': {e}") from e
    raise ConfigError(
        f"Unsupported configuration file type '{suffix}'. Use .toml, .yaml or .yml."
    )


def load_config(
    config: Union[str, Path, Mapping[str, Any], AnalysisConfig],
    **overrides,
) -> AnalysisConfig:
    """
    Load and validate an analysis configuration.

    Parameters
    ----------
    config: str, pathlib.Path, Mapping or AnalysisConfig
        Path to a .toml/.yaml file, a mapping of settings, or an existing
        configuration.
    **overrides
        Settings that take precedence over the file (None values are ignored),
        e.g. an input path given on the command line.

    Returns
    -------
    config: AnalysisConfig
    """
    if isinstance(config, AnalysisConfig):
        data = asdict(config)
    elif isinstance(config, Mapping):
        data = dict(config)
    elif isinstance(config, (str, Path)):
        path = Path(config)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        data = _read_config_file(path)
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration file '{path}' must contain a mapping of settings."
            )
        logger.debug("Read configuration from %s", path)
    else:
        raise TypeError(
            "'config' must be a path, a mapping or an AnalysisConfig. "
            f"Got: {type(config)}"
        )

    data.update({k: v for k, v in overrides.items() if v is not None})
    return AnalysisConfig.from_dict(data)
