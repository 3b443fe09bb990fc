"""
This module converts full-scale referenced power into calibrated sound
levels.

A power value ``P`` in FS^2 (or FS^2/Hz) becomes a level in dB via

    L = 10 * log10(P) + offset_db

where ``offset_db`` comes from one of three calibration models:

1. **End-to-end (EE)**: the whole recording chain was calibrated as one
   unit; ``offset_db = -system_sensitivity``.

2. **Transducer sensitivity (TS)**: hydrophone or microphone sensitivity,
   preamplifier gain and the ADC peak voltage are known separately;
   ``offset_db = -(mic_hydro_sensitivity + preamp_gain) + 20 * log10(adc_vpeak)``.

3. **Recorder calibration (RC)**: a measured recorder sensitivity combined
   with the sensor sensitivity;
   ``offset_db = -(mic_hydro_sensitivity + system_sensitivity)``.

Levels are dB re 1 uPa in water and dB re 20 uPa in air; the environment
only changes the reported reference, not the arithmetic. Without a model
the calibrator is the identity and values stay in linear FS^2 units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union
import numpy as np
import xarray as xr

from pamguide.errors import ConfigError

REFERENCE_PRESSURE = {"water": "1 uPa", "air": "20 uPa"}
CALIBRATION_FIELDS = (
    "mic_hydro_sensitivity",
    "preamp_gain",
    "adc_vpeak",
    "system_sensitivity",
)


def power_to_db(power: Union[float, np.ndarray, xr.DataArray]):
    """
    Convert linear power to decibels, ``10 * log10(power)``.

    Zero power maps to -inf, never NaN.

    Parameters
    ----------
    power: float, numpy.ndarray or xarray.DataArray
        Non-negative linear power.

    Returns
    -------
    level: same type as `power`
        Power level in dB.
    """
    with np.errstate(divide="ignore"):
        if isinstance(power, xr.DataArray):
            return 10 * np.log10(power)
        return 10 * np.log10(np.asarray(power, dtype=float))


def _require(value, name, calibration_type):
    if value is None:
        raise ConfigError(
            f"'{name}' is required for {calibration_type} calibration."
        )
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise ConfigError(f"'{name}' must be a number. Got: {value!r}")
    if not np.isfinite(value):
        raise ConfigError(f"'{name}' must be finite. Got: {value}")


class CalibrationModel(ABC):
    """A calibration arm; subclasses hold only the fields they need."""

    calibration_type: str = ""

    @property
    @abstractmethod
    def offset_db(self) -> float:
        """Level correction added to ``10 * log10(P)`` [dB]."""


@dataclass(frozen=True)
class EndToEnd(CalibrationModel):
    """
    End-to-end calibration.

    Attributes
    ----------
    system_sensitivity: float
        Sensitivity of the complete recording system in dB re 1 FS/uPa
        (water) or dB re 1 FS/Pa (air).
    """

    system_sensitivity: float
    calibration_type = "EE"

    def __post_init__(self):
        _require(self.system_sensitivity, "system_sensitivity", "EE")

    @property
    def offset_db(self) -> float:
        return -self.system_sensitivity


@dataclass(frozen=True)
class TransducerSensitivity(CalibrationModel):
    """
    Calibration from transducer datasheet values.

    Attributes
    ----------
    mic_hydro_sensitivity: float
        Sensor sensitivity in dB re 1 V/uPa (water) or dB re 1 V/Pa (air).
        Should be negative.
    preamp_gain: float
        Preamplifier gain [dB].
    adc_vpeak: float
        Voltage at digital full scale of the analog-to-digital converter [V].
    """

    mic_hydro_sensitivity: float
    preamp_gain: float
    adc_vpeak: float
    calibration_type = "TS"

    def __post_init__(self):
        _require(self.mic_hydro_sensitivity, "mic_hydro_sensitivity", "TS")
        _require(self.preamp_gain, "preamp_gain", "TS")
        _require(self.adc_vpeak, "adc_vpeak", "TS")
        if self.adc_vpeak <= 0:
            raise ConfigError("'adc_vpeak' must be positive.")

    @property
    def offset_db(self) -> float:
        return -(self.mic_hydro_sensitivity + self.preamp_gain) + 20 * np.log10(
            self.adc_vpeak
        )


@dataclass(frozen=True)
class RecorderCalibration(CalibrationModel):
    """
    Recorder calibration combined with sensor sensitivity.

    Attributes
    ----------
    mic_hydro_sensitivity: float
        Sensor sensitivity in dB re 1 V/uPa (water) or dB re 1 V/Pa (air).
    system_sensitivity: float
        Measured recorder sensitivity [dB re 1 FS/V].
    """

    mic_hydro_sensitivity: float
    system_sensitivity: float
    calibration_type = "RC"

    def __post_init__(self):
        _require(self.mic_hydro_sensitivity, "mic_hydro_sensitivity", "RC")
        _require(self.system_sensitivity, "system_sensitivity", "RC")

    @property
    def offset_db(self) -> float:
        return -(self.mic_hydro_sensitivity + self.system_sensitivity)


_MODELS = {
    "EE": (EndToEnd, ("system_sensitivity",)),
    "TS": (
        TransducerSensitivity,
        ("mic_hydro_sensitivity", "preamp_gain", "adc_vpeak"),
    ),
    "RC": (RecorderCalibration, ("mic_hydro_sensitivity", "system_sensitivity")),
}


def calibration_model(calibration_type: Optional[str], **fields) -> CalibrationModel:
    """
    Build the calibration arm selected by `calibration_type`.

    Fields not used by the selected arm are ignored.

    Parameters
    ----------
    calibration_type: str
        'TS', 'EE' or 'RC' (case-insensitive).
    **fields
        mic_hydro_sensitivity, preamp_gain, adc_vpeak, system_sensitivity.

    Returns
    -------
    model: CalibrationModel

    Raises
    ------
    ConfigError
        If the type is missing or unknown, or a required field is absent.
    """
    if calibration_type is None:
        raise ConfigError(
            "'calibration_type' must be specified when calibration is enabled."
        )
    key = str(calibration_type).upper()
    if key not in _MODELS:
        raise ConfigError(
            f"Unknown calibration type '{calibration_type}'. "
            f"Options are: {sorted(_MODELS)}"
        )
    model, required = _MODELS[key]
    unknown = set(fields) - set(CALIBRATION_FIELDS)
    if unknown:
        raise TypeError(f"Unexpected calibration field(s): {sorted(unknown)}")
    missing = [name for name in required if fields.get(name) is None]
    if missing:
        raise ConfigError(
            f"{', '.join(missing)} must be set for {key} calibration."
        )

    return model(**{name: fields[name] for name in required})


class Calibrator:
    """
    Applies a calibration model to linear power.

    Parameters
    ----------
    model: CalibrationModel, optional
        Active calibration arm. None disables calibration.
    environment: str
        'water' or 'air'; selects the reference pressure in reported units.
    """

    def __init__(self, model: Optional[CalibrationModel] = None, environment="water"):
        if model is not None and not isinstance(model, CalibrationModel):
            raise TypeError("'model' must be a CalibrationModel or None.")
        if environment not in REFERENCE_PRESSURE:
            raise ConfigError(
                f"'environment' must be one of {list(REFERENCE_PRESSURE)}. "
                f"Got: '{environment}'"
            )
        self.model = model
        self.environment = environment

    @property
    def calibrated(self) -> bool:
        return self.model is not None

    @property
    def offset_db(self) -> float:
        """Level correction [dB]; 0 when uncalibrated."""
        return self.model.offset_db if self.model is not None else 0.0

    @property
    def reference(self) -> str:
        return REFERENCE_PRESSURE[self.environment]

    def level_units(self, density: bool = False) -> str:
        """Units of a level produced by :meth:`to_db`."""
        if not self.calibrated:
            return "dB re 1 FS^2/Hz" if density else "dB re FS"
        if density:
            return f"dB re ({self.reference})^2/Hz"
        return f"dB re {self.reference}"

    def to_db(self, power):
        """Calibrated level of linear power: ``10 * log10(P) + offset_db``."""
        return power_to_db(power) + self.offset_db

    def calibrate(self, psd):
        """
        Calibrate a linear power spectral density.

        Returns the level in dB when a model is active; otherwise the input
        is returned unchanged (linear FS^2/Hz).

        Parameters
        ----------
        psd: float, numpy.ndarray or xarray.DataArray
            Linear PSD referenced to digital full scale.

        Returns
        -------
        out: same type as `psd`
        """
        if not self.calibrated:
            return psd

        out = self.to_db(psd)
        if isinstance(psd, xr.DataArray):
            out.attrs = dict(psd.attrs)
            out.attrs.update(
                {
                    "units": self.level_units(density=True),
                    "long_name": "Calibrated Power Spectral Density Level",
                    "calibration_type": self.model.calibration_type,
                    "offset_db": self.offset_db,
                }
            )
        return out

    def __repr__(self):
        return f"Calibrator(model={self.model!r}, environment='{self.environment}')"
