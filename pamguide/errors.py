"""
Exception types raised by pamguide.

``ConfigError`` is fatal and raised before any recording is analyzed.
``DecodeError``, ``TimestampParseError`` and ``NumericError`` concern a
single recording; the batch driver records them on that file's result and
moves on.
"""


class PAMGuideError(Exception):
    """Base class for all pamguide errors."""


class ConfigError(PAMGuideError, ValueError):
    """Invalid, incomplete or contradictory analysis configuration."""


class DecodeError(PAMGuideError, IOError):
    """A recording could not be read or is in an unsupported format."""


class TimestampParseError(PAMGuideError, ValueError):
    """A recording's start time could not be parsed from its name."""


class NumericError(PAMGuideError, ArithmeticError):
    """Degenerate input that would produce non-finite results."""
