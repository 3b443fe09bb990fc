"""
This module provides small argument-checking helpers used across the
pamguide analysis modules.

Functions:
----------
- to_numeric_array: Converts input data to a numeric 1-D or N-D NumPy array.
- check_numeric: Raises TypeError unless a value is a real number.
- check_positive_int: Raises TypeError/ValueError unless a value is an int >= 1.
"""

from typing import Union
import numbers
import numpy as np
import xarray as xr


def to_numeric_array(
    data: Union[list, tuple, np.ndarray, xr.DataArray], name: str
) -> np.ndarray:
    """
    Convert input data to a numeric array, ensuring all elements are numeric.
    """
    if isinstance(data, (list, tuple, np.ndarray, xr.DataArray)):
        data = np.asarray(data)
        if not np.issubdtype(data.dtype, np.number):
            raise TypeError(
                (f"{name} must contain numeric data." + f" Got data type: {data.dtype}")
            )
    else:
        raise TypeError(
            (
                f"{name} must be a list, tuple, np.ndarray,"
                + f" or xr.DataArray. Got: {type(data)}"
            )
        )
    return data


def check_numeric(value, name: str) -> None:
    """Raise TypeError if `value` is not a real (non-boolean) number."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(f"'{name}' must be a numeric type (int or float).")


def check_positive_int(value, name: str, error=ValueError) -> None:
    """
    Raise TypeError if `value` is not an integer, or `error` if it is
    smaller than one.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise TypeError(f"'{name}' must be an integer.")
    if value < 1:
        raise error(f"'{name}' must be a positive integer. Got: {value}")
