"""
This module initializes and imports the utility functions for type
checking and time conversion shared by the pamguide analysis modules.
"""

from .type_handling import to_numeric_array, check_numeric, check_positive_int
from .time_utils import dt642epoch, parse_timestamp
