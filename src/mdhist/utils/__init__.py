"""
Utilities module for mdhist.

This module provides unit constants, the species reference table, helper
functions and configuration management.
"""

from .config_manager import ConfigManager
from .helpers import (
    check_time_range,
    mean_deviation,
    update_dict_recursively,
    validate_array_shape,
    safe_divide
)

__all__ = [
    'ConfigManager',
    'check_time_range',
    'mean_deviation',
    'update_dict_recursively',
    'validate_array_shape',
    'safe_divide'
]
