"""
Utility functions for mdhist.

This module provides helper functions shared by the trajectory analysis modules.
"""
import numpy as np
import logging
from typing import Tuple, Optional

logger = logging.getLogger(__name__)

def check_time_range(tbegin: int, tend: int, ntime: int) -> None:
    """
    Validate a half-open frame range [tbegin, tend).

    Args:
        tbegin: First frame included
        tend: First frame excluded
        ntime: Number of frames in the trajectory

    Raises:
        ValueError: If the range is empty or does not fit in the trajectory
    """
    if tbegin < 0 or tend > ntime:
        raise ValueError(f"Time range [{tbegin}, {tend}) is out of bounds for {ntime} frames.")
    if tbegin >= tend:
        raise ValueError(f"tbegin ({tbegin}) must be smaller than tend ({tend}).")

def mean_deviation(values: np.ndarray, axis: Optional[int] = 0) -> Tuple[np.ndarray, np.ndarray]:
    """
    Arithmetic mean and population standard deviation along an axis.

    Args:
        values: Input array
        axis: Axis to reduce

    Returns:
        Tuple of (mean, deviation)
    """
    values = np.asarray(values, dtype=np.float64)
    mean = np.mean(values, axis=axis)
    dev = np.sqrt(np.mean((values - mean) ** 2, axis=axis))
    return mean, dev

def relative_deviation(reference: float, other: float) -> float:
    """
    |reference - other| / |reference|.

    A zero reference gives 0 when both values are zero and inf otherwise.
    """
    if reference == 0:
        return 0.0 if other == 0 else float('inf')
    return abs(reference - other) / abs(reference)

def update_dict_recursively(base_dict: dict, update_with: dict) -> dict:
    """
    Recursively update a dictionary with another dictionary.

    Args:
        base_dict: Base dictionary to update
        update_with: Dictionary containing updates

    Returns:
        Updated dictionary
    """
    for k, v_update in update_with.items():
        if isinstance(v_update, dict) and k in base_dict and isinstance(base_dict[k], dict):
            update_dict_recursively(base_dict[k], v_update)
        else:
            base_dict[k] = v_update
    return base_dict

def validate_array_shape(arr: np.ndarray, expected_shape: tuple, name: str) -> None:
    """
    Validate that an array has the expected shape.

    Args:
        arr: Array to validate
        expected_shape: Expected shape tuple
        name: Name of the array for error messages

    Raises:
        ValueError: If array shape doesn't match expected shape
    """
    if arr.shape != expected_shape:
        raise ValueError(f"{name} has shape {arr.shape}, expected {expected_shape}")

def safe_divide(a: np.ndarray, b: np.ndarray, fill_value: float = 0.0) -> np.ndarray:
    """
    Safely divide arrays, handling division by zero.

    Args:
        a: Numerator array
        b: Denominator array
        fill_value: Value to use when denominator is zero

    Returns:
        Result of division, with fill_value where denominator is zero
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        result = np.divide(a, b, out=np.full(np.broadcast(a, b).shape, fill_value), where=b!=0)
    return result
