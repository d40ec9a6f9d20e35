"""
Core module for mdhist.

This module provides the trajectory data structure and the analysis engines
working on it.
"""

from .trajectory import Trajectory
from .merge import merge, MergeReport
from .spectral import Spectrum
from .thermo import ThermoFunctions

__all__ = [
    'Trajectory',
    'merge',
    'MergeReport',
    'Spectrum',
    'ThermoFunctions',
]
