"""
Input module for mdhist.

This module streams trajectory arrays into Trajectory objects.
"""

from .loader import TrajectoryLoader

__all__ = ['TrajectoryLoader']
