"""
Time averages of a trajectory.
"""
from dataclasses import dataclass
import logging
import numpy as np
from typing import Tuple

from .trajectory import Trajectory
from ..utils.helpers import mean_deviation
from ..utils.units import HA_BOHR3_GPA

logger = logging.getLogger(__name__)


def average(traj: Trajectory, tbegin: int, tend: int) -> Trajectory:
    """
    One-frame trajectory holding the arithmetic mean of every field over [tbegin, tend).

    The result shares no storage with traj.
    """
    traj.check_times(tbegin, tend)
    inv_ntime = 1.0 / (tend - tbegin)
    arrays = {name: (np.sum(values[tbegin:tend], axis=0) * inv_ntime)[None, ...]
              for name, values in traj.frame_fields().items()}
    return Trajectory(znucl=traj.znucl.copy(), typat=traj.typat.copy(),
                      try_to_map=traj.try_to_map, **arrays)


@dataclass
class ThermoSummary:
    """Mean and deviation pairs over a time range."""
    total_energy: Tuple[float, float]   # Ha
    volume: Tuple[float, float]         # Bohr^3
    temperature: Tuple[float, float]    # K
    pressure: Tuple[float, float]       # GPa
    stress: Tuple[Tuple[float, float], ...]  # GPa, 6 components

    def format(self) -> str:
        def row(label: str, pair: Tuple[float, float]) -> str:
            return f"{label:<25}{pair[0]:>12.5e} +/- {pair[1]:>12.5e}"

        lines = ["", " -- Thermodynamics information --", "    ^^^^^^^^^^^^^^^^^^^^^^^^^^   ",
                 row(" Total energy [Ha]:", self.total_energy),
                 row(" Volume [Bohr^3]: ", self.volume),
                 row(" Temperature [K]: ", self.temperature),
                 row(" Pressure [GPa]: ", self.pressure)]
        lines += [row(f" Stress {i + 1} [GPa]: ", s) for i, s in enumerate(self.stress)]
        return "\n".join(lines) + "\n"


def thermo_summary(traj: Trajectory, tbegin: int, tend: int) -> ThermoSummary:
    """Mean/deviation of energy, volume, temperature, pressure and stress over [tbegin, tend)."""
    try:
        traj.check_times(tbegin, tend)
    except ValueError as e:
        raise ValueError(f"Thermodynamics calculations aborted: {e}") from e
    if not traj.has_md_fields:
        raise ValueError("Thermodynamics calculations aborted: trajectory has no temperature or pressure.")

    def pair(values: np.ndarray, scale: float = 1.0) -> Tuple[float, float]:
        mean, dev = mean_deviation(values)
        return float(mean) * scale, float(dev) * scale

    window = slice(tbegin, tend)
    return ThermoSummary(
        total_energy=pair(traj.total_energy[window]),
        volume=pair(np.linalg.det(traj.box_vectors[window])),
        temperature=pair(traj.temperature[window]),
        pressure=pair(traj.pressure[window]),
        stress=tuple(pair(traj.stress[window, s], HA_BOHR3_GPA) for s in range(6)),
    )
