"""
Velocities, temperature and pressure derived from positions and stress.
"""
import logging
import numpy as np
from typing import Optional

from .trajectory import Trajectory, MD_SCALARS
from ..utils.species import atom_masses
from ..utils.units import KB_HA, HA_BOHR3_GPA

logger = logging.getLogger(__name__)


def _ensure_md_arrays(traj: Trajectory) -> None:
    if traj.has_velocities and traj.has_md_fields:
        return
    arrays = traj.frame_fields()
    if not traj.has_velocities:
        arrays['velocities'] = np.zeros_like(traj.positions)
    if not traj.has_md_fields:
        arrays.update({name: np.zeros(traj.ntime) for name in MD_SCALARS})
    traj.replace_frames(arrays, available=traj.ntime_avail)


def derive_velocity(traj: Trajectory, itime: int, dt: Optional[float] = None) -> None:
    """
    Update finite-difference velocities once frame itime is available.

    Frame itime-1 gets the central estimate when itime >= 2, frame 0 gets the
    forward estimate when itime == 1 and the last frame gets the backward
    estimate. Temperature and pressure are recomputed for every frame touched.

    Args:
        traj: Trajectory to update in place
        itime: Index of the newest available frame
        dt: Timestep in atomic time units (default: traj.timestep)
    """
    if not 0 <= itime < traj.ntime:
        raise IndexError(f"Frame index {itime} out of range [0, {traj.ntime}).")
    dt = traj.timestep if dt is None else dt
    if dt <= 0:
        raise ValueError(f"Timestep must be positive, got {dt}.")
    traj.wait_time(itime)
    _ensure_md_arrays(traj)

    x, v = traj.positions, traj.velocities
    if itime >= 2:
        v[itime - 1] = 0.5 * (x[itime] - x[itime - 2]) / dt
        derive_pressure_temperature(traj, itime - 1)
    if itime == traj.ntime - 1 and itime > 0:
        v[itime] = (x[itime] - x[itime - 1]) / dt
        derive_pressure_temperature(traj, itime)
    if itime == 1:
        v[0] = (x[1] - x[0]) / dt
        derive_pressure_temperature(traj, 0)


def derive_pressure_temperature(traj: Trajectory, itime: int) -> None:
    """
    Kinetic temperature and pressure of one frame.

    The temperature comes from the velocities rather than the stored kinetic
    energy, which differs from 1/2 m v^2 for path-integral runs.
    """
    if not traj.has_velocities:
        raise ValueError("Velocities are required to compute temperature and pressure.")
    if not 0 <= itime < traj.ntime:
        raise IndexError(f"Frame index {itime} out of range [0, {traj.ntime}).")
    natom = traj.natom
    if natom == 0:
        raise ValueError("Temperature and pressure are undefined for a trajectory without atoms.")
    _ensure_md_arrays(traj)

    volume = np.linalg.det(traj.box_vectors[itime])
    if volume <= 0:
        raise ValueError(f"Cell volume of frame {itime} is not positive ({volume:.3e}).")

    masses = atom_masses(traj.znucl, traj.typat)
    v2 = np.sum(traj.velocities[itime] ** 2, axis=1)
    temperature = float(np.dot(masses, v2)) / (3.0 * KB_HA * natom)
    traj.temperature[itime] = temperature

    stress = traj.stress[itime]
    traj.pressure[itime] = HA_BOHR3_GPA * (-(stress[0] + stress[1] + stress[2]) / 3.0
                                          + natom / volume * KB_HA * temperature)


def derive_all(traj: Trajectory, dt: Optional[float] = None) -> None:
    """Derive velocities, temperature and pressure for a fully loaded trajectory."""
    traj.wait_time(traj.ntime - 1)
    if traj.ntime < 2:
        logger.warning("Cannot derive velocities from fewer than 2 frames.")
        return
    if traj.has_velocities:
        logger.info("Overwriting existing velocities with finite differences of positions.")
    for itime in range(traj.ntime):
        derive_velocity(traj, itime, dt)
    logger.info(f"Derived velocities, temperature and pressure for {traj.ntime} frames.")
