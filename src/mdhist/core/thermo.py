"""
Harmonic-approximation thermodynamic functions from a phonon density of states.
"""
from dataclasses import dataclass, field
import logging
import numpy as np
from typing import List, NamedTuple, Optional
from tqdm import tqdm

from .trajectory import Trajectory
from .spectral import compute_pdos
from ..utils.units import KB_EV, THZ_EV

logger = logging.getLogger(__name__)


class ThermoFunctions(NamedTuple):
    free_energy: float      # eV/atom
    internal_energy: float  # eV/atom
    heat_capacity: float    # kB/atom
    entropy: float          # kB/atom


@dataclass
class ThermoCurve:
    temperatures: np.ndarray
    free_energy: np.ndarray
    internal_energy: np.ndarray
    heat_capacity: np.ndarray
    entropy: np.ndarray
    labels: List[str] = field(default_factory=lambda: ["F_vib [eV/atom]", "E_vib [eV/atom]",
                                                       "C_v   [kB/atom]", "S_vib [kB/atom]"])


def retained_bins(nfreq: int, domega: float, omega_max: Optional[float] = None) -> int:
    """Number of leading bins kept below omega_max (same unit as domega)."""
    if omega_max is None:
        return nfreq
    return min(int(omega_max / domega), nfreq)


def renormalize_pdos(pdos: np.ndarray, domega: float, nmax: int) -> np.ndarray:
    """
    Copy of the first nmax bins scaled to a unit trapezoidal integral.

    Raises:
        ValueError: If fewer than 2 bins are kept or the integral vanishes
    """
    if nmax < 2:
        raise ValueError(f"At least 2 frequency bins are needed, got {nmax}.")
    g = np.array(pdos[:nmax], dtype=np.float64)
    norm = np.sum((g[:-1] + g[1:]) * 0.5 * domega)
    if norm == 0 or not np.isfinite(norm):
        raise ValueError(f"Cannot renormalize a PDOS with integral {norm}.")
    return g / norm


def harmonic_thermo(pdos: np.ndarray, temperature: float, domega: float,
                    omega_max: Optional[float] = None) -> ThermoFunctions:
    """
    Vibrational free energy, internal energy, heat capacity and entropy.

    Args:
        pdos: Density of states sampled on bins of width domega
        temperature: Temperature in K, must be positive
        domega: Bin width in THz
        omega_max: Optional cutoff in THz

    Returns:
        ThermoFunctions (F, E in eV/atom; C, S in kB/atom)
    """
    if temperature <= 0:
        raise ValueError(f"Temperature must be positive, got {temperature}.")
    if domega <= 0:
        raise ValueError(f"Frequency step must be positive, got {domega}.")

    nmax = retained_bins(len(pdos), domega, omega_max)
    g = renormalize_pdos(pdos, domega, nmax)

    omega = THZ_EV * (np.arange(nmax - 1) + 0.5) * domega  # eV, bin centers
    gwdw = (g[:-1] + g[1:]) * domega * 0.5
    kbt = KB_EV * temperature
    x = omega * (0.5 / kbt)

    # ln(2 sinh x) = x + ln(1 - exp(-2x)) stays finite for large x.
    log2sinh = x + np.log(-np.expm1(-2.0 * x))
    coth = 1.0 / np.tanh(x)
    with np.errstate(over='ignore'):
        x2_sinh2 = np.where(x < 350.0, x * x / np.sinh(np.minimum(x, 350.0)) ** 2, 0.0)

    free = 3.0 * kbt * np.sum(log2sinh * gwdw)
    energy = 3.0 * 0.5 * np.sum(omega * coth * gwdw)
    heat = 3.0 * np.sum(x2_sinh2 * gwdw)
    entropy = 3.0 * np.sum((x * coth - log2sinh) * gwdw)
    return ThermoFunctions(float(free), float(energy), float(heat), float(entropy))


def frequency_step(traj: Trajectory, nfreq: int) -> float:
    """PDOS bin width in THz for nfreq bins."""
    return 1.0 / (2.0 * traj.dtion_ps * nfreq)


def compute_thermo(traj: Trajectory, tbegin: int, tend: int,
                   omega_max: Optional[float] = None) -> ThermoFunctions:
    """Thermodynamic functions at the mean temperature of [tbegin, tend)."""
    try:
        traj.check_times(tbegin, tend)
    except ValueError as e:
        raise ValueError(f"Thermodynamics calculations aborted: {e}") from e
    if not traj.has_md_fields:
        raise ValueError("Thermodynamics calculations aborted: trajectory has no temperature.")

    temperature = float(np.mean(traj.temperature[tbegin:tend]))
    logger.info(f"Harmonic thermodynamics at T={temperature:.2f} K")
    try:
        pdos = compute_pdos(traj, tbegin, tend).total
        return harmonic_thermo(pdos, temperature, frequency_step(traj, len(pdos)), omega_max)
    except ValueError as e:
        raise ValueError(f"Unable to compute thermodynamic functions: {e}") from e
    except ImportError as e:
        raise ImportError(f"Unable to compute thermodynamic functions: {e}") from e


def thermo_curve(pdos: np.ndarray, temperature: float, domega: float, npoints: int = 1000,
                 omega_max: Optional[float] = None) -> ThermoCurve:
    """Thermodynamic functions on the grid (i+1)*2T/npoints, i < npoints."""
    if temperature <= 0:
        raise ValueError(f"Temperature must be positive, got {temperature}.")
    if npoints < 1:
        raise ValueError(f"npoints must be >= 1, got {npoints}.")
    temperatures = (np.arange(npoints) + 1) * 2.0 * temperature / npoints
    values = np.array([harmonic_thermo(pdos, t, domega, omega_max)
                       for t in tqdm(temperatures, desc="Thermodynamic functions", unit="T",
                                     disable=npoints < 100)])
    return ThermoCurve(temperatures, values[:, 0], values[:, 1], values[:, 2], values[:, 3])
