"""
Velocity autocorrelation and phonon density of states.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import numpy as np
from typing import Iterator, List, Optional

from .trajectory import Trajectory
from .backend import cosine_plan, convolve_full
from ..utils.helpers import safe_divide
from ..utils.species import bucket_labels
from ..utils.units import VEL2_NM2_PS2, THZ_EV, KB_EV

logger = logging.getLogger(__name__)

# Lags handled by one worker task when summing VACF buckets.
LAG_CHUNK = 256

@dataclass
class Spectrum:
    x: np.ndarray
    curves: np.ndarray  # (n_buckets, n_points), bucket 0 is all species
    labels: List[str] = field(default_factory=list)
    xlabel: str = ""
    ylabel: str = ""

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.curves)

    def __len__(self) -> int:
        return self.curves.shape[0]

    @property
    def total(self) -> np.ndarray:
        return self.curves[0]

    def bucket(self, label: str) -> np.ndarray:
        if label not in self.labels:
            raise KeyError(f"No bucket labelled {label!r}; available: {self.labels}")
        return self.curves[self.labels.index(label)]


def autocorrelation(signals: np.ndarray) -> np.ndarray:
    """
    Unbiased autocorrelation of every column of signals.

    Args:
        signals: (ntime, nsignal) array

    Returns:
        (ntime, nsignal) array; row tau is the mean of s[t] * s[t + tau]
        over the ntime - tau available pairs.
    """
    signals = np.asarray(signals, dtype=np.float64)
    ntime = signals.shape[0]
    if ntime == 0:
        raise ValueError("Autocorrelation needs at least one sample.")
    # Zero padding to 2*ntime turns the circular correlation into a linear one.
    spectrum = np.fft.rfft(signals, n=2 * ntime, axis=0)
    acf = np.fft.irfft(spectrum * np.conj(spectrum), n=2 * ntime, axis=0)[:ntime]
    overlap = (ntime - np.arange(ntime)).reshape((-1,) + (1,) * (signals.ndim - 1))
    return acf / overlap


def _bucket_sums(per_dof: np.ndarray, membership: np.ndarray) -> np.ndarray:
    """Sum the degrees of freedom of each lag into species buckets."""
    ntau = per_dof.shape[0]
    out = np.zeros((ntau, membership.shape[1]))
    for itau in range(ntau):
        out[itau] = per_dof[itau] @ membership
    return out


def compute_vacf(traj: Trajectory, tbegin: int, tend: int, workers: Optional[int] = None) -> Spectrum:
    """
    Species-resolved velocity autocorrelation function.

    Args:
        traj: Trajectory with velocities
        tbegin: First frame included
        tend: First frame excluded
        workers: Thread count for the lag loop (default: executor default)

    Returns:
        Spectrum with lag time [ps] as x and one VACF [nm^2/ps^2/atom] per bucket
    """
    try:
        traj.check_times(tbegin, tend)
    except ValueError as e:
        raise ValueError(f"VACF calculation failed: {e}") from e
    if not traj.has_velocities:
        raise ValueError("VACF calculation failed: trajectory has no velocities.")

    ntime, natom = tend - tbegin, traj.natom
    nbucket = traj.nspecies + 1
    full = autocorrelation(traj.velocities[tbegin:tend].reshape(ntime, 3 * natom))

    # Column 0 collects every atom, column s the atoms of species s.
    membership = np.zeros((3 * natom, nbucket))
    membership[:, 0] = 1.0
    membership[np.arange(3 * natom), np.repeat(traj.typat, 3)] = 1.0

    chunks = [full[i:i + LAG_CHUNK] for i in range(0, ntime, LAG_CHUNK)]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        sums = np.vstack(list(pool.map(lambda c: _bucket_sums(c, membership), chunks)))

    counts = np.bincount(traj.typat, minlength=nbucket).astype(np.float64)
    counts[0] = natom
    empty = [label for label, c in zip(bucket_labels(traj.znucl), counts) if c == 0]
    if empty:
        logger.warning(f"No atoms for species {empty}; their VACF is zero.")
    curves = safe_divide(sums, 3.0 * counts[None, :]).T * VEL2_NM2_PS2

    x = np.arange(ntime) * traj.dtion_ps
    logger.debug(f"VACF computed over {ntime} frames for {nbucket} buckets.")
    return Spectrum(x=x, curves=curves, labels=bucket_labels(traj.znucl),
                    xlabel="Time [ps]", ylabel="VACF [nm^2/ps^2/atom]")


def gaussian_smear(amplitudes: np.ndarray, sigma: float) -> np.ndarray:
    """
    Spread every bin as a normal distribution of width sigma.

    Bin i sits at i/n in normalized frequency; the result at bin g is
    sum_i amplitudes[i] / (sigma*sqrt(2*pi)) * exp(-(g/n - i/n)^2 / (2*sigma^2)).
    """
    if sigma <= 0:
        raise ValueError("Smearing needs to be positive.")
    amplitudes = np.asarray(amplitudes, dtype=np.float64)
    n = amplitudes.size
    renorm = 1.0 / (sigma * np.sqrt(2.0 * np.pi))
    offsets = np.arange(-(n - 1), n) / n
    kernel = np.exp(-offsets * offsets / (2.0 * sigma * sigma))
    return convolve_full(amplitudes * renorm, kernel)[n - 1:2 * n - 1]


def smearing_from_temperature(tsmear: float, dtion_ps: float) -> float:
    """Convert a smearing width in Kelvin to normalized frequency units."""
    if tsmear <= 0:
        raise ValueError("tsmear needs to be positive.")
    return tsmear * (KB_EV * 1e3) / (THZ_EV * 1e3) * (dtion_ps * 2.0)


def compute_pdos(traj: Trajectory, tbegin: int, tend: int, smearing: Optional[float] = None,
                 workers: Optional[int] = None) -> Spectrum:
    """
    Phonon density of states from the cosine transform of the VACF.

    Args:
        traj: Trajectory with velocities
        tbegin: First frame included
        tend: First frame excluded
        smearing: Gaussian width in normalized frequency units; None disables smearing
        workers: Thread count for the per-bucket loops

    Returns:
        Spectrum with frequency [meV] as x and one PDOS per bucket

    Raises:
        ValueError: If smearing is not positive or the VACF cannot be computed
        ImportError: If the transform backend is not available
    """
    if smearing is not None and smearing <= 0:
        raise ValueError("Smearing needs to be positive.")
    try:
        vacf = compute_vacf(traj, tbegin, tend, workers)
    except ValueError as e:
        raise ValueError(f"PDOS calculation failed: {e}") from e

    howmany, n = vacf.curves.shape
    try:
        with cosine_plan(n, howmany) as plan, ThreadPoolExecutor(max_workers=workers) as pool:
            curves = np.vstack(list(pool.map(plan.execute, vacf.curves)))
            if smearing is not None:
                logger.debug(f"Applying Gaussian smearing sigma={smearing:.4e}")
                curves = np.vstack(list(pool.map(lambda c: gaussian_smear(c, smearing), curves)))
    except ImportError as e:
        raise ImportError(f"PDOS calculation failed: {e}") from e

    x = THZ_EV * 1e3 * np.arange(n) / (traj.dtion_ps * n * 2.0)  # *2 for the Nyquist frequency
    return Spectrum(x=x, curves=curves, labels=vacf.labels,
                    xlabel="Frequency [meV]", ylabel="PDOS [arbitrary units/atom]")
