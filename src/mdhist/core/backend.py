"""
Real-to-real cosine transform backend.

Plan creation and destruction are serialized by a process-wide lock; executing
an existing plan is not. scipy.fft keeps no plan objects, so a CosinePlan only
records the transform size and whether it is still usable.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional
import numpy as np

logger = logging.getLogger(__name__)

# Try to import scipy.fft, but don't fail if it's not available
try:
    from scipy import fft as sp_fft
    from scipy.signal import fftconvolve
    SPECTRAL_BACKEND_AVAILABLE = True
except ImportError as e:
    logger.error(f"scipy.fft import failed: {e}")
    SPECTRAL_BACKEND_AVAILABLE = False

_PLAN_LOCK = threading.Lock()


class CosinePlan:
    """Batched even-symmetric forward transform (DCT-II, unnormalized, FFTW REDFT10 convention)."""

    def __init__(self, n: int, howmany: int, workers: Optional[int] = None):
        self.n = n
        self.howmany = howmany
        self.workers = workers
        self._active = True

    def execute(self, data: np.ndarray) -> np.ndarray:
        """Transform along the last axis; data holds one or more signals of length n."""
        if not self._active:
            raise RuntimeError("Cosine transform plan has been destroyed.")
        data = np.asarray(data, dtype=np.float64)
        if data.shape[-1] != self.n:
            raise ValueError(f"Plan built for length {self.n}, got signals of length {data.shape[-1]}.")
        return sp_fft.dct(data, type=2, axis=-1, workers=self.workers)


def create_plan(n: int, howmany: int, workers: Optional[int] = None) -> CosinePlan:
    """
    Build a batched cosine transform plan.

    Raises:
        ImportError: If the transform backend is not available
        ValueError: If the sizes are not positive
    """
    if not SPECTRAL_BACKEND_AVAILABLE:
        raise ImportError("scipy.fft is needed to compute the PDOS. Please install scipy.")
    if n < 1 or howmany < 1:
        raise ValueError(f"Transform sizes must be positive, got n={n}, howmany={howmany}.")
    with _PLAN_LOCK:
        logger.debug(f"Creating cosine plan n={n} howmany={howmany}")
        return CosinePlan(n, howmany, workers)


def destroy_plan(plan: CosinePlan) -> None:
    with _PLAN_LOCK:
        plan._active = False


def convolve_full(signal: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Full linear convolution of two 1D arrays."""
    if not SPECTRAL_BACKEND_AVAILABLE:
        raise ImportError("scipy.signal is needed for Gaussian smearing. Please install scipy.")
    return fftconvolve(signal, kernel, mode='full')


@contextmanager
def cosine_plan(n: int, howmany: int, workers: Optional[int] = None) -> Iterator[CosinePlan]:
    plan = create_plan(n, howmany, workers)
    try:
        yield plan
    finally:
        destroy_plan(plan)
