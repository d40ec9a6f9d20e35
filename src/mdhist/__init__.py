"""
mdhist: molecular dynamics history analysis.
"""

__version__ = "0.1.0"

# Core components
from .core.trajectory import Trajectory
from .core.derivation import derive_velocity, derive_pressure_temperature, derive_all
from .core.merge import merge, MergeReport
from .core.resample import interpolate
from .core.spectral import Spectrum, compute_vacf, compute_pdos, smearing_from_temperature
from .core.thermo import ThermoFunctions, ThermoCurve, harmonic_thermo, compute_thermo, thermo_curve
from .core.aggregate import average, thermo_summary, ThermoSummary
from .core.backend import SPECTRAL_BACKEND_AVAILABLE

# IO components
from .io.loader import TrajectoryLoader

# Utility components
from .utils.config_manager import ConfigManager

__all__ = [
    # Core
    'Trajectory',
    'derive_velocity',
    'derive_pressure_temperature',
    'derive_all',
    'merge',
    'MergeReport',
    'interpolate',
    'Spectrum',
    'compute_vacf',
    'compute_pdos',
    'smearing_from_temperature',
    'ThermoFunctions',
    'ThermoCurve',
    'harmonic_thermo',
    'compute_thermo',
    'thermo_curve',
    'average',
    'thermo_summary',
    'ThermoSummary',
    'SPECTRAL_BACKEND_AVAILABLE',
    # IO
    'TrajectoryLoader',
    # Utils
    'ConfigManager',
]
