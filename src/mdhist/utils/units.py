"""
Unit conversion constants for mdhist.

Trajectories are stored in atomic units (Hartree, Bohr, atomic time unit,
electron mass). Every factor below is derived from ``ase.units`` so that the
whole package shares a single CODATA set.
"""
from ase import units

HA_EV = units.Hartree                     # eV per Hartree
HA_J = units.Hartree * units._e           # J per Hartree
BOHR_ANG = units.Bohr                     # Angstrom per Bohr
KB_EV = units.kB                          # eV/K
KB_HA = units.kB / units.Hartree          # Ha/K
AMU_EMASS = units._amu / units._me        # electron masses per amu
ATU_FS = units._hbar / HA_J * 1e15        # fs per atomic time unit
THZ_HA = units._hplanck * 1e12 / HA_J     # Ha per THz
THZ_EV = THZ_HA * HA_EV                   # eV per THz
HA_BOHR3_GPA = HA_J / (BOHR_ANG * 1e-10) ** 3 * 1e-9

# Bohr^2/atu^2 -> nm^2/ps^2
VEL2_NM2_PS2 = (BOHR_ANG * 1e-1) ** 2 / (ATU_FS * 1e-3) ** 2

# Used when a trajectory holds a single frame and no timestep can be measured.
DEFAULT_TIMESTEP_ATU = 100.0


def atu_to_ps(value: float) -> float:
    return value * ATU_FS * 1e-3
