"""
Species reference table backed by ``ase.data``.
"""
import numpy as np
from typing import List, Sequence
from ase.data import atomic_masses, chemical_symbols

from .units import AMU_EMASS


def species_mass(znucl: int) -> float:
    """Mass of an element in electron masses."""
    if not 0 < int(znucl) < len(atomic_masses):
        raise ValueError(f"Unknown atomic number: {znucl}")
    return float(atomic_masses[int(znucl)]) * AMU_EMASS


def species_name(znucl: int) -> str:
    if not 0 < int(znucl) < len(chemical_symbols):
        raise ValueError(f"Unknown atomic number: {znucl}")
    return chemical_symbols[int(znucl)]


def atom_masses(znucl: Sequence[int], typat: Sequence[int]) -> np.ndarray:
    """Per-atom masses (electron masses) from the species table and 1-based typat."""
    masses_by_type = np.array([species_mass(z) for z in znucl], dtype=np.float64)
    return masses_by_type[np.asarray(typat, dtype=int) - 1]


def bucket_labels(znucl: Sequence[int]) -> List[str]:
    """Labels for species buckets: "All" first, then one per species."""
    return ["All"] + [species_name(z) for z in znucl]
