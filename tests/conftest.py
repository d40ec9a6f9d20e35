import pytest
import numpy as np

from mdhist.core.trajectory import Trajectory

ZNUCL = [14, 8]
TYPAT = [1, 1, 2, 2]


def trajectory_arrays(ntime=5, natom=4, dt=20.0, box=10.0, velocities=True, md_fields=True,
                      temperature=300.0, seed=0):
    """Per-frame arrays of a small cubic-cell trajectory."""
    rng = np.random.default_rng(seed)
    data = {
        "positions": rng.random((ntime, natom, 3)) * box,
        "box_vectors": np.tile(np.eye(3) * box, (ntime, 1, 1)),
        "stress": np.zeros((ntime, 6)),
        "total_energy": -10.0 + 0.01 * rng.random(ntime),
        "time": np.arange(ntime) * dt,
        "znucl": np.array(ZNUCL),
        "typat": np.array(TYPAT[:natom] if natom <= len(TYPAT) else [1] * natom),
    }
    if velocities:
        data["velocities"] = rng.normal(scale=1e-4, size=(ntime, natom, 3))
    if md_fields:
        data["kinetic_energy"] = np.full(ntime, 0.01)
        data["temperature"] = np.full(ntime, temperature)
        data["pressure"] = np.full(ntime, 1.0)
        data["entropy"] = np.zeros(ntime)
    return data


@pytest.fixture
def make_trajectory():
    """Factory fixture building a Trajectory from trajectory_arrays keyword arguments."""
    def _make(**kwargs):
        return Trajectory(**trajectory_arrays(**kwargs))
    return _make


@pytest.fixture
def constant_velocity_trajectory():
    """4 atoms moving with the same constant velocity over 5 frames, no stored velocities."""
    v0 = np.array([1e-4, 2e-4, -1e-4])
    dt = 20.0
    data = trajectory_arrays(ntime=5, dt=dt, velocities=False, md_fields=False)
    data["positions"] = data["positions"][0] + np.arange(5)[:, None, None] * dt * v0
    return Trajectory(**data), v0
