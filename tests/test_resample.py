import pytest
import numpy as np
from mdhist.core.resample import interpolate, interpolation_schedule
from mdhist.core.trajectory import Trajectory

from conftest import trajectory_arrays

@pytest.mark.parametrize("ntime, ninter", [(2, 2), (3, 3), (5, 4), (10, 2)])
def test_interpolate_keeps_original_frames(ntime, ninter):
    data = trajectory_arrays(ntime=ntime)
    traj = Trajectory(**data)
    interpolate(traj, ninter)

    assert traj.ntime == ninter * (ntime - 1) - (ntime - 2)
    for j in range(ntime):
        k = j * (ninter - 1)
        np.testing.assert_allclose(traj.positions[k], data["positions"][j])
        np.testing.assert_allclose(traj.velocities[k], data["velocities"][j])
        assert traj.time[k] == pytest.approx(data["time"][j])

def test_interpolate_midpoints():
    data = trajectory_arrays(ntime=3, dt=10.0)
    traj = Trajectory(**data)
    interpolate(traj, 3)
    np.testing.assert_allclose(traj.time, [0.0, 5.0, 10.0, 15.0, 20.0])
    np.testing.assert_allclose(traj.positions[1], 0.5 * (data["positions"][0] + data["positions"][1]))
    assert traj.ntime_avail == 5

def test_interpolate_partial_amplitude():
    traj = Trajectory(**trajectory_arrays(ntime=3, dt=10.0))
    interpolate(traj, 3, amplitude=0.5)
    assert traj.ntime == 6
    np.testing.assert_allclose(traj.time, [5.0, 7.5, 10.0, 15.0, 17.5, 20.0])
    assert traj.stress.shape == (6, 6)
    assert traj.temperature.shape == (6,)

def test_interpolation_schedule():
    new_ntime, schedule = interpolation_schedule(3, 2, 1.0)
    assert new_ntime == 3
    assert schedule[0] == (2, 2, 1, 0.0)
    assert schedule[-1] == (0, 1, 0, 1.0)

@pytest.mark.parametrize("ntime, ninter, amplitude, message", [
    (1, 3, 1.0, "at least 2 frames"),
    (3, 1, 1.0, "ninter"),
    (3, 3, 1.5, "amplitude"),
    (3, 3, -0.1, "amplitude"),
])
def test_interpolate_invalid(ntime, ninter, amplitude, message):
    traj = Trajectory(**trajectory_arrays(ntime=ntime))
    with pytest.raises(ValueError, match=message):
        interpolate(traj, ninter, amplitude)
    assert traj.ntime == ntime
