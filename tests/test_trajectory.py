import pytest
import numpy as np
from mdhist.core.trajectory import Trajectory, MD_SCALARS
from mdhist.utils.units import DEFAULT_TIMESTEP_ATU, atu_to_ps

from conftest import trajectory_arrays

@pytest.fixture
def valid_trajectory_data():
    """Provides a minimal set of valid data for Trajectory initialization."""
    return trajectory_arrays(ntime=3)

def test_trajectory_initialization(valid_trajectory_data):
    """Test successful Trajectory initialization with valid data."""
    traj = Trajectory(**valid_trajectory_data)
    assert traj.ntime == 3
    assert traj.natom == 4
    assert traj.nspecies == 2
    assert traj.has_velocities
    assert traj.has_md_fields
    assert traj.ntime_avail == 3
    np.testing.assert_array_equal(traj.positions, valid_trajectory_data["positions"])
    assert traj.positions.dtype == np.float64

# Test cases for initialization validation
@pytest.mark.parametrize("field_to_modify, invalid_value, error_message_part", [
    ("positions", np.random.rand(3, 4, 2), "Positions must be 3D"),
    ("velocities", np.random.rand(3, 4), "Velocities must have"),
    ("stress", np.zeros((2, 6)), "Frame count mismatch"),
    ("box_vectors", np.zeros((3, 2, 2)), "Frame count mismatch"),
    ("typat", np.array([1, 1, 2]), "Atom count mismatch"),
    ("typat", np.array([1, 1, 2, 3]), "typat entries"),
    ("znucl", np.array([14, 14]), "duplicated"),
    ("entropy", None, "must be given together"),
])
def test_trajectory_initialization_validation(valid_trajectory_data, field_to_modify, invalid_value, error_message_part):
    """Test Trajectory initialization raises ValueError for invalid data."""
    data = valid_trajectory_data.copy()
    data[field_to_modify] = invalid_value
    with pytest.raises(ValueError, match=error_message_part):
        Trajectory(**data)

def test_trajectory_without_optional_fields():
    traj = Trajectory(**trajectory_arrays(velocities=False, md_fields=False))
    assert not traj.has_velocities
    assert not traj.has_md_fields
    assert set(traj.frame_fields()) == {'positions', 'box_vectors', 'stress', 'total_energy', 'time'}
    with pytest.raises(ValueError, match="no velocities"):
        traj.get_velocity(0)

def test_accessors(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    np.testing.assert_array_equal(traj.get_position(1), valid_trajectory_data["positions"][1])
    np.testing.assert_array_equal(traj.get_velocity(2), valid_trajectory_data["velocities"][2])
    np.testing.assert_array_equal(traj.get_box(0), np.eye(3) * 10.0)
    assert traj.get_time(2) == pytest.approx(40.0)
    assert traj.get_temperature(0) == pytest.approx(300.0)
    assert traj.get_total_energy(1) == pytest.approx(valid_trajectory_data["total_energy"][1])
    np.testing.assert_allclose(traj.volumes(), np.full(3, 1000.0))

@pytest.mark.parametrize("index", [-1, 3, 10])
def test_accessors_out_of_range(valid_trajectory_data, index):
    traj = Trajectory(**valid_trajectory_data)
    with pytest.raises(IndexError):
        traj.get_position(index)
    with pytest.raises(IndexError):
        traj.get_pressure(index)

def test_timestep():
    traj = Trajectory(**trajectory_arrays(ntime=3, dt=40.0))
    assert traj.timestep == pytest.approx(40.0)
    assert traj.dtion_ps == pytest.approx(atu_to_ps(40.0))

    single = Trajectory(**trajectory_arrays(ntime=1))
    assert single.timestep == DEFAULT_TIMESTEP_ATU

def test_empty_and_append():
    traj = Trajectory.empty([14, 8], [1, 1, 2, 2])
    assert traj.ntime == 0
    assert traj.has_md_fields

    data = trajectory_arrays(ntime=2)
    for t in range(2):
        traj.append_frame(data["positions"][t], data["box_vectors"][t], data["stress"][t],
                          data["total_energy"][t], data["time"][t], velocity=data["velocities"][t],
                          temperature=300.0)
    assert traj.ntime == 2
    assert traj.ntime_avail == 2
    np.testing.assert_array_equal(traj.velocities, data["velocities"])
    np.testing.assert_array_equal(traj.temperature, [300.0, 300.0])
    np.testing.assert_array_equal(traj.pressure, [0.0, 0.0])

def test_append_invalid_frame_rolls_back(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    with pytest.raises(ValueError, match="positions frame"):
        traj.append_frame(np.zeros((3, 3)), np.eye(3), np.zeros(6), 0.0, 60.0)
    assert traj.ntime == 3
    assert traj.stress.shape == (3, 6)

    with pytest.raises(ValueError, match="Unknown frame fields"):
        traj.append_frame(np.zeros((4, 3)), np.eye(3), np.zeros(6), 0.0, 60.0, enthalpy=1.0)
    assert traj.ntime == 3

def test_resize(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    traj.resize(5)
    assert traj.ntime == 5
    for name, values in traj.frame_fields().items():
        assert values.shape[0] == 5
        np.testing.assert_array_equal(values[3:], 0.0)
    traj.resize(2)
    np.testing.assert_array_equal(traj.positions, valid_trajectory_data["positions"][:2])
    with pytest.raises(ValueError):
        traj.resize(-1)

def test_replace_frames_is_atomic(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    arrays = traj.frame_fields()
    arrays['stress'] = np.zeros((7, 6))
    with pytest.raises(ValueError, match="Frame count mismatch"):
        traj.replace_frames(arrays)
    assert traj.stress.shape == (3, 6)
    assert traj.has_velocities

def test_copy_is_independent(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    dup = traj.copy()
    dup.positions[0, 0, 0] = -1.0
    dup.temperature[:] = 0.0
    assert traj.positions[0, 0, 0] != -1.0
    np.testing.assert_array_equal(traj.temperature, 300.0)

def test_with_md_fields():
    traj = Trajectory(**trajectory_arrays(md_fields=False))
    full = traj.with_md_fields()
    assert not traj.has_md_fields
    assert full.has_md_fields
    for name in MD_SCALARS:
        np.testing.assert_array_equal(getattr(full, name), np.zeros(traj.ntime))

def test_check_times(valid_trajectory_data):
    traj = Trajectory(**valid_trajectory_data)
    traj.check_times(0, 3)
    with pytest.raises(ValueError, match="out of bounds"):
        traj.check_times(0, 4)
    with pytest.raises(ValueError, match="must be smaller"):
        traj.check_times(2, 2)

def test_context_manager_without_loader(valid_trajectory_data):
    with Trajectory(**valid_trajectory_data) as traj:
        assert traj.ntime == 3
    traj.close()
