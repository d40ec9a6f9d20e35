import pytest
import threading
from concurrent.futures import ThreadPoolExecutor
import numpy as np
from mdhist.core.spectral import (Spectrum, autocorrelation, compute_vacf, compute_pdos,
                                  gaussian_smear, smearing_from_temperature)
from mdhist.core.backend import create_plan, destroy_plan, cosine_plan
from mdhist.core.trajectory import Trajectory
from mdhist.utils.units import VEL2_NM2_PS2, THZ_EV

from conftest import trajectory_arrays

def constant_velocity(ntime=20, a=1e-3, b=2e-3):
    """Si atoms move with (a, a, a), O atoms with (b, b, b)."""
    data = trajectory_arrays(ntime=ntime)
    data["velocities"][:, :2, :] = a
    data["velocities"][:, 2:, :] = b
    return Trajectory(**data)

def test_autocorrelation_unbiased():
    signal = np.array([[1.0], [2.0], [3.0]])
    acf = autocorrelation(signal)
    np.testing.assert_allclose(acf[:, 0], [(1 + 4 + 9) / 3, (2 + 6) / 2, 3.0])
    with pytest.raises(ValueError):
        autocorrelation(np.zeros((0, 2)))

def test_vacf_constant_velocity():
    a, b = 1e-3, 2e-3
    traj = constant_velocity(a=a, b=b)
    vacf = compute_vacf(traj, 0, 20)

    assert vacf.labels == ["All", "Si", "O"]
    assert len(vacf) == 3
    assert vacf.curves.shape == (3, 20)
    np.testing.assert_allclose(vacf.bucket("Si"), a ** 2 * VEL2_NM2_PS2)
    np.testing.assert_allclose(vacf.bucket("O"), b ** 2 * VEL2_NM2_PS2)
    np.testing.assert_allclose(vacf.total, 0.5 * (a ** 2 + b ** 2) * VEL2_NM2_PS2)
    assert vacf.x[0] == 0.0
    assert vacf.x[1] == pytest.approx(traj.dtion_ps)

def test_vacf_time_window():
    traj = Trajectory(**trajectory_arrays(ntime=30))
    vacf = compute_vacf(traj, 10, 25, workers=2)
    assert vacf.curves.shape == (3, 15)
    expected = np.mean(traj.velocities[10:25] ** 2) * VEL2_NM2_PS2
    assert vacf.total[0] == pytest.approx(expected)

def test_vacf_empty_species():
    data = trajectory_arrays(ntime=5)
    data["typat"] = np.array([1, 1, 1, 1])
    vacf = compute_vacf(Trajectory(**data), 0, 5)
    np.testing.assert_array_equal(vacf.bucket("O"), 0.0)
    np.testing.assert_allclose(vacf.bucket("Si"), vacf.total)

def test_vacf_errors():
    traj = Trajectory(**trajectory_arrays(ntime=5, velocities=False))
    with pytest.raises(ValueError, match="no velocities"):
        compute_vacf(traj, 0, 5)
    with pytest.raises(ValueError, match="VACF calculation failed"):
        compute_vacf(Trajectory(**trajectory_arrays(ntime=5)), 3, 8)

def test_spectrum_bucket_lookup():
    spec = Spectrum(x=np.arange(3), curves=np.ones((2, 3)), labels=["All", "Si"])
    np.testing.assert_array_equal(spec.bucket("Si"), np.ones(3))
    assert [c.shape for c in spec] == [(3,), (3,)]
    with pytest.raises(KeyError):
        spec.bucket("Fe")

def test_pdos_constant_velocity():
    a, b = 1e-3, 2e-3
    n = 20
    traj = constant_velocity(ntime=n, a=a, b=b)
    pdos = compute_pdos(traj, 0, n)

    assert pdos.labels == ["All", "Si", "O"]
    assert pdos.curves.shape == (3, n)
    zero_freq = 2.0 * n * a ** 2 * VEL2_NM2_PS2
    assert pdos.bucket("Si")[0] == pytest.approx(zero_freq)
    np.testing.assert_allclose(pdos.bucket("Si")[1:], 0.0, atol=1e-9 * zero_freq)
    assert pdos.x[1] == pytest.approx(THZ_EV * 1e3 / (2.0 * traj.dtion_ps * n))

def test_pdos_smearing():
    n = 16
    traj = constant_velocity(ntime=n)
    raw = compute_pdos(traj, 0, n)
    sigma = 0.05
    smeared = compute_pdos(traj, 0, n, smearing=sigma, workers=2)
    assert smeared.curves.shape == raw.curves.shape
    np.testing.assert_allclose(smeared.curves, np.vstack([gaussian_smear(c, sigma) for c in raw.curves]))
    # A single peak at bin 0 becomes a decreasing half Gaussian.
    assert np.all(np.diff(smeared.total[:5]) < 0)

@pytest.mark.parametrize("smearing", [0.0, -0.1])
def test_pdos_invalid_smearing(smearing):
    traj = constant_velocity()
    with pytest.raises(ValueError, match="Smearing needs to be positive"):
        compute_pdos(traj, 0, 20, smearing=smearing)

def test_pdos_wraps_vacf_errors():
    traj = Trajectory(**trajectory_arrays(ntime=5, velocities=False))
    with pytest.raises(ValueError, match="PDOS calculation failed"):
        compute_pdos(traj, 0, 5)

def test_gaussian_smear_single_bin():
    n, sigma = 8, 0.1
    amplitudes = np.zeros(n)
    amplitudes[3] = 1.0
    smeared = gaussian_smear(amplitudes, sigma)
    offsets = (np.arange(n) - 3) / n
    expected = np.exp(-offsets ** 2 / (2 * sigma ** 2)) / (sigma * np.sqrt(2 * np.pi))
    np.testing.assert_allclose(smeared, expected, atol=1e-12)

def test_smearing_from_temperature():
    assert smearing_from_temperature(20.0, 1e-3) == pytest.approx(2.0 * smearing_from_temperature(10.0, 1e-3))
    with pytest.raises(ValueError):
        smearing_from_temperature(0.0, 1e-3)

def test_cosine_plan_lifecycle():
    plan = create_plan(4, 1)
    np.testing.assert_allclose(plan.execute(np.ones(4)), [8.0, 0.0, 0.0, 0.0], atol=1e-12)
    with pytest.raises(ValueError, match="length"):
        plan.execute(np.ones(5))
    destroy_plan(plan)
    with pytest.raises(RuntimeError, match="destroyed"):
        plan.execute(np.ones(4))
    with cosine_plan(3, 2) as scoped:
        assert scoped.execute(np.ones((2, 3))).shape == (2, 3)
    with pytest.raises(ValueError):
        create_plan(0, 1)

def test_missing_backend_is_reported(monkeypatch):
    from mdhist.core import backend
    from mdhist.core.thermo import compute_thermo
    monkeypatch.setattr(backend, "SPECTRAL_BACKEND_AVAILABLE", False)
    traj = constant_velocity(ntime=8)

    with pytest.raises(ImportError, match="scipy"):
        create_plan(8, 1)
    with pytest.raises(ImportError, match="PDOS calculation failed") as pdos_error:
        compute_pdos(traj, 0, 8)
    assert isinstance(pdos_error.value.__cause__, ImportError)
    with pytest.raises(ImportError, match="Unable to compute thermodynamic functions") as thermo_error:
        compute_thermo(traj, 0, 8)
    assert thermo_error.value.__cause__ is not None
    # The VACF needs no transform backend.
    assert compute_vacf(traj, 0, 8).curves.shape == (3, 8)

def test_plan_creation_waits_for_plan_lock():
    from mdhist.core import backend
    created = []
    backend._PLAN_LOCK.acquire()
    try:
        worker = threading.Thread(target=lambda: created.append(create_plan(4, 1)))
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert created == []
    finally:
        backend._PLAN_LOCK.release()
    worker.join(timeout=5.0)
    assert not worker.is_alive()
    assert created[0].n == 4

def test_concurrent_pdos_on_one_trajectory():
    traj = Trajectory(**trajectory_arrays(ntime=64))
    smearing = 0.02
    reference = compute_pdos(traj, 0, 64, smearing=smearing)
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda w: compute_pdos(traj, 0, 64, smearing=smearing, workers=w),
                                [1, 2, 3, 4, 1, 2, 3, 4]))
    for result in results:
        np.testing.assert_allclose(result.curves, reference.curves, rtol=1e-12, atol=1e-12 * np.abs(reference.curves).max())
        np.testing.assert_array_equal(result.x, reference.x)
