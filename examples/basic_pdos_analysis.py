#!/usr/bin/env python3
"""
Basic PDOS Analysis Example

This script builds a small synthetic trajectory of harmonic oscillators,
merges two runs, and computes the VACF, the phonon DOS and the harmonic
thermodynamic functions with the mdhist package.
"""

from pathlib import Path
import numpy as np

from mdhist import (Trajectory, merge, derive_all, compute_vacf, compute_pdos,
                    smearing_from_temperature, compute_thermo, thermo_summary)

def harmonic_run(ntime, dt, t0=0.0, seed=0):
    """Atoms oscillating around random sites at frequencies of a few THz."""
    rng = np.random.default_rng(seed)
    natom = 8
    lattice = rng.random((natom, 3)) * 10.0
    omegas = rng.uniform(1e-3, 3e-3, size=(natom, 3))   # rad per atomic time unit
    phases = rng.uniform(0.0, 2.0 * np.pi, size=(natom, 3))
    time = t0 + np.arange(ntime) * dt
    positions = lattice + 0.05 * np.sin(omegas * time[:, None, None] + phases)
    return Trajectory(positions=positions, box_vectors=np.tile(np.eye(3) * 10.0, (ntime, 1, 1)),
                      stress=np.zeros((ntime, 6)), total_energy=np.full(ntime, -30.0),
                      time=time, znucl=[14], typat=[1] * natom)

def main():
    output_dir = Path("pdos_output")
    output_dir.mkdir(exist_ok=True)

    print("Building trajectories...")
    dt = 40.0
    traj = harmonic_run(2000, dt)
    report = merge(traj, harmonic_run(2000, dt, t0=2000 * dt))
    print(f"Merged trajectory: {report.ntime} frames, warnings: {report.warnings}")

    print("Deriving velocities...")
    derive_all(traj)
    print(thermo_summary(traj, 0, traj.ntime).format())

    print("Calculating VACF...")
    vacf = compute_vacf(traj, 0, traj.ntime)
    np.savetxt(output_dir / "vacf.dat", np.column_stack([vacf.x, vacf.curves.T]),
               header="  ".join([vacf.xlabel] + vacf.labels))

    print("Calculating PDOS...")
    tsmear = 0.05 * float(np.mean(traj.temperature))
    pdos = compute_pdos(traj, 0, traj.ntime, smearing_from_temperature(tsmear, traj.dtion_ps))
    np.savetxt(output_dir / "pdos.dat", np.column_stack([pdos.x, pdos.curves.T]),
               header="  ".join([pdos.xlabel] + pdos.labels))

    thermo = compute_thermo(traj, 0, traj.ntime)
    print(f"F_vib = {thermo.free_energy:.6f} eV/atom")
    print(f"C_v   = {thermo.heat_capacity:.6f} kB/atom")
    print(f"Results saved in {output_dir}")

if __name__ == "__main__":
    main()
