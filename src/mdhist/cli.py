import argparse
import logging
import sys
import numpy as np

from mdhist.io.loader import TrajectoryLoader
from mdhist.core.derivation import derive_all
from mdhist.core.resample import interpolate
from mdhist.core.spectral import Spectrum, compute_vacf, compute_pdos, smearing_from_temperature
from mdhist.core.thermo import ThermoFunctions, compute_thermo, harmonic_thermo, thermo_curve, frequency_step
from mdhist.core.aggregate import thermo_summary
from mdhist.utils.config_manager import ConfigManager
from mdhist.utils.units import HA_EV

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)

FUNCTIONS = ('summary', 'thermo', 'vacf', 'pdos', 'thermo-curve')

def _print_spectrum(spectrum: Spectrum) -> None:
    print("# " + spectrum.xlabel + "  " + "  ".join(spectrum.labels) + f"  ({spectrum.ylabel})")
    for i, x in enumerate(spectrum.x):
        print(f"{x:14.6e} " + " ".join(f"{c:14.6e}" for c in spectrum.curves[:, i]))

def _mean_temperature(traj, tbegin: int, tend: int) -> float:
    traj.check_times(tbegin, tend)
    if not traj.has_md_fields:
        raise ValueError("Trajectory has no temperature; use --derive-velocities.")
    return float(np.mean(traj.temperature[tbegin:tend]))

def _reference_energy(traj, tbegin: int, tend: int) -> float:
    """Mean total energy in eV/atom."""
    if traj.natom == 0:
        raise ValueError("Trajectory has no atoms.")
    return float(np.mean(traj.total_energy[tbegin:tend])) * HA_EV / traj.natom

def _smeared_pdos(traj, tbegin: int, tend: int, an_cfg: dict, temperature: float):
    tsmear = an_cfg['tsmear']
    if tsmear is None:
        tsmear = 0.05 * temperature
    logger.info(f"Smearing [K]: {tsmear}")
    smearing = smearing_from_temperature(tsmear, traj.dtion_ps)
    return compute_pdos(traj, tbegin, tend, smearing, an_cfg['workers'])

def _print_thermo(thermo: ThermoFunctions, e0: float) -> None:
    print("Thermodynamic functions in the Harmonic Approximation")
    print(f"E_0   = {e0} eV/atom")
    print(f"F_vib = {thermo.free_energy} eV/atom")
    print(f"E_vib = {thermo.internal_energy} eV/atom")
    print(f"C_v   = {thermo.heat_capacity} kB/atom")
    print(f"S_vib = {thermo.entropy} kB/atom")
    print(f"F_tot = {thermo.free_energy + e0} eV/atom")

def main(argv=None):
    parser = argparse.ArgumentParser(description='Molecular dynamics history analysis.')
    parser.add_argument('--trajectory', type=str, required=True, help='Path to a .npz trajectory archive.')
    parser.add_argument('--config', type=str, help='Path to YAML configuration file.')
    parser.add_argument('--function', choices=FUNCTIONS, default='summary', help='Quantity to compute.')
    parser.add_argument('--tbegin', type=int, help='First frame (overrides config).')
    parser.add_argument('--tend', type=int, help='Last frame, excluded (overrides config).')
    parser.add_argument('--tsmear', type=float, help='PDOS smearing in K (overrides config).')
    parser.add_argument('--derive-velocities', action='store_true', help='Recompute velocities from positions.')
    args = parser.parse_args(argv)

    try:
        cfg = ConfigManager(args.config)
        overrides = {'analysis': {k: v for k, v in (('tbegin', args.tbegin), ('tend', args.tend),
                                                     ('tsmear', args.tsmear)) if v is not None}}
        if args.derive_velocities:
            overrides['trajectory'] = {'derive_velocities': True}
        cfg.update_config(overrides)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        raise SystemExit(1)
    traj_cfg, an_cfg = cfg.get_trajectory_config(), cfg.get_analysis_config()

    try:
        traj = TrajectoryLoader(args.trajectory, try_to_map=traj_cfg['try_to_map']).load()
        if traj_cfg['derive_velocities']:
            derive_all(traj)
        if an_cfg['ninter']:
            interpolate(traj, an_cfg['ninter'], an_cfg['amplitude'])

        tbegin = an_cfg['tbegin']
        tend = an_cfg['tend'] if an_cfg['tend'] is not None else traj.ntime
        workers = an_cfg['workers']

        if args.function == 'summary':
            print(thermo_summary(traj, tbegin, tend).format())
        elif args.function == 'vacf':
            _print_spectrum(compute_vacf(traj, tbegin, tend, workers))
        elif args.function == 'pdos':
            temperature = _mean_temperature(traj, tbegin, tend)
            pdos = _smeared_pdos(traj, tbegin, tend, an_cfg, temperature)
            _print_spectrum(pdos)
            thermo = harmonic_thermo(pdos.total, temperature, frequency_step(traj, len(pdos.x)),
                                     an_cfg['omega_max'])
            _print_thermo(thermo, _reference_energy(traj, tbegin, tend))
        elif args.function == 'thermo':
            thermo = compute_thermo(traj, tbegin, tend, an_cfg['omega_max'])
            _print_thermo(thermo, _reference_energy(traj, tbegin, tend))
        else:
            temperature = _mean_temperature(traj, tbegin, tend)
            print(f"# E_0 = {_reference_energy(traj, tbegin, tend)} eV/atom")
            pdos = _smeared_pdos(traj, tbegin, tend, an_cfg, temperature).total
            curve = thermo_curve(pdos, temperature, frequency_step(traj, len(pdos)),
                                 an_cfg['thermo_points'], an_cfg['omega_max'])
            print("# Temperature [K]  " + "  ".join(curve.labels))
            for row in zip(curve.temperatures, curve.free_energy, curve.internal_energy,
                           curve.heat_capacity, curve.entropy):
                print(" ".join(f"{v:14.6e}" for v in row))
    except (FileNotFoundError, KeyError, ValueError, ImportError) as e:
        logger.error(f"Analysis failed: {e}")
        raise SystemExit(1)
    return 0

if __name__ == '__main__':
    sys.exit(main())
