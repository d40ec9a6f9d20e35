"""
Core trajectory data structure for molecular dynamics histories.
"""
from dataclasses import dataclass, field
import threading
import logging
import numpy as np
from typing import Optional, Callable, Dict, Sequence

from ..utils.helpers import check_time_range, validate_array_shape
from ..utils.units import DEFAULT_TIMESTEP_ATU, atu_to_ps

logger = logging.getLogger(__name__)

BASE_FIELDS = ('positions', 'box_vectors', 'stress', 'total_energy', 'time')
MD_SCALARS = ('kinetic_energy', 'temperature', 'pressure', 'entropy')
FRAME_FIELDS = BASE_FIELDS + ('velocities',) + MD_SCALARS

# Trailing shape of one frame for each field, natom excluded.
_FRAME_SHAPES = {
    'positions': (None, 3),
    'velocities': (None, 3),
    'box_vectors': (3, 3),
    'stress': (6,),
    'total_energy': (),
    'time': (),
    'kinetic_energy': (),
    'temperature': (),
    'pressure': (),
    'entropy': (),
}

LoaderTarget = Callable[['Trajectory', threading.Event], None]


@dataclass(eq=False)
class Trajectory:
    positions: np.ndarray      # (ntime, natom, 3) Bohr
    box_vectors: np.ndarray    # (ntime, 3, 3) Bohr, rows are lattice vectors
    stress: np.ndarray         # (ntime, 6) Ha/Bohr^3
    total_energy: np.ndarray   # (ntime,) Ha
    time: np.ndarray           # (ntime,) atomic time units
    znucl: np.ndarray          # atomic number of each species
    typat: np.ndarray          # 1-based species index of each atom
    velocities: Optional[np.ndarray] = None      # (ntime, natom, 3) Bohr/atu, None = not computed
    kinetic_energy: Optional[np.ndarray] = None  # Ha
    temperature: Optional[np.ndarray] = None     # K
    pressure: Optional[np.ndarray] = None        # GPa
    entropy: Optional[np.ndarray] = None         # Ha
    try_to_map: bool = False

    _ntime_avail: int = field(init=False, repr=False, default=0)
    _cond: threading.Condition = field(init=False, repr=False, default_factory=threading.Condition)
    _stop_event: threading.Event = field(init=False, repr=False, default_factory=threading.Event)
    _loader_thread: Optional[threading.Thread] = field(init=False, repr=False, default=None)
    _loading: bool = field(init=False, repr=False, default=False)

    def __post_init__(self):
        self.znucl = np.asarray(self.znucl, dtype=np.int64).reshape(-1)
        self.typat = np.asarray(self.typat, dtype=np.int64).reshape(-1)
        for name in FRAME_FIELDS:
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, np.asarray(value, dtype=np.float64))
        self._validate()
        self._ntime_avail = self.ntime

    def _validate(self) -> None:
        if self.positions.ndim != 3 or self.positions.shape[2] != 3:
            raise ValueError("Positions must be 3D (frames, atoms, xyz) and last dimension must be 3.")
        if self.velocities is not None and self.velocities.shape != self.positions.shape:
            raise ValueError(f"Velocities must have the positions shape {self.positions.shape}, "
                             f"got {self.velocities.shape}.")
        if len(np.unique(self.znucl)) != len(self.znucl):
            raise ValueError("znucl must not contain duplicated atomic numbers.")
        if self.positions.shape[1] != len(self.typat):
            raise ValueError("Atom count mismatch: positions, typat.")
        if len(self.typat) and (self.typat.min() < 1 or self.typat.max() > len(self.znucl)):
            raise ValueError(f"typat entries must lie in [1, {len(self.znucl)}].")

        ntime = self.positions.shape[0]
        for name in FRAME_FIELDS:
            value = getattr(self, name)
            if value is None or name in ('positions', 'velocities'):
                continue
            expected = (ntime,) + _FRAME_SHAPES[name]
            if value.shape != expected:
                raise ValueError(f"Frame count mismatch: {name} has shape {value.shape}, expected {expected}.")

        present = [getattr(self, name) is not None for name in MD_SCALARS]
        if any(present) and not all(present):
            raise ValueError("kinetic_energy, temperature, pressure and entropy must be given together.")

    @classmethod
    def empty(cls, znucl: Sequence[int], typat: Sequence[int], md_fields: bool = True,
              try_to_map: bool = False) -> 'Trajectory':
        """Zero-frame trajectory for a fixed species table."""
        natom = len(typat)
        scalars = {name: np.zeros(0) for name in MD_SCALARS} if md_fields else {}
        return cls(positions=np.zeros((0, natom, 3)), box_vectors=np.zeros((0, 3, 3)),
                   stress=np.zeros((0, 6)), total_energy=np.zeros(0), time=np.zeros(0),
                   znucl=znucl, typat=typat, try_to_map=try_to_map, **scalars)

    @property
    def ntime(self) -> int:
        return self.positions.shape[0]

    @property
    def natom(self) -> int:
        return len(self.typat)

    @property
    def nspecies(self) -> int:
        return len(self.znucl)

    @property
    def has_velocities(self) -> bool:
        return self.velocities is not None

    @property
    def has_md_fields(self) -> bool:
        return self.kinetic_energy is not None

    @property
    def ntime_avail(self) -> int:
        with self._cond:
            return self._ntime_avail

    @property
    def timestep(self) -> float:
        """Timestep in atomic time units, measured from the first two frames."""
        if self.ntime > 1:
            return float(self.time[1] - self.time[0])
        return DEFAULT_TIMESTEP_ATU

    @property
    def dtion_ps(self) -> float:
        return atu_to_ps(self.timestep)

    def frame_fields(self) -> Dict[str, np.ndarray]:
        """Every per-frame array currently present, keyed by attribute name."""
        return {name: getattr(self, name) for name in FRAME_FIELDS if getattr(self, name) is not None}

    def replace_frames(self, arrays: Dict[str, np.ndarray], available: Optional[int] = None) -> None:
        """
        Swap in a complete new set of per-frame arrays in one step.

        Every structural change (append, merge, interpolate, resize) goes through
        here so that co-dependent arrays never disagree on the frame count.

        Args:
            arrays: New arrays for every field that should be present; fields
                missing from the mapping become None.
            available: Number of leading frames already holding data (default: all)

        Raises:
            ValueError: If the arrays are inconsistent, in which case nothing is replaced
        """
        with self._cond:
            previous = self.frame_fields()
            for name in FRAME_FIELDS:
                value = arrays.get(name)
                setattr(self, name, None if value is None else np.asarray(value, dtype=np.float64))
            try:
                self._validate()
            except ValueError:
                for name in FRAME_FIELDS:
                    setattr(self, name, previous.get(name))
                raise
            self._ntime_avail = self.ntime if available is None else min(available, self.ntime)
            self._cond.notify_all()

    def with_md_fields(self) -> 'Trajectory':
        """Copy carrying zeroed MD scalar series when they were missing."""
        new = self.copy()
        if not new.has_md_fields:
            arrays = new.frame_fields()
            arrays.update({name: np.zeros(new.ntime) for name in MD_SCALARS})
            new.replace_frames(arrays)
        return new

    def copy(self) -> 'Trajectory':
        """Deep, independent copy. Loader state is not copied."""
        self.wait_time(self.ntime - 1)
        arrays = {name: value.copy() for name, value in self.frame_fields().items()}
        return Trajectory(znucl=self.znucl.copy(), typat=self.typat.copy(),
                          try_to_map=self.try_to_map, **arrays)

    def _resized(self, ntime: int, arrays: Optional[Dict[str, np.ndarray]] = None) -> Dict[str, np.ndarray]:
        if ntime < 0:
            raise ValueError(f"ntime must be >= 0, got {ntime}.")
        resized = {}
        for name, value in (self.frame_fields() if arrays is None else arrays).items():
            new = np.zeros((ntime,) + value.shape[1:], dtype=np.float64)
            keep = min(ntime, value.shape[0])
            new[:keep] = value[:keep]
            resized[name] = new
        return resized

    def resize(self, ntime: int) -> None:
        """Resize every per-frame array to ntime frames (zero padded or truncated)."""
        self.replace_frames(self._resized(ntime))

    def append_frame(self, position: np.ndarray, box_vectors: np.ndarray, stress: np.ndarray,
                     total_energy: float, time: float, velocity: Optional[np.ndarray] = None,
                     **md_values: float) -> None:
        """
        Append one frame at the end of the trajectory.

        Args:
            position: (natom, 3) Cartesian positions
            box_vectors: (3, 3) lattice vectors
            stress: 6 stress components
            total_energy: Total energy
            time: Simulation time
            velocity: Optional (natom, 3) velocities
            **md_values: kinetic_energy, temperature, pressure, entropy
        """
        unknown = set(md_values) - set(MD_SCALARS)
        if unknown:
            raise ValueError(f"Unknown frame fields: {sorted(unknown)}")
        self.wait_time(self.ntime - 1)
        t = self.ntime
        previous = self.frame_fields()
        arrays = dict(previous)
        if velocity is not None and 'velocities' not in arrays:
            arrays['velocities'] = np.zeros_like(self.positions)
        if md_values and not self.has_md_fields:
            arrays.update({name: np.zeros(t) for name in MD_SCALARS})
        self.replace_frames(self._resized(t + 1, arrays), available=t)
        try:
            self.set_frame(t, position=position, box_vectors=box_vectors, stress=stress,
                           total_energy=total_energy, time=time, velocity=velocity, **md_values)
        except ValueError:
            self.replace_frames(previous)
            raise
        self.mark_available(t + 1)

    def set_frame(self, t: int, position: Optional[np.ndarray] = None,
                  box_vectors: Optional[np.ndarray] = None, stress: Optional[np.ndarray] = None,
                  total_energy: Optional[float] = None, time: Optional[float] = None,
                  velocity: Optional[np.ndarray] = None, **md_values: float) -> None:
        """Write values into an already allocated frame slot."""
        self._check_index(t)
        values = {'positions': position, 'box_vectors': box_vectors, 'stress': stress,
                  'total_energy': total_energy, 'time': time, 'velocities': velocity}
        values.update(md_values)
        for name, value in values.items():
            if value is None:
                continue
            if name not in FRAME_FIELDS:
                raise ValueError(f"Unknown frame field: {name}")
            target = getattr(self, name)
            if target is None:
                raise ValueError(f"Trajectory has no {name} to write into.")
            value = np.asarray(value, dtype=np.float64)
            validate_array_shape(value, target.shape[1:], f"{name} frame")
            target[t] = value

    # Bounds-checked accessors

    def _check_index(self, t: int) -> None:
        if not 0 <= t < self.ntime:
            raise IndexError(f"Frame index {t} out of range [0, {self.ntime}).")

    def _get(self, name: str, t: int):
        self._check_index(t)
        value = getattr(self, name)
        if value is None:
            raise ValueError(f"Trajectory has no {name}.")
        self.wait_time(t)
        return value[t]

    def get_position(self, t: int) -> np.ndarray:
        return self._get('positions', t)

    def get_box(self, t: int) -> np.ndarray:
        return self._get('box_vectors', t)

    def get_stress(self, t: int) -> np.ndarray:
        return self._get('stress', t)

    def get_total_energy(self, t: int) -> float:
        return float(self._get('total_energy', t))

    def get_time(self, t: int) -> float:
        return float(self._get('time', t))

    def get_velocity(self, t: int) -> np.ndarray:
        return self._get('velocities', t)

    def get_kinetic_energy(self, t: int) -> float:
        return float(self._get('kinetic_energy', t))

    def get_temperature(self, t: int) -> float:
        return float(self._get('temperature', t))

    def get_pressure(self, t: int) -> float:
        return float(self._get('pressure', t))

    def get_entropy(self, t: int) -> float:
        return float(self._get('entropy', t))

    def volumes(self) -> np.ndarray:
        return np.linalg.det(self.box_vectors) if self.ntime else np.zeros(0)

    def check_times(self, tbegin: int, tend: int) -> None:
        """Validate [tbegin, tend) and wait until those frames are loaded."""
        check_time_range(tbegin, tend, self.ntime)
        self.wait_time(tend - 1)

    # Loader ownership

    def start_loader(self, target: LoaderTarget) -> None:
        """
        Run target(trajectory, stop_event) on a loader thread owned by this trajectory.

        The target reserves frames with reserve() and publishes them with
        mark_available(); it must return once stop_event is set.

        The running thread holds a reference to this trajectory, so garbage
        collection cannot stop it: call close() or use the trajectory as a
        context manager to stop and join the loader.
        """
        if self._loader_thread is not None and self._loader_thread.is_alive():
            raise RuntimeError("A loader thread is already running for this trajectory.")
        self._stop_event.clear()
        with self._cond:
            self._loading = True

        def _run():
            try:
                target(self, self._stop_event)
            except Exception:
                logger.exception("Trajectory loader failed.")
                raise
            finally:
                with self._cond:
                    self._loading = False
                    self._cond.notify_all()

        self._loader_thread = threading.Thread(target=_run, name="mdhist-loader", daemon=True)
        self._loader_thread.start()

    def reserve(self, ntime: int) -> None:
        """Allocate ntime frames for a loader; none of them is available yet."""
        self.replace_frames(self._resized(ntime), available=0)

    def mark_available(self, ntime_avail: int) -> None:
        with self._cond:
            self._ntime_avail = min(max(ntime_avail, self._ntime_avail), self.ntime)
            self._cond.notify_all()

    def wait_time(self, t: int) -> None:
        """Block until frame t is loaded or the loader has stopped."""
        if t < 0:
            return
        with self._cond:
            while self._ntime_avail <= t and self._loading:
                self._cond.wait(timeout=0.1)

    def close(self) -> None:
        """Signal the loader to stop and join it."""
        thread = self._loader_thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join()
        self._loader_thread = None
        logger.debug("Loader thread joined.")

    def __enter__(self) -> 'Trajectory':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        # Partially constructed instances may lack the loader attributes.
        if getattr(self, '_loader_thread', None) is not None:
            self.close()
