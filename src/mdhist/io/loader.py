"""
Trajectory loading module.

Frames come from a mapping of arrays or a ``.npz`` archive holding the same
keys; they are streamed into a Trajectory either synchronously or on the
loader thread owned by that trajectory.
"""
import numpy as np
from pathlib import Path
import logging
import threading
from typing import Mapping, Optional, Union
from tqdm import tqdm

from ..core.trajectory import Trajectory, MD_SCALARS
from ..core.derivation import derive_velocity

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ('positions', 'box_vectors', 'stress', 'total_energy', 'time', 'znucl', 'typat')

class TrajectoryLoader:
    def __init__(self, source: Union[str, Path, Mapping[str, np.ndarray]],
                 derive_velocities: bool = False, background: bool = False,
                 try_to_map: bool = False):
        if isinstance(source, (str, Path)):
            self.filepath: Optional[Path] = Path(source)
            if not self.filepath.exists():
                raise FileNotFoundError(f"Trajectory file not found: {source}")
            if self.filepath.suffix.lower() != '.npz':
                raise ValueError(f"Unsupported trajectory file {self.filepath.name}; expected a .npz archive.")
            self._source = None
        else:
            self.filepath = None
            self._source = source
        self.derive_velocities = derive_velocities
        self.background = background
        self.try_to_map = try_to_map

    def _read_arrays(self) -> dict:
        if self.filepath is not None:
            logger.info(f"Reading trajectory arrays from {self.filepath.name}.")
            with np.load(self.filepath) as archive:
                data = {key: archive[key] for key in archive.files}
        else:
            data = dict(self._source)
        missing = [key for key in REQUIRED_KEYS if key not in data]
        if missing:
            raise KeyError(f"Trajectory source is missing required arrays: {missing}")
        present = [key for key in MD_SCALARS if key in data]
        if present and len(present) != len(MD_SCALARS):
            logger.warning(f"Incomplete MD scalar series {present}; missing ones are set to zero.")
        return data

    def load(self) -> Trajectory:
        data = self._read_arrays()
        positions = np.asarray(data['positions'], dtype=np.float64)
        if positions.ndim != 3 or positions.shape[2] != 3:
            raise ValueError("Positions must be 3D (frames, atoms, xyz) and last dimension must be 3.")
        n_frames = positions.shape[0]
        has_vel = 'velocities' in data and data['velocities'] is not None
        has_md = any(key in data for key in MD_SCALARS) or self.derive_velocities

        traj = Trajectory.empty(data['znucl'], data['typat'], md_fields=has_md, try_to_map=self.try_to_map)
        if has_vel:
            traj.replace_frames(dict(traj.frame_fields(), velocities=np.zeros((0, traj.natom, 3))))
        traj.reserve(n_frames)

        def _stream(target: Trajectory, stop_event: threading.Event) -> None:
            for i in tqdm(range(n_frames), desc="Loading frames", unit="fr", disable=n_frames < 100):
                if stop_event.is_set():
                    logger.info(f"Loader stopped after {i} of {n_frames} frames.")
                    return
                md_values = {key: float(data[key][i]) for key in MD_SCALARS if key in data}
                target.set_frame(i, position=positions[i], box_vectors=data['box_vectors'][i],
                                 stress=data['stress'][i], total_energy=float(data['total_energy'][i]),
                                 time=float(data['time'][i]),
                                 velocity=data['velocities'][i] if has_vel else None, **md_values)
                target.mark_available(i + 1)
                if self.derive_velocities and i > 0:
                    derive_velocity(target, i)
            logger.info(f"Trajectory loaded: {n_frames} frames, {target.natom} atoms.")

        if self.background:
            traj.start_loader(_stream)
        else:
            _stream(traj, threading.Event())
        return traj
