"""
Linear resampling of a trajectory between consecutive frames.
"""
import logging
import numpy as np
from typing import List, Tuple

from .trajectory import Trajectory

logger = logging.getLogger(__name__)

DUPLICATE_TOLERANCE = 1e-10


def interpolation_schedule(ntime: int, ninter: int, amplitude: float) -> Tuple[int, List[Tuple[int, int, int, float]]]:
    """
    Blend schedule shared by every field.

    Segments are walked from the last to the first. Each entry is
    (out_index, last_step, first_step, beta) and the output frame is
    (1 - beta) * frame[last_step] + beta * frame[first_step].

    Returns:
        Tuple of (new frame count, schedule entries)
    """
    remove_duplicates = abs(amplitude - 1.0) < DUPLICATE_TOLERANCE
    new_ntime = ninter * (ntime - 1)
    if remove_duplicates:
        new_ntime -= ntime - 2

    alpha = amplitude / (ninter - 1)
    schedule = []
    current = new_ntime - 1
    for last_step in range(ntime - 1, 0, -1):
        first_step = last_step - 1
        for k in range(ninter):
            schedule.append((current, last_step, first_step, k * alpha))
            current -= 1
        if remove_duplicates:
            # Next segment starts on the frame this one ended with.
            current += 1
    return new_ntime, schedule


def interpolate(traj: Trajectory, ninter: int, amplitude: float = 1.0) -> None:
    """
    Replace the frames of traj by ninter blended frames per segment.

    Args:
        traj: Trajectory to resample in place
        ninter: Number of sub-steps per pair of consecutive frames (>= 2)
        amplitude: Blend amplitude in [0, 1]; 1 reproduces every original frame

    Raises:
        ValueError: On invalid arguments or fewer than 2 frames
    """
    traj.wait_time(traj.ntime - 1)
    if traj.ntime < 2:
        raise ValueError(f"Interpolation needs at least 2 frames, got {traj.ntime}.")
    if ninter < 2:
        raise ValueError(f"ninter must be >= 2, got {ninter}.")
    if not 0.0 <= amplitude <= 1.0:
        raise ValueError(f"amplitude must lie in [0, 1], got {amplitude}.")

    new_ntime, schedule = interpolation_schedule(traj.ntime, ninter, amplitude)
    entries = np.array(schedule, dtype=np.float64)
    # A shared output index keeps the entry written last in the walk.
    _, rev_first = np.unique(entries[::-1, 0].astype(np.int64), return_index=True)
    entries = entries[len(entries) - 1 - rev_first]
    out_idx = entries[:, 0].astype(np.int64)
    last = entries[:, 1].astype(np.int64)
    first = entries[:, 2].astype(np.int64)
    beta = entries[:, 3]

    arrays = {}
    for name, values in traj.frame_fields().items():
        b = beta.reshape((-1,) + (1,) * (values.ndim - 1))
        out = np.zeros((new_ntime,) + values.shape[1:], dtype=np.float64)
        out[out_idx] = (1.0 - b) * values[last] + b * values[first]
        arrays[name] = out

    logger.info(f"Interpolated {traj.ntime} frames into {new_ntime} (ninter={ninter}, amplitude={amplitude}).")
    traj.replace_frames(arrays)
