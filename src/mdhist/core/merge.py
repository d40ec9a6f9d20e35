"""
Concatenation of two trajectories with atom-identity reconciliation.
"""
from dataclasses import dataclass, field
import logging
import numpy as np
from typing import Callable, List, Optional, Sequence

from .trajectory import Trajectory, MD_SCALARS
from ..utils.helpers import relative_deviation

logger = logging.getLogger(__name__)

# matcher(target, other) -> order, with other atom order[i] matching target atom i
StructureMatcher = Callable[[Trajectory, Trajectory], Sequence[int]]

TIMESTEP_TOLERANCE = 1e-6
DRIFT_TOLERANCE = 0.5


@dataclass
class MergeReport:
    ntime_before: int
    ntime_added: int
    reordered: bool = False
    order: Optional[np.ndarray] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ntime(self) -> int:
        return self.ntime_before + self.ntime_added


def _warn(report: MergeReport, message: str) -> None:
    logger.warning(message)
    report.warnings.append(message)


def _mean(values: Optional[np.ndarray]) -> float:
    return float(np.mean(values)) if values is not None and values.size else 0.0


def _match(target: Trajectory, other: Trajectory, matcher: Optional[StructureMatcher]) -> np.ndarray:
    if matcher is None:
        raise ValueError("Atom mapping requested but no structure matcher was provided.")
    try:
        order = np.asarray(matcher(target, other), dtype=np.int64)
    except Exception as e:
        # Matching is expected to have been validated before merging.
        raise RuntimeError(f"Unable to map structures: {e}") from e
    if order.shape != (target.natom,) or not np.array_equal(np.sort(order), np.arange(target.natom)):
        raise RuntimeError(f"Unable to map structures: matcher returned an invalid permutation {order.tolist()}.")
    return order


def merge(target: Trajectory, other: Trajectory, matcher: Optional[StructureMatcher] = None,
          try_to_map: Optional[bool] = None) -> MergeReport:
    """
    Append other at the end of target, in place.

    other is never modified. Timestep and temperature/pressure drift checks only
    warn; the merge always completes once the preconditions hold.

    Args:
        target: Trajectory receiving the frames
        other: Trajectory to append
        matcher: Structure matcher returning the atom permutation of other
        try_to_map: Reorder atoms of other through matcher (default: target.try_to_map)

    Returns:
        MergeReport describing what was done

    Raises:
        ValueError: If the atom counts or species differ
        RuntimeError: If the structure matcher fails
    """
    target.wait_time(target.ntime - 1)
    other.wait_time(other.ntime - 1)
    if target.natom != other.natom:
        raise ValueError(f"Cannot merge trajectories with {target.natom} and {other.natom} atoms.")
    if not (np.array_equal(target.znucl, other.znucl) and np.array_equal(target.typat, other.typat)):
        raise ValueError("Cannot merge trajectories with different species tables.")

    n1, n2 = target.ntime, other.ntime
    report = MergeReport(ntime_before=n1, ntime_added=n2)

    if n1 > 1 and n2 > 1 and abs(target.timestep - other.timestep) > TIMESTEP_TOLERANCE:
        _warn(report, f"Timesteps differ ({target.timestep} vs {other.timestep}). "
                      "Be very careful with the analysis.")

    if target.has_md_fields and other.has_md_fields and n1 and n2:
        for name in ('temperature', 'pressure'):
            mean1, mean2 = _mean(getattr(target, name)), _mean(getattr(other, name))
            if relative_deviation(mean1, mean2) > DRIFT_TOLERANCE:
                _warn(report, f"Mean {name}s seem very different ({mean1:.4g} vs {mean2:.4g}, +50%). "
                              "Be very careful with the analysis.")

    if try_to_map is None:
        try_to_map = target.try_to_map
    if try_to_map:
        order = _match(target, other, matcher)
        report.order = order
        report.reordered = bool(np.any(order != np.arange(target.natom)))
        if report.reordered:
            logger.info("Reordering atoms of the appended trajectory.")

    def tail(name: str) -> np.ndarray:
        value = getattr(other, name)
        if value is None:
            value = np.zeros((n2,) + getattr(target, name).shape[1:])
        elif report.reordered and name in ('positions', 'velocities'):
            value = value[:, report.order, :]
        return value

    def head(name: str) -> np.ndarray:
        value = getattr(target, name)
        if value is None:
            return np.zeros((n1,) + getattr(other, name).shape[1:])
        return value

    arrays = {name: np.concatenate([target.frame_fields()[name], tail(name)])
              for name in ('positions', 'box_vectors', 'stress', 'total_energy', 'time')}

    if target.has_velocities or other.has_velocities:
        if target.has_velocities != other.has_velocities:
            logger.debug("Zero-filling velocities of the trajectory that had none.")
        arrays['velocities'] = np.concatenate([head('velocities'), tail('velocities')])

    if target.has_md_fields or other.has_md_fields:
        for name in MD_SCALARS:
            arrays[name] = np.concatenate([head(name), tail(name)])

    target.replace_frames(arrays)
    logger.info(f"Merged {n2} frames into trajectory of {n1} frames ({target.ntime} total).")
    return report
