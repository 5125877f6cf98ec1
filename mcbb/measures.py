"""Per-trial measures: evaluator factory and measure layout inspection.

A reduced trial result is a sequence of measures. A measure is either
evaluated per state dimension (an array of length ``N_dim``) or globally
(a scalar). For one-dimensional systems the two cannot be told apart and
every measure counts as per-dimension.
"""

from typing import Any, Callable, Dict, List, Sequence, Tuple

import numpy as np
from scipy import stats

from mcbb.errors import ShapeError
from mcbb.problem import CustomSolution

# Reductions over the time axis of an (N_dim, N_t) trajectory
DIM_STATISTICS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "mean": lambda x: np.mean(x, axis=1),
    "std": lambda x: np.std(x, axis=1),
    "skewness": lambda x: stats.skew(x, axis=1),
    "kurtosis": lambda x: stats.kurtosis(x, axis=1),
    "min": lambda x: np.min(x, axis=1),
    "max": lambda x: np.max(x, axis=1),
}

# Reductions over the whole trajectory to a single number
GLOBAL_STATISTICS: Dict[str, Callable[[np.ndarray], float]] = {
    "mean": lambda x: float(np.mean(x)),
    "std": lambda x: float(np.std(x)),
    # Time-averaged Kuramoto order parameter, states read as phases
    "order_parameter": lambda x: float(np.mean(np.abs(np.mean(np.exp(1j * x), axis=0)))),
}


def make_statistics_evaluator(
    measures: Sequence[str] = ("mean", "std"),
    global_measures: Sequence[str] = (),
) -> Callable[[CustomSolution, int], Tuple[Tuple[Any, ...], bool]]:
    """Build an evaluator reducing a trajectory to summary statistics.

    The reduced result is a tuple with one ``N_dim``-long array per entry of
    ``measures`` followed by one float per entry of ``global_measures``.
    A zero-length trajectory yields NaN in every slot, keeping that layout.

    Args:
        measures: Names from ``DIM_STATISTICS``.
        global_measures: Names from ``GLOBAL_STATISTICS``.

    Returns:
        Evaluator ``(solution, trial_index) -> (measures, False)``.

    Raises:
        ValueError: On an unknown statistic name or if no measure is requested.
    """
    unknown = [m for m in measures if m not in DIM_STATISTICS]
    unknown += [m for m in global_measures if m not in GLOBAL_STATISTICS]
    if unknown:
        raise ValueError(f"Unknown statistics: {unknown}")
    if not measures and not global_measures:
        raise ValueError("At least one measure is required")

    dim_fns = [DIM_STATISTICS[m] for m in measures]
    global_fns = [GLOBAL_STATISTICS[m] for m in global_measures]

    def evaluate(solution: CustomSolution, trial_index: int):
        traj = np.asarray(solution.result, dtype=float)
        if traj.shape[1] == 0:
            # Fully trimmed trajectory: every statistic is undefined
            values: List[Any] = [np.full(traj.shape[0], np.nan) for _ in dim_fns]
            values += [float("nan") for _ in global_fns]
            return tuple(values), False
        values = [np.asarray(fn(traj)) for fn in dim_fns]
        values += [fn(traj) for fn in global_fns]
        return tuple(values), False

    return evaluate


def _measure_layout(reduced: Any, trial_index: int) -> List[int]:
    if not isinstance(reduced, (tuple, list)) and np.ndim(reduced) == 0:
        raise ShapeError(
            f"Reduced result of trial {trial_index} is a scalar; "
            f"expected a sequence of measures"
        )
    return [int(np.size(m)) for m in reduced]


def derive_measure_counts(ensemble_result: Sequence[Any], state_dim: int) -> Tuple[int, int, int]:
    """Count the measures of an ensemble result and classify them.

    Every trial must have the same measure layout as the first one.

    Args:
        ensemble_result: Reduced results, one per trial.
        state_dim: System dimension.

    Returns:
        Tuple of (n_meas, n_meas_dim, n_meas_global).

    Raises:
        ShapeError: If the results are empty, inconsistent across trials, or
            contain a measure that is neither per-dimension nor global.
    """
    if len(ensemble_result) == 0:
        raise ShapeError("Cannot derive measure counts from an empty ensemble result")

    layout = _measure_layout(ensemble_result[0], 1)
    for i, reduced in enumerate(ensemble_result[1:], start=2):
        other = _measure_layout(reduced, i)
        if other != layout:
            raise ShapeError(
                f"Trial {i} has measure layout {other}, "
                f"inconsistent with trial 1 layout {layout}"
            )

    n_meas = len(layout)
    if state_dim == 1:
        return n_meas, n_meas, 0

    n_meas_dim = 0
    n_meas_global = 0
    for k, length in enumerate(layout):
        if length == state_dim:
            n_meas_dim += 1
        elif length == 1:
            n_meas_global += 1
        else:
            raise ShapeError(
                f"Measure {k} has length {length}; expected {state_dim} "
                f"(per dimension) or 1 (global)"
            )
    return n_meas, n_meas_dim, n_meas_global
