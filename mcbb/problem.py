"""Single-trial problem and solution types for systems without a DE backend.

A ``CustomProblem`` mirrors the fields of a differential-equation problem
(trial function, initial state, time span, parameters) so that systems which
cannot be handed to an ODE solver (iterated maps, stochastic or hand-rolled
schemes) can still run through the same ensemble and classification code.

The trial function has the signature ``f(initial_state, parameters,
time_span) -> array`` and returns either an ``N_t``-long 1-D array or an
``N_dim x N_t`` 2-D array.
"""

from dataclasses import dataclass
from typing import Any, Callable, Tuple

import numpy as np

from mcbb.errors import ShapeError


@dataclass(frozen=True)
class CustomProblem:
    """Immutable description of one simulation trial.

    Attributes:
        f: Trial function ``(initial_state, parameters, time_span) -> result``.
        initial_state: Initial conditions, stored as a read-only 1-D array.
        time_span: Passed through to ``f`` unchanged.
        parameters: Passed through to ``f`` unchanged.
    """

    f: Callable[..., Any]
    initial_state: np.ndarray
    time_span: Any = None
    parameters: Any = None

    def __post_init__(self):
        u0 = np.array(self.initial_state, dtype=float).reshape(-1)
        u0.flags.writeable = False
        object.__setattr__(self, "initial_state", u0)

    @property
    def state_dim(self) -> int:
        return len(self.initial_state)

    def solve(self) -> "CustomSolution":
        return solve_problem(self)


class CustomSolution:
    """Array-like result of a solved ``CustomProblem``.

    The result is always held as a 2-D ``(N_dim, N_t)`` array: a 1-D result
    of length ``N_t`` is reshaped to ``(1, N_t)``. Indexing, ``len`` and
    ``size`` delegate to that array, so downstream code can treat custom
    solutions like solver output.

    Args:
        result: Trial output, 1-D or 2-D.
        problem: Problem that produced the result (not copied).

    Raises:
        ShapeError: If ``result`` is not 1-D or 2-D.
    """

    def __init__(self, result, problem: CustomProblem):
        sol = np.asarray(result)
        if sol.ndim == 1:
            sol = sol.reshape(1, len(sol))
        elif sol.ndim != 2:
            raise ShapeError(
                f"Trial result has {sol.ndim} dimensions; expected an N_t-long "
                f"1-D array or an (N_dim x N_t) 2-D array"
            )
        self.result = sol
        self.problem = problem

    def __getitem__(self, index):
        return self.result[index]

    def __setitem__(self, index, value):
        self.result[index] = value

    def __len__(self) -> int:
        return int(self.result.size)

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self.result
        return self.result.astype(dtype)

    def __repr__(self) -> str:
        return f"CustomSolution(shape={self.result.shape})"

    @property
    def first_index(self) -> int:
        return 0

    @property
    def last_index(self) -> int:
        return len(self) - 1

    def last_index_along(self, axis: int) -> int:
        """Last valid index along ``axis`` of the stored 2-D array."""
        return self.result.shape[axis] - 1

    @property
    def size(self) -> Tuple[int, int]:
        """Shape of the stored array, ``(N_dim, N_t)``."""
        return self.result.shape

    @property
    def shape(self) -> Tuple[int, int]:
        return self.result.shape

    @property
    def n_t(self) -> int:
        """Number of time steps."""
        return self.result.shape[1]


def solve_problem(problem: CustomProblem) -> CustomSolution:
    """Run the trial described by ``problem`` and wrap its output.

    Args:
        problem: Problem to solve.

    Returns:
        CustomSolution bound to ``problem``.
    """
    raw = problem.f(problem.initial_state, problem.parameters, problem.time_span)
    return CustomSolution(raw, problem)
