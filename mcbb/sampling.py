"""Construction of the initial-condition/parameter matrix of an ensemble.

Each row of ``ic_par`` describes one trial: its ``state_dim`` initial
conditions followed by one value per varied parameter. Two sampling modes
are supported:

* generator mode: ``n_ic`` trials, initial conditions drawn from
  zero-argument generator functions, parameter values taken from an array
  or drawn from a generator;
* range mode: the Cartesian product of one value range per state dimension
  and one per varied parameter.
"""

import itertools
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from mcbb.parameters import ParameterVariation

Generator = Callable[[], float]


def uniform_generator(low: float, high: float, rng: np.random.Generator) -> Generator:
    """Zero-argument generator drawing from ``U(low, high)`` with ``rng``."""
    def draw() -> float:
        return float(rng.uniform(low, high))
    return draw


def normal_generator(mean: float, std: float, rng: np.random.Generator) -> Generator:
    """Zero-argument generator drawing from ``N(mean, std**2)`` with ``rng``."""
    def draw() -> float:
        return float(rng.normal(mean, std))
    return draw


def _as_generator_list(ic_generators: Union[Generator, Sequence[Generator]]) -> List[Generator]:
    if callable(ic_generators):
        return [ic_generators]
    gens = list(ic_generators)
    if not gens or not all(callable(g) for g in gens):
        raise ValueError("ic_generators must be a callable or a non-empty sequence of callables")
    return gens


def _ic_par_from_generators(
    state_dim: int,
    variation: ParameterVariation,
    ic_generators: Union[Generator, Sequence[Generator]],
    n_ic: int,
) -> np.ndarray:
    gens = _as_generator_list(ic_generators)
    if n_ic < 1:
        raise ValueError(f"n_ic must be >= 1, got {n_ic}")
    if state_dim % len(gens) != 0:
        raise ValueError(
            f"{len(gens)} initial condition generators do not evenly cover "
            f"{state_dim} state dimensions"
        )
    block = state_dim // len(gens)

    ic_par = np.zeros((n_ic, state_dim + variation.n_par))
    for i in range(n_ic):
        for j, gen in enumerate(gens):
            for k in range(j * block, (j + 1) * block):
                ic_par[i, k] = gen()

    for col, source in enumerate(variation.sources, start=state_dim):
        if callable(source):
            ic_par[:, col] = [source() for _ in range(n_ic)]
        else:
            if len(source) != n_ic:
                raise ValueError(
                    f"Parameter value array has length {len(source)}, "
                    f"but n_ic is {n_ic}"
                )
            ic_par[:, col] = source
    return ic_par


def _ic_par_from_ranges(
    state_dim: int,
    variation: ParameterVariation,
    ic_ranges: Sequence[Sequence[float]],
) -> np.ndarray:
    ranges = [np.asarray(r, dtype=float).reshape(-1) for r in ic_ranges]
    if len(ranges) == 1:
        ranges = ranges * state_dim
    if len(ranges) != state_dim:
        raise ValueError(
            f"Got {len(ranges)} initial condition ranges for {state_dim} state dimensions"
        )
    for source in variation.sources:
        if callable(source):
            raise ValueError("Range sampling needs explicit parameter value arrays, not generators")
        ranges.append(np.asarray(source, dtype=float))
    if any(len(r) == 0 for r in ranges):
        raise ValueError("Sampling ranges must not be empty")

    return np.array(list(itertools.product(*ranges)), dtype=float)


def generate_ic_par_matrix(
    state_dim: int,
    variation: ParameterVariation,
    ic_generators: Optional[Union[Generator, Sequence[Generator]]] = None,
    n_ic: Optional[int] = None,
    ic_ranges: Optional[Sequence[Sequence[float]]] = None,
) -> Tuple[np.ndarray, int]:
    """Build the ``(trial_count, state_dim + n_par)`` sampling matrix.

    Exactly one of ``ic_generators`` (with ``n_ic``) or ``ic_ranges`` must
    be given.

    In generator mode, ``state_dim`` must be a multiple of the number of
    generators; generator ``j`` fills the ``j``-th block of
    ``state_dim / n_gens`` consecutive dimensions with one call per entry.
    In range mode a single range is reused for every state dimension, and
    the trial count is the product of all range lengths, with the last
    varied parameter changing fastest.

    Args:
        state_dim: Number of state variables.
        variation: Varied parameter(s).
        ic_generators: A generator or sequence of generators.
        n_ic: Number of trials in generator mode.
        ic_ranges: One value range per state dimension (or a single range).

    Returns:
        Tuple of (ic_par, trial_count).

    Raises:
        ValueError: If the sampling scheme is inconsistent.
    """
    if (ic_generators is None) == (ic_ranges is None):
        raise ValueError("Pass exactly one of ic_generators or ic_ranges")

    if ic_generators is not None:
        if n_ic is None:
            raise ValueError("n_ic is required with ic_generators")
        ic_par = _ic_par_from_generators(state_dim, variation, ic_generators, n_ic)
    else:
        ic_par = _ic_par_from_ranges(state_dim, variation, ic_ranges)

    return ic_par, ic_par.shape[0]
