"""Built-in iterated maps usable as custom trial functions.

Maps cannot be handed to an ODE solver, so they are the typical use of
``CustomProblem``. Every system here is exposed as a trial function
``f(initial_state, parameters, time_span) -> (N_dim, n_iter) array`` where
``time_span = (0, n_iter)`` counts iterations and ``parameters`` is a dict.
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from mcbb.problem import CustomProblem


# Step functions x_n -> x_{n+1}; parameters are keyword arguments so the
# registry can bind them by name.

def _logistic_step(x: np.ndarray, r: float) -> np.ndarray:
    return r * x * (1.0 - x)


def _henon_step(x: np.ndarray, a: float, b: float) -> np.ndarray:
    return np.array([1.0 + x[1] - a * x[0] * x[0], b * x[0]])


def _ikeda_step(x: np.ndarray, u: float) -> np.ndarray:
    """Ikeda laser map in complex form, z -> 1 + u z exp(i t(|z|))."""
    z = complex(x[0], x[1])
    z = 1.0 + u * z * np.exp(1j * (0.4 - 6.0 / (1.0 + abs(z) ** 2)))
    return np.array([z.real, z.imag])


def _circle_step(x: np.ndarray, Omega: float, K: float) -> np.ndarray:
    two_pi = 2.0 * np.pi
    return np.mod(x + Omega - K * np.sin(two_pi * x) / two_pi, 1.0)


def _standard_step(x: np.ndarray, K: float) -> np.ndarray:
    """Chirikov standard map, angle wrapped to [0, 2 pi)."""
    momentum = x[1] + K * np.sin(x[0])
    return np.array([np.mod(x[0] + momentum, 2.0 * np.pi), momentum])


def _coupled_logistic_step(x: np.ndarray, r: float, eps: float) -> np.ndarray:
    """Ring of logistic maps with nearest-neighbour diffusive coupling."""
    fx = _logistic_step(x, r)
    neighbours = 0.5 * (np.roll(fx, 1) + np.roll(fx, -1))
    return fx + eps * (neighbours - fx)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_STEP_FUNCTIONS: Dict[str, Tuple[Callable[..., np.ndarray], Tuple[str, ...]]] = {
    "logistic": (_logistic_step, ("r",)),
    "henon": (_henon_step, ("a", "b")),
    "ikeda": (_ikeda_step, ("u",)),
    "circle": (_circle_step, ("Omega", "K")),
    "standard": (_standard_step, ("K",)),
    "coupled_logistic": (_coupled_logistic_step, ("r", "eps")),
}

_DEFAULT_ICS: Dict[str, np.ndarray] = {
    "logistic": np.array([0.1]),
    "henon": np.array([0.0, 0.0]),
    "ikeda": np.array([0.1, 0.1]),
    "circle": np.array([0.0]),
    "standard": np.array([0.1, 0.0]),
    "coupled_logistic": np.array([0.1, 0.2, 0.3, 0.4]),
}

_DEFAULT_PARAMS: Dict[str, Dict[str, float]] = {
    "logistic": {"r": 4.0},
    "henon": {"a": 1.4, "b": 0.3},
    "ikeda": {"u": 0.9},
    "circle": {"Omega": 0.6066, "K": 0.5},
    "standard": {"K": 0.97},
    "coupled_logistic": {"r": 3.9, "eps": 0.3},
}


def _n_iter(time_span) -> int:
    if np.ndim(time_span) == 0:
        return int(time_span)
    t0, t1 = time_span
    return int(t1 - t0)


def make_trial_function(system_id: str) -> Callable:
    """Wrap a registered map as a trial function.

    Args:
        system_id: Registered map name.

    Returns:
        ``f(initial_state, parameters, time_span)`` iterating the map and
        returning the ``(N_dim, n_iter)`` trajectory, initial state first.

    Raises:
        ValueError: If ``system_id`` is unknown.
    """
    if system_id not in _STEP_FUNCTIONS:
        raise ValueError(f"Unknown system: {system_id}")
    step_fn, param_names = _STEP_FUNCTIONS[system_id]
    defaults = _DEFAULT_PARAMS[system_id]

    def trial(initial_state, parameters, time_span) -> np.ndarray:
        merged = {**defaults, **(parameters or {})}
        kwargs = {name: merged[name] for name in param_names}

        state = np.array(initial_state, dtype=float)
        traj = np.empty((state.size, _n_iter(time_span)))
        for i in range(traj.shape[1]):
            traj[:, i] = state
            state = step_fn(state, **kwargs)
        return traj

    trial.__name__ = f"{system_id}_trial"
    return trial


SYSTEM_REGISTRY: Dict[str, Callable] = {
    sid: make_trial_function(sid) for sid in _STEP_FUNCTIONS
}


def list_systems() -> List[str]:
    return sorted(SYSTEM_REGISTRY)


def get_system(system_id: str) -> Callable:
    """Return the registered trial function for ``system_id``."""
    if system_id not in SYSTEM_REGISTRY:
        raise ValueError(f"Unknown system: {system_id}")
    return SYSTEM_REGISTRY[system_id]


def get_default_ic(system_id: str) -> np.ndarray:
    if system_id not in _DEFAULT_ICS:
        raise ValueError(f"Unknown system: {system_id}")
    return _DEFAULT_ICS[system_id].copy()


def get_default_params(system_id: str) -> Dict[str, float]:
    if system_id not in _DEFAULT_PARAMS:
        raise ValueError(f"Unknown system: {system_id}")
    return dict(_DEFAULT_PARAMS[system_id])


def make_problem(
    system_id: str,
    n_iter: int = 1000,
    initial_state: Optional[Sequence[float]] = None,
    parameters: Optional[Dict[str, float]] = None,
) -> CustomProblem:
    """Build a CustomProblem for a registered map.

    Args:
        system_id: Registered map name.
        n_iter: Iterations per trial.
        initial_state: Overrides the default initial state.
        parameters: Merged onto the default parameters.

    Returns:
        CustomProblem with ``time_span = (0, n_iter)``.
    """
    u0 = get_default_ic(system_id) if initial_state is None else initial_state
    params = {**get_default_params(system_id), **(parameters or {})}
    return CustomProblem(get_system(system_id), u0, (0, n_iter), params)
