"""YAML run configuration for Monte Carlo basin/bifurcation runs.

A run file is merged onto ``DEFAULT_RUN_CONFIG``. Example:

    system: logistic
    n_iter: 500
    seed: 7
    sampling:
      mode: generators
      n_ic: 300
      low: 0.0
      high: 1.0
    parameter:
      name: r
      start: 2.8
      stop: 4.0
      num: 300
    measures: [mean, std]

Value ranges (``sampling.ranges`` entries and the parameter) are given as an
explicit ``values`` list, as ``start``/``stop``/``num`` for an evenly spaced
grid, or as ``low``/``high`` for uniform random draws (generator mode only).
"""

import copy
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
import yaml

from mcbb.classification import DEFAULT_TRANSIENT_FRACTION, ClassificationConfig, CustomMCBBProblem
from mcbb.measures import make_statistics_evaluator
from mcbb.parameters import ParameterVar
from mcbb.sampling import normal_generator, uniform_generator
from mcbb.systems import make_problem

DEFAULT_RUN_CONFIG: Dict[str, Any] = {
    "system": "logistic",
    "n_iter": 1000,
    "seed": 42,
    "transient_fraction": DEFAULT_TRANSIENT_FRACTION,
    "initial_state": None,
    "parameters": {},
    "sampling": {
        "mode": "generators",
        "n_ic": 100,
        "distribution": "uniform",
        "low": 0.0,
        "high": 1.0,
        "mean": 0.0,
        "std": 1.0,
        "ranges": None,
    },
    "parameter": {
        "name": "r",
        "low": 2.5,
        "high": 4.0,
    },
    "measures": ["mean", "std"],
    "global_measures": [],
}


def _deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``base`` with ``updates`` merged in; nested dicts merge key by key."""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_update(current, value)
        merged[key] = value
    return merged


def load_run_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML run file and merge it onto ``DEFAULT_RUN_CONFIG``.

    Args:
        config_path: Path of the run file, or None for the defaults alone.

    Returns:
        Merged run config (a fresh copy; the defaults are never modified).

    Raises:
        ValueError: If the file holds anything other than a mapping.
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_RUN_CONFIG)

    loaded = yaml.safe_load(Path(config_path).read_text(encoding="utf-8"))
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError(
            f"Run config {config_path} must be a YAML mapping, got {type(loaded).__name__}"
        )
    return _deep_update(DEFAULT_RUN_CONFIG, loaded)


def _value_source(
    spec: Union[Dict[str, Any], List[float]],
    rng: np.random.Generator,
    allow_random: bool,
) -> Union[np.ndarray, Callable[[], float]]:
    """Resolve a values / start-stop-num / low-high spec."""
    if isinstance(spec, (list, tuple)):
        return np.asarray(spec, dtype=float)
    if spec.get("values") is not None:
        return np.asarray(spec["values"], dtype=float)
    if spec.get("num") is not None:
        return np.linspace(float(spec["start"]), float(spec["stop"]), int(spec["num"]))
    if allow_random and "low" in spec and "high" in spec:
        return uniform_generator(float(spec["low"]), float(spec["high"]), rng)
    raise ValueError(f"Cannot resolve value range from {spec!r}")


def _ic_generator(sampling: Dict[str, Any], rng: np.random.Generator) -> Callable[[], float]:
    dist = sampling.get("distribution", "uniform")
    if dist == "uniform":
        return uniform_generator(float(sampling["low"]), float(sampling["high"]), rng)
    if dist == "normal":
        return normal_generator(float(sampling["mean"]), float(sampling["std"]), rng)
    raise ValueError(f"Unknown initial condition distribution: {dist}")


def classification_config_from_dict(cfg: Dict[str, Any]) -> ClassificationConfig:
    """Turn a merged run config into a ClassificationConfig.

    Random draws use ``np.random.default_rng(cfg["seed"])``, so a config
    always yields the same sampling matrix.
    """
    rng = np.random.default_rng(cfg.get("seed"))
    sampling = cfg["sampling"]
    mode = sampling.get("mode", "generators")

    par_cfg = cfg["parameter"]
    if not par_cfg.get("name"):
        raise ValueError("parameter.name is required")
    source = _value_source(par_cfg, rng, allow_random=(mode == "generators"))
    variation = ParameterVar(par_cfg["name"], source)

    evaluator = make_statistics_evaluator(
        measures=cfg.get("measures") or (),
        global_measures=cfg.get("global_measures") or (),
    )
    fraction = float(cfg.get("transient_fraction", DEFAULT_TRANSIENT_FRACTION))

    if mode == "generators":
        return ClassificationConfig(
            parameter_variation=variation,
            evaluator=evaluator,
            ic_generators=_ic_generator(sampling, rng),
            n_ic=int(sampling["n_ic"]),
            transient_fraction=fraction,
        )
    if mode == "ranges":
        if not sampling.get("ranges"):
            raise ValueError("sampling.ranges is required in ranges mode")
        ranges = [_value_source(r, rng, allow_random=False) for r in sampling["ranges"]]
        return ClassificationConfig(
            parameter_variation=variation,
            evaluator=evaluator,
            ic_ranges=ranges,
            transient_fraction=fraction,
        )
    raise ValueError(f"Unknown sampling mode: {mode}")


def build_problem(cfg: Dict[str, Any]) -> CustomMCBBProblem:
    """Build a CustomMCBBProblem for a built-in system from a run config."""
    base = make_problem(
        cfg["system"],
        n_iter=int(cfg["n_iter"]),
        initial_state=cfg.get("initial_state"),
        parameters=cfg.get("parameters") or {},
    )
    return CustomMCBBProblem.from_config(base, classification_config_from_dict(cfg))
