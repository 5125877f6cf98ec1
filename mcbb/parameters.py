"""Descriptions of how parameters vary across the trials of an ensemble.

A ``ParameterVar`` names one parameter, says where its per-trial values come
from (an array of values or a zero-argument generator), and how a value is
substituted into the parameter container. ``MultiDimParameterVar`` varies
several parameters at once.
"""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

ValueSource = Union[Sequence[float], np.ndarray, Callable[[], float]]


def replace_parameters(parameters: Any, **new_values) -> Any:
    """Return a copy of ``parameters`` with ``new_values`` substituted.

    Mappings are copied into a plain dict and dataclass instances go through
    ``dataclasses.replace``. The input is never modified.

    Args:
        parameters: Parameter container (mapping or dataclass instance).
        **new_values: Parameter names and their replacement values.

    Returns:
        New parameter container.

    Raises:
        TypeError: If ``parameters`` is neither a mapping nor a dataclass.
    """
    if isinstance(parameters, Mapping):
        updated = dict(parameters)
        updated.update(new_values)
        return updated
    if dataclasses.is_dataclass(parameters) and not isinstance(parameters, type):
        return dataclasses.replace(parameters, **new_values)
    raise TypeError(
        f"Cannot substitute into parameters of type {type(parameters).__name__}; "
        f"pass a mapping, a dataclass instance, or a custom new_par function"
    )


@dataclass
class ParameterVar:
    """A single varied parameter.

    Attributes:
        name: Parameter name.
        new_val: Per-trial values (array) or a zero-argument generator.
        new_par: ``(parameters, **{name: value}) -> new parameters``.
            Defaults to ``replace_parameters``.
    """

    name: str
    new_val: ValueSource
    new_par: Optional[Callable[..., Any]] = None

    def __post_init__(self):
        if self.new_par is None:
            self.new_par = replace_parameters
        if not callable(self.new_val):
            self.new_val = np.asarray(self.new_val, dtype=float).reshape(-1)

    @property
    def names(self) -> List[str]:
        return [self.name]

    @property
    def n_par(self) -> int:
        return 1

    @property
    def sources(self) -> List[ValueSource]:
        return [self.new_val]


@dataclass
class MultiDimParameterVar:
    """Several parameters varied together.

    Attributes:
        data: One ParameterVar per varied parameter, in column order.
        new_par: Substitution function applied with all names at once.
            Defaults to ``replace_parameters``.
    """

    data: List[ParameterVar] = field(default_factory=list)
    new_par: Optional[Callable[..., Any]] = None

    def __post_init__(self):
        if not self.data:
            raise ValueError("MultiDimParameterVar needs at least one ParameterVar")
        if self.new_par is None:
            self.new_par = replace_parameters

    @property
    def names(self) -> List[str]:
        return [pv.name for pv in self.data]

    @property
    def n_par(self) -> int:
        return len(self.data)

    @property
    def sources(self) -> List[ValueSource]:
        return [pv.new_val for pv in self.data]


ParameterVariation = Union[ParameterVar, MultiDimParameterVar]


def as_parameter_var(spec) -> ParameterVariation:
    """Convert ``(name, values_or_fn[, new_par])`` tuples to a ParameterVar.

    ParameterVar and MultiDimParameterVar instances are returned unchanged.
    """
    if isinstance(spec, (ParameterVar, MultiDimParameterVar)):
        return spec
    if isinstance(spec, tuple) and len(spec) in (2, 3):
        return ParameterVar(*spec)
    raise TypeError(
        "Parameter variation must be a ParameterVar, a MultiDimParameterVar, "
        "or a (name, values_or_fn[, new_par]) tuple"
    )


def new_value_dict(variation: ParameterVariation, values: Sequence[float]) -> Dict[str, float]:
    """Map the varied parameter names to ``values`` (same order)."""
    if len(values) != variation.n_par:
        raise ValueError(
            f"Expected {variation.n_par} parameter values, got {len(values)}"
        )
    return {name: float(v) for name, v in zip(variation.names, values)}


def substitute_parameter(parameters: Any, variation: ParameterVariation, values: Sequence[float]) -> Any:
    """Return new parameters with the varied entries replaced by ``values``.

    Args:
        parameters: Base parameter container; left untouched.
        variation: Which parameters vary and how they are substituted.
        values: One value per varied parameter.

    Returns:
        New parameter container.
    """
    return variation.new_par(parameters, **new_value_dict(variation, values))
