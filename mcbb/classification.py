"""Monte Carlo basin/bifurcation problems for custom-solved systems.

A ``CustomMCBBProblem`` samples initial conditions and one or more varied
parameters, turns every sample into a trial of a ``CustomEnsembleProblem``,
and packages the reduced results with the bookkeeping that clustering and
plotting code expects (trial count, system dimension, measure counts).

Usage:
    config = ClassificationConfig(
        parameter_variation=("r", np.linspace(2.5, 4.0, 200)),
        evaluator=make_statistics_evaluator(("mean", "std")),
        ic_generators=uniform_generator(0.0, 1.0, rng),
        n_ic=200,
    )
    problem = CustomMCBBProblem.from_config(base, config)
    solution = problem.solve()
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Sequence, Union

import numpy as np

from mcbb.ensemble import CustomEnsembleProblem, Evaluator, solve_ensemble
from mcbb.errors import check_repeat
from mcbb.measures import derive_measure_counts
from mcbb.parameters import ParameterVariation, as_parameter_var, substitute_parameter
from mcbb.problem import CustomProblem
from mcbb.sampling import generate_ic_par_matrix

# Only the final 10% of every trajectory is evaluated unless told otherwise.
DEFAULT_TRANSIENT_FRACTION = 0.9


@dataclass
class ClassificationConfig:
    """Sampling scheme and evaluation settings for a CustomMCBBProblem.

    Attributes:
        parameter_variation: ParameterVar, MultiDimParameterVar, or a
            ``(name, values_or_fn[, new_par])`` tuple.
        evaluator: ``(solution, trial_index) -> (measures, repeat)``.
        ic_generators: Generator function(s) for initial conditions.
        n_ic: Number of trials when sampling with generators.
        ic_ranges: Per-dimension value ranges (alternative to generators).
        transient_fraction: Leading fraction of each trajectory discarded
            before evaluation.
    """

    parameter_variation: Any
    evaluator: Evaluator
    ic_generators: Optional[Union[Callable[[], float], Sequence[Callable[[], float]]]] = None
    n_ic: Optional[int] = None
    ic_ranges: Optional[Sequence[Sequence[float]]] = None
    transient_fraction: float = DEFAULT_TRANSIENT_FRACTION

    def __post_init__(self):
        self.parameter_variation = as_parameter_var(self.parameter_variation)

    def validate(self) -> List[str]:
        """Check the settings.

        Returns:
            List of validation error strings (empty if valid).
        """
        errors: List[str] = []
        if (self.ic_generators is None) == (self.ic_ranges is None):
            errors.append("exactly one of ic_generators or ic_ranges is required")
        if self.ic_generators is not None and (self.n_ic is None or self.n_ic < 1):
            errors.append("n_ic >= 1 is required with ic_generators")
        if self.ic_ranges is not None and self.n_ic is not None:
            errors.append("n_ic is derived from ic_ranges and must not be set")
        if not callable(self.evaluator):
            errors.append("evaluator must be callable")
        if not 0.0 <= self.transient_fraction < 1.0:
            errors.append(f"transient_fraction must be in [0, 1), got {self.transient_fraction}")
        return errors


def define_new_problem(
    ic_par: np.ndarray,
    parameters: Any,
    state_dim: int,
    variation: ParameterVariation,
) -> Callable[[CustomProblem, int, bool], CustomProblem]:
    """Build the per-trial problem generator for an ``ic_par`` matrix.

    Trial ``i`` (1-based) takes its initial state from the first
    ``state_dim`` entries of row ``i - 1`` and its varied parameter values
    from the remaining entries; the time span comes from the base problem.

    Args:
        ic_par: Sampling matrix, one row per trial.
        parameters: Base parameter container (never modified).
        state_dim: Number of state variables.
        variation: Varied parameter(s).

    Returns:
        Problem generator ``(base_problem, trial_index, repeat) -> CustomProblem``.
    """
    def new_problem(prob: CustomProblem, i: int, repeat: bool) -> CustomProblem:
        check_repeat(repeat, i)
        row = ic_par[i - 1]
        return CustomProblem(
            prob.f,
            row[:state_dim],
            prob.time_span,
            substitute_parameter(parameters, variation, row[state_dim:]),
        )
    return new_problem


@dataclass
class CustomMCBBSolution:
    """Reduced results of a solved CustomMCBBProblem.

    Attributes:
        ensemble_result: Reduced result of every trial, in trial order.
        trial_count: Number of trials.
        time_step_count: Length of the first trial's reduced result.
        state_dimension: System dimension.
        measure_count: Number of measures, ``per_dimension + global``.
        per_dimension_measure_count: Measures evaluated for each dimension.
        global_measure_count: Measures evaluated over all dimensions.

    For one-dimensional systems ``global_measure_count`` is 0 and every
    measure counts as per-dimension.
    """

    ensemble_result: List[Any]
    trial_count: int
    time_step_count: int
    state_dimension: int
    measure_count: int
    per_dimension_measure_count: int
    global_measure_count: int

    def __post_init__(self):
        errors = self.validate()
        if errors:
            raise ValueError("; ".join(errors))

    def validate(self) -> List[str]:
        errors: List[str] = []
        if self.measure_count != self.per_dimension_measure_count + self.global_measure_count:
            errors.append(
                f"measure_count ({self.measure_count}) != per-dimension "
                f"({self.per_dimension_measure_count}) + global ({self.global_measure_count})"
            )
        if self.state_dimension == 1 and self.global_measure_count != 0:
            errors.append("one-dimensional systems cannot have global measures")
        if len(self.ensemble_result) != self.trial_count:
            errors.append(
                f"{len(self.ensemble_result)} results for {self.trial_count} trials"
            )
        return errors

    def __len__(self) -> int:
        return len(self.ensemble_result)

    def __getitem__(self, index):
        return self.ensemble_result[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.ensemble_result)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        d = asdict(self)
        d["ensemble_result"] = [_to_jsonable(r) for r in self.ensemble_result]
        return d


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class CustomMCBBProblem:
    """Monte Carlo basin/bifurcation problem over a custom ensemble.

    Constructing it directly is the raw path, used to rebuild a problem
    from stored state. ``from_config`` samples a new problem.

    Attributes:
        ensemble_problem: Ensemble whose trials are solved.
        trial_count: Number of trials, equal to the rows of ``ic_par``.
        transient_fraction: Leading fraction of each trajectory discarded.
        ic_par: ``(trial_count, state_dim + n_par)`` sampling matrix.
        parameter_variation: Varied parameter(s).
    """

    ensemble_problem: CustomEnsembleProblem
    trial_count: int
    transient_fraction: float
    ic_par: np.ndarray = field(repr=False)
    parameter_variation: ParameterVariation

    def __post_init__(self):
        ic_par = np.array(self.ic_par, dtype=float, ndmin=2)
        ic_par.flags.writeable = False
        object.__setattr__(self, "ic_par", ic_par)
        object.__setattr__(self, "parameter_variation", as_parameter_var(self.parameter_variation))

        if ic_par.shape[0] != self.trial_count:
            raise ValueError(
                f"ic_par has {ic_par.shape[0]} rows, but trial_count is {self.trial_count}"
            )
        if not 0.0 <= self.transient_fraction < 1.0:
            raise ValueError(
                f"transient_fraction must be in [0, 1), got {self.transient_fraction}"
            )

    @classmethod
    def from_config(
        cls,
        base_problem: CustomProblem,
        config: ClassificationConfig,
        parameters: Any = None,
    ) -> "CustomMCBBProblem":
        """Sample a problem from ``config``.

        Args:
            base_problem: Provides the trial function, time span and the
                state dimension.
            config: Sampling scheme, varied parameter(s) and evaluator.
            parameters: Base parameter container; defaults to
                ``base_problem.parameters``.

        Returns:
            New CustomMCBBProblem.

        Raises:
            ValueError: If ``config`` is invalid or the sampling scheme does
                not fit the base problem.
        """
        errors = config.validate()
        if errors:
            raise ValueError("Invalid classification config: " + "; ".join(errors))
        if parameters is None:
            parameters = base_problem.parameters

        state_dim = base_problem.state_dim
        variation = config.parameter_variation
        ic_par, trial_count = generate_ic_par_matrix(
            state_dim,
            variation,
            ic_generators=config.ic_generators,
            n_ic=config.n_ic,
            ic_ranges=config.ic_ranges,
        )
        generator = define_new_problem(ic_par, parameters, state_dim, variation)
        ensemble = CustomEnsembleProblem(base_problem, generator, config.evaluator)
        return cls(ensemble, trial_count, config.transient_fraction, ic_par, variation)

    @property
    def state_dim(self) -> int:
        return self.ensemble_problem.base_problem.state_dim

    def solve(self, progress: bool = False) -> CustomMCBBSolution:
        return solve_mcbb(self, progress=progress)


def solve_mcbb(problem: CustomMCBBProblem, progress: bool = False) -> CustomMCBBSolution:
    """Solve all trials of ``problem`` and attach dimensional metadata.

    Args:
        problem: Problem to solve.
        progress: Show a progress bar while the trials run.

    Returns:
        CustomMCBBSolution.

    Raises:
        ShapeError: If the reduced results do not share one measure layout.
    """
    results = solve_ensemble(
        problem.ensemble_problem,
        trial_count=problem.trial_count,
        transient_fraction=problem.transient_fraction,
        progress=progress,
    )
    n_dim = problem.state_dim
    n_meas, n_meas_dim, n_meas_global = derive_measure_counts(results, n_dim)
    time_step_count = len(results[0])
    return CustomMCBBSolution(
        results,
        problem.trial_count,
        time_step_count,
        n_dim,
        n_meas,
        n_meas_dim,
        n_meas_global,
    )
