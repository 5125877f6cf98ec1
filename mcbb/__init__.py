"""mcbb: Monte Carlo basin/bifurcation ensembles for custom-solved systems."""

__version__ = "0.3.0"

from mcbb.errors import ShapeError, RepeatNotSupportedError
from mcbb.problem import CustomProblem, CustomSolution, solve_problem
from mcbb.ensemble import CustomEnsembleProblem, solve_ensemble, trim_transient
from mcbb.parameters import (
    ParameterVar,
    MultiDimParameterVar,
    as_parameter_var,
    replace_parameters,
    substitute_parameter,
)
from mcbb.sampling import generate_ic_par_matrix, uniform_generator, normal_generator
from mcbb.measures import derive_measure_counts, make_statistics_evaluator
from mcbb.classification import (
    DEFAULT_TRANSIENT_FRACTION,
    ClassificationConfig,
    CustomMCBBProblem,
    CustomMCBBSolution,
    define_new_problem,
    solve_mcbb,
)
from mcbb.systems import SYSTEM_REGISTRY, get_system, make_problem, list_systems
