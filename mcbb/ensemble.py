"""Monte Carlo ensembles of custom problems.

Usage:
    from mcbb.ensemble import CustomEnsembleProblem, solve_ensemble

    ens = CustomEnsembleProblem(base, prob_func, eval_func)
    results = solve_ensemble(ens, trial_count=500, transient_fraction=0.9)

Trials run strictly in index order. ``results[i - 1]`` is the reduced
result of trial ``i``, so the list stays aligned with the rows of any
initial-condition/parameter matrix the trials were generated from.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Tuple

from tqdm import tqdm

from mcbb.errors import check_repeat
from mcbb.problem import CustomProblem, CustomSolution, solve_problem

logger = logging.getLogger(__name__)

ProblemGenerator = Callable[[CustomProblem, int, bool], CustomProblem]
Evaluator = Callable[[CustomSolution, int], Tuple[Any, bool]]


@dataclass(frozen=True)
class CustomEnsembleProblem:
    """A batch of trials derived from one base problem.

    Attributes:
        base_problem: Problem the per-trial problems are derived from.
        problem_generator: ``(base_problem, trial_index, repeat) -> CustomProblem``
            returning the problem of trial ``trial_index`` (1-based).
        evaluator: ``(solution, trial_index) -> (reduced_result, repeat)``
            reducing a trimmed solution to its measures.
    """

    base_problem: CustomProblem
    problem_generator: ProblemGenerator
    evaluator: Evaluator

    def solve_trial(self, trial_index: int, transient_fraction: float) -> Any:
        """Generate, solve, trim and evaluate a single trial.

        Args:
            trial_index: 1-based trial index.
            transient_fraction: Leading fraction of the trajectory to discard.

        Returns:
            The evaluator's reduced result for this trial.

        Raises:
            RepeatNotSupportedError: If the evaluator requests a repeat.
        """
        problem = self.problem_generator(self.base_problem, trial_index, False)
        solution = trim_transient(solve_problem(problem), transient_fraction)
        reduced, repeat = self.evaluator(solution, trial_index)
        check_repeat(repeat, trial_index)
        return reduced

    def solve(
        self,
        trial_count: int = 100,
        transient_fraction: float = 0.5,
        progress: bool = False,
    ) -> List[Any]:
        """Shortcut for ``solve_ensemble(self, ...)``."""
        return solve_ensemble(self, trial_count, transient_fraction, progress)


def trim_transient(solution: CustomSolution, transient_fraction: float) -> CustomSolution:
    """Drop the leading transient of a trajectory.

    ``round(transient_fraction * N_t)`` is taken as a 1-based time index and
    every step from it to the end is kept (boundary inclusive), giving
    ``N_t - round(transient_fraction * N_t) + 1`` steps, or all ``N_t`` steps
    when the rounded transient is zero. Very short trajectories can come out
    with a single time step; that is returned as is.

    Args:
        solution: Untrimmed solution.
        transient_fraction: Fraction in ``[0, 1)``.

    Returns:
        New CustomSolution over the kept steps, bound to the same problem.
    """
    transient_steps = int(round(transient_fraction * solution.n_t))
    start = max(transient_steps - 1, 0)
    return CustomSolution(solution.result[:, start:].copy(), solution.problem)


def _check_run_args(trial_count: int, transient_fraction: float) -> None:
    if trial_count < 1:
        raise ValueError(f"trial_count must be >= 1, got {trial_count}")
    if not 0.0 <= transient_fraction < 1.0:
        raise ValueError(
            f"transient_fraction must be in [0, 1), got {transient_fraction}"
        )


def solve_ensemble(
    ensemble: CustomEnsembleProblem,
    trial_count: int = 100,
    transient_fraction: float = 0.5,
    progress: bool = False,
) -> List[Any]:
    """Solve every trial of an ensemble sequentially.

    Any exception raised by the generator, the trial function or the
    evaluator aborts the whole run; no partial results are returned.

    Args:
        ensemble: Ensemble to solve.
        trial_count: Number of trials, run as indices ``1..trial_count``.
        transient_fraction: Leading fraction of each trajectory to discard.
        progress: Show a tqdm progress bar.

    Returns:
        List of reduced results in trial order.

    Raises:
        ValueError: On an invalid trial count or transient fraction.
        RepeatNotSupportedError: If any trial requests a repeat.
    """
    _check_run_args(trial_count, transient_fraction)
    logger.info(
        "Solving ensemble: %d trials, transient fraction %.3f",
        trial_count, transient_fraction,
    )

    results: List[Any] = []
    trials = tqdm(
        range(1, trial_count + 1),
        desc="trials",
        unit="trial",
        dynamic_ncols=True,
        disable=not progress,
    )
    for trial_index in trials:
        results.append(ensemble.solve_trial(trial_index, transient_fraction))
        logger.debug("Trial %d/%d done", trial_index, trial_count)

    logger.info("Ensemble solved: %d results", len(results))
    return results
