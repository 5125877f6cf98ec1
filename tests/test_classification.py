"""Tests for CustomMCBBProblem, its configuration and its solution."""

import json

import numpy as np
import pytest

from mcbb.classification import (
    DEFAULT_TRANSIENT_FRACTION,
    ClassificationConfig,
    CustomMCBBProblem,
    CustomMCBBSolution,
    define_new_problem,
    solve_mcbb,
)
from mcbb.ensemble import CustomEnsembleProblem
from mcbb.errors import RepeatNotSupportedError, ShapeError
from mcbb.measures import make_statistics_evaluator
from mcbb.parameters import MultiDimParameterVar, ParameterVar
from mcbb.problem import CustomProblem
from mcbb.sampling import uniform_generator
from mcbb.systems import make_problem


def _identity_trial(u0, p, tspan):
    return np.asarray(u0)


def _const(value):
    return lambda: value


def _mean_evaluator(sol, i):
    return (np.mean(sol.result, axis=1),), False


class TestClassificationConfig:
    """Validation of the sampling and evaluation settings."""

    def test_default_transient_fraction(self):
        """The default keeps only the final tenth of each trajectory."""
        cfg = ClassificationConfig(("r", [1.0]), _mean_evaluator, ic_generators=_const(0.0), n_ic=1)
        assert cfg.transient_fraction == DEFAULT_TRANSIENT_FRACTION == 0.9
        assert cfg.validate() == []

    def test_tuple_variation_converted(self):
        """A (name, values) tuple becomes a ParameterVar."""
        cfg = ClassificationConfig(("r", [1.0]), _mean_evaluator, ic_generators=_const(0.0), n_ic=1)
        assert isinstance(cfg.parameter_variation, ParameterVar)

    def test_neither_sampling_mode(self):
        """A config without generators or ranges is invalid."""
        errors = ClassificationConfig(("r", [1.0]), _mean_evaluator).validate()
        assert any("exactly one" in e for e in errors)

    def test_both_sampling_modes(self):
        """Generators and ranges together are invalid, as is n_ic with ranges."""
        cfg = ClassificationConfig(
            ("r", [1.0]), _mean_evaluator, ic_generators=_const(0.0), n_ic=1, ic_ranges=[[0.0]],
        )
        errors = cfg.validate()
        assert any("exactly one" in e for e in errors)
        assert any("derived from ic_ranges" in e for e in errors)

    def test_missing_n_ic(self):
        """Generator mode needs a trial count."""
        cfg = ClassificationConfig(("r", [1.0]), _mean_evaluator, ic_generators=_const(0.0))
        assert any("n_ic" in e for e in cfg.validate())

    def test_bad_evaluator_and_fraction(self):
        """Every problem is reported, not just the first."""
        cfg = ClassificationConfig(
            ("r", [1.0]), "mean", ic_ranges=[[0.0]], transient_fraction=1.0,
        )
        errors = cfg.validate()
        assert any("evaluator" in e for e in errors)
        assert any("transient_fraction" in e for e in errors)


class TestDefineNewProblem:
    """Per-trial problem generation from the sampling matrix."""

    def _generator(self):
        ic_par = np.array([[0.1, 0.2, 3.0], [0.4, 0.5, 3.5]])
        return define_new_problem(ic_par, {"r": 1.0, "eps": 0.2}, 2, ParameterVar("r", [0.0]))

    def test_rows_are_one_based(self):
        """Trial 2 reads the second row of ic_par."""
        base = CustomProblem(_identity_trial, [0.0, 0.0], (0, 50), {"r": 1.0, "eps": 0.2})
        prob = self._generator()(base, 2, False)

        np.testing.assert_array_equal(prob.initial_state, [0.4, 0.5])
        assert prob.parameters == {"r": 3.5, "eps": 0.2}
        assert prob.time_span == (0, 50)
        assert prob.f is base.f

    def test_base_parameters_untouched(self):
        """Substitution leaves the base parameter dict unchanged."""
        params = {"r": 1.0}
        ic_par = np.array([[0.0, 9.0]])
        base = CustomProblem(_identity_trial, [0.0], None, params)
        define_new_problem(ic_par, params, 1, ParameterVar("r", [0.0]))(base, 1, False)
        assert params == {"r": 1.0}

    def test_repeat_rejected(self):
        """Asking the generator for a repeat raises."""
        base = CustomProblem(_identity_trial, [0.0, 0.0])
        with pytest.raises(RepeatNotSupportedError):
            self._generator()(base, 1, True)


class TestCustomMCBBSolution:
    """Invariants and export of the packaged result."""

    def test_fields_and_sequence_access(self):
        """len, indexing and iteration go through ensemble_result."""
        results = [(np.array([1.0]),), (np.array([2.0]),)]
        sol = CustomMCBBSolution(results, 2, 1, 1, 1, 1, 0)
        assert len(sol) == 2
        assert sol[1] is results[1]
        assert list(sol) == results

    def test_measure_sum_enforced(self):
        """measure_count must equal per-dimension plus global."""
        with pytest.raises(ValueError, match="measure_count"):
            CustomMCBBSolution([(1.0,)], 1, 1, 2, 3, 1, 1)

    def test_one_dim_has_no_global_measures(self):
        """A 1-D system cannot carry global measures."""
        with pytest.raises(ValueError, match="one-dimensional"):
            CustomMCBBSolution([(1.0,)], 1, 1, 1, 2, 1, 1)

    def test_result_count_enforced(self):
        """One reduced result per trial."""
        with pytest.raises(ValueError, match="3 trials"):
            CustomMCBBSolution([(1.0,)], 3, 1, 1, 1, 1, 0)

    def test_to_dict_is_json_serializable(self):
        """Arrays and numpy scalars become plain lists and floats."""
        results = [(np.array([1.0, 2.0]), np.float64(0.5))]
        d = CustomMCBBSolution(results, 1, 2, 2, 2, 1, 1).to_dict()
        assert d["ensemble_result"] == [[[1.0, 2.0], 0.5]]
        assert d["global_measure_count"] == 1
        json.dumps(d)


class TestCustomMCBBProblemConstruction:
    """Raw construction and sampling from a ClassificationConfig."""

    def _ensemble(self):
        base = CustomProblem(_identity_trial, [0.0])
        return CustomEnsembleProblem(base, lambda b, i, r: b, _mean_evaluator)

    def test_raw_construction(self):
        """Stored state can rebuild a problem without sampling."""
        prob = CustomMCBBProblem(self._ensemble(), 2, 0.5, [[0.1, 1.0], [0.2, 2.0]], ("r", [1.0, 2.0]))
        assert prob.ic_par.shape == (2, 2)
        assert isinstance(prob.parameter_variation, ParameterVar)
        assert prob.state_dim == 1

    def test_ic_par_read_only(self):
        """The sampling matrix cannot be edited after construction."""
        prob = CustomMCBBProblem(self._ensemble(), 1, 0.5, [[0.1, 1.0]], ("r", [1.0]))
        with pytest.raises(ValueError):
            prob.ic_par[0, 0] = 5.0

    def test_row_count_must_match(self):
        """ic_par needs one row per trial."""
        with pytest.raises(ValueError, match="trial_count is 3"):
            CustomMCBBProblem(self._ensemble(), 3, 0.5, [[0.1, 1.0]], ("r", [1.0]))

    def test_fraction_checked(self):
        """A transient fraction of 1 or more is rejected."""
        with pytest.raises(ValueError, match="transient_fraction"):
            CustomMCBBProblem(self._ensemble(), 1, 1.2, [[0.1, 1.0]], ("r", [1.0]))

    def test_from_config_generators(self):
        """Generator mode fills one row per trial with the parameter last."""
        base = CustomProblem(_identity_trial, [0.0, 0.0], (0, 5), {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0, 2.0, 3.0]), _mean_evaluator,
            ic_generators=[_const(0.1), _const(0.2)], n_ic=3, transient_fraction=0.0,
        )
        prob = CustomMCBBProblem.from_config(base, config)

        assert prob.trial_count == 3
        np.testing.assert_array_equal(prob.ic_par[2], [0.1, 0.2, 3.0])
        assert prob.transient_fraction == 0.0

    def test_from_config_ranges(self):
        """Range mode derives the trial count from the grid size."""
        base = CustomProblem(_identity_trial, [0.0], None, {"r": 0.0})
        config = ClassificationConfig(("r", [1.0, 2.0]), _mean_evaluator, ic_ranges=[[0.0, 0.5, 1.0]])
        prob = CustomMCBBProblem.from_config(base, config)
        assert prob.trial_count == 6
        assert prob.transient_fraction == DEFAULT_TRANSIENT_FRACTION

    def test_from_config_invalid(self):
        """An invalid config is refused before sampling."""
        base = CustomProblem(_identity_trial, [0.0])
        config = ClassificationConfig(("r", [1.0]), _mean_evaluator)
        with pytest.raises(ValueError, match="Invalid classification config"):
            CustomMCBBProblem.from_config(base, config)

    def test_explicit_parameters_override_base(self):
        """Explicit parameters replace those of the base problem."""
        seen = []

        def trial(u0, p, tspan):
            seen.append(p)
            return np.asarray(u0)

        base = CustomProblem(trial, [0.0], None, {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0]), _mean_evaluator, ic_generators=_const(0.0), n_ic=1,
            transient_fraction=0.0,
        )
        CustomMCBBProblem.from_config(base, config, parameters={"r": 0.0, "k": 5.0}).solve()
        assert seen == [{"r": 1.0, "k": 5.0}]


class TestCustomMCBBProblemSolve:
    """Solving a problem and deriving its dimensional metadata."""

    def test_metadata(self):
        """Counts come from the reduced results of a 3-D system."""
        def column_trial(u0, p, tspan):
            return np.asarray(u0).reshape(-1, 1)

        base = CustomProblem(column_trial, [0.0, 0.0, 0.0], None, {"r": 0.0})

        def evaluator(sol, i):
            return (sol.result[:, 0], sol.result[:, 0] * 2, float(i)), False

        config = ClassificationConfig(
            ("r", [1.0, 2.0]), evaluator, ic_generators=_const(1.0), n_ic=2,
            transient_fraction=0.0,
        )
        sol = CustomMCBBProblem.from_config(base, config).solve()

        assert sol.trial_count == 2
        assert sol.state_dimension == 3
        assert sol.time_step_count == 3
        assert (sol.measure_count, sol.per_dimension_measure_count, sol.global_measure_count) == (3, 2, 1)
        assert [r[2] for r in sol] == [1.0, 2.0]

    def test_global_measures_from_statistics_evaluator(self):
        """Built-in statistics with a global measure solve on a multi-dimensional system."""
        base = make_problem("coupled_logistic", n_iter=40)
        config = ClassificationConfig(
            ("eps", [0.1, 0.3]),
            make_statistics_evaluator(("mean", "std"), ("std",)),
            ic_ranges=[[0.2, 0.7]],
        )
        sol = CustomMCBBProblem.from_config(base, config).solve()

        assert sol.trial_count == 32
        assert sol.state_dimension == 4
        assert (sol.measure_count, sol.per_dimension_measure_count, sol.global_measure_count) == (3, 2, 1)

    def test_scalar_reduced_result(self):
        """An evaluator returning a bare number raises ShapeError."""
        base = CustomProblem(_identity_trial, [0.0], None, {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0, 2.0]), lambda sol, i: (float(sol[0, 0]), False),
            ic_generators=_const(0.0), n_ic=2, transient_fraction=0.0,
        )
        with pytest.raises(ShapeError, match="scalar"):
            CustomMCBBProblem.from_config(base, config).solve()

    def test_varied_parameter_reaches_trials(self):
        """Each trial sees its own value of the varied parameter."""
        def trial(u0, p, tspan):
            return np.full(4, p["r"])

        base = CustomProblem(trial, [0.0], None, {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0, 2.0, 3.0]), _mean_evaluator, ic_generators=_const(0.0), n_ic=3,
        )
        sol = CustomMCBBProblem.from_config(base, config).solve()
        means = [float(r[0][0]) for r in sol]
        assert means == [1.0, 2.0, 3.0]

    def test_multi_dim_variation(self):
        """Two varied parameters span a grid with the last one fastest."""
        def trial(u0, p, tspan):
            return np.array([p["a"] + p["b"]])

        base = CustomProblem(trial, [0.0], None, {"a": 0.0, "b": 0.0})
        mv = MultiDimParameterVar([ParameterVar("a", [1.0, 2.0]), ParameterVar("b", [10.0, 20.0])])
        config = ClassificationConfig(mv, _mean_evaluator, ic_ranges=[[0.0]], transient_fraction=0.0)
        sol = CustomMCBBProblem.from_config(base, config).solve()
        assert sol.trial_count == 4
        assert [float(r[0][0]) for r in sol] == [11.0, 21.0, 12.0, 22.0]

    def test_inconsistent_measures(self):
        """Reduced results with differing layouts are rejected."""
        def evaluator(sol, i):
            return tuple([1.0] * i), False

        base = CustomProblem(_identity_trial, [0.0, 0.0], None, {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0, 2.0]), evaluator, ic_generators=_const(0.0), n_ic=2,
            transient_fraction=0.0,
        )
        with pytest.raises(ShapeError, match="Trial 2"):
            CustomMCBBProblem.from_config(base, config).solve()

    def test_solve_mcbb_matches_method(self):
        """The function and the method give the same solution."""
        base = CustomProblem(_identity_trial, [0.0], None, {"r": 0.0})
        config = ClassificationConfig(
            ("r", [1.0, 2.0]), _mean_evaluator, ic_generators=_const(0.5), n_ic=2,
        )
        prob = CustomMCBBProblem.from_config(base, config)
        assert solve_mcbb(prob).to_dict() == prob.solve().to_dict()


class TestLogisticBifurcation:
    """End-to-end bifurcation scan of the logistic map."""

    def _solve(self, r_values):
        rng = np.random.default_rng(11)
        config = ClassificationConfig(
            ("r", r_values),
            make_statistics_evaluator(("mean", "std")),
            ic_generators=uniform_generator(0.05, 0.95, rng),
            n_ic=len(r_values),
        )
        return CustomMCBBProblem.from_config(make_problem("logistic", n_iter=200), config).solve()

    def test_fixed_point_and_period_two(self):
        """r=2.5 settles on 0.6; r=3.2 oscillates between two values."""
        sol = self._solve([2.5, 3.2])

        assert sol.state_dimension == 1
        assert (sol.measure_count, sol.per_dimension_measure_count, sol.global_measure_count) == (2, 2, 0)

        (mean_fp, std_fp), (_, std_p2) = sol[0], sol[1]
        assert float(mean_fp[0]) == pytest.approx(0.6, abs=1e-6)
        assert float(std_fp[0]) == pytest.approx(0.0, abs=1e-6)
        assert float(std_p2[0]) > 0.05
