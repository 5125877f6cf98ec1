"""
mcbb test suite

Pytest-based tests for custom problems, ensembles and Monte Carlo
basin/bifurcation problems.

Test Structure:
- test_problem.py: CustomProblem / CustomSolution shape contract
- test_ensemble.py: transient trimming and the sequential ensemble runner
- test_parameters.py, test_sampling.py: parameter variation and sampling matrices
- test_measures.py: measure counting and the statistics evaluator
- test_classification.py: CustomMCBBProblem construction and solve
- test_systems.py, test_config.py, test_cli.py: built-in maps, YAML configs, CLI

Run tests with: pytest
"""
