import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from aad_rootfinder.aad.ops import log, tanh
from aad_rootfinder.implicit import ConfigurationError, ConvergenceFailure, Function, rootfinder
from aad_rootfinder.implicit.config import Constraint
from aad_rootfinder.implicit.newton import constrained_step


def test_converges_and_reports_stats():
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F, {"abstol": 1e-10})
    assert_allclose(S([3.0], [2.0])[0], [np.sqrt(2.0)])
    assert S.stats["return_status"] in ("abstol", "abstol_step")
    assert S.stats["residual_norm"] <= 1e-10


def test_max_iter_raises_convergence_failure():
    # z^2 + 1 = 0 has no real root
    F = Function("F", lambda z, p: [z * z + p], [1, 1])
    S = rootfinder("S", "newton", F, {"max_iter": 5})
    with pytest.raises(ConvergenceFailure) as err:
        S([3.0], [1.0])
    assert err.value.iterations == 5
    assert err.value.residual_norm > 0.1
    assert S.stats["return_status"] == "max_iter"


def test_non_finite_residual_raises_convergence_failure():
    F = Function("F", lambda z: [log(z[0]) - 1.0], [1])
    S = rootfinder("S", "newton", F)
    with np.errstate(invalid="ignore"):
        with pytest.raises(ConvergenceFailure, match="non-finite"):
            S([-1.0])


def test_constrained_step():
    z = np.array([1.0, 1.0, 1.0])
    dz = np.array([2.0, 2.0, -1.0])
    assert_allclose(constrained_step(z, dz, np.array([1, 2, 0])), [0.0, 0.01, 2.0])
    assert_allclose(constrained_step(z, dz, None), [-1.0, -1.0, 2.0])


def test_constrained_step_nonpositive_and_negative():
    z = np.array([-1.0, -1.0])
    dz = np.array([-2.0, -2.0])
    codes = np.array([Constraint.NONPOSITIVE, Constraint.NEGATIVE])
    assert_allclose(constrained_step(z, dz, codes), [0.0, -0.01])


def test_strict_constraint_keeps_iterates_positive():
    # Plain Newton from z = 2 overshoots to z < 0 where tanh is flat
    F = Function("F", lambda z: [tanh(z[0]) - 0.5], [1])
    S = rootfinder("S", "newton", F, {"constraints": [">0"]})
    assert_allclose(S([2.0])[0], [np.arctanh(0.5)])


def test_guess_violating_constraint():
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F, {"constraints": [2]})
    with pytest.raises(ConfigurationError, match="violates constraints"):
        S([-1.0], [4.0])
    assert_allclose(S([1.0], [4.0])[0], [2.0])


def test_print_iteration_logs_at_info(caplog):
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F, {"print_iteration": True})
    with caplog.at_level(logging.INFO, logger="aad_rootfinder.implicit.newton"):
        S([1.0], [4.0])
    assert "converged" in caplog.text
    assert "iter" in caplog.text
