"""Embedding functions and rootfinders as nodes of a surrounding tape."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from aad_rootfinder import ADVar, Function, Tape, call, grad, rootfinder, use_tape, reverse
from aad_rootfinder.aad.ops import sin


def test_call_records_function_partials():
    F = Function("F", lambda x, y: [x[0] * y[0], x[0] + 2.0 * y[0]], [1, 1])

    def f(x):
        out = call(F, [x], [3.0])
        return out[0][0] + out[1][0]

    # d/dx (3x + x + 6) = 4
    assert grad(f, 1.5) == pytest.approx(4.0)


def test_call_with_constant_inputs_returns_constants():
    F = Function("F", lambda x: [sin(x[0])], [1])
    with use_tape() as t:
        out = call(F, [0.5])
        assert len(t) == 0
        assert not out[0][0].requires_grad
        assert float(out[0][0]) == pytest.approx(np.sin(0.5))


def test_gradient_flows_through_rootfinder():
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F)

    def f(p):
        z = call(S, [1.0], [p])[0][0]
        return z * z

    # z = sqrt(p), so z^2 = p
    assert grad(f, 4.0) == pytest.approx(1.0)


def test_guess_receives_no_adjoint():
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F)
    with use_tape():
        g, p = ADVar(1.0), ADVar(9.0)
        z = call(S, [g], [p])[0][0]
        assert float(z) == pytest.approx(3.0)
        reverse(z)
        assert g.adj == 0.0
        assert p.adj == pytest.approx(1.0 / 6.0)


def test_call_keeps_edges_whose_partial_vanishes_at_nominal():
    # z = (p - 1)^2 has dz/dp = 0 at the nominal point p = 1
    F = Function("F", lambda z, p: [z - (p - 1.0) * (p - 1.0)], [1, 1])
    S = rootfinder("S", "newton", F)
    G = Function("G", lambda p: call(S, [1.0], p)[0], [1])

    _, fsens = G.forward([[3.0]], [[1.0]])
    assert_allclose(fsens[0], [[4.0]])
    assert (0, 0) in G.jac_sparsity()
    assert (0, 0) in G.jac_sparsity(mode="reverse")


def test_dependency_queries_do_not_solve():
    # z^2 + p = 0 has no real root at the nominal point p = 1
    F = Function("F", lambda z, p: [z * z + p], [1, 1])
    S = rootfinder("S", "newton", F)
    G = Function("G", lambda p: call(S, [1.0], p)[0], [1])

    assert G.jac_sparsity().entries() == {(0, 0)}
    assert_allclose(G.evaluate([[-4.0]])[0], [2.0])


def test_call_on_dependency_tape_records_structural_edges():
    F = Function("F", lambda x, y: [x[0] * y[0], sin(y[0])], [1, 1])
    with use_tape(Tape(numeric=False)) as t:
        x, y = ADVar(0.0), ADVar(0.0)
        out = call(F, [x], [y])
        assert np.isnan(float(out[0][0]))
        assert [len(n.parents) for n in t.nodes] == [2, 1]
