import numpy as np
import pytest
from numpy.testing import assert_allclose

from aad_rootfinder.aad.ops import exp, sin
from aad_rootfinder.implicit import ConfigurationError, Function, JacobianFunction, Sparsity


def residual(x, p):
    return [[x[0] * x[1] - p[0], exp(x[0]) + p[0] * x[1]], p[0] * p[0]]


@pytest.fixture
def F():
    return Function("F", residual, [2, 1], names_in=["x", "p"], names_out=["r", "q"])


def test_sizes_are_inferred(F):
    assert F.n_in == 2 and F.n_out == 2
    assert F.shape_out(0) == (2, 1)
    assert F.nnz_out(1) == 1
    assert F.name_in(1) == "p"


def test_evaluate(F):
    r, q = F([0.5, 2.0], [3.0])
    assert_allclose(r, [1.0 - 3.0, np.exp(0.5) + 6.0])
    assert_allclose(q, [9.0])


def test_forward_matches_finite_differences(F):
    rng = np.random.default_rng(0)
    x, p = rng.normal(size=2), rng.normal(size=1)
    dx, dp = rng.normal(size=2), rng.normal(size=1)
    _, fsens = F.forward([x, p], [dx, dp])
    h = 1e-6
    plus = F.evaluate([x + h * dx, p + h * dp])
    minus = F.evaluate([x - h * dx, p - h * dp])
    for k in range(F.n_out):
        assert fsens[k].shape == (F.nnz_out(k), 1)
        assert_allclose(fsens[k][:, 0], (plus[k] - minus[k]) / (2 * h), rtol=1e-6, atol=1e-8)


def test_forward_reverse_duality(F):
    rng = np.random.default_rng(1)
    args = [rng.normal(size=2), rng.normal(size=1)]
    fseeds = [rng.normal(size=(2, 3)), rng.normal(size=(1, 3))]
    aseeds = [rng.normal(size=(2, 3)), rng.normal(size=(1, 3))]
    _, fsens = F.forward(args, fseeds)
    _, asens = F.reverse(args, aseeds)
    lhs = sum(np.sum(s * a, axis=0) for s, a in zip(fseeds, asens))
    rhs = sum(np.sum(a * s, axis=0) for a, s in zip(aseeds, fsens))
    assert_allclose(lhs, rhs)


def test_none_seed_is_zero(F):
    _, fsens = F.forward([[0.5, 2.0], [3.0]], [None, [1.0]])
    assert_allclose(fsens[0][:, 0], [-1.0, 2.0])
    assert_allclose(fsens[1][:, 0], [6.0])


def test_dependency_patterns(F):
    assert F.jac_sparsity(0, 0).entries() == {(0, 0), (0, 1), (1, 0), (1, 1)}
    assert F.jac_sparsity(1, 0).entries() == {(0, 0), (1, 0)}
    assert F.jac_sparsity(0, 1).nnz == 0
    for iin in range(2):
        for iout in range(2):
            assert F.jac_sparsity(iin, iout, "forward") == F.jac_sparsity(iin, iout, "reverse")


def test_constant_zero_coefficient_is_not_a_dependency():
    A = Function("A", lambda x: [[1.0 * x[0] + 0.0 * x[1], 2.0 * x[1]]], [2])
    assert A.jac_sparsity().entries() == {(0, 0), (1, 1)}


def test_jacobian_on_pattern(F):
    J = F.jacobian(0, 0)
    assert isinstance(J, JacobianFunction)
    x, p = np.array([0.5, 2.0]), np.array([3.0])
    assert_allclose(J([x, p]).toarray(), [[x[1], x[0]], [np.exp(x[0]), p[0]]])


def test_identity_output():
    I = Function("I", lambda x: [x], [3])
    _, fsens = I.forward([np.arange(3.0)], [np.eye(3)])
    assert_allclose(fsens[0], np.eye(3))
    _, asens = I.reverse([np.arange(3.0)], [np.eye(3)])
    assert_allclose(asens[0], np.eye(3))
    assert I.jac_sparsity() == Sparsity.diag(3)
    assert I.jac_sparsity(mode="reverse") == Sparsity.diag(3)


def test_matrix_input():
    det = Function("det", lambda A: [A[0, 0] * A[1, 1] - A[0, 1] * A[1, 0]], [(2, 2)])
    assert det.shape_in(0) == (2, 2)
    _, asens = det.reverse([np.array([[1.0, 2.0], [3.0, 4.0]])], [[1.0]])
    assert_allclose(asens[0][:, 0], [4.0, -3.0, -2.0, 1.0])


def test_wide_dependency_sweeps():
    n = 70
    G = Function("G", lambda x: [[x[k] * x[(k + 1) % n] for k in range(n)]], [n])
    S = G.jac_sparsity()
    assert S.nnz == 2 * n
    assert (n - 1, 0) in S and (n - 1, n - 1) in S
    assert G.jac_sparsity(mode="reverse") == S


def test_size_errors(F):
    with pytest.raises(ConfigurationError, match="input 1"):
        F.evaluate([np.zeros(2), np.zeros(3)])
    with pytest.raises(ConfigurationError, match="expected 2 inputs"):
        F.evaluate([np.zeros(2)])
    with pytest.raises(ConfigurationError, match="forward seed 0"):
        F.forward([np.zeros(2), np.zeros(1)], [np.zeros(5), None])
    with pytest.raises(ConfigurationError, match="directions"):
        F.forward([np.zeros(2), np.zeros(1)], [np.zeros((2, 2)), np.zeros((1, 3))])


def test_declared_output_size_checked():
    with pytest.raises(ConfigurationError, match="output 0"):
        Function("F", lambda x: [sin(x[0])], [1], [2])
