"""
Linear solve service.

A LinearSolver is prepared once for a sparsity pattern (`reset`), factorized
at every new point (`factorize`) and then answers any number of solves with
A or Aᵀ. Structural solves on dependency words go through the pattern and
need no factorization.

Backends are plugins in `linsol_plugins`:

    "splu"  : scipy SuperLU on CSC matrices (default)
    "dense" : LAPACK LU via scipy.linalg on a dense copy
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import numpy as np
import scipy.sparse as sp
from scipy.linalg import lu_factor, lu_solve
from scipy.sparse.linalg import splu

from .exceptions import ConfigurationError, LinearSolveError
from .plugins import PluginRegistry
from .sparsity import Sparsity

logger = logging.getLogger(__name__)

linsol_plugins = PluginRegistry("linear solver")


class LinearSolver:
    """Base class: pattern bookkeeping, shape checks and the structural solve."""

    name = "linsol"

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options = dict(options or {})
        self.sparsity: Optional[Sparsity] = None
        self._factorized = False

    def reset(self, sparsity: Sparsity):
        if not sparsity.is_square():
            raise LinearSolveError(f"{self.name}: matrix must be square, got {sparsity.shape}")
        self.sparsity = sparsity
        self._factorized = False
        logger.debug("%s: prepared for %r", self.name, sparsity)

    def _check_matrix(self, A) -> None:
        if self.sparsity is None:
            raise LinearSolveError(f"{self.name}: reset() must be called before factorize()")
        if A.shape != self.sparsity.shape:
            raise LinearSolveError(
                f"{self.name}: matrix shape {A.shape} does not match prepared pattern {self.sparsity.shape}"
            )

    def _check_rhs(self, rhs) -> np.ndarray:
        if not self._factorized:
            raise LinearSolveError(f"{self.name}: solve() called before factorize()")
        rhs = np.asarray(rhs, dtype=float)
        if rhs.shape[0] != self.sparsity.size1:
            raise LinearSolveError(
                f"{self.name}: right-hand side has {rhs.shape[0]} rows, expected {self.sparsity.size1}"
            )
        return rhs

    def factorize(self, A) -> None:
        raise NotImplementedError

    def solve(self, rhs, transpose: bool = False) -> np.ndarray:
        raise NotImplementedError

    def structural_solve(self, bits, transpose: bool = False) -> np.ndarray:
        if self.sparsity is None:
            raise LinearSolveError(f"{self.name}: reset() must be called before structural_solve()")
        return self.sparsity.spsolve(bits, transpose=transpose)


class SpluSolver(LinearSolver):
    """Sparse LU with SuperLU. Option `permc_spec` selects the column ordering."""

    name = "splu"

    def __init__(self, options=None):
        super().__init__(options)
        unknown = set(self.options) - {"permc_spec"}
        if unknown:
            raise ConfigurationError(f"Unknown option(s) {sorted(unknown)} for linear solver 'splu'")
        self.permc_spec = self.options.get("permc_spec", "COLAMD")
        self._lu = None

    def factorize(self, A) -> None:
        self._check_matrix(A)
        A = sp.csc_matrix(A, dtype=float)
        self._factorized = False
        try:
            self._lu = splu(A, permc_spec=self.permc_spec)
        except RuntimeError as err:
            raise LinearSolveError(f"splu: factorization failed ({err})") from err
        self._factorized = True

    def solve(self, rhs, transpose: bool = False) -> np.ndarray:
        rhs = self._check_rhs(rhs)
        x = self._lu.solve(np.ascontiguousarray(rhs), trans="T" if transpose else "N")
        if not np.all(np.isfinite(x)):
            raise LinearSolveError("splu: solution is not finite")
        return x


class DenseSolver(LinearSolver):
    """Dense LU with partial pivoting (scipy.linalg.lu_factor)."""

    name = "dense"

    def __init__(self, options=None):
        super().__init__(options)
        if self.options:
            raise ConfigurationError(f"Unknown option(s) {sorted(self.options)} for linear solver 'dense'")
        self._lu_piv = None

    def factorize(self, A) -> None:
        self._check_matrix(A)
        M = A.toarray() if sp.issparse(A) else np.asarray(A, dtype=float)
        self._factorized = False
        lu, piv = lu_factor(M, check_finite=True)
        if np.any(np.diag(lu) == 0.0):
            raise LinearSolveError("dense: matrix is exactly singular")
        self._lu_piv = (lu, piv)
        self._factorized = True

    def solve(self, rhs, transpose: bool = False) -> np.ndarray:
        rhs = self._check_rhs(rhs)
        return lu_solve(self._lu_piv, rhs, trans=1 if transpose else 0)


linsol_plugins.register("splu", SpluSolver)
linsol_plugins.register("dense", DenseSolver)


def linear_solver(name: str, options: Optional[Dict[str, Any]] = None) -> LinearSolver:
    """Instantiate a registered linear solver by name."""
    return linsol_plugins.get(name)(options)
