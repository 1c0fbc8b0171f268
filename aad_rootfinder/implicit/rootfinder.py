"""
Rootfinder node: z(p) defined implicitly by F(z, p) = 0.

The node wraps a residual oracle F with one designated unknown input `iin`
and one designated residual output `iout`. Its own inputs and outputs mirror
the oracle's, except that

    input  iin  : initial guess for z (may be None -> zeros)
    output iout : the root z

and every other output is the oracle's auxiliary output evaluated at the
root.

Derivatives follow the implicit function theorem with J = ∂F/∂z at the root:

    forward :  dz = -J⁻¹ (∂F/∂p · dp)
    reverse :  λ  = -J⁻ᵀ (z̄ + aux contribution),   p̄ = (∂F/∂p)ᵀ λ + aux contribution

The same two algorithms run on dependency words for sparsity propagation,
with OR for addition and the structural solve of J for the linear solve
(see `ring`). The guess never receives or transmits a derivative.

Concrete iterative algorithms subclass `Rootfinder`, implement `solve(args)`
and register themselves with `register_rootfinder`.

Concurrency: a node owns one linear solver whose factorization is updated in
place by `evaluate`, `forward` and `reverse`. Calls on the same instance
must not overlap.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import RootfinderOptions, parse_constraints
from .exceptions import ConfigurationError, RootfinderError, StructuralSingularity
from .function import FunctionBase, JacobianFunction
from .linsol import linear_solver
from .plugins import PluginRegistry
from .ring import BooleanRing, NumericRing

logger = logging.getLogger(__name__)

rootfinder_plugins = PluginRegistry("rootfinder")


class Rootfinder(FunctionBase):
    """Base rootfinder node. Use `rootfinder(name, solver, f, opts)` to build one."""

    options_class = RootfinderOptions
    plugin_name = "rootfinder"

    def __init__(self, name: str, oracle: FunctionBase, opts: Any = None):
        if not isinstance(oracle, FunctionBase):
            raise ConfigurationError(f"{name}: oracle must be a Function, got {type(oracle).__name__}")
        self.opts = self.options_class.from_dict(opts)
        self._oracle = oracle
        shapes_out = [oracle.shape_out(k) for k in range(oracle.n_out)]
        if 0 <= self.opts.implicit_input < oracle.n_in and 0 <= self.opts.implicit_output < oracle.n_out:
            shapes_out[self.opts.implicit_output] = oracle.shape_in(self.opts.implicit_input)
        super().__init__(
            name,
            [oracle.shape_in(k) for k in range(oracle.n_in)],
            shapes_out,
            names_in=[oracle.name_in(k) for k in range(oracle.n_in)],
            names_out=[oracle.name_out(k) for k in range(oracle.n_out)],
        )
        self.iin = self.opts.implicit_input
        self.iout = self.opts.implicit_output
        self.n = 0
        self.jac: Optional[JacobianFunction] = None
        self.linsol = None
        self.constraints: Optional[np.ndarray] = None
        self.stats: Dict[str, Any] = {}
        self._ready = False

    @property
    def oracle(self) -> FunctionBase:
        """The residual function F."""
        return self._oracle

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def sparsity_jac(self):
        self._require_ready()
        return self.jac.sparsity

    # ------------------------------------------------------------------ #
    # Setup: Unset -> Ready
    # ------------------------------------------------------------------ #
    def setup(self) -> "Rootfinder":
        if self._ready:
            return self
        f, iin, iout = self._oracle, self.iin, self.iout
        if not 0 <= iin < f.n_in:
            raise ConfigurationError(
                f"{self.name}: Implicit input not in range, got {iin} but the function has {f.n_in} inputs"
            )
        if not 0 <= iout < f.n_out:
            raise ConfigurationError(
                f"{self.name}: Implicit output not in range, got {iout} but the function has {f.n_out} outputs"
            )
        sp_z, sp_r = f.sparsity_in(iin), f.sparsity_out(iout)
        if not (sp_r.is_dense() and sp_r.is_column()):
            raise ConfigurationError(f"{self.name}: Residual must be a dense vector, got shape {sp_r.shape}")
        if not (sp_z.is_dense() and sp_z.is_column()):
            raise ConfigurationError(f"{self.name}: Unknown must be a dense vector, got shape {sp_z.shape}")
        n = sp_z.nnz
        if sp_r.nnz != n:
            raise ConfigurationError(
                f"{self.name}: Dimension mismatch. Input size is {n}, while output size is {sp_r.nnz}"
            )
        self.n = n

        jac = self.opts.jacobian_function
        if jac is None:
            jac = f.jacobian(iin, iout)
        elif not isinstance(jac, JacobianFunction):
            raise ConfigurationError(
                f"{self.name}: jacobian_function must be a JacobianFunction, got {type(jac).__name__}"
            )
        if jac.sparsity.shape != (n, n):
            raise ConfigurationError(
                f"{self.name}: Jacobian has shape {jac.sparsity.shape}, expected ({n}, {n})"
            )
        rank = jac.sparsity.sprank()
        logger.debug("%s: jacobian %r, sprank=%d", self.name, jac.sparsity, rank)
        if rank < n:
            raise StructuralSingularity(rank, n, where=self.name)
        self.jac = jac

        self.linsol = linear_solver(self.opts.linear_solver, self.opts.linear_solver_options)
        self.linsol.reset(jac.sparsity)
        self.constraints = parse_constraints(self.opts.constraints, n)

        self._ready = True
        logger.debug("%s: ready (%s, n=%d, linear_solver=%s)", self.name, self.plugin_name, n, self.linsol.name)
        return self

    def _require_ready(self):
        if not self._ready:
            raise RootfinderError(f"{self.name}: setup() must be called before use")

    # ------------------------------------------------------------------ #
    # Evaluation
    # ------------------------------------------------------------------ #
    def _check_args(self, args: Sequence[Any]) -> List[np.ndarray]:
        if len(args) == self.n_in and args[self.iin] is None:
            args = list(args)
            args[self.iin] = np.zeros(self.nnz_in(self.iin))
        return super()._check_args(args)

    def solve(self, args: List[np.ndarray]) -> np.ndarray:
        """Root z for checked arguments; args[iin] is the guess. Implemented by plugins."""
        raise NotImplementedError(f"{type(self).__name__} does not implement solve()")

    def _at_root(self, args, res):
        """Oracle arguments with the root substituted for the guess, and the node outputs."""
        if res is None:
            z = self.solve(args)
        else:
            z = np.asarray(res[self.iout], dtype=float).ravel()
        at_root = list(args)
        at_root[self.iin] = z
        if res is None:
            res = self._oracle.evaluate(at_root)
            res[self.iout] = z.copy()
        return at_root, res

    def evaluate(self, args):
        self._require_ready()
        args = self._check_args(args)
        return self._at_root(args, None)[1]

    # ------------------------------------------------------------------ #
    # Numeric sensitivities
    # ------------------------------------------------------------------ #
    def forward(self, args, fseeds, res=None):
        """
        Forward sensitivities of all outputs.

        If `res` (outputs of a previous `evaluate` at the same args) is given,
        its root is reused instead of solving again.
        """
        self._require_ready()
        args = self._check_args(args)
        seeds, ndir = self._check_seeds(fseeds, self._sizes_in(), "forward seed")
        at_root, res = self._at_root(args, res)
        self.linsol.factorize(self.jac(at_root))
        ring = NumericRing(self._oracle, at_root, self.linsol, ndir)
        return res, self._fwd(ring, seeds)

    def reverse(self, args, aseeds, res=None, guess_sens=None):
        """
        Adjoint sensitivities of all inputs.

        The adjoint of the guess input is `guess_sens` as given (zeros by
        default); the root does not depend on the guess.
        """
        self._require_ready()
        args = self._check_args(args)
        seeds, ndir = self._check_seeds(aseeds, self._sizes_out(), "adjoint seed")
        at_root, res = self._at_root(args, res)
        self.linsol.factorize(self.jac(at_root))
        ring = NumericRing(self._oracle, at_root, self.linsol, ndir)
        if guess_sens is None:
            guess = ring.zeros(self.n)
        else:
            guess = np.array(guess_sens, dtype=float).reshape(self.n, ndir)
        return res, self._rev(ring, seeds, guess)

    # ------------------------------------------------------------------ #
    # Dependency propagation
    # ------------------------------------------------------------------ #
    def sp_forward(self, arg_bits):
        self._require_ready()
        bits = self._check_bits(arg_bits, self._sizes_in(), "input dependency vector")
        return self._fwd(BooleanRing(self._oracle, self.linsol), bits)

    def sp_reverse(self, res_bits, guess_bits=None):
        self._require_ready()
        bits = self._check_bits(res_bits, self._sizes_out(), "output dependency vector")
        ring = BooleanRing(self._oracle, self.linsol)
        if guess_bits is None:
            guess = ring.zeros(self.n)
        else:
            guess = np.array(guess_bits, dtype=np.uint64).reshape(self.n)
        return self._rev(ring, bits, guess)

    # ------------------------------------------------------------------ #
    # The two propagation rules, shared by numeric and dependency seeds
    # ------------------------------------------------------------------ #
    def _fwd(self, ring, seeds):
        iin, iout = self.iin, self.iout
        seeds = list(seeds)
        # the guess does not influence the root
        seeds[iin] = ring.zeros(self.n)
        sens = ring.forward(seeds)
        dz = ring.solve(ring.neg(sens[iout]), False)
        if self.n_out > 1:
            # auxiliary outputs see z through dz
            seeds[iin] = dz
            sens = ring.forward(seeds)
        sens[iout] = dz
        return sens

    def _rev(self, ring, seeds, guess):
        iin, iout = self.iin, self.iout
        seeds = list(seeds)
        rhs = seeds[iout]
        seeds[iout] = ring.zeros(self.n)
        sens_aux = None
        if self.n_out > 1:
            sens_aux = ring.reverse(seeds)
            rhs = ring.add(sens_aux[iin], rhs)
        lam = ring.solve(ring.neg(rhs), True)
        only_r = [ring.zeros(self.nnz_out(k)) for k in range(self.n_out)]
        only_r[iout] = lam
        sens = ring.reverse(only_r)
        sens[iin] = guess
        if sens_aux is not None:
            for k in range(self.n_in):
                if k != iin:
                    sens[k] = ring.add(sens[k], sens_aux[k])
        return sens


# ---------------------------------------------------------------------- #
# Registry and factory
# ---------------------------------------------------------------------- #
def register_rootfinder(name: str, doc: str = ""):
    """Class decorator adding a Rootfinder subclass to `rootfinder_plugins`."""
    def deco(cls):
        cls.plugin_name = name
        rootfinder_plugins.register(name, cls, doc)
        return cls
    return deco


def has_rootfinder(name: str) -> bool:
    return rootfinder_plugins.has(name)


def load_rootfinder(name: str):
    return rootfinder_plugins.get(name)


def doc_rootfinder(name: str) -> str:
    return rootfinder_plugins.doc(name)


def rootfinder(name: str, solver: str, f: FunctionBase, opts: Any = None) -> Rootfinder:
    """
    Build a ready rootfinder node.

    Example
    -------
    F = Function("F", lambda z, p: [z * z - p], [1, 1])
    S = rootfinder("S", "newton", F)
    S([1.0], [4.0])  -> [array([2.])]
    """
    cls = rootfinder_plugins.get(solver)
    return cls(name, f, opts).setup()
