"""
Residual oracles.

`FunctionBase` fixes the calling convention shared by every differentiable
node in this package (plain oracles and rootfinders alike):

    evaluate(args)                    -> [out_0, out_1, ...]
    forward(args, fseeds, res=None)   -> (res, fsens)      tangents
    reverse(args, aseeds, res=None)   -> (res, asens)      adjoints
    sp_forward(arg_bits)              -> res_bits          dependency words
    sp_reverse(res_bits)              -> arg_bits

Values are flat float arrays, one per input/output. Seeds are (nnz, ndir)
arrays; a 1-D seed is one direction and None stands for zero. Dependency
words are uint64 arrays of length nnz, 64 seed directions per sweep.

On top of that convention `FunctionBase` derives Jacobian sparsity (by
bit-vector propagation) and numeric Jacobians (by forward propagation).

`Function` implements the convention for a Python callable written with
ADVar arithmetic: each call traces the callable onto a fresh tape and sweeps
the recorded nodes.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

from ..aad.core.tape import Tape, use_tape
from ..aad.core.var import ADVar
from ..aad.core.engine import (
    forward_sweep,
    reverse_sweep,
    sp_forward_sweep,
    sp_reverse_sweep,
    zero_adjoints,
    zero_bits,
    zero_tangents,
)
from .exceptions import ConfigurationError
from .sparsity import Sparsity

BVEC_BITS = 64

Shape = Tuple[int, int]


def as_shape(size: Union[int, Sequence[int]]) -> Shape:
    """Normalize a size: n -> (n, 1), (r, c) -> (r, c)."""
    if isinstance(size, (int, np.integer)):
        shape = (int(size), 1)
    else:
        shape = tuple(int(s) for s in size)
        if len(shape) == 1:
            shape = (shape[0], 1)
    if len(shape) != 2 or min(shape) < 0:
        raise ConfigurationError(f"Invalid size specification {size!r}")
    return shape


def unit_bits(width: int) -> np.ndarray:
    """Words 1, 2, 4, ... : one distinct bit per seeded entry."""
    return np.left_shift(np.uint64(1), np.arange(width, dtype=np.uint64))


class FunctionBase:
    """Calling convention and derived services shared by all nodes."""

    name: str = "function"

    def __init__(self, name: str, shapes_in: Sequence[Shape], shapes_out: Sequence[Shape],
                 names_in: Optional[Sequence[str]] = None,
                 names_out: Optional[Sequence[str]] = None):
        self.name = name
        self._shapes_in: List[Shape] = [as_shape(s) for s in shapes_in]
        self._shapes_out: List[Shape] = [as_shape(s) for s in shapes_out]
        self._names_in = list(names_in) if names_in is not None else [f"i{k}" for k in range(len(self._shapes_in))]
        self._names_out = list(names_out) if names_out is not None else [f"o{k}" for k in range(len(self._shapes_out))]
        if len(self._names_in) != len(self._shapes_in) or len(self._names_out) != len(self._shapes_out):
            raise ConfigurationError(f"{name}: number of names does not match number of inputs/outputs")

    # ---- shape queries ------------------------------------------------ #
    @property
    def n_in(self) -> int:
        return len(self._shapes_in)

    @property
    def n_out(self) -> int:
        return len(self._shapes_out)

    def shape_in(self, i: int) -> Shape:
        return self._shapes_in[i]

    def shape_out(self, i: int) -> Shape:
        return self._shapes_out[i]

    def nnz_in(self, i: int) -> int:
        r, c = self._shapes_in[i]
        return r * c

    def nnz_out(self, i: int) -> int:
        r, c = self._shapes_out[i]
        return r * c

    def name_in(self, i: int) -> str:
        return self._names_in[i]

    def name_out(self, i: int) -> str:
        return self._names_out[i]

    def sparsity_in(self, i: int) -> Sparsity:
        return Sparsity.dense(*self._shapes_in[i])

    def sparsity_out(self, i: int) -> Sparsity:
        return Sparsity.dense(*self._shapes_out[i])

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, n_in={self.n_in}, n_out={self.n_out})"

    # ---- argument normalization ---------------------------------------- #
    def _check_args(self, args: Sequence[Any]) -> List[np.ndarray]:
        if len(args) != self.n_in:
            raise ConfigurationError(f"{self.name}: expected {self.n_in} inputs, got {len(args)}")
        out = []
        for i, a in enumerate(args):
            a = np.asarray(a, dtype=float).ravel()
            if a.size != self.nnz_in(i):
                raise ConfigurationError(
                    f"{self.name}: input {i} ('{self.name_in(i)}') has {a.size} entries, "
                    f"expected {self.nnz_in(i)}"
                )
            out.append(a)
        return out

    def _check_seeds(self, seeds: Optional[Sequence[Any]], sizes: Sequence[int],
                     what: str) -> Tuple[List[Optional[np.ndarray]], int]:
        if seeds is None:
            seeds = [None] * len(sizes)
        if len(seeds) != len(sizes):
            raise ConfigurationError(f"{self.name}: expected {len(sizes)} {what}s, got {len(seeds)}")
        ndir = None
        out: List[Optional[np.ndarray]] = []
        for k, (s, n) in enumerate(zip(seeds, sizes)):
            if s is None:
                out.append(None)
                continue
            s = np.asarray(s, dtype=float)
            if s.ndim < 2:
                s = s.reshape(-1, 1)
            if s.ndim != 2 or s.shape[0] != n:
                raise ConfigurationError(
                    f"{self.name}: {what} {k} has {s.shape[0]} rows, expected {n}"
                )
            if ndir is None:
                ndir = s.shape[1]
            elif s.shape[1] != ndir:
                raise ConfigurationError(
                    f"{self.name}: {what} {k} has {s.shape[1]} directions, expected {ndir}"
                )
            out.append(s)
        ndir = 1 if ndir is None else ndir
        return [np.zeros((n, ndir)) if s is None else s for s, n in zip(out, sizes)], ndir

    def _check_bits(self, bits: Optional[Sequence[Any]], sizes: Sequence[int], what: str) -> List[np.ndarray]:
        if bits is None:
            bits = [None] * len(sizes)
        if len(bits) != len(sizes):
            raise ConfigurationError(f"{self.name}: expected {len(sizes)} {what}s, got {len(bits)}")
        out = []
        for k, (b, n) in enumerate(zip(bits, sizes)):
            if b is None:
                out.append(np.zeros(n, dtype=np.uint64))
                continue
            b = np.asarray(b, dtype=np.uint64).ravel()
            if b.size != n:
                raise ConfigurationError(f"{self.name}: {what} {k} has {b.size} entries, expected {n}")
            out.append(b)
        return out

    def _sizes_in(self) -> List[int]:
        return [self.nnz_in(i) for i in range(self.n_in)]

    def _sizes_out(self) -> List[int]:
        return [self.nnz_out(i) for i in range(self.n_out)]

    # ---- the convention ------------------------------------------------- #
    def evaluate(self, args: Sequence[Any]) -> List[np.ndarray]:
        raise NotImplementedError

    def forward(self, args, fseeds, res=None):
        raise NotImplementedError

    def reverse(self, args, aseeds, res=None):
        raise NotImplementedError

    def sp_forward(self, arg_bits):
        raise NotImplementedError

    def sp_reverse(self, res_bits):
        raise NotImplementedError

    def __call__(self, *args):
        return self.evaluate(list(args))

    # ---- derived services ----------------------------------------------- #
    def jac_sparsity(self, iin: int = 0, iout: int = 0, mode: str = "forward") -> Sparsity:
        """
        Pattern of ∂out[iout]/∂in[iin] from dependency propagation.

        "forward" seeds one bit per input entry (64 columns per sweep),
        "reverse" one bit per output entry (64 rows per sweep).
        """
        n, m = self.nnz_in(iin), self.nnz_out(iout)
        rows: List[np.ndarray] = []
        cols: List[np.ndarray] = []
        if mode == "forward":
            for offset in range(0, n, BVEC_BITS):
                width = min(BVEC_BITS, n - offset)
                seeds = [np.zeros(k, dtype=np.uint64) for k in self._sizes_in()]
                seeds[iin][offset:offset + width] = unit_bits(width)
                words = self.sp_forward(seeds)[iout]
                for k in range(width):
                    hit = np.nonzero(words & np.uint64(1 << k))[0]
                    rows.append(hit)
                    cols.append(np.full(hit.size, offset + k))
        elif mode == "reverse":
            for offset in range(0, m, BVEC_BITS):
                width = min(BVEC_BITS, m - offset)
                seeds = [np.zeros(k, dtype=np.uint64) for k in self._sizes_out()]
                seeds[iout][offset:offset + width] = unit_bits(width)
                words = self.sp_reverse(seeds)[iin]
                for k in range(width):
                    hit = np.nonzero(words & np.uint64(1 << k))[0]
                    cols.append(hit)
                    rows.append(np.full(hit.size, offset + k))
        else:
            raise ConfigurationError(f"mode must be 'forward' or 'reverse', got {mode!r}")
        if rows:
            return Sparsity(m, n, np.concatenate(rows), np.concatenate(cols))
        return Sparsity(m, n)

    def jacobian(self, iin: int = 0, iout: int = 0) -> "JacobianFunction":
        """Numeric ∂out[iout]/∂in[iin] on its inferred pattern."""
        pattern = self.jac_sparsity(iin, iout)
        n = self.nnz_in(iin)

        def jac(args):
            seeds: List[Optional[np.ndarray]] = [None] * self.n_in
            seeds[iin] = np.eye(n)
            _, fsens = self.forward(args, seeds)
            return fsens[iout]

        return JacobianFunction(jac, pattern, name=f"jac_{self.name}")


class JacobianFunction:
    """
    A Jacobian evaluator paired with its (fixed) sparsity pattern.

    `fn(args)` may return a dense array or a scipy sparse matrix; the result
    is always projected onto `sparsity` as a csc_matrix.
    """

    def __init__(self, fn: Callable[[Sequence[np.ndarray]], Any], sparsity: Sparsity, name: str = "jac"):
        if not isinstance(sparsity, Sparsity):
            raise ConfigurationError(f"{name}: sparsity must be a Sparsity, got {type(sparsity).__name__}")
        self.fn = fn
        self.sparsity = sparsity
        self.name = name

    def __call__(self, args: Sequence[np.ndarray]) -> sp.csc_matrix:
        A = self.fn(args)
        if not sp.issparse(A):
            A = np.asarray(A, dtype=float).reshape(self.sparsity.shape)
        return self.sparsity.project(A)

    def __repr__(self):
        return f"JacobianFunction({self.name!r}, {self.sparsity!r})"


class _Trace:
    """One recording of the oracle: the tape, its leaf inputs and its outputs."""

    def __init__(self, tape: Tape, inputs: List[np.ndarray], outputs: List[np.ndarray]):
        self.tape = tape
        self.inputs = inputs
        self.outputs = outputs

    def values(self) -> List[np.ndarray]:
        return [np.array([float(v.val) for v in out], dtype=float) for out in self.outputs]


class Function(FunctionBase):
    """
    Oracle built from a Python callable on ADVar arrays.

    Parameters
    ----------
    name : str
    fn : callable(*inputs) -> output or list of outputs
        Each input is a numpy object array of scalar ADVars (1-D for column
        vectors, 2-D otherwise). Outputs may be ADVars, numbers or any
        array-like of them.
    sizes_in : list of int or (rows, cols)
    sizes_out : list of int or (rows, cols), optional
        Inferred by tracing at `nominal` when omitted.
    nominal : list of array-like, optional
        Point used to infer output sizes and for structural sweeps
        (default: all ones).

    Notes
    -----
    Every numeric call re-traces `fn`, so local partials are exact at the
    requested point. Structural sweeps use the nominal trace: control flow in
    `fn` that depends on values is not reflected in dependency words. That
    trace is recorded on a non-numeric tape, so embedded calls contribute
    their dependency pattern without being evaluated.
    """

    def __init__(self, name: str, fn: Callable, sizes_in: Sequence[Any],
                 sizes_out: Optional[Sequence[Any]] = None, *,
                 names_in: Optional[Sequence[str]] = None,
                 names_out: Optional[Sequence[str]] = None,
                 nominal: Optional[Sequence[Any]] = None):
        shapes_in = [as_shape(s) for s in sizes_in]
        self.fn = fn
        self.name = name
        self._shapes_in = shapes_in
        self._names_in = list(names_in) if names_in is not None else [f"i{k}" for k in range(len(shapes_in))]
        if nominal is None:
            nominal = [np.ones(r * c) for r, c in shapes_in]
        traced = self._trace([np.asarray(a, dtype=float).ravel() for a in nominal], numeric=False)
        inferred = [(len(out), 1) for out in traced.outputs]
        if sizes_out is None:
            shapes_out = inferred
        else:
            shapes_out = [as_shape(s) for s in sizes_out]
            if len(shapes_out) != len(inferred):
                raise ConfigurationError(
                    f"{name}: declared {len(shapes_out)} outputs but fn returned {len(inferred)}"
                )
            for k, (decl, got) in enumerate(zip(shapes_out, inferred)):
                if decl[0] * decl[1] != got[0]:
                    raise ConfigurationError(
                        f"{name}: output {k} declared with {decl[0] * decl[1]} entries, fn returned {got[0]}"
                    )
        super().__init__(name, shapes_in, shapes_out, names_in=names_in, names_out=names_out)
        self.nominal = self._check_args(nominal)

    # ---- tracing -------------------------------------------------------- #
    def _leaves(self, i: int, values: np.ndarray) -> np.ndarray:
        name = self._names_in[i]
        leaves = np.empty(values.size, dtype=object)
        for k, v in enumerate(values):
            leaves[k] = ADVar(float(v), name=f"{name}[{k}]")
        return leaves

    @staticmethod
    def _as_output(r: Any) -> np.ndarray:
        flat = np.ravel(np.asarray(r, dtype=object))
        out = np.empty(flat.size, dtype=object)
        for k, v in enumerate(flat):
            out[k] = v if isinstance(v, ADVar) else ADVar(float(v), requires_grad=False)
        return out

    def _trace(self, args: List[np.ndarray], numeric: bool = True) -> _Trace:
        with use_tape(Tape(numeric=numeric)) as tape:
            leaves = [self._leaves(i, a) for i, a in enumerate(args)]
            shaped = [
                lv if c == 1 else lv.reshape(r, c)
                for lv, (r, c) in zip(leaves, self._shapes_in)
            ]
            res = self.fn(*shaped)
            if not isinstance(res, (list, tuple)):
                res = [res]
            outputs = [self._as_output(r) for r in res]
        return _Trace(tape, leaves, outputs)

    # ---- numeric -------------------------------------------------------- #
    def evaluate(self, args):
        return self._trace(self._check_args(args)).values()

    def forward(self, args, fseeds, res=None):
        args = self._check_args(args)
        seeds, ndir = self._check_seeds(fseeds, self._sizes_in(), "forward seed")
        trace = self._trace(args)
        zero_tangents(trace.tape, ndir)
        for leaves, s in zip(trace.inputs, seeds):
            for k, v in enumerate(leaves):
                v.dot = s[k].copy()
        forward_sweep(trace.tape, ndir)
        fsens = [
            np.array([np.broadcast_to(v.dot, (ndir,)) for v in out], dtype=float).reshape(len(out), ndir)
            for out in trace.outputs
        ]
        return trace.values(), fsens

    def reverse(self, args, aseeds, res=None):
        args = self._check_args(args)
        seeds, ndir = self._check_seeds(aseeds, self._sizes_out(), "adjoint seed")
        trace = self._trace(args)
        zero_adjoints(trace.tape, ndir)
        for leaves in trace.inputs:
            for v in leaves:
                v.adj = np.zeros(ndir)
        for out, s in zip(trace.outputs, seeds):
            for k, v in enumerate(out):
                v.adj = v.adj + s[k]
        reverse_sweep(trace.tape)
        asens = [
            np.array([np.broadcast_to(v.adj, (ndir,)) for v in leaves], dtype=float).reshape(len(leaves), ndir)
            for leaves in trace.inputs
        ]
        return trace.values(), asens

    # ---- structural ----------------------------------------------------- #
    def sp_forward(self, arg_bits):
        bits = self._check_bits(arg_bits, self._sizes_in(), "input dependency vector")
        trace = self._trace(self.nominal, numeric=False)
        for leaves, b in zip(trace.inputs, bits):
            for k, v in enumerate(leaves):
                v.bits = b[k]
        sp_forward_sweep(trace.tape)
        return [np.array([v.bits for v in out], dtype=np.uint64) for out in trace.outputs]

    def sp_reverse(self, res_bits):
        bits = self._check_bits(res_bits, self._sizes_out(), "output dependency vector")
        trace = self._trace(self.nominal, numeric=False)
        zero_bits(trace.tape)
        for leaves in trace.inputs:
            for v in leaves:
                v.bits = np.uint64(0)
        for out, b in zip(trace.outputs, bits):
            for k, v in enumerate(out):
                if v.requires_grad:
                    v.bits = v.bits | b[k]
        sp_reverse_sweep(trace.tape)
        return [np.array([v.bits for v in leaves], dtype=np.uint64) for leaves in trace.inputs]
