# aad/ops/external.py
#-----------------------------------------------------------------------------
# Embed a whole function (an oracle or an implicit solve) as tape nodes.
# The edges of each output entry come from the callee's Jacobian sparsity
# pattern; the local partials come from one multi-direction forward pass.
# On a non-numeric tape the callee is not evaluated at all.
#-----------------------------------------------------------------------------
import weakref
from typing import Any, Dict, List, Tuple

import numpy as np

from ..core.var import ADVar
from ..core import tape as tape_mod

# fn -> {(iin, iout): dense bool pattern}
_patterns: "weakref.WeakKeyDictionary[Any, Dict[Tuple[int, int], np.ndarray]]" = weakref.WeakKeyDictionary()


def _pattern(fn, iin: int, iout: int) -> np.ndarray:
    cache = _patterns.setdefault(fn, {})
    if (iin, iout) not in cache:
        cache[iin, iout] = fn.jac_sparsity(iin, iout).to_dense()
    return cache[iin, iout]


def _flatten(arg: Any) -> Tuple[np.ndarray, List[Tuple[int, ADVar]]]:
    """Numeric values of one argument plus its (position, ADVar) active entries."""
    flat = np.ravel(np.asarray(arg, dtype=object))
    vals = np.empty(flat.size, dtype=float)
    active = []
    for k, v in enumerate(flat):
        if isinstance(v, ADVar):
            vals[k] = float(v.val)
            if v.requires_grad:
                active.append((k, v))
        else:
            vals[k] = float(v)
    return vals, active


def call(fn, *args) -> List[np.ndarray]:
    """
    Evaluate `fn` (any FunctionBase) on ADVar arguments and record it on the tape.

    Each argument may be an ADVar, a number or an array-like of either.
    Returns one object array of ADVars per output of `fn`; entries that do
    not structurally depend on any active input are constants.

    Every structural edge is recorded, also where the partial is zero at
    the current point, so dependency sweeps over the tape stay valid away
    from it.
    """
    flat = [_flatten(a) for a in args]
    values = [v for v, _ in flat]
    # (input block, [(position, ADVar, seed column)])
    blocks: List[Tuple[int, List[Tuple[int, ADVar, int]]]] = []
    ndir = 0
    for k, (_, act) in enumerate(flat):
        if act:
            blocks.append((k, [(pos, v, ndir + j) for j, (pos, v) in enumerate(act)]))
            ndir += len(act)

    tape = tape_mod.global_tape
    if not tape.numeric:
        res = [np.full(fn.nnz_out(i), np.nan) for i in range(fn.n_out)]
        sens = None
    elif ndir == 0:
        res, sens = fn.evaluate(values), None
    else:
        seeds = [np.zeros((vals.size, ndir)) for vals in values]
        for k, entries in blocks:
            for pos, _, j in entries:
                seeds[k][pos, j] = 1.0
        res, sens = fn.forward(values, seeds)

    outputs = []
    for i, r in enumerate(res):
        parents: List[List[Tuple[ADVar, float]]] = [[] for _ in range(r.size)]
        for k, entries in blocks:
            P = _pattern(fn, k, i)
            for pos, v, j in entries:
                for row in np.nonzero(P[:, pos])[0]:
                    partial = 0.0 if sens is None else float(sens[i][row, j])
                    parents[row].append((v, partial))
        out = np.empty(r.size, dtype=object)
        for row in range(r.size):
            if not parents[row]:
                out[row] = ADVar(float(r[row]), requires_grad=False)
                continue
            y = ADVar(float(r[row]))
            tape.push_node(op_tag=f"call:{fn.name}", out=y, parents=parents[row])
            out[row] = y
        outputs.append(out)
    return outputs
