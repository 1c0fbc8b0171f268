# aad/core/engine.py
from __future__ import annotations
import numpy as np
from typing import Iterator, Optional, Sequence, Union
from . import tape as tape_mod
from .tape import Tape
from .var import ADVar


def _active(tape: Optional[Tape]) -> Tape:
    return tape if tape is not None else tape_mod.global_tape


def tape_vars(tape: Optional[Tape] = None) -> Iterator[ADVar]:
    """
    Yield every distinct ADVar reachable from the tape (node outputs and
    parents), each exactly once.
    """
    seen = set()
    for node in _active(tape).nodes:
        if id(node.out) not in seen:
            seen.add(id(node.out))
            yield node.out
        for p, _ in node.parents:
            if id(p) not in seen:
                seen.add(id(p))
                yield p


def _fresh(ndir: Optional[int]):
    return 0.0 if ndir is None else np.zeros(ndir)


def zero_adjoints(tape: Optional[Tape] = None, ndir: Optional[int] = None):
    """
    Reset all adjoints on the tape. With `ndir`, adjoints become zero arrays
    of shape (ndir,) so several directions can be swept in one pass.
    """
    for v in tape_vars(tape):
        v.adj = _fresh(ndir)


def zero_tangents(tape: Optional[Tape] = None, ndir: Optional[int] = None):
    """Reset all forward tangents on the tape (see `zero_adjoints`)."""
    for v in tape_vars(tape):
        v.dot = _fresh(ndir)


def zero_bits(tape: Optional[Tape] = None):
    """Clear the dependency words of every variable on the tape."""
    for v in tape_vars(tape):
        v.bits = np.uint64(0)


def _is_zero(x) -> bool:
    return not np.any(x)


def reverse(outputs: Union[ADVar, Sequence[ADVar]], seed=1.0, tape: Optional[Tape] = None):
    """
    Run a single reverse pass from the given output(s).

    Args:
        outputs: an ADVar or a (list/tuple) of ADVars to seed.
        seed: scalar or same-shaped array used as the adjoint seed. If `outputs`
              is a sequence, each output is seeded with 1.0.
    """
    if isinstance(outputs, (list, tuple)):
        for y in outputs:
            y.adj = y.adj + 1.0
    else:
        outputs.adj = outputs.adj + seed
    reverse_sweep(tape)


def reverse_sweep(tape: Optional[Tape] = None):
    """
    Adjoint sweep over already seeded outputs: p.adj += y.adj * (∂y/∂p).

    Adjoints may be scalars or (ndir,) arrays; broadcasting handles both.
    """
    for node in reversed(_active(tape).nodes):
        y = node.out
        if _is_zero(y.adj):
            continue
        for (p, local_partial) in node.parents:
            if not p.requires_grad:
                continue
            p.adj = p.adj + y.adj * local_partial


def forward_sweep(tape: Optional[Tape] = None, ndir: Optional[int] = None):
    """
    Tangent-linear sweep: y.dot = Σ (∂y/∂p) * p.dot over the recorded nodes.

    Leaf tangents must be seeded beforehand; every node output is overwritten.
    """
    for node in _active(tape).nodes:
        acc = _fresh(ndir)
        for (p, local_partial) in node.parents:
            if not p.requires_grad:
                continue
            acc = acc + local_partial * p.dot
        node.out.dot = acc


def sp_forward_sweep(tape: Optional[Tape] = None):
    """
    Structural forward sweep: y.bits = OR of the parents' bits.

    Edges are followed regardless of the numeric value of the local partial,
    so the result is valid at every point where the tape has the same shape.
    """
    for node in _active(tape).nodes:
        acc = np.uint64(0)
        for (p, _) in node.parents:
            if p.requires_grad:
                acc |= p.bits
        node.out.bits = acc


def sp_reverse_sweep(tape: Optional[Tape] = None):
    """Structural reverse sweep: p.bits |= y.bits for every recorded edge."""
    for node in reversed(_active(tape).nodes):
        yb = node.out.bits
        if not yb:
            continue
        for (p, _) in node.parents:
            if p.requires_grad:
                p.bits = p.bits | yb
