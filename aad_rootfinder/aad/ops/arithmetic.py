# aad/ops/arithmetic.py
import numpy as np
from ..core.var import ADVar
from ..core import tape as tape_mod  # module access so use_tape() is honoured


def _as_ad(x, requires_grad=False):
    """Ensure x is an ADVar; otherwise wrap it as a constant ADVar."""
    return x if isinstance(x, ADVar) else ADVar(x, requires_grad=requires_grad)


def _is_structural_zero(x: ADVar) -> bool:
    # A constant exactly equal to zero, e.g. a zero entry of a coefficient matrix.
    return (not x.requires_grad) and not np.any(x.val)


def _binary(x, y, f, dfdx, dfdy, tag):
    """
    Generic binary primitive:
      - computes out.val = f(x.val, y.val)
      - pushes a Node with local partials (∂out/∂x, ∂out/∂y)
    """
    x = _as_ad(x)
    y = _as_ad(y)
    out = ADVar(f(x.val, y.val))
    tape_mod.global_tape.push_node(
        op_tag=tag, out=out,
        parents=[(x, dfdx(x.val, y.val)), (y, dfdy(x.val, y.val))]
    )
    return out


def add(x, y): return _binary(x, y, lambda a, b: a + b, lambda a, b: 1.0, lambda a, b: 1.0, "add")
def sub(x, y): return _binary(x, y, lambda a, b: a - b, lambda a, b: 1.0, lambda a, b: -1.0, "sub")
def div(x, y): return _binary(x, y, lambda a, b: a / b, lambda a, b: 1.0 / b, lambda a, b: -a / np.square(b), "div")


def mul(x, y):
    """
    Product. Multiplying by a constant zero yields a constant zero without
    recording an edge, so coefficient matrices with zero entries do not
    create spurious structural dependencies.
    """
    x = _as_ad(x)
    y = _as_ad(y)
    if _is_structural_zero(x) or _is_structural_zero(y):
        shape = np.broadcast(x.val, y.val).shape
        return ADVar(np.zeros(shape) if shape else 0.0, requires_grad=False)
    return _binary(x, y, lambda a, b: a * b, lambda a, b: b, lambda a, b: a, "mul")


def neg(x):
    x = _as_ad(x)
    out = ADVar(-x.val)
    tape_mod.global_tape.push_node(op_tag="neg", out=out, parents=[(x, -1.0)])
    return out


def pow(x, y):
    """
    Power: out.val = x.val ** y.val

    Local partials:
      ∂out/∂x = y * x^(y-1)
      ∂out/∂y = x^y * log(x)        (taken as 0 where x <= 0)
    """
    x = _as_ad(x)
    y = _as_ad(y)
    xv, pv = x.val, y.val
    out = ADVar(xv ** pv)

    dfdx = pv * (xv ** (pv - 1.0))
    if y.requires_grad:
        dfdy = out.val * (np.log(xv) if np.all(xv > 0) else 0.0)
    else:
        dfdy = 0.0

    tape_mod.global_tape.push_node(op_tag="pow", out=out, parents=[(x, dfdx), (y, dfdy)])
    return out
