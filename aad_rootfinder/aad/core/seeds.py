# aad/core/seeds.py

#-----------------------------------------------------------------------------
# We "plant" a seed (dy/dy = 1) at the scalar output and let gradients grow
# backwards through the tape, including through embedded implicit solves.
#-----------------------------------------------------------------------------
from __future__ import annotations
from typing import Any, Callable, Iterable, List, Union
import numpy as np

from .var import ADVar
from .tape import use_tape
from .engine import reverse, zero_adjoints


def value(x: Any) -> Any:
    """Return the numeric value of an ADVar; pass through plain numbers unchanged."""
    return x.val if isinstance(x, ADVar) else x


def _ensure_ad(v: Any, *, name: str, requires_grad: bool = True) -> ADVar:
    return v if isinstance(v, ADVar) else ADVar(v, requires_grad=requires_grad, name=name)


def _scalar_output(y: Any, caller: str) -> ADVar:
    if not isinstance(y, ADVar):
        y = ADVar(float(y), requires_grad=False, name="y")
    if getattr(y.val, "shape", ()) != ():
        raise ValueError(f"{caller} expects scalar output.")
    return y


def grad(f: Callable[[ADVar], ADVar],
         x0: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Gradient of a scalar-output function y=f(x) at x0 (single input).
    Runs one reverse pass within a fresh, isolated tape.
    """
    with use_tape():
        x = _ensure_ad(x0, name="x", requires_grad=True)
        y = _scalar_output(f(x), "grad(f, x0)")
        zero_adjoints()
        x.adj = 0.0
        reverse(y, seed=1.0)
        return x.adj


def grads_list(f: Callable[[List[ADVar]], ADVar],
               x0_list: Iterable[Union[float, np.ndarray]]) -> List[Union[float, np.ndarray]]:
    """
    Gradient of a scalar-output function w.r.t. a list of inputs, in input order.

    Example
    -------
    f = lambda xs: xs[0]*xs[0] + 3*xs[1]
    grads_list(f, [2.0, 4.0]) -> [4.0, 3.0]
    """
    with use_tape():
        xs: List[ADVar] = [
            _ensure_ad(v, name=f"x{i}", requires_grad=True) for i, v in enumerate(x0_list)
        ]
        y = _scalar_output(f(xs), "grads_list(f, x0_list)")
        zero_adjoints()
        for x in xs:
            x.adj = 0.0
        reverse(y, seed=1.0)
        return [x.adj for x in xs]
