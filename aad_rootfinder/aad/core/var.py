# aad/core/var.py
from __future__ import annotations
import numpy as np
from typing import Any, Optional


class ADVar:
    """
    Active variable recorded on the tape.

    Attributes
    ----------
    val : float | np.ndarray
        Forward (primal) value.
    adj : float | np.ndarray
        Adjoint accumulator. Scalar for a single reverse pass, or an array of
        shape (ndir,) when several adjoint directions are swept at once.
    dot : float | np.ndarray
        Forward tangent, scalar or shape (ndir,) like `adj`.
    bits : np.uint64
        Structural dependency word: bit k set means "depends on seed k".
    requires_grad : bool
        If False the variable is a constant and sweeps skip it.
    name : Optional[str]
        Debug name.
    """

    __array_priority__ = 1000  # keep ndarray from absorbing ADVar operands

    def __init__(self, val: Any, *, requires_grad: bool = True, name: Optional[str] = None):
        if not isinstance(val, (int, float, list, tuple, np.ndarray)):
            raise TypeError(
                f"ADVar only accepts numeric types (int, float, list, tuple, ndarray), "
                f"but got {type(val)}"
            )

        if isinstance(val, (list, tuple, np.ndarray)):
            self.val = np.asarray(val, dtype=np.float64)
        else:
            self.val = np.float64(val)

        self.adj = np.zeros_like(self.val, dtype=float)
        self.dot = np.zeros_like(self.val, dtype=float)
        self.bits = np.uint64(0)

        self.requires_grad = requires_grad
        self.name = name

    def __repr__(self):
        rg = "req" if self.requires_grad else "const"
        return f"ADVar({self.val!r}, {rg}, name={self.name!r})"

    def __float__(self):
        return float(self.val)

    # Operator overloading
    def __add__(self, other):
        from ..ops.arithmetic import add
        return add(self, other)

    def __radd__(self, other):
        from ..ops.arithmetic import add
        return add(other, self)

    def __sub__(self, other):
        from ..ops.arithmetic import sub
        return sub(self, other)

    def __rsub__(self, other):
        from ..ops.arithmetic import sub
        return sub(other, self)

    def __mul__(self, other):
        from ..ops.arithmetic import mul
        return mul(self, other)

    def __rmul__(self, other):
        from ..ops.arithmetic import mul
        return mul(other, self)

    def __truediv__(self, other):
        from ..ops.arithmetic import div
        return div(self, other)

    def __rtruediv__(self, other):
        from ..ops.arithmetic import div
        return div(other, self)

    def __neg__(self):
        from ..ops.arithmetic import neg
        return neg(self)

    def __pos__(self):
        return self

    def __pow__(self, other):
        from ..ops.arithmetic import pow
        return pow(self, other)

    def __rpow__(self, other):
        from ..ops.arithmetic import pow
        return pow(other, self)

    # Method forms let numpy ufuncs (np.exp, np.sin, ...) work on object arrays of ADVar.
    def exp(self):
        from ..ops.transcendental import exp
        return exp(self)

    def log(self):
        from ..ops.transcendental import log
        return log(self)

    def sqrt(self):
        from ..ops.transcendental import sqrt
        return sqrt(self)

    def sin(self):
        from ..ops.transcendental import sin
        return sin(self)

    def cos(self):
        from ..ops.transcendental import cos
        return cos(self)

    def tanh(self):
        from ..ops.transcendental import tanh
        return tanh(self)
