# aad/ops/transcendental.py
import numpy as np
from scipy.special import erf as scipy_erf

from ..core.var import ADVar
from ..core import tape as tape_mod
from .arithmetic import _as_ad


def _unary(x, val, partial, tag):
    out = ADVar(val)
    tape_mod.global_tape.push_node(op_tag=tag, out=out, parents=[(x, partial)])
    return out


def exp(x):
    x = _as_ad(x)
    ex = np.exp(x.val)
    return _unary(x, ex, ex, "exp")


def log(x):
    x = _as_ad(x)
    return _unary(x, np.log(x.val), 1.0 / x.val, "log")


def sqrt(x):
    x = _as_ad(x)
    s = np.sqrt(x.val)
    return _unary(x, s, 0.5 / s, "sqrt")


def sin(x):
    x = _as_ad(x)
    return _unary(x, np.sin(x.val), np.cos(x.val), "sin")


def cos(x):
    x = _as_ad(x)
    return _unary(x, np.cos(x.val), -np.sin(x.val), "cos")


def tanh(x):
    x = _as_ad(x)
    t = np.tanh(x.val)
    return _unary(x, t, 1.0 - t * t, "tanh")


def erf(x):
    """
    Error function: erf(x) = (2/√π) ∫₀ˣ e^(-t²) dt

    Derivative: d/dx erf(x) = (2/√π) * e^(-x²)
    """
    x = _as_ad(x)
    deriv = (2.0 / np.sqrt(np.pi)) * np.exp(-x.val ** 2)
    return _unary(x, scipy_erf(x.val), deriv, "erf")
