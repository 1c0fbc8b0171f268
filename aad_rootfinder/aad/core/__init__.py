# aad/core/__init__.py

"""
Core public API of the tape engine.

Exports:
    ADVar            : Differentiable scalar/tensor recorded on the tape.
    Tape, use_tape   : Tape container and context manager for a fresh tape.
    reverse          : Single seeded reverse pass (first-order adjoints).
    zero_adjoints    : Reset adjoints on the active tape.
    forward_sweep    : Multi-direction tangent sweep.
    reverse_sweep    : Multi-direction adjoint sweep.
    sp_forward_sweep : Bit-vector dependency sweep, inputs to outputs.
    sp_reverse_sweep : Bit-vector dependency sweep, outputs to inputs.
    grad, grads_list : Gradient conveniences on an isolated tape.
    value            : Primal value of an ADVar or plain number.
"""

from .var import ADVar
from .tape import Tape, use_tape
from .engine import (
    reverse,
    zero_adjoints,
    zero_tangents,
    zero_bits,
    forward_sweep,
    reverse_sweep,
    sp_forward_sweep,
    sp_reverse_sweep,
)
from .seeds import grad, grads_list, value

__all__ = [
    "ADVar",
    "Tape", "use_tape",
    "reverse", "zero_adjoints", "zero_tangents", "zero_bits",
    "forward_sweep", "reverse_sweep",
    "sp_forward_sweep", "sp_reverse_sweep",
    "grad", "grads_list", "value",
]
