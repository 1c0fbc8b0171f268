# aad/__init__.py
# Tape-based automatic differentiation: tangents, adjoints and dependency bits

from .core.var import ADVar
from .core.tape import Tape, use_tape
from .core.engine import (
    reverse,
    zero_adjoints,
    zero_tangents,
    forward_sweep,
    reverse_sweep,
    sp_forward_sweep,
    sp_reverse_sweep,
)
from .core.seeds import grad, grads_list, value

from . import ops

__all__ = [
    # Core
    'ADVar',
    'Tape',
    'use_tape',
    # Engine
    'reverse',
    'zero_adjoints',
    'zero_tangents',
    'forward_sweep',
    'reverse_sweep',
    'sp_forward_sweep',
    'sp_reverse_sweep',
    # Seeds
    'grad',
    'grads_list',
    'value',
    'ops',
]
