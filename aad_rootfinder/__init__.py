# aad_rootfinder/__init__.py
# Implicit-equation rootfinder nodes on a tape-based AAD engine

from .aad import ADVar, Tape, use_tape, reverse, grad, grads_list, value
from .aad.ops import call
from .implicit import *  # noqa: F401,F403
from .implicit import __all__ as _implicit_all

__version__ = "0.1.0"

__all__ = [
    'ADVar', 'Tape', 'use_tape', 'reverse', 'grad', 'grads_list', 'value', 'call',
] + list(_implicit_all)
