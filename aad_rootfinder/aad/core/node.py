# aad/core/node.py
from dataclasses import dataclass
from typing import Any, List, Tuple


@dataclass
class Node:
    """
    One elementary operation recorded on the tape.

    Attributes
    ----------
    op_tag : str
        Operation name ("mul", "exp", "call:rf", ...).
    out    : Any
        The ADVar produced by the operation.
    parents: List[Tuple[Any, Any]]
        (parent_var, local_partial) pairs, where local_partial is the numeric
        value of ∂out/∂parent at the point the tape was recorded. The same
        edges drive tangent, adjoint and bit-vector sweeps.
    """
    op_tag: str
    out: Any
    parents: List[Tuple[Any, Any]]
