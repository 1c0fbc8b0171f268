# aad/core/tape.py
from __future__ import annotations
from typing import List, Tuple, Optional
from contextlib import contextmanager
from .node import Node


class Tape:
    """
    Records Nodes in evaluation order. Node order is a valid topological order
    of the expression graph, which every sweep in `engine` relies on.

    A tape with numeric=False is recorded only for dependency sweeps:
    embedded calls (`ops.external.call`) skip numeric evaluation on it.
    """
    def __init__(self, numeric: bool = True):
        self.nodes: List[Node] = []
        self.numeric = numeric

    def __len__(self):
        return len(self.nodes)

    def reset(self):
        self.nodes.clear()

    def push_node(self, *, op_tag: str, out, parents: List[Tuple]):
        """
        Append a Node(op_tag, out, parents) to the tape.
        `parents` is a list of (parent_ADVar, local_partial_numeric).
        """
        self.nodes.append(Node(op_tag=op_tag, out=out, parents=parents))
        return len(self.nodes) - 1


global_tape = Tape()


@contextmanager
def use_tape(tape: Optional[Tape] = None):
    """
    Temporarily record onto a fresh (or the given) tape:
        with use_tape() as tape:
            ... build computation ...
    Nested use is allowed; the previous tape is restored on exit.
    """
    from . import tape as _tape_mod  # module attribute is what ops read
    prev = _tape_mod.global_tape
    try:
        _tape_mod.global_tape = tape or Tape()
        yield _tape_mod.global_tape
    finally:
        _tape_mod.global_tape = prev
