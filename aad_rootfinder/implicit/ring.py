"""
Seed algebras for the implicit-function propagation rules.

The forward and reverse rules of a rootfinder are the same sequence of
"propagate through F, combine, solve with J" steps whether the seeds are
real tangents/adjoints or dependency bit-vectors. A ring supplies those
primitives for one kind of seed:

    NumericRing : float (nnz, ndir) arrays, + and -, numeric LU solves
    BooleanRing : uint64 words, OR for both + and -, structural solves
"""

from typing import List, Sequence

import numpy as np


class NumericRing:
    def __init__(self, oracle, args: Sequence[np.ndarray], linsol, ndir: int):
        self.oracle = oracle
        self.args = list(args)
        self.linsol = linsol
        self.ndir = ndir

    def zeros(self, n: int) -> np.ndarray:
        return np.zeros((n, self.ndir))

    def add(self, a, b):
        return a + b

    def neg(self, a):
        return -a

    def solve(self, rhs, transpose: bool):
        return self.linsol.solve(rhs, transpose=transpose).reshape(rhs.shape)

    def forward(self, seeds: List[np.ndarray]) -> List[np.ndarray]:
        return self.oracle.forward(self.args, seeds)[1]

    def reverse(self, seeds: List[np.ndarray]) -> List[np.ndarray]:
        return self.oracle.reverse(self.args, seeds)[1]


class BooleanRing:
    def __init__(self, oracle, linsol):
        self.oracle = oracle
        self.linsol = linsol

    def zeros(self, n: int) -> np.ndarray:
        return np.zeros(n, dtype=np.uint64)

    def add(self, a, b):
        return a | b

    def neg(self, a):
        return a

    def solve(self, rhs, transpose: bool):
        return self.linsol.structural_solve(rhs, transpose=transpose)

    def forward(self, seeds: List[np.ndarray]) -> List[np.ndarray]:
        return self.oracle.sp_forward(seeds)

    def reverse(self, seeds: List[np.ndarray]) -> List[np.ndarray]:
        return self.oracle.sp_reverse(seeds)
