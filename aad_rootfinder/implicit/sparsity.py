"""
Structural sparsity patterns.

A Sparsity is the set of positions of a matrix that may be nonzero,
independent of numeric values. Besides bookkeeping it provides the two
structural services the rootfinder needs:

    sprank / is_singular : structural rank via maximum bipartite matching
    spsolve              : "solve" A x = b on dependency bit-vectors

The structural solve uses the block triangular form of A: a perfect matching
assigns every unknown to one equation, the remaining nonzeros become
dependency edges between unknowns, and the strongly connected components of
that graph are the diagonal blocks. Every unknown of a block depends on every
right-hand side entry of the block and of all blocks upstream of it.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components, maximum_bipartite_matching


class Sparsity:
    """Immutable nonzero pattern of an nrow x ncol matrix."""

    def __init__(self, nrow: int, ncol: int, rows=(), cols=()):
        rows = np.asarray(rows, dtype=np.int64).ravel()
        cols = np.asarray(cols, dtype=np.int64).ravel()
        if rows.shape != cols.shape:
            raise ValueError(f"rows and cols differ in length: {rows.size} vs {cols.size}")
        if rows.size and (rows.min() < 0 or rows.max() >= nrow or cols.min() < 0 or cols.max() >= ncol):
            raise ValueError(f"pattern entries out of range for shape ({nrow}, {ncol})")
        # unique linear indices in column-major order, matching CSC storage
        lin = np.unique(cols * nrow + rows) if rows.size else np.zeros(0, dtype=np.int64)
        self._rows = lin % nrow if nrow else lin
        self._cols = lin // nrow if nrow else lin
        self._pattern = sp.csc_matrix(
            (np.ones(lin.size, dtype=np.int8), (self._rows, self._cols)), shape=(nrow, ncol)
        )
        self._btf_cache: Dict[bool, Tuple] = {}
        self._sprank = None

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #
    @classmethod
    def dense(cls, nrow: int, ncol: int = 1) -> "Sparsity":
        r, c = np.meshgrid(np.arange(nrow), np.arange(ncol), indexing="ij")
        return cls(nrow, ncol, r.ravel(), c.ravel())

    @classmethod
    def diag(cls, n: int) -> "Sparsity":
        return cls(n, n, np.arange(n), np.arange(n))

    @classmethod
    def from_matrix(cls, A) -> "Sparsity":
        """Pattern of a dense array (nonzeros) or a scipy sparse matrix (stored entries)."""
        if sp.issparse(A):
            coo = sp.coo_matrix(A)
            return cls(coo.shape[0], coo.shape[1], coo.row, coo.col)
        A = np.atleast_2d(np.asarray(A))
        r, c = np.nonzero(A)
        return cls(A.shape[0], A.shape[1], r, c)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def shape(self) -> Tuple[int, int]:
        return self._pattern.shape

    @property
    def size1(self) -> int:
        return self.shape[0]

    @property
    def size2(self) -> int:
        return self.shape[1]

    @property
    def nnz(self) -> int:
        return int(self._rows.size)

    def row(self) -> np.ndarray:
        return self._rows.copy()

    def col(self) -> np.ndarray:
        return self._cols.copy()

    def is_dense(self) -> bool:
        return self.nnz == self.size1 * self.size2

    def is_column(self) -> bool:
        return self.size2 == 1

    def is_square(self) -> bool:
        return self.size1 == self.size2

    def entries(self) -> set:
        return set(zip(self._rows.tolist(), self._cols.tolist()))

    def to_dense(self) -> np.ndarray:
        return self._pattern.toarray().astype(bool)

    def __contains__(self, rc) -> bool:
        r, c = rc
        return bool(self._pattern[r, c])

    def __eq__(self, other) -> bool:
        if not isinstance(other, Sparsity):
            return NotImplemented
        return (self.shape == other.shape
                and np.array_equal(self._rows, other._rows)
                and np.array_equal(self._cols, other._cols))

    def __hash__(self):
        return hash((self.shape, self._rows.tobytes(), self._cols.tobytes()))

    def __repr__(self):
        return f"Sparsity({self.size1}x{self.size2}, nnz={self.nnz})"

    # ------------------------------------------------------------------ #
    # Numeric projection
    # ------------------------------------------------------------------ #
    def project(self, A) -> sp.csc_matrix:
        """
        Restrict a dense or sparse matrix to this pattern.

        The result always stores exactly the pattern's entries (explicit zeros
        included), so factorizations keyed by the pattern stay valid.
        """
        if A.shape != self.shape:
            raise ValueError(f"matrix shape {A.shape} does not match pattern {self.shape}")
        if sp.issparse(A):
            vals = np.asarray(sp.csr_matrix(A)[self._rows, self._cols]).ravel()
        else:
            vals = np.asarray(A, dtype=float)[self._rows, self._cols]
        return sp.csc_matrix(
            (np.asarray(vals, dtype=float), (self._rows, self._cols)), shape=self.shape
        )

    # ------------------------------------------------------------------ #
    # Structural rank and solve
    # ------------------------------------------------------------------ #
    def _matching(self, transpose: bool) -> np.ndarray:
        graph = sp.csr_matrix(self._pattern.T if transpose else self._pattern)
        # match[r] = column matched to row r, or -1
        return np.asarray(maximum_bipartite_matching(graph, perm_type="column"), dtype=np.int64)

    def sprank(self) -> int:
        """Structural rank: size of a maximum matching between rows and columns."""
        if self._sprank is None:
            if self.nnz == 0:
                self._sprank = 0
            else:
                self._sprank = int(np.count_nonzero(self._matching(False) >= 0))
        return self._sprank

    def is_singular(self) -> bool:
        if not self.is_square():
            raise ValueError(f"is_singular requires a square pattern, got {self.shape}")
        return self.sprank() < self.size1

    def _block_structure(self, transpose: bool):
        if transpose in self._btf_cache:
            return self._btf_cache[transpose]
        n = self.size1
        match = self._matching(transpose)
        if np.any(match < 0):
            raise ValueError("structural solve requires a structurally non-singular pattern")
        row_of_col = np.empty(n, dtype=np.int64)
        row_of_col[match] = np.arange(n)

        # edge j -> match[r] for every nonzero (r, j) off the matching
        if transpose:
            rows, cols = self._cols, self._rows
        else:
            rows, cols = self._rows, self._cols
        src = cols
        dst = match[rows]
        keep = src != dst
        src, dst = src[keep], dst[keep]
        graph = sp.csr_matrix((np.ones(src.size, dtype=np.int8), (src, dst)), shape=(n, n))
        ncomp, labels = connected_components(graph, directed=True, connection="strong")

        # condensation DAG, topologically ordered (Kahn)
        preds: List[set] = [set() for _ in range(ncomp)]
        succs: List[set] = [set() for _ in range(ncomp)]
        for a, b in zip(labels[src].tolist(), labels[dst].tolist()):
            if a != b:
                preds[b].add(a)
                succs[a].add(b)
        indeg = [len(p) for p in preds]
        ready = [k for k in range(ncomp) if indeg[k] == 0]
        order = []
        while ready:
            k = ready.pop()
            order.append(k)
            for s in succs[k]:
                indeg[s] -= 1
                if indeg[s] == 0:
                    ready.append(s)

        structure = (row_of_col, labels, order, [sorted(p) for p in preds])
        self._btf_cache[transpose] = structure
        return structure

    def spsolve(self, rhs, transpose: bool = False) -> np.ndarray:
        """
        Structural solve of A x = b (or Aᵀ x = b) on uint64 dependency words.

        Returns x such that bit k of x[j] is set iff x[j] can depend on some
        right-hand side entry carrying bit k.
        """
        if not self.is_square():
            raise ValueError(f"spsolve requires a square pattern, got {self.shape}")
        rhs = np.asarray(rhs, dtype=np.uint64).ravel()
        if rhs.size != self.size1:
            raise ValueError(f"right-hand side has {rhs.size} entries, expected {self.size1}")
        if self.size1 == 0:
            return rhs.copy()
        row_of_col, labels, order, preds = self._block_structure(transpose)
        block_bits = np.zeros(len(order), dtype=np.uint64)
        np.bitwise_or.at(block_bits, labels, rhs[row_of_col])
        for k in order:
            for p in preds[k]:
                block_bits[k] |= block_bits[p]
        return block_bits[labels]
