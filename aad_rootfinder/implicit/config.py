"""
Option dataclasses for rootfinder nodes and their plugins.

Options arrive as plain dicts (or ready-made instances) and are validated by
`from_dict`: unknown names are rejected instead of silently ignored.
"""

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Dict, Optional, Sequence

import numpy as np

from .exceptions import ConfigurationError


class Constraint(IntEnum):
    """Sign constraint on one unknown."""
    FREE = 0
    NONNEGATIVE = 1    # z >= 0
    NONPOSITIVE = -1   # z <= 0
    POSITIVE = 2       # z > 0
    NEGATIVE = -2      # z < 0

    @property
    def sign(self) -> int:
        return int(np.sign(int(self)))

    @property
    def strict(self) -> bool:
        return abs(int(self)) == 2


_CONSTRAINT_ALIASES = {
    "free": Constraint.FREE,
    ">=0": Constraint.NONNEGATIVE,
    "<=0": Constraint.NONPOSITIVE,
    ">0": Constraint.POSITIVE,
    "<0": Constraint.NEGATIVE,
}


def parse_constraints(values: Optional[Sequence[Any]], n: int) -> Optional[np.ndarray]:
    """
    Convert a constraint vector to an int array of Constraint codes.

    Returns None for an empty/missing vector. Accepts the integer codes
    0, 1, -1, 2, -2 or the strings "free", ">=0", "<=0", ">0", "<0".
    """
    if values is None or len(values) == 0:
        return None
    if len(values) != n:
        raise ConfigurationError(
            f"Constraint vector if supplied, must be of length n, but got {len(values)} and n = {n}"
        )
    codes = []
    for k, v in enumerate(values):
        if isinstance(v, str):
            if v.strip() not in _CONSTRAINT_ALIASES:
                raise ConfigurationError(f"Unknown constraint {v!r} at index {k}")
            codes.append(int(_CONSTRAINT_ALIASES[v.strip()]))
        else:
            try:
                codes.append(int(Constraint(int(v))))
            except ValueError:
                raise ConfigurationError(
                    f"Unknown constraint code {v!r} at index {k}; expected one of 0, 1, -1, 2, -2"
                ) from None
    return np.asarray(codes, dtype=int)


@dataclass
class RootfinderOptions:
    """Options shared by every rootfinder plugin."""
    # Which oracle input is the unknown z, which output is the residual r
    implicit_input: int = 0
    implicit_output: int = 0

    # Linear solver plugin used for Newton steps and sensitivities
    linear_solver: str = "splu"
    linear_solver_options: Dict[str, Any] = field(default_factory=dict)

    # Per-unknown sign constraints, empty or length n
    constraints: Optional[Sequence[Any]] = None

    # JacobianFunction replacing the one generated from the oracle
    jacobian_function: Optional[Any] = None

    # Logging
    verbose: bool = False

    @classmethod
    def from_dict(cls, opts=None):
        if opts is None:
            return cls()
        if isinstance(opts, cls):
            return opts
        if not isinstance(opts, dict):
            raise ConfigurationError(f"Options must be a dict or {cls.__name__}, got {type(opts).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(opts) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) {unknown} for {cls.__name__}. Available: {sorted(known)}"
            )
        return cls(**opts)


@dataclass
class NewtonOptions(RootfinderOptions):
    """Options of the full-step Newton plugin."""
    abstol: float = 1e-12        # stop when max|F| <= abstol
    abstol_step: float = 1e-12   # stop when max|step| <= abstol_step
    max_iter: int = 1000
    print_iteration: bool = False

    def __post_init__(self):
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.abstol < 0 or self.abstol_step < 0:
            raise ConfigurationError("abstol and abstol_step must be non-negative")
