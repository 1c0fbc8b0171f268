"""Error taxonomy of the implicit-solve layer."""


class RootfinderError(Exception):
    """Base class for every error raised by the implicit-solve layer."""


class ConfigurationError(RootfinderError, ValueError):
    """Bad indices, shapes, sizes, options or plugin names. Never retried."""


class StructuralSingularity(RootfinderError):
    """The Jacobian pattern has no perfect matching between rows and columns."""

    def __init__(self, rank: int, dim: int, where: str = "rootfinder"):
        self.rank = rank
        self.dim = dim
        super().__init__(
            f"{where}: singularity - the jacobian is structurally rank-deficient. "
            f"sprank(J)={rank} (instead of {dim})"
        )


class ConvergenceFailure(RootfinderError, RuntimeError):
    """The iterative algorithm exhausted its budget without finding a root."""

    def __init__(self, message: str, iterations: int, residual_norm: float):
        self.iterations = iterations
        self.residual_norm = residual_norm
        super().__init__(message)


class LinearSolveError(RootfinderError, ArithmeticError):
    """Numeric failure of the linear solver, e.g. an exactly singular matrix."""
