"""Full-step Newton iteration with optional sign constraints."""

import logging

import numpy as np

from .config import Constraint, NewtonOptions
from .exceptions import ConfigurationError, ConvergenceFailure
from .rootfinder import Rootfinder, register_rootfinder

logger = logging.getLogger(__name__)

STRICT_FRACTION = 0.99


def _sign_and_strict(constraints: np.ndarray):
    codes = [Constraint(int(c)) for c in constraints]
    sign = np.array([c.sign for c in codes])
    strict = np.array([c.strict for c in codes], dtype=bool)
    return sign, strict


def _violations(z: np.ndarray, constraints: np.ndarray) -> np.ndarray:
    """Mask of entries of z outside their constraint set."""
    sign, strict = _sign_and_strict(constraints)
    sz = sign * z
    return (sign != 0) & np.where(strict, sz <= 0, sz < 0)


def constrained_step(z: np.ndarray, dz: np.ndarray, constraints) -> np.ndarray:
    """
    New iterate z - dz, shortened entrywise to respect the constraints.

    An entry that would leave a non-strict set is put on the boundary; one that
    would leave a strict set moves STRICT_FRACTION of the way to the boundary.
    """
    z_new = z - dz
    if constraints is None:
        return z_new
    bad = _violations(z_new, constraints)
    if np.any(bad):
        _, strict = _sign_and_strict(constraints)
        z_new = np.where(bad & strict, (1.0 - STRICT_FRACTION) * z, z_new)
        z_new = np.where(bad & ~strict, 0.0, z_new)
    return z_new


@register_rootfinder("newton", doc="Newton's method: solve J dz = F, z <- z - dz until |F| or |dz| is small.")
class Newton(Rootfinder):
    """
    Newton iteration on the residual.

    Stops when max|F| <= abstol or max|step| <= abstol_step. Raises
    ConvergenceFailure after max_iter iterations or on a non-finite residual.
    """

    options_class = NewtonOptions

    def solve(self, args):
        opts = self.opts
        iin, iout = self.iin, self.iout
        z = np.array(args[iin], dtype=float)
        if self.constraints is not None:
            bad = np.nonzero(_violations(z, self.constraints))[0]
            if bad.size:
                raise ConfigurationError(
                    f"{self.name}: initial guess violates constraints at indices {bad.tolist()}"
                )
        log = logger.info if (opts.print_iteration or opts.verbose) else logger.debug

        at = list(args)
        rnorm = np.inf
        for it in range(opts.max_iter):
            at[iin] = z
            r = self._oracle.evaluate(at)[iout]
            rnorm = float(np.max(np.abs(r))) if r.size else 0.0
            if not np.isfinite(rnorm):
                self.stats = dict(iter_count=it, return_status="non_finite", residual_norm=rnorm)
                raise ConvergenceFailure(
                    f"{self.name}: non-finite residual at iteration {it}", it, rnorm
                )
            if rnorm <= opts.abstol:
                return self._converged(z, it, rnorm, "abstol", log)

            self.linsol.factorize(self.jac(at))
            dz = self.linsol.solve(r)
            z_new = constrained_step(z, dz, self.constraints)
            snorm = float(np.max(np.abs(z_new - z))) if z.size else 0.0
            z = z_new
            log("%s: iter %3d  |F|=%.3e  |dz|=%.3e", self.name, it, rnorm, snorm)
            if snorm <= opts.abstol_step:
                at[iin] = z
                rnorm = float(np.max(np.abs(self._oracle.evaluate(at)[iout]))) if z.size else 0.0
                return self._converged(z, it + 1, rnorm, "abstol_step", log)

        self.stats = dict(iter_count=opts.max_iter, return_status="max_iter", residual_norm=rnorm)
        raise ConvergenceFailure(
            f"{self.name}: no convergence after {opts.max_iter} iterations (|F|={rnorm:.3e})",
            opts.max_iter, rnorm,
        )

    def _converged(self, z, it, rnorm, status, log):
        self.stats = dict(iter_count=it, return_status=status, residual_norm=rnorm)
        log("%s: converged (%s) after %d iterations, |F|=%.3e", self.name, status, it, rnorm)
        return z
