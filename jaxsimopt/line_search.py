"""Backtracking line search with polynomial interpolation.

Only merit values are needed along the search ray: the first backtrack fits a
quadratic through ``phi(0)``, ``phi'(0)`` and ``phi(alpha)``, later backtracks
fit a cubic through the last two finite trial points. A non-finite trial
shrinks by ``beta_max``. Trial steps are safeguarded to
``[beta_min * alpha, beta_max * alpha]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import jax.numpy as jnp

from .types import Float, MeritFunction


class LineSearchReturnCode(Enum):
    """Return codes for the line search."""

    NO_ERROR = "LS_NOERROR"
    MINIMUM_FOUND = "LS_MINIMUM_FOUND"
    NOT_DESCENT_DIRECTION = "LS_NOT_DESCENT_DIRECTION"
    GOT_NONFINITE_STEP_SIZE = "LS_GOT_NONFINITE_STEP_SIZE"
    MAX_ITERATIONS = "LS_MAX_ITERS"


@dataclass
class BacktrackingLineSearch:
    """Armijo backtracking line search."""

    # Options
    max_iters: int = 20
    c1: Float = 1e-4  # Armijo condition parameter
    beta_min: Float = 0.1
    beta_max: Float = 0.5
    verbose: bool = False

    # State variables
    n_iters: int = 0
    phi0: Float = 0.0
    dphi0: Float = 0.0
    phi: Float = 0.0
    return_code: LineSearchReturnCode = LineSearchReturnCode.NO_ERROR

    def get_status(self) -> LineSearchReturnCode:
        """Get line search status."""
        return self.return_code

    def iterations(self) -> int:
        """Get number of merit evaluations performed."""
        return self.n_iters

    def get_final_merit_value(self) -> Float:
        """Get merit value at the last trial step."""
        return self.phi

    def run(self, merit_fun: MeritFunction, alpha0: Float, phi0: Float, dphi0: Float) -> Float:
        """Return a step length satisfying the Armijo condition."""
        self.phi0 = phi0
        self.dphi0 = dphi0
        self.phi = phi0
        self.n_iters = 0
        self.return_code = LineSearchReturnCode.NO_ERROR

        if dphi0 >= 0.0:
            self.return_code = LineSearchReturnCode.NOT_DESCENT_DIRECTION
            return 0.0

        if self.verbose:
            print(f"  Starting line search with phi0 = {phi0}, dphi0 = {dphi0}")

        alpha = alpha0
        alpha_prev = 0.0
        alpha_last = 0.0
        phi_prev = phi0
        # Cubic needs a previous finite trial
        have_prev = False

        for iter_count in range(self.max_iters):
            if not jnp.isfinite(alpha) or alpha <= 0.0:
                self.return_code = LineSearchReturnCode.GOT_NONFINITE_STEP_SIZE
                return 0.0

            self.n_iters += 1
            phi = merit_fun(alpha)
            self.phi = phi

            sufficient_decrease = bool(jnp.isfinite(phi)) and phi <= phi0 + self.c1 * alpha * dphi0

            if self.verbose:
                print(
                    f"    iter = {iter_count}: alpha = {alpha}, phi = {phi}, "
                    f"Armijo? {sufficient_decrease}"
                )

            if sufficient_decrease:
                self.return_code = LineSearchReturnCode.MINIMUM_FOUND
                return alpha

            if not jnp.isfinite(phi):
                alpha_next = self.beta_max * alpha
            elif not have_prev:
                alpha_next = self._quadratic_step(alpha, phi)
            else:
                alpha_next = self._cubic_step(alpha, phi, alpha_prev, phi_prev)

            if jnp.isfinite(phi):
                alpha_prev, phi_prev = alpha, phi
                have_prev = True
            alpha_last = alpha
            alpha = min(max(alpha_next, self.beta_min * alpha), self.beta_max * alpha)

        self.return_code = LineSearchReturnCode.MAX_ITERATIONS
        return alpha_last

    def _quadratic_step(self, alpha: Float, phi: Float) -> Float:
        """Minimizer of the quadratic through phi(0), phi'(0) and phi(alpha)."""
        denom = 2.0 * (phi - self.phi0 - self.dphi0 * alpha)
        if denom <= 0.0:
            return self.beta_max * alpha
        return float(-self.dphi0 * alpha**2 / denom)

    def _cubic_step(self, alpha: Float, phi: Float, alpha_prev: Float, phi_prev: Float) -> Float:
        """Minimizer of the cubic through phi(0), phi'(0), phi(alpha_prev) and phi(alpha)."""
        r1 = phi - self.phi0 - self.dphi0 * alpha
        r2 = phi_prev - self.phi0 - self.dphi0 * alpha_prev
        det = alpha**2 * alpha_prev**2 * (alpha - alpha_prev)
        if det == 0.0:
            return self.beta_max * alpha

        a = (alpha_prev**2 * r1 - alpha**2 * r2) / det
        b = (-(alpha_prev**3) * r1 + alpha**3 * r2) / det

        if abs(a) < 1e-300:
            if b <= 0.0:
                return self.beta_max * alpha
            return float(-self.dphi0 / (2.0 * b))

        disc = b**2 - 3.0 * a * self.dphi0
        if disc < 0.0:
            return self.beta_max * alpha
        return float((-b + jnp.sqrt(disc)) / (3.0 * a))

    def status_to_string(self) -> str:
        """Convert status to string description."""
        status_strings = {
            LineSearchReturnCode.NO_ERROR: "No error",
            LineSearchReturnCode.MINIMUM_FOUND: "Sufficient decrease found",
            LineSearchReturnCode.NOT_DESCENT_DIRECTION: "Not a descent direction",
            LineSearchReturnCode.GOT_NONFINITE_STEP_SIZE: "Got non-finite step size",
            LineSearchReturnCode.MAX_ITERATIONS: "Hit max iterations",
        }
        return status_strings.get(self.return_code, "Unknown status")
