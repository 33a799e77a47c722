"""Reduced objective ``f(z) = J(u(z), z)`` with ``c(u(z), z) = 0``.

The state is recovered by Newton's method on the constraint, the reduced
gradient by one adjoint solve and the reduced Hessian-vector product by one
state-sensitivity solve, one adjoint-sensitivity solve and the four
adjoint-Hessian blocks of the constraint.
"""

from __future__ import annotations

import jax.numpy as jnp

from .constraint import EqualityConstraintSimOpt
from .exceptions import SolveError, _simopt_throw
from .objective import Objective, ObjectiveSimOpt
from .solver_options import ReducedObjectiveOptions
from .types import ErrorCode, Float, Verbosity
from .vector import Vector


class ReducedObjective(Objective):
    """Objective over the control obtained by eliminating the state.

    The state, adjoint and constraint linearization are cached for the last
    control seen and recomputed when a different control is passed. ``update``
    forces the recomputation at an accepted iterate.
    """

    def __init__(
        self,
        objective: ObjectiveSimOpt,
        constraint: EqualityConstraintSimOpt,
        state: Vector,
        adjoint: Vector | None = None,
        options: ReducedObjectiveOptions | None = None,
    ) -> None:
        self.objective = objective
        self.constraint = constraint
        self.opts = options if options is not None else ReducedObjectiveOptions()

        self.state = state.clone()
        self.state.set(state)
        self.adjoint = adjoint.clone() if adjoint is not None else state.clone()

        self._control: Vector | None = None
        self._adjoint_up_to_date = False

        self.num_state_solves = 0
        self.num_adjoint_solves = 0

    # State and adjoint -----------------------------------------------------

    def _is_current(self, z: Vector) -> bool:
        if self._control is None:
            return False
        diff = z.clone()
        diff.set(z)
        diff.axpy(-1.0, self._control)
        return diff.norm() == 0.0

    def solve_state(self, z: Vector) -> Vector:
        """Solve ``c(u, z) = 0`` for ``u`` by Newton's method from the cached state.

        Newton runs on a copy of the cached state. On failure the cached state
        and control are kept and the constraint is linearized at them again.
        """
        u = self.state.clone()
        u.set(self.state)
        c = u.clone()
        du = u.clone()

        try:
            self.constraint.update(u, z)
            self.constraint.value(c, u, z)
            cnorm0 = c.norm()
            cnorm = cnorm0
            tol = self.opts.state_tol * max(1.0, cnorm0)

            verbose = self.opts.verbose in (Verbosity.INNER, Verbosity.LINE_SEARCH)
            if verbose:
                print(f"  State solve: ||c|| = {cnorm0:10.3e}")

            iteration = 0
            while not cnorm <= tol:
                if not jnp.isfinite(cnorm):
                    _simopt_throw(
                        f"State solve diverged after {iteration} iterations",
                        ErrorCode.STATE_SOLVE_FAILED,
                    )
                if iteration >= self.opts.state_iterations_max:
                    _simopt_throw(
                        f"State solve did not converge in {iteration} iterations "
                        f"(||c|| = {cnorm:.3e})",
                        ErrorCode.STATE_SOLVE_FAILED,
                    )

                self.constraint.apply_inverse_jacobian_1(du, c, u, z)
                u.axpy(-1.0, du)

                self.constraint.update(u, z)
                self.constraint.value(c, u, z)
                cnorm = c.norm()
                iteration += 1

                if verbose:
                    print(
                        f"    newton iter = {iteration:2d}, ||c|| = {cnorm:10.3e}, "
                        f"||du|| = {du.norm():10.3e}"
                    )
        except SolveError:
            if self._control is not None:
                self.constraint.update(self.state, self._control)
            raise

        self.state.set(u)
        self.num_state_solves += 1
        self._control = z.clone()
        self._control.set(z)
        self._adjoint_up_to_date = False
        return self.state

    def _ensure_state(self, z: Vector) -> None:
        if not self._is_current(z):
            self.solve_state(z)

    def solve_adjoint(self, z: Vector) -> Vector:
        """Solve ``J_u^T lambda = -grad_u J`` at the current state."""
        self._ensure_state(z)
        if not self._adjoint_up_to_date:
            rhs = self.state.clone()
            self.objective.gradient_1(rhs, self.state, z)
            rhs.scale(-1.0)
            self.constraint.apply_inverse_adjoint_jacobian_1(self.adjoint, rhs, self.state, z)
            self._adjoint_up_to_date = True
            self.num_adjoint_solves += 1
        return self.adjoint

    # Objective interface ---------------------------------------------------

    def update(self, x: Vector, flag: bool = True, iter: int = -1) -> None:
        self.solve_state(x)
        self.objective.update(self.state, x, flag, iter)

    def value(self, x: Vector) -> Float:
        self._ensure_state(x)
        return self.objective.value(self.state, x)

    def gradient(self, g: Vector, x: Vector) -> None:
        lam = self.solve_adjoint(x)
        self.objective.gradient_2(g, self.state, x)
        tmp = g.clone()
        self.constraint.apply_adjoint_jacobian_2(tmp, lam, self.state, x)
        g.plus(tmp)

    def hess_vec(self, hv: Vector, v: Vector, x: Vector) -> None:
        lam = self.solve_adjoint(x)
        u = self.state
        tmp_state = u.clone()
        tmp_control = hv.clone()

        # State sensitivity: J_u du = -J_z v
        rhs = u.clone()
        self.constraint.apply_jacobian_2(rhs, v, u, x)
        rhs.scale(-1.0)
        state_sens = u.clone()
        self.constraint.apply_inverse_jacobian_1(state_sens, rhs, u, x)

        # Adjoint sensitivity: J_u^T dlam = -(H_11 du + H_12 v + AH_11 du + AH_21 v)
        self.objective.hess_vec_11(rhs, state_sens, u, x)
        self.objective.hess_vec_12(tmp_state, v, u, x)
        rhs.plus(tmp_state)
        self.constraint.apply_adjoint_hessian_11(tmp_state, lam, state_sens, u, x)
        rhs.plus(tmp_state)
        self.constraint.apply_adjoint_hessian_21(tmp_state, lam, v, u, x)
        rhs.plus(tmp_state)
        rhs.scale(-1.0)
        adjoint_sens = u.clone()
        self.constraint.apply_inverse_adjoint_jacobian_1(adjoint_sens, rhs, u, x)

        # J_z^T dlam + H_21 du + H_22 v + AH_12 du + AH_22 v
        self.constraint.apply_adjoint_jacobian_2(hv, adjoint_sens, u, x)
        self.objective.hess_vec_21(tmp_control, state_sens, u, x)
        hv.plus(tmp_control)
        self.objective.hess_vec_22(tmp_control, v, u, x)
        hv.plus(tmp_control)
        self.constraint.apply_adjoint_hessian_12(tmp_control, lam, state_sens, u, x)
        hv.plus(tmp_control)
        self.constraint.apply_adjoint_hessian_22(tmp_control, lam, v, u, x)
        hv.plus(tmp_control)
