"""Equality constraint operators and the BVP derivative engine.

``BVPConstraint`` wraps the per-cell residual evaluator and exposes the
constraint value, dense Jacobian products for both variable blocks, inverse
(adjoint) state-Jacobian solves and the four adjoint-Hessian blocks.

Linearization contract: with ``ConstraintOptions.eager_update=False`` (the
default) the dense blocks ``J_u`` and ``J_z`` are only refreshed by an explicit
``update(u, z)``; the caller must call it whenever ``(u, z)`` changes, and at
least once per optimization iteration. Calling Jacobian operations on a stale
or never-updated linearization returns stale results; it is not detected.
With ``eager_update=True`` every Jacobian operation re-linearizes at the
``(u, z)`` it receives. Adjoint-Hessian products never use the cached blocks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax
import jax.numpy as jnp
import jax.scipy as jsp
from jax import Array

from .coefficient import Coefficient
from .discretization import CellData, Discretization
from .exceptions import _simopt_throw
from .residual import cell_residual, evaluate_residual, gather, scatter
from .solver_options import ConstraintOptions
from .types import Block, ErrorCode, Float, JacobianMatrix, Verbosity
from .vector import Vector, flat_values, write_values


class EqualityConstraintSimOpt(ABC):
    """Equality constraint ``c(u, z) = 0`` between a state and a control.

    ``apply_adjoint_hessian_ab(ahwv, w, v, u, z)`` computes
    ``d/dx_a [ (dc/dx_b)^T w ] v`` with ``v`` in block ``a`` and the result
    in block ``b`` (``1`` = state, ``2`` = control).
    """

    def update(self, u: Vector, z: Vector, flag: bool = True, iter: int = -1) -> None:
        """Notify the constraint that (u, z) changed."""

    @abstractmethod
    def value(self, c: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_jacobian_1(self, jv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_jacobian_2(self, jv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_adjoint_jacobian_1(self, ajv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_adjoint_jacobian_2(self, ajv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_inverse_jacobian_1(self, ijv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def apply_inverse_adjoint_jacobian_1(
        self, iajv: Vector, v: Vector, u: Vector, z: Vector
    ) -> None: ...

    @abstractmethod
    def apply_adjoint_hessian_11(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None: ...

    @abstractmethod
    def apply_adjoint_hessian_12(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None: ...

    @abstractmethod
    def apply_adjoint_hessian_21(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None: ...

    @abstractmethod
    def apply_adjoint_hessian_22(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None: ...


def equilibrated_solve(
    matrix: JacobianMatrix,
    rhs: Array,
    transpose: bool = False,
    equilibrate: bool = True,
    singular_tol: Float = 1e-13,
    verbose: bool = False,
) -> Array:
    """Solve ``A x = b`` (or ``A^T x = b``) by LU on a row/column scaled copy of ``A``.

    ``matrix`` is never modified. Raises ``SolveError`` if a row or column is
    zero, if the smallest pivot is below ``singular_tol`` times the largest,
    or if the solution is not finite.
    """
    n = matrix.shape[0]

    if equilibrate:
        row_max = jnp.max(jnp.abs(matrix), axis=1)
        if bool(jnp.any(row_max == 0.0)):
            _simopt_throw("Jacobian has a zero row", ErrorCode.SINGULAR_JACOBIAN)
        r = 1.0 / row_max
        scaled = r[:, None] * matrix

        col_max = jnp.max(jnp.abs(scaled), axis=0)
        if bool(jnp.any(col_max == 0.0)):
            _simopt_throw("Jacobian has a zero column", ErrorCode.SINGULAR_JACOBIAN)
        c = 1.0 / col_max
        scaled = scaled * c[None, :]
    else:
        r = jnp.ones(n)
        c = jnp.ones(n)
        scaled = matrix

    lu, piv = jsp.linalg.lu_factor(scaled)

    pivots = jnp.abs(jnp.diag(lu))
    pivot_max = float(jnp.max(pivots))
    pivot_min = float(jnp.min(pivots))
    if verbose:
        print(f"    LU pivots: min = {pivot_min:10.3e}, max = {pivot_max:10.3e}")

    if not pivot_max > 0.0 or pivot_min <= singular_tol * pivot_max:
        _simopt_throw(
            f"Jacobian is singular to working precision "
            f"(pivot ratio {pivot_min / pivot_max if pivot_max > 0.0 else 0.0:.3e})",
            ErrorCode.SINGULAR_JACOBIAN,
        )

    # (R A C)^{-1} = C^{-1} A^{-1} R^{-1}, (R A C)^{-T} = R^{-1} A^{-T} C^{-1}
    if transpose:
        x = r * jsp.linalg.lu_solve((lu, piv), c * rhs, trans=1)
    else:
        x = c * jsp.linalg.lu_solve((lu, piv), r * rhs, trans=0)

    if not bool(jnp.all(jnp.isfinite(x))):
        _simopt_throw("Linear solve produced a non-finite solution", ErrorCode.NONFINITE_SOLUTION)

    return x


class BVPConstraint(EqualityConstraintSimOpt):
    """Residual of a 1-D diffusion-advection-reaction boundary value problem.

    All derivatives come from the type-generic residual kernel: first-order
    forward sweeps for the dense Jacobian blocks and a forward-over-forward
    sweep for the adjoint-Hessian blocks.
    """

    def __init__(
        self,
        disc: Discretization,
        coefficient: Coefficient,
        options: ConstraintOptions | None = None,
        dif_param: tuple[Float, ...] = (),
        adv_param: tuple[Float, ...] = (),
        rea_param: tuple[Float, ...] = (),
    ) -> None:
        self.disc = disc
        self.coefficient = coefficient
        self.opts = options if options is not None else ConstraintOptions()

        self.num_cells = disc.get_num_cells()
        self.num_fields = disc.get_num_fields()
        self.num_dof = disc.get_num_dof()

        self._cells = disc.cell_data()
        self._indices = disc.dof_indices()
        self._params = (dif_param, adv_param, rea_param)

        # Constraint Jacobians w.r.t. u and z
        self._jac_u = jnp.zeros((self.num_dof, self.num_dof))
        self._jac_z = jnp.zeros((self.num_dof, self.num_dof))

        self._residual = jax.jit(self._residual_kernel)
        self._jacobians = jax.jit(self._jacobian_kernel)
        self._adjoint_hessian = jax.jit(
            self._adjoint_hessian_kernel, static_argnames=("outer", "inner")
        )

    # Kernels ---------------------------------------------------------------

    def _local_residual(self, u_cell: Array, z_cell: Array, cell: CellData) -> Array:
        return cell_residual(u_cell, z_cell, cell, self.coefficient, self._params)

    def _assemble(self, local: Array) -> JacobianMatrix:
        rows = self._indices[:, :, None]
        cols = self._indices[:, None, :]
        return jnp.zeros((self.num_dof, self.num_dof)).at[rows, cols].add(local)

    def _residual_kernel(self, u: Array, z: Array) -> Array:
        c_fc = evaluate_residual(
            gather(u, self._indices),
            gather(z, self._indices),
            self._cells,
            self.coefficient,
            self._params,
        )
        return scatter(c_fc, self._indices, self.num_dof)

    def _jacobian_kernel(self, u: Array, z: Array) -> tuple[JacobianMatrix, JacobianMatrix]:
        u_fc = gather(u, self._indices)
        z_fc = gather(z, self._indices)
        jac_u = jax.vmap(jax.jacfwd(self._local_residual, argnums=0))(u_fc, z_fc, self._cells)
        jac_z = jax.vmap(jax.jacfwd(self._local_residual, argnums=1))(u_fc, z_fc, self._cells)
        return self._assemble(jac_u), self._assemble(jac_z)

    def _adjoint_hessian_kernel(
        self, w: Array, v: Array, u: Array, z: Array, outer: Block, inner: Block
    ) -> Array:
        def local(u_cell: Array, z_cell: Array, w_cell: Array, v_cell: Array, cell: CellData):
            def weighted(uc: Array, zc: Array) -> Array:
                return jnp.dot(w_cell, self._local_residual(uc, zc, cell))

            # Outer tag: directional derivative along v in the outer block
            def directional(uc: Array, zc: Array) -> Array:
                zero = jnp.zeros_like(v_cell)
                tangents = (v_cell, zero) if outer is Block.STATE else (zero, v_cell)
                return jax.jvp(weighted, (uc, zc), tangents)[1]

            # Inner tag: one derivative per field of the inner block
            argnum = 0 if inner is Block.STATE else 1
            return jax.jacfwd(directional, argnums=argnum)(u_cell, z_cell)

        ahwv_fc = jax.vmap(local)(
            gather(u, self._indices),
            gather(z, self._indices),
            gather(w, self._indices),
            gather(v, self._indices),
            self._cells,
        )
        return scatter(ahwv_fc, self._indices, self.num_dof)

    # Linearization ---------------------------------------------------------

    def update(self, u: Vector, z: Vector, flag: bool = True, iter: int = -1) -> None:
        """Re-assemble the dense Jacobian blocks at (u, z)."""
        up = flat_values(u, self.num_dof, "u")
        zp = flat_values(z, self.num_dof, "z")
        self._jac_u, self._jac_z = self._jacobians(up, zp)

        if self.opts.verbose in (Verbosity.INNER, Verbosity.LINE_SEARCH):
            print(f"    Constraint linearized (iter = {iter}, accepted = {flag})")

    def get_jacobian_1(self) -> JacobianMatrix:
        """Cached Jacobian with respect to the state."""
        return self._jac_u

    def get_jacobian_2(self) -> JacobianMatrix:
        """Cached Jacobian with respect to the control."""
        return self._jac_z

    def _linearize(self, u: Vector, z: Vector) -> None:
        if self.opts.eager_update:
            self.update(u, z)
        else:
            flat_values(u, self.num_dof, "u")
            flat_values(z, self.num_dof, "z")

    # Value and Jacobian products -------------------------------------------

    def value(self, c: Vector, u: Vector, z: Vector) -> None:
        up = flat_values(u, self.num_dof, "u")
        zp = flat_values(z, self.num_dof, "z")
        write_values(c, self._residual(up, zp), "c")

    def _apply_jac(self, jv: Vector, v: Vector, block: Block, transpose: bool) -> None:
        jac = self._jac_u if block is Block.STATE else self._jac_z
        vp = flat_values(v, self.num_dof, "v")
        write_values(jv, jac.T @ vp if transpose else jac @ vp, "jv")

    def apply_jacobian_1(self, jv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._linearize(u, z)
        self._apply_jac(jv, v, Block.STATE, transpose=False)

    def apply_jacobian_2(self, jv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._linearize(u, z)
        self._apply_jac(jv, v, Block.CONTROL, transpose=False)

    def apply_adjoint_jacobian_1(self, ajv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._linearize(u, z)
        self._apply_jac(ajv, v, Block.STATE, transpose=True)

    def apply_adjoint_jacobian_2(self, ajv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._linearize(u, z)
        self._apply_jac(ajv, v, Block.CONTROL, transpose=True)

    # Inverse state Jacobian ------------------------------------------------

    def _solve(self, out: Vector, v: Vector, transpose: bool) -> None:
        vp = flat_values(v, self.num_dof, "v")
        x = equilibrated_solve(
            self._jac_u,
            vp,
            transpose=transpose,
            equilibrate=self.opts.equilibrate,
            singular_tol=self.opts.singular_tol,
            verbose=self.opts.verbose in (Verbosity.INNER, Verbosity.LINE_SEARCH),
        )
        write_values(out, x, "ijv")

    def apply_inverse_jacobian_1(self, ijv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        """Solve ``J_u x = v``."""
        self._linearize(u, z)
        self._solve(ijv, v, transpose=False)

    def apply_inverse_adjoint_jacobian_1(
        self, iajv: Vector, v: Vector, u: Vector, z: Vector
    ) -> None:
        """Solve ``J_u^T x = v``."""
        self._linearize(u, z)
        self._solve(iajv, v, transpose=True)

    # Adjoint Hessians ------------------------------------------------------

    def _apply_adjoint_hessian(
        self,
        ahwv: Vector,
        w: Vector,
        v: Vector,
        u: Vector,
        z: Vector,
        outer: Block,
        inner: Block,
    ) -> None:
        wp = flat_values(w, self.num_dof, "w")
        vp = flat_values(v, self.num_dof, "v")
        up = flat_values(u, self.num_dof, "u")
        zp = flat_values(z, self.num_dof, "z")
        write_values(ahwv, self._adjoint_hessian(wp, vp, up, zp, outer=outer, inner=inner), "ahwv")

    def apply_adjoint_hessian_11(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None:
        self._apply_adjoint_hessian(ahwv, w, v, u, z, Block.STATE, Block.STATE)

    def apply_adjoint_hessian_12(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None:
        self._apply_adjoint_hessian(ahwv, w, v, u, z, Block.STATE, Block.CONTROL)

    def apply_adjoint_hessian_21(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None:
        self._apply_adjoint_hessian(ahwv, w, v, u, z, Block.CONTROL, Block.STATE)

    def apply_adjoint_hessian_22(
        self, ahwv: Vector, w: Vector, v: Vector, u: Vector, z: Vector
    ) -> None:
        self._apply_adjoint_hessian(ahwv, w, v, u, z, Block.CONTROL, Block.CONTROL)
