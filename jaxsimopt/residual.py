"""Type-generic residual evaluator for the boundary value problem constraint.

The per-cell kernel is plain ``jax.numpy`` code. Evaluating it on floats gives
the residual; evaluating it under ``jax.jacfwd`` gives exact first
derivatives; evaluating it under ``jax.jacfwd`` of ``jax.jvp`` gives exact
mixed second derivatives. The kernel never branches on which of these it is
running under.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array

from .coefficient import Coefficient
from .discretization import CellData
from .types import FieldContainer, Float


def cell_residual(
    u_cell: Array,
    z_cell: Array,
    cell: CellData,
    coefficient: Coefficient,
    params: tuple[tuple[Float, ...], tuple[Float, ...], tuple[Float, ...]] = ((), (), ()),
) -> Array:
    """Residual contribution of one cell.

    Args:
        u_cell: State values of the cell's fields, shape (F,)
        z_cell: Control values of the cell's fields, shape (F,)
        cell: Quadrature data of this cell (no leading cell axis)
        coefficient: Constitutive model
        params: Diffusion, advection and reaction parameters

    Returns:
        Residual of every field, shape (F,)
    """
    dif_param, adv_param, rea_param = params

    # Interpolate on the cubature points
    u_vals = jnp.einsum("f,fp->p", u_cell, cell.tran_vals)
    z_vals = jnp.einsum("f,fp->p", z_cell, cell.tran_vals)
    u_grad = jnp.einsum("f,fpd->pd", u_cell, cell.tran_grad)

    react = coefficient.reaction(cell.cub_pts, u_vals, z_vals, rea_param)
    advec = coefficient.advection(cell.cub_pts, u_vals, z_vals, adv_param)
    diff = coefficient.diffusion(cell.cub_pts, u_vals, z_vals, dif_param)

    diff_term = diff[:, None] * u_grad
    advec_term = jnp.sum(advec * u_grad, axis=-1)

    res = jnp.einsum("pd,fpd->f", diff_term, cell.wtd_tran_grad)
    res = res + jnp.einsum("p,fp->f", advec_term + react, cell.wtd_tran_vals)
    return res


def evaluate_residual(
    u_fc: FieldContainer,
    z_fc: FieldContainer,
    cells: CellData,
    coefficient: Coefficient,
    params: tuple[tuple[Float, ...], tuple[Float, ...], tuple[Float, ...]] = ((), (), ()),
) -> FieldContainer:
    """Residual of every cell, shape (C, F)."""

    def kernel(u_cell: Array, z_cell: Array, cell: CellData) -> Array:
        return cell_residual(u_cell, z_cell, cell, coefficient, params)

    return jax.vmap(kernel)(u_fc, z_fc, cells)


def gather(values: Array, indices: Array) -> FieldContainer:
    """Gather flat dof values into a (cell, field) container."""
    return values[indices]


def scatter(fc: FieldContainer, indices: Array, num_dof: int) -> Array:
    """Sum a (cell, field) container into flat dof storage."""
    return jnp.zeros(num_dof, dtype=fc.dtype).at[indices].add(fc)
