"""Discretization provider for the per-cell residual and mass operators.

The engine only needs per-cell geometric and quadrature data: physical
cubature points, transformed (and cubature-weighted) basis values and
gradients, and the element mass matrices. ``LineDiscretization`` supplies
these for continuous Lagrange elements on a uniform 1-D mesh.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple

import jax.numpy as jnp
import numpy as np
from jax import Array

from .exceptions import _simopt_throw
from .types import ErrorCode, FieldContainer, Float


class CellData(NamedTuple):
    """Per-cell quadrature data, leading axis over cells.

    Shapes: ``cub_pts`` (C, P, D), ``tran_vals`` / ``wtd_tran_vals`` (C, F, P),
    ``tran_grad`` / ``wtd_tran_grad`` (C, F, P, D).
    """

    cub_pts: Array
    tran_vals: Array
    tran_grad: Array
    wtd_tran_vals: Array
    wtd_tran_grad: Array


class Discretization(ABC):
    """Provider of cell-local finite element data."""

    @abstractmethod
    def get_num_cells(self) -> int: ...

    @abstractmethod
    def get_num_cub_pts(self) -> int: ...

    @abstractmethod
    def get_num_fields(self) -> int: ...

    @abstractmethod
    def get_space_dim(self) -> int: ...

    @abstractmethod
    def get_phys_cub_pts(self) -> FieldContainer: ...

    @abstractmethod
    def get_transformed_vals(self) -> FieldContainer: ...

    @abstractmethod
    def get_transformed_grad(self) -> FieldContainer: ...

    @abstractmethod
    def get_weighted_transformed_vals(self) -> FieldContainer: ...

    @abstractmethod
    def get_weighted_transformed_grad(self) -> FieldContainer: ...

    @abstractmethod
    def get_mass_matrices(self) -> FieldContainer: ...

    def get_num_dof(self) -> int:
        """Number of degrees of freedom; neighbouring cells share one node."""
        return self.get_num_cells() * (self.get_num_fields() - 1) + 1

    def dof_indices(self) -> Array:
        """Global dof index of every (cell, field) pair."""
        num_fields = self.get_num_fields()
        cells = jnp.arange(self.get_num_cells())[:, None]
        fields = jnp.arange(num_fields)[None, :]
        return cells * (num_fields - 1) + fields

    def cell_data(self) -> CellData:
        """Bundle the quadrature data for vectorized evaluation."""
        return CellData(
            cub_pts=self.get_phys_cub_pts(),
            tran_vals=self.get_transformed_vals(),
            tran_grad=self.get_transformed_grad(),
            wtd_tran_vals=self.get_weighted_transformed_vals(),
            wtd_tran_grad=self.get_weighted_transformed_grad(),
        )

    def apply_mass(self, v: Array) -> Array:
        """Apply the mass operator to flat dof values.

        Each row sums the contributions of every cell sharing that dof.
        """
        idx = self.dof_indices()
        local = jnp.einsum("crs,cs->cr", self.get_mass_matrices(), v[idx])
        return jnp.zeros(self.get_num_dof()).at[idx].add(local)


def _lagrange_basis(nodes: np.ndarray, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Values and derivatives of the Lagrange polynomials on ``nodes`` at ``points``."""
    num_nodes = nodes.shape[0]
    vals = np.ones((num_nodes, points.shape[0]))
    grads = np.zeros((num_nodes, points.shape[0]))
    for k in range(num_nodes):
        others = [m for m in range(num_nodes) if m != k]
        for m in others:
            vals[k] *= (points - nodes[m]) / (nodes[k] - nodes[m])
        for j in others:
            term = np.full(points.shape[0], 1.0 / (nodes[k] - nodes[j]))
            for m in others:
                if m != j:
                    term *= (points - nodes[m]) / (nodes[k] - nodes[m])
            grads[k] += term
    return vals, grads


class LineDiscretization(Discretization):
    """Continuous Lagrange elements on a uniform mesh of an interval.

    Fields are ordered left to right inside each cell, so the last field of
    one cell and the first field of the next share a dof.
    """

    def __init__(
        self,
        num_cells: int,
        num_fields: int = 2,
        num_cub_pts: int | None = None,
        domain: tuple[Float, Float] = (0.0, 1.0),
    ) -> None:
        if num_cub_pts is None:
            num_cub_pts = num_fields + 1

        if num_cells <= 0:
            _simopt_throw("Number of cells must be positive", ErrorCode.INVALID_DISCRETIZATION)
        if num_fields < 2:
            _simopt_throw(
                "At least two fields per cell are required", ErrorCode.INVALID_DISCRETIZATION
            )
        if num_cub_pts <= 0:
            _simopt_throw(
                "Number of cubature points must be positive", ErrorCode.INVALID_DISCRETIZATION
            )
        if domain[1] <= domain[0]:
            _simopt_throw("Domain must have positive length", ErrorCode.INVALID_DISCRETIZATION)

        self._num_cells = num_cells
        self._num_fields = num_fields
        self._num_cub_pts = num_cub_pts
        self._domain = domain

        ref_pts, ref_wts = np.polynomial.legendre.leggauss(num_cub_pts)
        ref_nodes = np.linspace(-1.0, 1.0, num_fields)
        ref_vals, ref_grads = _lagrange_basis(ref_nodes, ref_pts)

        h = (domain[1] - domain[0]) / num_cells
        det_jac = 0.5 * h
        left = domain[0] + h * np.arange(num_cells)

        cub_pts = left[:, None] + (ref_pts[None, :] + 1.0) * det_jac
        tran_vals = np.broadcast_to(ref_vals, (num_cells, num_fields, num_cub_pts))
        tran_grad = np.broadcast_to(
            (ref_grads / det_jac)[..., None], (num_cells, num_fields, num_cub_pts, 1)
        )
        wts = ref_wts * det_jac

        self._cub_pts = jnp.asarray(cub_pts[..., None])
        self._tran_vals = jnp.asarray(tran_vals)
        self._tran_grad = jnp.asarray(tran_grad)
        self._wtd_tran_vals = jnp.asarray(tran_vals * wts[None, None, :])
        self._wtd_tran_grad = jnp.asarray(tran_grad * wts[None, None, :, None])
        self._mass = jnp.einsum("crp,csp->crs", self._wtd_tran_vals, self._tran_vals)

    def get_num_cells(self) -> int:
        return self._num_cells

    def get_num_cub_pts(self) -> int:
        return self._num_cub_pts

    def get_num_fields(self) -> int:
        return self._num_fields

    def get_space_dim(self) -> int:
        return 1

    def get_domain(self) -> tuple[Float, Float]:
        return self._domain

    def get_phys_cub_pts(self) -> Array:
        return self._cub_pts

    def get_transformed_vals(self) -> Array:
        return self._tran_vals

    def get_transformed_grad(self) -> Array:
        return self._tran_grad

    def get_weighted_transformed_vals(self) -> Array:
        return self._wtd_tran_vals

    def get_weighted_transformed_grad(self) -> Array:
        return self._wtd_tran_grad

    def get_mass_matrices(self) -> Array:
        return self._mass

    def get_nodes(self) -> Array:
        """Physical coordinates of the dofs."""
        return jnp.linspace(self._domain[0], self._domain[1], self.get_num_dof())
