"""Objective interfaces and the quadratic tracking objective.

``Objective`` is the interface consumed by the step lifecycle. ``ObjectiveSimOpt``
splits derivatives into state (``_1``) and control (``_2``) blocks; its
``hess_vec_ab`` maps a direction in block ``b`` to a result in block ``a``.
Output vectors are always overwritten.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax.numpy as jnp
from jax import Array

from .discretization import Discretization
from .types import Float
from .vector import Vector, flat_values, write_values


class Objective(ABC):
    """Smooth objective over a single optimization variable."""

    def update(self, x: Vector, flag: bool = True, iter: int = -1) -> None:
        """Notify the objective that the iterate changed."""

    @abstractmethod
    def value(self, x: Vector) -> Float: ...

    @abstractmethod
    def gradient(self, g: Vector, x: Vector) -> None: ...

    def hess_vec(self, hv: Vector, v: Vector, x: Vector) -> None:
        """Finite-difference Hessian-vector product from two gradients."""
        vnorm = v.norm()
        if vnorm == 0.0:
            hv.zero()
            return
        h = 1e-6 * max(1.0, x.norm()) / vnorm
        g = x.clone()
        self.gradient(g, x)
        xh = x.clone()
        xh.set(x)
        xh.axpy(h, v)
        self.gradient(hv, xh)
        hv.axpy(-1.0, g)
        hv.scale(1.0 / h)


class ObjectiveSimOpt(ABC):
    """Objective of a state ``u`` and a control ``z``."""

    def update(self, u: Vector, z: Vector, flag: bool = True, iter: int = -1) -> None:
        """Notify the objective that (u, z) changed."""

    @abstractmethod
    def value(self, u: Vector, z: Vector) -> Float: ...

    @abstractmethod
    def gradient_1(self, g: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def gradient_2(self, g: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def hess_vec_11(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def hess_vec_12(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def hess_vec_21(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...

    @abstractmethod
    def hess_vec_22(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None: ...


class TrackingObjective(ObjectiveSimOpt):
    """Mass-weighted misfit to a target state plus control energy.

    ``J(u, z) = 1/2 (u - t)^T M (u - t) + gamma/2 z^T M z``

    State and control enter additively, so the mixed Hessian blocks are zero.
    """

    def __init__(self, disc: Discretization, target: Vector, gamma: Float) -> None:
        self.disc = disc
        self.num_dof = disc.get_num_dof()
        self.gamma = gamma
        self._target = flat_values(target, self.num_dof, "target")

    def _misfit(self, u: Vector) -> Array:
        return flat_values(u, self.num_dof, "u") - self._target

    def _check_point(self, u: Vector, z: Vector) -> None:
        flat_values(u, self.num_dof, "u")
        flat_values(z, self.num_dof, "z")

    def value(self, u: Vector, z: Vector) -> Float:
        err = self._misfit(u)
        zv = flat_values(z, self.num_dof, "z")
        m_err = self.disc.apply_mass(err)
        m_z = self.disc.apply_mass(zv)
        return float(0.5 * (jnp.dot(m_err, err) + self.gamma * jnp.dot(m_z, zv)))

    def gradient_1(self, g: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        write_values(g, self.disc.apply_mass(self._misfit(u)), "g")

    def gradient_2(self, g: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        zv = flat_values(z, self.num_dof, "z")
        write_values(g, self.gamma * self.disc.apply_mass(zv), "g")

    def hess_vec_11(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        write_values(hv, self.disc.apply_mass(flat_values(v, self.num_dof, "v")), "hv")

    def hess_vec_12(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        flat_values(v, self.num_dof, "v")
        write_values(hv, jnp.zeros(self.num_dof), "hv")

    def hess_vec_21(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        flat_values(v, self.num_dof, "v")
        write_values(hv, jnp.zeros(self.num_dof), "hv")

    def hess_vec_22(self, hv: Vector, v: Vector, u: Vector, z: Vector) -> None:
        self._check_point(u, z)
        mv = self.disc.apply_mass(flat_values(v, self.num_dof, "v"))
        write_values(hv, self.gamma * mv, "hv")
