"""Constitutive coefficient models evaluated at cubature points.

Coefficient routines are written with ``jax.numpy`` only, so the residual
evaluator can call them with plain arrays or with JAX tracers carrying first
or nested second derivatives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax.numpy as jnp

from .types import CubatureValues, Float


class Coefficient(ABC):
    """Diffusion, advection and reaction coefficients of a cell residual.

    Every routine maps cubature positions ``x`` (P, D), state values ``u`` (P,)
    and control values ``z`` (P,) to cubature values. ``diffusion`` and
    ``reaction`` return shape (P,), ``advection`` returns (P, D).
    """

    @abstractmethod
    def diffusion(
        self,
        x: CubatureValues,
        u: CubatureValues,
        z: CubatureValues,
        params: tuple[Float, ...] = (),
    ) -> CubatureValues: ...

    @abstractmethod
    def advection(
        self,
        x: CubatureValues,
        u: CubatureValues,
        z: CubatureValues,
        params: tuple[Float, ...] = (),
    ) -> CubatureValues: ...

    @abstractmethod
    def reaction(
        self,
        x: CubatureValues,
        u: CubatureValues,
        z: CubatureValues,
        params: tuple[Float, ...] = (),
    ) -> CubatureValues: ...


class ExampleCoefficient(Coefficient):
    """Nonlinear diffusion-advection-reaction model with a distributed control.

    - diffusion ``kappa * (1 + u^2)``
    - advection ``beta * z`` in every spatial direction
    - reaction ``u + u^3 - z - f(x)`` with source ``f(x) = source * sin(pi x)``

    Both flux terms carry a factor of ``grad u`` and the reaction vanishes
    for zero state, control and source, so the residual is exactly zero there.
    """

    def __init__(self, kappa: Float = 1.0, beta: Float = 0.5, source: Float = 0.0) -> None:
        self.kappa = kappa
        self.beta = beta
        self.source = source

    def diffusion(self, x, u, z, params=()):
        return self.kappa * (1.0 + u**2)

    def advection(self, x, u, z, params=()):
        return self.beta * z[:, None] * jnp.ones_like(x)

    def reaction(self, x, u, z, params=()):
        forcing = self.source * jnp.sin(jnp.pi * x[:, 0])
        return u + u**3 - z - forcing
