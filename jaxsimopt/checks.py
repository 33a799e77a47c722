"""Consistency checks for vectors, objectives and constraints.

Finite-difference checks use central differences over a sequence of
decreasing steps ``10^0, 10^-1, ...``; for smooth functions the error should
decrease quadratically until round-off takes over.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import jax.numpy as jnp
from jax import Array

from .constraint import EqualityConstraintSimOpt
from .objective import Objective
from .types import Float
from .vector import Vector


@dataclass(frozen=True)
class FiniteDifferenceRow:
    step: Float
    exact: Float
    approx: Float
    error: Float


def check_vector(x: Vector, y: Vector, z: Vector, verbose: bool = False) -> Array:
    """Vector-space axiom violations for ``x``, ``y``, ``z``.

    Returns the error of: commutativity, associativity, additive identity,
    additive inverse, scalar identity, scalar associativity, two
    distributivity laws, symmetry of the inner product and consistency of the
    norm with the inner product.
    """
    a, b = 1.234, -0.4321

    def copy(v: Vector) -> Vector:
        out = v.clone()
        out.set(v)
        return out

    def diff_norm(p: Vector, q: Vector) -> Float:
        d = copy(p)
        d.axpy(-1.0, q)
        return d.norm()

    errors = []

    # x + y = y + x
    p, q = copy(x), copy(y)
    p.plus(y)
    q.plus(x)
    errors.append(diff_norm(p, q))

    # (x + y) + z = x + (y + z)
    p = copy(x)
    p.plus(y)
    p.plus(z)
    q = copy(y)
    q.plus(z)
    q.plus(x)
    errors.append(diff_norm(p, q))

    # x + 0 = x
    p = copy(x)
    p.plus(x.clone())
    errors.append(diff_norm(p, x))

    # x + (-x) = 0
    p = copy(x)
    p.axpy(-1.0, x)
    errors.append(p.norm())

    # 1 * x = x
    p = copy(x)
    p.scale(1.0)
    errors.append(diff_norm(p, x))

    # a * (b * x) = (a * b) * x
    p, q = copy(x), copy(x)
    p.scale(b)
    p.scale(a)
    q.scale(a * b)
    errors.append(diff_norm(p, q))

    # a * (x + y) = a * x + a * y
    p = copy(x)
    p.plus(y)
    p.scale(a)
    q = copy(x)
    q.scale(a)
    q.axpy(a, y)
    errors.append(diff_norm(p, q))

    # (a + b) * x = a * x + b * x
    p = copy(x)
    p.scale(a + b)
    q = copy(x)
    q.scale(a)
    q.axpy(b, x)
    errors.append(diff_norm(p, q))

    # <x, y> = <y, x>
    errors.append(abs(x.dot(y) - y.dot(x)))

    # ||x||^2 = <x, x>
    errors.append(abs(x.norm() ** 2 - x.dot(x)))

    result = jnp.asarray(errors)
    if verbose:
        print(f"Vector consistency errors: {result}")
    return result


def check_directional_derivative(
    value: Callable[[Vector], Float],
    derivative: Callable[[Vector, Vector], Float],
    x: Vector,
    d: Vector,
    num_steps: int = 8,
    verbose: bool = False,
) -> list[FiniteDifferenceRow]:
    """Compare ``derivative(x, d)`` with central differences of ``value`` along ``d``."""
    exact = derivative(x, d)
    xh = x.clone()
    rows = []
    for k in range(num_steps):
        h = 10.0 ** (-k)
        xh.set(x)
        xh.axpy(h, d)
        f_plus = value(xh)
        xh.set(x)
        xh.axpy(-h, d)
        f_minus = value(xh)
        approx = (f_plus - f_minus) / (2.0 * h)
        rows.append(FiniteDifferenceRow(h, exact, approx, abs(approx - exact)))
        if verbose:
            print(f"  {h:10.3e}  {exact:14.6e}  {approx:14.6e}  {abs(approx - exact):10.3e}")
    return rows


def check_gradient(
    obj: Objective, x: Vector, d: Vector, num_steps: int = 8, verbose: bool = False
) -> list[FiniteDifferenceRow]:
    """Finite-difference check of ``obj.gradient`` along ``d``."""

    def derivative(xv: Vector, dv: Vector) -> Float:
        g = xv.clone()
        obj.gradient(g, xv)
        return g.dot(dv)

    return check_directional_derivative(obj.value, derivative, x, d, num_steps, verbose)


def check_hess_vec(
    obj: Objective, x: Vector, v: Vector, num_steps: int = 8, verbose: bool = False
) -> list[FiniteDifferenceRow]:
    """Finite-difference check of ``obj.hess_vec`` against gradient differences.

    ``exact`` and ``approx`` hold norms; ``error`` is the norm of the difference.
    """
    hv = x.clone()
    obj.hess_vec(hv, v, x)

    xh = x.clone()
    g_plus = x.clone()
    g_minus = x.clone()
    rows = []
    for k in range(num_steps):
        h = 10.0 ** (-k)
        xh.set(x)
        xh.axpy(h, v)
        obj.gradient(g_plus, xh)
        xh.set(x)
        xh.axpy(-h, v)
        obj.gradient(g_minus, xh)
        g_plus.axpy(-1.0, g_minus)
        g_plus.scale(1.0 / (2.0 * h))
        approx = g_plus.norm()
        g_plus.axpy(-1.0, hv)
        rows.append(FiniteDifferenceRow(h, hv.norm(), approx, g_plus.norm()))
        if verbose:
            print(f"  {h:10.3e}  {hv.norm():14.6e}  {approx:14.6e}  {g_plus.norm():10.3e}")
    return rows


def check_adjoint_jacobian_consistency(
    con: EqualityConstraintSimOpt, v: Vector, w: Vector, u: Vector, z: Vector, block: int = 1
) -> Float:
    """Return ``|<J v, w> - <v, J^T w>|`` for the state (1) or control (2) block."""
    jv = w.clone()
    ajw = v.clone()
    if block == 1:
        con.apply_jacobian_1(jv, v, u, z)
        con.apply_adjoint_jacobian_1(ajw, w, u, z)
    else:
        con.apply_jacobian_2(jv, v, u, z)
        con.apply_adjoint_jacobian_2(ajw, w, u, z)
    return abs(jv.dot(w) - v.dot(ajw))


def check_inverse_jacobian(
    con: EqualityConstraintSimOpt, v: Vector, u: Vector, z: Vector
) -> Float:
    """Return ``||J_u (J_u^{-1} v) - v||``."""
    ijv = v.clone()
    con.apply_inverse_jacobian_1(ijv, v, u, z)
    jijv = v.clone()
    con.apply_jacobian_1(jijv, ijv, u, z)
    jijv.axpy(-1.0, v)
    return jijv.norm()


def check_inverse_adjoint_jacobian(
    con: EqualityConstraintSimOpt, v: Vector, u: Vector, z: Vector
) -> Float:
    """Return ``||J_u^T (J_u^{-T} v) - v||``."""
    iajv = v.clone()
    con.apply_inverse_adjoint_jacobian_1(iajv, v, u, z)
    ajiajv = v.clone()
    con.apply_adjoint_jacobian_1(ajiajv, iajv, u, z)
    ajiajv.axpy(-1.0, v)
    return ajiajv.norm()


def check_adjoint_hessian_symmetry(
    con: EqualityConstraintSimOpt, w: Vector, v: Vector, u: Vector, z: Vector
) -> Float:
    """Largest ``|<AH_12(w, v), e_i> - <AH_21(w, e_i), v>|`` over basis vectors ``e_i``."""
    ah12 = z.clone()
    con.apply_adjoint_hessian_12(ah12, w, v, u, z)
    ah21 = u.clone()
    worst = 0.0
    for i in range(z.dimension()):
        e_i = z.basis(i)
        con.apply_adjoint_hessian_21(ah21, w, e_i, u, z)
        worst = max(worst, abs(ah12.dot(e_i) - ah21.dot(v)))
    return worst
