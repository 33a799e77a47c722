import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jaxsimopt import (
    ExampleCoefficient,
    LineDiscretization,
    cell_residual,
    evaluate_residual,
    gather,
    scatter,
)


def test_zero_state_control_and_source_give_zero_residual() -> None:
    disc = LineDiscretization(num_cells=3, num_fields=3)
    indices = disc.dof_indices()
    zero = jnp.zeros(disc.get_num_dof())
    c_fc = evaluate_residual(
        gather(zero, indices), gather(zero, indices), disc.cell_data(), ExampleCoefficient()
    )
    assert c_fc.shape == (3, 3)
    assert np.all(c_fc == 0.0)


@pytest.mark.parametrize("a", [0.0, 0.5, -2.0])
def test_constant_state_reaction_only(a: float) -> None:
    disc = LineDiscretization(num_cells=1, num_fields=2)
    indices = disc.dof_indices()
    u = jnp.full(2, a)
    z = jnp.zeros(2)
    c_fc = evaluate_residual(
        gather(u, indices), gather(z, indices), disc.cell_data(), ExampleCoefficient()
    )
    c = scatter(c_fc, indices, disc.get_num_dof())
    # Constant state: both fluxes vanish, each hat function integrates to 1/2
    assert np.allclose(c, 0.5 * (a + a**3))


def test_source_term_drives_residual() -> None:
    disc = LineDiscretization(num_cells=2, num_fields=2)
    indices = disc.dof_indices()
    zero = jnp.zeros(disc.get_num_dof())
    c_fc = evaluate_residual(
        gather(zero, indices),
        gather(zero, indices),
        disc.cell_data(),
        ExampleCoefficient(source=1.0),
    )
    c = scatter(c_fc, indices, disc.get_num_dof())
    # -int f(x) phi_i dx with f = sin(pi x) is negative and symmetric about x = 1/2
    assert np.all(c < 0.0)
    assert float(c[0]) == pytest.approx(float(c[2]))


def test_cell_residual_is_differentiable() -> None:
    disc = LineDiscretization(num_cells=2, num_fields=3)
    cells = disc.cell_data()
    cell = jax.tree_util.tree_map(lambda a: a[0], cells)
    coefficient = ExampleCoefficient(source=1.0)
    u_cell = jnp.array([0.1, 0.4, -0.3])
    z_cell = jnp.array([0.2, -0.1, 0.5])

    def residual(u: jax.Array) -> jax.Array:
        return cell_residual(u, z_cell, cell, coefficient)

    jac = jax.jacfwd(residual)(u_cell)
    assert jac.shape == (3, 3)

    h = 1e-6
    e1 = jnp.zeros(3).at[1].set(1.0)
    fd = (residual(u_cell + h * e1) - residual(u_cell - h * e1)) / (2.0 * h)
    assert np.allclose(jac[:, 1], fd, atol=1e-8)


def test_evaluate_residual_under_jit(disc: LineDiscretization) -> None:
    coefficient = ExampleCoefficient(source=1.0)
    indices = disc.dof_indices()
    cells = disc.cell_data()

    def residual(u: jax.Array, z: jax.Array) -> jax.Array:
        return evaluate_residual(gather(u, indices), gather(z, indices), cells, coefficient)

    u = jnp.linspace(-1.0, 1.0, disc.get_num_dof())
    z = jnp.cos(u)
    assert np.allclose(jax.jit(residual)(u, z), residual(u, z))


def test_scatter_sums_shared_dofs() -> None:
    indices = jnp.array([[0, 1], [1, 2]])
    fc = jnp.array([[1.0, 2.0], [3.0, 4.0]])
    assert np.allclose(scatter(fc, indices, 3), [1.0, 5.0, 4.0])
    assert np.allclose(gather(jnp.array([7.0, 8.0, 9.0]), indices), [[7.0, 8.0], [8.0, 9.0]])
