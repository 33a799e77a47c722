import jax.numpy as jnp
import numpy as np
import pytest

from jaxsimopt import DimensionError, LineDiscretization, StdVector, TrackingObjective


@pytest.fixture(name="objective")
def objective_fixture(disc: LineDiscretization) -> TrackingObjective:
    target = StdVector(jnp.sin(jnp.pi * disc.get_nodes()))
    return TrackingObjective(disc, target, gamma=1e-2)


def test_single_cell_value() -> None:
    disc = LineDiscretization(num_cells=1, num_fields=2)
    obj = TrackingObjective(disc, StdVector.zeros(2), gamma=0.0)
    u = StdVector([1.0, 1.0])
    expected = 0.5 * float(jnp.sum(disc.get_mass_matrices()[0]))
    assert obj.value(u, StdVector.zeros(2)) == pytest.approx(expected)
    assert obj.value(u, StdVector([3.0, -4.0])) == pytest.approx(expected)
    assert expected == pytest.approx(0.5)


def test_value_at_target_is_control_energy(
    disc: LineDiscretization, objective: TrackingObjective
) -> None:
    u = StdVector(jnp.sin(jnp.pi * disc.get_nodes()))
    z = StdVector(jnp.ones(disc.get_num_dof()))
    assert objective.value(u, z) == pytest.approx(0.5 * 1e-2)


def test_gradient_1_matches_finite_differences(
    objective: TrackingObjective, random_vector
) -> None:
    u, z, d = random_vector(1), random_vector(2), random_vector(3)
    g = u.clone()
    objective.gradient_1(g, u, z)

    h = 1e-5
    up, um = u.clone(), u.clone()
    up.set(u)
    up.axpy(h, d)
    um.set(u)
    um.axpy(-h, d)
    fd = (objective.value(up, z) - objective.value(um, z)) / (2.0 * h)
    assert g.dot(d) == pytest.approx(fd, rel=1e-7)


def test_gradient_2_matches_finite_differences(
    objective: TrackingObjective, random_vector
) -> None:
    u, z, d = random_vector(4), random_vector(5), random_vector(6)
    g = z.clone()
    objective.gradient_2(g, u, z)

    h = 1e-5
    zp, zm = z.clone(), z.clone()
    zp.set(z)
    zp.axpy(h, d)
    zm.set(z)
    zm.axpy(-h, d)
    fd = (objective.value(u, zp) - objective.value(u, zm)) / (2.0 * h)
    assert g.dot(d) == pytest.approx(fd, rel=1e-6)


def test_hess_vec_11_matches_gradient_differences(
    objective: TrackingObjective, random_vector
) -> None:
    u, z, v = random_vector(7), random_vector(8), random_vector(9)
    hv = u.clone()
    objective.hess_vec_11(hv, v, u, z)

    h = 1e-4
    up = u.clone()
    up.set(u)
    up.axpy(h, v)
    g0, g1 = u.clone(), u.clone()
    objective.gradient_1(g0, u, z)
    objective.gradient_1(g1, up, z)
    g1.axpy(-1.0, g0)
    g1.scale(1.0 / h)
    assert np.allclose(hv.get_array(), g1.get_array(), atol=1e-9)


def test_hess_vec_22_scales_mass(
    disc: LineDiscretization, objective: TrackingObjective, random_vector
) -> None:
    u, z, v = random_vector(10), random_vector(11), random_vector(12)
    hv = z.clone()
    objective.hess_vec_22(hv, v, u, z)
    assert np.allclose(hv.get_array(), 1e-2 * disc.apply_mass(v.get_array()))


def test_mixed_hessian_blocks_are_zero(objective: TrackingObjective, random_vector) -> None:
    u, z, v = random_vector(13), random_vector(14), random_vector(15)
    hv = random_vector(16)
    objective.hess_vec_12(hv, v, u, z)
    assert np.all(hv.get_array() == 0.0)
    hv = random_vector(17)
    objective.hess_vec_21(hv, v, u, z)
    assert np.all(hv.get_array() == 0.0)


def test_dimension_mismatch(objective: TrackingObjective, random_vector) -> None:
    u = random_vector(18)
    with pytest.raises(DimensionError):
        objective.value(u, StdVector.zeros(3))
    with pytest.raises(DimensionError):
        objective.gradient_1(StdVector.zeros(3), u, u)


@pytest.mark.parametrize(
    "method",
    ["gradient_1", "gradient_2", "hess_vec_11", "hess_vec_12", "hess_vec_21", "hess_vec_22"],
)
def test_dimension_mismatch_in_every_argument(
    objective: TrackingObjective, random_vector, method: str
) -> None:
    u = random_vector(19)
    short = StdVector.zeros(3)
    out = StdVector.zeros(u.dimension())
    # Hessian blocks take a direction before (u, z)
    lead = () if method.startswith("gradient") else (u,)
    with pytest.raises(DimensionError, match="for u:"):
        getattr(objective, method)(out, *lead, short, u)
    with pytest.raises(DimensionError, match="for z:"):
        getattr(objective, method)(out, *lead, u, short)
