from typing import Any, Callable

import jax
import pytest

from jaxsimopt import (
    BVPConstraint,
    ConstraintOptions,
    ExampleCoefficient,
    LineDiscretization,
    StdVector,
    evaluate_residual,
    gather,
    scatter,
)


@pytest.fixture(name="disc")
def disc_fixture() -> LineDiscretization:
    return LineDiscretization(num_cells=4, num_fields=3)


@pytest.fixture(name="coefficient")
def coefficient_fixture() -> ExampleCoefficient:
    return ExampleCoefficient(kappa=1.0, beta=0.5, source=1.0)


@pytest.fixture(name="random_vector")
def random_vector_fixture(disc: LineDiscretization) -> Callable[[int], StdVector]:
    def _random_vector(seed: int, scale: float = 1.0) -> StdVector:
        key = jax.random.PRNGKey(seed)
        return StdVector(scale * jax.random.normal(key, (disc.get_num_dof(),)))

    return _random_vector


@pytest.fixture(name="make_constraint")
def make_constraint_fixture(
    disc: LineDiscretization, coefficient: ExampleCoefficient
) -> Callable[..., BVPConstraint]:
    def _make_constraint(**kwargs: Any) -> BVPConstraint:
        return BVPConstraint(disc, coefficient, ConstraintOptions(**kwargs))

    return _make_constraint


@pytest.fixture(name="reference_residual")
def reference_residual_fixture(
    disc: LineDiscretization, coefficient: ExampleCoefficient
) -> Callable[[jax.Array, jax.Array], jax.Array]:
    """Flat residual as a plain JAX function, for reference derivatives."""
    indices = disc.dof_indices()
    cells = disc.cell_data()

    def _residual(u: jax.Array, z: jax.Array) -> jax.Array:
        c_fc = evaluate_residual(gather(u, indices), gather(z, indices), cells, coefficient)
        return scatter(c_fc, indices, disc.get_num_dof())

    return _residual
