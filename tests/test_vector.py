import jax.numpy as jnp
import numpy as np
import pytest

from jaxsimopt import DimensionError, ErrorCode, StdVector, Vector, check_vector


class _OpaqueVector(Vector):
    """Vector without flat storage."""

    def clone(self) -> "_OpaqueVector":
        return _OpaqueVector()

    def set(self, other: Vector) -> None:
        pass

    def axpy(self, alpha: float, other: Vector) -> None:
        pass

    def scale(self, alpha: float) -> None:
        pass

    def dot(self, other: Vector) -> float:
        return 0.0

    def dimension(self) -> int:
        return 3

    def basis(self, i: int) -> Vector:
        return _OpaqueVector()


def test_std_vector_operations() -> None:
    x = StdVector([1.0, 2.0, 3.0])
    y = StdVector([0.5, -1.0, 2.0])

    x.axpy(2.0, y)
    assert np.allclose(x.get_array(), [2.0, 0.0, 7.0])

    x.scale(0.5)
    assert np.allclose(x.get_array(), [1.0, 0.0, 3.5])

    x.plus(y)
    assert np.allclose(x.get_array(), [1.5, -1.0, 5.5])

    assert x.dot(y) == pytest.approx(0.75 + 1.0 + 11.0)
    assert y.norm() == pytest.approx(np.sqrt(0.25 + 1.0 + 4.0))

    x.zero()
    assert np.all(x.get_array() == 0.0)


def test_std_vector_clone_is_zero() -> None:
    x = StdVector([1.0, 2.0, 3.0])
    y = x.clone()
    assert y.dimension() == 3
    assert y.norm() == 0.0
    assert np.allclose(x.get_array(), [1.0, 2.0, 3.0])


def test_std_vector_set_copies() -> None:
    x = StdVector([1.0, 2.0])
    y = x.clone()
    y.set(x)
    x.scale(3.0)
    assert np.allclose(y.get_array(), [1.0, 2.0])


def test_std_vector_get_array_is_not_modified() -> None:
    x = StdVector([1.0, 2.0])
    data = x.get_array()
    x.scale(2.0)
    assert np.allclose(data, [1.0, 2.0])


def test_std_vector_basis() -> None:
    x = StdVector.zeros(4)
    e2 = x.basis(2)
    assert np.allclose(e2.get_array(), [0.0, 0.0, 1.0, 0.0])
    with pytest.raises(DimensionError) as excinfo:
        x.basis(4)
    assert excinfo.value.error_code == ErrorCode.BAD_INDEX


def test_std_vector_double_precision() -> None:
    x = StdVector([1, 2, 3])
    assert x.get_array().dtype == jnp.float64


def test_std_vector_dimension_mismatch() -> None:
    x = StdVector([1.0, 2.0, 3.0])
    y = StdVector([1.0, 2.0])
    with pytest.raises(DimensionError, match="Dimension mismatch"):
        x.axpy(1.0, y)
    with pytest.raises(DimensionError, match="Dimension mismatch"):
        x.set_array(jnp.zeros(4))


def test_std_vector_rejects_matrix_data() -> None:
    with pytest.raises(DimensionError):
        StdVector(jnp.zeros((2, 2)))


def test_std_vector_rejects_opaque_vector() -> None:
    x = StdVector([1.0, 2.0, 3.0])
    with pytest.raises(DimensionError) as excinfo:
        x.set(_OpaqueVector())
    assert excinfo.value.error_code == ErrorCode.VECTOR_NOT_FLAT
    assert "VectorNotFlat" in str(excinfo.value)


def test_check_vector() -> None:
    x = StdVector([1.0, -2.0, 3.0, 0.5])
    y = StdVector([0.3, 0.1, -0.7, 2.0])
    z = StdVector([-1.0, 4.0, 0.25, 0.0])
    errors = check_vector(x, y, z)
    assert errors.shape == (10,)
    assert np.all(errors < 1e-12)
