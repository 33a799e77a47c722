"""Vector abstraction used by every operator of the engine.

Objectives, constraints and steps only talk to vectors through the ``Vector``
interface. Operators that need indexed access to the numbers (gather/scatter
into cell containers) require the ``FlatVector`` capability instead of
inspecting concrete types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from .exceptions import _simopt_throw
from .types import ErrorCode, FlatArray, Float


class Vector(ABC):
    """Abstract vector in a Hilbert space."""

    @abstractmethod
    def clone(self) -> Vector:
        """Return a new zero vector of the same space."""

    @abstractmethod
    def set(self, other: Vector) -> None:
        """Copy the contents of ``other`` into this vector."""

    @abstractmethod
    def axpy(self, alpha: Float, other: Vector) -> None:
        """Accumulate ``alpha * other`` into this vector."""

    @abstractmethod
    def scale(self, alpha: Float) -> None:
        """Scale this vector in place."""

    @abstractmethod
    def dot(self, other: Vector) -> Float:
        """Inner product with ``other``."""

    @abstractmethod
    def dimension(self) -> int:
        """Dimension of the space."""

    @abstractmethod
    def basis(self, i: int) -> Vector:
        """Return the ``i``-th canonical basis vector."""

    def plus(self, other: Vector) -> None:
        """Add ``other`` to this vector."""
        self.axpy(1.0, other)

    def norm(self) -> Float:
        """Norm induced by the inner product."""
        return float(jnp.sqrt(self.dot(self)))

    def zero(self) -> None:
        """Set every entry to zero."""
        self.scale(0.0)


class FlatVector(Vector):
    """Vector capability exposing contiguous one-dimensional storage."""

    @abstractmethod
    def get_array(self) -> FlatArray:
        """Return the underlying flat storage."""

    @abstractmethod
    def set_array(self, values: ArrayLike) -> None:
        """Replace the underlying flat storage."""


class StdVector(FlatVector):
    """Flat vector backed by a one-dimensional JAX array.

    JAX arrays are immutable, so in-place operations rebind the stored array.
    Arrays handed out by ``get_array`` are therefore never modified behind the
    caller's back.
    """

    def __init__(self, values: ArrayLike) -> None:
        data = jnp.asarray(values, dtype=jnp.float64)
        if data.ndim != 1:
            _simopt_throw(
                f"StdVector requires one-dimensional data, got shape {data.shape}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        self._data = data

    @classmethod
    def zeros(cls, n: int) -> StdVector:
        """Create a zero vector of dimension ``n``."""
        return cls(jnp.zeros(n))

    def clone(self) -> StdVector:
        return StdVector(jnp.zeros_like(self._data))

    def set(self, other: Vector) -> None:
        self._data = _as_flat(other, self.dimension()).get_array()

    def axpy(self, alpha: Float, other: Vector) -> None:
        self._data = self._data + alpha * _as_flat(other, self.dimension()).get_array()

    def scale(self, alpha: Float) -> None:
        self._data = alpha * self._data

    def zero(self) -> None:
        self._data = jnp.zeros_like(self._data)

    def dot(self, other: Vector) -> Float:
        return float(jnp.dot(self._data, _as_flat(other, self.dimension()).get_array()))

    def dimension(self) -> int:
        return int(self._data.shape[0])

    def basis(self, i: int) -> StdVector:
        n = self.dimension()
        if not 0 <= i < n:
            _simopt_throw(f"Basis index {i} out of range for dimension {n}", ErrorCode.BAD_INDEX)
        return StdVector(jnp.zeros(n).at[i].set(1.0))

    def get_array(self) -> Array:
        return self._data

    def set_array(self, values: ArrayLike) -> None:
        data = jnp.asarray(values, dtype=jnp.float64)
        if data.shape != self._data.shape:
            _simopt_throw(
                f"Dimension mismatch: Got shape {data.shape}, expected {self._data.shape}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        self._data = data

    def __repr__(self) -> str:
        return f"StdVector({self._data})"


def _as_flat(v: Vector, n: int, name: str = "vector") -> FlatVector:
    """Check that ``v`` exposes flat storage of length ``n``."""
    if not isinstance(v, FlatVector):
        _simopt_throw(
            f"{name} of type {type(v).__name__} does not provide flat storage",
            ErrorCode.VECTOR_NOT_FLAT,
        )
    dim = v.dimension()
    if dim != n:
        _simopt_throw(
            f"Dimension mismatch for {name}: Got {dim}, expected {n}",
            ErrorCode.DIMENSION_MISMATCH,
        )
    return v


def flat_values(v: Vector, n: int, name: str = "vector") -> Array:
    """Return the flat storage of ``v`` after checking its dimension."""
    return _as_flat(v, n, name).get_array()


def write_values(out: Vector, values: ArrayLike, name: str = "output") -> None:
    """Overwrite the flat storage of the output vector ``out``."""
    _as_flat(out, int(jnp.shape(values)[0]), name).set_array(values)
