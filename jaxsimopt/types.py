"""Core type definitions for the JAX simulation-constrained optimization engine.

This module provides the JAX-compatible type aliases and enums shared by the
residual evaluator, the objective and constraint operators and the step
lifecycle.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TypeAlias

from jax import Array


# Core JAX array types
FieldContainer: TypeAlias = Array  # (cell, field) or (cell, field, point, ...) data
CubatureValues: TypeAlias = Array  # values at the cubature points of one cell
JacobianMatrix: TypeAlias = Array  # dense num_dof x num_dof block
FlatArray: TypeAlias = Array  # underlying storage of a flat vector

# Scalar types
Float: TypeAlias = float

# Merit value along a search ray as a function of the step length
MeritFunction: TypeAlias = Callable[[Float], Float]


class Block(Enum):
    """Variable group with respect to which derivatives are tracked."""

    STATE = "State"
    CONTROL = "Control"


class Verbosity(Enum):
    """Verbosity levels for progress output."""

    SILENT = "Silent"
    OUTER = "Outer"
    INNER = "Inner"
    LINE_SEARCH = "LineSearch"


class AlgorithmStatus(Enum):
    """Termination status of an optimization run."""

    UNSOLVED = "Unsolved"
    GRADIENT_TOLERANCE = "GradientTolerance"
    STEP_TOLERANCE = "StepTolerance"
    MAX_ITERATIONS = "MaxIterations"
    STEP_FAILED = "StepFailed"


class ErrorCode(Enum):
    """Error codes carried by every package exception."""

    NO_ERROR = "NoError"
    DIMENSION_MISMATCH = "DimensionMismatch"
    VECTOR_NOT_FLAT = "VectorNotFlat"
    BAD_INDEX = "BadIndex"
    INVALID_DISCRETIZATION = "InvalidDiscretization"
    SINGULAR_JACOBIAN = "SingularJacobian"
    NONFINITE_SOLUTION = "NonfiniteSolution"
    STATE_SOLVE_FAILED = "StateSolveFailed"
    STEP_NOT_INITIALIZED = "StepNotInitialized"
    LINE_SEARCH_FAILED = "LineSearchFailed"
    NOT_DESCENT_DIRECTION = "NotDescentDirection"
