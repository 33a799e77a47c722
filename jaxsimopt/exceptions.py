"""Exception hierarchy for the JAX simulation-constrained optimization engine.

Every exception carries an ``ErrorCode`` so callers can branch on the failure
category without parsing messages.
"""

from __future__ import annotations

from typing import NoReturn

from .types import ErrorCode


class SimOptException(Exception):
    """Base exception class for sensitivity engine errors."""

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def __str__(self) -> str:
        return f"SimOpt Error {self.error_code.value}: {self.message}"


class DimensionError(SimOptException):
    """Exception for vector dimension or storage contract violations."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.DIMENSION_MISMATCH) -> None:
        super().__init__(message, error_code)


class SolveError(SimOptException):
    """Exception for numerical failures of the linear and state solves."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.SINGULAR_JACOBIAN) -> None:
        super().__init__(message, error_code)


class InitializationError(SimOptException):
    """Exception for operations on objects that were not set up."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.STEP_NOT_INITIALIZED
    ) -> None:
        super().__init__(message, error_code)


class OptimizationError(SimOptException):
    """Exception for optimization algorithm errors."""

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message, error_code)


_EXCEPTION_TYPES: dict[ErrorCode, type[SimOptException]] = {
    ErrorCode.DIMENSION_MISMATCH: DimensionError,
    ErrorCode.VECTOR_NOT_FLAT: DimensionError,
    ErrorCode.BAD_INDEX: DimensionError,
    ErrorCode.SINGULAR_JACOBIAN: SolveError,
    ErrorCode.NONFINITE_SOLUTION: SolveError,
    ErrorCode.STATE_SOLVE_FAILED: SolveError,
    ErrorCode.STEP_NOT_INITIALIZED: InitializationError,
    ErrorCode.LINE_SEARCH_FAILED: OptimizationError,
    ErrorCode.NOT_DESCENT_DIRECTION: OptimizationError,
}


def _error_code_to_string(error_code: ErrorCode) -> str:
    """Convert error code to a short description."""
    error_messages = {
        ErrorCode.NO_ERROR: "no error",
        ErrorCode.DIMENSION_MISMATCH: "dimension mismatch",
        ErrorCode.VECTOR_NOT_FLAT: "vector does not expose flat storage",
        ErrorCode.BAD_INDEX: "bad index",
        ErrorCode.INVALID_DISCRETIZATION: "invalid discretization",
        ErrorCode.SINGULAR_JACOBIAN: "state Jacobian is singular or ill-conditioned",
        ErrorCode.NONFINITE_SOLUTION: "linear solve produced a non-finite solution",
        ErrorCode.STATE_SOLVE_FAILED: "state equation solve did not converge",
        ErrorCode.STEP_NOT_INITIALIZED: "step not initialized",
        ErrorCode.LINE_SEARCH_FAILED: "line search failed to satisfy the sufficient decrease condition",
        ErrorCode.NOT_DESCENT_DIRECTION: "search direction is not a descent direction",
    }
    return error_messages.get(error_code, "unknown error")


def _simopt_throw(message: str, error_code: ErrorCode) -> NoReturn:
    """Raise the exception type registered for ``error_code``."""
    exception_type = _EXCEPTION_TYPES.get(error_code, SimOptException)
    raise exception_type(message, error_code)
