from __future__ import annotations

from dataclasses import dataclass

from .types import Float, Verbosity


@dataclass(frozen=True)
class ConstraintOptions:
    # Re-linearize at the (u, z) passed to every Jacobian operation.
    # When False, the caller must call update() whenever (u, z) changes.
    eager_update: bool = False

    # Row/column scaling of the state Jacobian before factorization
    equilibrate: bool = True

    # Smallest admissible pivot relative to the largest one
    singular_tol: Float = 1e-13

    # Verbosity level
    verbose: Verbosity = Verbosity.SILENT

    def __post_init__(self) -> None:
        """Validate option values after initialization."""
        if not 0.0 <= self.singular_tol < 1.0:
            raise ValueError("singular_tol must lie in [0, 1)")


@dataclass(frozen=True)
class ReducedObjectiveOptions:
    # Newton solve of the state equation
    state_tol: Float = 1e-12
    state_iterations_max: int = 25

    # Verbosity level
    verbose: Verbosity = Verbosity.SILENT

    def __post_init__(self) -> None:
        """Validate option values after initialization."""
        if self.state_tol <= 0:
            raise ValueError("state_tol must be positive")
        if self.state_iterations_max <= 0:
            raise ValueError("state_iterations_max must be positive")


@dataclass(frozen=True)
class AlgorithmOptions:
    # Maximum number of iterations
    iterations_max: int = 100

    # Convergence tolerances
    tol_gradient: Float = 1e-8
    tol_step: Float = 1e-12

    # Verbosity level
    verbose: Verbosity = Verbosity.SILENT

    # Re-raise step failures instead of recording STEP_FAILED
    throw_errors: bool = False

    def __post_init__(self) -> None:
        """Validate option values after initialization."""
        if self.iterations_max <= 0:
            raise ValueError("iterations_max must be positive")
        if self.tol_gradient <= 0:
            raise ValueError("tol_gradient must be positive")
        if self.tol_step < 0:
            raise ValueError("tol_step must be non-negative")
