"""JAX-based adjoint sensitivity engine for simulation-constrained optimization.

This package provides block-structured derivative operators for a state ``u``
and a control ``z`` coupled by a discretized residual equation, exact mixed
second derivatives from nested forward-mode automatic differentiation, dense
inverse state-Jacobian solves and a step lifecycle that drives an iterative
optimization with those derivatives.
"""

from __future__ import annotations

import jax

from .algorithm import Algorithm
from .checks import (
    FiniteDifferenceRow,
    check_adjoint_hessian_symmetry,
    check_adjoint_jacobian_consistency,
    check_directional_derivative,
    check_gradient,
    check_hess_vec,
    check_inverse_adjoint_jacobian,
    check_inverse_jacobian,
    check_vector,
)
from .coefficient import Coefficient, ExampleCoefficient
from .constraint import BVPConstraint, EqualityConstraintSimOpt, equilibrated_solve
from .discretization import CellData, Discretization, LineDiscretization

# Exception hierarchy
from .exceptions import (
    DimensionError,
    InitializationError,
    OptimizationError,
    SimOptException,
    SolveError,
)
from .line_search import BacktrackingLineSearch, LineSearchReturnCode
from .objective import Objective, ObjectiveSimOpt, TrackingObjective
from .reduced_objective import ReducedObjective
from .residual import cell_residual, evaluate_residual, gather, scatter

# Configuration classes
from .solver_options import AlgorithmOptions, ConstraintOptions, ReducedObjectiveOptions
from .step import (
    AlgorithmState,
    GradientStep,
    LineSearchStep,
    NewtonCGStep,
    Step,
    StepState,
    TruncatedCG,
)

# Type definitions
from .types import AlgorithmStatus, Block, ErrorCode, Float, Verbosity
from .vector import FlatVector, StdVector, Vector


# Version information
__version__ = "0.1.0"
__license__ = "MIT"

# Public API
__all__ = [
    "Algorithm",
    "AlgorithmOptions",
    "AlgorithmState",
    "AlgorithmStatus",
    "BVPConstraint",
    "BacktrackingLineSearch",
    "Block",
    "CellData",
    "Coefficient",
    "ConstraintOptions",
    "DimensionError",
    "Discretization",
    "EqualityConstraintSimOpt",
    "ErrorCode",
    "ExampleCoefficient",
    "FiniteDifferenceRow",
    "FlatVector",
    "Float",
    "GradientStep",
    "InitializationError",
    "LineDiscretization",
    "LineSearchReturnCode",
    "LineSearchStep",
    "NewtonCGStep",
    "Objective",
    "ObjectiveSimOpt",
    "OptimizationError",
    "ReducedObjective",
    "ReducedObjectiveOptions",
    "SimOptException",
    "SolveError",
    "StdVector",
    "Step",
    "StepState",
    "TrackingObjective",
    "TruncatedCG",
    "Vector",
    "Verbosity",
    "__license__",
    "__version__",
    "cell_residual",
    "check_adjoint_hessian_symmetry",
    "check_adjoint_jacobian_consistency",
    "check_directional_derivative",
    "check_gradient",
    "check_hess_vec",
    "check_inverse_adjoint_jacobian",
    "check_inverse_jacobian",
    "check_vector",
    "equilibrated_solve",
    "evaluate_residual",
    "gather",
    "scatter",
]


def _check_jax_installation() -> None:
    """Check that JAX is properly installed and accessible."""
    try:
        import jax.numpy as jnp

        _ = jnp.array([1.0, 2.0, 3.0])
        _ = jax.jacfwd(lambda x: x**2)(1.0)
    except ImportError as e:
        raise ImportError(
            "JAX is required for jaxsimopt but not found. "
            "Please install JAX with: pip install jax jaxlib"
        ) from e
    except Exception as e:
        raise RuntimeError(
            "JAX installation appears to be broken. "
            "Please reinstall JAX with: pip install --upgrade jax jaxlib"
        ) from e


_check_jax_installation()

# Derivative checks and pivot tolerances assume double precision
jax.config.update("jax_enable_x64", True)
