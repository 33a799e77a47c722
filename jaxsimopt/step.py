"""Step lifecycle for iterative optimization.

A ``Step`` owns the gradient and descent storage (``StepState``) and mutates
the run bookkeeping (``AlgorithmState``). It computes candidate steps and
applies accepted ones; deciding when to stop is left to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import jax.numpy as jnp

from .exceptions import SolveError, _simopt_throw
from .line_search import BacktrackingLineSearch, LineSearchReturnCode
from .objective import Objective
from .types import AlgorithmStatus, ErrorCode, Float
from .vector import Vector


# Step norm reported before the first step is taken
INITIAL_STEP_NORM = 1.0e10


@dataclass
class AlgorithmState:
    """Bookkeeping of one optimization run."""

    iter: int = 0
    nfval: int = 0
    ngrad: int = 0
    value: Float = 0.0
    gnorm: Float = 0.0
    snorm: Float = 0.0
    iterate_vec: Vector | None = None

    # Termination status and wall time (in milliseconds)
    status: AlgorithmStatus = AlgorithmStatus.UNSOLVED
    solve_time: Float = 0.0

    def reset(self) -> None:
        """Reset all counters to initial values."""
        self.iter = 0
        self.nfval = 0
        self.ngrad = 0
        self.value = 0.0
        self.gnorm = 0.0
        self.snorm = 0.0
        self.status = AlgorithmStatus.UNSOLVED
        self.solve_time = 0.0

    def is_converged(self) -> bool:
        return self.status in (AlgorithmStatus.GRADIENT_TOLERANCE, AlgorithmStatus.STEP_TOLERANCE)


@dataclass
class StepState:
    gradient_vec: Vector | None = None
    descent_vec: Vector | None = None


class Step(ABC):
    """Interface to compute and apply optimization steps."""

    def __init__(self) -> None:
        self.state = StepState()

    def get_state(self) -> StepState:
        return self.state

    def initialize(self, x: Vector, obj: Objective, algo_state: AlgorithmState) -> None:
        """Allocate step storage and evaluate the objective at the initial iterate."""
        self.state.descent_vec = x.clone()
        self.state.gradient_vec = x.clone()
        obj.update(x, True, algo_state.iter)
        obj.gradient(self.state.gradient_vec, x)
        algo_state.ngrad = 1
        algo_state.gnorm = self.state.gradient_vec.norm()
        algo_state.snorm = INITIAL_STEP_NORM
        algo_state.value = obj.value(x)
        algo_state.nfval = 1

    @abstractmethod
    def compute(self, s: Vector, x: Vector, obj: Objective, algo_state: AlgorithmState) -> None:
        """Compute a trial step ``s`` at ``x`` without modifying ``x``."""

    @abstractmethod
    def update(self, x: Vector, s: Vector, obj: Objective, algo_state: AlgorithmState) -> None:
        """Apply the accepted step ``s`` to ``x`` and refresh the bookkeeping."""

    @abstractmethod
    def print_name(self) -> str: ...

    def print_header(self) -> str:
        return (
            f"  {'iter':>4s}  {'value':>14s}  {'gnorm':>10s}"
            f"  {'snorm':>10s}  {'#fval':>6s}  {'#grad':>6s}\n"
        )

    def print(self, algo_state: AlgorithmState, print_header: bool = False) -> str:
        out = ""
        if print_header:
            out += self.print_header()
        if algo_state.iter == 0:
            out += (
                f"  {algo_state.iter:4d}  {algo_state.value:14.6e}  {algo_state.gnorm:10.3e}"
                f"  {'':>10s}  {algo_state.nfval:6d}  {algo_state.ngrad:6d}\n"
            )
        else:
            out += (
                f"  {algo_state.iter:4d}  {algo_state.value:14.6e}  {algo_state.gnorm:10.3e}"
                f"  {algo_state.snorm:10.3e}  {algo_state.nfval:6d}  {algo_state.ngrad:6d}\n"
            )
        return out

    def _require_initialized(self) -> tuple[Vector, Vector]:
        if self.state.gradient_vec is None or self.state.descent_vec is None:
            _simopt_throw("Step must be initialized", ErrorCode.STEP_NOT_INITIALIZED)
        return self.state.gradient_vec, self.state.descent_vec


class LineSearchStep(Step):
    """Step along a descent direction scaled by a backtracking line search."""

    def __init__(self, line_search: BacktrackingLineSearch | None = None) -> None:
        super().__init__()
        self.line_search = line_search if line_search is not None else BacktrackingLineSearch()
        self.alpha: Float = 0.0

    @abstractmethod
    def compute_direction(
        self, d: Vector, x: Vector, g: Vector, obj: Objective, algo_state: AlgorithmState
    ) -> None:
        """Fill ``d`` with a descent direction at ``x``."""

    def compute(self, s: Vector, x: Vector, obj: Objective, algo_state: AlgorithmState) -> None:
        g, d = self._require_initialized()
        self.compute_direction(d, x, g, obj, algo_state)

        dphi0 = g.dot(d)
        if dphi0 >= 0.0:
            _simopt_throw(
                f"Search direction is not a descent direction (g.d = {dphi0:.3e})",
                ErrorCode.NOT_DESCENT_DIRECTION,
            )

        trial = x.clone()

        def merit(alpha: Float) -> Float:
            trial.set(x)
            trial.axpy(alpha, d)
            try:
                return obj.value(trial)
            except SolveError:
                # Trial point outside the region where the state solve converges
                return float("inf")

        alpha = self.line_search.run(merit, 1.0, algo_state.value, dphi0)
        algo_state.nfval += self.line_search.iterations()

        if self.line_search.get_status() != LineSearchReturnCode.MINIMUM_FOUND:
            _simopt_throw(
                f"Line search failed: {self.line_search.status_to_string()}",
                ErrorCode.LINE_SEARCH_FAILED,
            )

        self.alpha = alpha
        s.set(d)
        s.scale(alpha)

    def update(self, x: Vector, s: Vector, obj: Objective, algo_state: AlgorithmState) -> None:
        g, _ = self._require_initialized()
        x.plus(s)
        algo_state.iter += 1
        obj.update(x, True, algo_state.iter)

        algo_state.value = obj.value(x)
        algo_state.nfval += 1
        obj.gradient(g, x)
        algo_state.ngrad += 1

        algo_state.gnorm = g.norm()
        algo_state.snorm = s.norm()
        if algo_state.iterate_vec is not None and algo_state.iterate_vec is not x:
            algo_state.iterate_vec.set(x)


class GradientStep(LineSearchStep):
    """Steepest descent."""

    def compute_direction(self, d, x, g, obj, algo_state):
        d.set(g)
        d.scale(-1.0)

    def print_name(self) -> str:
        return "Steepest descent with backtracking line search\n"


@dataclass
class TruncatedCG:
    """Conjugate gradient on ``H d = -g`` stopped at negative curvature."""

    max_iters: int = 50
    rel_tol: Float = 1e-2
    iterations: int = 0
    negative_curvature: bool = False
    history: list[Float] = field(default_factory=list)

    def run(self, d: Vector, g: Vector, x: Vector, obj: Objective) -> None:
        self.iterations = 0
        self.negative_curvature = False
        self.history.clear()

        d.zero()
        r = g.clone()
        r.set(g)
        r.scale(-1.0)
        p = r.clone()
        p.set(r)
        hp = g.clone()

        rr = r.dot(r)
        tol = self.rel_tol * jnp.sqrt(rr)

        for _ in range(self.max_iters):
            obj.hess_vec(hp, p, x)
            self.iterations += 1
            curvature = p.dot(hp)
            if curvature <= 0.0:
                self.negative_curvature = True
                if self.iterations == 1:
                    d.set(r)
                return

            alpha = rr / curvature
            d.axpy(alpha, p)
            r.axpy(-alpha, hp)

            rr_new = r.dot(r)
            self.history.append(float(jnp.sqrt(rr_new)))
            if jnp.sqrt(rr_new) <= tol:
                return

            p.scale(rr_new / rr)
            p.plus(r)
            rr = rr_new


class NewtonCGStep(LineSearchStep):
    """Inexact Newton step from truncated CG on Hessian-vector products."""

    def __init__(
        self,
        line_search: BacktrackingLineSearch | None = None,
        cg: TruncatedCG | None = None,
    ) -> None:
        super().__init__(line_search)
        self.cg = cg if cg is not None else TruncatedCG()

    def compute_direction(self, d, x, g, obj, algo_state):
        self.cg.run(d, g, x, obj)
        if g.dot(d) >= 0.0:
            d.set(g)
            d.scale(-1.0)

    def print_name(self) -> str:
        return "Newton-CG with backtracking line search\n"
