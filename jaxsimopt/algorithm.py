"""Optimization driver around the step lifecycle.

The driver owns the terminal conditions: after each ``compute`` it checks the
step norm, after each ``update`` the gradient norm and the iteration budget.
"""

from __future__ import annotations

import time

from .exceptions import SimOptException, _error_code_to_string
from .objective import Objective
from .solver_options import AlgorithmOptions
from .step import AlgorithmState, Step
from .types import AlgorithmStatus, Verbosity
from .vector import Vector


class Algorithm:
    """Run a ``Step`` until a terminal condition is met."""

    def __init__(self, step: Step, options: AlgorithmOptions | None = None) -> None:
        self.step = step
        self.opts = options if options is not None else AlgorithmOptions()
        self.state = AlgorithmState()
        self.output: list[str] = []

    def _report(self, line: str) -> None:
        self.output.append(line)
        if self.opts.verbose != Verbosity.SILENT:
            print(line, end="")

    def _check_gradient(self) -> bool:
        if self.state.gnorm < self.opts.tol_gradient:
            self.state.status = AlgorithmStatus.GRADIENT_TOLERANCE
            return True
        if self.state.iter >= self.opts.iterations_max:
            self.state.status = AlgorithmStatus.MAX_ITERATIONS
            return True
        return False

    def run(self, x: Vector, obj: Objective) -> AlgorithmState:
        """Minimize ``obj`` starting from ``x``; ``x`` holds the final iterate."""
        self.state.reset()
        self.state.iterate_vec = x
        self.output.clear()

        start_time = time.time()

        self.step.initialize(x, obj, self.state)
        self._report(self.step.print_name())
        self._report(self.step.print(self.state, print_header=True))

        s = x.clone()
        while not self._check_gradient():
            try:
                self.step.compute(s, x, obj, self.state)
            except SimOptException as e:
                if self.opts.throw_errors:
                    raise
                self._report(f"  Step failed ({_error_code_to_string(e.error_code)}): {e}\n")
                self.state.status = AlgorithmStatus.STEP_FAILED
                break

            if s.norm() < self.opts.tol_step:
                self.state.snorm = s.norm()
                self.state.status = AlgorithmStatus.STEP_TOLERANCE
                break

            self.step.update(x, s, obj, self.state)
            self._report(self.step.print(self.state))

        self.state.solve_time = (time.time() - start_time) * 1000  # Convert to milliseconds

        if self.opts.verbose != Verbosity.SILENT:
            print(f"Optimization terminated: {self.state.status.value}")

        return self.state
