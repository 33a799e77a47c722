import math

import pytest

from jaxsimopt import BacktrackingLineSearch, LineSearchReturnCode


def _quadratic(scale: float):
    # phi(alpha) = scale * (alpha - 0.1)^2, minimum at alpha = 0.1
    def merit(alpha: float) -> float:
        return scale * (alpha - 0.1) ** 2

    return merit, merit(0.0), -0.2 * scale


def test_full_step_accepted() -> None:
    ls = BacktrackingLineSearch()
    alpha = ls.run(lambda a: 1.0 - a + 0.25 * a**2, 1.0, 1.0, -1.0)
    assert alpha == 1.0
    assert ls.get_status() == LineSearchReturnCode.MINIMUM_FOUND
    assert ls.iterations() == 1
    assert ls.get_final_merit_value() == pytest.approx(0.25)


def test_quadratic_interpolation_finds_minimizer() -> None:
    merit, phi0, dphi0 = _quadratic(1.0)
    ls = BacktrackingLineSearch(beta_min=0.01)
    alpha = ls.run(merit, 1.0, phi0, dphi0)
    # The interpolating quadratic is exact, so the first backtrack lands on the minimizer
    assert alpha == pytest.approx(0.1)
    assert ls.iterations() == 2
    assert ls.get_status() == LineSearchReturnCode.MINIMUM_FOUND


def test_backtrack_is_safeguarded() -> None:
    merit, phi0, dphi0 = _quadratic(1.0)
    ls = BacktrackingLineSearch(beta_min=0.2, beta_max=0.5)
    alpha = ls.run(merit, 1.0, phi0, dphi0)
    assert ls.get_status() == LineSearchReturnCode.MINIMUM_FOUND
    assert alpha < 0.2
    assert merit(alpha) <= phi0 + ls.c1 * alpha * dphi0


def test_nonfinite_merit_backtracks() -> None:
    def merit(alpha: float) -> float:
        return math.inf if alpha > 0.3 else 1.0 - alpha

    ls = BacktrackingLineSearch()
    alpha = ls.run(merit, 1.0, 1.0, -1.0)
    assert ls.get_status() == LineSearchReturnCode.MINIMUM_FOUND
    assert alpha == pytest.approx(0.25)
    assert ls.iterations() == 3


def test_not_descent_direction() -> None:
    ls = BacktrackingLineSearch()
    alpha = ls.run(lambda a: a, 1.0, 0.0, 1.0)
    assert alpha == 0.0
    assert ls.get_status() == LineSearchReturnCode.NOT_DESCENT_DIRECTION
    assert ls.iterations() == 0
    assert ls.status_to_string() == "Not a descent direction"


def test_nonfinite_initial_step() -> None:
    ls = BacktrackingLineSearch()
    assert ls.run(lambda a: -a, math.nan, 0.0, -1.0) == 0.0
    assert ls.get_status() == LineSearchReturnCode.GOT_NONFINITE_STEP_SIZE


def test_max_iterations() -> None:
    ls = BacktrackingLineSearch(max_iters=3)
    alpha = ls.run(lambda a: 1.0 + a, 1.0, 1.0, -1.0)
    assert ls.get_status() == LineSearchReturnCode.MAX_ITERATIONS
    assert ls.iterations() == 3
    assert 0.0 < alpha < 1.0


def test_nonfinite_merit_then_quadratic_backtrack() -> None:
    def merit(alpha: float) -> float:
        return math.inf if alpha > 0.6 else (alpha - 0.1) ** 2

    ls = BacktrackingLineSearch()
    alpha = ls.run(merit, 1.0, 0.01, -0.2)
    # inf at 1.0, no decrease at 0.5, then the quadratic fit through phi(0.5)
    assert ls.get_status() == LineSearchReturnCode.MINIMUM_FOUND
    assert alpha == pytest.approx(0.1)
    assert ls.iterations() == 3
