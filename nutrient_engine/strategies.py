"""Linear system solving strategies for nutrient mixes.

Each strategy takes the coefficient matrix ``A`` (rows are elements, columns
are substances, entries are percentages) and the target vector ``b`` and
returns the per-liter amount of every substance. Strategies signal numerical
failure with :class:`numpy.linalg.LinAlgError`, the chain in
:func:`solve_system` then moves on to the next one. The last strategy, even
distribution, cannot fail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import numpy as np
from scipy.optimize import linprog, minimize, nnls

_LOGGER = logging.getLogger(__name__)

# Normalized determinant (|det| divided by the product of the row norms)
# below which a matrix is treated as singular.
DETERMINANT_EPSILON = 1e-10
# Negative components smaller than this, relative to the largest component,
# are rounding noise rather than a real clamp.
NEGATIVE_TOLERANCE = 1e-12
# Relative residual below which a re-balanced mix counts as meeting the targets.
FIT_TOLERANCE = 1e-9
# Relative residual accepted from the constrained minimum norm solve.
SIDE_LOAD_TOLERANCE = 1e-6
# How far (in cost units, mS/cm for EC costs) the untargeted load may exceed
# its minimum when the mix is spread by minimum norm.
SIDE_LOAD_SLACK = 0.1

__all__ = [
    "DETERMINANT_EPSILON",
    "SIDE_LOAD_SLACK",
    "SystemKind",
    "SolveMethod",
    "Refinement",
    "SolveOutcome",
    "classify_system",
    "check_invertible",
    "solve_exact",
    "solve_right_pseudo_inverse",
    "solve_left_pseudo_inverse",
    "solve_even_distribution",
    "limit_side_load",
    "solve_system",
]


class SystemKind(str, Enum):
    DETERMINED = "determined"
    UNDERDETERMINED = "underdetermined"
    OVERDETERMINED = "overdetermined"


class SolveMethod(str, Enum):
    EXACT = "exact"
    PSEUDO_INVERSE = "pseudo-inverse"
    LEAST_SQUARES = "least-squares"
    EVEN_DISTRIBUTION = "even-distribution"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    SolveMethod.EXACT: "exact solution (LU decomposition)",
    SolveMethod.PSEUDO_INVERSE: "pseudo-inverse (minimum norm) solution",
    SolveMethod.LEAST_SQUARES: "least squares solution",
    SolveMethod.EVEN_DISTRIBUTION: "even distribution approximation",
}


class Refinement(str, Enum):
    """Adjustment applied after the strategy chain produced a solution."""

    DROP_NEGATIVE = "drop-negative"
    NON_NEGATIVE_LEAST_SQUARES = "nnls"
    SIDE_LOAD = "side-load"

    @property
    def label(self) -> str:
        return _REFINEMENT_LABELS[self]


_REFINEMENT_LABELS = {
    Refinement.DROP_NEGATIVE: "re-solved without the clamped substances",
    Refinement.NON_NEGATIVE_LEAST_SQUARES: "re-balanced with non-negative least squares",
    Refinement.SIDE_LOAD: "re-balanced to limit untargeted elements",
}


@dataclass(frozen=True)
class SolveOutcome:
    """Result of running the strategy chain on one system."""

    kind: SystemKind
    method: SolveMethod
    solution: np.ndarray
    messages: tuple[str, ...]
    clamped: tuple[int, ...] = ()
    refinements: tuple[Refinement, ...] = ()

    @property
    def refined(self) -> bool:
        """Whether clamped amounts were re-balanced over the other substances."""
        return any(r is not Refinement.SIDE_LOAD for r in self.refinements)


def classify_system(rows: int, cols: int) -> SystemKind:
    """Return the system kind for ``rows`` constraints and ``cols`` unknowns."""

    if rows == cols:
        return SystemKind.DETERMINED
    if rows < cols:
        return SystemKind.UNDERDETERMINED
    return SystemKind.OVERDETERMINED


def check_invertible(matrix: np.ndarray) -> None:
    """Raise :class:`numpy.linalg.LinAlgError` if ``matrix`` is (near) singular.

    The determinant is compared against Hadamard's bound so the test does not
    depend on the magnitude of the percentages.
    """

    if matrix.shape[0] != matrix.shape[1]:
        raise np.linalg.LinAlgError("Matrix is not square")
    bound = float(np.prod(np.linalg.norm(matrix, axis=1)))
    det = float(np.linalg.det(matrix))
    if bound == 0.0 or not np.isfinite(det) or abs(det) / bound < DETERMINANT_EPSILON:
        raise np.linalg.LinAlgError("Singular matrix")


def _inverse(matrix: np.ndarray) -> np.ndarray:
    check_invertible(matrix)
    inv = np.linalg.inv(matrix)
    if not np.all(np.isfinite(inv)):
        raise np.linalg.LinAlgError("Matrix inverse is not finite")
    return inv


def solve_exact(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve the square system ``A x = b`` by LU decomposition."""

    check_invertible(A)
    return np.linalg.solve(A, b)


def solve_right_pseudo_inverse(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Return the minimum norm solution ``A^T (A A^T)^-1 b``."""

    At = A.T
    return At @ (_inverse(A @ At) @ b)


def solve_left_pseudo_inverse(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Return the least squares solution ``(A^T A)^-1 A^T b``."""

    At = A.T
    return _inverse(At @ A) @ (At @ b)


def solve_even_distribution(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Spread each target over the substances supplying it.

    Every supplier of an element receives ``target / total_percentage`` so
    their combined share meets that element exactly. Shares are summed across
    elements, a substance feeding several elements gets all of them. Shares
    that overflow (vanishing percentages) are skipped, so the result is
    always finite.
    """

    x = np.zeros(A.shape[1])
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        for row, target in zip(A, b):
            total = float(row.sum())
            if total <= 0:
                continue
            share = np.float64(target) / np.float64(total)
            if not np.isfinite(share):
                _LOGGER.debug("Skipping non-finite share %s for target %s", share, target)
                continue
            x[row > 0] += share
        x[~np.isfinite(x)] = 0.0
    return x


Strategy = Callable[[np.ndarray, np.ndarray], np.ndarray]

_CHAINS: dict[SystemKind, tuple[tuple[SolveMethod, Strategy], ...]] = {
    SystemKind.DETERMINED: (
        (SolveMethod.EXACT, solve_exact),
        (SolveMethod.PSEUDO_INVERSE, solve_right_pseudo_inverse),
        (SolveMethod.EVEN_DISTRIBUTION, solve_even_distribution),
    ),
    SystemKind.UNDERDETERMINED: (
        (SolveMethod.PSEUDO_INVERSE, solve_right_pseudo_inverse),
        (SolveMethod.EVEN_DISTRIBUTION, solve_even_distribution),
    ),
    SystemKind.OVERDETERMINED: (
        (SolveMethod.LEAST_SQUARES, solve_left_pseudo_inverse),
        (SolveMethod.EVEN_DISTRIBUTION, solve_even_distribution),
    ),
}


def _residual(A: np.ndarray, b: np.ndarray, x: np.ndarray) -> float:
    return float(np.linalg.norm(A @ x - b))


def _negative_columns(x: np.ndarray) -> np.ndarray:
    scale = max(1.0, float(np.max(np.abs(x)))) if x.size else 1.0
    return np.flatnonzero(x < -NEGATIVE_TOLERANCE * scale)


def _drop_negatives(A: np.ndarray, b: np.ndarray, raw: np.ndarray) -> np.ndarray:
    """Fix the most negative substance at zero and re-solve the rest.

    Repeats until no amount is negative; each re-solve is a minimum norm
    least squares problem, so the mix stays spread over many substances.
    """

    active = np.ones(A.shape[1], dtype=bool)
    x = raw
    for _ in range(A.shape[1]):
        negative = _negative_columns(x)
        if negative.size == 0:
            break
        worst = negative[np.argmin(x[negative])]
        active[worst] = False
        x = np.zeros(A.shape[1])
        if not active.any():
            break
        x[active] = np.linalg.lstsq(A[:, active], b, rcond=None)[0]
    return np.clip(x, 0.0, None)


def _refine_non_negative(
    A: np.ndarray, b: np.ndarray, raw: np.ndarray
) -> tuple[np.ndarray, Refinement] | None:
    """Re-balance a solution whose negative amounts had to be clamped.

    Tries :func:`_drop_negatives` first and, if targets are still missed,
    non-negative least squares. Returns ``None`` when neither fits the
    targets better than plain clamping.
    """

    best_residual = _residual(A, b, np.clip(raw, 0.0, None))
    candidates = [(_drop_negatives(A, b, raw), Refinement.DROP_NEGATIVE)]
    tolerance = FIT_TOLERANCE * max(1.0, float(np.linalg.norm(b)))
    if _residual(A, b, candidates[0][0]) > tolerance:
        try:
            candidates.append((nnls(A, b)[0], Refinement.NON_NEGATIVE_LEAST_SQUARES))
        except RuntimeError as err:
            _LOGGER.debug("Non-negative least squares did not converge: %s", err)

    refined = None
    for candidate, refinement in candidates:
        if not np.all(np.isfinite(candidate)):
            continue
        residual = _residual(A, b, candidate)
        if residual < best_residual:
            best_residual, refined = residual, (candidate, refinement)
    return refined


def limit_side_load(
    A: np.ndarray, b: np.ndarray, x: np.ndarray, cost: np.ndarray
) -> np.ndarray | None:
    """Return an exact mix that adds less of the untargeted elements.

    ``cost`` holds, per substance, what one unit adds in elements without a
    target (the solver passes their EC contribution). A linear program finds
    the smallest achievable load; among the exact non-negative mixes within
    :data:`SIDE_LOAD_SLACK` of it the minimum norm one is returned, so the
    mix stays spread over several substances. Returns ``None`` when ``x``
    is already within that bound or no exact non-negative mix exists.
    """

    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    cost = np.asarray(cost, dtype=float)
    if not np.any(cost > 0):
        return None

    lp = linprog(cost, A_eq=A, b_eq=b, bounds=(0, None), method="highs")
    if lp.status != 0:
        _LOGGER.debug("No exact non-negative mix to limit side load: %s", lp.message)
        return None
    budget = float(lp.fun) + SIDE_LOAD_SLACK
    tolerance = SIDE_LOAD_TOLERANCE * max(1.0, float(np.linalg.norm(b)))
    if _residual(A, b, x) <= tolerance and float(cost @ x) <= budget:
        return None

    start = np.clip(lp.x, 0.0, None)
    qp = minimize(
        lambda y: float(y @ y),
        start,
        jac=lambda y: 2.0 * y,
        method="SLSQP",
        bounds=[(0.0, None)] * A.shape[1],
        constraints=[
            {"type": "eq", "fun": lambda y: A @ y - b, "jac": lambda y: A},
            {"type": "ineq", "fun": lambda y: budget - cost @ y, "jac": lambda y: -cost},
        ],
        options={"maxiter": 500, "ftol": 1e-12},
    )
    spread = np.clip(qp.x, 0.0, None)
    if (
        qp.success
        and np.all(np.isfinite(spread))
        and _residual(A, b, spread) <= tolerance
        and float(cost @ spread) <= budget + tolerance
    ):
        return spread
    _LOGGER.debug("Minimum norm spread failed (%s), keeping the lowest load mix", qp.message)
    return start


def solve_system(
    A: Sequence[Sequence[float]],
    b: Sequence[float],
    side_cost: Sequence[float] | None = None,
) -> SolveOutcome:
    """Solve ``A x = b`` with the strategy chain for its shape.

    Negative amounts are clamped to zero and, where that leaves targets
    unmet, the remaining substances are re-balanced. For under-determined
    systems ``side_cost`` (see :func:`limit_side_load`) steers the free
    choice away from substances carrying untargeted elements. The messages
    record every failed strategy and the method finally used.
    """

    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    rows, cols = A.shape
    kind = classify_system(rows, cols)
    _LOGGER.debug("Solving %s %dx%d system", kind.value, rows, cols)

    messages: list[str] = []
    if kind is SystemKind.OVERDETERMINED:
        messages.append("Using least squares solution for overdetermined system.")

    chain = _CHAINS[kind]
    for position, (method, strategy) in enumerate(chain[:-1]):
        try:
            raw = np.asarray(strategy(A, b), dtype=float)
            if not np.all(np.isfinite(raw)):
                raise np.linalg.LinAlgError("Solution is not finite")
        except np.linalg.LinAlgError as err:
            fallback = chain[position + 1][0]
            _LOGGER.info(
                "%s failed for %s system (%s), falling back to %s",
                method.value,
                kind.value,
                err,
                fallback.value,
            )
            messages.append(
                f"Could not compute the {method.label} ({err}); "
                f"falling back to the {fallback.label}."
            )
            continue
        break
    else:
        # even distribution always yields finite shares
        method, strategy = chain[-1]
        raw = np.asarray(strategy(A, b), dtype=float)

    clamped = tuple(int(i) for i in _negative_columns(raw))
    solution = np.clip(raw, 0.0, None)
    refinements: list[Refinement] = []
    if clamped:
        better = _refine_non_negative(A, b, raw)
        if better is not None:
            solution, refinement = better
            refinements.append(refinement)

    if kind is SystemKind.UNDERDETERMINED and side_cost is not None:
        lighter = limit_side_load(A, b, solution, np.asarray(side_cost, dtype=float))
        if lighter is not None:
            solution = lighter
            refinements.append(Refinement.SIDE_LOAD)

    if method is SolveMethod.EVEN_DISTRIBUTION:
        messages.append(f"Using simplified even distribution for {kind.value} system.")
    final = f"Solved using the {method.label}"
    if refinements:
        final += ", " + ", then ".join(r.label for r in refinements)
    messages.append(final + ".")
    return SolveOutcome(
        kind=kind,
        method=method,
        solution=solution,
        messages=tuple(messages),
        clamped=clamped,
        refinements=tuple(refinements),
    )
