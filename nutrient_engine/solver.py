"""Nutrient solution solver.

Given fertilizer substances, target elemental concentrations and a solution
volume, :class:`NutrientSolver` computes how much of each substance to
dissolve, the concentrations that amount actually produces and the expected
electrical conductivity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence

import numpy as np

from .ec import EcFactors, estimate_solution_ec, get_ec_factors, parse_ec_factors
from .elements import Element
from .exceptions import NoSubstancesError, NoTargetsError, UnsatisfiableTargetsError
from .strategies import SolveMethod, SystemKind, solve_system
from .substances import Substance
from .targets import normalize_targets

_LOGGER = logging.getLogger(__name__)

__all__ = ["CalculationResult", "NutrientSolver", "calculate_nutrient_solution"]


@dataclass
class CalculationResult:
    """Outcome of a nutrient solution calculation."""

    substances: list[Substance]
    element_concentrations: Dict[Element, float]
    predicted_ec: float
    messages: list[str] = field(default_factory=list)
    method: SolveMethod | None = None
    system: SystemKind | None = None
    removed_elements: list[Element] = field(default_factory=list)

    def amounts(self) -> Dict[str, float]:
        """Return substance id -> computed amount."""
        return {s.id: s.amount or 0.0 for s in self.substances}

    def differences(self, targets: Mapping[Element | str, float]) -> Dict[Element, float]:
        """Return achieved minus target ppm for every target element."""

        return {
            element: self.element_concentrations.get(element, 0.0) - ppm
            for element, ppm in normalize_targets(targets).items()
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "substances": [s.as_dict() for s in self.substances],
            "element_concentrations": {
                el.value: ppm for el, ppm in self.element_concentrations.items()
            },
            "predicted_ec": self.predicted_ec,
            "messages": list(self.messages),
            "method": self.method.value if self.method else None,
            "system": self.system.value if self.system else None,
            "removed_elements": [el.value for el in self.removed_elements],
        }


def _names(items: Sequence[Any]) -> str:
    return ", ".join(str(item) for item in items)


class NutrientSolver:
    """Compute substance amounts that best match target concentrations.

    ``ec_factors`` replaces the bundled ion contribution table, e.g. for a
    regional calibration. The solver keeps no state between calls.
    """

    def __init__(self, ec_factors: EcFactors | Mapping[str, float] | None = None) -> None:
        self._ec_factors = (
            parse_ec_factors(ec_factors) if ec_factors is not None else None
        )

    @property
    def ec_factors(self) -> Dict[Element, float]:
        if self._ec_factors is not None:
            return dict(self._ec_factors)
        return dict(get_ec_factors())

    def solve(
        self,
        substances: Sequence[Substance],
        targets: Mapping[Element | str, float],
        volume_liters: float,
    ) -> CalculationResult:
        """Return amounts, achieved concentrations and EC for the mix.

        Raises :class:`NoTargetsError` when every target is zero,
        :class:`NoSubstancesError` when ``substances`` is empty and
        :class:`UnsatisfiableTargetsError` when no substance supplies any
        target element. Numerical trouble is handled by the fallback chain
        and only reported in ``messages``.
        """

        target_map = normalize_targets(targets)
        elements = [el for el, ppm in target_map.items() if ppm > 0]
        values = [target_map[el] for el in elements]
        if not elements:
            raise NoTargetsError()
        substances = list(substances)
        if not substances:
            raise NoSubstancesError()
        volume = float(volume_liters)
        if not math.isfinite(volume) or volume <= 0:
            raise ValueError("volume_liters must be a positive number")

        A = np.array(
            [[s.percentage(el) for s in substances] for el in elements], dtype=float
        )
        b = np.array(values, dtype=float)
        _LOGGER.debug("Coefficient matrix %s for %s", A.shape, _names(elements))

        messages: list[str] = []
        keep_rows = np.any(A != 0, axis=1)
        removed = [el for el, keep in zip(elements, keep_rows) if not keep]
        if removed:
            _LOGGER.info("No substance supplies %s", _names(removed))
            messages.append(
                f"No substances provide these elements: {_names(removed)}. "
                "Consider adding substances with these elements."
            )
        if not keep_rows.any():
            zero = self._result(substances, np.zeros(len(substances)), target_map, volume, messages)
            zero.removed_elements = removed
            raise UnsatisfiableTargetsError(removed, zero)

        A = A[keep_rows]
        b = b[keep_rows]

        keep_cols = np.any(A != 0, axis=0)
        idle = [s.name for s, keep in zip(substances, keep_cols) if not keep]
        if idle:
            messages.append(
                f"These substances provide none of the target elements and were set to 0: {_names(idle)}."
            )

        solved = [s for s, keep in zip(substances, keep_cols) if keep]
        outcome = solve_system(
            A[:, keep_cols], b, side_cost=self._side_cost(solved, set(elements))
        )
        messages.extend(outcome.messages)

        per_liter = np.zeros(len(substances))
        per_liter[np.flatnonzero(keep_cols)] = outcome.solution
        if outcome.clamped:
            clamped = [solved[i].name for i in outcome.clamped]
            action = "re-balanced the remaining substances" if outcome.refined else "kept the rest"
            messages.insert(
                len(messages) - 1,
                f"Negative amounts were clamped to 0 for: {_names(clamped)}; {action}.",
            )

        result = self._result(substances, per_liter, target_map, volume, messages)
        result.method = outcome.method
        result.system = outcome.kind
        result.removed_elements = removed
        return result

    def _side_cost(
        self, substances: Sequence[Substance], targeted: set[Element]
    ) -> np.ndarray:
        """Return EC added per unit of each substance by untargeted elements."""

        factors = self.ec_factors
        return np.array(
            [
                sum(
                    pct * factors.get(el, 0.0)
                    for el, pct in s.elements.items()
                    if el not in targeted
                )
                for s in substances
            ],
            dtype=float,
        )

    def _result(
        self,
        substances: Sequence[Substance],
        per_liter: np.ndarray,
        targets: Mapping[Element, float],
        volume: float,
        messages: list[str],
    ) -> CalculationResult:
        calculated = [
            s.with_amount(float(x) * volume) for s, x in zip(substances, per_liter)
        ]

        concentrations: Dict[Element, float] = {el: 0.0 for el in targets}
        for substance in calculated:
            for element, pct in substance.elements.items():
                concentrations[element] = (
                    concentrations.get(element, 0.0)
                    + (substance.amount or 0.0) * pct / volume
                )

        ec = estimate_solution_ec(concentrations, self.ec_factors)
        return CalculationResult(
            substances=calculated,
            element_concentrations=concentrations,
            predicted_ec=ec,
            messages=messages,
        )


def calculate_nutrient_solution(
    substances: Sequence[Substance],
    targets: Mapping[Element | str, float],
    volume_liters: float,
    *,
    ec_factors: EcFactors | Mapping[str, float] | None = None,
) -> CalculationResult:
    """Solve a nutrient mix with a fresh :class:`NutrientSolver`."""

    return NutrientSolver(ec_factors).solve(substances, targets, volume_liters)
