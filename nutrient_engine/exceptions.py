"""Errors raised when a nutrient solution cannot be calculated."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .elements import Element
    from .solver import CalculationResult


class NutrientSolverError(ValueError):
    """Base class for input problems reported back to the user."""


class NoTargetsError(NutrientSolverError):
    """Every target concentration is zero."""

    def __init__(self, message: str = "No target concentrations specified") -> None:
        super().__init__(message)


class NoSubstancesError(NutrientSolverError):
    """No substances were selected."""

    def __init__(self, message: str = "No substances selected") -> None:
        super().__init__(message)


class UnsatisfiableTargetsError(NutrientSolverError):
    """None of the selected substances supply any of the target elements.

    ``result`` holds the zero-mass outcome so callers can still display the
    achieved concentrations and messages.
    """

    def __init__(
        self,
        elements: Sequence["Element"],
        result: "CalculationResult | None" = None,
    ) -> None:
        self.elements = tuple(elements)
        self.result = result
        names = ", ".join(str(el) for el in self.elements)
        super().__init__(
            "All target elements have no corresponding substances "
            f"({names}). Select substances that provide your target elements."
        )
