"""Hydroponic nutrient solution calculator."""

from __future__ import annotations

from .ec import estimate_solution_ec, get_ec_factors
from .elements import ELEMENTS, Element, NutrientCategory, element_category, parse_element
from .exceptions import (
    NoSubstancesError,
    NoTargetsError,
    NutrientSolverError,
    UnsatisfiableTargetsError,
)
from .nutrient_conversion import convert_guaranteed_analysis, oxide_to_elemental
from .solver import CalculationResult, NutrientSolver, calculate_nutrient_solution
from .strategies import SolveMethod, SystemKind
from .substances import (
    Substance,
    SubstanceCatalog,
    get_substance,
    list_substances,
    make_custom_substance,
)
from .targets import get_target_preset, list_target_presets, normalize_targets
from .units import convert_amount, to_liters

__all__ = [
    "CalculationResult",
    "ELEMENTS",
    "Element",
    "NoSubstancesError",
    "NoTargetsError",
    "NutrientCategory",
    "NutrientSolver",
    "NutrientSolverError",
    "SolveMethod",
    "Substance",
    "SubstanceCatalog",
    "SystemKind",
    "UnsatisfiableTargetsError",
    "calculate_nutrient_solution",
    "convert_amount",
    "convert_guaranteed_analysis",
    "element_category",
    "estimate_solution_ec",
    "get_ec_factors",
    "get_substance",
    "get_target_preset",
    "list_substances",
    "list_target_presets",
    "make_custom_substance",
    "normalize_targets",
    "oxide_to_elemental",
    "parse_element",
    "to_liters",
]
