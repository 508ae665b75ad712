"""Helpers for converting oxide nutrient measurements to elemental values."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping

from .elements import Element, parse_element
from .utils import dataset_cache, load_dataset

DATA_FILE = "nutrient_conversion_factors.json"

__all__ = [
    "get_conversion_factors",
    "oxide_to_elemental",
    "convert_guaranteed_analysis",
]


@dataset_cache
def get_conversion_factors() -> Mapping[str, tuple[Element, float]]:
    """Return read-only mapping of oxide formulas to ``(element, fraction)`` pairs."""

    data = load_dataset(DATA_FILE)
    factors: Dict[str, tuple[Element, float]] = {}
    for oxide, info in data.items():
        if not isinstance(info, Mapping):
            continue
        try:
            factors[str(oxide).upper()] = (
                parse_element(info["element"]),
                float(info["factor"]),
            )
        except (KeyError, TypeError, ValueError):
            continue
    return MappingProxyType(factors)


def oxide_to_elemental(oxide: str, value: float) -> float:
    """Return elemental amount contained in ``value`` of ``oxide``.

    Works for grams as well as percentages, e.g. 52% P2O5 -> 22.672% P.
    """

    if value < 0:
        raise ValueError("value must be non-negative")
    factor = get_conversion_factors().get(str(oxide).strip().upper())
    if factor is None:
        raise KeyError(f"Unknown oxide '{oxide}'")
    return value * factor[1]


def convert_guaranteed_analysis(ga: Mapping[str, float]) -> Dict[Element, float]:
    """Return ``ga`` with oxide entries converted to elemental percentages.

    Keys that already name an element are kept. Entries for the same element
    are summed, so ``{"P": 1, "P2O5": 10}`` yields ``{"P": 5.36}``.
    """

    factors = get_conversion_factors()
    result: Dict[Element, float] = {}
    for key, raw in ga.items():
        if raw is None:
            continue
        value = float(raw)
        oxide = factors.get(str(key).strip().upper())
        if oxide is not None:
            element = oxide[0]
            value = oxide_to_elemental(key, value)
        else:
            element = parse_element(key)
        result[element] = result.get(element, 0.0) + value
    return result
