"""Electrical conductivity estimates for nutrient solutions."""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Dict, Mapping

from .elements import Element, parse_element
from .utils import dataset_cache, load_dataset

_LOGGER = logging.getLogger(__name__)

EC_FACTOR_DATA = "ion_ec_factors.json"

EcFactors = Mapping[Element, float]

__all__ = ["EcFactors", "get_ec_factors", "parse_ec_factors", "estimate_solution_ec"]


def parse_ec_factors(data: Mapping[Element | str, float]) -> Dict[Element, float]:
    """Return ``data`` keyed by :class:`Element`, rejecting negative factors."""

    factors: Dict[Element, float] = {}
    for key, value in data.items():
        factor = float(value)
        if not math.isfinite(factor) or factor < 0:
            raise ValueError(f"EC factor for {key} must be a non-negative number")
        factors[parse_element(key)] = factor
    return factors


@dataset_cache
def get_ec_factors() -> EcFactors:
    """Return the read-only EC contribution table (mS/cm per ppm).

    Each factor is 0.7 times the limiting equivalent conductance of the ion
    the element is dosed as, divided by its equivalent weight.
    """

    data = load_dataset(EC_FACTOR_DATA)
    if not isinstance(data, Mapping):
        _LOGGER.warning("EC factor dataset %s is not a mapping", EC_FACTOR_DATA)
        return MappingProxyType({})
    return MappingProxyType(parse_ec_factors(data))


def estimate_solution_ec(
    concentrations: Mapping[Element | str, float],
    factors: Mapping[Element | str, float] | None = None,
) -> float:
    """Return estimated EC (mS/cm) for elemental ``concentrations`` in ppm.

    This is an additive ionic model, elements without a factor contribute 0.
    """

    table = parse_ec_factors(factors) if factors is not None else get_ec_factors()
    total = 0.0
    for element, ppm in concentrations.items():
        total += float(ppm) * table.get(parse_element(element), 0.0)
    return total
