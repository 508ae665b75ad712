"""Volume and mass unit helpers.

The solver works in liters and reports substance amounts in units where
``amount * percent / liters`` equals ppm (mg/L). One such unit is 100 mg,
i.e. a decigram.
"""

from __future__ import annotations

import math

from .utils import normalize_key

LITERS_PER_GALLON = 3.78541

VOLUME_UNITS = {
    "liters": 1.0,
    "milliliters": 0.001,
    "gallons": LITERS_PER_GALLON,
}

_VOLUME_ALIASES = {
    "l": "liters",
    "liter": "liters",
    "litres": "liters",
    "ml": "milliliters",
    "milliliter": "milliliters",
    "gal": "gallons",
    "gallon": "gallons",
}

# grams (or milligrams) represented by one solver amount unit
MASS_UNITS = {
    "grams": 0.1,
    "milligrams": 100.0,
}

_MASS_ALIASES = {"g": "grams", "gram": "grams", "mg": "milligrams", "milligram": "milligrams"}

__all__ = [
    "LITERS_PER_GALLON",
    "VOLUME_UNITS",
    "MASS_UNITS",
    "to_liters",
    "convert_amount",
]


def _unit(name: str, table: dict[str, float], aliases: dict[str, str]) -> float:
    key = normalize_key(name)
    key = aliases.get(key, key)
    if key not in table:
        raise ValueError(f"Unknown unit '{name}'")
    return table[key]


def to_liters(volume: float, unit: str = "liters") -> float:
    """Return ``volume`` expressed in liters."""

    volume = float(volume)
    if not math.isfinite(volume) or volume <= 0:
        raise ValueError("volume must be a positive number")
    return volume * _unit(unit, VOLUME_UNITS, _VOLUME_ALIASES)


def convert_amount(amount: float, unit: str = "grams") -> float:
    """Return a solver ``amount`` in ``grams`` or ``milligrams``."""

    return float(amount) * _unit(unit, MASS_UNITS, _MASS_ALIASES)
