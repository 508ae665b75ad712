"""Target elemental concentrations and growth stage presets."""

from __future__ import annotations

import math
from typing import Dict, Mapping

from .elements import ELEMENTS, Element, parse_element
from .utils import dataset_cache, list_dataset_entries, load_dataset, normalize_key

PRESET_FILE = "target_presets.yaml"

TargetConcentrations = Dict[Element, float]

_PRESET_ALIASES = {
    "veg": "vegetative",
    "grow": "vegetative",
    "bloom": "flowering",
    "flower": "flowering",
}

__all__ = [
    "TargetConcentrations",
    "normalize_targets",
    "active_targets",
    "clear_targets",
    "list_target_presets",
    "get_target_preset",
]


def normalize_targets(targets: Mapping[Element | str, float]) -> TargetConcentrations:
    """Return ``targets`` keyed by :class:`Element` with all 16 elements present.

    Caller order is preserved, missing elements are appended with ``0.0``.
    Negative or non-finite values raise ``ValueError``.
    """

    result: TargetConcentrations = {}
    for key, value in targets.items():
        element = parse_element(key)
        ppm = float(value or 0.0)
        if not math.isfinite(ppm) or ppm < 0:
            raise ValueError(f"Target for {element} must be a non-negative number")
        result[element] = ppm
    for element in ELEMENTS:
        result.setdefault(element, 0.0)
    return result


def active_targets(targets: Mapping[Element | str, float]) -> tuple[list[Element], list[float]]:
    """Return elements with a positive target and their values, in map order."""

    elements: list[Element] = []
    values: list[float] = []
    for element, ppm in normalize_targets(targets).items():
        if ppm > 0:
            elements.append(element)
            values.append(ppm)
    return elements, values


def clear_targets(targets: Mapping[Element | str, float] | None = None) -> TargetConcentrations:
    """Return a target map with every element set to zero."""

    keys = targets.keys() if targets is not None else ELEMENTS
    return normalize_targets({key: 0.0 for key in keys})


@dataset_cache
def _presets() -> Dict[str, TargetConcentrations]:
    data = load_dataset(PRESET_FILE)
    return {
        normalize_key(name): normalize_targets(values)
        for name, values in data.items()
        if isinstance(values, Mapping)
    }


def list_target_presets() -> list[str]:
    """Return names of the bundled growth stage presets."""
    return list_dataset_entries(_presets())


def get_target_preset(name: str) -> TargetConcentrations:
    """Return a copy of the preset ``name`` (``vegetative``, ``flowering``...)."""

    key = normalize_key(name)
    key = _PRESET_ALIASES.get(key, key)
    preset = _presets().get(key)
    if preset is None:
        raise KeyError(f"Unknown target preset '{name}'")
    return dict(preset)
