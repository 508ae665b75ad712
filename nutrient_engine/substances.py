"""Fertilizer salts and their elemental composition.

The standard catalog ships with the 24 salts most commonly used in
hydroponic recipes. Users may register their own products, optionally given as
a guaranteed analysis with oxide figures (P2O5, K2O, ...), which are converted
to elemental percentages.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping

import voluptuous as vol

from .elements import Element, parse_element
from .nutrient_conversion import convert_guaranteed_analysis
from .utils import dataset_cache, load_dataset, normalize_key

_LOGGER = logging.getLogger(__name__)

DATA_FILE = "nutrient_substances.json"

__all__ = [
    "Substance",
    "SubstanceCatalog",
    "SUBSTANCE_SCHEMA",
    "list_substances",
    "get_substance",
    "make_custom_substance",
]


def _element_key(value: Any) -> Element:
    try:
        return parse_element(value)
    except KeyError as err:
        raise vol.Invalid(str(err.args[0])) from err


SUBSTANCE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): vol.All(vol.Coerce(str), vol.Length(min=1)),
        vol.Required("name"): vol.All(str, vol.Length(min=1)),
        vol.Optional("formula", default=None): vol.Any(None, str),
        vol.Required("elements"): vol.Schema(
            {_element_key: vol.All(vol.Coerce(float), vol.Range(min=0, max=100))}
        ),
        vol.Optional("amount", default=None): vol.Any(None, vol.Coerce(float)),
        vol.Optional("custom", default=False): bool,
        vol.Optional("user_id", default=None): vol.Any(None, vol.Coerce(str)),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class Substance:
    """A fertilizer salt with its elemental content in percent by weight."""

    id: str
    name: str
    elements: Mapping[Element, float] = field(default_factory=dict)
    formula: str | None = None
    amount: float | None = None
    custom: bool = False
    user_id: str | None = None

    def __post_init__(self) -> None:
        parsed: Dict[Element, float] = {}
        for key, value in self.elements.items():
            pct = float(value)
            if not math.isfinite(pct) or pct < 0 or pct > 100:
                raise ValueError(
                    f"Percentage for {key} in {self.name} must be within 0-100"
                )
            parsed[parse_element(key)] = pct
        object.__setattr__(self, "elements", MappingProxyType(parsed))

    def percentage(self, element: Element | str) -> float:
        """Return the content of ``element`` or ``0.0`` if absent."""
        return self.elements.get(parse_element(element), 0.0)

    def with_amount(self, amount: float) -> "Substance":
        return replace(self, amount=amount)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Substance":
        """Return a substance built from a raw record after validation."""

        try:
            clean = SUBSTANCE_SCHEMA(dict(data))
        except vol.Invalid as err:
            raise ValueError(f"Invalid substance {data.get('id')!r}: {err}") from err
        return cls(**clean)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "formula": self.formula,
            "elements": {el.value: pct for el, pct in self.elements.items()},
            "amount": self.amount,
            "custom": self.custom,
            "user_id": self.user_id,
        }


@dataset_cache
def _standard_substances() -> tuple[Substance, ...]:
    data = load_dataset(DATA_FILE)
    if not isinstance(data, list):
        _LOGGER.warning("Substance dataset %s is not a list", DATA_FILE)
        return ()
    return tuple(Substance.from_dict(row) for row in data)


def list_substances() -> list[Substance]:
    """Return the standard reference substances in catalog order."""
    return list(_standard_substances())


def _lookup(substances: Iterable[Substance], key: str) -> Substance:
    wanted = normalize_key(key)
    for substance in substances:
        if substance.id == key or normalize_key(substance.name) == wanted:
            return substance
    raise KeyError(f"Unknown substance '{key}'")


def get_substance(key: str) -> Substance:
    """Return a standard substance by id or case-insensitive name."""
    return _lookup(_standard_substances(), key)


def make_custom_substance(
    name: str,
    elements: Mapping[str, float] | None = None,
    *,
    oxides: Mapping[str, float] | None = None,
    formula: str | None = None,
    user_id: str | None = None,
    substance_id: str | None = None,
) -> Substance:
    """Return a user defined substance.

    ``oxides`` holds guaranteed analysis values such as ``{"P2O5": 52}`` which
    are converted to elemental percentages and added to ``elements``.
    """

    composition: Dict[Element, float] = {}
    for source in (elements or {}, oxides or {}):
        for element, pct in convert_guaranteed_analysis(source).items():
            composition[element] = composition.get(element, 0.0) + pct
    return Substance(
        id=substance_id or f"custom-{uuid.uuid4().hex[:12]}",
        name=name,
        formula=formula,
        elements=composition,
        custom=True,
        user_id=user_id,
    )


class SubstanceCatalog:
    """Standard substances plus user scoped custom additions."""

    def __init__(self, standard: Iterable[Substance] | None = None) -> None:
        self._standard = tuple(standard) if standard is not None else _standard_substances()
        self._custom: Dict[str, Substance] = {}

    def add(self, substance: Substance) -> Substance:
        ids = {s.id for s in self._standard} | set(self._custom)
        if substance.id in ids:
            raise ValueError(f"Substance id '{substance.id}' already exists")
        if not substance.custom:
            substance = replace(substance, custom=True)
        self._custom[substance.id] = substance
        return substance

    def remove(self, substance_id: str) -> None:
        if substance_id not in self._custom:
            raise KeyError(f"Unknown custom substance '{substance_id}'")
        del self._custom[substance_id]

    def list(self, user_id: str | None = None) -> list[Substance]:
        """Return standard substances followed by the custom ones visible to ``user_id``."""

        custom = [
            s for s in self._custom.values() if s.user_id is None or s.user_id == user_id
        ]
        return [*self._standard, *custom]

    def get(self, key: str, user_id: str | None = None) -> Substance:
        return _lookup(self.list(user_id), key)

    def select(self, keys: Iterable[str], user_id: str | None = None) -> list[Substance]:
        """Return substances for ``keys`` keeping order and dropping duplicates."""

        selected: list[Substance] = []
        seen: set[str] = set()
        for key in keys:
            substance = self.get(key, user_id)
            if substance.id not in seen:
                seen.add(substance.id)
                selected.append(substance)
        return selected
