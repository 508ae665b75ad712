"""Elemental nutrient identifiers used as keys throughout the engine."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "Element",
    "ELEMENTS",
    "NutrientCategory",
    "parse_element",
    "element_category",
]


class Element(str, Enum):
    """Closed set of chemical species tracked in a nutrient solution."""

    NO3 = "N(NO3-)"
    NH4 = "N(NH4+)"
    P = "P"
    K = "K"
    Ca = "Ca"
    Mg = "Mg"
    S = "S"
    Fe = "Fe"
    Mn = "Mn"
    Zn = "Zn"
    B = "B"
    Cu = "Cu"
    Si = "Si"
    Mo = "Mo"
    Na = "Na"
    Cl = "Cl"

    def __str__(self) -> str:
        return self.value


ELEMENTS: tuple[Element, ...] = tuple(Element)

_BY_NAME = {member.name.casefold(): member for member in Element}


class NutrientCategory(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    MICRO = "micro"


_PRIMARY = {Element.NO3, Element.NH4, Element.P, Element.K}
_SECONDARY = {Element.Ca, Element.Mg, Element.S}


def parse_element(value: Element | str) -> Element:
    """Return the :class:`Element` for ``value``.

    Symbols (``"N(NO3-)"``, ``"Fe"``) are matched exactly, member names
    (``"NO3"``, ``"fe"``) case-insensitively. Unknown values raise ``KeyError``.
    """

    if isinstance(value, Element):
        return value
    text = str(value).strip()
    try:
        return Element(text)
    except ValueError:
        pass
    member = _BY_NAME.get(text.casefold())
    if member is None:
        raise KeyError(f"Unknown element '{value}'")
    return member


def element_category(element: Element | str) -> NutrientCategory:
    """Return whether ``element`` is a primary, secondary or micro nutrient."""

    el = parse_element(element)
    if el in _PRIMARY:
        return NutrientCategory.PRIMARY
    if el in _SECONDARY:
        return NutrientCategory.SECONDARY
    return NutrientCategory.MICRO
