import math

import pytest

from nutrient_engine.elements import Element
from nutrient_engine.targets import (
    active_targets,
    clear_targets,
    get_target_preset,
    list_target_presets,
    normalize_targets,
)


def test_normalize_fills_all_elements():
    targets = normalize_targets({"K": 100, "Ca": 50})
    assert len(targets) == 16
    assert list(targets)[:2] == [Element.K, Element.Ca]
    assert targets[Element.Fe] == 0


def test_normalize_none_is_zero():
    assert normalize_targets({"Fe": None})[Element.Fe] == 0


@pytest.mark.parametrize("value", [-1, math.nan])
def test_normalize_rejects_bad_values(value):
    with pytest.raises(ValueError):
        normalize_targets({"K": value})


def test_active_targets():
    elements, values = active_targets({"Ca": 10, "K": 0, "Mg": 5})
    assert elements == [Element.Ca, Element.Mg]
    assert values == [10, 5]


def test_clear_targets():
    cleared = clear_targets({"K": 100})
    assert len(cleared) == 16
    assert all(v == 0 for v in cleared.values())


def test_presets():
    assert list_target_presets() == ["flowering", "vegetative"]
    veg = get_target_preset("vegetative")
    assert veg[Element.NO3] == 199
    assert veg[Element.Mo] == 0.05
    assert get_target_preset("Bloom")[Element.K] == 300


def test_preset_returns_copy():
    veg = get_target_preset("veg")
    veg[Element.K] = 0
    assert get_target_preset("vegetative")[Element.K] == 207


def test_unknown_preset():
    with pytest.raises(KeyError):
        get_target_preset("fruiting")
