import math

import pytest

from nutrient_engine.units import LITERS_PER_GALLON, convert_amount, to_liters


def test_to_liters():
    assert to_liters(2) == 2
    assert to_liters(500, "ml") == pytest.approx(0.5)
    assert to_liters(1, "gallons") == pytest.approx(LITERS_PER_GALLON)


@pytest.mark.parametrize("volume", [0, -5, math.inf])
def test_to_liters_invalid(volume):
    with pytest.raises(ValueError):
        to_liters(volume)


def test_unknown_unit():
    with pytest.raises(ValueError):
        to_liters(1, "barrels")


def test_convert_amount():
    assert convert_amount(50) == pytest.approx(5.0)
    assert convert_amount(50, "mg") == pytest.approx(5000.0)
