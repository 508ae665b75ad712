import math

import pytest

from nutrient_engine import (
    Element,
    NoSubstancesError,
    NoTargetsError,
    NutrientSolver,
    SolveMethod,
    Substance,
    SystemKind,
    UnsatisfiableTargetsError,
    calculate_nutrient_solution,
    list_substances,
)


def _custom(sid, **elements):
    mapping = {"NO3": "N(NO3-)"}
    return Substance(
        id=sid,
        name=sid,
        elements={mapping.get(k, k): v for k, v in elements.items()},
    )


def test_no_targets(salts):
    with pytest.raises(NoTargetsError):
        calculate_nutrient_solution([salts["Calcium Nitrate"]], {"Ca": 0, "K": 0}, 1)


def test_no_substances():
    with pytest.raises(NoSubstancesError):
        calculate_nutrient_solution([], {"Ca": 100}, 1)


def test_targets_checked_before_substances():
    with pytest.raises(NoTargetsError):
        calculate_nutrient_solution([], {}, 1)


@pytest.mark.parametrize("volume", [0, -1, math.nan])
def test_invalid_volume(salts, volume):
    with pytest.raises(ValueError):
        calculate_nutrient_solution([salts["Calcium Nitrate"]], {"Ca": 100}, volume)


def test_determined_system_reproduces_targets(salts):
    substances = [
        salts["Potassium Nitrate"],
        salts["Calcium Nitrate"],
        salts["Monopotassium Phosphate"],
    ]
    targets = {"N(NO3-)": 160.7, "K": 173.5, "Ca": 194.0}
    result = calculate_nutrient_solution(substances, targets, 10)

    assert result.system is SystemKind.DETERMINED
    assert result.method is SolveMethod.EXACT
    amounts = [s.amount for s in result.substances]
    assert amounts == pytest.approx([30.0, 100.0, 20.0], rel=1e-9)
    for element, ppm in targets.items():
        assert result.element_concentrations[Element(element)] == pytest.approx(ppm, rel=1e-6)
    # phosphorus is not a target but is still reported
    assert result.element_concentrations[Element.P] == pytest.approx(45.6)
    assert "exact" in result.messages[-1]


def test_original_substances_untouched(salts):
    calcium = salts["Calcium Nitrate"]
    result = calculate_nutrient_solution([calcium], {"Ca": 97}, 1)
    assert calcium.amount is None
    assert result.substances[0].amount == pytest.approx(5.0)


def test_zero_row_detection(salts):
    result = calculate_nutrient_solution(
        [salts["Calcium Nitrate"]], {"Ca": 97, "Fe": 2}, 2
    )
    assert result.removed_elements == [Element.Fe]
    assert "Fe" in result.messages[0]
    assert result.element_concentrations[Element.Fe] == 0
    assert result.substances[0].amount == pytest.approx(10.0)
    assert result.element_concentrations[Element.Ca] == pytest.approx(97)
    assert result.element_concentrations[Element.NO3] == pytest.approx(59.5)


def test_unsatisfiable_targets(salts):
    with pytest.raises(UnsatisfiableTargetsError) as info:
        calculate_nutrient_solution([salts["Calcium Nitrate"]], {"Fe": 5}, 1)

    err = info.value
    assert err.elements == (Element.Fe,)
    assert "Fe" in str(err)
    assert err.result is not None
    assert err.result.element_concentrations[Element.Fe] == 0
    assert all(s.amount == 0 for s in err.result.substances)
    assert any("Fe" in msg for msg in err.result.messages)


def test_idle_substance_gets_zero(salts):
    result = calculate_nutrient_solution(
        [salts["Calcium Nitrate"], salts["Boric Acid"]], {"Ca": 97}, 1
    )
    amounts = result.amounts()
    assert amounts["6"] == 0
    assert amounts["8"] == pytest.approx(5.0)
    assert any("Boric Acid" in msg for msg in result.messages)


def test_overdetermined_least_squares(salts):
    result = calculate_nutrient_solution(
        [salts["Calcium Nitrate"]], {"N(NO3-)": 119, "Ca": 100}, 1
    )
    expected = (11.9 * 119 + 19.4 * 100) / (11.9**2 + 19.4**2)
    assert result.system is SystemKind.OVERDETERMINED
    assert result.method is SolveMethod.LEAST_SQUARES
    assert result.substances[0].amount == pytest.approx(expected)
    assert any("least squares" in msg for msg in result.messages)


def test_underdetermined_clamps_and_rebalances():
    substances = [
        _custom("x", NO3=10),
        _custom("y", NO3=10, K=10),
        _custom("z", K=10),
    ]
    result = calculate_nutrient_solution(substances, {"N(NO3-)": 10, "K": 1}, 1)

    assert result.system is SystemKind.UNDERDETERMINED
    assert result.method is SolveMethod.PSEUDO_INVERSE
    assert [s.amount for s in result.substances] == pytest.approx([0.9, 0.1, 0.0], abs=1e-9)
    assert any("clamped" in msg and "z" in msg for msg in result.messages)
    assert result.element_concentrations[Element.K] == pytest.approx(1.0)
    assert "re-solved without the clamped substances" in result.messages[-1]


def test_singular_system_falls_back():
    substances = [_custom("a", NO3=10, K=20), _custom("b", NO3=20, K=40)]
    result = calculate_nutrient_solution(substances, {"N(NO3-)": 30, "K": 60}, 1)

    assert result.method is SolveMethod.EVEN_DISTRIBUTION
    assert sum("falling back" in msg for msg in result.messages) == 2
    assert "even distribution" in result.messages[-1]
    amounts = [s.amount for s in result.substances]
    assert amounts == pytest.approx([2.0, 2.0])
    assert all(math.isfinite(a) and a >= 0 for a in amounts)


def test_idempotent(salts):
    substances = [salts["Calcium Nitrate"], salts["Magnesium Sulfate"], salts["Potassium Nitrate"]]
    targets = {"N(NO3-)": 150, "Ca": 150, "Mg": 40, "K": 120}
    first = calculate_nutrient_solution(substances, targets, 5)
    second = calculate_nutrient_solution(substances, targets, 5)
    assert first.as_dict() == second.as_dict()


def test_ec_increases_with_target(salts):
    substances = [salts["Calcium Nitrate"], salts["Magnesium Sulfate"]]
    low = calculate_nutrient_solution(substances, {"Ca": 100, "Mg": 50}, 1)
    high = calculate_nutrient_solution(substances, {"Ca": 150, "Mg": 50}, 1)
    assert high.predicted_ec > low.predicted_ec


def test_injected_ec_factors(salts):
    solver = NutrientSolver(ec_factors={"Ca": 0.01})
    result = solver.solve([salts["Calcium Nitrate"]], {"Ca": 97}, 1)
    assert result.predicted_ec == pytest.approx(0.97)
    assert solver.ec_factors == {Element.Ca: 0.01}


def test_reference_scenario():
    targets = {
        "N(NO3-)": 199,
        "P": 62,
        "K": 207,
        "Ca": 242,
        "Mg": 60,
        "S": 132,
    }
    result = calculate_nutrient_solution(list_substances(), targets, 1)

    assert result.system is SystemKind.UNDERDETERMINED
    assert all(s.amount >= 0 for s in result.substances)
    for element, ppm in targets.items():
        assert abs(result.element_concentrations[Element(element)] - ppm) < 2
    assert not any("No substances provide" in msg for msg in result.messages)
    assert 1.5 <= result.predicted_ec <= 2.5
    amounts = result.amounts()
    # Calcium Nitrate, Monopotassium Phosphate, Magnesium Sulfate
    assert amounts["8"] > 0
    assert amounts["14"] > 0
    assert amounts["12"] > 0
    assert "limit untargeted elements" in result.messages[-1]


def test_result_as_dict(salts):
    result = calculate_nutrient_solution([salts["Calcium Nitrate"]], {"Ca": 97}, 1)
    data = result.as_dict()
    assert data["method"] == "exact"
    assert data["system"] == "determined"
    assert data["substances"][0]["amount"] == pytest.approx(5.0)
    assert data["element_concentrations"]["Ca"] == pytest.approx(97)
    assert len(data["element_concentrations"]) == 16


def test_differences(salts):
    result = calculate_nutrient_solution([salts["Calcium Nitrate"]], {"Ca": 97, "Fe": 2}, 1)
    diff = result.differences({"Ca": 97, "Fe": 2})
    assert diff[Element.Fe] == pytest.approx(-2)
    assert diff[Element.Ca] == pytest.approx(0, abs=1e-9)


def test_vanishing_percentage_falls_back_to_zero():
    trace = Substance(id="trace", name="Trace", elements={"Fe": 1e-310})
    result = calculate_nutrient_solution([trace], {"Fe": 5}, 1)

    assert result.method is SolveMethod.EVEN_DISTRIBUTION
    assert result.substances[0].amount == 0
    assert result.element_concentrations[Element.Fe] == 0
    assert math.isfinite(result.predicted_ec)
