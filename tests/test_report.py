import pytest

from nutrient_engine import calculate_nutrient_solution
from nutrient_engine.report import comparison_frame, substance_frame, summarize_result


@pytest.fixture
def result(salts):
    return calculate_nutrient_solution(
        [salts["Calcium Nitrate"], salts["Boric Acid"]], {"Ca": 97, "Fe": 2}, 1
    )


def test_comparison_frame(result):
    frame = comparison_frame(result, {"Ca": 97, "Fe": 2})
    assert list(frame.columns) == ["element", "target_ppm", "actual_ppm", "difference_ppm"]
    rows = frame.set_index("element")
    assert set(rows.index) == {"Ca", "Fe", "N(NO3-)"}
    assert rows.at["Fe", "difference_ppm"] == pytest.approx(-2)
    assert rows.at["N(NO3-)", "actual_ppm"] == pytest.approx(59.5)


def test_substance_frame_skips_unused(result):
    frame = substance_frame(result)
    assert list(frame["name"]) == ["Calcium Nitrate"]
    assert frame.attrs["unit"] == "grams"
    assert frame["amount"].iloc[0] == pytest.approx(0.5)

    mg = substance_frame(result, "milligrams")
    assert mg["amount"].iloc[0] == pytest.approx(500.0)


def test_summarize_result(result):
    summary = summarize_result(result, {"Ca": 97, "Fe": 2})
    assert summary["method"] == "exact"
    assert summary["substances"] == {"Calcium Nitrate": 0.5}
    assert summary["largest_deviation"]["element"] == "N(NO3-)"
    assert summary["predicted_ec"] == round(result.predicted_ec, 3)
    assert any("Fe" in msg for msg in summary["messages"])
