"""Tabular views of a :class:`~nutrient_engine.solver.CalculationResult`."""

from __future__ import annotations

from typing import Any, Dict, Mapping

import pandas as pd

from .elements import Element
from .solver import CalculationResult
from .targets import normalize_targets
from .units import convert_amount

# amounts at or below this are left out of the substance table
MIN_DISPLAY_AMOUNT = 0.001

__all__ = ["comparison_frame", "substance_frame", "summarize_result"]


def comparison_frame(
    result: CalculationResult, targets: Mapping[Element | str, float]
) -> pd.DataFrame:
    """Return target vs achieved ppm for every element with a target or a value."""

    target_map = normalize_targets(targets)
    rows = []
    for element, target in target_map.items():
        actual = result.element_concentrations.get(element, 0.0)
        if target == 0 and actual == 0:
            continue
        rows.append(
            {
                "element": element.value,
                "target_ppm": target,
                "actual_ppm": actual,
                "difference_ppm": actual - target,
            }
        )
    return pd.DataFrame(
        rows, columns=["element", "target_ppm", "actual_ppm", "difference_ppm"]
    )


def substance_frame(result: CalculationResult, unit: str = "grams") -> pd.DataFrame:
    """Return the substances to weigh out with their mass in ``unit``."""

    rows = [
        {
            "id": s.id,
            "name": s.name,
            "formula": s.formula,
            "amount": convert_amount(s.amount or 0.0, unit),
        }
        for s in result.substances
        if (s.amount or 0.0) > MIN_DISPLAY_AMOUNT
    ]
    frame = pd.DataFrame(rows, columns=["id", "name", "formula", "amount"])
    frame.attrs["unit"] = unit
    return frame


def summarize_result(
    result: CalculationResult,
    targets: Mapping[Element | str, float],
    *,
    unit: str = "grams",
) -> Dict[str, Any]:
    """Return a JSON friendly summary with masses, deviations and EC."""

    comparison = comparison_frame(result, targets)
    worst = None
    if not comparison.empty:
        idx = comparison["difference_ppm"].abs().idxmax()
        worst = {
            "element": comparison.at[idx, "element"],
            "difference_ppm": round(float(comparison.at[idx, "difference_ppm"]), 3),
        }
    return {
        "method": result.method.value if result.method else None,
        "predicted_ec": round(result.predicted_ec, 3),
        "unit": unit,
        "substances": {
            row.name: round(float(row.amount), 3)
            for row in substance_frame(result, unit).itertuples(index=False)
        },
        "largest_deviation": worst,
        "messages": list(result.messages),
    }
