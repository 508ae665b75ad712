#!/usr/bin/env python3
"""Calculate fertilizer amounts for a hydroponic nutrient solution."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
from scripts import ensure_repo_root_on_path

ROOT = ensure_repo_root_on_path()

from nutrient_engine import (
    NutrientSolverError,
    SubstanceCatalog,
    calculate_nutrient_solution,
    get_target_preset,
    to_liters,
)
from nutrient_engine.report import summarize_result
from nutrient_engine.units import MASS_UNITS, VOLUME_UNITS
from nutrient_engine.utils import load_data


def _load_targets(args: argparse.Namespace) -> dict:
    targets = get_target_preset(args.preset) if args.preset else {}
    if args.targets:
        targets.update(load_data(args.targets))
    for item in args.set or []:
        element, _, value = item.partition("=")
        targets[element] = float(value)
    return targets


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute substance masses that meet target ppm values"
    )
    parser.add_argument(
        "--preset",
        help="Growth stage preset to start from (vegetative, flowering)",
    )
    parser.add_argument(
        "--targets",
        type=Path,
        help="JSON or YAML file mapping elements to ppm",
    )
    parser.add_argument(
        "--set",
        action="append",
        metavar="ELEMENT=PPM",
        help="Override a single target, may be repeated",
    )
    parser.add_argument(
        "--substance",
        action="append",
        dest="substances",
        metavar="ID_OR_NAME",
        help="Substance to use, may be repeated (default: whole catalog)",
    )
    parser.add_argument("--volume", type=float, default=1.0, help="Solution volume")
    parser.add_argument(
        "--volume-unit", choices=sorted(VOLUME_UNITS), default="liters"
    )
    parser.add_argument("--mass-unit", choices=sorted(MASS_UNITS), default="grams")
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path to write the result JSON",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    catalog = SubstanceCatalog()
    try:
        substances = (
            catalog.select(args.substances) if args.substances else catalog.list()
        )
        targets = _load_targets(args)
        volume = to_liters(args.volume, args.volume_unit)
        result = calculate_nutrient_solution(substances, targets, volume)
    except (NutrientSolverError, KeyError, ValueError) as err:
        print(f"error: {err}", file=sys.stderr)
        return 2

    data = {
        "summary": summarize_result(result, targets, unit=args.mass_unit),
        "result": result.as_dict(),
    }
    text = json.dumps(data, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text)
    else:
        print(text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
