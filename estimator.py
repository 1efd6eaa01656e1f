"""
Material estimators.

Two independent modes are kept side by side because their constants do not
agree and cannot be reconciled without site data:

* whole-building: per-square-foot consumption tables applied from the
  foundation up to the selected stage;
* per-structure: wall, slab and floor calculators driven by dimensions.

Every function returns ``None`` for unusable input instead of raising.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

# --- consumption per sq. ft ---
FOUNDATION_RATES = {"cement": 0.40, "steel": 2.5, "sand": 1.6, "aggregate": 2.2, "bricks": 0}
FLOOR_RATES = {"cement": 0.45, "steel": 3.5, "sand": 1.9, "aggregate": 1.35, "bricks": 14}

STAGE_FLOORS = {
    "foundation": 0,
    "ground": 1,
    "first": 2,
    "second": 3,
    "third": 4,
    "terrace": 4,
}

STAGE_LABELS = {
    "foundation": "Foundation Only",
    "ground": "Upto Ground Flr",
    "first": "Upto 1st Floor",
    "second": "Upto 2nd Floor",
    "third": "Upto 3rd Floor",
    "terrace": "Upto Terrace (G+3)",
}

# --- per-structure constants ---
WALL_THICKNESS_FT = {9: 0.75, 4: 0.33}
BRICKS_PER_CUFT = 13.5
MORTAR_DRY_FACTOR = 0.30
MORTAR_RATIO = (1, 6)  # cement : sand
CEMENT_BAG_CUFT = 1.226

SLAB_MIN_IN = 4
SLAB_MAX_IN = 10
CONCRETE_DRY_FACTOR = 1.54
CONCRETE_RATIO = (1, 1.5, 3)  # cement : sand : aggregate
CUFT_PER_M3 = 35.3147
STEEL_FRACTION = 0.01
STEEL_DENSITY_KG_M3 = 7850

TILE_AREA_SQFT = 4  # 2 x 2 ft
FLOOR_WASTAGE = 1.10
BEDDING_SQFT_PER_BAG = 100
WHITE_CEMENT_SQFT_PER_KG = 500


class MaterialRow(BaseModel):
    label: str
    value: str
    unit: str


class Estimate(BaseModel):
    mode: str
    quantities: Dict[str, float]
    rows: List[MaterialRow]
    note: Optional[str] = None


def _positive(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return None
    return number


def _ceil(x: float) -> int:
    # 1000 * 1.35 is not exactly 1350 in binary floating point
    return math.ceil(round(x, 6))


def _row(label: str, value: float, unit: str, decimals: int = 0) -> MaterialRow:
    text = f"{value:.{decimals}f}" if decimals else str(int(value))
    return MaterialRow(label=label, value=text, unit=unit)


def estimate_building(area: Any, stage: Any) -> Optional[Estimate]:
    """Cumulative materials from foundation up to ``stage`` for a plot of ``area`` sq. ft."""
    sqft = _positive(area)
    stage = (stage or "").strip().lower() if isinstance(stage, str) else None
    if sqft is None or stage not in STAGE_FLOORS:
        return None

    floors = STAGE_FLOORS[stage]
    totals = {
        key: sqft * FOUNDATION_RATES[key] + sqft * FLOOR_RATES[key] * floors
        for key in FOUNDATION_RATES
    }

    cement = _ceil(totals["cement"])
    steel = round(totals["steel"] / 1000, 2)
    sand = _ceil(totals["sand"])
    aggregate = _ceil(totals["aggregate"])
    bricks = _ceil(totals["bricks"])

    return Estimate(
        mode="building",
        quantities={"cement": cement, "steel": steel, "sand": sand, "aggregate": aggregate, "bricks": bricks},
        rows=[
            _row("Cement", cement, "Bags"),
            _row("TMT Steel", steel, "Tons", decimals=2),
            _row("Sand", sand, "Cu.Ft"),
            _row("Aggregate", aggregate, "Cu.Ft"),
            _row("Bricks", bricks, "Pcs"),
        ],
        note="Calculated cumulatively from Foundation level up to the selected floor.",
    )


def _thickness_key(thickness: Any) -> Optional[int]:
    number = _positive(thickness)
    if number is None or not number.is_integer():
        return None
    return int(number)


def estimate_wall(length: Any, width: Any, thickness: Any = 9) -> Optional[Estimate]:
    """Brick wall of ``length`` x ``width`` ft, 9" or 4" thick, laid in 1:6 mortar."""
    length, width = _positive(length), _positive(width)
    key = _thickness_key(thickness)
    if length is None or width is None or key not in WALL_THICKNESS_FT:
        return None

    area = length * width
    volume = area * WALL_THICKNESS_FT[key]
    bricks = _ceil(volume * BRICKS_PER_CUFT)

    dry = volume * MORTAR_DRY_FACTOR
    parts = sum(MORTAR_RATIO)
    cement_volume = dry * MORTAR_RATIO[0] / parts
    sand_volume = dry * MORTAR_RATIO[1] / parts
    cement_bags = _ceil(cement_volume / CEMENT_BAG_CUFT)
    sand = _ceil(sand_volume)

    return Estimate(
        mode="wall",
        quantities={
            "area": round(area, 2),
            "volume": round(volume, 2),
            "bricks": bricks,
            "cement": cement_bags,
            "sand": sand,
        },
        rows=[
            _row("Bricks", bricks, "Pcs"),
            _row("Cement", cement_bags, "Bags"),
            _row("Sand", sand, "Cu.Ft"),
        ],
        note=f'{key}" wall, {round(area, 2)} sq.ft, mortar 1:6.',
    )


def estimate_slab(length: Any, width: Any, thickness: Any = 5) -> Optional[Estimate]:
    """RCC slab in M20 (1:1.5:3) with roughly 1% steel by volume; ``thickness`` in inches."""
    length, width = _positive(length), _positive(width)
    inches = _positive(thickness)
    if length is None or width is None or inches is None:
        return None
    if not SLAB_MIN_IN <= inches <= SLAB_MAX_IN:
        return None

    area = length * width
    wet = area * inches / 12
    dry = wet * CONCRETE_DRY_FACTOR
    parts = sum(CONCRETE_RATIO)
    cement_volume = dry * CONCRETE_RATIO[0] / parts
    sand_volume = dry * CONCRETE_RATIO[1] / parts
    aggregate_volume = dry * CONCRETE_RATIO[2] / parts

    cement_bags = _ceil(cement_volume / CEMENT_BAG_CUFT)
    sand = _ceil(sand_volume)
    aggregate = _ceil(aggregate_volume)
    steel_kg = round(wet / CUFT_PER_M3 * STEEL_FRACTION * STEEL_DENSITY_KG_M3, 2)

    return Estimate(
        mode="slab",
        quantities={
            "area": round(area, 2),
            "volume": round(wet, 2),
            "cement": cement_bags,
            "sand": sand,
            "aggregate": aggregate,
            "steel": steel_kg,
        },
        rows=[
            _row("Cement", cement_bags, "Bags"),
            _row("Sand", sand, "Cu.Ft"),
            _row("Aggregate", aggregate, "Cu.Ft"),
            _row("TMT Steel", steel_kg, "Kg", decimals=2),
        ],
        note=f'{inches:g}" slab, M20 mix.',
    )


def estimate_floor(length: Any, width: Any) -> Optional[Estimate]:
    """2 x 2 ft tiles with 10% wastage, cement bedding and white cement jointing."""
    length, width = _positive(length), _positive(width)
    if length is None or width is None:
        return None

    area = length * width
    total = area * FLOOR_WASTAGE
    tiles = _ceil(total / TILE_AREA_SQFT)
    cement_bags = _ceil(total / BEDDING_SQFT_PER_BAG)
    white_cement = round(total / WHITE_CEMENT_SQFT_PER_KG, 2)

    return Estimate(
        mode="floor",
        quantities={
            "area": round(total, 2),
            "tiles": tiles,
            "cement": cement_bags,
            "white_cement": white_cement,
        },
        rows=[
            _row("Tiles (2x2)", tiles, "Pcs"),
            _row("Cement", cement_bags, "Bags"),
            _row("White Cement", white_cement, "Kg", decimals=2),
        ],
    )


STRUCTURES = {
    "wall": estimate_wall,
    "slab": estimate_slab,
    "floor": estimate_floor,
}
