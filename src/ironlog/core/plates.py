"""
Plate math: bar loadouts and warmup ladders.

Turns a target bar weight into plates per side and generates the
Starting Strength warmup sequence for a work weight.  Everything here is
a pure function of its inputs.
"""

import math
from collections import Counter
from typing import Iterable

from .config import (
    DEFAULT_BAR_WEIGHT,
    DEFAULT_PLATES,
    WARMUP_BAR_REPS,
    WARMUP_RUNGS,
    WEIGHT_ROUNDING,
)
from .models import Loadout, WarmupStep


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round with ties going up (2.5 → 3), unlike Python's banker's rounding.

    Args:
        value: Number to round
        ndigits: Decimal places to keep

    Returns:
        Rounded value
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_to_nearest(weight: float, increment: float = WEIGHT_ROUNDING) -> float:
    """Round a weight to the nearest loadable increment (ties go up)."""
    if increment <= 0:
        return weight
    return round_half_up(weight / increment) * increment


def compute_loadout(
    target_weight: float,
    bar_weight: float = DEFAULT_BAR_WEIGHT,
    plates: Iterable[float] = DEFAULT_PLATES,
) -> Loadout:
    """
    Compute the plates to load on each side of the bar.

    Greedy largest-first assignment over half of (target − bar).  The
    running remainder is rounded to one decimal after every subtraction so
    that 2.5-unit plates do not accumulate floating-point drift.  When the
    available plates cannot make the exact weight the closest lighter
    loadout is returned with the per-side shortfall.

    Args:
        target_weight: Desired total weight including the bar
        bar_weight: Weight of the empty bar
        plates: Available plate denominations (any order)

    Returns:
        Loadout with per-side stack (heaviest first), achieved total, shortfall
    """
    if target_weight <= bar_weight:
        return Loadout(per_side=(), total_weight=bar_weight, shortfall=0.0)

    per_side = (target_weight - bar_weight) / 2
    remaining = per_side
    stack: list[float] = []

    for plate in sorted((p for p in plates if p > 0), reverse=True):
        while remaining >= plate:
            stack.append(plate)
            remaining = round_half_up(remaining - plate, 1)

    shortfall = round_half_up(remaining, 1)
    return Loadout(
        per_side=tuple(stack),
        total_weight=bar_weight + (per_side - remaining) * 2,
        shortfall=shortfall,
    )


def format_plate_breakdown(loadout: Loadout) -> str:
    """
    Human-readable plate list, e.g. "2x45 + 1x10 per side".

    Args:
        loadout: Result of compute_loadout

    Returns:
        Breakdown string, or "Empty bar" when no plates are needed
    """
    if not loadout.per_side:
        return "Empty bar"
    counts = Counter(loadout.per_side)
    parts = [f"{counts[p]}x{_fmt_plate(p)}" for p in sorted(counts, reverse=True)]
    return " + ".join(parts) + " per side"


def _fmt_plate(plate: float) -> str:
    return f"{plate:g}"


def generate_warmup_ladder(
    work_weight: float,
    bar_weight: float = DEFAULT_BAR_WEIGHT,
) -> list[WarmupStep]:
    """
    Build the warmup sets leading up to a work weight.

    Always starts with the empty bar for 5.  Then, for heavier work
    weights:
      - 40% x5 when work > 1.5 x bar (and the rounded 40% is above the bar)
      - 60% x3 when work > 2 x bar
      - 80% x2 when work > 2.5 x bar
    Percent weights are rounded to the nearest 5.

    Args:
        work_weight: Target weight of the work sets
        bar_weight: Weight of the empty bar

    Returns:
        Ordered list of WarmupStep
    """
    ladder = [WarmupStep(weight=bar_weight, reps=WARMUP_BAR_REPS, label="Empty bar")]

    if work_weight <= bar_weight:
        return ladder

    for fraction, reps, label, min_ratio, must_exceed_bar in WARMUP_RUNGS:
        if work_weight <= bar_weight * min_ratio:
            continue
        weight = round_to_nearest(work_weight * fraction)
        if must_exceed_bar and weight <= bar_weight:
            continue
        ladder.append(WarmupStep(weight=weight, reps=reps, label=label))

    return ladder
