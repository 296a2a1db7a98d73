from __future__ import annotations

from bisect import bisect_right
from typing import Sequence

from .models import Breakpoint, PriceTable, ResolvedTier


def resolve_breakpoint(breakpoints: Sequence[Breakpoint], quantity: int) -> ResolvedTier:
    """Return the price break that applies to ``quantity``.

    The highest breakpoint whose ``min_qty`` is at or below the quantity
    wins, so a quantity equal to a breakpoint belongs to that breakpoint.
    Quantities below every breakpoint use the lowest one (the floor).
    ``breakpoints`` must be sorted ascending by ``min_qty``.
    """
    if not breakpoints:
        raise ValueError("Cannot resolve a tier without breakpoints")
    idx = bisect_right([bp.min_qty for bp in breakpoints], quantity) - 1
    if idx < 0:
        floor = breakpoints[0]
        return ResolvedTier(floor.min_qty, floor.unit_price, below_floor=True)
    chosen = breakpoints[idx]
    return ResolvedTier(chosen.min_qty, chosen.unit_price)


def resolve_tier(table: PriceTable, quantity: int) -> ResolvedTier:
    return resolve_breakpoint(table.breakpoints, quantity)
