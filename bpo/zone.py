"""Locate the profit-maximising spend band on a profit curve."""

from __future__ import annotations

from typing import Sequence

from bpo.config import PROFIT_THRESHOLD
from bpo.schema import OptimalZone, ProfitDataPoint


def max_profit_point(curve: Sequence[ProfitDataPoint]) -> ProfitDataPoint:
    """Return the highest-profit point; the leftmost one wins ties."""
    best = curve[0]
    for point in curve[1:]:
        if point.profit > best.profit:
            best = point
    return best


def find_optimal_zone(
    curve: Sequence[ProfitDataPoint],
    current_cost: float,
    threshold: float = PROFIT_THRESHOLD,
) -> OptimalZone:
    """Return the spend band whose profit is within ``threshold`` of the maximum.

    ``start``/``end`` are the lowest and highest spend with
    ``profit >= max_profit × threshold``. When the best profit is negative
    that bound lies above every point, so the band collapses onto the
    max-profit point itself. An empty curve yields the all-zero sentinel
    zone, which the recommender reads as "not profitable at any spend".
    """
    if not curve:
        return OptimalZone(start=0.0, end=0.0, current=current_cost, max_profit=0.0)

    best = max_profit_point(curve)
    if best.profit < 0:
        return OptimalZone(
            start=best.cost,
            end=best.cost,
            current=current_cost,
            max_profit=best.profit,
            best_cost=best.cost,
        )

    cutoff = best.profit * threshold
    band = [p.cost for p in curve if p.profit >= cutoff]
    return OptimalZone(
        start=min(band),
        end=max(band),
        current=current_cost,
        max_profit=best.profit,
        best_cost=best.cost,
    )
