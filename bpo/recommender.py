"""Turn a campaign's profit curve and optimal zone into a budget recommendation."""

from __future__ import annotations

import logging
import math
from typing import Dict, Literal, Optional, Sequence

from bpo.config import RecommendationConfig
from bpo.schema import (
    Campaign,
    CampaignProjection,
    OptimalZone,
    ProfitDataPoint,
    Recommendation,
)

logger = logging.getLogger(__name__)

OptimizationMode = Literal["none", "conservative", "balanced", "aggressive"]

MODE_MULTIPLIERS: Dict[str, float] = {
    "none": 0.0,
    "conservative": 0.5,
    "balanced": 1.0,
    "aggressive": 1.5,
}

# Nudge (percent, before the mode multiplier) for campaigns off-centre in their band.
RECENTRE_STEP = 10


# ─────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ─────────────────────────────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf; NaN becomes 0."""
    if math.isnan(value):
        return 0
    return int(math.floor(value + 0.5))


def clamp_percent(value: float) -> int:
    return max(-100, min(100, round_half_up(value)))


def money(value: float) -> str:
    """Format dollars with thousands separators, e.g. ``$1,250`` / ``-$300``."""
    n = round_half_up(value)
    return f"-${abs(n):,}" if n < 0 else f"${n:,}"


# ─────────────────────────────────────────────────────────────────────────────
# Rule-based recommendation
# ─────────────────────────────────────────────────────────────────────────────


def profit_at_spend(curve: Sequence[ProfitDataPoint], spend: float) -> float:
    """Linearly interpolate curve profit at ``spend`` (clamped to the curve range)."""
    if not curve:
        return 0.0
    if spend <= curve[0].cost:
        return curve[0].profit
    for lo, hi in zip(curve, curve[1:]):
        if lo.cost <= spend <= hi.cost:
            if hi.cost == lo.cost:
                return lo.profit
            t = (spend - lo.cost) / (hi.cost - lo.cost)
            return lo.profit + t * (hi.profit - lo.profit)
    return curve[-1].profit


def recommend(
    campaign: Campaign,
    curve: Sequence[ProfitDataPoint],
    zone: OptimalZone,
    cogs_pct: Optional[float] = None,
    cfg: RecommendationConfig | None = None,
) -> Recommendation:
    """Classify a campaign and suggest a percentage spend change.

    Rules are evaluated in order and the first match wins:

    1. impression share >= 90%           → optimal, 0
    2. zero-width sentinel zone          → decrease, -100
    3. below the zone and profitable     → increase (lost-budget dollars or
                                           distance to zone start, max +100)
    4. above the zone                    → decrease toward zone end (min -100)
    5. unprofitable                      → decrease, -50
    6. otherwise                         → optimal, 0

    Current profit comes from ``cogs_pct`` when given, otherwise it is read
    off the curve at the campaign's spend. NaN inputs fail every comparison
    and therefore land on rule 6.
    """
    cfg = cfg or RecommendationConfig()
    cost = campaign.cost

    if campaign.impr_share >= cfg.high_is_threshold:
        return Recommendation(
            recommendation="optimal",
            detail=(
                f"Campaign already at {campaign.impr_share * 100:.0f}% impression share. "
                "Maintaining current spend level."
            ),
            adjustment_percent=0,
        )

    if zone.is_sentinel:
        return Recommendation(
            recommendation="decrease",
            detail="Reduce spend to 0: this campaign is not profitable at any spend level.",
            adjustment_percent=-100,
        )

    if cogs_pct is not None:
        current_profit = campaign.profit(cogs_pct)
    else:
        current_profit = profit_at_spend(curve, cost)
    roas = campaign.roas

    # Lost-budget dollars are only defined against a non-zero impression share.
    significant_lost_budget = (
        campaign.lost_to_budget
        if campaign.lost_to_budget > cfg.significant_lost_budget and campaign.impr_share > 0
        else 0.0
    )

    if cost < zone.start and current_profit > 0:
        if significant_lost_budget > 0:
            lost_budget_dollars = (significant_lost_budget / campaign.impr_share) * cost
            adjustment = min(100.0, (lost_budget_dollars / cost) * 100)
            detail = (
                f"Increase spend to capture {money(lost_budget_dollars)} in lost budget "
                f"impression share. Current ROAS is {roas:.1f}x with profit of "
                f"{money(current_profit)}."
            )
        else:
            adjustment = min(100.0, ((zone.start - cost) / cost) * 100)
            detail = (
                f"Increase spend to reach optimal range (minimum {money(zone.start)}). "
                f"Current ROAS of {roas:.1f}x with profit of {money(current_profit)} "
                "suggests room for growth."
            )
        label = "increase"
    elif cost > zone.end:
        adjustment = max(-100.0, ((zone.end - cost) / cost) * 100)
        detail = (
            f"Reduce spend to optimal maximum ({money(zone.end)}). "
            f"Current spend of {money(cost)} exceeds profit-maximizing range."
        )
        label = "decrease"
    elif current_profit <= 0:
        adjustment = float(cfg.unprofitable_adjustment)
        detail = (
            f"Unprofitable at current spend level (ROAS: {roas:.1f}x). "
            "Reduce spend to improve profitability."
        )
        label = "decrease"
    else:
        adjustment = 0.0
        detail = (
            "Current spend is within optimal profit range. "
            f"ROAS is {roas:.1f}x generating {money(current_profit)} profit."
        )
        label = "optimal"

    logger.debug("%s → %s (%+.1f%%)", campaign.name, label, adjustment)
    return Recommendation(
        recommendation=label,
        detail=detail,
        adjustment_percent=clamp_percent(adjustment),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Mode-based batch adjustment
# ─────────────────────────────────────────────────────────────────────────────


def mode_multiplier(mode: str) -> float:
    try:
        return MODE_MULTIPLIERS[mode]
    except KeyError:
        raise ValueError(
            f"Unknown optimization mode {mode!r}; expected one of {sorted(MODE_MULTIPLIERS)}"
        ) from None


def mode_adjustment(
    projection: CampaignProjection,
    mode: str,
    unprofitable_adjustment: int = -50,
    recentre_step: float = RECENTRE_STEP,
) -> int:
    """Scale the recommendation branches by a mode multiplier.

    Besides moving campaigns toward their optimal band, campaigns already
    inside it are nudged toward the band's centre: the lower 40% gets
    ``+recentre_step × multiplier``, the upper 40% the negative.
    """
    multiplier = mode_multiplier(mode)
    if projection.is_high_is or multiplier == 0:
        return 0

    if projection.current_profit <= 0:
        return clamp_percent(unprofitable_adjustment * multiplier)

    cost = projection.current_cost
    lo, hi = projection.optimal_min, projection.optimal_max

    if cost < lo:
        percent_below = ((lo - cost) / cost) * 100
        return min(100, round_half_up(percent_below * multiplier))

    if cost > hi:
        percent_above = ((cost - hi) / cost) * 100
        return max(-100, round_half_up(-percent_above * multiplier))

    width = hi - lo
    if width <= 0:
        return 0
    position = (cost - lo) / width
    if position < 0.4:
        return round_half_up(recentre_step * multiplier)
    if position > 0.6:
        return round_half_up(-recentre_step * multiplier)
    return 0


def describe_adjustment(projection: CampaignProjection) -> str:
    """Change reason for an adjustment that differs from the engine's suggestion."""
    pct = round_half_up(projection.percent_change)
    if pct == 0:
        return f"No change: holding spend at {money(projection.current_cost)}."
    verb = "Increase" if pct > 0 else "Reduce"
    profit_delta = money(projection.profit_change)
    if projection.profit_change > 0:
        profit_delta = "+" + profit_delta
    return (
        f"{verb} spend by {abs(pct)}% to {money(projection.projected_cost)}. "
        f"Projected profit change {profit_delta}, impression share "
        f"{projection.current_is:.1f}% to {projection.projected_is:.1f}%."
    )
