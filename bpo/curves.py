"""Profit-vs-spend curves built from a campaign's observed metrics.

Two models are provided:

* :func:`generate_curve` — a single power law, ``sales ~ spend ** 0.4``,
  over ``[0.1 × cost, 3 × cost]``.
* :func:`generate_curve_with_is` — three regimes bounded by impression
  share. Below current spend it follows the same power law; between current
  spend and the spend needed to win back the share lost to budget it scales
  linearly; above that, the share lost to rank is recovered with a steeper
  0.25 power law up to a 90% impression share ceiling.

Both return exactly ``num_points`` samples, evenly spaced in spend.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from bpo.config import (
    MAX_IMPRESSION_SHARE,
    MAX_SPEND_MULTIPLE,
    MIN_SPEND_MULTIPLE,
    NUM_POINTS,
    RANK_EXPONENT,
    SCALING_EXPONENT,
    CurveConfig,
)
from bpo.schema import Campaign, ProfitDataPoint
from bpo.validation import require_positive

logger = logging.getLogger(__name__)


def spend_grid(
    min_spend: float, max_spend: float, num_points: int = NUM_POINTS
) -> List[float]:
    """Return num_points spend levels from min_spend to max_spend inclusive."""
    step = (max_spend - min_spend) / (num_points - 1)
    return [min_spend + i * step for i in range(num_points)]


def _make_point(
    spend: float,
    scale: float,
    conversions: float,
    base_aov: float,
    cogs_pct: float,
    impression_share: Optional[float] = None,
) -> ProfitDataPoint:
    sales = conversions * scale
    conv_value = sales * base_aov
    roas = conv_value / spend if spend > 0 else 0.0
    profit = conv_value * (1 - cogs_pct / 100) - spend
    return ProfitDataPoint(
        cost=spend,
        sales=sales,
        conv_value=conv_value,
        roas=roas,
        profit=profit,
        marginal_roas=roas,
        aov=base_aov,
        impression_share=impression_share,
    )


def _with_marginal_roas(points: List[ProfitDataPoint]) -> List[ProfitDataPoint]:
    """Fill marginal ROAS against the previous sample; the first keeps its ROAS."""
    out: List[ProfitDataPoint] = []
    for i, p in enumerate(points):
        if i == 0:
            out.append(p)
            continue
        prev = points[i - 1]
        extra_cost = p.cost - prev.cost
        marginal = (p.conv_value - prev.conv_value) / extra_cost if extra_cost > 0 else 0.0
        out.append(
            ProfitDataPoint(
                cost=p.cost,
                sales=p.sales,
                conv_value=p.conv_value,
                roas=p.roas,
                profit=p.profit,
                marginal_roas=marginal,
                aov=p.aov,
                impression_share=p.impression_share,
            )
        )
    return out


def point_at_spend(
    cost: float,
    revenue: float,
    conversions: float,
    cogs_pct: float,
    spend: float,
    scaling_exponent: float = SCALING_EXPONENT,
) -> ProfitDataPoint:
    """Evaluate the single power-law model at one spend level.

    At ``spend == cost`` the scale factor is exactly 1, so sales and revenue
    reproduce the observed conversions and conversion value.
    """
    require_positive("cost", cost)
    require_positive("conversions", conversions)
    scale = (spend / cost) ** scaling_exponent
    return _make_point(spend, scale, conversions, revenue / conversions, cogs_pct)


def generate_curve(
    cost: float,
    revenue: float,
    conversions: float,
    cogs_pct: float,
    scaling_exponent: float = SCALING_EXPONENT,
    num_points: int = NUM_POINTS,
    min_multiple: float = MIN_SPEND_MULTIPLE,
    max_multiple: float = MAX_SPEND_MULTIPLE,
) -> List[ProfitDataPoint]:
    """Single-regime profit curve over ``[min_multiple × cost, max_multiple × cost]``.

    Raises DataQualityError when cost or conversions is not positive.
    """
    require_positive("cost", cost)
    require_positive("conversions", conversions)

    base_aov = revenue / conversions
    points = [
        _make_point(
            s, (s / cost) ** scaling_exponent, conversions, base_aov, cogs_pct
        )
        for s in spend_grid(cost * min_multiple, cost * max_multiple, num_points)
    ]
    return _with_marginal_roas(points)


def impression_share_bounds(
    campaign: Campaign, max_impression_share: float = MAX_IMPRESSION_SHARE
) -> Tuple[float, float]:
    """Return (spend_for_budget_is, max_spend) for the IS-aware curve.

    ``spend_for_budget_is`` is the spend that wins back the share lost to
    budget; ``max_spend`` is the spend that reaches the impression share
    ceiling at current efficiency.
    """
    require_positive("impr_share", campaign.impr_share, campaign.name)
    spend_for_budget_is = campaign.cost * (
        1 + campaign.lost_to_budget / campaign.impr_share
    )
    max_spend = campaign.cost * (max_impression_share / campaign.impr_share)
    return spend_for_budget_is, max_spend


def generate_curve_with_is(
    campaign: Campaign,
    cogs_pct: float,
    scaling_exponent: float = SCALING_EXPONENT,
    rank_exponent: float = RANK_EXPONENT,
    max_impression_share: float = MAX_IMPRESSION_SHARE,
    num_points: int = NUM_POINTS,
    min_multiple: float = MIN_SPEND_MULTIPLE,
    max_multiple: float = MAX_SPEND_MULTIPLE,
) -> List[ProfitDataPoint]:
    """Three-regime profit curve with impression share per point.

    Raises DataQualityError when cost, conversions or impr_share is not
    positive.
    """
    require_positive("cost", campaign.cost, campaign.name)
    require_positive("conversions", campaign.conversions, campaign.name)

    cost = campaign.cost
    current_is = campaign.impr_share
    lost_budget = campaign.lost_to_budget
    lost_rank = campaign.lost_to_rank
    spend_for_budget_is, max_spend = impression_share_bounds(
        campaign, max_impression_share
    )
    budget_span = spend_for_budget_is - cost
    rank_span = max_spend - spend_for_budget_is
    budget_scale = 1 + lost_budget / current_is

    base_aov = campaign.conv_value / campaign.conversions
    max_cost = min(max_spend, cost * max_multiple)

    points: List[ProfitDataPoint] = []
    for s in spend_grid(cost * min_multiple, max_cost, num_points):
        if s <= cost:
            scale = (s / cost) ** scaling_exponent
            share = current_is * scale
        elif s <= spend_for_budget_is:
            progress = (s - cost) / budget_span
            scale = 1 + progress * (lost_budget / current_is)
            share = current_is + progress * lost_budget
        else:
            # s <= max_cost <= max_spend, so rank_span > 0 here
            progress = max(0.0, (s - spend_for_budget_is) / rank_span)
            scale = budget_scale + progress ** rank_exponent * (lost_rank / current_is)
            share = min(max_impression_share, current_is + lost_budget + progress * lost_rank)
        points.append(
            _make_point(s, scale, campaign.conversions, base_aov, cogs_pct, share * 100)
        )

    logger.debug(
        "IS curve for %s: budget-limited up to %.2f, ceiling spend %.2f",
        campaign.name,
        spend_for_budget_is,
        max_spend,
    )
    return _with_marginal_roas(points)


def generate_campaign_curve(
    campaign: Campaign,
    cogs_pct: float,
    cfg: CurveConfig | None = None,
) -> List[ProfitDataPoint]:
    """Pick the curve model for a campaign.

    Campaigns that report impression share get the IS-aware curve (unless
    disabled in config); the rest get the single power law.
    """
    cfg = cfg or CurveConfig()
    if cfg.use_impression_share_curve and campaign.impr_share > 0:
        return generate_curve_with_is(
            campaign,
            cogs_pct,
            scaling_exponent=cfg.scaling_exponent,
            rank_exponent=cfg.rank_exponent,
            max_impression_share=cfg.max_impression_share,
            num_points=cfg.num_points,
            min_multiple=cfg.min_spend_multiple,
            max_multiple=cfg.max_spend_multiple,
        )
    return generate_curve(
        campaign.cost,
        campaign.conv_value,
        campaign.conversions,
        cogs_pct,
        scaling_exponent=cfg.scaling_exponent,
        num_points=cfg.num_points,
        min_multiple=cfg.min_spend_multiple,
        max_multiple=cfg.max_spend_multiple,
    )
