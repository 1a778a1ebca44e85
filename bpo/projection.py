"""Apply spend adjustments to campaigns and roll the results up to portfolio totals."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from bpo.config import (
    IS_CEILING_PCT,
    IS_FLOOR_PCT,
    SCALING_EXPONENT,
    AppConfig,
    ProjectionConfig,
)
from bpo.curves import generate_campaign_curve
from bpo.recommender import (
    clamp_percent,
    describe_adjustment,
    mode_adjustment,
    mode_multiplier,
    recommend,
)
from bpo.schema import (
    Campaign,
    CampaignAnalysis,
    CampaignProjection,
    PortfolioSummary,
    PortfolioTotals,
)
from bpo.validation import require_positive, require_valid
from bpo.zone import find_optimal_zone

logger = logging.getLogger(__name__)

PROJECTION_FILTERS = ("all", "increase", "decrease", "nochange", "high-is")


# ─────────────────────────────────────────────────────────────────────────────
# Single-campaign projection
# ─────────────────────────────────────────────────────────────────────────────


def project(
    campaign: Campaign,
    adjustment_percent: float,
    cogs_pct: float,
    scaling_exponent: float = SCALING_EXPONENT,
    is_ceiling: float = IS_CEILING_PCT,
    is_floor: float = IS_FLOOR_PCT,
) -> Dict[str, float]:
    """Project cost, revenue, profit and impression share after a spend change.

    Returns a dict with keys: projected_cost, projected_revenue,
    projected_conversions, projected_profit, projected_is (percent),
    percent_change, profit_change.

    A 0% adjustment reproduces the campaign's current cost and profit
    exactly. Adjustments below -100% are treated as -100%.
    """
    require_positive("cost", campaign.cost, campaign.name)
    adjustment_percent = max(-100.0, adjustment_percent)

    cost = campaign.cost
    projected_cost = cost * (1 + adjustment_percent / 100)
    scale = (projected_cost / cost) ** scaling_exponent
    projected_revenue = campaign.conv_value * scale
    projected_conversions = campaign.conversions * scale
    projected_profit = projected_revenue * (1 - cogs_pct / 100) - projected_cost

    current_is = campaign.impr_share * 100
    if projected_cost > cost:
        projected_is = min(is_ceiling, current_is + (projected_cost - cost) / cost * current_is)
    elif adjustment_percent < 0:
        projected_is = max(is_floor, current_is * (projected_cost / cost))
    else:
        projected_is = current_is

    return {
        "projected_cost": projected_cost,
        "projected_revenue": projected_revenue,
        "projected_conversions": projected_conversions,
        "projected_profit": projected_profit,
        "projected_is": projected_is,
        "percent_change": adjustment_percent,
        "profit_change": projected_profit - campaign.profit(cogs_pct),
    }


def analyse_campaign(
    campaign: Campaign,
    cogs_pct: float,
    cfg: AppConfig | None = None,
) -> CampaignAnalysis:
    """Run curve → optimal zone → recommendation for one campaign."""
    require_valid(campaign)
    cfg = cfg or AppConfig()
    curve = generate_campaign_curve(campaign, cogs_pct, cfg.curve)
    zone = find_optimal_zone(curve, campaign.cost, cfg.zone.profit_threshold)
    rec = recommend(campaign, curve, zone, cogs_pct, cfg.recommendation)
    return CampaignAnalysis(campaign=campaign, curve=curve, zone=zone, recommendation=rec)


# ─────────────────────────────────────────────────────────────────────────────
# Adjustment book
# ─────────────────────────────────────────────────────────────────────────────


class AdjustmentBook:
    """The one mapping from campaign name to chosen adjustment percent.

    Manual overrides and optimization modes both write here; a mode change
    is a bulk write over every campaign.
    """

    def __init__(self, values: Optional[Dict[str, float]] = None) -> None:
        self._values: Dict[str, int] = {}
        for name, pct in (values or {}).items():
            self.set(name, pct)

    def set(self, name: str, adjustment_percent: float) -> int:
        value = clamp_percent(adjustment_percent)
        self._values[name] = value
        return value

    def get(self, name: str) -> Optional[int]:
        return self._values.get(name)

    def clear(self, name: Optional[str] = None) -> None:
        if name is None:
            self._values.clear()
        else:
            self._values.pop(name, None)

    def apply_mode(
        self,
        projections: Iterable[CampaignProjection],
        mode: str,
        unprofitable_adjustment: int = -50,
    ) -> Dict[str, int]:
        """Overwrite every campaign's adjustment with the mode's suggestion."""
        mode_multiplier(mode)  # validates mode
        written: Dict[str, int] = {}
        for p in projections:
            written[p.name] = self.set(
                p.name, mode_adjustment(p, mode, unprofitable_adjustment)
            )
        logger.info("Applied %s mode to %d campaign(s)", mode, len(written))
        return written

    def as_dict(self) -> Dict[str, int]:
        return dict(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)


# ─────────────────────────────────────────────────────────────────────────────
# Batch projections
# ─────────────────────────────────────────────────────────────────────────────


def _to_projection(
    analysis: CampaignAnalysis,
    adjustment: float,
    cogs_pct: float,
    cfg: ProjectionConfig,
    scaling_exponent: float,
    high_is_threshold: float,
) -> CampaignProjection:
    c = analysis.campaign
    p = project(
        c,
        adjustment,
        cogs_pct,
        scaling_exponent=scaling_exponent,
        is_ceiling=cfg.is_ceiling,
        is_floor=cfg.is_floor,
    )
    return CampaignProjection(
        name=c.name,
        current_cost=c.cost,
        current_profit=c.profit(cogs_pct),
        projected_cost=p["projected_cost"],
        projected_profit=p["projected_profit"],
        percent_change=p["percent_change"],
        profit_change=p["profit_change"],
        current_is=c.impr_share * 100,
        projected_is=p["projected_is"],
        change_reason=analysis.recommendation.detail,
        optimal_min=analysis.zone.start,
        optimal_max=analysis.zone.end,
        is_high_is=c.impr_share >= high_is_threshold,
        current_revenue=c.conv_value,
        projected_revenue=p["projected_revenue"],
        current_conversions=c.conversions,
        projected_conversions=p["projected_conversions"],
        recommendation=analysis.recommendation.recommendation,
    )


def build_projections(
    analyses: Sequence[CampaignAnalysis],
    cogs_pct: float,
    adjustments: AdjustmentBook | None = None,
    cfg: AppConfig | None = None,
) -> List[CampaignProjection]:
    """Project every analysed campaign at its chosen adjustment.

    A campaign's adjustment is its entry in ``adjustments`` when present,
    otherwise the recommender's suggestion. Whenever the chosen adjustment
    differs from the suggestion the change reason is rebuilt from the
    projected numbers.
    """
    cfg = cfg or AppConfig()
    out: List[CampaignProjection] = []
    for a in analyses:
        suggested = a.recommendation.adjustment_percent
        chosen = adjustments.get(a.campaign.name) if adjustments is not None else None
        adjustment = suggested if chosen is None else chosen
        proj = _to_projection(
            a,
            adjustment,
            cogs_pct,
            cfg.projection,
            cfg.curve.scaling_exponent,
            cfg.recommendation.high_is_threshold,
        )
        if adjustment != suggested:
            proj.change_reason = describe_adjustment(proj)
        out.append(proj)
    return out


def scale_by_direction(
    analyses: Sequence[CampaignAnalysis],
    cogs_pct: float,
    increase_pct: float,
    decrease_pct: float,
    cfg: AppConfig | None = None,
) -> List[CampaignProjection]:
    """Move profitable campaigns up by ``increase_pct`` and the rest down by ``decrease_pct``.

    For increases on campaigns losing a significant share to budget, the
    spend is split into ``budget_gain`` (dollars recovering budget-limited
    share) and ``rank_gain`` (dollars beyond that point).
    """
    cfg = cfg or AppConfig()
    significant = cfg.recommendation.significant_lost_budget
    out: List[CampaignProjection] = []

    for a in analyses:
        c = a.campaign
        profitable = c.profit(cogs_pct) > 0
        pct = increase_pct if profitable else decrease_pct

        if pct == 0:
            proj = _to_projection(
                a, 0, cogs_pct, cfg.projection, cfg.curve.scaling_exponent,
                cfg.recommendation.high_is_threshold,
            )
            proj.change_reason = "No change requested"
            out.append(proj)
            continue

        adjustment = pct if profitable else -pct
        proj = _to_projection(
            a, adjustment, cogs_pct, cfg.projection, cfg.curve.scaling_exponent,
            cfg.recommendation.high_is_threshold,
        )

        if not profitable:
            proj.change_reason = f"Reducing spend by {pct:g}% to improve profitability"
        elif c.lost_to_budget > significant and c.impr_share > 0:
            lost_budget_dollars = (c.lost_to_budget / c.impr_share) * c.cost
            spend_for_budget_is = c.cost + lost_budget_dollars
            extra = proj.projected_cost - c.cost
            if proj.projected_cost <= spend_for_budget_is:
                captured = extra / lost_budget_dollars
                proj.budget_gain = extra
                proj.change_reason = (
                    f"Increasing spend by {pct:g}% to capture {captured * 100:.1f}% "
                    "of available budget-limited IS"
                )
            else:
                proj.budget_gain = lost_budget_dollars
                proj.rank_gain = proj.projected_cost - spend_for_budget_is
                proj.change_reason = (
                    f"Increasing spend by {pct:g}% to capture all budget-limited IS "
                    "plus some rank-limited IS"
                )
        else:
            proj.change_reason = f"Increasing spend by {pct:g}% to test growth potential"
        out.append(proj)

    return out


# ─────────────────────────────────────────────────────────────────────────────
# Portfolio rollup
# ─────────────────────────────────────────────────────────────────────────────


def summarize_portfolio(
    campaigns: Sequence[Campaign],
    projections: Sequence[CampaignProjection],
    cogs_pct: float,
    revenue_method: str = "projected",
) -> PortfolioSummary:
    """Sum current and projected totals.

    ``revenue_method="projected"`` sums each campaign's projected revenue and
    conversions. ``"legacy"`` reproduces the dashboard's shortcut of
    ``projected_cost × current_profit / current_cost`` for both, kept only
    for parity with older reports.
    """
    if revenue_method not in ("projected", "legacy"):
        raise ValueError(f"Unknown revenue_method {revenue_method!r}")

    current = PortfolioTotals()
    for c in campaigns:
        current.cost += c.cost
        current.revenue += c.conv_value
        current.profit += c.profit(cogs_pct)
        current.conversions += c.conversions
        current.impressions += c.impressions

    by_name = {c.name: c for c in campaigns}
    projected = PortfolioTotals()
    for p in projections:
        projected.cost += p.projected_cost
        projected.profit += p.projected_profit
        if revenue_method == "legacy":
            ratio = p.current_profit / p.current_cost if p.current_cost > 0 else 0.0
            projected.revenue += p.projected_cost * ratio
            projected.conversions += p.projected_cost * ratio
        else:
            projected.revenue += p.projected_revenue
            projected.conversions += p.projected_conversions

        c = by_name.get(p.name)
        if c is not None:
            share_ratio = p.projected_is / p.current_is if p.current_is > 0 else 1.0
            projected.impressions += c.impressions * share_ratio

    return PortfolioSummary(current=current, projected=projected, revenue_method=revenue_method)


# ─────────────────────────────────────────────────────────────────────────────
# Filtering
# ─────────────────────────────────────────────────────────────────────────────


def filter_campaigns(
    campaigns: Iterable[Campaign],
    include: str = "",
    exclude: str = "",
) -> List[Campaign]:
    """Case-insensitive substring include / exclude on campaign names."""
    inc = (include or "").lower()
    exc = (exclude or "").lower()
    out: List[Campaign] = []
    for c in campaigns:
        name = (c.name or "").lower()
        if inc and inc not in name:
            continue
        if exc and exc in name:
            continue
        out.append(c)
    return out


def filter_projections(
    projections: Iterable[CampaignProjection],
    kind: str = "all",
    row_limit: int = 0,
) -> List[CampaignProjection]:
    """Select projections by direction of change; ``row_limit`` 0 keeps all.

    High impression share campaigns only appear under ``all`` and ``high-is``.
    """
    if kind not in PROJECTION_FILTERS:
        raise ValueError(f"Unknown projection filter {kind!r}; expected one of {PROJECTION_FILTERS}")

    out: List[CampaignProjection] = []
    for p in projections:
        if p.is_high_is:
            keep = kind in ("all", "high-is")
        elif kind == "increase":
            keep = p.percent_change > 0
        elif kind == "decrease":
            keep = p.percent_change < 0
        elif kind == "nochange":
            keep = p.percent_change == 0
        elif kind == "high-is":
            keep = False
        else:
            keep = True
        if keep:
            out.append(p)
    return out[:row_limit] if row_limit > 0 else out
