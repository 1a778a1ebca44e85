"""Internal schema for campaign rows and the engine's derived records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

RecommendationLabel = Literal["increase", "decrease", "optimal"]


@dataclass(frozen=True)
class Campaign:
    name: str
    cost: float = 0.0
    conv_value: float = 0.0
    clicks: int = 0
    conversions: float = 0.0
    impr_share: float = 0.0
    lost_to_budget: float = 0.0
    lost_to_rank: float = 0.0
    impressions: int = 0

    @property
    def roas(self) -> float:
        return (self.conv_value / self.cost) if self.cost > 0 else 0.0

    @property
    def cpa(self) -> float:
        return (self.cost / self.conversions) if self.conversions > 0 else 0.0

    @property
    def aov(self) -> float:
        return (self.conv_value / self.conversions) if self.conversions > 0 else 0.0

    def profit(self, cogs_pct: float) -> float:
        """Gross revenue after COGS minus spend."""
        return self.conv_value * (1 - cogs_pct / 100) - self.cost

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProfitDataPoint:
    cost: float
    sales: float
    conv_value: float
    roas: float
    profit: float
    marginal_roas: float
    aov: float
    impression_share: Optional[float] = None  # percent, IS-aware curve only

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OptimalZone:
    start: float
    end: float
    current: float
    max_profit: float
    best_cost: float = 0.0

    @property
    def is_sentinel(self) -> bool:
        """True for the zero-width zone returned when no curve exists."""
        return self.start == 0 and self.end == 0


@dataclass(frozen=True)
class Recommendation:
    recommendation: RecommendationLabel
    detail: str
    adjustment_percent: int


@dataclass
class CampaignAnalysis:
    campaign: Campaign
    curve: List[ProfitDataPoint]
    zone: OptimalZone
    recommendation: Recommendation


@dataclass
class CampaignProjection:
    name: str
    current_cost: float
    current_profit: float
    projected_cost: float
    projected_profit: float
    percent_change: float
    profit_change: float
    current_is: float
    projected_is: float
    change_reason: str
    optimal_min: float
    optimal_max: float
    is_high_is: bool

    current_revenue: float = 0.0
    projected_revenue: float = 0.0
    current_conversions: float = 0.0
    projected_conversions: float = 0.0
    recommendation: str = ""
    budget_gain: float = 0.0
    rank_gain: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PortfolioTotals:
    cost: float = 0.0
    revenue: float = 0.0
    profit: float = 0.0
    conversions: float = 0.0
    impressions: float = 0.0

    @property
    def roas(self) -> float:
        return (self.revenue / self.cost) if self.cost > 0 else 0.0

    @property
    def cpa(self) -> float:
        return (self.cost / self.conversions) if self.conversions > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["roas"] = self.roas
        d["cpa"] = self.cpa
        return d


@dataclass
class PortfolioSummary:
    current: PortfolioTotals = field(default_factory=PortfolioTotals)
    projected: PortfolioTotals = field(default_factory=PortfolioTotals)
    revenue_method: str = "projected"

    def change(self, metric: str) -> float:
        """Projected minus current for one totals attribute."""
        return getattr(self.projected, metric) - getattr(self.current, metric)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "projected": self.projected.to_dict(),
            "change": {
                m: self.change(m)
                for m in ("cost", "revenue", "profit", "conversions", "impressions", "roas", "cpa")
            },
            "revenue_method": self.revenue_method,
        }
