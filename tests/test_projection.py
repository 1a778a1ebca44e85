"""Tests for bpo/projection.py — projections, adjustment book and portfolio rollup."""

from __future__ import annotations

import pytest

from bpo.projection import (
    AdjustmentBook,
    analyse_campaign,
    build_projections,
    filter_campaigns,
    filter_projections,
    project,
    scale_by_direction,
    summarize_portfolio,
)
from bpo.schema import Campaign, CampaignProjection
from bpo.validation import DataQualityError

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def _campaign(**overrides) -> Campaign:
    base = dict(
        name="Brand Search",
        cost=1000.0,
        conv_value=3000.0,
        conversions=50.0,
        impr_share=0.5,
        lost_to_budget=0.02,
        lost_to_rank=0.3,
        impressions=10000,
    )
    base.update(overrides)
    return Campaign(**base)


def _unprofitable() -> Campaign:
    return _campaign(name="Generic Test", conv_value=1500.0, conversions=30.0, impr_share=0.3)


def _row(name: str, pct: float, high_is: bool = False) -> CampaignProjection:
    return CampaignProjection(
        name=name,
        current_cost=100.0,
        current_profit=10.0,
        projected_cost=100.0 * (1 + pct / 100),
        projected_profit=10.0,
        percent_change=pct,
        profit_change=0.0,
        current_is=50.0,
        projected_is=50.0,
        change_reason="",
        optimal_min=0.0,
        optimal_max=0.0,
        is_high_is=high_is,
    )


# ─────────────────────────────────────────────────────────────────────────────
# project
# ─────────────────────────────────────────────────────────────────────────────


class TestProject:
    def test_zero_adjustment_is_identity(self):
        c = _campaign()
        p = project(c, 0, 50)
        assert p["projected_cost"] == c.cost
        assert p["projected_revenue"] == c.conv_value
        assert p["projected_conversions"] == c.conversions
        assert p["projected_profit"] == c.profit(50)
        assert p["projected_is"] == 50.0
        assert p["profit_change"] == 0

    def test_increase_scales_impression_share(self):
        p = project(_campaign(), 50, 50)
        assert p["projected_cost"] == pytest.approx(1500)
        assert p["projected_is"] == pytest.approx(75)
        assert p["projected_revenue"] == pytest.approx(3000 * 1.5 ** 0.4)

    def test_decrease_scales_impression_share(self):
        p = project(_campaign(), -50, 50)
        assert p["projected_cost"] == pytest.approx(500)
        assert p["projected_is"] == pytest.approx(25)

    def test_impression_share_ceiling(self):
        p = project(_campaign(impr_share=0.6), 100, 50)
        assert p["projected_is"] == 90

    def test_impression_share_floor(self):
        p = project(_campaign(), -100, 50)
        assert p["projected_cost"] == 0
        assert p["projected_revenue"] == 0
        assert p["projected_is"] == 1
        assert p["profit_change"] == pytest.approx(-500)

    def test_adjustment_below_minus_100_is_clamped(self):
        p = project(_campaign(), -150, 50)
        assert p["percent_change"] == -100
        assert p["projected_cost"] == 0

    def test_revenue_diminishing_returns(self):
        p = project(_campaign(), 100, 50)
        assert p["projected_revenue"] < 2 * 3000

    def test_zero_cost_rejected(self):
        with pytest.raises(DataQualityError):
            project(_campaign(cost=0), 10, 50)


# ─────────────────────────────────────────────────────────────────────────────
# AdjustmentBook
# ─────────────────────────────────────────────────────────────────────────────


class TestAdjustmentBook:
    def test_set_clamps_and_rounds(self):
        book = AdjustmentBook()
        assert book.set("A", 150) == 100
        assert book.set("B", -20.4) == -20
        assert book.as_dict() == {"A": 100, "B": -20}

    def test_get_missing_is_none(self):
        assert AdjustmentBook().get("nope") is None

    def test_initial_values(self):
        book = AdjustmentBook({"A": 12.6})
        assert book.get("A") == 13
        assert "A" in book
        assert len(book) == 1

    def test_clear_one_and_all(self):
        book = AdjustmentBook({"A": 1, "B": 2})
        book.clear("A")
        assert "A" not in book
        book.clear()
        assert len(book) == 0

    def test_as_dict_is_a_copy(self):
        book = AdjustmentBook({"A": 1})
        book.as_dict()["A"] = 99
        assert book.get("A") == 1

    def test_apply_mode_overwrites_every_campaign(self):
        analyses = [analyse_campaign(_campaign(), 50), analyse_campaign(_unprofitable(), 50)]
        book = AdjustmentBook({"Brand Search": 40})
        written = book.apply_mode(build_projections(analyses, 50), "none")
        assert written == {"Brand Search": 0, "Generic Test": 0}
        assert book.get("Brand Search") == 0

    def test_apply_mode_rejects_unknown_mode(self):
        with pytest.raises(ValueError):
            AdjustmentBook().apply_mode([], "reckless")


# ─────────────────────────────────────────────────────────────────────────────
# build_projections
# ─────────────────────────────────────────────────────────────────────────────


class TestBuildProjections:
    def test_uses_engine_suggestion(self):
        analysis = analyse_campaign(_campaign(), 50)
        [p] = build_projections([analysis], 50)
        assert p.percent_change == analysis.recommendation.adjustment_percent
        assert p.change_reason == analysis.recommendation.detail
        assert p.recommendation == "increase"
        assert p.optimal_min == analysis.zone.start
        assert p.optimal_max == analysis.zone.end
        assert p.current_is == 50.0

    def test_override_wins_and_rewrites_reason(self):
        analysis = analyse_campaign(_campaign(), 50)
        [p] = build_projections([analysis], 50, AdjustmentBook({"Brand Search": 25}))
        assert p.percent_change == 25
        assert p.projected_cost == pytest.approx(1250)
        assert p.change_reason.startswith("Increase spend by 25% to $1,250.")

    def test_override_equal_to_suggestion_keeps_reason(self):
        analysis = analyse_campaign(_campaign(), 50)
        book = AdjustmentBook({"Brand Search": analysis.recommendation.adjustment_percent})
        [p] = build_projections([analysis], 50, book)
        assert p.change_reason == analysis.recommendation.detail

    def test_high_is_flag(self):
        analysis = analyse_campaign(_campaign(impr_share=0.92, lost_to_rank=0.05), 50)
        [p] = build_projections([analysis], 50)
        assert p.is_high_is
        assert p.percent_change == 0

    @pytest.mark.parametrize("field,overrides", [
        ("cost", {"cost": 0}),
        ("conversions", {"conversions": 0}),
    ])
    def test_analyse_rejects_undefined_campaign(self, field, overrides):
        with pytest.raises(DataQualityError) as exc:
            analyse_campaign(_campaign(**overrides), 50)
        assert exc.value.field == field
        assert exc.value.campaign == "Brand Search"


# ─────────────────────────────────────────────────────────────────────────────
# scale_by_direction
# ─────────────────────────────────────────────────────────────────────────────


class TestScaleByDirection:
    def test_partial_budget_capture(self):
        analyses = [analyse_campaign(_campaign(lost_to_budget=0.1), 50)]
        [p] = scale_by_direction(analyses, 50, increase_pct=10, decrease_pct=10)
        assert p.projected_cost == pytest.approx(1100)
        assert p.budget_gain == pytest.approx(100)
        assert p.rank_gain == 0
        assert p.change_reason == (
            "Increasing spend by 10% to capture 50.0% of available budget-limited IS"
        )

    def test_full_budget_capture_plus_rank(self):
        analyses = [analyse_campaign(_campaign(lost_to_budget=0.1), 50)]
        [p] = scale_by_direction(analyses, 50, increase_pct=30, decrease_pct=10)
        assert p.budget_gain == pytest.approx(200)
        assert p.rank_gain == pytest.approx(100)
        assert "all budget-limited IS plus some rank-limited IS" in p.change_reason

    def test_growth_test_without_lost_budget(self):
        [p] = scale_by_direction([analyse_campaign(_campaign(), 50)], 50, 5, 5)
        assert p.percent_change == 5
        assert p.change_reason == "Increasing spend by 5% to test growth potential"

    def test_unprofitable_campaign_reduced(self):
        [p] = scale_by_direction([analyse_campaign(_unprofitable(), 50)], 50, 10, 20)
        assert p.percent_change == -20
        assert p.projected_cost == pytest.approx(800)
        assert p.change_reason == "Reducing spend by 20% to improve profitability"

    def test_zero_percentage_is_no_change(self):
        [p] = scale_by_direction([analyse_campaign(_campaign(), 50)], 50, 0, 10)
        assert p.percent_change == 0
        assert p.projected_cost == 1000
        assert p.change_reason == "No change requested"


# ─────────────────────────────────────────────────────────────────────────────
# summarize_portfolio
# ─────────────────────────────────────────────────────────────────────────────


class TestSummarizePortfolio:
    def _setup(self, pct: float = 0):
        campaigns = [_campaign(), _unprofitable()]
        analyses = [analyse_campaign(c, 50) for c in campaigns]
        book = AdjustmentBook({c.name: pct for c in campaigns})
        return campaigns, build_projections(analyses, 50, book)

    def test_current_totals(self):
        campaigns, projections = self._setup()
        summary = summarize_portfolio(campaigns, projections, 50)
        assert summary.current.cost == 2000
        assert summary.current.revenue == 4500
        assert summary.current.profit == pytest.approx(500 + (-250))
        assert summary.current.conversions == 80
        assert summary.current.impressions == 20000

    def test_zero_adjustment_projects_current(self):
        campaigns, projections = self._setup()
        summary = summarize_portfolio(campaigns, projections, 50)
        assert summary.projected.cost == pytest.approx(summary.current.cost)
        assert summary.projected.revenue == pytest.approx(summary.current.revenue)
        assert summary.projected.profit == pytest.approx(summary.current.profit)
        assert summary.projected.impressions == pytest.approx(summary.current.impressions)
        assert summary.change("profit") == pytest.approx(0)

    def test_projected_impressions_follow_share(self):
        campaigns, projections = self._setup(50)
        summary = summarize_portfolio(campaigns, projections, 50)
        # 10000 × 75/50 + 10000 × 45/30
        assert summary.projected.impressions == pytest.approx(30000)

    def test_legacy_revenue_method(self):
        campaigns, projections = self._setup(20)
        summary = summarize_portfolio(campaigns, projections, 50, revenue_method="legacy")
        expected = sum(p.projected_cost * p.current_profit / p.current_cost for p in projections)
        assert summary.revenue_method == "legacy"
        assert summary.projected.revenue == pytest.approx(expected)
        assert summary.projected.conversions == pytest.approx(expected)

    def test_projected_revenue_method(self):
        campaigns, projections = self._setup(20)
        summary = summarize_portfolio(campaigns, projections, 50)
        assert summary.projected.revenue == pytest.approx(
            sum(p.projected_revenue for p in projections)
        )

    def test_empty_portfolio(self):
        summary = summarize_portfolio([], [], 50)
        assert summary.current.cost == 0
        assert summary.projected.profit == 0
        assert summary.current.roas == 0
        assert summary.projected.cpa == 0

    def test_to_dict(self):
        campaigns, projections = self._setup()
        d = summarize_portfolio(campaigns, projections, 50).to_dict()
        assert set(d) == {"current", "projected", "change", "revenue_method"}
        assert d["current"]["roas"] == pytest.approx(4500 / 2000)
        for metric, delta in d["change"].items():
            assert delta == pytest.approx(d["projected"][metric] - d["current"][metric])

    def test_unknown_revenue_method(self):
        with pytest.raises(ValueError):
            summarize_portfolio([], [], 50, revenue_method="magic")


# ─────────────────────────────────────────────────────────────────────────────
# Filtering
# ─────────────────────────────────────────────────────────────────────────────


class TestFilterCampaigns:
    def test_include_exclude_case_insensitive(self):
        campaigns = [
            _campaign(name="Brand - Search"),
            _campaign(name="BRAND Test"),
            _campaign(name="Generic"),
        ]
        names = [c.name for c in filter_campaigns(campaigns, include="brand", exclude="test")]
        assert names == ["Brand - Search"]

    def test_no_filters_keeps_all(self):
        campaigns = [_campaign(name="A"), _campaign(name="B")]
        assert filter_campaigns(campaigns) == campaigns


class TestFilterProjections:
    def _rows(self):
        return [
            _row("up", 10),
            _row("down", -10),
            _row("flat", 0),
            _row("capped", 0, high_is=True),
        ]

    @pytest.mark.parametrize("kind,expected", [
        ("all", ["up", "down", "flat", "capped"]),
        ("increase", ["up"]),
        ("decrease", ["down"]),
        ("nochange", ["flat"]),
        ("high-is", ["capped"]),
    ])
    def test_kinds(self, kind, expected):
        assert [p.name for p in filter_projections(self._rows(), kind)] == expected

    def test_row_limit(self):
        assert [p.name for p in filter_projections(self._rows(), "all", 2)] == ["up", "down"]

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            filter_projections(self._rows(), "sideways")
