"""End-to-end tests for bpo/pipeline.py."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from bpo.config import AppConfig
from bpo.pipeline import partition_campaigns, plan_projections, run_pipeline
from bpo.projection import analyse_campaign
from bpo.schema import Campaign

CSV_TEXT = (
    "Campaign,Cost,Conv. value,Conversions,Impr. share,Search Lost IS (budget),Search Lost IS (rank)\n"
    "Brand Search,1000,3000,50,50%,2%,30%\n"
    "Generic Test,1000,1500,30,30%,5%,40%\n"
    "Broken,0,100,2,20%,10%,10%\n"
)


def _csv(tmp_path: Path) -> Path:
    p = tmp_path / "campaigns.csv"
    p.write_text(CSV_TEXT, encoding="utf-8")
    return p


def _projections(out: Path) -> pd.DataFrame:
    return pd.read_csv(out / "projections.csv").set_index("name")


class TestPartition:
    def test_invalid_campaigns_skipped(self):
        good = Campaign(name="Good", cost=10, conv_value=20, conversions=1)
        bad = Campaign(name="Bad", cost=10, conv_value=20, conversions=0)
        valid, skipped = partition_campaigns([good, bad])
        assert valid == [good]
        assert skipped[0]["name"] == "Bad"
        assert "conversions" in skipped[0]["errors"][0]

    def test_share_warning_is_logged_not_skipped(self, caplog):
        odd = Campaign(name="Odd", cost=10, conv_value=20, conversions=1,
                       impr_share=0.7, lost_to_budget=0.3, lost_to_rank=0.3)
        with caplog.at_level("WARNING", logger="bpo"):
            valid, skipped = partition_campaigns([odd])
        assert valid == [odd]
        assert skipped == []
        assert "exceeds 1" in caplog.text


class TestRunPipeline:
    def test_outputs_and_summary(self, tmp_path):
        out = tmp_path / "out"
        summary = run_pipeline(_csv(tmp_path), out, AppConfig())

        assert summary["total_campaigns"] == 3
        assert summary["analysed"] == 2
        assert [s["name"] for s in summary["skipped"]] == ["Broken"]
        assert sum(summary["recommendations"].values()) == 2
        assert summary["recommendations"]["increase"] >= 1
        assert summary["portfolio"]["current"]["cost"] == 2000
        for name in ("projections.csv", "curves.csv", "report.md"):
            assert (out / name).exists()

        df = _projections(out)
        assert list(df.index) == ["Brand Search", "Generic Test"]
        assert df.loc["Brand Search", "recommendation"] == "increase"
        report = (out / "report.md").read_text(encoding="utf-8")
        assert "`Broken`" in report

    def test_manual_override(self, tmp_path):
        out = tmp_path / "out"
        run_pipeline(_csv(tmp_path), out, AppConfig(), overrides={"Brand Search": 25})
        df = _projections(out)
        assert df.loc["Brand Search", "percent_change"] == 25
        assert df.loc["Brand Search", "change_reason"].startswith("Increase spend by 25%")

    def test_mode_none_holds_everything(self, tmp_path):
        out = tmp_path / "out"
        summary = run_pipeline(_csv(tmp_path), out, AppConfig(), strategy="none")
        assert (_projections(out)["percent_change"] == 0).all()
        assert summary["portfolio"]["projected"]["cost"] == pytest.approx(2000)

    def test_override_beats_mode(self, tmp_path):
        out = tmp_path / "out"
        run_pipeline(_csv(tmp_path), out, AppConfig(), strategy="none",
                     overrides={"Generic Test": -30})
        df = _projections(out)
        assert df.loc["Generic Test", "percent_change"] == -30
        assert df.loc["Brand Search", "percent_change"] == 0

    def test_direction_strategy(self, tmp_path):
        cfg = AppConfig()
        cfg.projection.increase_percentage = 10
        cfg.projection.decrease_percentage = 20
        out = tmp_path / "out"
        run_pipeline(_csv(tmp_path), out, cfg, strategy="direction")
        df = _projections(out)
        assert df.loc["Brand Search", "percent_change"] == 10
        assert df.loc["Generic Test", "percent_change"] == -20

    def test_include_filter(self, tmp_path):
        summary = run_pipeline(_csv(tmp_path), tmp_path / "out", AppConfig(), include="brand")
        assert summary["analysed"] == 1
        assert summary["filtered_out"] == 1

    def test_nothing_left(self, tmp_path):
        out = tmp_path / "out"
        summary = run_pipeline(_csv(tmp_path), out, AppConfig(), include="zzz")
        assert summary["analysed"] == 0
        assert summary["portfolio"]["projected"]["cost"] == 0
        assert "No campaigns left" in (out / "report.md").read_text(encoding="utf-8")

    def test_row_limit_and_show(self, tmp_path):
        cfg = AppConfig()
        cfg.projection.row_limit = 1
        out = tmp_path / "out"
        run_pipeline(_csv(tmp_path), out, cfg, show="increase")
        assert list(_projections(out).index) == ["Brand Search"]

    def test_campaigns_passed_directly(self, tmp_path):
        c = Campaign(name="Direct", cost=500, conv_value=2000, conversions=20)
        summary = run_pipeline(None, tmp_path / "out", AppConfig(), campaigns=[c])
        assert summary["total_campaigns"] == 1
        assert summary["analysed"] == 1

    def test_unknown_strategy(self, tmp_path):
        with pytest.raises(ValueError):
            run_pipeline(_csv(tmp_path), tmp_path / "out", AppConfig(), strategy="yolo")


class TestPlanProjections:
    def test_cogs_from_config(self):
        cfg = AppConfig()
        cfg.projection.cogs_percentage = 20
        c = Campaign(name="A", cost=1000, conv_value=3000, conversions=50)
        [p] = plan_projections([analyse_campaign(c, 20, cfg)], cfg)
        assert p.current_profit == pytest.approx(3000 * 0.8 - 1000)
