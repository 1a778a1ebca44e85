"""Main pipeline — orchestrates load → validate → analyse → adjust → project → report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from bpo.config import AppConfig
from bpo.io_csv import (
    format_report,
    read_campaigns_csv,
    write_curves_csv,
    write_projections_csv,
    write_report,
)
from bpo.projection import (
    AdjustmentBook,
    analyse_campaign,
    build_projections,
    filter_campaigns,
    filter_projections,
    scale_by_direction,
    summarize_portfolio,
)
from bpo.recommender import MODE_MULTIPLIERS
from bpo.schema import Campaign, CampaignAnalysis, CampaignProjection
from bpo.validation import DataQualityError, validate_campaign

logger = logging.getLogger(__name__)

STRATEGIES = ("recommended", "direction") + tuple(MODE_MULTIPLIERS)


def partition_campaigns(
    campaigns: Sequence[Campaign],
) -> Tuple[List[Campaign], List[Dict]]:
    """Split campaigns into (valid, skipped); skipped entries carry the errors."""
    valid: List[Campaign] = []
    skipped: List[Dict] = []
    for c in campaigns:
        result = validate_campaign(c)
        for w in result["warnings"]:
            logger.warning("Campaign '%s': %s", c.name, w)
        if result["valid"]:
            valid.append(c)
        else:
            logger.warning("Skipping campaign '%s': %s", c.name, "; ".join(result["errors"]))
            skipped.append({"name": c.name, "errors": result["errors"]})
    return valid, skipped


def analyse_campaigns(
    campaigns: Sequence[Campaign],
    cogs_pct: float,
    cfg: AppConfig,
) -> Tuple[List[CampaignAnalysis], List[Dict]]:
    """Analyse each campaign independently; one bad campaign never aborts the batch."""
    analyses: List[CampaignAnalysis] = []
    skipped: List[Dict] = []
    for c in campaigns:
        try:
            analyses.append(analyse_campaign(c, cogs_pct, cfg))
        except DataQualityError as exc:
            logger.warning("Skipping campaign '%s': %s", c.name, exc)
            skipped.append({"name": c.name, "errors": [str(exc)]})
    return analyses, skipped


def plan_projections(
    analyses: Sequence[CampaignAnalysis],
    cfg: AppConfig,
    strategy: str = "recommended",
    overrides: Optional[Dict[str, float]] = None,
) -> List[CampaignProjection]:
    """Choose each campaign's adjustment according to the strategy and project it.

    * ``recommended`` — the recommender's suggestion per campaign
    * ``none`` / ``conservative`` / ``balanced`` / ``aggressive`` — bulk write
      of the mode's adjustment into the adjustment book
    * ``direction`` — global increase / decrease percentages from config

    Manual ``overrides`` are written into the adjustment book last, so they
    win over both the suggestion and the mode. They do not apply to
    ``direction``.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {strategy!r}; expected one of {STRATEGIES}")

    pcfg = cfg.projection
    cogs = pcfg.cogs_percentage

    if strategy == "direction":
        return scale_by_direction(
            analyses, cogs, pcfg.increase_percentage, pcfg.decrease_percentage, cfg
        )

    book = AdjustmentBook()
    if strategy in MODE_MULTIPLIERS:
        suggested = build_projections(analyses, cogs, None, cfg)
        book.apply_mode(suggested, strategy, cfg.recommendation.unprofitable_adjustment)
    for name, pct in (overrides or {}).items():
        book.set(name, pct)
    return build_projections(analyses, cogs, book, cfg)


def run_pipeline(
    input_path,
    output_dir,
    cfg: AppConfig,
    strategy: str = "recommended",
    include: str = "",
    exclude: str = "",
    overrides: Optional[Dict[str, float]] = None,
    campaigns: Optional[Sequence[Campaign]] = None,
    show: str = "all",
) -> Dict:
    """Execute the full pipeline. Returns summary dict.

    Steps:
    1. read_campaigns_csv      — unless ``campaigns`` is given (e.g. from the store)
    2. partition_campaigns     — data-quality check, invalid rows are skipped
    3. filter_campaigns        — include / exclude substrings
    4. analyse_campaigns       — curve → optimal zone → recommendation
    5. plan_projections        — adjustment per strategy, then projection
    6. summarize_portfolio     — current vs projected totals
    7. write projections.csv, curves.csv, report.md (``show`` and the
       configured row limit select which projections are written)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    cogs = cfg.projection.cogs_percentage

    if campaigns is None:
        campaigns = read_campaigns_csv(input_path)
    campaigns = list(campaigns)
    logger.info("Loaded %d campaign(s)", len(campaigns))

    valid, skipped = partition_campaigns(campaigns)
    selected = filter_campaigns(valid, include, exclude)
    analyses, failed = analyse_campaigns(selected, cogs, cfg)
    skipped.extend(failed)

    projections = plan_projections(analyses, cfg, strategy, overrides)
    portfolio = summarize_portfolio(
        [a.campaign for a in analyses],
        projections,
        cogs,
        cfg.projection.revenue_method,
    )
    shown = filter_projections(projections, show, cfg.projection.row_limit)

    counts = {"increase": 0, "decrease": 0, "optimal": 0}
    for a in analyses:
        counts[a.recommendation.recommendation] += 1

    summary = {
        "total_campaigns": len(campaigns),
        "filtered_out": len(valid) - len(selected),
        "analysed": len(analyses),
        "skipped": skipped,
        "strategy": strategy,
        "cogs_percentage": cogs,
        "recommendations": counts,
        "portfolio": portfolio.to_dict(),
        "message": (
            "Pipeline completed successfully."
            if analyses
            else "No campaigns left to analyse after validation and filtering."
        ),
    }

    write_projections_csv(shown, output_dir / "projections.csv")
    write_curves_csv(analyses, output_dir / "curves.csv")
    write_report(format_report(summary, shown), output_dir / "report.md")
    logger.info(
        "Analysed %d campaign(s), skipped %d; outputs in %s",
        len(analyses),
        len(skipped),
        output_dir,
    )
    return summary
