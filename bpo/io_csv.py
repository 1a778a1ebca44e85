"""CSV read-write helpers and the Markdown run report."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd
from jinja2 import Template

from bpo.mappers import (
    REQUIRED_FIELDS,
    aggregate_by_campaign,
    curve_to_dataframe,
    map_dataframe_to_campaigns,
    normalize_dataframe,
    projections_to_dataframe,
    resolve_columns,
)
from bpo.schema import Campaign, CampaignAnalysis, CampaignProjection

_REPORT_TEMPLATE_PATH = Path(__file__).parent / "templates" / "report.md.j2"

PROJECTION_COLUMNS = [
    "name",
    "recommendation",
    "current_cost",
    "projected_cost",
    "percent_change",
    "current_profit",
    "projected_profit",
    "profit_change",
    "current_revenue",
    "projected_revenue",
    "current_conversions",
    "projected_conversions",
    "current_is",
    "projected_is",
    "optimal_min",
    "optimal_max",
    "is_high_is",
    "budget_gain",
    "rank_gain",
    "change_reason",
]


class InputSchemaError(ValueError):
    """Raised when the input CSV is missing required columns."""


def _validate_required_columns(df: pd.DataFrame) -> None:
    missing = REQUIRED_FIELDS - set(resolve_columns(df.columns))
    if not missing:
        return

    hints = {
        "name": "Add a 'Campaign' column with the campaign name.",
        "cost": "Add 'Cost' (spend in account currency).",
        "conv_value": "Add 'ConvValue' (conversion value / revenue).",
        "conversions": "Add 'Conversions'.",
    }
    missing_list = ", ".join(sorted(missing))
    detail = " | ".join(f"{m}: {hints.get(m, 'required')}" for m in sorted(missing))
    raise InputSchemaError(
        f"Input CSV is missing required column(s): {missing_list}. Suggestions: {detail}"
    )


def read_campaigns_frame(path: str | Path) -> pd.DataFrame:
    """Read + validate a campaign CSV into a normalized, one-row-per-campaign DataFrame."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    _validate_required_columns(df)
    return aggregate_by_campaign(normalize_dataframe(df))


def read_campaigns_csv(path: str | Path) -> List[Campaign]:
    """Read a Google Ads campaign export into Campaign records."""
    return map_dataframe_to_campaigns(read_campaigns_frame(path))


def write_projections_csv(projections: Sequence[CampaignProjection], path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    df = projections_to_dataframe(projections)
    for col in PROJECTION_COLUMNS:
        if col not in df.columns:
            df[col] = ""
    df = df[PROJECTION_COLUMNS]
    df.to_csv(p, index=False, encoding="utf-8")
    return p


def write_curves_csv(analyses: Sequence[CampaignAnalysis], path: str | Path) -> Path:
    """Write every campaign's curve in long format (one row per sampled spend)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    frames = [curve_to_dataframe(a.curve, a.campaign.name) for a in analyses]
    df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(
        columns=["campaign", "cost", "sales", "conv_value", "roas", "profit",
                 "marginal_roas", "aov", "impression_share"]
    )
    df.to_csv(p, index=False, encoding="utf-8")
    return p


def _load_report_template() -> Template:
    return Template(
        _REPORT_TEMPLATE_PATH.read_text(encoding="utf-8"),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def format_report(summary: Dict, projections: Sequence[CampaignProjection]) -> str:
    """Render the run report from the pipeline summary dict."""
    return _load_report_template().render(
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        summary=summary,
        portfolio=summary.get("portfolio") or {},
        skipped=summary.get("skipped") or [],
        projections=projections,
    )


def write_report(text: str, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p
