"""Mapping utilities between tabular exports and the internal Campaign schema."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List

import pandas as pd

from bpo.schema import Campaign, CampaignProjection, ProfitDataPoint

# Internal field → accepted header spellings (matched case-insensitively,
# ignoring spaces, dots, dashes and underscores).
COLUMN_ALIASES: Dict[str, List[str]] = {
    "name": ["campaign", "campaign_name", "name"],
    "cost": ["cost", "spend", "amount_spent"],
    "conv_value": ["convvalue", "conv_value", "conversion_value", "conversions_value", "revenue"],
    "clicks": ["clicks"],
    "conversions": ["conversions", "conv", "convs"],
    "impr_share": ["imprshare", "impr_share", "search_impression_share", "impression_share", "search_impr_share"],
    "lost_to_budget": ["losttobudget", "lost_to_budget", "search_lost_is_budget", "lost_is_budget"],
    "lost_to_rank": ["losttorank", "lost_to_rank", "search_lost_is_rank", "lost_is_rank"],
    "impressions": ["impressions", "impr"],
}

REQUIRED_FIELDS = {"name", "cost", "conv_value", "conversions"}
SHARE_FIELDS = ("impr_share", "lost_to_budget", "lost_to_rank")
SUM_FIELDS = ("cost", "conv_value", "clicks", "conversions", "impressions")

_PERCENT_RE = re.compile(r"^\s*[<>]?\s*(-?[\d.,]+)\s*%?\s*$")


def _key(header: str) -> str:
    return re.sub(r"[\s._\-()]+", "_", str(header).strip().lower()).strip("_")


def resolve_columns(columns: Iterable[str]) -> Dict[str, str]:
    """Return {internal_field: source_column} for every recognised header."""
    by_key = {_key(c): c for c in columns}
    out: Dict[str, str] = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in by_key:
                out[field] = by_key[alias]
                break
    return out


def _to_float(v: Any) -> float:
    try:
        if pd.isna(v):
            return 0.0
    except (TypeError, ValueError):
        pass
    if isinstance(v, str):
        v = v.replace(",", "").replace("$", "").strip()
        if v in ("", "--"):
            return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def _to_int(v: Any) -> int:
    return int(_to_float(v))


def to_share(v: Any) -> float:
    """Normalise an impression-share cell to a 0-1 fraction.

    Google Ads exports share as ``"45.23%"``, ``"< 10%"`` or ``"> 90%"``;
    bare numbers above 1 are read as percents.
    """
    if isinstance(v, str):
        m = _PERCENT_RE.match(v)
        if not m:
            return 0.0
        value = _to_float(m.group(1))
        return value / 100 if ("%" in v or value > 1) else value
    value = _to_float(v)
    return value / 100 if value > 1 else value


def map_record_to_campaign(record: Dict[str, Any]) -> Campaign:
    """Build a Campaign from a dict keyed by internal field names."""
    return Campaign(
        name=str(record.get("name", "") or "").strip(),
        cost=_to_float(record.get("cost", 0.0)),
        conv_value=_to_float(record.get("conv_value", 0.0)),
        clicks=_to_int(record.get("clicks", 0)),
        conversions=_to_float(record.get("conversions", 0.0)),
        impr_share=to_share(record.get("impr_share", 0.0)),
        lost_to_budget=to_share(record.get("lost_to_budget", 0.0)),
        lost_to_rank=to_share(record.get("lost_to_rank", 0.0)),
        impressions=_to_int(record.get("impressions", 0)),
    )


def normalize_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Rename recognised headers to internal field names and coerce types."""
    mapping = resolve_columns(df.columns)
    out = df[list(mapping.values())].rename(columns={v: k for k, v in mapping.items()}).copy()
    for field in COLUMN_ALIASES:
        if field not in out.columns:
            out[field] = "" if field == "name" else 0
    out["name"] = out["name"].fillna("").astype(str).str.strip()
    for field in SUM_FIELDS:
        out[field] = out[field].map(_to_float)
    for field in SHARE_FIELDS:
        out[field] = out[field].map(to_share)
    return out[list(COLUMN_ALIASES)]


def aggregate_by_campaign(df: pd.DataFrame) -> pd.DataFrame:
    """Collapse repeated rows (e.g. daily exports) into one row per campaign.

    Volume columns are summed; share columns keep the first row's value.
    """
    if df.empty or not df["name"].duplicated().any():
        return df
    agg = {f: "sum" for f in SUM_FIELDS}
    agg.update({f: "first" for f in SHARE_FIELDS})
    return df.groupby("name", sort=False, as_index=False).agg(agg)[list(COLUMN_ALIASES)]


def map_dataframe_to_campaigns(df: pd.DataFrame) -> List[Campaign]:
    return [map_record_to_campaign(r) for r in df.to_dict(orient="records")]


def projections_to_dataframe(projections: Iterable[CampaignProjection]) -> pd.DataFrame:
    return pd.DataFrame([p.to_dict() for p in projections])


def curve_to_dataframe(curve: Iterable[ProfitDataPoint], campaign: str = "") -> pd.DataFrame:
    df = pd.DataFrame([p.to_dict() for p in curve])
    if campaign:
        df.insert(0, "campaign", campaign)
    return df
