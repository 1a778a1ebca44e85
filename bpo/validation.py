"""Validate campaign records before they reach the projection engine."""
from __future__ import annotations

import math
from typing import List

from bpo.schema import Campaign

# Slack allowed on impr_share + lost_to_budget + lost_to_rank before warning.
SHARE_SUM_TOLERANCE = 0.01


class DataQualityError(ValueError):
    """Raised when a campaign field makes the projection math undefined."""

    def __init__(self, field: str, value, campaign: str = "") -> None:
        self.field = field
        self.value = value
        self.campaign = campaign
        where = f" for campaign '{campaign}'" if campaign else ""
        super().__init__(f"{field} must be > 0{where} (got {value!r})")


def _is_positive(value: float) -> bool:
    return isinstance(value, (int, float)) and not math.isnan(value) and value > 0


def require_positive(field: str, value: float, campaign: str = "") -> None:
    """Raise DataQualityError unless value is a number > 0."""
    if not _is_positive(value):
        raise DataQualityError(field, value, campaign)


def check_fraction(value: float) -> bool:
    """Return True if value is a share within [0, 1]."""
    return not math.isnan(value) and 0.0 <= value <= 1.0


def check_share_sum(campaign: Campaign) -> bool:
    """Impression share plus both lost shares should not exceed 100%."""
    total = campaign.impr_share + campaign.lost_to_budget + campaign.lost_to_rank
    return total <= 1.0 + SHARE_SUM_TOLERANCE


def validate_campaign(
    campaign: Campaign,
    require_impression_share: bool = False,
) -> dict:
    """Return {'valid': bool, 'errors': [...], 'warnings': [...]}.

    Errors name the offending field; a campaign with errors must not be
    fed to the curve generators. Warnings are advisory only.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not _is_positive(campaign.cost):
        errors.append(f"cost must be > 0 (got {campaign.cost})")
    if not _is_positive(campaign.conversions):
        errors.append(f"conversions must be > 0 (got {campaign.conversions})")
    if campaign.conv_value < 0 or math.isnan(campaign.conv_value):
        errors.append(f"conv_value must be >= 0 (got {campaign.conv_value})")
    if require_impression_share and not _is_positive(campaign.impr_share):
        errors.append(f"impr_share must be > 0 (got {campaign.impr_share})")

    for name in ("impr_share", "lost_to_budget", "lost_to_rank"):
        if not check_fraction(getattr(campaign, name)):
            errors.append(f"{name} must be within 0-1 (got {getattr(campaign, name)})")

    if not errors and not check_share_sum(campaign):
        warnings.append(
            "impr_share + lost_to_budget + lost_to_rank exceeds 1 "
            f"({campaign.impr_share + campaign.lost_to_budget + campaign.lost_to_rank:.3f})"
        )

    return {"valid": len(errors) == 0, "errors": errors, "warnings": warnings}


def require_valid(campaign: Campaign, require_impression_share: bool = False) -> None:
    """Raise DataQualityError for the first zero/negative denominator field."""
    require_positive("cost", campaign.cost, campaign.name)
    require_positive("conversions", campaign.conversions, campaign.name)
    if require_impression_share:
        require_positive("impr_share", campaign.impr_share, campaign.name)
