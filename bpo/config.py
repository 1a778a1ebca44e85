"""Load and validate config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Tuning constants shared by the engine modules and the config defaults.
SCALING_EXPONENT = 0.4  # conversions ~ spend ** 0.4
RANK_EXPONENT = 0.25  # recovery of rank-limited impression share
NUM_POINTS = 100
MIN_SPEND_MULTIPLE = 0.1
MAX_SPEND_MULTIPLE = 3.0
MAX_IMPRESSION_SHARE = 0.9  # curve ceiling, fraction
PROFIT_THRESHOLD = 0.95  # optimal zone = profit >= 95% of max
HIGH_IS_THRESHOLD = 0.9
SIGNIFICANT_LOST_BUDGET = 0.05
UNPROFITABLE_ADJUSTMENT = -50
IS_CEILING_PCT = 90.0
IS_FLOOR_PCT = 1.0


@dataclass
class CurveConfig:
    num_points: int = NUM_POINTS
    min_spend_multiple: float = MIN_SPEND_MULTIPLE
    max_spend_multiple: float = MAX_SPEND_MULTIPLE
    scaling_exponent: float = SCALING_EXPONENT
    rank_exponent: float = RANK_EXPONENT
    max_impression_share: float = MAX_IMPRESSION_SHARE
    use_impression_share_curve: bool = True


@dataclass
class ZoneConfig:
    profit_threshold: float = PROFIT_THRESHOLD


@dataclass
class RecommendationConfig:
    high_is_threshold: float = HIGH_IS_THRESHOLD
    significant_lost_budget: float = SIGNIFICANT_LOST_BUDGET
    unprofitable_adjustment: int = UNPROFITABLE_ADJUSTMENT


@dataclass
class ProjectionConfig:
    cogs_percentage: float = 50.0
    increase_percentage: float = 5.0  # direction scaling, profitable campaigns
    decrease_percentage: float = 5.0  # direction scaling, unprofitable campaigns
    is_ceiling: float = IS_CEILING_PCT
    is_floor: float = IS_FLOOR_PCT
    revenue_method: str = "projected"  # "projected" | "legacy"
    row_limit: int = 0  # 0 = no limit


@dataclass
class StoreConfig:
    """SQLite campaign snapshot store."""

    enabled: bool = True
    path: str = "cache/campaigns.db"
    max_age_hours: float = 24.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = "logs"
    console: bool = True


@dataclass
class AppConfig:
    curve: CurveConfig = field(default_factory=CurveConfig)
    zone: ZoneConfig = field(default_factory=ZoneConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigError(ValueError):
    """Raised when config.yaml holds an unusable value."""


def _check(cfg: AppConfig) -> AppConfig:
    if not 0 <= cfg.projection.cogs_percentage <= 100:
        raise ConfigError(
            f"projection.cogs_percentage must be within 0-100, got {cfg.projection.cogs_percentage}"
        )
    if cfg.projection.revenue_method not in ("projected", "legacy"):
        raise ConfigError(
            f"projection.revenue_method must be 'projected' or 'legacy', "
            f"got {cfg.projection.revenue_method!r}"
        )
    if cfg.curve.num_points < 2:
        raise ConfigError("curve.num_points must be at least 2")
    if not 0 < cfg.zone.profit_threshold <= 1:
        raise ConfigError("zone.profit_threshold must be within (0, 1]")
    return cfg


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    p = Path(path)
    raw: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"{p} must contain a mapping of config sections, got {type(raw).__name__}"
            )

    return _check(
        AppConfig(
            curve=CurveConfig(**raw.get("curve", {})),
            zone=ZoneConfig(**raw.get("zone", {})),
            recommendation=RecommendationConfig(**raw.get("recommendation", {})),
            projection=ProjectionConfig(**raw.get("projection", {})),
            store=StoreConfig(**raw.get("store", {})),
            logging=LoggingConfig(**raw.get("logging", {})),
        )
    )
