"""CLI entry point for Budget Profit Optimizer."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import click

from bpo import __version__
from bpo.config import AppConfig, ConfigError, load_config
from bpo.io_csv import InputSchemaError, read_campaigns_csv, write_curves_csv
from bpo.logging_config import setup_logging
from bpo.pipeline import STRATEGIES, run_pipeline
from bpo.projection import PROJECTION_FILTERS, analyse_campaign
from bpo.store import CampaignStore
from bpo.validation import DataQualityError


def _load(config_path: str, cogs: Optional[float] = None) -> AppConfig:
    """Load config, apply the --cogs override and configure logging."""
    try:
        cfg = load_config(config_path)
    except (ConfigError, TypeError) as exc:
        raise click.ClickException(f"Invalid config {config_path}: {exc}")
    if cogs is not None:
        cfg.projection.cogs_percentage = cogs
    setup_logging(
        "bpo",
        log_level=cfg.logging.level,
        log_dir=cfg.logging.log_dir or None,
        console_output=cfg.logging.console,
    )
    return cfg


def _parse_adjustments(values: Tuple[str, ...]) -> Dict[str, float]:
    """Parse repeated ``NAME=PERCENT`` options."""
    out: Dict[str, float] = {}
    for item in values:
        name, sep, pct = item.rpartition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=PERCENT, got {item!r}", param_hint="--adjust")
        try:
            out[name.strip()] = float(pct)
        except ValueError:
            raise click.BadParameter(f"{pct!r} is not a number", param_hint="--adjust") from None
    return out


def _echo_summary(summary: dict, output_dir: str) -> None:
    counts = summary["recommendations"]
    current = summary["portfolio"]["current"]
    projected = summary["portfolio"]["projected"]
    click.echo("")
    click.echo("✅ Analysis complete!")
    click.echo(f"   Campaigns loaded:   {summary['total_campaigns']}")
    click.echo(f"   Campaigns analysed: {summary['analysed']}")
    click.echo(f"   Skipped (data):     {len(summary['skipped'])}")
    click.echo(
        f"   Recommendations:    increase={counts['increase']}  "
        f"decrease={counts['decrease']}  optimal={counts['optimal']}"
    )
    click.echo(
        f"   Spend:  {current['cost']:,.2f} → {projected['cost']:,.2f}"
    )
    click.echo(
        f"   Profit: {current['profit']:,.2f} → {projected['profit']:,.2f}"
    )
    click.echo(f"   Files written to: {output_dir}/")
    for s in summary["skipped"]:
        click.echo(f"⚠️  Skipped {s['name']!r}: {'; '.join(s['errors'])}", err=True)


def _open_store(cfg: AppConfig) -> CampaignStore:
    if not cfg.store.enabled:
        raise click.ClickException("Campaign store is disabled (store.enabled: false in config).")
    return CampaignStore(cfg.store.path, cfg.store.max_age_hours)


def _campaigns_from_store(cfg: AppConfig):
    store = _open_store(cfg)
    campaigns = store.load()
    if not campaigns:
        raise click.ClickException(
            f"No fresh campaign snapshot in {cfg.store.path} "
            f"(max age {cfg.store.max_age_hours:g}h). Run `bpo store save` first."
        )
    return campaigns


@click.group()
@click.version_option(version=__version__, prog_name="bpo")
def cli():
    """Budget Profit Optimizer — spend/profit projections for ad campaigns."""
    pass


@cli.command()
@click.option("--input", "input_path", default=None, help="Path to campaign CSV")
@click.option("--from-store", is_flag=True, help="Use the latest stored snapshot instead of --input")
@click.option("--out", "output_dir", default="output", help="Output directory")
@click.option("--cogs", type=click.FloatRange(0, 100), default=None, help="COGS percentage (0-100)")
@click.option(
    "--mode",
    type=click.Choice([s for s in STRATEGIES if s != "direction"]),
    default="recommended",
    show_default=True,
    help="recommended = engine suggestion per campaign; other values apply an optimization mode",
)
@click.option("--adjust", "adjust", multiple=True, metavar="NAME=PERCENT", help="Manual override, repeatable")
@click.option("--include", default="", help="Only campaigns whose name contains this text")
@click.option("--exclude", default="", help="Skip campaigns whose name contains this text")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Max campaigns in outputs (0 = all)")
@click.option("--show", type=click.Choice(PROJECTION_FILTERS), default="all", show_default=True, help="Which projections to write")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def run(
    input_path: Optional[str],
    from_store: bool,
    output_dir: str,
    cogs: Optional[float],
    mode: str,
    adjust: Tuple[str, ...],
    include: str,
    exclude: str,
    limit: Optional[int],
    show: str,
    config_path: str,
):
    """Analyse campaigns and project the recommended budget changes."""
    cfg = _load(config_path, cogs)
    if limit is not None:
        cfg.projection.row_limit = limit
    overrides = _parse_adjustments(adjust)

    if from_store:
        campaigns = _campaigns_from_store(cfg)
        click.echo(f"📦 Input:  snapshot in {cfg.store.path} ({len(campaigns)} campaigns)")
    elif input_path:
        campaigns = None
        click.echo(f"📂 Input:  {input_path}")
    else:
        raise click.UsageError("Provide --input or --from-store.")
    click.echo(f"📂 Output: {output_dir}")
    click.echo(f"   COGS: {cfg.projection.cogs_percentage:g}%  |  Mode: {mode}")

    try:
        summary = run_pipeline(
            input_path,
            output_dir,
            cfg,
            strategy=mode,
            include=include,
            exclude=exclude,
            overrides=overrides,
            campaigns=campaigns,
            show=show,
        )
    except (InputSchemaError, DataQualityError) as exc:
        raise click.ClickException(str(exc))

    _echo_summary(summary, output_dir)


@cli.command()
@click.option("--input", "input_path", required=True, help="Path to campaign CSV")
@click.option("--out", "output_dir", default="output", help="Output directory")
@click.option("--increase", type=click.FloatRange(0, 100), default=None, help="Percent increase for profitable campaigns")
@click.option("--decrease", type=click.FloatRange(0, 100), default=None, help="Percent decrease for unprofitable campaigns")
@click.option("--cogs", type=click.FloatRange(0, 100), default=None, help="COGS percentage (0-100)")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def scale(
    input_path: str,
    output_dir: str,
    increase: Optional[float],
    decrease: Optional[float],
    cogs: Optional[float],
    config_path: str,
):
    """Scale profitable campaigns up and unprofitable ones down by fixed percentages."""
    cfg = _load(config_path, cogs)
    if increase is not None:
        cfg.projection.increase_percentage = increase
    if decrease is not None:
        cfg.projection.decrease_percentage = decrease

    click.echo(
        f"📈 Increase profitable by {cfg.projection.increase_percentage:g}%, "
        f"decrease unprofitable by {cfg.projection.decrease_percentage:g}%"
    )
    try:
        summary = run_pipeline(input_path, output_dir, cfg, strategy="direction")
    except (InputSchemaError, DataQualityError) as exc:
        raise click.ClickException(str(exc))

    _echo_summary(summary, output_dir)


@cli.command()
@click.option("--input", "input_path", required=True, help="Path to campaign CSV")
@click.option("--campaign", "campaign_name", required=True, help="Campaign name (exact)")
@click.option("--cogs", type=click.FloatRange(0, 100), default=None, help="COGS percentage (0-100)")
@click.option("--out", "out_path", default=None, help="Optional CSV path for the curve points")
@click.option("--single-regime", is_flag=True, help="Ignore impression share and use the plain power-law curve")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def curve(
    input_path: str,
    campaign_name: str,
    cogs: Optional[float],
    out_path: Optional[str],
    single_regime: bool,
    config_path: str,
):
    """Show one campaign's profit curve, optimal zone and recommendation."""
    cfg = _load(config_path, cogs)
    if single_regime:
        cfg.curve.use_impression_share_curve = False

    try:
        campaigns = read_campaigns_csv(input_path)
    except InputSchemaError as exc:
        raise click.ClickException(str(exc))

    match = [c for c in campaigns if c.name == campaign_name]
    if not match:
        raise click.ClickException(f"Campaign {campaign_name!r} not found in {input_path}")

    try:
        analysis = analyse_campaign(match[0], cfg.projection.cogs_percentage, cfg)
    except DataQualityError as exc:
        raise click.ClickException(str(exc))

    zone = analysis.zone
    rec = analysis.recommendation
    click.echo(f"📊 {campaign_name}  ({len(analysis.curve)} points)")
    click.echo(f"   Current spend:  {analysis.campaign.cost:,.2f}")
    click.echo(f"   Optimal range:  {zone.start:,.2f} – {zone.end:,.2f}")
    click.echo(f"   Max profit:     {zone.max_profit:,.2f} at {zone.best_cost:,.2f}")
    click.echo(f"   Recommendation: {rec.recommendation} ({rec.adjustment_percent:+d}%)")
    click.echo(f"   {rec.detail}")

    if out_path:
        write_curves_csv([analysis], out_path)
        click.echo(f"   Curve written to {out_path}")


@cli.group("store")
def store_group():
    """Local campaign snapshot store."""
    pass


@store_group.command("save")
@click.option("--input", "input_path", required=True, help="Path to campaign CSV")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def store_save(input_path: str, config_path: str):
    """Save the campaigns in a CSV as the latest snapshot."""
    cfg = _load(config_path)
    try:
        campaigns = read_campaigns_csv(input_path)
    except InputSchemaError as exc:
        raise click.ClickException(str(exc))
    store = _open_store(cfg)
    snapshot_id = store.save(campaigns, source=input_path)
    click.echo(f"✅ Saved {len(campaigns)} campaigns as snapshot #{snapshot_id} in {cfg.store.path}")


@store_group.command("show")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def store_show(config_path: str):
    """Describe the latest snapshot."""
    cfg = _load(config_path)
    store = _open_store(cfg)
    info = store.latest()
    if info is None:
        click.echo(f"No snapshots in {cfg.store.path}")
        return
    state = "stale" if store.is_stale() else "fresh"
    click.echo(
        f"Snapshot #{info['id']}: {info['count']} campaigns from "
        f"{info['source'] or 'unknown source'}, saved {info['saved_at']:%Y-%m-%d %H:%M UTC} ({state})"
    )


@store_group.command("clear")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
def store_clear(config_path: str):
    """Delete all stored snapshots."""
    cfg = _load(config_path)
    removed = _open_store(cfg).clear()
    click.echo(f"🗑️  Removed {removed} snapshot(s)")


if __name__ == "__main__":
    cli()
