"""
Collectible Valuation Engine: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the database (schema and migrations applied idempotently).
  4. Execute the action through ``ValuationService``.
  5. Report the result to stdout with ``[OK]`` / ``[FAILED]``.

Install and run::

    pip install -e .
    valuation-engine --help
    valuation-engine init-db
    valuation-engine add-item --title "Super Mario 64" --category video_games --condition LOOSE
    valuation-engine link 1 6910 --name "Super Mario 64" --secondary "Nintendo 64"
    valuation-engine refresh 1
    valuation-engine consolidated 1 --json
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="valuation-engine",
    help="Multi-source market valuation for physical collectibles.",
    add_completion=False,
)

_CONFIG_HELP = "Path to TOML config file (default: config/default.toml)."


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from valuation_engine.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from valuation_engine.utils.logging import configure_logging
    configure_logging(config.logging, secrets=config.sources.credential_values())


def _setup(config_path: Optional[str]):
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    return config


@contextmanager
def _open_service(config) -> Iterator:
    """Yield a ``ValuationService`` over the configured database."""
    from valuation_engine.db.connection import get_connection
    from valuation_engine.db.migrations import run_migrations
    from valuation_engine.db.schema import apply_schema
    from valuation_engine.pricing.service import ValuationService

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        run_migrations(conn)
        yield ValuationService.from_connection(conn, config)


def _cents(value: Optional[int]) -> str:
    from valuation_engine.utils.money import format_cents
    return "-" if value is None else format_cents(value)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Initialize the SQLite database and apply the schema and migrations.

    Safe to run multiple times.
    """
    from valuation_engine.db.connection import get_connection
    from valuation_engine.db.migrations import run_migrations
    from valuation_engine.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _setup(config_path)
    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration and show which pricing sources are configured."""
    from valuation_engine.sources.registry import build_adapters

    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Consolidated TTL:  {config.cache.consolidated_ttl_hours}h")
    typer.echo(f"  Debug mode:        {config.debug}")
    typer.echo("  Pricing sources:")
    for adapter in build_adapters(config.sources):
        state = "configured" if adapter.is_available() else "not configured"
        typer.echo(f"    {adapter.provider.value:<14} {state}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("add-item")
def add_item(
    title: str = typer.Option(..., "--title", help="Item title."),
    category: str = typer.Option("other", "--category", help="video_games, trading_cards, sneakers, electronics, collectibles, other."),
    condition: str = typer.Option("OTHER", "--condition", help="NEW_SEALED, CIB, LOOSE, GRADED, OTHER."),
    value_cents: int = typer.Option(0, "--value-cents", help="Owner's own estimate, in cents."),
    catalog_id: Optional[str] = typer.Option(
        None, "--catalog-id", help="Link to this catalog product id (named after the title)."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Register a collectible to be valued."""
    from pydantic import ValidationError

    from valuation_engine.models.subject import Subject

    config = _setup(config_path)
    try:
        subject = Subject(
            title=title,
            category=category,
            condition=condition.upper(),
            current_value_cents=value_cents,
        )
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid item: {exc}", err=True)
        raise typer.Exit(code=1)

    with _open_service(config) as service:
        subject_id = service.subjects.insert(subject)
        if catalog_id:
            link_result = service.link_subject_to_catalog_entry(subject_id, catalog_id, subject.title)

    typer.echo(f"[OK] Added item {subject_id}: {subject.title}")
    if catalog_id:
        typer.echo(f"  {link_result.message} (catalog id {catalog_id})")


@app.command("list-items")
def list_items(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """List registered items with their current values."""
    config = _setup(config_path)
    with _open_service(config) as service:
        subjects = service.subjects.list_all()

    if not subjects:
        typer.echo("No items registered.")
        return
    for s in subjects:
        linked = f" [catalog {s.catalog_product_id}]" if s.catalog_product_id else ""
        typer.echo(
            f"  {s.subject_id:>4}  {s.title:<40} {s.condition.value:<10} "
            f"{_cents(s.current_value_cents):>12}  {s.value_source.value}{linked}"
        )


@app.command("refresh")
def refresh(
    item_id: int = typer.Argument(..., help="Item id."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Refresh an item's market value (cache first, then all applicable sources)."""
    config = _setup(config_path)
    with _open_service(config) as service:
        result = asyncio.run(service.refresh_valuation(item_id))

    typer.echo(result.message)
    if not result.success:
        typer.echo(f"[FAILED] Value unchanged: {_cents(result.value_cents)}")
        raise typer.Exit(code=1)

    typer.echo(f"  Value:      {_cents(result.value_cents)}")
    typer.echo(f"  Source:     {result.source.value if result.source else '-'}")
    typer.echo(f"  Confidence: {result.confidence if result.confidence is not None else '-'}")
    if result.trend is not None:
        typer.echo(f"  Trend:      {result.trend.value} (volatility {result.volatility.value if result.volatility else '-'})")
    for obs in result.observations:
        typer.echo(
            f"    {obs.provider.value:<14} {_cents(obs.price_cents):>12}  "
            f"w={obs.weight:.2f} conf={obs.confidence} n={obs.sample_size}"
        )
    typer.echo("[OK] Valuation refreshed.")


@app.command("consolidated")
def consolidated(
    item_id: int = typer.Argument(..., help="Item id."),
    as_json: bool = typer.Option(False, "--json", help="Print the valuation as JSON."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Show the consolidated multi-source valuation for an item."""
    config = _setup(config_path)
    with _open_service(config) as service:
        result = asyncio.run(service.get_consolidated_valuation(item_id))

    if not result.success or result.consolidated is None:
        typer.echo(f"[FAILED] {result.message}")
        raise typer.Exit(code=1)

    valuation = result.consolidated
    if as_json:
        typer.echo(valuation.model_dump_json(indent=2))
        return

    typer.echo(result.message)
    typer.echo(f"  Value:      {_cents(valuation.value_cents)}")
    typer.echo(f"  Confidence: {valuation.confidence}")
    typer.echo(f"  Trend:      {valuation.trend.value}  Volatility: {valuation.volatility.value}")
    if valuation.price_range is not None:
        typer.echo(f"  Range:      {valuation.price_range.display}")
    for obs in valuation.sources:
        typer.echo(
            f"    {obs.provider.value:<14} {_cents(obs.price_cents):>12}  "
            f"w={obs.weight:.2f} conf={obs.confidence}"
        )
    typer.echo("[OK]")


@app.command("link")
def link(
    item_id: int = typer.Argument(..., help="Item id."),
    catalog_id: str = typer.Argument(..., help="Catalog provider's product id."),
    name: str = typer.Option(..., "--name", help="Product display name."),
    secondary: Optional[str] = typer.Option(None, "--secondary", help="Platform / set / brand."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Link an item to a catalog product (clears its cached valuations)."""
    config = _setup(config_path)
    with _open_service(config) as service:
        result = service.link_subject_to_catalog_entry(item_id, catalog_id, name, secondary)

    if not result.success:
        typer.echo(f"[FAILED] {result.message}")
        raise typer.Exit(code=1)
    typer.echo(f"{result.message} (catalog entry {result.catalog_entry_id})")
    typer.echo(f"  Cache entries invalidated: {result.invalidated}")
    typer.echo("[OK] Linked.")


@app.command("search-catalog")
def search_catalog(
    query: str = typer.Argument(..., help="Search text."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Search the price catalog for products to link."""
    config = _setup(config_path)
    with _open_service(config) as service:
        hits = asyncio.run(service.search_catalog(query))

    if not hits:
        typer.echo("No catalog products found (is PRICECHARTING_API_TOKEN set?).")
        return
    for hit in hits:
        typer.echo(f"  {hit.provider_product_id:<10} {hit.display_name}  ({hit.secondary_name or '-'})")


@app.command("history")
def history(
    item_id: int = typer.Argument(..., help="Item id."),
    limit: int = typer.Option(50, "--limit", help="Max entries to show."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Show an item's valuation audit trail, most recent first."""
    from valuation_engine.utils.time_utils import utcnow

    config = _setup(config_path)
    with _open_service(config) as service:
        entries = service.valuation_history(item_id, limit)

    if not entries:
        typer.echo("No valuation history.")
        return
    now = utcnow()
    for e in entries:
        state = "live" if e.is_live(now) else "expired"
        typer.echo(
            f"  {e.fetched_at:%Y-%m-%d %H:%M}  {e.purpose_tag:<14} {_cents(e.value_cents):>12}  "
            f"conf={e.confidence if e.confidence is not None else '-'}  {state}"
        )


@app.command("override")
def override(
    item_id: int = typer.Argument(..., help="Item id."),
    cents: int = typer.Argument(..., help="New value in cents."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Manually set an item's value."""
    config = _setup(config_path)
    if cents < 0:
        typer.echo("[ERROR] Value must be >= 0.", err=True)
        raise typer.Exit(code=1)
    with _open_service(config) as service:
        subject = service.override_value(item_id, cents)

    if subject is None:
        typer.echo(f"[FAILED] Subject {item_id} not found")
        raise typer.Exit(code=1)
    typer.echo(
        f"[OK] {subject.title}: {_cents(subject.current_value_cents)} "
        f"(was {_cents(subject.original_value_cents)})"
    )


@app.command("cache-stats")
def cache_stats(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Show valuation cache occupancy."""
    config = _setup(config_path)
    with _open_service(config) as service:
        stats = service.cache_stats()

    typer.echo(f"  Total entries:     {stats.total_entries}")
    typer.echo(f"  Live entries:      {stats.live_entries}")
    typer.echo(f"  Distinct subjects: {stats.distinct_subjects}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
