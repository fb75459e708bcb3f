"""Command-line interface for manual synchronization operations."""

import sys
import click
from pydantic import ValidationError

from .utils.config import get_config
from .utils.exceptions import ConfigurationError, ConnectivityError, TransportError


def _build_reconciler():
    from .services.reconciler import StockReconciler
    return StockReconciler()


def _echo_result(result, verbose_errors: int = 10):
    if result.rejected:
        click.echo(click.style("⚠ A sync is already running; request rejected", fg="yellow", bold=True))
        return

    if result.success:
        click.echo(click.style("✓ Sync completed successfully!", fg="green", bold=True))
    else:
        click.echo(click.style("✗ Sync completed with errors", fg="red", bold=True))

    click.echo()
    click.echo(f"Total items:       {result.total_items}")
    click.echo(f"Checked:           {result.items_checked}")
    click.echo(f"In sync:           {result.in_sync_count}")
    click.echo(f"Not found locally: {result.not_found_count}")
    if result.dry_run:
        click.echo(click.style(f"Would update:      {result.updates_pending}", fg="yellow"))
        for update in result.updates[:verbose_errors]:
            click.echo(f"  {update.sku}: {update.previous_quantity} → {update.new_quantity}")
    else:
        click.echo(click.style(f"Updated:           {result.updates_applied}", fg="green"))
    click.echo(click.style(
        f"Failed:            {result.error_count}",
        fg="red" if result.error_count > 0 else None
    ))
    click.echo(f"Duration:          {result.duration:.2f}s")

    if result.errors:
        click.echo()
        click.echo(click.style(f"Errors ({len(result.errors)}):", fg="red", bold=True))
        for i, error in enumerate(result.errors[:verbose_errors], 1):
            click.echo(f"  {i}. {error.sku} [{error.stage}]: {error.message}")

        if len(result.errors) > verbose_errors:
            click.echo(f"  ... and {len(result.errors) - verbose_errors} more errors")
            click.echo("  Check logs/error.log for full details")


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """
    IPOS → WooCommerce Stock Synchronization CLI.

    Pushes local point-of-sale stock counts to the WooCommerce catalog.
    """
    pass


@cli.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without applying them"
)
def sync(dry_run: bool):
    """
    Run one full synchronization cycle and exit.

    Connections are tested first; the cycle does not start if either API
    is unreachable.
    """
    click.echo("╔════════════════════════════════════════════════════════╗")
    click.echo("║  IPOS → WooCommerce Stock Synchronization             ║")
    click.echo("╚════════════════════════════════════════════════════════╝")
    click.echo()

    if dry_run:
        click.echo(click.style("🔍 DRY RUN MODE - No changes will be made", fg="yellow", bold=True))
        click.echo()

    try:
        with _build_reconciler() as reconciler:
            reconciler.test_connections()
            result = reconciler.run_cycle(dry_run=dry_run)

        click.echo("─" * 60)
        _echo_result(result)
        click.echo("─" * 60)

        sys.exit(0 if result.success else 1)

    except (ConfigurationError, ValidationError) as e:
        click.echo(click.style(f"✗ Configuration error: {getattr(e, 'message', str(e))}", fg="red"), err=True)
        sys.exit(1)
    except ConnectivityError as e:
        click.echo(click.style(f"✗ {e.message}", fg="red"), err=True)
        sys.exit(1)
    except TransportError as e:
        click.echo(click.style(f"✗ Catalog fetch failed: {e.message}", fg="red"), err=True)
        sys.exit(1)


@cli.command("sync-sku")
@click.argument("sku")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without applying them"
)
def sync_sku(sku: str, dry_run: bool):
    """
    Synchronize a single product by SKU.

    SKU: Product SKU (local barcode) to synchronize
    """
    click.echo(f"Synchronizing SKU: {sku}")

    if dry_run:
        click.echo(click.style("🔍 DRY RUN MODE", fg="yellow"))

    click.echo()

    try:
        with _build_reconciler() as reconciler:
            result = reconciler.run_single(sku, dry_run=dry_run)

        if result.success:
            click.echo(click.style("✓ Sync successful!", fg="green", bold=True))

            if result.updates and dry_run:
                update = result.updates[0]
                click.echo(f"Would update {sku}: {update.previous_quantity} → {update.new_quantity}")
            elif result.updates_applied > 0:
                update = result.updates[0]
                click.echo(f"Updated {sku}: {update.previous_quantity} → {update.new_quantity}")
            elif result.not_found_count > 0:
                click.echo(f"Skipped {sku} (no stock found locally)")
            else:
                click.echo(f"Skipped {sku} (already in sync)")

        else:
            click.echo(click.style("✗ Sync failed", fg="red", bold=True))
            for error in result.errors:
                click.echo(click.style(f"Error: {error.message}", fg="red"))

        sys.exit(0 if result.success else 1)

    except (ConfigurationError, ValidationError) as e:
        click.echo(click.style(f"✗ Configuration error: {getattr(e, 'message', str(e))}", fg="red"), err=True)
        sys.exit(1)
    except TransportError as e:
        click.echo(click.style(f"✗ Error: {e.message}", fg="red"), err=True)
        sys.exit(1)


@cli.command("test-connection")
def test_connection():
    """
    Test connectivity to the WooCommerce and local APIs.

    Validates that credentials are correct and both APIs are reachable.
    """
    click.echo("Testing API connections...")
    click.echo()

    try:
        with _build_reconciler() as reconciler:
            try:
                results = reconciler.test_connections()
            except ConnectivityError as e:
                results = e.details
    except (ConfigurationError, ValidationError) as e:
        click.echo(click.style(f"✗ Configuration error: {getattr(e, 'message', str(e))}", fg="red"), err=True)
        sys.exit(1)

    labels = (("woocommerce", "WooCommerce REST API:"), ("local_api", "Local IPOS API:"))
    for key, label in labels:
        click.echo(label)
        if results[key]["success"]:
            click.echo(click.style("  ✓ Connected successfully", fg="green"))
        else:
            click.echo(click.style(f"  ✗ Connection failed: {results[key]['error']}", fg="red"))
        click.echo()

    if all(r["success"] for r in results.values()):
        click.echo(click.style("✓ All connections successful!", fg="green", bold=True))
        sys.exit(0)
    else:
        click.echo(click.style("⚠ Some connections failed", fg="yellow", bold=True))
        sys.exit(1)


@cli.command("config-info")
def config_info():
    """Display current configuration settings."""
    try:
        config = get_config()
    except ValidationError as e:
        click.echo(click.style(f"✗ Error loading config: {str(e)}", fg="red"), err=True)
        sys.exit(1)

    click.echo("Configuration Settings:")
    click.echo("=" * 60)
    click.echo()

    click.echo("Environment:")
    click.echo(f"  Environment:     {config.env.environment}")
    click.echo(f"  Log level:       {config.logging.level}")
    click.echo()

    click.echo("WooCommerce:")
    click.echo(f"  URL:             {config.env.woocommerce_url}")
    click.echo(f"  API version:     {config.woocommerce.api_version}")
    click.echo(f"  Consumer key:    {config.env.woocommerce_consumer_key[:6]}...")
    click.echo(f"  Consumer secret: {'*' * len(config.env.woocommerce_consumer_secret)}")
    auth_mode = "query string" if config.woocommerce.query_string_auth else "basic auth"
    click.echo(f"  Auth mode:       {auth_mode}")
    click.echo()

    click.echo("Local API:")
    click.echo(f"  Base URL:        {config.env.local_api_base_url}")
    click.echo(f"  Search endpoint: {config.local_api.search_endpoint}?{config.local_api.search_param}=")
    click.echo()

    click.echo("Sync Settings:")
    click.echo(f"  Batch size:      {config.sync.batch_size}")
    click.echo(f"  Max retries:     {config.sync.max_retries}")
    click.echo(f"  Write delay:     {config.woocommerce.write_delay}s")
    click.echo(f"  Interval:        {config.env.sync_interval_minutes} minutes")
    click.echo()


@cli.command()
def run():
    """Run the sync service with its periodic schedule (blocks)."""
    from .scheduler import main as scheduler_main
    scheduler_main()


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address")
@click.option("--port", type=int, default=None, help="Port (defaults to PORT setting)")
def serve(host: str, port):
    """Run the status server with the scheduler embedded."""
    import uvicorn

    uvicorn.run(
        "stock_sync.server:create_app",
        factory=True,
        host=host,
        port=port or get_config().env.port,
    )


if __name__ == "__main__":
    cli()
