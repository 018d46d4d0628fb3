"""CLI for CoreBridge license administration.

Commands run against the configured database directly, without the HTTP server.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click
import httpx

from corebridge_licensing.config import load_config
from corebridge_licensing.context import LicensingContext, build_context
from corebridge_licensing.errors import LicensingError

T = TypeVar("T")


def _run(config_path: str | None, action: Callable[[LicensingContext], Awaitable[T]]) -> T:
    async def _main() -> T:
        context = build_context(load_config(config_path))
        await context.start()
        try:
            return await action(context)
        finally:
            await context.close()

    try:
        return asyncio.run(_main())
    except LicensingError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--config", "config_path", default=None, help="Path to a YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """CoreBridge plugin license administration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command("issue")
@click.argument("plugin_id")
@click.option("--email", "customer_email", required=True, help="Customer email")
@click.option("--name", "customer_name", required=True, help="Customer name")
@click.option(
    "--type",
    "license_type",
    default="1-year",
    type=click.Choice(["1-year", "3-year", "5-year", "perpetual"]),
    help="License duration",
)
@click.option("--max-activations", default=1, show_default=True, help="Machine slots")
@click.pass_context
def issue(
    ctx: click.Context,
    plugin_id: str,
    customer_email: str,
    customer_name: str,
    license_type: str,
    max_activations: int,
) -> None:
    """Issue a new license and print its key."""
    license = _run(ctx.obj["config_path"], lambda c: c.issuer.issue(
        plugin_id, customer_name, customer_email, license_type, max_activations
    ))
    click.echo(f"License issued: {license.license_key}")
    click.echo(f"ID: {license.id}  Expires: {license.expires_at.date().isoformat()}")


@cli.command("validate")
@click.argument("license_key")
@click.argument("plugin_id")
@click.option("--machine", "machine_id", default=None, help="Machine id to activate")
@click.pass_context
def validate(ctx: click.Context, license_key: str, plugin_id: str, machine_id: str | None) -> None:
    """Validate a key, activating a machine when one is given."""
    verdict = _run(
        ctx.obj["config_path"], lambda c: c.engine.validate(license_key, plugin_id, machine_id)
    )
    if not verdict.valid:
        click.echo(f"Invalid: {verdict.message}", err=True)
        ctx.exit(2)
    click.echo(
        f"Valid ({verdict.days_remaining} days remaining, "
        f"{verdict.activation_count}/{verdict.max_activations} activations)"
    )


@cli.command("list")
@click.option("--status", default=None, help="Filter by status")
@click.option("--plugin", "plugin_id", default=None, help="Filter by plugin id")
@click.option("--page", default=1, show_default=True)
@click.option("--limit", default=50, show_default=True)
@click.pass_context
def list_licenses(
    ctx: click.Context, status: str | None, plugin_id: str | None, page: int, limit: int
) -> None:
    """List licenses, newest first."""
    result = _run(ctx.obj["config_path"], lambda c: c.administrator.list_licenses(
        status=status, plugin_id=plugin_id, page=page, limit=limit
    ))
    for lic in result.items:
        click.echo(
            f"{lic.id}  {lic.plugin_id:<24} {lic.customer_email:<32} {lic.license_type:<9} "
            f"{lic.status:<9} {lic.expires_at.date().isoformat()}  "
            f"{lic.activation_count}/{lic.max_activations}"
        )
    click.echo(f"Page {result.page}/{max(result.pages, 1)} ({result.total} total)")


@cli.command("revoke")
@click.argument("license_id")
@click.option("--reason", default="", help="Reason recorded in the license metadata")
@click.option("--actor", default="cli", show_default=True)
@click.pass_context
def revoke(ctx: click.Context, license_id: str, reason: str, actor: str) -> None:
    """Revoke a license and all of its activations."""
    result = _run(
        ctx.obj["config_path"],
        lambda c: c.administrator.revoke(license_id, reason=reason, actor=actor),
    )
    click.echo(
        f"License {result.license_id} revoked ({result.revoked_activations} activations revoked)"
    )


@cli.command("suspend")
@click.argument("license_id")
@click.option("--reason", default="", help="Reason recorded in the license metadata")
@click.option("--actor", default="cli", show_default=True)
@click.pass_context
def suspend(ctx: click.Context, license_id: str, reason: str, actor: str) -> None:
    """Suspend an active license."""
    license = _run(
        ctx.obj["config_path"],
        lambda c: c.administrator.suspend(license_id, reason=reason, actor=actor),
    )
    click.echo(f"License {license.id} is {license.status}")


@cli.command("scan")
@click.pass_context
def scan(ctx: click.Context) -> None:
    """Run the expiration scan once and print the notices."""
    notices = _run(ctx.obj["config_path"], lambda c: c.scanner.scan())
    if not notices:
        click.echo("No licenses at an expiration threshold today.")
        return
    for notice in notices:
        lic = notice.license
        click.echo(
            f"{notice.days_until_expiry:>3}d  {lic.id}  {lic.plugin_id}  "
            f"{lic.customer_email}  {lic.expires_at.date().isoformat()}"
        )


@cli.command("sync-catalog")
@click.pass_context
def sync_catalog(ctx: click.Context) -> None:
    """Pull the plugin catalog from the core API."""
    try:
        written = _run(ctx.obj["config_path"], lambda c: c.catalog.sync())
    except (httpx.HTTPError, ValueError) as e:
        raise click.ClickException(f"Catalog sync failed: {e}") from e
    click.echo(f"Plugin catalog synced: {written} plugins")


@cli.command("serve")
def serve() -> None:
    """Run the HTTP server."""
    from corebridge_licensing.main import main

    main()


if __name__ == "__main__":
    cli()
