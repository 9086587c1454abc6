"""
CLI Entry Point
================
Command-line interface for deploying SharePoint app packages.
"""

from __future__ import annotations

import dataclasses
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from sppkg_deployer.config import LogLevel, RunMode, load_config
from sppkg_deployer.credentials import resolve_credential, service_principal_credential
from sppkg_deployer.engine.orchestrator import AppDeployer, DeploymentSession
from sppkg_deployer.errors import (
    ConfigError,
    EmptySelectionWarning,
    InvalidSiteUrlError,
    SharePointConnectionError,
    SppkgDeployError,
)
from sppkg_deployer.logging_config import setup_logging
from sppkg_deployer.urls import validate_site_url

console = Console()
err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_NOTHING_TO_DO = 3


def _collect_site_urls(site_urls: tuple[str, ...]) -> tuple[list[str], bool]:
    """Site URLs from the arguments, or one per line from piped stdin.

    The flag is true when the URLs came from stdin.
    """
    urls = [u.strip() for u in site_urls if u.strip()]
    piped = False
    if not urls and not sys.stdin.isatty():
        urls = [line.strip() for line in sys.stdin if line.strip()]
        piped = bool(urls)

    for url in urls:
        try:
            validate_site_url(url)
        except InvalidSiteUrlError as exc:
            raise click.BadParameter(str(exc), param_hint="SITE_URLS") from exc
    return urls, piped


@click.command()
@click.argument("config_path", type=click.Path(path_type=Path))
@click.argument("site_urls", nargs=-1)
@click.option("--username", "-u", default=None, help="Account to sign in with; only the password is prompted")
@click.option("--tenant-id", envvar="AZURE_TENANT_ID", default=None, help="Entra ID tenant ID (service principal)")
@click.option("--client-id", envvar="AZURE_CLIENT_ID", default=None, help="App registration ID (service principal)")
@click.option(
    "--client-secret",
    envvar="AZURE_CLIENT_SECRET",
    default=None,
    help="App registration secret (service principal auth)",
)
@click.option("--dry-run", is_flag=True, default=False, help="Show what would be deployed without connecting")
@click.option(
    "--log-level",
    envvar="SPPKG_LOG_LEVEL",
    type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
    default="INFO",
)
@click.option("--log-format", type=click.Choice(["console", "json"]), default="console")
def main(
    config_path: Path,
    site_urls: tuple[str, ...],
    username: str | None,
    tenant_id: str | None,
    client_id: str | None,
    client_secret: str | None,
    dry_run: bool,
    log_level: str,
    log_format: str,
) -> None:
    """Deploy SharePoint app packages listed in CONFIG_PATH.

    Without SITE_URLS, packages marked deployToTenant are published to the
    tenant app catalog. With SITE_URLS (arguments or piped, one per line),
    the remaining packages are installed in each site collection app catalog.

    Authentication is resolved in this order:
      1. --tenant-id / --client-id / --client-secret (or env vars)
      2. --username, prompting for the password
      3. prompting for username and password
    """
    setup_logging(level=log_level, log_format=log_format)
    urls, piped = _collect_site_urls(site_urls)

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        err_console.print(f"[red]Cannot load config:[/red] {exc}")
        sys.exit(EXIT_FAILURE)

    try:
        session = DeploymentSession.create(config, None, urls)
    except EmptySelectionWarning as exc:
        console.print(f"[yellow]WARNING:[/yellow] {exc}")
        sys.exit(EXIT_NOTHING_TO_DO)

    if dry_run:
        console.print("[yellow]DRY RUN mode. Nothing will be uploaded.[/yellow]\n")
    else:
        explicit = None
        if tenant_id and client_id and client_secret:
            explicit = service_principal_credential(tenant_id, client_id, client_secret)
        elif piped and not username:
            # stdin is exhausted; only the hidden password prompt reads the terminal
            raise click.UsageError(
                "Site URLs were read from stdin, so the username cannot be prompted. "
                "Pass --username or the service principal options."
            )
        credential = resolve_credential(explicit, username, client_id=config.client_id)
        session = dataclasses.replace(session, credential=credential)

    scope = "tenant app catalog" if session.mode is RunMode.TENANT else f"{len(session.targets)} site(s)"
    console.print(f"[bold]Deploying {len(session.files)} package(s) to {scope}[/bold]\n")

    deployer = AppDeployer(session, console=console, dry_run=dry_run)
    try:
        report = deployer.run()
    except SharePointConnectionError as exc:
        err_console.print(f"[red]Connection failed:[/red] {exc}")
        sys.exit(EXIT_FAILURE)
    except SppkgDeployError as exc:
        err_console.print(f"[red]Deployment failed:[/red] {exc}")
        sys.exit(EXIT_FAILURE)

    table = Table(title="Deployment Results")
    table.add_column("Target", style="cyan")
    table.add_column("Package")
    table.add_column("Status")
    table.add_column("App ID")

    for r in report.results:
        status_style = {
            "published": "green",
            "installed": "green",
            "already_installed": "yellow",
            "dry_run": "yellow",
        }.get(r.status, "white")
        table.add_row(r.target, r.file_name, f"[{status_style}]{r.status}[/{status_style}]", r.app_id or "-")

    console.print(table)
    console.print(
        f"\n[bold]Summary:[/bold] {report.count('published')} published, "
        f"{report.count('installed')} installed, {report.count('already_installed')} already installed "
        f"(total: {report.total})"
    )


if __name__ == "__main__":
    main()
