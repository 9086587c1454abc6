"""
Deployment Orchestrator
========================
Drives one deployment run: tenant mode publishes packages to the tenant app
catalog, site mode walks the target sites one by one and uploads and installs
packages in each site collection app catalog.

Per target the sequence is connect -> (site mode) ensure catalog -> upload
-> install if absent -> disconnect. A connection failure stops the whole
run; the remaining targets are not attempted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.console import Console

from sppkg_deployer.config import RunMode, require_selection
from sppkg_deployer.engine.sharepoint_client import AppScope, SharePointClient, app_is_installed
from sppkg_deployer.errors import AppLookupError, CatalogAlreadyExistsError, SharePointConnectionError
from sppkg_deployer.logging_config import get_logger
from sppkg_deployer.urls import normalize_site_url

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

    from sppkg_deployer.config import DeploymentConfig, WebpartFile

logger = get_logger(__name__)


class CatalogStatus(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class InstallState(str, Enum):
    INSTALLED = "installed"
    NOT_INSTALLED = "not_installed"


@dataclass(frozen=True)
class DeploymentSession:
    """Everything a run needs, resolved once before the first remote call."""

    config: DeploymentConfig
    credential: TokenCredential | None
    mode: RunMode
    files: tuple[WebpartFile, ...]
    targets: tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        config: DeploymentConfig,
        credential: TokenCredential | None,
        site_urls: list[str] | tuple[str, ...] = (),
    ) -> DeploymentSession:
        """Fix the run mode from *site_urls* and select the matching packages.

        Raises :class:`EmptySelectionWarning` when no package matches the mode.
        """
        mode = RunMode.for_targets(site_urls)
        files = require_selection(config, mode)
        return cls(
            config=config,
            credential=credential,
            mode=mode,
            files=tuple(files),
            targets=tuple(site_urls) if mode is RunMode.SITE else (),
        )


@dataclass
class DeploymentResult:
    """Result of deploying a single package to a single target."""

    target: str
    file_name: str
    status: str  # "published", "installed", "already_installed", "dry_run"
    app_id: str | None = None


@dataclass
class DeploymentReport:
    """Aggregated deployment report."""

    mode: RunMode
    results: list[DeploymentResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def targets(self) -> list[str]:
        seen: list[str] = []
        for r in self.results:
            if r.target not in seen:
                seen.append(r.target)
        return seen

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)


class AppDeployer:
    """
    Runs a :class:`DeploymentSession` against SharePoint.

    The client is exclusive: it is connected to exactly one target at a time
    and disconnected before the next target is processed.
    """

    def __init__(
        self,
        session: DeploymentSession,
        *,
        client: SharePointClient | None = None,
        console: Console | None = None,
        dry_run: bool = False,
    ) -> None:
        self.session = session
        self.client = client or SharePointClient()
        self.console = console or Console()
        self.dry_run = dry_run

    def run(self) -> DeploymentReport:
        report = DeploymentReport(mode=self.session.mode)
        logger.info(
            "deployment_started",
            mode=self.session.mode.value,
            files=[f.file_name for f in self.session.files],
            targets=len(self.session.targets) or 1,
            dry_run=self.dry_run,
        )

        if self.session.mode is RunMode.TENANT:
            self._deploy_tenant(report)
        else:
            for index, raw_url in enumerate(self.session.targets, 1):
                site_url = normalize_site_url(raw_url, self.session.config.root_site_url)
                logger.info("processing_site", index=index, total=len(self.session.targets), url=site_url)
                self._deploy_site(site_url, report)

        logger.info("deployment_complete", mode=self.session.mode.value, total=report.total)
        return report

    # ------------------------------------------------------------------
    # Tenant scope
    # ------------------------------------------------------------------

    def _deploy_tenant(self, report: DeploymentReport) -> None:
        admin_url = self.session.config.admin_site_url
        folder = self.session.config.package_folder

        if self.dry_run:
            for wp in self.session.files:
                self.console.print(f"[yellow]DRY RUN[/yellow] would publish {wp.file_name} to the tenant app catalog")
                report.results.append(DeploymentResult(admin_url, wp.file_name, "dry_run"))
            return

        self.console.print(f"Connecting to [bold]{admin_url}[/bold]")
        self._connect(admin_url)
        try:
            for wp in self.session.files:
                self.console.print(f"  Uploading {wp.file_name} to the tenant app catalog")
                app_id = self.client.upload_app(
                    wp.local_path(folder),
                    AppScope.TENANT,
                    overwrite=True,
                    publish=True,
                    skip_feature_deployment=True,
                )
                report.results.append(DeploymentResult(admin_url, wp.file_name, "published", app_id))
        finally:
            self.client.disconnect()

    # ------------------------------------------------------------------
    # Site scope
    # ------------------------------------------------------------------

    def _deploy_site(self, site_url: str, report: DeploymentReport) -> None:
        folder = self.session.config.package_folder

        if self.dry_run:
            for wp in self.session.files:
                self.console.print(f"[yellow]DRY RUN[/yellow] would install {wp.file_name} on {site_url}")
                report.results.append(DeploymentResult(site_url, wp.file_name, "dry_run"))
            return

        self.console.print(f"Connecting to [bold]{site_url}[/bold]")
        self._connect(site_url)
        try:
            self._ensure_site_catalog(site_url)
            for wp in self.session.files:
                self.console.print(f"  Uploading {wp.file_name}")
                app_id = self.client.upload_app(wp.local_path(folder), AppScope.SITE, overwrite=True, publish=True)

                if self._install_state(app_id) is InstallState.INSTALLED:
                    self.console.print(f"  {wp.file_name} is already installed on {site_url}")
                    report.results.append(DeploymentResult(site_url, wp.file_name, "already_installed", app_id))
                    continue

                self.console.print(f"  Installing {wp.file_name}")
                self.client.install_app(app_id, AppScope.SITE)
                report.results.append(DeploymentResult(site_url, wp.file_name, "installed", app_id))
        finally:
            self.client.disconnect()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _connect(self, url: str) -> None:
        try:
            self.client.connect(url, self.session.credential)
        except SharePointConnectionError as exc:
            logger.error("site_connection_failed", url=url, error=str(exc))
            raise

    def _ensure_site_catalog(self, site_url: str) -> CatalogStatus:
        try:
            self.client.create_site_app_catalog(site_url)
        except CatalogAlreadyExistsError:
            logger.debug("site_app_catalog_exists", url=site_url)
            return CatalogStatus.ALREADY_EXISTS
        return CatalogStatus.CREATED

    def _install_state(self, app_id: str) -> InstallState:
        try:
            app = self.client.get_app(app_id, AppScope.SITE)
        except AppLookupError as exc:
            logger.debug("app_lookup_failed", app_id=app_id, error=str(exc))
            return InstallState.NOT_INSTALLED
        if app_is_installed(app):
            return InstallState.INSTALLED
        return InstallState.NOT_INSTALLED
