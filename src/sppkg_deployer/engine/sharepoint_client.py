"""
SharePoint App Catalog client
==============================
Thin wrapper around the SharePoint REST application lifecycle endpoints used
by the deployer. One client holds at most one open site connection.

API References:
  - Add package:       POST /_api/web/{catalog}/Add(overwrite=true, url='<file>')
  - Deploy package:    POST /_api/web/{catalog}/AvailableApps/GetById('<id>')/Deploy
  - Get app:           GET  /_api/web/sitecollectionappcatalog/AvailableApps/GetById('<id>')
  - Install app:       POST /_api/web/sitecollectionappcatalog/AvailableApps/GetById('<id>')/Install
  - Site catalog:      POST /_api/web/tenantappcatalog/SiteCollectionAppCatalogsSites/Add('<url>')

``{catalog}`` is ``tenantappcatalog`` or ``sitecollectionappcatalog``.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import quote, urlparse

import requests
import structlog

from sppkg_deployer.errors import (
    AppInstallError,
    AppLookupError,
    AppUploadError,
    CatalogAlreadyExistsError,
    CatalogCreationError,
    SharePointConnectionError,
)

if TYPE_CHECKING:
    from pathlib import Path

    from azure.core.credentials import TokenCredential

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 120
ODATA_JSON = "application/json;odata=nometadata"


class AppScope(str, Enum):
    """Catalog an app package is deployed to."""

    TENANT = "tenant"
    SITE = "site"

    @property
    def catalog(self) -> str:
        return "tenantappcatalog" if self is AppScope.TENANT else "sitecollectionappcatalog"


def _odata_literal(value: str) -> str:
    # OData string literals escape single quotes by doubling them
    return quote(value.replace("'", "''"), safe="/:.-_~")


def app_is_installed(app: dict[str, Any]) -> bool:
    """An app is installed on the connected site when it reports an installed version."""
    return bool(app.get("InstalledVersion"))


class SharePointClient:
    """
    Connects to one SharePoint site at a time and manages app packages there.

    Bearer tokens come from an ``azure.core`` ``TokenCredential`` scoped to the
    site's host. Calls are synchronous and never retried.
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.timeout = timeout
        self._session_factory = session_factory
        self._session: requests.Session | None = None
        self._site_url: str | None = None

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @property
    def site_url(self) -> str | None:
        return self._site_url

    @property
    def connected(self) -> bool:
        return self._session is not None

    def connect(self, url: str, credential: TokenCredential) -> None:
        """Authenticate against *url* and check the site answers."""
        if self.connected:
            raise RuntimeError(f"Already connected to {self._site_url}. Call disconnect() first.")

        site_url = url.rstrip("/")
        host = urlparse(site_url).netloc
        if not host:
            raise SharePointConnectionError(f"'{url}' is not an absolute URL", url=url)

        scope = f"https://{host}/.default"
        try:
            token = credential.get_token(scope)
        except Exception as exc:
            raise SharePointConnectionError(f"Authentication for {host} failed: {exc}", url=url) from exc

        session = self._session_factory()
        session.headers.update(
            {
                "Authorization": f"Bearer {token.token}",
                "Accept": ODATA_JSON,
            }
        )

        try:
            resp = session.request("GET", f"{site_url}/_api/web?$select=Url", timeout=self.timeout)
        except requests.RequestException as exc:
            session.close()
            raise SharePointConnectionError(f"Cannot reach {site_url}: {exc}", url=url) from exc

        if resp.status_code != 200:
            session.close()
            raise SharePointConnectionError(
                f"Connecting to {site_url} failed with HTTP {resp.status_code}: {resp.text[:300]}",
                url=url,
                status=resp.status_code,
            )

        self._session = session
        self._site_url = site_url
        logger.info("site_connected", url=site_url)

    def disconnect(self) -> None:
        """Close the current connection. Safe to call when not connected."""
        if self._session is None:
            return
        self._session.close()
        logger.info("site_disconnected", url=self._site_url)
        self._session = None
        self._site_url = None

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        if self._session is None or self._site_url is None:
            raise RuntimeError("Not connected. Call connect() first.")
        url = f"{self._site_url}/_api/{path}"
        logger.debug("sharepoint_request", method=method, url=url)
        return self._session.request(method, url, timeout=self.timeout, **kwargs)

    @staticmethod
    def _app_path(app_id: str, scope: AppScope) -> str:
        return f"web/{scope.catalog}/AvailableApps/GetById('{app_id}')"

    # ------------------------------------------------------------------
    # Catalog management
    # ------------------------------------------------------------------

    def create_site_app_catalog(self, url: str) -> None:
        """Create a site collection app catalog on *url*.

        Raises :class:`CatalogAlreadyExistsError` when the site has one.
        """
        path = f"web/tenantappcatalog/SiteCollectionAppCatalogsSites/Add('{_odata_literal(url)}')"
        try:
            resp = self._request("POST", path)
        except requests.RequestException as exc:
            raise CatalogCreationError(f"Creating app catalog on {url} failed: {exc}", url=url) from exc

        if resp.status_code in (200, 201, 204):
            logger.info("site_app_catalog_created", url=url)
            return

        body = resp.text[:300]
        if resp.status_code == 409 or "already" in body.lower():
            raise CatalogAlreadyExistsError(f"{url} already has an app catalog", url=url, status=resp.status_code)
        raise CatalogCreationError(
            f"Creating app catalog on {url} failed with HTTP {resp.status_code}: {body}",
            url=url,
            status=resp.status_code,
        )

    # ------------------------------------------------------------------
    # App lifecycle
    # ------------------------------------------------------------------

    def upload_app(
        self,
        path: Path,
        scope: AppScope,
        *,
        overwrite: bool = True,
        publish: bool = True,
        skip_feature_deployment: bool = False,
    ) -> str:
        """Upload a package to the catalog of *scope* and return its app id."""
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise AppUploadError(f"Cannot read package {path}: {exc}", url=str(path)) from exc

        add_path = (
            f"web/{scope.catalog}/Add(overwrite={str(overwrite).lower()},url='{_odata_literal(path.name)}')"
            "?$expand=ListItemAllFields"
        )
        try:
            resp = self._request(
                "POST",
                add_path,
                data=content,
                headers={"Content-Type": "application/octet-stream", "binaryStringRequestBody": "true"},
            )
        except requests.RequestException as exc:
            raise AppUploadError(f"Uploading {path.name} failed: {exc}", url=self._site_url or "") from exc

        if resp.status_code not in (200, 201):
            raise AppUploadError(
                f"Uploading {path.name} failed with HTTP {resp.status_code}: {resp.text[:300]}",
                url=self._site_url or "",
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise AppUploadError(
                f"Upload of {path.name} returned invalid JSON: {resp.text[:300]}", url=self._site_url or ""
            ) from exc
        if not isinstance(data, dict):
            raise AppUploadError(f"Upload of {path.name} returned an unexpected body", url=self._site_url or "")

        app_id = (data.get("ListItemAllFields") or {}).get("UniqueId") or data.get("UniqueId")
        if not app_id:
            raise AppUploadError(f"Upload of {path.name} returned no app id", url=self._site_url or "")
        logger.info("app_uploaded", file=path.name, scope=scope.value, app_id=app_id)

        if publish:
            self.publish_app(app_id, scope, skip_feature_deployment=skip_feature_deployment)
        return app_id

    def publish_app(self, app_id: str, scope: AppScope, *, skip_feature_deployment: bool = False) -> None:
        """Deploy (publish) an uploaded package so it becomes installable."""
        try:
            resp = self._request(
                "POST",
                f"{self._app_path(app_id, scope)}/Deploy",
                json={"skipFeatureDeployment": skip_feature_deployment},
                headers={"Content-Type": ODATA_JSON},
            )
        except requests.RequestException as exc:
            raise AppUploadError(f"Publishing app {app_id} failed: {exc}", url=self._site_url or "") from exc

        if resp.status_code not in (200, 204):
            raise AppUploadError(
                f"Publishing app {app_id} failed with HTTP {resp.status_code}: {resp.text[:300]}",
                url=self._site_url or "",
                status=resp.status_code,
            )
        logger.info("app_published", app_id=app_id, scope=scope.value, skip_feature_deployment=skip_feature_deployment)

    def get_app(self, app_id: str, scope: AppScope = AppScope.SITE) -> dict[str, Any]:
        """Return the catalog entry of *app_id*."""
        try:
            resp = self._request("GET", self._app_path(app_id, scope))
        except requests.RequestException as exc:
            raise AppLookupError(f"Looking up app {app_id} failed: {exc}", url=self._site_url or "") from exc

        if resp.status_code != 200:
            raise AppLookupError(
                f"Looking up app {app_id} failed with HTTP {resp.status_code}",
                url=self._site_url or "",
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise AppLookupError(f"App {app_id} lookup returned invalid JSON", url=self._site_url or "") from exc

    def install_app(self, app_id: str, scope: AppScope = AppScope.SITE) -> None:
        """Install an available app on the connected site."""
        try:
            resp = self._request("POST", f"{self._app_path(app_id, scope)}/Install")
        except requests.RequestException as exc:
            raise AppInstallError(f"Installing app {app_id} failed: {exc}", url=self._site_url or "") from exc

        if resp.status_code not in (200, 204):
            raise AppInstallError(
                f"Installing app {app_id} failed with HTTP {resp.status_code}: {resp.text[:300]}",
                url=self._site_url or "",
                status=resp.status_code,
            )
        logger.info("app_installed", app_id=app_id, url=self._site_url)
