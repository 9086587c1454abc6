"""
Error taxonomy for the deployer.

Pre-flight failures (config, site URL shape) are raised before any remote
call. Remote failures derive from :class:`SharePointError`; only
:class:`SharePointConnectionError` is treated as a dedicated hard stop, while
:class:`CatalogAlreadyExistsError` and :class:`AppLookupError` are absorbed by
the orchestrator.
"""

from __future__ import annotations


class SppkgDeployError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Pre-flight
# ---------------------------------------------------------------------------


class ConfigError(SppkgDeployError):
    """The deployment config could not be loaded."""

    def __init__(self, path: object, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ConfigReadError(ConfigError):
    """The config path could not be read."""


class ConfigParseError(ConfigError):
    """The config content is not valid JSON or misses required fields."""


class EmptySelectionWarning(SppkgDeployError, UserWarning):
    """No webpart matches the active run mode; there is nothing to deploy."""


class InvalidSiteUrlError(SppkgDeployError, ValueError):
    """A site URL given on the command line has an unsupported shape."""


# ---------------------------------------------------------------------------
# Remote service
# ---------------------------------------------------------------------------


class SharePointError(SppkgDeployError):
    """A SharePoint REST call failed."""

    def __init__(self, message: str, *, url: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class SharePointConnectionError(SharePointError):
    """Could not authenticate against or reach a site."""


class CatalogCreationError(SharePointError):
    """The site collection app catalog could not be created."""


class CatalogAlreadyExistsError(CatalogCreationError):
    """The site already has a site collection app catalog."""


class AppUploadError(SharePointError):
    """Uploading or publishing a package failed."""


class AppLookupError(SharePointError):
    """Querying an app in the catalog failed."""


class AppInstallError(SharePointError):
    """Installing an app on a site failed."""
