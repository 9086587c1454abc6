"""
Deployment configuration.
Loads the JSON deployment config, applies environment overrides and selects
the webpart packages that belong to the active run mode.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sppkg_deployer.errors import ConfigParseError, ConfigReadError, EmptySelectionWarning

# PnP Management Shell, the public client most tenants already consented to
DEFAULT_CLIENT_ID = "31359c7f-bd7e-475c-86db-fdb8c937548e"


class RunMode(str, Enum):
    """Deployment scope, fixed for the whole run."""

    TENANT = "tenant"
    SITE = "site"

    @property
    def deploy_to_tenant(self) -> bool:
        return self is RunMode.TENANT

    @classmethod
    def for_targets(cls, site_urls: list[str] | tuple[str, ...]) -> RunMode:
        """Tenant mode when no site URL is given, site mode otherwise."""
        return cls.SITE if site_urls else cls.TENANT


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class WebpartFile(_FrozenModel):
    """One app package listed in the config."""

    file_name: str = Field(alias="fileName", min_length=1)
    deploy_to_tenant: bool = Field(alias="deployToTenant")

    def local_path(self, folder: Path) -> Path:
        return folder / self.file_name


class WebpartsConfig(_FrozenModel):
    """The ``webparts`` section: where packages live and which ones to deploy."""

    path_to_folder: Path = Field(alias="pathToFolder")
    files: tuple[WebpartFile, ...] = Field(default=())


class DeploymentConfig(_FrozenModel):
    """Root configuration, immutable for the run."""

    root_site_url: str = Field(alias="rootSiteUrl")
    admin_site_url: str = Field(alias="adminSiteUrl")
    client_id: str = Field(default=DEFAULT_CLIENT_ID, alias="clientId")
    webparts: WebpartsConfig

    @classmethod
    def from_json(cls, path: Path) -> DeploymentConfig:
        """Load configuration from a JSON file, with env var overrides."""
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigReadError(path, f"cannot read config file ({exc})") from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigParseError(path, f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc

        if not isinstance(data, dict):
            raise ConfigParseError(path, "top-level JSON value must be an object")

        data = cls._apply_env_overrides(data)
        data = cls._resolve_package_folder(data, path.parent)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigParseError(path, str(exc)) from exc

    @classmethod
    def _apply_env_overrides(cls, data: dict) -> dict:
        """Apply environment variable overrides to config data."""
        env_map = {
            "rootSiteUrl": "SPPKG_ROOT_SITE_URL",
            "adminSiteUrl": "SPPKG_ADMIN_SITE_URL",
            "clientId": "SPPKG_CLIENT_ID",
        }
        data = dict(data)
        for key, env_var in env_map.items():
            val = os.environ.get(env_var)
            if val:
                data[key] = val
        return data

    @staticmethod
    def _resolve_package_folder(data: dict, base_dir: Path) -> dict:
        # Relative package folders are relative to the config file, not the cwd
        webparts = data.get("webparts")
        if not isinstance(webparts, dict):
            return data
        folder = webparts.get("pathToFolder")
        if isinstance(folder, str) and folder and not Path(folder).is_absolute():
            data = dict(data)
            data["webparts"] = {**webparts, "pathToFolder": str((base_dir / folder).resolve())}
        return data

    @property
    def package_folder(self) -> Path:
        return self.webparts.path_to_folder


def load_config(config_path: Path) -> DeploymentConfig:
    """Load the deployment config from a JSON file with env overrides."""
    return DeploymentConfig.from_json(config_path)


def select_files(config: DeploymentConfig, mode: RunMode) -> list[WebpartFile]:
    """Return the webparts whose scope matches *mode*, in config order."""
    return [f for f in config.webparts.files if f.deploy_to_tenant == mode.deploy_to_tenant]


def require_selection(config: DeploymentConfig, mode: RunMode) -> list[WebpartFile]:
    """Like :func:`select_files` but raise when nothing is left to deploy."""
    selected = select_files(config, mode)
    if not selected:
        scope = "tenant" if mode.deploy_to_tenant else "site"
        raise EmptySelectionWarning(f"No webparts are configured for {scope} deployment. Nothing to do.")
    return selected
