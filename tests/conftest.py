"""Test configuration and shared fixtures."""

import copy
import json
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from azure.core.credentials import AccessToken

from sppkg_deployer.config import DeploymentConfig, load_config

ROOT_URL = "https://contoso.sharepoint.com"
ADMIN_URL = "https://contoso-admin.sharepoint.com"

SAMPLE_CONFIG = {
    "rootSiteUrl": ROOT_URL,
    "adminSiteUrl": ADMIN_URL,
    "webparts": {
        "pathToFolder": "packages",
        "files": [
            {"fileName": "hello-world.sppkg", "deployToTenant": True},
            {"fileName": "team-news.sppkg", "deployToTenant": False},
            {"fileName": "org-chart.sppkg", "deployToTenant": True},
            {"fileName": "site-banner.sppkg", "deployToTenant": False},
        ],
    },
}


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Keep deployer settings and service principal secrets out of the tests."""
    for var in (
        "SPPKG_ROOT_SITE_URL",
        "SPPKG_ADMIN_SITE_URL",
        "SPPKG_CLIENT_ID",
        "SPPKG_LOG_LEVEL",
        "AZURE_TENANT_ID",
        "AZURE_CLIENT_ID",
        "AZURE_CLIENT_SECRET",
    ):
        monkeypatch.delenv(var, raising=False)

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_data() -> dict:
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a config dict (and its package files) and return the config path."""

    def _write(data: dict) -> Path:
        packages = tmp_path / "packages"
        packages.mkdir(exist_ok=True)
        for entry in data.get("webparts", {}).get("files", []):
            (packages / entry["fileName"]).write_bytes(b"PK\x03\x04sppkg")
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config_file(write_config, config_data: dict) -> Path:
    return write_config(config_data)


@pytest.fixture
def deployment_config(config_file: Path) -> DeploymentConfig:
    return load_config(config_file)


@pytest.fixture
def credential() -> MagicMock:
    """A TokenCredential stand-in that always hands out the same token."""
    cred = MagicMock(name="credential")
    cred.get_token.return_value = AccessToken("token-123", 4102444800)
    return cred
