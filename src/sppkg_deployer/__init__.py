"""Deploy SharePoint Framework app packages to tenant and site collection app catalogs."""

from sppkg_deployer.config import DeploymentConfig, RunMode, WebpartFile, load_config
from sppkg_deployer.engine.orchestrator import AppDeployer, DeploymentReport, DeploymentSession

__version__ = "0.1.0"

__all__ = [
    "AppDeployer",
    "DeploymentConfig",
    "DeploymentReport",
    "DeploymentSession",
    "RunMode",
    "WebpartFile",
    "load_config",
]
