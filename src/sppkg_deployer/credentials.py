"""
Credential resolution.

Exactly one path runs per invocation:
  1. an explicit credential supplied by the caller is used as-is;
  2. a known username only prompts for the password;
  3. otherwise both username and password are prompted.

The resulting credential is shared by every connection of the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import click

from sppkg_deployer.config import DEFAULT_CLIENT_ID
from sppkg_deployer.logging_config import get_logger

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = get_logger(__name__)

Prompt = Callable[..., Any]


def resolve_credential(
    credential: TokenCredential | None = None,
    username: str | None = None,
    *,
    client_id: str = DEFAULT_CLIENT_ID,
    prompt: Prompt = click.prompt,
) -> TokenCredential:
    """Return the credential used for every site connection of the run.

    A cancelled prompt raises :class:`click.Abort` and is not retried.
    """
    if credential is not None:
        logger.debug("credential_explicit", credential_type=type(credential).__name__)
        return credential

    if username:
        logger.debug("credential_prompt_password", username=username)
    else:
        username = prompt("Username")
        logger.debug("credential_prompt_username_password", username=username)
    password = prompt(f"Password for {username}", hide_input=True)

    from azure.identity import UsernamePasswordCredential

    return UsernamePasswordCredential(client_id=client_id, username=username, password=password)


def service_principal_credential(tenant_id: str, client_id: str, client_secret: str) -> TokenCredential:
    """Build the explicit credential used for unattended (CI/CD) runs."""
    from azure.identity import ClientSecretCredential

    logger.info("using_service_principal", client_id=client_id)
    return ClientSecretCredential(tenant_id=tenant_id, client_id=client_id, client_secret=client_secret)
