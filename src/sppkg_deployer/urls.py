"""
Site URL handling.

Site references given on the command line are either absolute URLs or
server-relative site paths such as ``/sites/foo`` or ``teams/bar``. Only
single-segment site paths are treated as relative; anything else is passed
through untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from sppkg_deployer.errors import InvalidSiteUrlError

RELATIVE_SITE_PATH = re.compile(r"^/?(sites|teams)/[^/]+$", re.IGNORECASE)
ACCEPTED_SITE_URL = re.compile(r"^(https://[^/]+\.sharepoint\.com/|/)?(sites|teams)/.+$", re.IGNORECASE)


class SiteReferenceKind(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE_SITE_PATH = "relative_site_path"


@dataclass(frozen=True)
class SiteReference:
    """A classified site reference."""

    value: str
    kind: SiteReferenceKind

    @property
    def has_leading_slash(self) -> bool:
        return self.value.startswith("/")


def classify_site_reference(value: str) -> SiteReference:
    """Tag *value* as a relative site path or an absolute URL.

    ``/sites/foo/bar`` has more than one segment after the managed path and
    is tagged ``ABSOLUTE``, so it passes through normalisation unchanged.
    """
    if RELATIVE_SITE_PATH.match(value):
        return SiteReference(value, SiteReferenceKind.RELATIVE_SITE_PATH)
    return SiteReference(value, SiteReferenceKind.ABSOLUTE)


def normalize_site_url(value: str, root_url: str) -> str:
    """Turn a relative site path into an absolute URL under *root_url*."""
    ref = classify_site_reference(value)
    if ref.kind is SiteReferenceKind.ABSOLUTE:
        return ref.value
    separator = "" if ref.has_leading_slash else "/"
    return f"{root_url.rstrip('/')}{separator}{ref.value}"


def validate_site_url(value: str) -> str:
    """Reject site URLs that are neither a SharePoint site URL nor a site path."""
    if not ACCEPTED_SITE_URL.match(value):
        raise InvalidSiteUrlError(
            f"'{value}' is not a SharePoint site. Expected https://<tenant>.sharepoint.com/sites/<name>, "
            "/sites/<name> or teams/<name>."
        )
    return value
