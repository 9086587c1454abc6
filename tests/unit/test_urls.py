"""
Unit tests for site URL classification, normalisation and validation.
"""

import pytest

from sppkg_deployer.errors import InvalidSiteUrlError
from sppkg_deployer.urls import (
    SiteReferenceKind,
    classify_site_reference,
    normalize_site_url,
    validate_site_url,
)

ROOT = "https://contoso.sharepoint.com"


class TestClassify:
    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["/sites/foo", "sites/foo", "teams/bar", "/teams/bar", "/SITES/Foo"])
    def test_relative_site_paths(self, value: str) -> None:
        assert classify_site_reference(value).kind is SiteReferenceKind.RELATIVE_SITE_PATH

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value",
        [
            "https://contoso.sharepoint.com/sites/foo",
            "/sites/foo/bar",
            "teams/bar/subsite",
            "/sites/",
            "portals/hub",
        ],
    )
    def test_everything_else_is_absolute(self, value: str) -> None:
        assert classify_site_reference(value).kind is SiteReferenceKind.ABSOLUTE


class TestNormalize:
    @pytest.mark.unit
    def test_leading_slash(self) -> None:
        assert normalize_site_url("/sites/foo", ROOT) == "https://contoso.sharepoint.com/sites/foo"

    @pytest.mark.unit
    def test_no_leading_slash(self) -> None:
        assert normalize_site_url("sites/foo", ROOT) == "https://contoso.sharepoint.com/sites/foo"

    @pytest.mark.unit
    def test_teams_path(self) -> None:
        assert normalize_site_url("teams/bar", ROOT) == "https://contoso.sharepoint.com/teams/bar"

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["/sites/foo", "sites/foo"])
    def test_root_with_trailing_slash(self, value: str) -> None:
        assert normalize_site_url(value, f"{ROOT}/") == "https://contoso.sharepoint.com/sites/foo"

    @pytest.mark.unit
    def test_absolute_unchanged(self) -> None:
        url = "https://contoso.sharepoint.com/sites/foo"
        assert normalize_site_url(url, ROOT) == url

    @pytest.mark.unit
    def test_multi_segment_path_passes_through(self) -> None:
        assert normalize_site_url("/sites/foo/bar", ROOT) == "/sites/foo/bar"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value",
        [
            "/sites/foo",
            "sites/foo",
            "teams/bar",
            "https://contoso.sharepoint.com/sites/foo",
            "https://fabrikam.sharepoint.com/teams/x",
            "/sites/foo/bar",
        ],
    )
    def test_idempotent(self, value: str) -> None:
        once = normalize_site_url(value, ROOT)
        assert normalize_site_url(once, ROOT) == once


class TestValidate:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value",
        [
            "https://contoso.sharepoint.com/sites/foo",
            "https://contoso.sharepoint.com/teams/bar",
            "/sites/foo",
            "sites/foo",
            "teams/bar",
            "/sites/foo/bar",
        ],
    )
    def test_accepted(self, value: str) -> None:
        assert validate_site_url(value) == value

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value",
        [
            "https://example.com/sites/foo",
            "http://contoso.sharepoint.com/sites/foo",
            "https://contoso.sharepoint.com/",
            "sites/",
            "/foo/bar",
            "",
        ],
    )
    def test_rejected(self, value: str) -> None:
        with pytest.raises(InvalidSiteUrlError, match="is not a SharePoint site"):
            validate_site_url(value)

    @pytest.mark.unit
    def test_invalid_url_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_site_url("not-a-site")
