"""Tests for tagdeps.sources.github module."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from tagdeps import __version__
from tagdeps.config.schemas import ProjectSettings
from tagdeps.core.resolver import ResolutionTransportError
from tagdeps.sources.base import (
    ForbiddenError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
)
from tagdeps.sources.cache import ArchiveCache
from tagdeps.sources.github import GitHubSource, error_for_status


def tag_page(*names: str) -> bytes:
    return json.dumps([{"name": n, "commit": {"sha": "0" * 40}} for n in names]).encode()


def mock_response(body: bytes) -> MagicMock:
    response = MagicMock()
    response.__enter__.return_value.read.return_value = body
    return response


class TestGitHubSourceInit:
    """Tests for GitHubSource initialization."""

    def test_defaults(self):
        """Uses the public GitHub endpoints by default."""
        source = GitHubSource()

        assert source.kind == "github"
        assert source.api_url == "https://api.github.com"

    def test_strips_trailing_slash(self):
        """Base URLs are normalized."""
        source = GitHubSource(api_url="https://ghe.example.com/api/v3/")

        assert source.api_url == "https://ghe.example.com/api/v3"

    def test_from_settings(self):
        """Base URLs come from the manifest settings."""
        settings = ProjectSettings(
            github_api_url="http://localhost:8080", github_url="http://localhost:8081"
        )

        source = GitHubSource.from_settings(settings)

        assert source.api_url == "http://localhost:8080"
        assert source.archive_url("o/r", "v1.0.0").startswith("http://localhost:8081/o/r/")


class TestErrorForStatus:
    """Tests for error_for_status()."""

    @pytest.mark.parametrize(
        ("status", "error_class"),
        [
            (401, UnauthorizedError),
            (403, ForbiddenError),
            (404, NotFoundError),
            (500, TransportError),
            (502, TransportError),
        ],
    )
    def test_maps_status_codes(self, status: int, error_class: type):
        """Each status maps to its error class."""
        error = error_for_status(status, "failed", "https://example.com")

        assert type(error) is error_class
        assert error.status_code == status
        assert error.url == "https://example.com"


class TestMakeRequest:
    """Tests for GitHubSource._make_request()."""

    def test_sends_headers(self):
        """Sends a User-Agent and a bearer token."""
        source = GitHubSource()

        with patch("tagdeps.sources.github.urlopen", return_value=mock_response(b"ok")) as m:
            assert source._make_request("https://api.github.com/x", "tok", "application/json")

        request = m.call_args[0][0]
        assert request.get_header("User-agent") == f"tagdeps/{__version__}"
        assert request.get_header("Authorization") == "Bearer tok"
        assert request.get_header("Accept") == "application/json"

    def test_no_token_no_authorization(self):
        """Anonymous requests carry no Authorization header."""
        source = GitHubSource()

        with patch("tagdeps.sources.github.urlopen", return_value=mock_response(b"ok")) as m:
            source._make_request("https://api.github.com/x")

        assert m.call_args[0][0].get_header("Authorization") is None

    @pytest.mark.parametrize(
        ("status", "error_class"),
        [
            (401, UnauthorizedError),
            (403, ForbiddenError),
            (404, NotFoundError),
            (500, TransportError),
        ],
    )
    def test_http_errors(self, status: int, error_class: type):
        """HTTP errors become FetchError subclasses."""
        source = GitHubSource()
        url = "https://api.github.com/x"
        error = HTTPError(url, status, "failed", None, None)  # type: ignore[arg-type]

        with (
            patch("tagdeps.sources.github.urlopen", side_effect=error),
            pytest.raises(error_class),
        ):
            source._make_request("https://api.github.com/x")

    def test_connection_error(self):
        """Connection failures become TransportError."""
        source = GitHubSource()

        with (
            patch("tagdeps.sources.github.urlopen", side_effect=URLError("refused")),
            pytest.raises(TransportError, match="Failed to connect"),
        ):
            source._make_request("https://api.github.com/x")

    def test_timeout(self):
        """Timeouts become TransportError."""
        source = GitHubSource()

        with (
            patch("tagdeps.sources.github.urlopen", side_effect=TimeoutError()),
            pytest.raises(TransportError, match="timed out"),
        ):
            source._make_request("https://api.github.com/x")


class TestListTags:
    """Tests for GitHubSource.list_tags()."""

    def test_single_page(self):
        """Returns tag names from the API."""
        source = GitHubSource()

        with patch.object(source, "_make_request", return_value=tag_page("v1.0.0", "v0.9.0")) as m:
            tags = source.list_tags("acme/alpha", "tok")

        assert tags == ["v1.0.0", "v0.9.0"]
        url = m.call_args[0][0]
        assert url.startswith("https://api.github.com/repos/acme/alpha/tags?")
        assert m.call_args[0][1] == "tok"

    def test_follows_pagination(self):
        """Requests further pages while pages are full."""
        source = GitHubSource()
        first = tag_page(*[f"v1.0.{i}" for i in range(GitHubSource.PER_PAGE)])
        second = tag_page("v0.1.0")

        with patch.object(source, "_make_request", side_effect=[first, second]) as m:
            tags = source.list_tags("acme/alpha")

        assert len(tags) == GitHubSource.PER_PAGE + 1
        assert tags[-1] == "v0.1.0"
        assert "page=2" in m.call_args_list[1][0][0]

    def test_invalid_json(self):
        """Unparseable responses become TransportError."""
        source = GitHubSource()

        with (
            patch.object(source, "_make_request", return_value=b"<html>"),
            pytest.raises(TransportError),
        ):
            source.list_tags("acme/alpha")

    def test_unexpected_format(self):
        """Non-list responses become TransportError."""
        source = GitHubSource()

        with (
            patch.object(source, "_make_request", return_value=b'{"message": "hi"}'),
            pytest.raises(TransportError),
        ):
            source.list_tags("acme/alpha")


class TestResolveVersion:
    """Tests for GitHubSource.resolve_version()."""

    def test_resolves_range(self):
        """Resolves a requirement against the listed tags."""
        source = GitHubSource()
        page = tag_page("v2.0.0", "v1.2.3", "v1.0.0", "v0.9.0")

        with patch.object(source, "_make_request", return_value=page):
            resolved = source.resolve_version("acme/alpha", "^1.0.0")

        assert str(resolved.version) == "1.2.3"
        assert resolved.tag == "v1.2.3"

    def test_listing_failure(self):
        """A failed listing becomes ResolutionTransportError."""
        source = GitHubSource()

        with (
            patch.object(source, "_make_request", side_effect=UnauthorizedError("401")),
            pytest.raises(ResolutionTransportError),
        ):
            source.resolve_version("acme/alpha", "latest")


class TestFindTag:
    """Tests for GitHubSource.find_tag()."""

    def test_finds_tag_for_version(self):
        """Returns whichever tag name carries the version."""
        source = GitHubSource()

        with patch.object(source, "_make_request", return_value=tag_page("release-1.0.0", "v0.9")):
            assert source.find_tag("acme/alpha", "1.0.0") == "release-1.0.0"

    def test_unknown_version(self):
        """Returns None when no tag carries the version."""
        source = GitHubSource()

        with patch.object(source, "_make_request", return_value=tag_page("v1.0.0")):
            assert source.find_tag("acme/alpha", "2.0.0") is None


class TestFetchArchive:
    """Tests for GitHubSource.fetch_archive()."""

    def test_archive_urls(self):
        """Known tags are used directly; otherwise v-prefixed then bare."""
        source = GitHubSource()

        assert source.archive_urls("acme/alpha", "1.0.0", "release-1.0.0") == [
            "https://github.com/acme/alpha/archive/refs/tags/release-1.0.0.zip"
        ]
        assert source.archive_urls("acme/alpha", "1.0.0") == [
            "https://github.com/acme/alpha/archive/refs/tags/v1.0.0.zip",
            "https://github.com/acme/alpha/archive/refs/tags/1.0.0.zip",
        ]

    def test_falls_back_to_bare_tag(self):
        """A 404 on the v-prefixed tag tries the bare tag."""
        source = GitHubSource()
        responses = [NotFoundError("404", status_code=404), b"archive"]

        with patch.object(source, "_make_request", side_effect=responses) as m:
            archive = source.fetch_archive("alpha", "acme/alpha", "1.0.0")

        assert archive.data == b"archive"
        assert archive.url == "https://github.com/acme/alpha/archive/refs/tags/1.0.0.zip"
        assert m.call_count == 2

    def test_not_found_anywhere(self):
        """Raises NotFoundError when no candidate exists."""
        source = GitHubSource()

        with (
            patch.object(source, "_make_request", side_effect=NotFoundError("404")),
            pytest.raises(NotFoundError),
        ):
            source.fetch_archive("alpha", "acme/alpha", "1.0.0")

    def test_other_errors_propagate(self):
        """Errors other than 404 stop the download."""
        source = GitHubSource()

        with (
            patch.object(source, "_make_request", side_effect=ForbiddenError("403")) as m,
            pytest.raises(ForbiddenError),
        ):
            source.fetch_archive("alpha", "acme/alpha", "1.0.0")

        assert m.call_count == 1

    def test_uses_cache(self, temp_dir: Path):
        """A cached archive is served without any request."""
        cache = ArchiveCache(temp_dir / "cache")
        source = GitHubSource(cache=cache)

        with patch.object(source, "_make_request", return_value=b"archive") as m:
            first = source.fetch_archive("alpha", "acme/alpha", "1.0.0", tag="v1.0.0")
            second = source.fetch_archive("alpha", "acme/alpha", "1.0.0", tag="v1.0.0")

        assert m.call_count == 1
        assert second.from_cache is True
        assert second.data == first.data
        assert second.digest == first.digest
