"""GitHub source: tags from the REST API, archives from tag ZIP downloads."""

from __future__ import annotations

import json
import logging
import ssl
from typing import TYPE_CHECKING, Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from tagdeps import __version__
from tagdeps.sources import register_source
from tagdeps.sources.base import (
    FetchError,
    ForbiddenError,
    NotFoundError,
    SourceClient,
    TransportError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from tagdeps.config.schemas import ProjectSettings
    from tagdeps.sources.cache import ArchiveCache

logger = logging.getLogger(__name__)


def error_for_status(status_code: int, message: str, url: str) -> FetchError:
    """Map an HTTP status code to the matching FetchError subclass."""
    if status_code == 401:
        return UnauthorizedError(message, url=url, status_code=status_code)
    if status_code == 403:
        return ForbiddenError(message, url=url, status_code=status_code)
    if status_code == 404:
        return NotFoundError(message, url=url, status_code=status_code)
    return TransportError(message, url=url, status_code=status_code)


@register_source("github")
class GitHubSource(SourceClient):
    """Source client for repositories hosted on GitHub.

    Tags are listed through the REST API
    (``{api}/repos/{owner}/{name}/tags``) and archives are downloaded from
    ``{web}/{owner}/{name}/archive/refs/tags/{tag}.zip``. Every request is a
    single attempt; a supplied token is sent as a bearer credential.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    PER_PAGE = 100

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        web_url: str = "https://github.com",
        cache: ArchiveCache | None = None,
        timeout: int | None = None,
    ):
        """Initialize the GitHub source.

        Args:
            api_url: Base URL of the REST API
            web_url: Base URL archive downloads are served from
            cache: Optional archive cache
            timeout: Request timeout in seconds (default: 30)
        """
        super().__init__(cache)
        self._api_url = api_url.rstrip("/")
        self._web_url = web_url.rstrip("/")
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._ssl_context = ssl.create_default_context()

    @classmethod
    def from_settings(
        cls, settings: ProjectSettings, cache: ArchiveCache | None = None
    ) -> GitHubSource:
        return cls(api_url=settings.github_api_url, web_url=settings.github_url, cache=cache)

    @property
    def kind(self) -> str:
        return "github"

    @property
    def api_url(self) -> str:
        """Get the REST API base URL."""
        return self._api_url

    def _headers(self, token: str | None, accept: str | None = None) -> dict[str, str]:
        headers = {"User-Agent": f"tagdeps/{__version__}"}
        if accept:
            headers["Accept"] = accept
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _make_request(self, url: str, token: str | None = None, accept: str | None = None) -> bytes:
        """Make a single GET request.

        Args:
            url: URL to request
            token: Optional bearer token
            accept: Optional Accept header

        Returns:
            Response body as bytes

        Raises:
            FetchError: If the request fails
        """
        logger.debug("GET %s", url)
        request = Request(url, method="GET")
        for key, value in self._headers(token, accept).items():
            request.add_header(key, value)

        try:
            with urlopen(request, timeout=self._timeout, context=self._ssl_context) as response:
                result: bytes = response.read()
                logger.debug("Request successful, received %d bytes", len(result))
                return result
        except HTTPError as e:
            logger.debug("HTTP error %d: %s for %s", e.code, e.reason, url)
            raise error_for_status(e.code, f"HTTP {e.code}: {e.reason} for {url}", url) from e
        except URLError as e:
            raise TransportError(f"Failed to connect to {url}: {e.reason}", url=url) from e
        except TimeoutError as e:
            raise TransportError(f"Request timed out for {url}", url=url) from e

    def list_tags(self, repo: str, token: str | None = None) -> list[str]:
        """List all tag names of a repository, following pagination.

        Raises:
            FetchError: If any page cannot be retrieved or parsed
        """
        tags: list[str] = []
        page = 1
        while True:
            url = f"{self.api_url}/repos/{repo}/tags?per_page={self.PER_PAGE}&page={page}"
            content = self._make_request(url, token, accept="application/vnd.github+json")
            try:
                data: Any = json.loads(content.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise TransportError(f"Invalid JSON in tag listing: {e}", url=url) from e
            if not isinstance(data, list):
                raise TransportError("Unexpected tag listing format", url=url)

            tags.extend(item["name"] for item in data if isinstance(item, dict) and "name" in item)
            if len(data) < self.PER_PAGE:
                break
            page += 1

        logger.debug("Found %d tag(s) in %s", len(tags), repo)
        return tags

    def archive_url(self, repo: str, tag: str) -> str:
        """Archive download URL for one tag."""
        return f"{self._web_url}/{repo}/archive/refs/tags/{quote(tag, safe='')}.zip"

    def archive_urls(self, repo: str, version: str, tag: str | None = None) -> list[str]:
        """Candidate archive URLs: the known tag, else ``v<version>`` then ``<version>``."""
        if tag:
            return [self.archive_url(repo, tag)]
        return [self.archive_url(repo, f"v{version}"), self.archive_url(repo, version)]

    def download(self, url: str, token: str | None = None) -> bytes:
        """Download an archive."""
        return self._make_request(url, token)
