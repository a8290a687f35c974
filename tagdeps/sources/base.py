"""Abstract base class for archive sources."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tagdeps.core.resolver import (
    ResolutionTransportError,
    ResolvedVersion,
    parse_tag_versions,
    select_version,
)
from tagdeps.utils.filesystem import compute_digest

if TYPE_CHECKING:
    from tagdeps.config.schemas import ProjectSettings
    from tagdeps.sources.cache import ArchiveCache

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Error retrieving data from a source."""

    kind = "fetch-error"

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class UnauthorizedError(FetchError):
    """The source rejected the credential (or its absence)."""

    kind = "unauthorized"


class ForbiddenError(FetchError):
    """The credential is valid but lacks access."""

    kind = "forbidden"


class NotFoundError(FetchError):
    """The requested resource does not exist."""

    kind = "not-found"


class TransportError(FetchError):
    """Connection failure, timeout, or unexpected HTTP status."""

    kind = "transport"


@dataclass
class FetchedArchive:
    """Archive bytes for one resolved version."""

    name: str
    version: str
    data: bytes
    digest: str
    url: str | None = None
    from_cache: bool = False


class SourceClient(ABC):
    """Abstract base class for archive sources.

    A source knows how to list a repository's tags and how to download the
    archive published for one tag. On top of those primitives every source
    exposes the same two capabilities the installer uses:
    ``resolve_version`` and ``fetch_archive``.
    """

    def __init__(self, cache: ArchiveCache | None = None):
        self._cache = cache

    @classmethod
    def from_settings(
        cls, settings: ProjectSettings, cache: ArchiveCache | None = None
    ) -> SourceClient:
        """Create a client configured from the manifest settings."""
        return cls(cache=cache)

    @property
    @abstractmethod
    def kind(self) -> str:
        """Get the source kind this client handles (e.g., "github")."""
        ...

    @abstractmethod
    def list_tags(self, repo: str, token: str | None = None) -> list[str]:
        """List the tag names published by a repository.

        Raises:
            FetchError: If the listing cannot be retrieved
        """
        ...

    @abstractmethod
    def archive_urls(self, repo: str, version: str, tag: str | None = None) -> list[str]:
        """Candidate archive URLs for a version, tried in order."""
        ...

    @abstractmethod
    def download(self, url: str, token: str | None = None) -> bytes:
        """Download raw bytes from a URL.

        Raises:
            FetchError: If the download fails
        """
        ...

    def resolve_version(
        self, repo: str, requirement: str, token: str | None = None
    ) -> ResolvedVersion:
        """Resolve a requirement against the repository's current tags.

        Raises:
            ResolutionError: If no published version can be selected
        """
        logger.info("Resolving '%s' for %s", requirement, repo)
        try:
            tags = self.list_tags(repo, token)
        except FetchError as e:
            raise ResolutionTransportError(
                f"Failed to list tags for {repo}: {e}", repo=repo, requirement=requirement
            ) from e
        return select_version(tags, requirement, repo=repo)

    def find_tag(self, repo: str, version: str, token: str | None = None) -> str | None:
        """Find the tag that carries an exact version.

        Raises:
            FetchError: If the tags cannot be listed
        """
        for parsed, tag in parse_tag_versions(self.list_tags(repo, token)):
            if str(parsed) == version:
                return tag
        return None

    def fetch_archive(
        self,
        name: str,
        repo: str,
        version: str,
        token: str | None = None,
        tag: str | None = None,
    ) -> FetchedArchive:
        """Get the archive for a resolved version, from cache when possible.

        Args:
            name: Dependency name (part of the cache key)
            repo: Repository identifier
            version: Resolved exact version
            token: Optional access token
            tag: Tag name carrying the version, if known

        Returns:
            FetchedArchive with the raw bytes and their digest

        Raises:
            FetchError: If the archive cannot be downloaded
        """
        if self._cache is not None:
            cached = self._cache.get(name, version, repo=repo)
            if cached is not None:
                logger.debug("Using cached archive for %s@%s", name, version)
                return FetchedArchive(
                    name=name,
                    version=version,
                    data=cached,
                    digest=compute_digest(cached),
                    from_cache=True,
                )

        last_error: FetchError | None = None
        for url in self.archive_urls(repo, version, tag):
            try:
                data = self.download(url, token)
            except NotFoundError as e:
                logger.debug("No archive at %s", url)
                last_error = e
                continue

            logger.info("Downloaded %s@%s (%d bytes)", name, version, len(data))
            if self._cache is not None:
                self._cache.put(name, version, data, url=url, repo=repo)
            return FetchedArchive(
                name=name,
                version=version,
                data=data,
                digest=compute_digest(data),
                url=url,
            )

        if last_error is None:
            raise NotFoundError(f"No archive location known for {repo}@{version}")
        raise last_error
