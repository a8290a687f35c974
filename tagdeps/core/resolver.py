"""Version resolution for tagdeps.

This module maps a version requirement onto one concrete version published
as a repository tag. Resolution is a pure query over the tag names a source
returns; it never caches or persists anything.
"""

import logging
from dataclasses import dataclass

from tagdeps.utils.version import SemVer, VersionRange, is_compatible, parse_tag

logger = logging.getLogger(__name__)

LATEST = "latest"


class ResolutionError(Exception):
    """Error resolving a version requirement to a published version."""

    kind = "resolution-error"

    def __init__(self, message: str, repo: str | None = None, requirement: str | None = None):
        self.repo = repo
        self.requirement = requirement
        super().__init__(message)


class NoValidVersionsError(ResolutionError):
    """No tag in the repository parses as a semantic version."""

    kind = "no-valid-versions"


class VersionNotFoundError(ResolutionError):
    """An exact version was requested but no tag carries it."""

    kind = "version-not-found"


class NoMatchingVersionError(ResolutionError):
    """No published version satisfies the requirement."""

    kind = "no-matching-version"


class InvalidRequirementError(ResolutionError):
    """The requirement is neither 'latest', an exact version, nor a valid range."""

    kind = "invalid-requirement"


class ResolutionTransportError(ResolutionError):
    """The tag listing could not be retrieved."""

    kind = "transport"


@dataclass
class ResolvedVersion:
    """A requirement resolved to a concrete version and the tag carrying it."""

    version: SemVer
    tag: str

    def __str__(self) -> str:
        return str(self.version)


def parse_tag_versions(tags: list[str]) -> list[tuple[SemVer, str]]:
    """Parse tag names into versions, sorted from highest to lowest.

    Tags that do not parse are discarded. When two tags carry the same version
    (``v1.0.0`` and ``1.0.0``), the first one listed wins.

    Args:
        tags: Tag names as listed by the source

    Returns:
        List of (version, tag) pairs in descending version order
    """
    seen: dict[SemVer, str] = {}
    for tag in tags:
        version = parse_tag(tag)
        if version is None:
            logger.debug("Ignoring non-semver tag: %s", tag)
            continue
        seen.setdefault(version, tag)

    return sorted(seen.items(), key=lambda item: item[0], reverse=True)


def check_requirement(requirement: str) -> None:
    """Validate a requirement string without contacting any source.

    Raises:
        InvalidRequirementError: If the requirement cannot be parsed
    """
    if requirement == LATEST:
        return
    try:
        SemVer.parse(requirement)
        return
    except ValueError:
        pass
    try:
        VersionRange(requirement)
    except ValueError as e:
        raise InvalidRequirementError(
            f"Invalid version requirement '{requirement}': {e}", requirement=requirement
        ) from e


def requirement_accepts(requirement: str, version: str) -> bool:
    """Check whether an already-resolved version still satisfies a requirement.

    'latest' accepts any version, an exact requirement only itself, and a
    range any version it matches. Unparseable input never matches.
    """
    if requirement == LATEST:
        return True
    try:
        candidate = SemVer.parse(version)
    except ValueError:
        return False
    try:
        return SemVer.parse(requirement) == candidate
    except ValueError:
        pass
    return is_compatible(requirement, version)


def select_version(tags: list[str], requirement: str, repo: str | None = None) -> ResolvedVersion:
    """Select the version a requirement resolves to among a repository's tags.

    Args:
        tags: Tag names published by the repository
        requirement: 'latest', an exact semantic version, or a range expression
        repo: Repository identifier, used in error messages

    Returns:
        The resolved version and the tag that carries it

    Raises:
        NoValidVersionsError: If no tag parses as a semantic version
        VersionNotFoundError: If an exact version is not published
        InvalidRequirementError: If the requirement cannot be parsed
        NoMatchingVersionError: If no version satisfies the range
    """
    candidates = parse_tag_versions(tags)
    where = f" in {repo}" if repo else ""

    if not candidates:
        raise NoValidVersionsError(
            f"No valid semantic version tags found{where}", repo=repo, requirement=requirement
        )

    logger.debug("Found %d version tag(s)%s", len(candidates), where)

    if requirement == LATEST:
        version, tag = candidates[0]
        logger.info("Resolved '%s'%s to %s", requirement, where, version)
        return ResolvedVersion(version=version, tag=tag)

    try:
        exact: SemVer | None = SemVer.parse(requirement)
    except ValueError:
        exact = None

    if exact is not None:
        for version, tag in candidates:
            if version == exact:
                logger.info("Resolved '%s'%s to tag %s", requirement, where, tag)
                return ResolvedVersion(version=version, tag=tag)
        raise VersionNotFoundError(
            f"Version {requirement} not found among tags{where}",
            repo=repo,
            requirement=requirement,
        )

    try:
        version_range = VersionRange(requirement)
    except ValueError as e:
        raise InvalidRequirementError(
            f"Invalid version requirement '{requirement}': {e}",
            repo=repo,
            requirement=requirement,
        ) from e

    for version, tag in candidates:
        if version_range.matches(version):
            logger.info("Resolved '%s'%s to %s", requirement, where, version)
            return ResolvedVersion(version=version, tag=tag)

    raise NoMatchingVersionError(
        f"No version{where} satisfies requirement '{requirement}'",
        repo=repo,
        requirement=requirement,
    )
