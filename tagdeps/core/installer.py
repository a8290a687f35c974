"""Dependency installation orchestrator.

This module contains the PluginInstaller, which reconciles the manifest
against the lock file: each dependency is resolved (or re-verified against
its lock entry), its archive fetched and extracted, and the lock file is
written once at the end of the run.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from tagdeps.config.schemas import DependencySpec, LockedDependency
from tagdeps.core.archive import ArchiveError, ExtractionReport, extract_archive
from tagdeps.core.lockfile import LockFileManager
from tagdeps.core.project import Project, lookup_token
from tagdeps.core.resolver import ResolutionError, requirement_accepts
from tagdeps.sources.base import FetchedArchive, FetchError, NotFoundError, SourceClient
from tagdeps.sources.cache import ArchiveCache
from tagdeps.sources.factory import UnsupportedSourceError, create_source_client
from tagdeps.utils.filesystem import remove_directory

logger = logging.getLogger(__name__)

InstallStatus = Literal["installed", "verified", "failed"]

# Per-dependency failures: reported, then the run moves on
RECOVERABLE_ERRORS = (
    ResolutionError,
    FetchError,
    ArchiveError,
    UnsupportedSourceError,
    OSError,
)


class IntegrityError(Exception):
    """A freshly computed archive digest disagrees with the lock file.

    This aborts the whole install before the lock file is written.
    """

    kind = "integrity"

    def __init__(self, name: str, version: str, expected: str, actual: str):
        self.name = name
        self.version = version
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Integrity check failed for {name}@{version}: "
            f"lock file records {expected}, archive hashes to {actual}"
        )


@dataclass
class InstallResult:
    """Outcome of processing one dependency."""

    name: str
    status: InstallStatus
    version: str | None = None
    message: str = ""
    error_kind: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status != "failed"


@dataclass
class InstallSummary:
    """Ordered outcomes of an install run."""

    results: list[InstallResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_successful(self) -> bool:
        return all(r.success for r in self.results)


TokenLookup = Callable[[DependencySpec], str | None]


class _ExtractionFailed(Exception):
    """Wraps an error raised after the install directory was touched."""

    def __init__(self, error: Exception):
        self.error = error
        super().__init__(str(error))


class PluginInstaller:
    """Reconciles a project's manifest with its lock file and install directory.

    Dependencies are processed sequentially in manifest order. A failure on
    one dependency is recorded and the run continues; an integrity error
    stops the run before anything is written to the lock file.
    """

    def __init__(
        self,
        project: Project,
        sources: dict[str, SourceClient] | None = None,
        token_lookup: TokenLookup | None = None,
        update: bool = False,
    ):
        """Initialize the installer.

        Args:
            project: The project to install dependencies into
            sources: Source clients by kind; created on demand when missing
            token_lookup: Returns the access token for a dependency
            update: Re-resolve every dependency even if its lock entry is current
        """
        self.project = project
        self.update = update
        self.lockfile_manager = LockFileManager(project.root)
        self._sources: dict[str, SourceClient] = dict(sources or {})
        self._token_lookup = token_lookup or lookup_token

    def _source_for(self, dep: DependencySpec) -> SourceClient:
        if dep.source not in self._sources:
            self._sources[dep.source] = create_source_client(
                dep.source, self.project.settings, self.project.cache_dir
            )
        return self._sources[dep.source]

    def is_current(self, dep: DependencySpec, locked: LockedDependency | None) -> bool:
        """Check whether a lock entry still describes what the manifest asks for.

        Args:
            dep: Declared dependency
            locked: Its lock entry, if any

        Returns:
            True if the locked version can be reused without re-resolving
        """
        if locked is None or self.update:
            return False
        if locked.source != dep.source or locked.repo.lower() != dep.repo.lower():
            return False
        return requirement_accepts(dep.version, locked.version)

    def install(self) -> InstallSummary:
        """Install every dependency declared in the manifest.

        Returns:
            InstallSummary with one result per dependency, in manifest order

        Raises:
            IntegrityError: If a re-verified archive does not match the lock file
            ConfigError: If the lock file cannot be parsed
        """
        dependencies = self.project.dependencies
        logger.info("Starting installation of %d dependency(ies)", len(dependencies))

        self.lockfile_manager.load()
        summary = InstallSummary()

        for dep in dependencies:
            result = self._install_one(dep)
            summary.results.append(result)

        dropped = self.lockfile_manager.retain([dep.name for dep in dependencies])
        for name in dropped:
            logger.info("Dropped lock entry for %s (no longer declared)", name)

        self.lockfile_manager.save()
        logger.info(
            "Installation complete: %d succeeded, %d failed",
            summary.success_count,
            summary.failure_count,
        )
        return summary

    def _install_one(self, dep: DependencySpec) -> InstallResult:
        """Process a single dependency.

        IntegrityError propagates; every recoverable error becomes a failed result.
        """
        locked = self.lockfile_manager.get_locked(dep.name)
        dest = self.project.plugin_dir(dep.name)

        try:
            source = self._source_for(dep)
            token = self._token_lookup(dep)

            if self.is_current(dep, locked):
                assert locked is not None
                return self._verify_locked(dep, locked, source, token)
            return self._install_resolved(dep, locked, source, token)

        except _ExtractionFailed as wrapped:
            # The install directory no longer matches any lock entry
            try:
                remove_directory(dest)
            except OSError as e:
                logger.warning("Could not remove partial install at %s: %s", dest, e)
            self.lockfile_manager.unlock(dep.name)
            return self._failed(dep, wrapped.error)
        except RECOVERABLE_ERRORS as e:
            return self._failed(dep, e)

    def _verify_locked(
        self,
        dep: DependencySpec,
        locked: LockedDependency,
        source: SourceClient,
        token: str | None,
    ) -> InstallResult:
        """Re-fetch a locked version and check it against the stored hash."""
        logger.info("Verifying %s@%s against lock file", dep.name, locked.version)
        try:
            archive = source.fetch_archive(dep.name, dep.repo, locked.version, token)
        except NotFoundError:
            # Tag names other than v<version> or <version> need a listing
            tag = source.find_tag(dep.repo, locked.version, token)
            if tag is None:
                raise
            archive = source.fetch_archive(dep.name, dep.repo, locked.version, token, tag=tag)
        self._check_integrity(dep.name, locked, archive)

        dest = self.project.plugin_dir(dep.name)
        report: ExtractionReport | None = None
        if not dest.exists():
            logger.info("Install directory for %s is missing; extracting", dep.name)
            report = self._extract(archive, dest)

        return InstallResult(
            name=dep.name,
            status="verified" if report is None else "installed",
            version=locked.version,
            message=f"{dep.name}@{locked.version} is up to date"
            if report is None
            else f"Installed {dep.name} {locked.version}",
            warnings=report.warnings if report else [],
        )

    def _install_resolved(
        self,
        dep: DependencySpec,
        locked: LockedDependency | None,
        source: SourceClient,
        token: str | None,
    ) -> InstallResult:
        """Resolve a dependency afresh, install it and replace its lock entry."""
        resolved = source.resolve_version(dep.repo, dep.version, token)
        version = str(resolved.version)
        archive = source.fetch_archive(dep.name, dep.repo, version, token, tag=resolved.tag)

        same_release = (
            locked is not None
            and locked.version == version
            and locked.source == dep.source
            and locked.repo.lower() == dep.repo.lower()
        )
        if same_release:
            assert locked is not None
            self._check_integrity(dep.name, locked, archive)

        dest = self.project.plugin_dir(dep.name)
        if same_release and dest.exists():
            report = None
        else:
            report = self._extract(archive, dest)

        self.lockfile_manager.lock(
            LockedDependency(
                name=dep.name,
                version=version,
                repo=dep.repo,
                hash=archive.digest,
                source=dep.source,
            )
        )

        if report is None:
            return InstallResult(
                name=dep.name,
                status="verified",
                version=version,
                message=f"{dep.name}@{version} is up to date",
            )
        return InstallResult(
            name=dep.name,
            status="installed",
            version=version,
            message=f"Installed {dep.name} {version}",
            warnings=report.warnings,
        )

    @staticmethod
    def _check_integrity(name: str, locked: LockedDependency, archive: FetchedArchive) -> None:
        if archive.digest != locked.hash:
            logger.error("Hash mismatch for %s@%s", name, locked.version)
            raise IntegrityError(name, locked.version, locked.hash, archive.digest)

    @staticmethod
    def _extract(archive: FetchedArchive, dest: Path) -> ExtractionReport:
        """Remove and recreate the install directory, then extract into it."""
        try:
            if remove_directory(dest):
                logger.debug("Removed previous install at %s", dest)
            return extract_archive(archive.data, dest)
        except (ArchiveError, OSError) as e:
            raise _ExtractionFailed(e) from e

    @staticmethod
    def _failed(dep: DependencySpec, error: Exception) -> InstallResult:
        kind = getattr(error, "kind", None) or ("io" if isinstance(error, OSError) else "error")
        logger.error("Failed to install %s (%s): %s", dep.name, kind, error)
        return InstallResult(
            name=dep.name,
            status="failed",
            version=None,
            message=str(error),
            error_kind=kind,
        )


def remove_dependency(project: Project, name: str) -> DependencySpec:
    """Remove a dependency: manifest entry, lock entry, cache and installed files.

    Nothing is changed when the dependency is not declared.

    Args:
        project: The project
        name: Dependency name (case-insensitive)

    Returns:
        The removed DependencySpec

    Raises:
        DependencyNotFoundError: If the dependency is not in the manifest
        ConfigError: If the lock file cannot be parsed
    """
    lockfile_manager = LockFileManager(project.root)
    lockfile_manager.load()

    dep = project.remove_dependency(name)

    lockfile_manager.unlock(dep.name)
    if remove_directory(project.plugin_dir(dep.name)):
        logger.info("Deleted installed files for %s", dep.name)
    if project.cache_dir.exists():
        ArchiveCache(project.cache_dir).remove(dep.name)

    project.save()
    lockfile_manager.save()
    return dep
