"""Lock file management for tagdeps."""

from pathlib import Path

from tagdeps.config.parser import load_lockfile, save_lockfile
from tagdeps.config.schemas import LockedDependency, LockFile


class LockFileManager:
    """Manages the tagdeps.lock file for deterministic installations."""

    def __init__(self, project_root: Path):
        """Initialize the lock file manager.

        Args:
            project_root: Path to the project root
        """
        self._project_root = project_root
        self._lockfile: LockFile | None = None
        self._modified = False

    def load(self) -> LockFile:
        """Load the lock file from disk.

        Creates a new empty lock file if one doesn't exist.

        Returns:
            The loaded or new lock file

        Raises:
            ConfigError: If the lock file exists but is invalid
        """
        self._lockfile = load_lockfile(self._project_root)
        if self._lockfile is None:
            self._lockfile = LockFile()
            self._modified = True
        return self._lockfile

    def save(self) -> None:
        """Save the lock file to disk if modified."""
        if self._lockfile is not None and self._modified:
            save_lockfile(self._project_root, self._lockfile)
            self._modified = False

    @property
    def lockfile(self) -> LockFile:
        """Get the current lock file, loading if necessary."""
        if self._lockfile is None:
            self.load()
        assert self._lockfile is not None
        return self._lockfile

    def get_locked(self, name: str) -> LockedDependency | None:
        """Get the locked entry for a dependency (case-insensitive).

        Args:
            name: Dependency name

        Returns:
            LockedDependency entry, or None if not locked
        """
        key = name.lower()
        for entry in self.lockfile.dependencies:
            if entry.name.lower() == key:
                return entry
        return None

    def get_locked_version(self, name: str) -> str | None:
        """Get the locked version for a dependency.

        Args:
            name: Dependency name

        Returns:
            Locked version string, or None if not locked
        """
        locked = self.get_locked(name)
        return locked.version if locked else None

    def lock(self, entry: LockedDependency) -> None:
        """Create or replace the lock entry for a dependency.

        A replaced entry keeps its position so the file diff stays minimal.

        Args:
            entry: New lock entry
        """
        key = entry.name.lower()
        entries = self.lockfile.dependencies
        for index, existing in enumerate(entries):
            if existing.name.lower() == key:
                if existing != entry:
                    entries[index] = entry
                    self._modified = True
                return
        entries.append(entry)
        self._modified = True

    def unlock(self, name: str) -> bool:
        """Remove a dependency from the lock file.

        Args:
            name: Dependency name to remove

        Returns:
            True if the dependency was removed, False if it wasn't locked
        """
        key = name.lower()
        entries = self.lockfile.dependencies
        for index, existing in enumerate(entries):
            if existing.name.lower() == key:
                del entries[index]
                self._modified = True
                return True
        return False

    def retain(self, names: list[str]) -> list[str]:
        """Keep only the given dependencies, ordered as given.

        Args:
            names: Dependency names to keep, in the desired file order

        Returns:
            Names of entries that were dropped
        """
        by_key = {entry.name.lower(): entry for entry in self.lockfile.dependencies}
        kept = [by_key[name.lower()] for name in names if name.lower() in by_key]
        kept_keys = {entry.name.lower() for entry in kept}
        dropped = [e.name for e in self.lockfile.dependencies if e.name.lower() not in kept_keys]

        if kept != self.lockfile.dependencies:
            self.lockfile.dependencies = kept
            self._modified = True
        return dropped

    def list_locked(self) -> list[str]:
        """List all locked dependency names."""
        return [entry.name for entry in self.lockfile.dependencies]
