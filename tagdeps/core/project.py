"""Project model representing a tagdeps-managed project."""

import logging
import os
from pathlib import Path

from tagdeps.config.parser import (
    CACHE_DIR,
    ConfigMissingError,
    load_project_config,
    manifest_path,
    save_project_config,
)
from tagdeps.config.schemas import DependencySpec, ProjectConfig, ProjectSettings

logger = logging.getLogger(__name__)


class DependencyNotFoundError(Exception):
    """A named dependency is not declared in the manifest."""

    kind = "not-found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dependency not found in manifest: {name}")


class Project:
    """Represents a tagdeps-managed project.

    A project is defined by its tagdeps.yml manifest. The project root is
    always given explicitly; nothing here consults the working directory.
    """

    def __init__(self, root: Path, config: ProjectConfig):
        """Initialize a Project.

        Args:
            root: Path to the project root directory
            config: Parsed manifest
        """
        self._root = root.resolve()
        self._config = config

    @classmethod
    def load(cls, path: Path) -> "Project":
        """Load a project from disk.

        Args:
            path: Path to the project root

        Returns:
            Loaded Project instance

        Raises:
            ConfigMissingError: If no manifest exists in the directory
            ConfigError: If the manifest is invalid
        """
        path = path.resolve()
        config_path = manifest_path(path)
        if not config_path.exists():
            raise ConfigMissingError(f"No {config_path.name} found in {path}", config_path)

        config = load_project_config(path)
        return cls(path, config)

    @classmethod
    def init(cls, path: Path, install_path: str = ".") -> "Project":
        """Initialize a new project with an empty manifest.

        Args:
            path: Path to the project root directory
            install_path: Directory plugins are installed into, relative to the root

        Returns:
            New Project instance

        Raises:
            FileExistsError: If the manifest already exists
        """
        path = path.resolve()
        config_path = manifest_path(path)

        if config_path.exists():
            raise FileExistsError(f"Project already initialized: {config_path}")

        config = ProjectConfig(config=ProjectSettings(install_path=install_path))
        project = cls(path, config)
        project.save()
        return project

    def save(self) -> None:
        """Save the manifest to disk."""
        save_project_config(self._root, self._config)

    @property
    def root(self) -> Path:
        """Get the project root directory."""
        return self._root

    @property
    def config(self) -> ProjectConfig:
        """Get the underlying manifest."""
        return self._config

    @property
    def settings(self) -> ProjectSettings:
        """Get the manifest's config block."""
        return self._config.config

    @property
    def dependencies(self) -> list[DependencySpec]:
        """Get the declared dependencies, in manifest order."""
        return self._config.dependencies

    @property
    def install_root(self) -> Path:
        """Directory that plugin directories are installed into."""
        return (self._root / self.settings.install_path).resolve()

    @property
    def cache_dir(self) -> Path:
        """Directory holding cached archives."""
        return self._root / CACHE_DIR

    def plugin_dir(self, name: str) -> Path:
        """Installation directory for one dependency."""
        return self.install_root / name

    def get_dependency(self, name: str) -> DependencySpec | None:
        """Look up a dependency by name (case-insensitive).

        Args:
            name: Dependency name

        Returns:
            DependencySpec or None if not declared
        """
        key = name.lower()
        for dep in self._config.dependencies:
            if dep.name.lower() == key:
                return dep
        return None

    def add_dependency(self, spec: DependencySpec) -> bool:
        """Add a dependency, or update it in place if the name is declared.

        Args:
            spec: Dependency to add

        Returns:
            True if a new dependency was added, False if an existing one was updated
        """
        key = spec.name.lower()
        for index, dep in enumerate(self._config.dependencies):
            if dep.name.lower() == key:
                logger.debug("Updating existing dependency %s", dep.name)
                self._config.dependencies[index] = spec
                return False
        self._config.dependencies.append(spec)
        return True

    def remove_dependency(self, name: str) -> DependencySpec:
        """Remove a dependency from the manifest.

        Args:
            name: Dependency name (case-insensitive)

        Returns:
            The removed DependencySpec

        Raises:
            DependencyNotFoundError: If the dependency is not declared
        """
        key = name.lower()
        for index, dep in enumerate(self._config.dependencies):
            if dep.name.lower() == key:
                return self._config.dependencies.pop(index)
        raise DependencyNotFoundError(name)

    def __repr__(self) -> str:
        return f"Project(root={self._root!r})"


def lookup_token(dep: DependencySpec) -> str | None:
    """Read a dependency's access token from the environment variable it names.

    Args:
        dep: Dependency spec

    Returns:
        Token string, or None if no variable is named or it is unset
    """
    if not dep.token_env:
        return None
    token = os.environ.get(dep.token_env)
    if not token:
        logger.warning(
            "Environment variable %s for %s is not set; continuing without a token",
            dep.token_env,
            dep.name,
        )
        return None
    return token
