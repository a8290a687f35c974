"""Configuration file parsing utilities."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from tagdeps.config.schemas import LockFile, ProjectConfig
from tagdeps.utils.filesystem import atomic_write_text

MANIFEST_FILE = "tagdeps.yml"
LOCK_FILE = "tagdeps.lock"
CACHE_DIR = ".tagdeps-cache"


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    kind = "config-error"

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class ConfigMissingError(ConfigError):
    """A required configuration file does not exist."""

    kind = "config-missing"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

    Raises:
        ConfigMissingError: If the file does not exist
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigMissingError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
            if result is None:
                return {}
            if not isinstance(result, dict):
                raise ConfigError(f"YAML file must contain a mapping: {path}", path)
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize data to YAML with stable key order."""
    result: str = yaml.safe_dump(
        data, default_flow_style=False, sort_keys=False, allow_unicode=True
    )
    return result


def save_yaml(path: Path, data: dict[str, Any]) -> None:
    """Save data to a YAML file atomically.

    Args:
        path: Path to write to
        data: Data to serialize
    """
    atomic_write_text(path, dump_yaml(data))


def manifest_path(project_root: Path) -> Path:
    """Path of the manifest for a project root."""
    return project_root / MANIFEST_FILE


def lockfile_path(project_root: Path) -> Path:
    """Path of the lock file for a project root."""
    return project_root / LOCK_FILE


def load_project_config(project_root: Path) -> ProjectConfig:
    """Load the manifest from tagdeps.yml.

    Args:
        project_root: Path to the project root directory

    Returns:
        Parsed ProjectConfig

    Raises:
        ConfigMissingError: If the manifest does not exist
        ConfigError: If the manifest is invalid
    """
    config_path = manifest_path(project_root)
    data = load_yaml(config_path)

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid manifest {config_path}: {e}", config_path) from e


def save_project_config(project_root: Path, config: ProjectConfig) -> None:
    """Save the manifest to tagdeps.yml.

    Args:
        project_root: Path to the project root directory
        config: ProjectConfig to save
    """
    data = config.model_dump(mode="json")
    for dep in data["dependencies"]:
        if dep.get("token_env") is None:
            dep.pop("token_env", None)
    save_yaml(manifest_path(project_root), data)


def load_lockfile(project_root: Path) -> LockFile | None:
    """Load lock file from tagdeps.lock if it exists.

    Args:
        project_root: Path to the project root directory

    Returns:
        Parsed LockFile or None if it doesn't exist

    Raises:
        ConfigError: If the file exists but is invalid
    """
    lock_path = lockfile_path(project_root)
    if not lock_path.exists():
        return None

    data = load_yaml(lock_path)

    try:
        return LockFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid lock file {lock_path}: {e}", lock_path) from e


def save_lockfile(project_root: Path, lockfile: LockFile) -> None:
    """Save lock file to tagdeps.lock in a single atomic write.

    Args:
        project_root: Path to the project root directory
        lockfile: LockFile to save
    """
    save_yaml(lockfile_path(project_root), lockfile.model_dump(mode="json"))
