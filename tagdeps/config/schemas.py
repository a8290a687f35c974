"""Pydantic schemas for tagdeps configuration files.

This module defines the data models for:
- tagdeps.yml (manifest: settings and declared dependencies)
- tagdeps.lock (lockfile: resolved versions and content hashes)
"""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# Common Types
# =============================================================================

SourceKind = Literal["github"]

DEFAULT_SOURCE: SourceKind = "github"

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class DuplicateDependencyError(ValueError):
    """Two dependencies share a name (names compare case-insensitively)."""

    kind = "duplicate-dependency"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate dependency name: {name}")


def _validate_repo(v: str) -> str:
    if not _REPO_PATTERN.match(v):
        raise ValueError(f"Repository must look like 'owner/name', got '{v}'")
    return v


def _validate_name(v: str) -> str:
    if not v:
        raise ValueError("Dependency name cannot be empty")
    if not _NAME_PATTERN.match(v):
        raise ValueError(
            "Dependency name must start with a letter or digit and contain only "
            "letters, digits, dots, hyphens, and underscores"
        )
    return v


# =============================================================================
# Manifest (tagdeps.yml)
# =============================================================================


class ProjectSettings(BaseModel):
    """The ``config`` block of the manifest."""

    install_path: str = "."
    github_api_url: str = "https://api.github.com"
    github_url: str = "https://github.com"


class DependencySpec(BaseModel):
    """One declared dependency."""

    name: str
    version: str = "latest"
    source: SourceKind = DEFAULT_SOURCE
    repo: str
    token_env: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate dependency name format."""
        return _validate_name(v)

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        """Validate the owner/name repository reference."""
        return _validate_repo(v)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Requirements are parsed at resolution time; only reject blanks here."""
        v = v.strip()
        if not v:
            raise ValueError("Version requirement cannot be empty")
        return v


class ProjectConfig(BaseModel):
    """Manifest (tagdeps.yml) schema."""

    config: ProjectSettings = Field(default_factory=ProjectSettings)
    dependencies: list[DependencySpec] = Field(default_factory=list)

    @field_validator("config", mode="before")
    @classmethod
    def default_config(cls, v: object) -> object:
        """An empty ``config:`` block loads as None."""
        return {} if v is None else v

    @field_validator("dependencies", mode="before")
    @classmethod
    def default_dependencies(cls, v: object) -> object:
        """An empty ``dependencies:`` block loads as None."""
        return [] if v is None else v

    @model_validator(mode="after")
    def validate_unique_names(self) -> "ProjectConfig":
        """Dependency names must be unique, ignoring case."""
        seen: set[str] = set()
        for dep in self.dependencies:
            key = dep.name.lower()
            if key in seen:
                raise DuplicateDependencyError(dep.name)
            seen.add(key)
        return self


# =============================================================================
# Lock File (tagdeps.lock)
# =============================================================================


class LockedDependency(BaseModel):
    """A locked dependency entry in the lock file."""

    name: str
    version: str
    repo: str
    hash: str
    source: SourceKind = DEFAULT_SOURCE

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        """Validate hex-encoded digest."""
        if not re.match(r"^[0-9a-f]+$", v):
            raise ValueError(f"Lock hash must be lowercase hex, got '{v}'")
        return v


class LockFile(BaseModel):
    """Lock file (tagdeps.lock) schema."""

    dependencies: list[LockedDependency] = Field(default_factory=list)

    @field_validator("dependencies", mode="before")
    @classmethod
    def default_dependencies(cls, v: object) -> object:
        """An empty ``dependencies:`` block loads as None."""
        return [] if v is None else v
