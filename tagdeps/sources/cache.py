"""Archive cache for downloaded release archives."""

from __future__ import annotations

import json
import logging
import re
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from tagdeps.utils.filesystem import atomic_write_bytes, atomic_write_text, compute_digest

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached archive with metadata."""

    key: str
    path: Path
    digest: str
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)


class ArchiveCache:
    """File-based cache of archive bytes keyed by (name, version).

    Archives for a given tag are treated as immutable, so entries never
    expire. A cache hit returns exactly the bytes that were stored.
    Each entry remembers the repository it was downloaded from; asking for
    the same name and version from another repository is a miss.

    Cache structure:
        cache_dir/
            metadata.json           # Tracks all cached archives
            <name>-<version>.zip    # Raw archive bytes
    """

    METADATA_FILE = "metadata.json"

    def __init__(self, cache_dir: Path):
        """Initialize the archive cache.

        Args:
            cache_dir: Directory to store cached archives
        """
        self._cache_dir = cache_dir
        self._metadata_file = cache_dir / self.METADATA_FILE
        self._entries: dict[str, CacheEntry] = {}
        self._load_metadata()
        logger.debug("Initialized archive cache at %s", cache_dir)

    @property
    def cache_dir(self) -> Path:
        """Get the cache directory."""
        return self._cache_dir

    @staticmethod
    def cache_key(name: str, version: str) -> str:
        """Deterministic cache key for a (name, version) pair."""
        safe_name = re.sub(r"[^a-z0-9._-]", "_", name.lower())
        safe_version = re.sub(r"[^A-Za-z0-9._+-]", "_", version)
        return f"{safe_name}-{safe_version}.zip"

    def _load_metadata(self) -> None:
        """Load cache metadata from disk."""
        if not self._metadata_file.exists():
            self._entries = {}
            return

        try:
            with open(self._metadata_file, encoding="utf-8") as f:
                data = json.load(f)

            self._entries = {}
            for key, entry_data in data.get("entries", {}).items():
                self._entries[key] = CacheEntry(
                    key=key,
                    path=self._cache_dir / key,
                    digest=entry_data["digest"],
                    timestamp=entry_data["timestamp"],
                    metadata=entry_data.get("metadata", {}),
                )
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning("Ignoring unreadable cache metadata at %s", self._metadata_file)
            self._entries = {}

    def _save_metadata(self) -> None:
        """Save cache metadata to disk."""
        data = {
            "entries": {
                key: {
                    "digest": entry.digest,
                    "timestamp": entry.timestamp,
                    "metadata": entry.metadata,
                }
                for key, entry in sorted(self._entries.items())
            }
        }
        atomic_write_text(self._metadata_file, json.dumps(data, indent=2) + "\n")

    def get(self, name: str, version: str, repo: str | None = None) -> bytes | None:
        """Get the cached archive bytes for a name and version.

        Args:
            name: Dependency name
            version: Resolved version
            repo: Repository the bytes must have come from, if it matters

        Returns:
            The stored bytes, or None on a miss
        """
        key = self.cache_key(name, version)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss for %s", key)
            return None

        if not entry.path.exists():
            logger.debug("Cache entry orphaned (file missing) for %s", key)
            del self._entries[key]
            self._save_metadata()
            return None

        if repo is not None and not _same_repo(entry.metadata.get("repo"), repo):
            logger.debug("Cached %s came from another repository; ignoring it", key)
            self._remove_entry(key)
            return None

        data = entry.path.read_bytes()
        if compute_digest(data) != entry.digest:
            logger.warning("Cached archive %s is corrupt; discarding it", key)
            self._remove_entry(key)
            return None

        logger.debug("Cache hit for %s", key)
        return data

    def put(
        self,
        name: str,
        version: str,
        data: bytes,
        url: str | None = None,
        repo: str | None = None,
    ) -> Path:
        """Store archive bytes.

        Args:
            name: Dependency name
            version: Resolved version
            data: Raw archive bytes, exactly as downloaded
            url: URL the bytes came from
            repo: Repository the bytes came from

        Returns:
            Path to the cached archive
        """
        key = self.cache_key(name, version)
        cache_path = self._cache_dir / key
        logger.debug("Caching %s (%d bytes)", key, len(data))

        atomic_write_bytes(cache_path, data)
        self._entries[key] = CacheEntry(
            key=key,
            path=cache_path,
            digest=compute_digest(data),
            timestamp=time.time(),
            metadata={"name": name, "version": version, "repo": repo, "url": url},
        )
        self._save_metadata()
        return cache_path

    def _remove_entry(self, key: str) -> None:
        """Remove a cache entry and its file."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        if entry.path.exists():
            entry.path.unlink()
        self._save_metadata()

    def remove(self, name: str) -> int:
        """Remove every cached version of a dependency.

        Returns:
            Number of entries removed
        """
        prefix = re.sub(r"[^a-z0-9._-]", "_", name.lower()) + "-"
        keys = [
            key
            for key, entry in self._entries.items()
            if key.startswith(prefix) and entry.metadata.get("name", name).lower() == name.lower()
        ]
        for key in keys:
            self._remove_entry(key)
        return len(keys)

    def clear(self) -> int:
        """Clear all cached archives.

        Returns:
            Number of entries removed
        """
        entry_count = len(self._entries)
        logger.info("Clearing archive cache (%d entries)", entry_count)
        if self._cache_dir.exists():
            shutil.rmtree(self._cache_dir)
        self._entries = {}
        return entry_count


def _same_repo(cached: str | None, repo: str) -> bool:
    return cached is not None and cached.lower() == repo.lower()
