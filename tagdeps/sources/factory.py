"""Source client factory."""

import logging
from pathlib import Path

from tagdeps.config.schemas import ProjectSettings
from tagdeps.sources import get_source_class, list_sources
from tagdeps.sources.base import SourceClient
from tagdeps.sources.cache import ArchiveCache

logger = logging.getLogger(__name__)


class UnsupportedSourceError(Exception):
    """Error when a dependency names a source kind with no client."""

    kind = "unsupported-source"

    def __init__(self, source: str):
        self.source = source
        available = ", ".join(list_sources()) or "none"
        super().__init__(f"Unsupported source kind: {source} (available: {available})")


def create_source_client(
    kind: str,
    settings: ProjectSettings | None = None,
    cache_dir: Path | None = None,
) -> SourceClient:
    """Create the source client for a source kind.

    Args:
        kind: Source kind (e.g., "github")
        settings: Manifest settings with per-source base URLs
        cache_dir: Optional archive cache directory

    Returns:
        Appropriate SourceClient instance

    Raises:
        UnsupportedSourceError: If the kind is not supported
    """
    logger.debug("Creating source client for kind: %s", kind)

    source_class = get_source_class(kind)
    if source_class is None:
        logger.error("Unsupported source kind: %s", kind)
        raise UnsupportedSourceError(kind)

    cache = ArchiveCache(cache_dir) if cache_dir is not None else None
    return source_class.from_settings(settings or ProjectSettings(), cache)
