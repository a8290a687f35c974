"""ZIP archive extraction for tagged release archives.

Source-hosting services generate release archives with a synthetic root
folder (``<repo>-<version>/``). Extraction strips that first path segment so
the archive contents land directly in the destination directory.
"""

import io
import logging
import os
import shutil
import stat
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from tagdeps.utils.filesystem import ensure_directory
from tagdeps.utils.platform import supports_file_modes

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Error reading or extracting an archive."""

    kind = "archive-error"


class MalformedArchiveError(ArchiveError):
    """The bytes are not a readable ZIP archive."""

    kind = "malformed-archive"


class InvalidEntryPathError(ArchiveError):
    """An archive entry cannot be placed safely inside the destination."""

    kind = "invalid-entry-path"

    def __init__(self, message: str, entry: str):
        self.entry = entry
        super().__init__(message)


@dataclass
class ExtractionReport:
    """What an extraction wrote and what it skipped."""

    files: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    skipped: list[InvalidEntryPathError] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [str(e) for e in self.skipped]


def strip_root(entry_name: str) -> str:
    """Strip the first path segment from an archive entry name.

    Args:
        entry_name: Path as stored in the archive (e.g. "repo-1.0.0/src/a.php")

    Returns:
        The remaining relative path, or "" when nothing remains
    """
    parts = [p for p in entry_name.replace("\\", "/").split("/") if p]
    return "/".join(parts[1:])


def _safe_relative_path(entry_name: str, relative: str) -> PurePosixPath:
    """Validate a stripped entry path.

    Raises:
        InvalidEntryPathError: If the path is absolute or escapes the destination
    """
    path = PurePosixPath(relative)
    first = path.parts[0] if path.parts else ""
    if (
        relative.startswith("/")
        or ".." in path.parts
        or (len(first) >= 2 and first[1] == ":")
    ):
        raise InvalidEntryPathError(f"Unsafe path in archive: {entry_name}", entry=entry_name)
    return path


def _entry_mode(info: zipfile.ZipInfo) -> int | None:
    """Unix mode recorded for an entry, if the archive was created on Unix."""
    if info.create_system != 3:
        return None
    mode = info.external_attr >> 16
    return mode or None


def extract_archive(data: bytes, dest_dir: Path) -> ExtractionReport:
    """Extract ZIP archive bytes into a destination directory.

    Every entry has its first path segment stripped. Entries that become
    empty are skipped (they are the synthetic root folder). Entries whose
    path would escape the destination, and symlinks, are skipped with a
    warning. File permission bits are reapplied on platforms that support them.

    Args:
        data: Raw ZIP archive bytes
        dest_dir: Destination directory (created if missing)

    Returns:
        ExtractionReport listing written files and directories

    Raises:
        MalformedArchiveError: If the bytes are not a valid ZIP archive
        OSError: If writing to the destination fails
    """
    report = ExtractionReport()

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise MalformedArchiveError(f"Not a valid ZIP archive: {e}") from e

    apply_modes = supports_file_modes()
    dest_root = ensure_directory(dest_dir).resolve()

    with archive:
        for info in archive.infolist():
            relative = strip_root(info.filename)
            if not relative:
                continue

            try:
                rel_path = _safe_relative_path(info.filename, relative)
            except InvalidEntryPathError as e:
                logger.warning("%s (skipped)", e)
                report.skipped.append(e)
                continue

            target = dest_dir.joinpath(*rel_path.parts)
            if not target.resolve().is_relative_to(dest_root):
                e = InvalidEntryPathError(
                    f"Archive entry escapes destination: {info.filename}", entry=info.filename
                )
                logger.warning("%s (skipped)", e)
                report.skipped.append(e)
                continue

            mode = _entry_mode(info)
            if mode is not None and stat.S_ISLNK(mode):
                e = InvalidEntryPathError(
                    f"Symbolic link in archive not supported: {info.filename}",
                    entry=info.filename,
                )
                logger.warning("%s (skipped)", e)
                report.skipped.append(e)
                continue

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                report.directories.append(relative)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            except (zipfile.BadZipFile, NotImplementedError, EOFError) as e:
                raise MalformedArchiveError(
                    f"Cannot read archive entry {info.filename}: {e}"
                ) from e

            if apply_modes and mode is not None and mode & 0o777:
                os.chmod(target, mode & 0o777)

            report.files.append(relative)

    logger.debug(
        "Extracted %d file(s) and %d directory(ies) to %s",
        len(report.files),
        len(report.directories),
        dest_dir,
    )
    return report
