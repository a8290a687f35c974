"""Filesystem utilities for tagdeps."""

import hashlib
import os
import shutil
import tempfile
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def compute_digest(data: bytes) -> str:
    """Compute the content digest of raw bytes.

    Args:
        data: Bytes to hash

    Returns:
        Hex-encoded sha256 digest
    """
    return hashlib.sha256(data).hexdigest()


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to a file so readers never observe a partial write.

    The content goes to a temporary file in the same directory, which is
    then renamed over the destination.

    Args:
        path: Destination file
        data: Content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def atomic_write_text(path: Path, content: str) -> None:
    """Write UTF-8 text atomically.

    Args:
        path: Destination file
        content: Text to write
    """
    atomic_write_bytes(path, content.encode("utf-8"))
