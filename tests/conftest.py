"""Shared fixtures for tagdeps tests."""

import io
import shutil
import tempfile
import zipfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from tagdeps.config.schemas import DependencySpec
from tagdeps.core.project import Project
from tagdeps.sources.base import NotFoundError, SourceClient
from tagdeps.sources.cache import ArchiveCache

ArchiveBuilder = Callable[..., bytes]


def build_zip(
    files: dict[str, str | bytes],
    root: str | None = "repo-1.0.0",
    modes: dict[str, int] | None = None,
) -> bytes:
    """Build ZIP bytes in memory, the way a tag archive download looks.

    Args:
        files: Relative path -> content; a path ending in "/" is a directory
        root: Synthetic root folder prefixed to every entry (None for none)
        modes: Optional Unix permission bits per relative path
    """
    modes = modes or {}
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        if root:
            zf.writestr(zipfile.ZipInfo(f"{root}/"), b"")
        for name, content in files.items():
            entry_name = f"{root}/{name}" if root else name
            info = zipfile.ZipInfo(entry_name, date_time=(2024, 1, 1, 0, 0, 0))
            if name in modes:
                info.create_system = 3
                info.external_attr = modes[name] << 16
            data = content.encode("utf-8") if isinstance(content, str) else content
            zf.writestr(info, data)
    return buffer.getvalue()


class FakeSource(SourceClient):
    """In-memory source: tags per repo and archive bytes per (repo, tag)."""

    def __init__(self, cache: ArchiveCache | None = None):
        super().__init__(cache)
        self.tags: dict[str, list[str]] = {}
        self.archives: dict[tuple[str, str], bytes] = {}
        self.tag_errors: dict[str, Exception] = {}
        self.list_calls = 0
        self.downloads: list[str] = []
        self.tokens: list[str | None] = []

    @property
    def kind(self) -> str:
        return "github"

    def publish(self, repo: str, tag: str, data: bytes) -> None:
        """Publish an archive under a tag."""
        self.tags.setdefault(repo, [])
        if tag not in self.tags[repo]:
            self.tags[repo].append(tag)
        self.archives[(repo, tag)] = data

    def list_tags(self, repo: str, token: str | None = None) -> list[str]:
        self.list_calls += 1
        self.tokens.append(token)
        if repo in self.tag_errors:
            raise self.tag_errors[repo]
        return list(self.tags.get(repo, []))

    def archive_urls(self, repo: str, version: str, tag: str | None = None) -> list[str]:
        if tag:
            return [f"fake://{repo}/{tag}"]
        return [f"fake://{repo}/v{version}", f"fake://{repo}/{version}"]

    def download(self, url: str, token: str | None = None) -> bytes:
        self.downloads.append(url)
        repo, _, tag = url.removeprefix("fake://").rpartition("/")
        try:
            return self.archives[(repo, tag)]
        except KeyError:
            raise NotFoundError(f"No archive at {url}", url=url, status_code=404) from None


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="tagdeps_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def temp_project(temp_dir: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = temp_dir / "test-project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def initialized_project(temp_project: Path) -> Project:
    """Create a project with an empty manifest installing into 'plugins'."""
    return Project.init(temp_project, install_path="plugins")


@pytest.fixture
def make_archive() -> ArchiveBuilder:
    """Get the in-memory ZIP builder."""
    return build_zip


@pytest.fixture
def fake_source() -> FakeSource:
    """Get an empty in-memory source without a cache."""
    return FakeSource()


@pytest.fixture
def sample_dependency() -> DependencySpec:
    """Sample dependency declared with a caret range."""
    return DependencySpec(name="alpha", version="^1.0.0", repo="acme/alpha")
