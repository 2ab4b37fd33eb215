"""In-memory implementations of the backend capabilities.

These keep all state in dictionaries so the release manager can be exercised
without a cluster, a helm binary or a real chart directory. Failures can be
injected per operation to reproduce backend and disk errors.
"""

import asyncio
from collections import defaultdict
from dataclasses import replace
import logging
from pathlib import Path

import yaml

from helm_api.exceptions import (
    ChartLoadError,
    InputException,
    InstallError,
    UninstallError,
)
from helm_api.manifest import CHART_FILE, Chart, Release, UninstallResult

from .backend import (
    ChartLoader,
    FileSystem,
    InstallAction,
    ListAction,
    UninstallAction,
    UpgradeAction,
)

__all__ = [
    "InMemoryHelm",
    "InMemoryChartLoader",
    "InMemoryFileSystem",
]

_LOGGER = logging.getLogger(__name__)


class InMemoryHelm(InstallAction, UpgradeAction, UninstallAction, ListAction):
    """Release capabilities that track releases in memory.

    Set one of the `*_error` attributes to make the next calls of that
    operation raise, and `latency` to yield to other tasks mid-operation.
    """

    def __init__(self, latency: float = 0.0) -> None:
        """Initialize InMemoryHelm."""
        self._releases: dict[str, dict[str, Release]] = defaultdict(dict)
        self.latency = latency
        self.calls: list[tuple[str, str]] = []
        self.install_error: Exception | None = None
        self.upgrade_error: Exception | None = None
        self.uninstall_error: Exception | None = None
        self.list_error: Exception | None = None

    def add_release(self, release: Release) -> None:
        """Add a release as if installed by someone else."""
        self._releases[release.namespace][release.name] = release

    def releases(self, namespace: str) -> list[Release]:
        """Return all releases in the namespace, regardless of name."""
        return list(self._releases[namespace].values())

    async def _settle(self, op: str, release_name: str) -> None:
        self.calls.append((op, release_name))
        await asyncio.sleep(self.latency)

    async def install(self, release_name: str, namespace: str, chart: Chart) -> Release:
        await self._settle("install", release_name)
        if self.install_error is not None:
            raise self.install_error
        if release_name in self._releases[namespace]:
            raise InstallError(
                f"cannot re-use a name that is still in use: {release_name}"
            )
        release = Release(
            name=release_name,
            namespace=namespace,
            revision=1,
            status="deployed",
            chart=f"{chart.name}-{chart.version}",
            app_version=chart.app_version,
        )
        self._releases[namespace][release_name] = release
        return release

    async def upgrade(self, release_name: str, namespace: str, chart: Chart) -> Release:
        await self._settle("upgrade", release_name)
        if self.upgrade_error is not None:
            raise self.upgrade_error
        revision = 0
        if (existing := self._releases[namespace].get(release_name)) is not None:
            revision = existing.revision
        release = Release(
            name=release_name,
            namespace=namespace,
            revision=revision + 1,
            status="deployed",
            chart=f"{chart.name}-{chart.version}",
            app_version=chart.app_version,
        )
        self._releases[namespace][release_name] = release
        return release

    async def uninstall(self, release_name: str, namespace: str) -> UninstallResult:
        await self._settle("uninstall", release_name)
        if self.uninstall_error is not None:
            raise self.uninstall_error
        if self._releases[namespace].pop(release_name, None) is None:
            raise UninstallError(f"uninstall: Release not loaded: {release_name}")
        return UninstallResult(
            name=release_name,
            namespace=namespace,
            info=f'release "{release_name}" uninstalled',
        )

    async def list(self, namespace: str, prefix: str) -> list[Release]:
        self.calls.append(("list", namespace))
        if self.list_error is not None:
            raise self.list_error
        # Ignores the prefix hint so callers must filter.
        return [replace(release) for release in self._releases[namespace].values()]


class InMemoryFileSystem(FileSystem):
    """A FileSystem holding directories and text files in memory.

    Paths in `fail_delete` or `fail_write` raise PermissionError when deleted
    or written. Every write is recorded in `writes`.
    """

    def __init__(self) -> None:
        """Initialize InMemoryFileSystem."""
        self._dirs: set[Path] = {Path("/")}
        self._files: dict[Path, str] = {}
        self.writes: list[Path] = []
        self.fail_delete: set[Path] = set()
        self.fail_write: set[Path] = set()

    def add_dir(self, path: Path) -> None:
        """Create a directory and its parents."""
        path = Path(path)
        self._dirs.add(path)
        self._dirs.update(path.parents)

    def add_file(self, path: Path, content: str) -> None:
        """Create a file and its parent directories."""
        path = Path(path)
        self.add_dir(path.parent)
        self._files[path] = content

    def _children(self, path: Path) -> tuple[list[Path], list[Path]]:
        dirs = [d for d in self._dirs if d != path and d.is_relative_to(path)]
        files = [f for f in self._files if f.is_relative_to(path)]
        return dirs, files

    async def exists(self, path: Path) -> bool:
        return path in self._dirs or path in self._files

    async def is_dir(self, path: Path) -> bool:
        return path in self._dirs

    async def copy_tree(self, src: Path, dst: Path) -> None:
        if src not in self._dirs:
            raise FileNotFoundError(f"No such directory: {src}")
        if await self.exists(dst):
            raise FileExistsError(f"File exists: {dst}")
        if dst.parent not in self._dirs:
            raise FileNotFoundError(f"No such directory: {dst.parent}")
        dirs, files = self._children(src)
        self._dirs.add(dst)
        for d in dirs:
            self._dirs.add(dst / d.relative_to(src))
        for f in files:
            self.writes.append(dst / f.relative_to(src))
            self._files[dst / f.relative_to(src)] = self._files[f]

    async def rename(self, src: Path, dst: Path) -> None:
        if not await self.exists(src):
            raise FileNotFoundError(f"No such file or directory: {src}")
        if src in self._files:
            self._files[dst] = self._files.pop(src)
            return
        dirs, files = self._children(src)
        self._dirs.discard(src)
        self._dirs.add(dst)
        for d in dirs:
            self._dirs.discard(d)
            self._dirs.add(dst / d.relative_to(src))
        for f in files:
            self._files[dst / f.relative_to(src)] = self._files.pop(f)

    async def delete_dir(self, path: Path) -> None:
        if path in self.fail_delete:
            raise PermissionError(f"Permission denied: {path}")
        if path not in self._dirs:
            raise FileNotFoundError(f"No such directory: {path}")
        dirs, files = self._children(path)
        self._dirs.discard(path)
        self._dirs.difference_update(dirs)
        for f in files:
            del self._files[f]

    async def list_files(self, path: Path) -> list[Path]:
        if path not in self._dirs:
            raise FileNotFoundError(f"No such directory: {path}")
        return sorted(self._children(path)[1])

    async def read_text(self, path: Path) -> str:
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        return self._files[path]

    async def write_text(self, path: Path, content: str) -> None:
        if path in self.fail_write:
            raise PermissionError(f"Permission denied: {path}")
        if path.parent not in self._dirs:
            raise FileNotFoundError(f"No such directory: {path.parent}")
        self.writes.append(path)
        self._files[path] = content


class InMemoryChartLoader(ChartLoader):
    """Loads charts from an InMemoryFileSystem."""

    def __init__(self, fs: InMemoryFileSystem) -> None:
        """Initialize InMemoryChartLoader."""
        self._fs = fs

    async def load(self, path: Path) -> Chart:
        try:
            content = await self._fs.read_text(path / CHART_FILE)
            return Chart.parse_doc(yaml.safe_load(content), str(path))
        except (OSError, yaml.YAMLError, InputException) as err:
            raise ChartLoadError(f"Failed to load chart {path}: {err}") from err
