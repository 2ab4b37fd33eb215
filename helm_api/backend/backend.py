"""Capabilities that the release manager needs from a packaging backend.

Each capability is a separate abstract class so that the orchestration in
`helm_api.manager` can be exercised against in-memory implementations
without a cluster or a helm binary.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from helm_api.manifest import Chart, Release, UninstallResult

__all__ = [
    "InstallAction",
    "UpgradeAction",
    "UninstallAction",
    "ListAction",
    "ChartLoader",
    "FileSystem",
    "ActionPolicy",
    "POLICY",
]


@dataclass(frozen=True)
class ActionPolicy:
    """Fixed settings applied to every mutating backend call."""

    wait: bool = True
    """Block until all resources of the release are ready."""

    timeout: float = 300.0
    """Seconds the backend may spend converging the release."""

    dry_run: bool = False
    """Never simulate, always apply."""


POLICY = ActionPolicy()


class InstallAction(ABC):
    """Installs a new release from a loaded chart."""

    @abstractmethod
    async def install(self, release_name: str, namespace: str, chart: Chart) -> Release:
        """Install the chart as a new release and return it once ready."""


class UpgradeAction(ABC):
    """Upgrades a release in place, installing it if missing."""

    @abstractmethod
    async def upgrade(self, release_name: str, namespace: str, chart: Chart) -> Release:
        """Upgrade the release to the chart and return it once ready."""


class UninstallAction(ABC):
    """Removes a release and its resources."""

    @abstractmethod
    async def uninstall(self, release_name: str, namespace: str) -> UninstallResult:
        """Uninstall the release and wait for its resources to be deleted."""


class ListAction(ABC):
    """Lists releases known to the backend."""

    @abstractmethod
    async def list(self, namespace: str, prefix: str) -> list[Release]:
        """Return releases in the namespace.

        The prefix is a hint that implementations may use to narrow the query,
        callers must still filter the result themselves.
        """


class ChartLoader(ABC):
    """Reads a chart directory into a Chart."""

    @abstractmethod
    async def load(self, path: Path) -> Chart:
        """Load the chart at the path, raising ChartLoadError if invalid."""


class FileSystem(ABC):
    """File operations on chart directories and values documents."""

    @abstractmethod
    async def exists(self, path: Path) -> bool:
        """Return True if the path exists."""

    @abstractmethod
    async def is_dir(self, path: Path) -> bool:
        """Return True if the path is an existing directory."""

    @abstractmethod
    async def copy_tree(self, src: Path, dst: Path) -> None:
        """Recursively copy the directory src to dst, which must not exist."""

    @abstractmethod
    async def rename(self, src: Path, dst: Path) -> None:
        """Move src to dst."""

    @abstractmethod
    async def delete_dir(self, path: Path) -> None:
        """Recursively delete a directory and its contents."""

    @abstractmethod
    async def list_files(self, path: Path) -> list[Path]:
        """Return all files under the directory, recursively, sorted."""

    @abstractmethod
    async def read_text(self, path: Path) -> str:
        """Return the contents of a file."""

    @abstractmethod
    async def write_text(self, path: Path, content: str) -> None:
        """Replace the contents of a file atomically.

        Readers see either the previous contents or the new contents, never
        a partially written file.
        """
