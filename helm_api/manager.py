"""Release manager for provisioning, scaling and removing environments.

Every environment is a helm release named `<env_prefix><name>` in the
configured namespace, installed from a chart directory under the output
directory. The manager never keeps its own record of releases: each
operation asks the backend for the current release list before acting, and
only releases carrying the environment prefix are ever visible to callers.

Operations on the same release are serialized by an in-process lock, so the
existence check and the mutation that follows it can't interleave with
another request for the same name. Operations on different releases run
concurrently.
"""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from pathlib import Path

from .backend import (
    ChartLoader,
    FileSystem,
    HelmCli,
    InMemoryChartLoader,
    InMemoryFileSystem,
    InMemoryHelm,
    InstallAction,
    ListAction,
    LocalChartLoader,
    LocalFileSystem,
    UninstallAction,
    UpgradeAction,
)
from .chart_factory import ChartFactory
from .config import Config
from .context import trace_context
from .exceptions import (
    CleanupError,
    ReleaseBusyError,
    ReleaseExistsError,
    ReleaseNotFoundError,
)
from .manifest import (
    Chart,
    ChartMetadata,
    Release,
    ScaleAction,
    UninstallResult,
    replica_count,
)
from .values import ValuesPatcher

__all__ = [
    "Capabilities",
    "ReleaseManager",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class Capabilities:
    """The backend capabilities used by a ReleaseManager."""

    installer: InstallAction
    upgrader: UpgradeAction
    uninstaller: UninstallAction
    lister: ListAction
    chart_loader: ChartLoader
    fs: FileSystem

    @classmethod
    def helm(cls, config: Config, env: dict[str, str] | None = None) -> "Capabilities":
        """Capabilities backed by the helm binary and the local disk."""
        helm = HelmCli(driver=config.helm_driver, env=env)
        return cls(
            installer=helm,
            upgrader=helm,
            uninstaller=helm,
            lister=helm,
            chart_loader=LocalChartLoader(),
            fs=LocalFileSystem(),
        )

    @classmethod
    def in_memory(
        cls, helm: InMemoryHelm | None = None, fs: InMemoryFileSystem | None = None
    ) -> "Capabilities":
        """Capabilities that keep all state in memory."""
        helm = helm or InMemoryHelm()
        fs = fs or InMemoryFileSystem()
        return cls(
            installer=helm,
            upgrader=helm,
            uninstaller=helm,
            lister=helm,
            chart_loader=InMemoryChartLoader(fs),
            fs=fs,
        )


class ReleaseLocks:
    """Exclusive locks keyed by release name with a bounded wait.

    A lock only exists while some task holds or waits for it.
    """

    def __init__(self, timeout: float) -> None:
        """Initialize ReleaseLocks."""
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def __len__(self) -> int:
        """Return the number of releases with a holder or waiter."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, release_name: str) -> AsyncGenerator[None, None]:
        """Hold the lock for the release, raising ReleaseBusyError on timeout."""
        lock = self._locks.setdefault(release_name, asyncio.Lock())
        self._users[release_name] += 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), self._timeout)
            except asyncio.TimeoutError as err:
                raise ReleaseBusyError(release_name, self._timeout) from err
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[release_name] -= 1
            if not self._users[release_name]:
                del self._users[release_name]
                del self._locks[release_name]


class ReleaseManager:
    """Installs, upgrades and uninstalls environment releases."""

    def __init__(self, config: Config, capabilities: Capabilities) -> None:
        """Initialize ReleaseManager."""
        self._config = config
        self._caps = capabilities
        self._factory = ChartFactory(capabilities.fs, config.env_prefix)
        self._values = ValuesPatcher(capabilities.fs)
        self._locks = ReleaseLocks(config.lock_timeout)

    @property
    def config(self) -> Config:
        """Return the configuration of the manager."""
        return self._config

    def qualified_name(self, name: str) -> str:
        """Return the release name for an environment name."""
        return ChartMetadata(name=name).qualified_name(self._config.env_prefix)

    def chart_path(self, name: str) -> Path:
        """Return the chart directory of an environment."""
        return self._config.output_dir / self.qualified_name(name)

    async def chart_exists(self, name: str) -> bool:
        """Return True if the chart directory of an environment exists."""
        return await self._caps.fs.is_dir(self.chart_path(name))

    async def list(self) -> list[str]:
        """Return the names of the managed releases, including the prefix."""
        namespace = self._config.namespace
        prefix = self._config.env_prefix
        _LOGGER.info("Listing releases in namespace '%s'", namespace)
        with trace_context("list", namespace):
            releases = await self._caps.lister.list(namespace, prefix)
        return [
            release.name
            for release in releases
            if release.namespace == namespace and release.name.startswith(prefix)
        ]

    async def create_release(self, metadata: ChartMetadata) -> Path:
        """Create the chart directory for an environment and return its path."""
        release_name = metadata.qualified_name(self._config.env_prefix)
        async with self._locks.hold(release_name):
            with trace_context("create", release_name):
                return await self._factory.materialize(
                    self._config.source_dir, self._config.output_dir, metadata
                )

    async def install(self, chart_path: Path, name: str) -> Release:
        """Install a new release from the chart directory.

        Raises:
            ReleaseExistsError: The release is already installed.
            ChartLoadError: The chart directory is not a valid chart.
            InstallError: The backend failed to install the release.
        """
        release_name = self.qualified_name(name)
        async with self._locks.hold(release_name):
            with trace_context("install", release_name):
                if release_name in await self.list():
                    raise ReleaseExistsError(release_name)
                chart = await self._load(chart_path)
                release = await self._caps.installer.install(
                    release_name, self._config.namespace, chart
                )
        _LOGGER.info("Installed release '%s' revision %d", release.name, release.revision)
        return release

    async def upgrade(self, name: str) -> Release:
        """Upgrade an existing release from its chart directory.

        Raises:
            ReleaseNotFoundError: The release is not installed.
            ChartLoadError: The chart directory is not a valid chart.
            UpgradeError: The backend failed to upgrade the release.
        """
        release_name = self.qualified_name(name)
        async with self._locks.hold(release_name):
            return await self._upgrade(release_name)

    async def uninstall(self, name: str) -> UninstallResult:
        """Uninstall a release and delete its chart directory.

        Raises:
            ReleaseNotFoundError: The release is not installed.
            UninstallError: The backend failed to uninstall the release.
            CleanupError: The release was uninstalled but the chart directory
                could not be deleted.
        """
        release_name = self.qualified_name(name)
        async with self._locks.hold(release_name):
            with trace_context("uninstall", release_name):
                await self._check_exists(release_name)
                result = await self._caps.uninstaller.uninstall(
                    release_name, self._config.namespace
                )
                _LOGGER.debug("Removed release info: %s", result.info)
                await self._delete_chart(release_name)
        return result

    async def set_scale(self, name: str, action: ScaleAction | str) -> Release:
        """Apply a scaling intent to an environment and upgrade it.

        Raises:
            InputException: The action is not a known scale action.
            ReleaseNotFoundError: The release is not installed.
            ValuesReadError: The values document is missing or malformed.
            ValuesWriteError: The values document could not be written.
        """
        count = replica_count(ScaleAction.parse(action))
        release_name = self.qualified_name(name)
        async with self._locks.hold(release_name):
            with trace_context("scale", release_name):
                await self._check_exists(release_name)
                await self._values.set_replica_count(
                    self._config.output_dir / release_name, count
                )
                return await self._upgrade(release_name)

    async def provision(self, metadata: ChartMetadata) -> Release:
        """Create the chart for an environment and install it."""
        chart_path = await self.create_release(metadata)
        return await self.install(chart_path, metadata.name)

    async def _upgrade(self, release_name: str) -> Release:
        with trace_context("upgrade", release_name):
            await self._check_exists(release_name)
            chart = await self._load(self._config.output_dir / release_name)
            release = await self._caps.upgrader.upgrade(
                release_name, self._config.namespace, chart
            )
        _LOGGER.info("Upgraded release '%s' revision %d", release.name, release.revision)
        return release

    async def _check_exists(self, release_name: str) -> None:
        if release_name not in await self.list():
            raise ReleaseNotFoundError(release_name)

    async def _load(self, chart_path: Path) -> Chart:
        chart = await self._caps.chart_loader.load(chart_path)
        _LOGGER.debug("Loaded chart %s-%s from %s", chart.name, chart.version, chart_path)
        return chart

    async def _delete_chart(self, release_name: str) -> None:
        chart_path = self._config.output_dir / release_name
        _LOGGER.info("Removing chart files for '%s' from %s", release_name, chart_path)
        try:
            await self._caps.fs.delete_dir(chart_path)
        except FileNotFoundError:
            _LOGGER.warning("Chart files for '%s' were already removed", release_name)
        except OSError as err:
            raise CleanupError(release_name, chart_path, str(err)) from err
