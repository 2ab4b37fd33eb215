"""Tests for the release manager."""

import asyncio
from pathlib import Path
import shutil

import pytest
import yaml

from helm_api.backend import InMemoryFileSystem, InMemoryHelm
from helm_api.config import Config
from helm_api.exceptions import (
    ChartLoadError,
    CleanupError,
    InputException,
    InstallError,
    InvalidNameError,
    ListError,
    ReleaseBusyError,
    ReleaseExistsError,
    ReleaseNotFoundError,
    UninstallError,
    UpgradeError,
    ValuesReadError,
)
from helm_api.manager import Capabilities, ReleaseLocks, ReleaseManager
from helm_api.manifest import ChartMetadata, Release, ScaleAction

from .conftest import NAMESPACE, PREFIX

METADATA = ChartMetadata(name="chart1", version="0.2.0", description="d")


async def test_provision(manager: ReleaseManager, helm: InMemoryHelm, output_dir: Path) -> None:
    """Test creating and installing an environment."""
    release = await manager.provision(METADATA)

    assert release.name == "test-chart1"
    assert release.namespace == NAMESPACE
    assert release.revision == 1
    assert release.chart == "test-chart1-0.2.0"
    assert (output_dir / "test-chart1" / "Chart.yaml").exists()
    assert await manager.list() == ["test-chart1"]
    assert await manager.chart_exists("chart1")
    assert ("install", "test-chart1") in helm.calls


async def test_list_only_managed_releases(manager: ReleaseManager, helm: InMemoryHelm) -> None:
    """Test releases without the prefix or in another namespace are hidden."""
    await manager.provision(METADATA)
    helm.add_release(Release(name="other", namespace=NAMESPACE))
    helm.add_release(Release(name="prod-chart1", namespace=NAMESPACE))
    helm.add_release(Release(name="test-elsewhere", namespace="kube-system"))

    assert await manager.list() == ["test-chart1"]


async def test_list_empty(manager: ReleaseManager) -> None:
    """Test listing with no releases."""
    assert await manager.list() == []


async def test_list_error(manager: ReleaseManager, helm: InMemoryHelm) -> None:
    """Test a backend failure while listing propagates."""
    helm.list_error = ListError("cluster unreachable")
    with pytest.raises(ListError, match="cluster unreachable"):
        await manager.list()


async def test_install_existing_release(
    manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test installing a release twice."""
    chart_path = await manager.create_release(METADATA)
    await manager.install(chart_path, "chart1")

    with pytest.raises(ReleaseExistsError, match="already exists"):
        await manager.install(chart_path, "chart1")
    assert [call for call in helm.calls if call[0] == "install"] == [
        ("install", "test-chart1")
    ]


async def test_install_invalid_chart(
    manager: ReleaseManager, helm: InMemoryHelm, tmp_path: Path
) -> None:
    """Test installing from a directory that is not a chart."""
    with pytest.raises(ChartLoadError):
        await manager.install(tmp_path, "chart1")
    assert await manager.list() == []


async def test_install_backend_failure(
    manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test an install failure reported by the backend."""
    chart_path = await manager.create_release(METADATA)
    helm.install_error = InstallError("timed out waiting for the condition")

    with pytest.raises(InstallError, match="timed out"):
        await manager.install(chart_path, "chart1")
    assert await manager.list() == []


async def test_invalid_name(manager: ReleaseManager, helm: InMemoryHelm) -> None:
    """Test names that can't be used for a release are rejected up front."""
    with pytest.raises(InvalidNameError):
        await manager.provision(ChartMetadata(name="Chart_1"))
    with pytest.raises(InvalidNameError):
        await manager.upgrade("")
    assert helm.calls == []


async def test_upgrade(manager: ReleaseManager) -> None:
    """Test upgrading an installed release bumps the revision."""
    await manager.provision(METADATA)

    release = await manager.upgrade("chart1")
    assert release.revision == 2
    release = await manager.upgrade("chart1")
    assert release.revision == 3


async def test_upgrade_not_found(manager: ReleaseManager, helm: InMemoryHelm) -> None:
    """Test upgrading a release that is not installed."""
    await manager.create_release(METADATA)

    with pytest.raises(ReleaseNotFoundError, match="test-chart1"):
        await manager.upgrade("chart1")
    assert [call for call in helm.calls if call[0] != "list"] == []


async def test_unprefixed_release_not_managed(
    manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test a release named like the environment without the prefix."""
    await manager.create_release(METADATA)
    helm.add_release(Release(name="chart1", namespace=NAMESPACE, revision=4))

    with pytest.raises(ReleaseNotFoundError):
        await manager.upgrade("chart1")
    with pytest.raises(ReleaseNotFoundError):
        await manager.uninstall("chart1")
    assert [r.name for r in helm.releases(NAMESPACE)] == ["chart1"]


async def test_uninstall(manager: ReleaseManager, output_dir: Path) -> None:
    """Test uninstalling removes the release and the chart directory."""
    await manager.provision(METADATA)

    result = await manager.uninstall("chart1")

    assert result.name == "test-chart1"
    assert result.namespace == NAMESPACE
    assert await manager.list() == []
    assert not (output_dir / "test-chart1").exists()
    assert not await manager.chart_exists("chart1")


async def test_uninstall_not_found(manager: ReleaseManager, helm: InMemoryHelm) -> None:
    """Test uninstalling a release that is not installed."""
    with pytest.raises(ReleaseNotFoundError, match="doesn't match"):
        await manager.uninstall("chart1")
    assert helm.calls == [("list", NAMESPACE)]


async def test_uninstall_failure_keeps_chart(
    manager: ReleaseManager, helm: InMemoryHelm, output_dir: Path
) -> None:
    """Test the chart directory is kept when the backend fails."""
    await manager.provision(METADATA)
    helm.uninstall_error = UninstallError("connection refused")

    with pytest.raises(UninstallError, match="connection refused"):
        await manager.uninstall("chart1")
    assert (output_dir / "test-chart1").is_dir()
    assert await manager.list() == ["test-chart1"]


async def test_uninstall_chart_already_removed(
    manager: ReleaseManager, output_dir: Path
) -> None:
    """Test uninstalling when the chart directory is already gone."""
    await manager.provision(METADATA)
    shutil.rmtree(output_dir / "test-chart1")

    result = await manager.uninstall("chart1")
    assert result.name == "test-chart1"
    assert await manager.list() == []


@pytest.fixture(name="memory_fs")
def memory_fs_fixture() -> InMemoryFileSystem:
    """Fixture for an in-memory file system holding a source chart."""
    fs = InMemoryFileSystem()
    fs.add_file(
        Path("/source/Chart.yaml"),
        yaml.dump({"apiVersion": "v2", "name": "mariadb", "version": "0.1.0"}),
    )
    fs.add_file(Path("/source/values.yaml"), "replicas: 1\nfullnameOverride: <CHARTNAME>\n")
    fs.add_dir(Path("/charts"))
    return fs


@pytest.fixture(name="memory_manager")
def memory_manager_fixture(
    memory_fs: InMemoryFileSystem, helm: InMemoryHelm
) -> ReleaseManager:
    """Fixture for a release manager keeping all state in memory."""
    config = Config(
        namespace=NAMESPACE,
        output_dir=Path("/charts"),
        source_dir=Path("/source"),
        env_prefix=PREFIX,
        lock_timeout=5.0,
    )
    return ReleaseManager(config, Capabilities.in_memory(helm=helm, fs=memory_fs))


async def test_uninstall_cleanup_failure(
    memory_manager: ReleaseManager, memory_fs: InMemoryFileSystem
) -> None:
    """Test the release is gone even when its chart can't be deleted."""
    await memory_manager.provision(METADATA)
    memory_fs.fail_delete.add(Path("/charts/test-chart1"))

    with pytest.raises(CleanupError, match="test-chart1") as exc_info:
        await memory_manager.uninstall("chart1")

    assert exc_info.value.chart_path == Path("/charts/test-chart1")
    assert await memory_manager.list() == []
    assert await memory_fs.is_dir(Path("/charts/test-chart1"))


@pytest.mark.parametrize(
    ("action", "replicas"),
    [
        ("up", 1),
        ("down", 0),
        (ScaleAction.DOWN, 0),
    ],
)
async def test_set_scale(
    memory_manager: ReleaseManager,
    memory_fs: InMemoryFileSystem,
    action: str,
    replicas: int,
) -> None:
    """Test a scale action sets the replicas and upgrades the release."""
    await memory_manager.provision(METADATA)

    release = await memory_manager.set_scale("chart1", action)

    assert release.revision == 2
    values = yaml.safe_load(await memory_fs.read_text(Path("/charts/test-chart1/values.yaml")))
    assert values == {"replicas": replicas, "fullnameOverride": "test-chart1"}


async def test_set_scale_invalid_action(
    memory_manager: ReleaseManager, memory_fs: InMemoryFileSystem, helm: InMemoryHelm
) -> None:
    """Test an unknown action is rejected before touching anything."""
    await memory_manager.provision(METADATA)
    calls = list(helm.calls)
    writes = list(memory_fs.writes)

    with pytest.raises(InputException, match="Invalid scale action 'sideways'"):
        await memory_manager.set_scale("chart1", "sideways")
    assert helm.calls == calls
    assert memory_fs.writes == writes


async def test_set_scale_not_installed(
    memory_manager: ReleaseManager, memory_fs: InMemoryFileSystem
) -> None:
    """Test scaling an environment whose release is not installed."""
    await memory_manager.create_release(METADATA)
    writes = list(memory_fs.writes)

    with pytest.raises(ReleaseNotFoundError):
        await memory_manager.set_scale("chart1", "down")
    assert memory_fs.writes == writes


async def test_set_scale_missing_values(
    memory_manager: ReleaseManager, memory_fs: InMemoryFileSystem, helm: InMemoryHelm
) -> None:
    """Test scaling a chart that has no values document."""
    await memory_manager.provision(METADATA)
    await memory_fs.rename(
        Path("/charts/test-chart1/values.yaml"), Path("/charts/values.yaml.bak")
    )

    with pytest.raises(ValuesReadError):
        await memory_manager.set_scale("chart1", "up")
    assert ("upgrade", "test-chart1") not in helm.calls


async def test_create_release_is_idempotent(
    memory_manager: ReleaseManager, memory_fs: InMemoryFileSystem
) -> None:
    """Test creating a chart that already exists returns the same path."""
    chart_path = await memory_manager.create_release(METADATA)
    writes = list(memory_fs.writes)

    assert await memory_manager.create_release(METADATA) == chart_path
    assert memory_fs.writes == writes


async def test_concurrent_install(
    memory_manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test concurrent installs of the same name install exactly once."""
    helm.latency = 0.05
    chart_path = await memory_manager.create_release(METADATA)

    results = await asyncio.gather(
        memory_manager.install(chart_path, "chart1"),
        memory_manager.install(chart_path, "chart1"),
        return_exceptions=True,
    )

    releases = [r for r in results if isinstance(r, Release)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(releases) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ReleaseExistsError)
    assert [call for call in helm.calls if call[0] == "install"] == [
        ("install", "test-chart1")
    ]


async def test_concurrent_different_releases(
    memory_manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test operations on different names are not serialized."""
    helm.latency = 0.05
    await asyncio.gather(
        memory_manager.provision(ChartMetadata(name="chart1")),
        memory_manager.provision(ChartMetadata(name="chart2")),
    )
    assert sorted(await memory_manager.list()) == ["test-chart1", "test-chart2"]


async def test_release_busy(memory_fs: InMemoryFileSystem, helm: InMemoryHelm) -> None:
    """Test an operation gives up when the release stays locked."""
    config = Config(
        namespace=NAMESPACE,
        output_dir=Path("/charts"),
        source_dir=Path("/source"),
        env_prefix=PREFIX,
        lock_timeout=0.05,
    )
    manager = ReleaseManager(config, Capabilities.in_memory(helm=helm, fs=memory_fs))
    await manager.provision(METADATA)
    helm.latency = 0.5

    upgrade = asyncio.create_task(manager.upgrade("chart1"))
    await asyncio.sleep(0.01)
    with pytest.raises(ReleaseBusyError, match="busy"):
        await manager.uninstall("chart1")

    release = await upgrade
    assert release.revision == 2
    assert await manager.list() == ["test-chart1"]


async def test_upgrade_backend_failure(
    memory_manager: ReleaseManager, helm: InMemoryHelm
) -> None:
    """Test an upgrade failure reported by the backend."""
    await memory_manager.provision(METADATA)
    helm.upgrade_error = UpgradeError("another operation is in progress")

    with pytest.raises(UpgradeError, match="another operation"):
        await memory_manager.upgrade("chart1")
    with pytest.raises(UpgradeError, match="another operation"):
        await memory_manager.set_scale("chart1", "down")
    assert helm.releases(NAMESPACE)[0].revision == 1


async def test_upgrade_chart_removed(
    manager: ReleaseManager, helm: InMemoryHelm, output_dir: Path
) -> None:
    """Test upgrading a release whose chart directory is gone."""
    await manager.provision(METADATA)
    shutil.rmtree(output_dir / "test-chart1")

    with pytest.raises(ChartLoadError):
        await manager.upgrade("chart1")
    assert ("upgrade", "test-chart1") not in helm.calls


async def test_set_scale_chart_file_removed(
    manager: ReleaseManager, helm: InMemoryHelm, output_dir: Path
) -> None:
    """Test scaling a release whose Chart.yaml is gone."""
    await manager.provision(METADATA)
    (output_dir / "test-chart1" / "Chart.yaml").unlink()

    with pytest.raises(ChartLoadError):
        await manager.set_scale("chart1", "down")
    assert ("upgrade", "test-chart1") not in helm.calls


async def test_release_locks_are_removed() -> None:
    """Test a lock is dropped once nobody holds or waits for it."""
    locks = ReleaseLocks(timeout=0.05)

    async with locks.hold("test-chart1"):
        assert len(locks) == 1
        with pytest.raises(ReleaseBusyError):
            async with locks.hold("test-chart1"):
                pass
        assert len(locks) == 1
    assert len(locks) == 0

    for i in range(5):
        async with locks.hold(f"test-chart{i}"):
            pass
    assert len(locks) == 0


async def test_release_lock_waiter_keeps_lock() -> None:
    """Test a waiting task acquires the lock after the holder releases it."""
    locks = ReleaseLocks(timeout=1.0)
    order: list[str] = []

    async def hold(name: str) -> None:
        async with locks.hold("test-chart1"):
            order.append(name)
            await asyncio.sleep(0.01)

    await asyncio.gather(hold("first"), hold("second"))

    assert order == ["first", "second"]
    assert len(locks) == 0
