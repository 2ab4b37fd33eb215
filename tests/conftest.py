"""Fixtures shared by the helm-api tests."""

from pathlib import Path

import pytest

from helm_api.backend import InMemoryHelm, LocalChartLoader, LocalFileSystem
from helm_api.config import Config
from helm_api.manager import Capabilities, ReleaseManager

TESTDATA_DIR = Path(__file__).parent / "testdata"
SOURCE_CHART = TESTDATA_DIR / "source-chart"

NAMESPACE = "helm-api-test"
PREFIX = "test-"


@pytest.fixture(name="output_dir")
def output_dir_fixture(tmp_path: Path) -> Path:
    """Fixture for an empty chart output directory."""
    path = tmp_path / "charts"
    path.mkdir()
    return path


@pytest.fixture(name="config")
def config_fixture(output_dir: Path) -> Config:
    """Fixture for the release manager configuration."""
    return Config(
        namespace=NAMESPACE,
        output_dir=output_dir,
        source_dir=SOURCE_CHART,
        env_prefix=PREFIX,
        lock_timeout=5.0,
    )


@pytest.fixture(name="helm")
def helm_fixture() -> InMemoryHelm:
    """Fixture for an in-memory packaging backend."""
    return InMemoryHelm()


@pytest.fixture(name="manager")
def manager_fixture(config: Config, helm: InMemoryHelm) -> ReleaseManager:
    """Fixture for a release manager using the local disk and in-memory helm."""
    return ReleaseManager(
        config,
        Capabilities(
            installer=helm,
            upgrader=helm,
            uninstaller=helm,
            lister=helm,
            chart_loader=LocalChartLoader(),
            fs=LocalFileSystem(),
        ),
    )
