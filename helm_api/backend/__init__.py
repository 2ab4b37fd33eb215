"""Capabilities used by the release manager and their implementations.

- `HelmCli`, `LocalChartLoader` and `LocalFileSystem` talk to a real cluster
  and disk.
- `InMemoryHelm`, `InMemoryChartLoader` and `InMemoryFileSystem` keep all
  state in memory for tests and local experiments.
"""

from .backend import (
    POLICY,
    ActionPolicy,
    ChartLoader,
    FileSystem,
    InstallAction,
    ListAction,
    UninstallAction,
    UpgradeAction,
)
from .helm import HelmCli
from .in_memory import InMemoryChartLoader, InMemoryFileSystem, InMemoryHelm
from .local import LocalChartLoader, LocalFileSystem

__all__ = [
    "POLICY",
    "ActionPolicy",
    "ChartLoader",
    "FileSystem",
    "InstallAction",
    "ListAction",
    "UninstallAction",
    "UpgradeAction",
    "HelmCli",
    "LocalChartLoader",
    "LocalFileSystem",
    "InMemoryHelm",
    "InMemoryChartLoader",
    "InMemoryFileSystem",
]
