"""Module for editing the values document of an environment chart."""

import logging
from pathlib import Path
from typing import Any

import yaml

from .backend import FileSystem
from .exceptions import InputException, ValuesReadError, ValuesWriteError
from .manifest import REPLICAS_KEY, VALUES_FILE

__all__ = [
    "ValuesPatcher",
]

_LOGGER = logging.getLogger(__name__)


class ValuesPatcher:
    """Reads and updates keys in a chart values.yaml.

    Keys are written back in the order they were read, so updating one key
    leaves the rest of the document as it was.
    """

    def __init__(self, fs: FileSystem) -> None:
        """Initialize ValuesPatcher."""
        self._fs = fs

    async def read(self, chart_path: Path) -> dict[str, Any]:
        """Return the values document of the chart."""
        values_path = chart_path / VALUES_FILE
        try:
            content = await self._fs.read_text(values_path)
        except (OSError, UnicodeDecodeError) as err:
            raise ValuesReadError(f"Failed to read values file {values_path}: {err}") from err
        try:
            values = yaml.safe_load(content)
        except yaml.YAMLError as err:
            raise ValuesReadError(f"Failed to parse values file {values_path}: {err}") from err
        if values is None:
            return {}
        if not isinstance(values, dict):
            raise ValuesReadError(
                f"Values file {values_path} is not a mapping: {type(values).__name__}"
            )
        return values

    async def write(self, chart_path: Path, values: dict[str, Any]) -> None:
        """Replace the values document of the chart."""
        values_path = chart_path / VALUES_FILE
        try:
            content = yaml.dump(values, sort_keys=False)
        except yaml.YAMLError as err:
            raise ValuesWriteError(f"Failed to marshal values: {err}") from err
        try:
            await self._fs.write_text(values_path, content)
        except OSError as err:
            raise ValuesWriteError(f"Failed to write values file {values_path}: {err}") from err

    async def update(self, chart_path: Path, updates: dict[str, Any]) -> dict[str, Any]:
        """Merge top level keys into the values document and return the result."""
        values = await self.read(chart_path)
        values.update(updates)
        await self.write(chart_path, values)
        return values

    async def set_replica_count(self, chart_path: Path, count: int) -> None:
        """Set the `replicas` value of the chart."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InputException(f"Invalid replica count: {count!r}")
        _LOGGER.info("Setting %s=%d for chart %s", REPLICAS_KEY, count, chart_path.name)
        await self.update(chart_path, {REPLICAS_KEY: count})
