"""Library for creating environment charts from a starter chart.

A new chart is a copy of the source chart with its Chart.yaml rewritten to
carry the qualified name, version and description of the request, and the
`<CHARTNAME>` placeholder replaced in the values and templates:
```python
from helm_api.backend import LocalFileSystem
from helm_api.chart_factory import ChartFactory
from helm_api.manifest import ChartMetadata

factory = ChartFactory(LocalFileSystem(), prefix="test-")
chart_path = await factory.materialize(
    Path("source/helm/mariadb"),
    Path("charts"),
    ChartMetadata(name="chart1", version="0.2.0", description="d"),
)
```

Materializing a name that already exists returns the existing path without
touching it. A chart is written into a staging directory and renamed into
place once complete, so a failed attempt never leaves a partial chart behind.
"""

import logging
from pathlib import Path
import uuid

import yaml

from .backend import FileSystem
from .exceptions import (
    ChartException,
    ChartLoadError,
    OutputDirNotFoundError,
    SourceNotFoundError,
)
from .manifest import (
    CHART_FILE,
    CHART_NAME_PLACEHOLDER,
    TEMPLATES_DIR,
    VALUES_FILE,
    ChartMetadata,
)

__all__ = [
    "ChartFactory",
]

_LOGGER = logging.getLogger(__name__)


class ChartFactory:
    """Creates chart directories from a source chart."""

    def __init__(self, fs: FileSystem, prefix: str) -> None:
        """Initialize ChartFactory."""
        self._fs = fs
        self._prefix = prefix

    def chart_path(self, output_dir: Path, metadata: ChartMetadata) -> Path:
        """Return the directory where the chart for the metadata lives."""
        return output_dir / metadata.qualified_name(self._prefix)

    async def materialize(
        self, source_dir: Path, output_dir: Path, metadata: ChartMetadata
    ) -> Path:
        """Create the chart for the metadata and return its path.

        Raises:
            SourceNotFoundError: The source chart directory does not exist.
            OutputDirNotFoundError: The output directory does not exist.
            ChartLoadError: The source chart has no valid Chart.yaml.
            ChartException: Copying or rewriting the chart failed.
        """
        if not await self._fs.is_dir(source_dir):
            raise SourceNotFoundError(f"Source chart path does not exist: {source_dir}")
        if not await self._fs.is_dir(output_dir):
            raise OutputDirNotFoundError(f"Output directory does not exist: {output_dir}")

        chart_path = self.chart_path(output_dir, metadata)
        name = chart_path.name
        if await self._fs.exists(chart_path):
            _LOGGER.info("Helm chart already exists for %s, skipping creation", name)
            return chart_path

        _LOGGER.info(
            "Creating Helm chart '%s' from source '%s' into '%s'",
            name,
            source_dir,
            output_dir,
        )
        staging = output_dir / f".{name}.{uuid.uuid4().hex[:8]}"
        try:
            await self._fs.copy_tree(source_dir, staging)
            await self._render(staging, name, metadata)
            await self._fs.rename(staging, chart_path)
        except BaseException as err:
            await self._discard(staging)
            if isinstance(err, OSError):
                raise ChartException(
                    f"Failed to create chart from source: {err}"
                ) from err
            raise

        _LOGGER.info("Created Helm chart '%s' at '%s'", name, chart_path)
        return chart_path

    async def _render(self, path: Path, name: str, metadata: ChartMetadata) -> None:
        """Rewrite the copied source chart for the new name."""
        chart_file = path / CHART_FILE
        try:
            doc = yaml.safe_load(await self._fs.read_text(chart_file))
        except FileNotFoundError as err:
            raise ChartLoadError(f"Source chart is missing {CHART_FILE}") from err
        except UnicodeDecodeError as err:
            raise ChartLoadError(f"Source {CHART_FILE} is not valid UTF-8: {err}") from err
        except yaml.YAMLError as err:
            raise ChartLoadError(f"Unable to parse source {CHART_FILE}: {err}") from err
        if not isinstance(doc, dict):
            raise ChartLoadError(f"Source {CHART_FILE} is not a mapping")

        doc["name"] = name
        if metadata.version:
            doc["version"] = metadata.version
        if metadata.description is not None:
            doc["description"] = metadata.description
        await self._fs.write_text(chart_file, yaml.dump(doc, sort_keys=False))

        targets = []
        if await self._fs.exists(path / VALUES_FILE):
            targets.append(path / VALUES_FILE)
        if await self._fs.is_dir(path / TEMPLATES_DIR):
            targets.extend(await self._fs.list_files(path / TEMPLATES_DIR))
        for target in targets:
            try:
                content = await self._fs.read_text(target)
            except UnicodeDecodeError:
                continue
            if CHART_NAME_PLACEHOLDER in content:
                await self._fs.write_text(
                    target, content.replace(CHART_NAME_PLACEHOLDER, name)
                )

    async def _discard(self, staging: Path) -> None:
        if not await self._fs.exists(staging):
            return
        try:
            await self._fs.delete_dir(staging)
        except OSError as err:
            _LOGGER.error("Unable to remove partial chart %s: %s", staging, err)
