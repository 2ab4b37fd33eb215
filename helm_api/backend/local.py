"""Chart loading and file operations on the local disk."""

import asyncio
import contextlib
import logging
import os
from pathlib import Path
import shutil
import stat
import tempfile

import aiofiles
from aiofiles import os as aioos
from aiofiles.ospath import exists, isdir
import yaml

from helm_api.exceptions import ChartLoadError, InputException
from helm_api.manifest import CHART_FILE, Chart

from .backend import ChartLoader, FileSystem

__all__ = [
    "LocalChartLoader",
    "LocalFileSystem",
]

_LOGGER = logging.getLogger(__name__)

# Mode of newly created files.
_DEFAULT_MODE = 0o644


class LocalChartLoader(ChartLoader):
    """Loads charts from a directory on the local disk."""

    async def load(self, path: Path) -> Chart:
        """Read and validate the Chart.yaml in the chart directory."""
        chart_file = path / CHART_FILE
        try:
            async with aiofiles.open(chart_file, mode="r", encoding="utf-8") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as err:
            raise ChartLoadError(f"Failed to load chart {path}: {err}") from err
        try:
            doc = yaml.safe_load(content)
        except yaml.YAMLError as err:
            raise ChartLoadError(f"Failed to parse {chart_file}: {err}") from err
        try:
            return Chart.parse_doc(doc, str(path))
        except InputException as err:
            raise ChartLoadError(f"Failed to load chart {path}: {err}") from err


class LocalFileSystem(FileSystem):
    """FileSystem implementation using the local disk."""

    async def exists(self, path: Path) -> bool:
        return await exists(path)

    async def is_dir(self, path: Path) -> bool:
        return await isdir(path)

    async def copy_tree(self, src: Path, dst: Path) -> None:
        await asyncio.to_thread(shutil.copytree, src, dst)

    async def rename(self, src: Path, dst: Path) -> None:
        await aioos.rename(src, dst)

    async def delete_dir(self, path: Path) -> None:
        _LOGGER.debug("Deleting directory %s", path)
        await asyncio.to_thread(shutil.rmtree, path)

    async def list_files(self, path: Path) -> list[Path]:
        def _walk() -> list[Path]:
            return sorted(p for p in path.rglob("*") if p.is_file())

        return await asyncio.to_thread(_walk)

    async def read_text(self, path: Path) -> str:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            return await f.read()

    async def write_text(self, path: Path, content: str) -> None:
        """Write to a temporary file in the same directory then replace.

        The file keeps the permissions of the file it replaces.
        """
        tmp_name = await asyncio.to_thread(_temp_file, path)
        try:
            async with aiofiles.open(tmp_name, mode="w", encoding="utf-8") as f:
                await f.write(content)
            await aioos.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                await aioos.remove(tmp_name)
            raise


def _temp_file(path: Path) -> str:
    """Create an empty sibling of the path with the mode of the path."""
    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        mode = _DEFAULT_MODE
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    os.close(fd)
    try:
        os.chmod(tmp_name, mode)
    except OSError:
        os.unlink(tmp_name)
        raise
    return tmp_name
