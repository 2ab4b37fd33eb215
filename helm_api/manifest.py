"""Representation of the charts and releases managed by helm-api.

Releases are never persisted by helm-api itself. The objects here are
snapshots of what the packaging backend reported at the time of a call, and
charts are read from (or written to) the chart directory on disk.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Any, Optional

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import InputException, InvalidNameError

__all__ = [
    "ChartMetadata",
    "Chart",
    "Release",
    "UninstallResult",
    "ScaleAction",
    "replica_count",
    "CHART_FILE",
    "VALUES_FILE",
    "TEMPLATES_DIR",
    "CHART_NAME_PLACEHOLDER",
    "REPLICAS_KEY",
]

_LOGGER = logging.getLogger(__name__)


CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"
TEMPLATES_DIR = "templates"

# Starter charts use this token wherever the chart name belongs.
CHART_NAME_PLACEHOLDER = "<CHARTNAME>"

REPLICAS_KEY = "replicas"

# Helm stores release names in secret labels, which limits their length.
MAX_RELEASE_NAME_LEN = 53
RELEASE_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


def check_release_name(name: str) -> None:
    """Raise InvalidNameError if the name can't be used for a helm release."""
    if len(name) > MAX_RELEASE_NAME_LEN:
        raise InvalidNameError(
            f"Release name {name} is longer than {MAX_RELEASE_NAME_LEN} characters"
        )
    if not RELEASE_NAME_RE.match(name):
        raise InvalidNameError(
            f"Release name {name} must consist of lower case alphanumeric "
            "characters or '-', and start and end with an alphanumeric character"
        )


@dataclass
class ChartMetadata(BaseManifest):
    """The caller supplied metadata for a new chart."""

    name: str
    """The unqualified name of the chart, without the environment prefix."""

    version: Optional[str] = None
    """The chart version written to Chart.yaml."""

    description: Optional[str] = None
    """The chart description written to Chart.yaml."""

    def qualified_name(self, prefix: str) -> str:
        """Return the release name used for every backend call."""
        if not self.name:
            raise InvalidNameError("Chart metadata is missing a name")
        name = f"{prefix}{self.name}"
        check_release_name(name)
        return name


@dataclass
class Chart(BaseManifest):
    """A chart loaded from a directory on disk."""

    name: str
    """The name of the chart from Chart.yaml."""

    version: str
    """The version of the chart from Chart.yaml."""

    path: str = field(metadata={"serialize": "omit"})
    """The directory the chart was loaded from."""

    api_version: Optional[str] = field(
        metadata=field_options(alias="apiVersion"), default=None
    )
    """The chart API version, v2 for helm 3 charts."""

    description: Optional[str] = None
    """A single sentence describing the chart."""

    app_version: Optional[str] = field(
        metadata=field_options(alias="appVersion"), default=None
    )
    """The version of the application the chart deploys."""

    @classmethod
    def parse_doc(cls, doc: Any, path: str) -> "Chart":
        """Parse a Chart from the contents of a Chart.yaml file."""
        if not isinstance(doc, dict):
            raise InputException(f"Invalid {CHART_FILE} in {path}: expected a mapping")
        if not (name := doc.get("name")):
            raise InputException(f"Invalid {CHART_FILE} in {path}: missing name")
        if not (version := doc.get("version")):
            raise InputException(f"Invalid {CHART_FILE} in {path}: missing version")
        app_version = doc.get("appVersion")
        return cls(
            name=str(name),
            version=str(version),
            path=path,
            api_version=doc.get("apiVersion"),
            description=doc.get("description"),
            app_version=str(app_version) if app_version is not None else None,
        )


@dataclass
class Release(BaseManifest):
    """A release as reported by the packaging backend."""

    name: str
    """The qualified name of the release."""

    namespace: str
    """The namespace the release is installed in."""

    revision: int = 0
    """The revision number, incremented by each install or upgrade."""

    status: Optional[str] = None
    """The backend status of the release, e.g. deployed or failed."""

    chart: Optional[str] = None
    """The chart name and version, e.g. mariadb-0.2.0."""

    app_version: Optional[str] = None
    """The application version of the chart."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Release":
        """Parse a Release from an entry of `helm list --output json`."""
        if not (name := doc.get("name")):
            raise InputException(f"Invalid release missing name: {doc}")
        return cls.from_dict(
            {
                "name": name,
                "namespace": doc.get("namespace", ""),
                "revision": int(doc.get("revision") or 0),
                "status": doc.get("status"),
                "chart": doc.get("chart"),
                "app_version": doc.get("app_version") or None,
            }
        )

    @classmethod
    def parse_release_doc(cls, doc: dict[str, Any]) -> "Release":
        """Parse a Release from the output of `helm install --output json`."""
        if not (name := doc.get("name")):
            raise InputException(f"Invalid release missing name: {doc}")
        metadata = (doc.get("chart") or {}).get("metadata") or {}
        chart = None
        if metadata.get("name"):
            chart = f"{metadata['name']}-{metadata.get('version', '')}"
        return cls(
            name=name,
            namespace=doc.get("namespace", ""),
            revision=int(doc.get("version") or 0),
            status=(doc.get("info") or {}).get("status"),
            chart=chart,
            app_version=metadata.get("appVersion"),
        )


@dataclass
class UninstallResult(BaseManifest):
    """The outcome of uninstalling a release."""

    name: str
    """The qualified name of the uninstalled release."""

    namespace: str
    """The namespace the release was removed from."""

    info: Optional[str] = None
    """Message reported by the backend."""


class ScaleAction(str, Enum):
    """A scaling intent for an environment."""

    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, value: str) -> "ScaleAction":
        """Parse a scale action, rejecting anything outside the policy table."""
        try:
            return cls(value)
        except ValueError as err:
            raise InputException(
                f"Invalid scale action '{value}', expected one of: "
                + ", ".join(action.value for action in cls)
            ) from err


_REPLICAS = {
    ScaleAction.UP: 1,
    ScaleAction.DOWN: 0,
}


def replica_count(action: ScaleAction) -> int:
    """Return the replica count for a scale action."""
    return _REPLICAS[action]
