"""Exceptions related to helm-api."""

from pathlib import Path

__all__ = [
    "HelmApiException",
    "InputException",
    "InvalidNameError",
    "ConfigException",
    "CommandException",
    "HelmException",
    "InstallError",
    "UpgradeError",
    "UninstallError",
    "ListError",
    "ChartException",
    "SourceNotFoundError",
    "OutputDirNotFoundError",
    "ChartLoadError",
    "ValuesException",
    "ValuesReadError",
    "ValuesWriteError",
    "ReleaseNotFoundError",
    "ReleaseExistsError",
    "ReleaseBusyError",
    "CleanupError",
]


class HelmApiException(Exception):
    """Generic base exception used for this library."""


class InputException(HelmApiException):
    """Raised when a request is not formatted as expected."""


class InvalidNameError(InputException):
    """Raised when a name can't be used as a helm release name."""


class ConfigException(HelmApiException):
    """Raised when the process configuration or credentials are incomplete."""


class CommandException(HelmApiException):
    """Raised when there is a failure running a subcommand."""


class HelmException(CommandException):
    """Raised when there is a failure running a helm command."""


class InstallError(HelmException):
    """Raised when the backend fails to install a release."""


class UpgradeError(HelmException):
    """Raised when the backend fails to upgrade a release."""


class UninstallError(HelmException):
    """Raised when the backend fails to uninstall a release."""


class ListError(HelmException):
    """Raised when the backend fails to list releases."""


class ChartException(HelmApiException):
    """Raised when a chart can't be created or read from disk."""


class SourceNotFoundError(ChartException):
    """Raised when the source chart template does not exist."""


class OutputDirNotFoundError(ChartException):
    """Raised when the chart output directory does not exist."""


class ChartLoadError(ChartException):
    """Raised when a chart directory is not a loadable chart."""


class ValuesException(HelmApiException):
    """Raised for failures handling a chart values document."""


class ValuesReadError(ValuesException):
    """Raised when the values document is missing or malformed."""


class ValuesWriteError(ValuesException):
    """Raised when the values document can't be written."""


class ReleaseNotFoundError(HelmApiException):
    """Raised when an operation requires a release that does not exist."""

    def __init__(self, release_name: str) -> None:
        super().__init__(
            f"Release {release_name} doesn't match any of the managed environments"
        )
        self.release_name = release_name


class ReleaseExistsError(HelmApiException):
    """Raised when installing a release that already exists."""

    def __init__(self, release_name: str) -> None:
        super().__init__(
            f"Release {release_name} already exists, upgrade it instead"
        )
        self.release_name = release_name


class ReleaseBusyError(HelmApiException):
    """Raised when another operation holds the release for too long."""

    def __init__(self, release_name: str, timeout: float) -> None:
        super().__init__(
            f"Release {release_name} is busy, gave up waiting after {timeout:g}s"
        )
        self.release_name = release_name
        self.timeout = timeout


class CleanupError(HelmApiException):
    """Raised when a release was uninstalled but its chart files remain on disk.

    The backend no longer knows about the release, so this requires manual
    removal of the chart directory.
    """

    def __init__(self, release_name: str, chart_path: Path, message: str) -> None:
        super().__init__(
            f"Release {release_name} was uninstalled but chart files at "
            f"{chart_path} could not be deleted: {message}"
        )
        self.release_name = release_name
        self.chart_path = chart_path
