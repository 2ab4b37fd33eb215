"""Library for running `helm` release commands against a cluster.

The `HelmCli` implements every release capability by shelling out to the
helm binary, which picks up cluster credentials from the usual kubeconfig
locations. For example:
```python
from helm_api.backend import HelmCli, LocalChartLoader

helm = HelmCli(driver="secrets")
chart = await LocalChartLoader().load(Path("charts/test-chart1"))
release = await helm.install("test-chart1", "helm-api-pg", chart)
print(f"Installed {release.name} revision {release.revision}")
```
"""

import json
import logging
import re
from typing import Any

from helm_api import command
from helm_api.exceptions import (
    HelmException,
    InputException,
    InstallError,
    ListError,
    UninstallError,
    UpgradeError,
)
from helm_api.manifest import Chart, Release, UninstallResult

from .backend import (
    POLICY,
    ActionPolicy,
    InstallAction,
    ListAction,
    UninstallAction,
    UpgradeAction,
)

__all__ = [
    "HelmCli",
]

_LOGGER = logging.getLogger(__name__)


HELM_BIN = "helm"

# Extra time given to the helm process on top of its own --timeout before
# it is killed.
_GRACE_PERIOD = 30.0


def _parse_json(out: str, exc: type[HelmException]) -> Any:
    try:
        return json.loads(out)
    except ValueError as err:
        raise exc(f"Unable to parse helm output: {err}: {out!r}") from err


class HelmCli(InstallAction, UpgradeAction, UninstallAction, ListAction):
    """Release capabilities backed by the helm command line tool."""

    def __init__(
        self,
        driver: str = "secrets",
        helm_bin: str = HELM_BIN,
        env: dict[str, str] | None = None,
        policy: ActionPolicy = POLICY,
    ) -> None:
        """Initialize HelmCli.

        Args:
            driver: The helm storage driver for release records.
            helm_bin: Path to the helm binary.
            env: Extra environment variables for the helm process.
            policy: Wait and timeout settings for mutating commands.
        """
        self._helm_bin = helm_bin
        self._env = {"HELM_DRIVER": driver, **(env or {})}
        self._policy = policy

    @property
    def policy_args(self) -> list[str]:
        """Helm CLI arguments built from the action policy."""
        args = []
        if self._policy.wait:
            args.append("--wait")
        args.extend(["--timeout", f"{int(self._policy.timeout)}s"])
        if self._policy.dry_run:
            args.append("--dry-run")
        return args

    def _command(self, args: list[str], exc: type[HelmException]) -> command.Command:
        return command.Command(
            [self._helm_bin, *args],
            exc=exc,
            env=self._env,
            timeout=self._policy.timeout + _GRACE_PERIOD,
        )

    async def install(self, release_name: str, namespace: str, chart: Chart) -> Release:
        """Run `helm install` for the chart directory."""
        args = [
            "install",
            release_name,
            chart.path,
            "--namespace",
            namespace,
            "--output",
            "json",
        ]
        args.extend(self.policy_args)
        _LOGGER.info("Installing release '%s' in namespace '%s'", release_name, namespace)
        out = await command.run(self._command(args, InstallError))
        doc = _parse_json(out, InstallError)
        _LOGGER.debug("Installed release manifest:\n%s", doc.get("manifest", ""))
        return Release.parse_release_doc(doc)

    async def upgrade(self, release_name: str, namespace: str, chart: Chart) -> Release:
        """Run `helm upgrade --install --force` for the chart directory."""
        args = [
            "upgrade",
            release_name,
            chart.path,
            "--namespace",
            namespace,
            "--install",
            "--force",
            "--output",
            "json",
        ]
        args.extend(self.policy_args)
        _LOGGER.info("Upgrading release '%s' in namespace '%s'", release_name, namespace)
        out = await command.run(self._command(args, UpgradeError))
        doc = _parse_json(out, UpgradeError)
        _LOGGER.debug("Upgraded release manifest:\n%s", doc.get("manifest", ""))
        return Release.parse_release_doc(doc)

    async def uninstall(self, release_name: str, namespace: str) -> UninstallResult:
        """Run `helm uninstall` and wait for the resources to be removed."""
        args = [
            "uninstall",
            release_name,
            "--namespace",
            namespace,
        ]
        args.extend(self.policy_args)
        _LOGGER.info(
            "Uninstalling release '%s' from namespace '%s'", release_name, namespace
        )
        out = await command.run(self._command(args, UninstallError))
        return UninstallResult(
            name=release_name,
            namespace=namespace,
            info=out.strip() or None,
        )

    async def list(self, namespace: str, prefix: str) -> list[Release]:
        """Run `helm list` for all releases in the namespace."""
        args = [
            "list",
            "--namespace",
            namespace,
            "--all",
            "--max",
            "0",
            "--output",
            "json",
        ]
        if prefix:
            args.extend(["--filter", f"^{re.escape(prefix)}"])
        _LOGGER.debug("Listing releases in namespace '%s'", namespace)
        out = await command.run(self._command(args, ListError))
        docs = _parse_json(out, ListError) or []
        if not isinstance(docs, list):
            raise ListError(f"Unexpected helm list output: {out!r}")
        try:
            return [Release.parse_doc(doc) for doc in docs]
        except InputException as err:
            raise ListError(f"Unexpected helm list output: {err}") from err
