"""Configuration objects for helm-api."""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "Config",
    "ApiKeys",
    "DEFAULT_NAMESPACE",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_SOURCE_DIR",
    "DEFAULT_HELM_DRIVER",
    "DEFAULT_ENV_PREFIX",
    "DEFAULT_PORT",
    "DEFAULT_AWS_REGION",
]

DEFAULT_NAMESPACE = "helm-api-pg"
DEFAULT_OUTPUT_DIR = "charts"
DEFAULT_SOURCE_DIR = "source/helm/mariadb"
DEFAULT_HELM_DRIVER = "secrets"
DEFAULT_ENV_PREFIX = "test-"
DEFAULT_PORT = 8080
DEFAULT_AWS_REGION = "us-east-1"

# Longer than the backend timeout so a waiter outlives one full operation.
DEFAULT_LOCK_TIMEOUT = 330.0

ENV_NAMESPACE = "HELM_API_NAMESPACE"
ENV_OUTPUT_DIR = "HELM_API_HELM_OUT_DIR"
ENV_SOURCE_DIR = "HELM_API_HELM_SOURCE_DIR"
ENV_HELM_DRIVER = "HELM_DRIVER"
ENV_PREFIX = "HELM_API_ENV_PREFIX"
ENV_PORT = "HELM_API_PORT"
ENV_LOG_LEVEL = "HELM_API_LOG_LEVEL"


@dataclass(frozen=True)
class Config:
    """Settings for the release manager, fixed for the life of the process."""

    namespace: str = DEFAULT_NAMESPACE
    """Namespace where environments are installed."""

    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    """Directory holding one chart directory per environment."""

    source_dir: Path = Path(DEFAULT_SOURCE_DIR)
    """Chart used as the template for every new environment."""

    helm_driver: str = DEFAULT_HELM_DRIVER
    """Helm storage driver for release records."""

    env_prefix: str = DEFAULT_ENV_PREFIX
    """Prefix of every release name managed by this process."""

    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    """Seconds to wait for another operation on the same release."""

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        namespace: str | None = None,
        output_dir: str | None = None,
        source_dir: str | None = None,
        helm_driver: str | None = None,
        env_prefix: str | None = None,
    ) -> "Config":
        """Build a Config where non-empty environment variables win over flags."""

        def pick(key: str, flag: str | None, default: str) -> str:
            return environ.get(key) or flag or default

        return cls(
            namespace=pick(ENV_NAMESPACE, namespace, DEFAULT_NAMESPACE),
            output_dir=Path(pick(ENV_OUTPUT_DIR, output_dir, DEFAULT_OUTPUT_DIR)),
            source_dir=Path(pick(ENV_SOURCE_DIR, source_dir, DEFAULT_SOURCE_DIR)),
            helm_driver=pick(ENV_HELM_DRIVER, helm_driver, DEFAULT_HELM_DRIVER),
            env_prefix=pick(ENV_PREFIX, env_prefix, DEFAULT_ENV_PREFIX),
        )


@dataclass(frozen=True)
class ApiKeys:
    """Master keys guarding the mutating HTTP endpoints."""

    create: str
    update: str
    delete: str
