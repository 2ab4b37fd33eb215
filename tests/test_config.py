"""Tests for the configuration objects."""

from pathlib import Path

from helm_api.config import Config
from helm_api.tool.common import build_config


def test_defaults() -> None:
    """Test the defaults when nothing is set."""
    config = Config.from_env({})
    assert config == Config(
        namespace="helm-api-pg",
        output_dir=Path("charts"),
        source_dir=Path("source/helm/mariadb"),
        helm_driver="secrets",
        env_prefix="test-",
    )


def test_flags() -> None:
    """Test flags override the defaults."""
    config = build_config(
        {},
        namespace="envs",
        output_dir="/var/charts",
        source_dir="/srv/mariadb",
        helm_driver="configmap",
        env_prefix="dev-",
    )
    assert config.namespace == "envs"
    assert config.output_dir == Path("/var/charts")
    assert config.source_dir == Path("/srv/mariadb")
    assert config.helm_driver == "configmap"
    assert config.env_prefix == "dev-"


def test_environment_wins_over_flags() -> None:
    """Test non-empty environment variables take precedence over flags."""
    config = build_config(
        {
            "HELM_API_NAMESPACE": "from-env",
            "HELM_API_HELM_OUT_DIR": "/env/charts",
            "HELM_API_ENV_PREFIX": "",
            "HELM_DRIVER": "memory",
        },
        namespace="from-flag",
        env_prefix="flag-",
    )
    assert config.namespace == "from-env"
    assert config.output_dir == Path("/env/charts")
    assert config.env_prefix == "flag-"
    assert config.helm_driver == "memory"
    assert config.source_dir == Path("source/helm/mariadb")
