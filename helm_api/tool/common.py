"""Common flags for helm-api commands."""

from argparse import ArgumentParser
import os

from helm_api.config import Config


def add_config_flags(args: ArgumentParser) -> None:
    """Add flags for the release manager configuration.

    Non-empty environment variables take precedence over these flags.
    """
    args.add_argument(
        "--namespace",
        help="Namespace where the environments are created (HELM_API_NAMESPACE)",
    )
    args.add_argument(
        "--output-dir",
        help="Folder where environment helm charts are stored (HELM_API_HELM_OUT_DIR)",
    )
    args.add_argument(
        "--source-dir",
        help="Folder where the default helm chart is stored (HELM_API_HELM_SOURCE_DIR)",
    )
    args.add_argument(
        "--helm-driver",
        help="Helm storage driver (HELM_DRIVER)",
    )
    args.add_argument(
        "--env-prefix",
        help="Prefix of all managed release names (HELM_API_ENV_PREFIX)",
    )


def build_config(  # type: ignore[no-untyped-def]
    environ: dict[str, str] | None = None,
    **kwargs,
) -> Config:
    """Build the release manager Config from parsed flags."""
    return Config.from_env(
        os.environ if environ is None else environ,
        namespace=kwargs.get("namespace"),
        output_dir=kwargs.get("output_dir"),
        source_dir=kwargs.get("source_dir"),
        helm_driver=kwargs.get("helm_driver"),
        env_prefix=kwargs.get("env_prefix"),
    )
