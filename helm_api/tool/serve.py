"""helm-api serve action."""

import asyncio
from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import logging
import os
from typing import cast

import uvicorn

from helm_api import bootstrap
from helm_api.config import DEFAULT_AWS_REGION, DEFAULT_PORT, ENV_PORT
from helm_api.manager import Capabilities, ReleaseManager
from helm_api.server import create_app

from .common import add_config_flags, build_config

_LOGGER = logging.getLogger(__name__)

# Seconds outstanding requests get to finish after a shutdown signal.
SHUTDOWN_TIMEOUT = 15


class ServeAction:
    """helm-api serve action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "serve",
                help="Run the environment HTTP API",
                description="""Serve the HTTP API used to create, update, delete
                    and list environments. The master API keys are read from
                    the environment or from the SSM parameter store.""",
            ),
        )
        add_config_flags(args)
        args.add_argument(
            "--host",
            default="0.0.0.0",
            help="Address to listen on",
        )
        args.add_argument(
            "--port",
            type=int,
            default=int(os.environ.get(ENV_PORT) or DEFAULT_PORT),
            help="Port to listen on (HELM_API_PORT)",
        )
        args.add_argument(
            "--aws",
            action=BooleanOptionalAction,
            default=os.environ.get("HELM_API_AWS") == "true",
            help="Load credentials from the AWS SSM parameter store (HELM_API_AWS)",
        )
        args.add_argument(
            "--aws-region",
            default=DEFAULT_AWS_REGION,
            help="AWS region of the SSM parameter store",
        )
        args.add_argument(
            "--ssm-param",
            action="append",
            default=[],
            help="SSM parameter to load as NAME=ENV_KEY, may be repeated",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        host: str,
        port: int,
        aws: bool,
        aws_region: str,
        ssm_param: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        credentials: dict[str, str] = {}
        if aws:
            parameters = bootstrap.parse_ssm_params(ssm_param)
            client = bootstrap.ssm_client(aws_region)
            credentials = await asyncio.to_thread(
                bootstrap.fetch_ssm_parameters, client, parameters
            )
            _LOGGER.info("AWS client initialized successfully")
        environ = {**os.environ, **credentials}
        api_keys = bootstrap.load_api_keys(environ)

        config = build_config(environ, **kwargs)
        manager = ReleaseManager(config, Capabilities.helm(config, env=credentials))
        _LOGGER.info(
            "Managing releases with prefix '%s' in namespace '%s'",
            config.env_prefix,
            config.namespace,
        )

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(manager, api_keys),
                host=host,
                port=port,
                log_config=None,
                timeout_graceful_shutdown=SHUTDOWN_TIMEOUT,
            )
        )
        _LOGGER.info("Server is starting on port %s", port)
        await server.serve()
