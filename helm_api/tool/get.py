"""helm-api list action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import logging
from typing import cast

from helm_api.manager import Capabilities, ReleaseManager

from .common import add_config_flags, build_config

_LOGGER = logging.getLogger(__name__)


class ListEnvAction:
    """helm-api list action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "list",
                aliases=["ls"],
                help="List the environment releases",
                description="Print the names of the releases managed by helm-api",
            ),
        )
        add_config_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = build_config(**kwargs)
        manager = ReleaseManager(config, Capabilities.helm(config))
        names = await manager.list()
        if not names:
            print("No helm-api related helm chart")
            return
        for name in names:
            print(name)
