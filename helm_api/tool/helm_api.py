"""Command line tool for serving and inspecting helm-api environments."""

import argparse
import asyncio
import logging
import os
import sys
import traceback

from helm_api.config import ENV_LOG_LEVEL
from helm_api.exceptions import HelmApiException
from . import get, serve

_LOGGER = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for managing helm-api environments.",
    )
    log_level = (os.environ.get(ENV_LOG_LEVEL) or "INFO").upper()
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=log_level if log_level in LOG_LEVELS else "INFO",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    serve.ServeAction.register(subparsers)
    get.ListEnvAction.register(subparsers)
    return parser


def main() -> None:
    """helm-api command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except HelmApiException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("helm-api error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
