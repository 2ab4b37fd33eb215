"""Credential bootstrap from the AWS SSM parameter store.

Parameters are resolved into environment style keys and returned to the
caller, which passes them on explicitly. Nothing here writes to `os.environ`.
"""

from collections.abc import Iterable, Mapping
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import ApiKeys
from .exceptions import ConfigException, InputException

__all__ = [
    "ssm_client",
    "fetch_ssm_parameters",
    "parse_ssm_params",
    "load_api_keys",
]

_LOGGER = logging.getLogger(__name__)

# GetParameters accepts at most this many names per call.
_MAX_NAMES = 10

API_KEY_ENV = {
    "create": "HELM_API_CREATE_API_KEY",
    "update": "HELM_API_UPDATE_API_KEY",
    "delete": "HELM_API_DELETE_API_KEY",
}


def ssm_client(region: str) -> Any:
    """Return an SSM client using the default AWS credential chain."""
    return boto3.client("ssm", region_name=region)


def fetch_ssm_parameters(client: Any, parameters: Mapping[str, str]) -> dict[str, str]:
    """Fetch decrypted SSM parameters.

    Args:
        client: A boto3 SSM client.
        parameters: Map of SSM parameter name to the key it is returned under.

    Returns:
        Map of key to parameter value, for each parameter that was found.
    """
    names = list(parameters)
    result: dict[str, str] = {}
    for i in range(0, len(names), _MAX_NAMES):
        chunk = names[i : i + _MAX_NAMES]
        try:
            response = client.get_parameters(Names=chunk, WithDecryption=True)
        except (BotoCoreError, ClientError) as err:
            raise ConfigException(f"Unable to read SSM parameters: {err}") from err
        for param in response.get("Parameters", []):
            if (key := parameters.get(param["Name"])) is not None:
                result[key] = param["Value"]
        if invalid := response.get("InvalidParameters"):
            _LOGGER.warning("SSM parameters not found: %s", ", ".join(invalid))
    _LOGGER.info("Loaded %d of %d SSM parameters", len(result), len(names))
    return result


def parse_ssm_params(values: Iterable[str]) -> dict[str, str]:
    """Parse `NAME=ENV_KEY` command line values into a parameter map."""
    parameters = {}
    for value in values:
        name, sep, key = value.partition("=")
        if not sep or not name or not key:
            raise InputException(f"Invalid SSM parameter '{value}', expected NAME=ENV_KEY")
        parameters[name] = key
    return parameters


def load_api_keys(environ: Mapping[str, str]) -> ApiKeys:
    """Return the master API keys, raising ConfigException if any is missing."""
    keys = {}
    for field, env_key in API_KEY_ENV.items():
        if not (value := environ.get(env_key)):
            raise ConfigException(
                f"master {env_key.removeprefix('HELM_API_').lower()} missing"
            )
        keys[field] = value
    return ApiKeys(**keys)
