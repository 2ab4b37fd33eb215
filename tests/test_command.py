"""Tests for command library."""

import pytest

from helm_api.command import Command, run
from helm_api.exceptions import CommandException, HelmException


async def test_command() -> None:
    """Test stdout parsing of a command."""
    result = await run(Command(["echo", "Hello"]))
    assert result == "Hello\n"


async def test_command_env() -> None:
    """Test extra environment variables are passed to the command."""
    result = await run(
        Command(["sh", "-c", "echo $HELM_DRIVER"], env={"HELM_DRIVER": "memory"})
    )
    assert result == "memory\n"


async def test_failed_command() -> None:
    """Test a failing command."""
    with pytest.raises(CommandException, match="return code 1"):
        await run(Command(["/bin/false"]))


async def test_failed_command_exception_type() -> None:
    """Test a failing command raises the exception of the command."""
    with pytest.raises(HelmException, match="oops"):
        await run(Command(["sh", "-c", "echo oops >&2; exit 3"], exc=HelmException))


async def test_command_timeout() -> None:
    """Test a command that runs longer than its timeout is killed."""
    with pytest.raises(HelmException, match="timed out"):
        await run(Command(["sleep", "10"], exc=HelmException, timeout=0.2))
