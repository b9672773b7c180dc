"""Protocols for external programs and services.

The installer never shells out directly; it goes through a command runner so
callers (and tests) can substitute how composer, php and the container
runtime are invoked.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from typing import runtime_checkable

from .exceptions import RuntimeUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Exit status and combined output of an external command."""

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunnerProtocol(Protocol):
    """Protocol for running external commands."""

    async def run(self, args: list[str], cwd: Path | None = None) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program and arguments
            cwd: Working directory (defaults to current)

        Returns:
            CommandResult with exit status and output

        Raises:
            RuntimeUnavailableError: If the program does not exist
        """
        ...


@runtime_checkable
class DatabaseProbeProtocol(Protocol):
    """Protocol for checking database connectivity."""

    async def is_reachable(self) -> bool:
        """Return True once the database accepts connections."""
        ...


class SubprocessRunner:
    """Run commands with asyncio subprocesses."""

    async def run(self, args: list[str], cwd: Path | None = None) -> CommandResult:
        logger.debug(f"Running: {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise RuntimeUnavailableError(
                f"{args[0]} is not installed or not in PATH",
                context={"command": args},
            ) from e

        stdout, _ = await process.communicate()
        output = stdout.decode(errors="replace") if stdout else ""
        return CommandResult(returncode=process.returncode or 0, output=output)
