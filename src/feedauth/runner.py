"""Asynchronous execution of external command lines.

:class:`ProcessRunner` spawns a command through the system shell, captures
its standard output, and lets standard error flow straight through to the
operator's terminal. Failures are reported as distinct
:class:`~feedauth.exceptions.RunError` subclasses so callers can tell a
missing executable apart from a command that ran and failed:

* :class:`~feedauth.exceptions.CommandNotFoundError` -- the shell exited
  with 127 (``cmd.exe`` uses 9009).
* :class:`~feedauth.exceptions.SpawnError` -- the shell itself could not be
  started.
* :class:`~feedauth.exceptions.CommandTimeoutError` -- the timeout elapsed;
  the child is killed and reaped before the error is raised.
* :class:`~feedauth.exceptions.RunError` -- any other non-zero exit.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from feedauth.exceptions import (
    CommandNotFoundError,
    CommandTimeoutError,
    RunError,
    SpawnError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 180.0
"""Seconds a command may run before it is terminated."""

EXIT_COMMAND_NOT_FOUND = 127
"""POSIX shell status for an unknown command."""

_EXIT_CMD_NOT_RECOGNIZED = 9009


def _is_not_found(exit_code: int) -> bool:
    if exit_code == EXIT_COMMAND_NOT_FOUND:
        return True
    return sys.platform == "win32" and exit_code == _EXIT_CMD_NOT_RECOGNIZED


class ProcessRunner:
    """Runs shell command lines with a bounded timeout.

    Args:
        timeout: Default timeout in seconds for every :meth:`run` call.

    Example::

        runner = ProcessRunner(timeout=30)
        output = await runner.run("az account show --output json")
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def run(
        self,
        command: str,
        capture: bool = True,
        timeout: Optional[float] = None,
    ) -> str:
        """Run *command* and return its standard output.

        Standard error is inherited from the current process so warnings
        and interactive prompts reach the operator live. Standard input is
        inherited too, which keeps interactive commands such as ``az login``
        usable.

        Args:
            command: The full command line, interpreted by the system shell.
            capture: When ``False`` standard output is inherited as well and
                the returned string is empty.
            timeout: Override for the runner's default timeout.

        Returns:
            The captured standard output decoded as UTF-8.

        Raises:
            SpawnError: If the shell could not be started.
            CommandTimeoutError: If the command exceeded its timeout.
            CommandNotFoundError: If the shell reported an unknown command.
            RunError: For any other non-zero exit status.
        """
        limit = self._timeout if timeout is None else timeout
        logger.debug("Running command: %s", command)
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE if capture else None,
                stderr=None,
            )
        except OSError as exc:
            raise SpawnError(f"Failed to start '{command}': {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError as exc:
            await _terminate(process)
            raise CommandTimeoutError(f"'{command}' timed out after {limit:g}s") from exc
        except asyncio.CancelledError:
            await _terminate(process)
            raise

        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        exit_code = process.returncode
        logger.debug("Command exited with %s: %s", exit_code, command)

        if exit_code == 0:
            return output
        if _is_not_found(exit_code):
            raise CommandNotFoundError(
                f"Command not found: {command}", exit_code=exit_code, output=output
            )
        raise RunError(
            f"'{command}' failed with exit code {exit_code}",
            exit_code=exit_code,
            output=output,
        )


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill *process* if it is still running and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()
