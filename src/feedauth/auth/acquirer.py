"""Token acquisition through the Azure CLI, with one login-and-retry.

:class:`TokenAcquirer` is an explicit two-state machine::

    FETCHING --ok--> ACQUIRED
       |  \\--exit 127--> FAILED (CliMissingError)
       |
       +--any other failure--> LOGGING_IN --ok--> FETCHING (second and last attempt)
                                    |
                                    +--failure--> FAILED (LoginRequiredError)

Every failed fetch other than a missing CLI leads to one login, timeouts
and unparseable output included. A failed second fetch ends in ``FAILED`` with that
attempt's error; there is never a third fetch or a second login, so an
expired session cannot loop forever.
"""

from __future__ import annotations

import enum
import logging

from feedauth.auth.timestamps import parse_token_output
from feedauth.exceptions import (
    AcquisitionFailedError,
    CliMissingError,
    CommandNotFoundError,
    CommandTimeoutError,
    LoginRequiredError,
    RunError,
    SpawnError,
    TokenParseError,
)
from feedauth.install_hint import show_install_message
from feedauth.models import FeedAuthSettings, TokenResult
from feedauth.output import info
from feedauth.runner import ProcessRunner

logger = logging.getLogger(__name__)


class AcquirerState(str, enum.Enum):
    """States of one :meth:`TokenAcquirer.run` invocation."""

    FETCHING = "fetching"
    LOGGING_IN = "logging_in"
    ACQUIRED = "acquired"
    FAILED = "failed"


class TokenAcquirer:
    """Obtains a fresh access token by driving the Azure CLI.

    Args:
        runner: Executes the CLI command lines.
        settings: Supplies the CLI executable and the resource identifier.

    Example::

        acquirer = TokenAcquirer(ProcessRunner(), FeedAuthSettings())
        result = await acquirer.run()
        header = f"Bearer {result.access_token}"
    """

    def __init__(self, runner: ProcessRunner, settings: FeedAuthSettings) -> None:
        self._runner = runner
        self._settings = settings
        self.state = AcquirerState.FETCHING

    async def run(self) -> TokenResult:
        """Fetch a token, logging in and retrying once if the fetch fails.

        Returns:
            The parsed :class:`~feedauth.models.TokenResult`.

        Raises:
            CliMissingError: The CLI is not installed; login is not attempted.
            LoginRequiredError: The login command failed.
            TokenParseError: The retried fetch printed something other than
                a token.
            AcquisitionFailedError: The retried fetch failed or timed out.
        """
        self.state = AcquirerState.FETCHING
        try:
            return await self._run_states()
        except BaseException:
            if self.state is not AcquirerState.FAILED:
                self._fail()
            raise

    async def _run_states(self) -> TokenResult:
        logged_in = False
        while True:
            if self.state is AcquirerState.FETCHING:
                try:
                    result = await self._fetch()
                except (RunError, TokenParseError) as exc:
                    if logged_in:
                        if isinstance(exc, TokenParseError):
                            raise
                        raise self._after_login(exc) from exc
                    info("Can not get access token for Azure DevOps, trying to login.")
                    self._transition(AcquirerState.LOGGING_IN)
                    continue
                self._transition(AcquirerState.ACQUIRED)
                return result

            await self._login()
            logged_in = True
            self._transition(AcquirerState.FETCHING)

    async def _fetch(self) -> TokenResult:
        """Run ``get-access-token`` once and parse its output.

        A missing CLI is converted to :class:`CliMissingError` here; run
        failures, timeouts and parse errors propagate to the state loop.
        """
        try:
            output = await self._runner.run(self._settings.fetch_command)
        except (CommandNotFoundError, SpawnError) as exc:
            raise self._cli_missing(exc) from exc
        return parse_token_output(output)

    async def _login(self) -> None:
        try:
            await self._runner.run(self._settings.login_command, capture=False)
        except (CommandNotFoundError, SpawnError) as exc:
            raise self._cli_missing(exc) from exc
        except RunError as exc:
            raise LoginRequiredError(f"Azure CLI login failed: {exc}") from exc

    @staticmethod
    def _after_login(exc: RunError) -> AcquisitionFailedError:
        if isinstance(exc, CommandTimeoutError):
            return AcquisitionFailedError(str(exc))
        return AcquisitionFailedError(
            f"Can not get access token for Azure DevOps after login: {exc}"
        )

    def _cli_missing(self, exc: RunError) -> CliMissingError:
        show_install_message(self._settings.cli_command)
        return CliMissingError(
            "Azure CLI is required, make sure the "
            f"`{self._settings.cli_command}` command is part of your PATH ({exc})"
        )

    def _transition(self, state: AcquirerState) -> None:
        logger.debug("Token acquisition: %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self) -> None:
        self._transition(AcquirerState.FAILED)
