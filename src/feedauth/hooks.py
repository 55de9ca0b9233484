"""Hooks consumed by the host package manager.

:class:`FeedAuthPlugin` bundles the two functions a package manager calls:

* :meth:`~FeedAuthPlugin.verify_cli_session` -- once, before dependency
  resolution starts, to fail early when the Azure CLI is missing or the
  operator is not logged in.
* :meth:`~FeedAuthPlugin.get_authentication_header` -- per registry
  request, returning an ``Authorization`` value or ``None``.

Both are skipped entirely when ``SYSTEM_ACCESSTOKEN`` is set, which is how
Azure Pipelines hands a build its feed credentials.

Example:
    Wiring the plugin into a host::

        plugin = FeedAuthPlugin()
        await plugin.verify_cli_session()
        header = await plugin.get_authentication_header(current, registry)
"""

from __future__ import annotations

import logging
from typing import Optional

from feedauth import __version__
from feedauth.auth.resolver import AuthHeaderResolver
from feedauth.config import HostConfiguration, get_pipeline_token, load_settings
from feedauth.exceptions import (
    AcquisitionFailedError,
    CliMissingError,
    CommandNotFoundError,
    CommandTimeoutError,
    FeedAuthError,
    LoginRequiredError,
    RunError,
    SpawnError,
)
from feedauth.install_hint import show_install_message
from feedauth.models import FeedAuthSettings
from feedauth.output import OutputManager, error, set_output, suggest
from feedauth.runner import ProcessRunner

logger = logging.getLogger(__name__)


class FeedAuthPlugin:
    """Azure DevOps feed authentication for a host package manager.

    One instance should live for the whole host process; it owns the
    :class:`~feedauth.auth.resolver.AuthHeaderResolver` whose single-flight
    state coalesces concurrent refreshes.

    Args:
        configuration: Host configuration document. Defaults to the XDG
            location (or ``$FEEDAUTH_CONFIG``).
        settings: Explicit settings; when omitted they are loaded from
            *configuration* and the environment.
        runner: Process runner shared by the session check and the resolver.
        quiet: Install a quiet :class:`~feedauth.output.OutputManager`, so
            only warnings and errors reach stderr. Hosts pass their own
            silent flag here.
    """

    def __init__(
        self,
        configuration: Optional[HostConfiguration] = None,
        settings: Optional[FeedAuthSettings] = None,
        runner: Optional[ProcessRunner] = None,
        quiet: bool = False,
    ) -> None:
        if quiet:
            set_output(OutputManager(quiet=True))
        self._configuration = configuration or HostConfiguration()
        self._settings = settings or load_settings(self._configuration)
        self._runner = runner or ProcessRunner(timeout=self._settings.command_timeout)
        self._resolver = AuthHeaderResolver(self._settings, self._runner)

    @property
    def name(self) -> str:
        return "feedauth"

    @property
    def version(self) -> str:
        return __version__

    @property
    def description(self) -> str:
        return "Azure DevOps feed tokens from the Azure CLI"

    @property
    def resolver(self) -> AuthHeaderResolver:
        return self._resolver

    async def verify_cli_session(self) -> None:
        """Check that the Azure CLI is installed and has a signed-in account.

        Raises:
            CliMissingError: The CLI is not installed (install instructions
                are printed first).
            LoginRequiredError: The CLI has no usable session.
            AcquisitionFailedError: The check timed out.
        """
        if get_pipeline_token():
            logger.debug("SYSTEM_ACCESSTOKEN set, skipping Azure CLI session check")
            return

        try:
            await self._runner.run(self._settings.account_command)
        except (CommandNotFoundError, SpawnError) as exc:
            show_install_message(self._settings.cli_command)
            raise CliMissingError(
                f"Azure CLI is required, make sure the `{self._settings.cli_command}` "
                "command is part of your PATH"
            ) from exc
        except CommandTimeoutError as exc:
            raise AcquisitionFailedError(f"Azure CLI session check failed: {exc}") from exc
        except RunError as exc:
            suggest(f"Sign in first: {self._settings.login_command}")
            raise LoginRequiredError(f"Azure CLI is not logged in: {exc}") from exc

    async def get_authentication_header(
        self,
        current_header: Optional[str],
        registry: str,
        configuration: Optional[HostConfiguration] = None,
    ) -> Optional[str]:
        """Return the ``Authorization`` value for *registry*.

        Args:
            current_header: The header the host would send otherwise.
                Returned unchanged for registries outside the feed prefixes.
            registry: The registry URL being requested.
            configuration: Overrides the plugin's host configuration for
                this call.

        Raises:
            FeedAuthError: When a feed token cannot be obtained. A short
                diagnostic has already been printed; the host decides
                whether to abort.
        """
        try:
            header = await self._resolver.resolve_header(
                registry, configuration or self._configuration
            )
        except CliMissingError:
            raise
        except FeedAuthError as exc:
            error(f"Cannot authenticate to {registry}: {exc}")
            raise
        return current_header if header is None else header
