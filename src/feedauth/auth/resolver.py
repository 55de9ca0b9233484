"""Authorization header resolution for Azure DevOps feed registries.

:class:`AuthHeaderResolver` is the entry point called once per registry
request. Resolution order:

1. Registries outside the configured prefixes get ``None``; the host keeps
   whatever header it already had.
2. A non-empty ``SYSTEM_ACCESSTOKEN`` wins outright. Neither the cache nor
   the CLI is touched.
3. A valid cached token for the registry is returned as-is.
4. Otherwise a refresh runs through
   :class:`~feedauth.auth.single_flight.SingleFlightRefresher`, keyed by
   registry URL, so concurrent misses share one CLI invocation. The new
   token is written to the cache before the header is returned.

A cache write failure does not withhold the freshly acquired header: it is
reported as a warning and kept in :attr:`AuthHeaderResolver.last_persist_error`.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from feedauth.auth.acquirer import TokenAcquirer
from feedauth.auth.single_flight import SingleFlightRefresher
from feedauth.cache.token_cache import TokenCache, is_valid
from feedauth.config import HostConfiguration, get_pipeline_token
from feedauth.exceptions import (
    AcquisitionFailedError,
    FeedAuthError,
    PersistError,
)
from feedauth.models import CacheEntry, FeedAuthSettings
from feedauth.output import warning
from feedauth.runner import ProcessRunner

logger = logging.getLogger(__name__)


def bearer(token: str) -> str:
    return f"Bearer {token}"


class AuthHeaderResolver:
    """Produces ``Bearer`` header values for feed registries.

    One resolver should be shared by every request in a process so that
    concurrent refreshes for the same registry are coalesced.

    Args:
        settings: Registry prefixes, CLI command, timeout, safety margin.
        runner: Process runner for CLI calls. Defaults to a
            :class:`~feedauth.runner.ProcessRunner` using
            ``settings.command_timeout``.
        acquirer_factory: Builds a :class:`~feedauth.auth.acquirer.TokenAcquirer`
            per refresh. Overridable for tests.

    Example::

        resolver = AuthHeaderResolver(load_settings(configuration))
        header = await resolver.resolve_header(registry, configuration)
    """

    def __init__(
        self,
        settings: Optional[FeedAuthSettings] = None,
        runner: Optional[ProcessRunner] = None,
        acquirer_factory: Optional[Callable[[], TokenAcquirer]] = None,
    ) -> None:
        self._settings = settings or FeedAuthSettings()
        self._runner = runner or ProcessRunner(timeout=self._settings.command_timeout)
        self._acquirer_factory = acquirer_factory or (
            lambda: TokenAcquirer(self._runner, self._settings)
        )
        self._flights: SingleFlightRefresher[str] = SingleFlightRefresher()
        self.last_persist_error: Optional[PersistError] = None

    @property
    def settings(self) -> FeedAuthSettings:
        return self._settings

    @property
    def safety_margin(self) -> timedelta:
        return timedelta(seconds=self._settings.safety_margin_seconds)

    async def resolve_header(
        self, registry: str, configuration: HostConfiguration
    ) -> Optional[str]:
        """Return the ``Authorization`` value for *registry*, or ``None``.

        Args:
            registry: The registry URL the host is about to call.
            configuration: Host configuration backing the token cache.

        Returns:
            ``"Bearer <token>"`` for feed registries, ``None`` for any other
            registry.

        Raises:
            CliMissingError: The Azure CLI is not installed.
            AcquisitionFailedError: No token could be obtained (including
                :class:`~feedauth.exceptions.LoginRequiredError` and
                :class:`~feedauth.exceptions.TokenParseError`).
        """
        if not self._settings.matches_registry(registry):
            return None

        pipeline_token = get_pipeline_token()
        if pipeline_token:
            logger.debug("Using SYSTEM_ACCESSTOKEN for %s", registry)
            return bearer(pipeline_token)

        cache = TokenCache(configuration)
        entry = cache.get(registry)
        if entry is not None and is_valid(entry, safety_margin=self.safety_margin):
            logger.debug("Cache hit for %s", registry)
            return bearer(entry.token)

        logger.debug("Cache miss for %s, refreshing", registry)
        return await self._flights.acquire(registry, lambda: self._refresh(registry, cache))

    async def _refresh(self, registry: str, cache: TokenCache) -> str:
        """Acquire a token, persist it, and return its header value."""
        try:
            result = await self._acquirer_factory().run()
        except FeedAuthError:
            raise
        except Exception as exc:
            raise AcquisitionFailedError(f"Unexpected failure acquiring token: {exc}") from exc

        entry = CacheEntry.from_token(registry, result)
        try:
            cache.put(registry, entry)
        except PersistError as exc:
            self.last_persist_error = exc
            warning(f"Token acquired but not cached: {exc}")
        else:
            self.last_persist_error = None
        return bearer(entry.token)
