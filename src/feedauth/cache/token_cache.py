"""Persisted per-registry token cache.

Tokens live under the ``tokenCache`` key of the host configuration
(:class:`~feedauth.config.HostConfiguration`), one entry per registry URL::

    "tokenCache": {
      "https://pkgs.dev.azure.com/org/_packaging/feed/npm/registry/": {
        "expiresOn": "2030-01-01T00:00:00Z",
        "token": "eyJ0eXAi..."
      }
    }

The mapping is loosely typed on disk and shared by every process using the
same configuration file, so each entry is validated when read and any
malformed entry is treated as absent. Writes are read-modify-write without a
lock; a lost update only causes one extra refresh later.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import ValidationError

from feedauth.config import HostConfiguration
from feedauth.exceptions import ConfigError, PersistError
from feedauth.models import CacheEntry

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "tokenCache"
"""Top-level host configuration key holding the cache mapping."""

DEFAULT_SAFETY_MARGIN = timedelta(0)


def is_valid(
    entry: CacheEntry,
    now: Optional[datetime] = None,
    safety_margin: timedelta = DEFAULT_SAFETY_MARGIN,
) -> bool:
    """Return whether *entry* can still be used at *now*.

    Valid means ``now + safety_margin < expires_on``; a token expiring
    exactly at *now* is already stale. A margin so large that the
    comparison overflows counts as invalid.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    try:
        return now + safety_margin < entry.expires_on
    except OverflowError:
        return False


class TokenCache:
    """Read/write access to the ``tokenCache`` key of the host configuration.

    Args:
        configuration: The host configuration document backing the cache.

    Example::

        cache = TokenCache(HostConfiguration())
        cache.put(registry, CacheEntry(registry=registry, token=tok, expires_on=exp))
        entry = cache.get(registry)
    """

    def __init__(self, configuration: HostConfiguration) -> None:
        self._configuration = configuration

    @property
    def configuration(self) -> HostConfiguration:
        return self._configuration

    def get(self, registry: str) -> Optional[CacheEntry]:
        """Return the cached entry for *registry*.

        Never raises: a missing entry, a malformed entry (missing fields,
        unparseable ``expiresOn``) or an unreadable configuration file all
        yield ``None``.
        """
        try:
            mapping = self._load_mapping()
        except ConfigError as exc:
            logger.debug("Token cache unreadable, ignoring it: %s", exc)
            return None

        raw = mapping.get(registry)
        if not isinstance(raw, dict):
            return None
        try:
            return CacheEntry.model_validate({**raw, "registry": registry})
        except ValidationError as exc:
            logger.debug("Ignoring malformed cache entry for %s: %s", registry, exc)
            return None

    def put(self, registry: str, entry: CacheEntry) -> None:
        """Persist *entry* under *registry*, keeping every other entry.

        Raises:
            PersistError: If the configuration cannot be read back or written.
        """
        try:
            mapping = self._load_mapping()
        except ConfigError as exc:
            raise PersistError(f"Cannot update token cache: {exc}") from exc

        mapping[registry] = entry.to_stored()
        try:
            self._configuration.update({TOKEN_CACHE_KEY: mapping})
        except (ConfigError, OSError) as exc:
            raise PersistError(
                f"Cannot write token cache to {self._configuration.path}: {exc}"
            ) from exc
        logger.debug("Cached token for %s until %s", registry, entry.to_stored()["expiresOn"])

    def _load_mapping(self) -> dict[str, Any]:
        raw = self._configuration.get(TOKEN_CACHE_KEY)
        if not isinstance(raw, dict):
            return {}
        return dict(raw)
