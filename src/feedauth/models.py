"""Canonical Pydantic models shared across all feedauth modules.

The models fall into two groups:

**Token models** -- :class:`TokenResult` is the ephemeral value parsed from
one successful CLI fetch; :class:`CacheEntry` is what the token cache keeps
per registry URL in the host configuration file.

**Settings model** -- :class:`FeedAuthSettings` holds the tunables read from
the ``feedAuth`` key of the host configuration.

Every timestamp is held as a timezone-aware UTC :class:`~datetime.datetime`
and serialised as ISO-8601 with a ``Z`` suffix. Naive datetimes handed to
these models are treated as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"
"""The Azure AD resource identifier of Azure DevOps."""

DEFAULT_REGISTRY_PREFIXES = [
    "https://pkgs.dev.azure.com",
    "http://pkgs.dev.azure.com",
]


def to_utc(value: datetime) -> datetime:
    """Return *value* converted to UTC, treating naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _checked_utc(value: datetime) -> datetime:
    """Validator body for expiry fields; out-of-range instants fail validation."""
    try:
        return to_utc(value)
    except OverflowError as exc:
        raise ValueError(f"expiry out of range: {exc}") from exc


def format_utc(value: datetime) -> str:
    """Render *value* as an ISO-8601 UTC string (``2030-01-01T00:00:00Z``)."""
    return to_utc(value).isoformat().replace("+00:00", "Z")


# --- Token models ---


class TokenResult(BaseModel):
    """A token returned by one successful ``get-access-token`` invocation.

    Consumed immediately to build a :class:`CacheEntry` and a header value;
    never retained beyond that.
    """

    access_token: str = Field(min_length=1)
    expires_on: datetime

    @field_validator("expires_on")
    @classmethod
    def _normalise_expiry(cls, value: datetime) -> datetime:
        return _checked_utc(value)


class CacheEntry(BaseModel):
    """A cached token for one registry URL.

    Persisted under the ``tokenCache`` key of the host configuration as
    ``{"<registry>": {"token": ..., "expiresOn": "<ISO-8601 UTC>"}}``. The
    ``registry`` field is the mapping key and is not written inside the
    value.

    Example::

        entry = CacheEntry(
            registry="https://pkgs.dev.azure.com/org/_packaging/feed/npm/registry/",
            token="eyJ0eXAi...",
            expires_on=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    registry: str
    token: str = Field(min_length=1)
    expires_on: datetime = Field(alias="expiresOn")

    @field_validator("expires_on")
    @classmethod
    def _normalise_expiry(cls, value: datetime) -> datetime:
        return _checked_utc(value)

    @field_serializer("expires_on")
    def _serialise_expiry(self, value: datetime) -> str:
        return format_utc(value)

    @classmethod
    def from_token(cls, registry: str, result: TokenResult) -> CacheEntry:
        """Build the cache entry for *registry* from a fresh :class:`TokenResult`."""
        return cls(registry=registry, token=result.access_token, expires_on=result.expires_on)

    def to_stored(self) -> dict[str, str]:
        """Return the JSON shape stored under the registry key."""
        return self.model_dump(mode="json", by_alias=True, exclude={"registry"})


# --- Settings ---


class FeedAuthSettings(BaseModel):
    """Tunables stored under the ``feedAuth`` key of the host configuration.

    Keys are camelCase in the file (``cliCommand``, ``commandTimeout``, ...)
    to match the surrounding host configuration; snake_case names are
    accepted as well. Environment overrides are applied by
    :func:`~feedauth.config.load_settings`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    registry_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REGISTRY_PREFIXES),
        description="Registry URL prefixes this resolver supplies headers for",
    )
    resource_id: str = Field(
        default=AZURE_DEVOPS_RESOURCE_ID,
        description="Resource passed to 'get-access-token --resource'",
    )
    cli_command: str = Field(default="az", description="Azure CLI executable")
    command_timeout: float = Field(
        default=180.0, gt=0, description="Seconds before a CLI call is terminated"
    )
    safety_margin_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Seconds subtracted from a token's expiry when checking validity",
    )

    def matches_registry(self, registry: str) -> bool:
        return any(registry.startswith(prefix) for prefix in self.registry_prefixes)

    @property
    def fetch_command(self) -> str:
        return (
            f'{self.cli_command} account get-access-token '
            f'--resource "{self.resource_id}" --output json'
        )

    @property
    def login_command(self) -> str:
        return f"{self.cli_command} login"

    @property
    def account_command(self) -> str:
        return f"{self.cli_command} account list --output none"
