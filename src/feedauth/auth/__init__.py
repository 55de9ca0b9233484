"""Token acquisition, caching coordination, and header resolution.

The main entry points are:

- :class:`AuthHeaderResolver` -- decides between pipeline token, cache hit,
  and refresh, and formats the ``Bearer`` header value.
- :class:`TokenAcquirer` -- drives ``az account get-access-token`` with a
  single ``az login`` retry.
- :class:`SingleFlightRefresher` -- coalesces concurrent refreshes per key.
- :func:`parse_token_output` / :func:`parse_expires_on` -- normalise CLI
  output to UTC.

Typical usage::

    from feedauth.auth import AuthHeaderResolver
    from feedauth.config import HostConfiguration, load_settings

    configuration = HostConfiguration()
    resolver = AuthHeaderResolver(load_settings(configuration))
    header = await resolver.resolve_header(registry, configuration)
"""

from feedauth.auth.acquirer import AcquirerState, TokenAcquirer
from feedauth.auth.resolver import AuthHeaderResolver
from feedauth.auth.single_flight import SingleFlightRefresher
from feedauth.auth.timestamps import parse_expires_on, parse_token_output

__all__ = [
    "AcquirerState",
    "AuthHeaderResolver",
    "SingleFlightRefresher",
    "TokenAcquirer",
    "parse_expires_on",
    "parse_token_output",
]
