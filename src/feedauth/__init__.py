"""feedauth -- Bearer tokens for Azure DevOps package feeds via the Azure CLI.

This package supplies ``Authorization`` header values for package-registry
requests against ``pkgs.dev.azure.com`` feeds. Credential acquisition is
delegated to a locally installed ``az`` CLI; the resulting token is cached in
the host configuration file until it expires, so subsequent processes reuse
it without spawning the CLI again.

Typical usage from a package-manager hook::

    from feedauth.hooks import FeedAuthPlugin

    plugin = FeedAuthPlugin()
    await plugin.verify_cli_session()
    header = await plugin.get_authentication_header(None, registry_url)

Modules:
    models: Pydantic models for cache entries, token results, and settings.
    config: XDG-aware host configuration file with atomic writes.
    exceptions: Exception hierarchy for every failure kind.
    runner: Asynchronous subprocess execution with timeouts.
    cache: Persisted per-registry token cache.
    auth: Single-flight refresh, CLI token acquisition, header resolution.
    hooks: Entry points consumed by the host package manager.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"
