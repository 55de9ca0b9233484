"""Persisted token caching for feedauth.

This package provides :class:`TokenCache`, which stores one
:class:`~feedauth.models.CacheEntry` per registry URL under the
``tokenCache`` key of the host configuration, and :func:`is_valid`, the pure
expiry check used to decide between a cache hit and a refresh.
"""

from feedauth.cache.token_cache import TOKEN_CACHE_KEY, TokenCache, is_valid

__all__ = ["TOKEN_CACHE_KEY", "TokenCache", "is_valid"]
