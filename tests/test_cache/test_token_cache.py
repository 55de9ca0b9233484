"""Tests for the persisted token cache and the expiry check."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from feedauth.cache import TOKEN_CACHE_KEY, TokenCache, is_valid
from feedauth.config import HostConfiguration
from feedauth.exceptions import PersistError
from feedauth.models import CacheEntry, TokenResult


NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _entry(registry: str, token: str = "tok", expires_on: datetime = NOW) -> CacheEntry:
    return CacheEntry(registry=registry, token=token, expires_on=expires_on)


class TestIsValid:
    def test_future_expiry_is_valid(self) -> None:
        entry = _entry("r", expires_on=NOW + timedelta(minutes=10))
        assert is_valid(entry, NOW) is True

    def test_past_expiry_is_invalid(self) -> None:
        entry = _entry("r", expires_on=NOW - timedelta(seconds=1))
        assert is_valid(entry, NOW) is False

    def test_exact_expiry_is_invalid(self) -> None:
        assert is_valid(_entry("r", expires_on=NOW), NOW) is False

    def test_safety_margin_excludes_nearly_expired(self) -> None:
        entry = _entry("r", expires_on=NOW + timedelta(seconds=30))
        assert is_valid(entry, NOW, safety_margin=timedelta(seconds=10)) is True
        assert is_valid(entry, NOW, safety_margin=timedelta(seconds=30)) is False

    def test_earliest_expiry_with_margin_is_invalid(self) -> None:
        entry = _entry("r", expires_on=datetime.min.replace(tzinfo=timezone.utc))
        assert is_valid(entry, NOW, safety_margin=timedelta(seconds=60)) is False

    def test_overflowing_margin_is_invalid(self) -> None:
        entry = _entry("r", expires_on=NOW + timedelta(days=1))
        assert is_valid(entry, NOW, safety_margin=timedelta.max) is False

    def test_naive_now_treated_as_utc(self) -> None:
        entry = _entry("r", expires_on=NOW + timedelta(minutes=1))
        assert is_valid(entry, NOW.replace(tzinfo=None)) is True

    def test_default_now(self) -> None:
        entry = _entry("r", expires_on=datetime.now(timezone.utc) + timedelta(minutes=10))
        assert is_valid(entry) is True


class TestCacheEntry:
    def test_offset_expiry_normalised_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        entry = _entry("r", expires_on=datetime(2030, 1, 1, 14, 0, tzinfo=plus_two))

        assert entry.expires_on == NOW
        assert entry.expires_on.tzinfo == timezone.utc

    def test_stored_shape(self) -> None:
        stored = _entry("r", token="abc").to_stored()
        assert stored == {"token": "abc", "expiresOn": "2030-01-01T12:00:00Z"}

    def test_from_token(self) -> None:
        result = TokenResult(access_token="abc", expires_on=NOW)
        entry = CacheEntry.from_token("r", result)
        assert (entry.registry, entry.token, entry.expires_on) == ("r", "abc", NOW)


class TestTokenCache:
    @pytest.fixture()
    def cache(self, configuration: HostConfiguration) -> TokenCache:
        return TokenCache(configuration)

    def test_get_missing_returns_none(self, cache: TokenCache, registry: str) -> None:
        assert cache.get(registry) is None

    def test_put_then_get_roundtrip(self, cache: TokenCache, registry: str) -> None:
        expires = datetime(2030, 6, 15, 8, 30, 15, 123456, tzinfo=timezone.utc)
        cache.put(registry, _entry(registry, token="secret", expires_on=expires))

        loaded = cache.get(registry)
        assert loaded is not None
        assert (loaded.token, loaded.expires_on) == ("secret", expires)

    def test_put_writes_token_cache_key(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str
    ) -> None:
        cache.put(registry, _entry(registry, token="secret"))

        data = json.loads(configuration.path.read_text(encoding="utf-8"))
        assert data[TOKEN_CACHE_KEY] == {
            registry: {"token": "secret", "expiresOn": "2030-01-01T12:00:00Z"}
        }

    def test_put_keeps_other_registries(
        self, cache: TokenCache, registry: str, other_registry: str
    ) -> None:
        cache.put(registry, _entry(registry, token="first"))
        cache.put(other_registry, _entry(other_registry, token="second"))
        cache.put(registry, _entry(registry, token="third"))

        assert cache.get(registry).token == "third"
        assert cache.get(other_registry).token == "second"

    @pytest.mark.parametrize(
        "raw",
        [
            {"token": "abc"},
            {"expiresOn": "2030-01-01T00:00:00Z"},
            {"token": "abc", "expiresOn": "not a date"},
            {"token": "", "expiresOn": "2030-01-01T00:00:00Z"},
            {"token": "abc", "expiresOn": "9999-12-31T23:59:59-14:00"},
            "just a string",
            None,
        ],
    )
    def test_malformed_entry_is_absent(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str, raw: object
    ) -> None:
        configuration.update({TOKEN_CACHE_KEY: {registry: raw}})
        assert cache.get(registry) is None

    def test_malformed_mapping_is_absent(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str
    ) -> None:
        configuration.update({TOKEN_CACHE_KEY: ["not", "a", "mapping"]})
        assert cache.get(registry) is None

    def test_corrupted_file_is_absent(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str
    ) -> None:
        configuration.path.parent.mkdir(parents=True, exist_ok=True)
        configuration.path.write_text("not valid json {{{", encoding="utf-8")
        assert cache.get(registry) is None

    def test_put_on_corrupted_file_raises_persist_error(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str
    ) -> None:
        configuration.path.parent.mkdir(parents=True, exist_ok=True)
        configuration.path.write_text("not valid json {{{", encoding="utf-8")

        with pytest.raises(PersistError):
            cache.put(registry, _entry(registry))

    def test_put_write_failure_raises_persist_error(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _fail(values: object) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(configuration, "update", _fail)

        with pytest.raises(PersistError, match="disk full"):
            cache.put(registry, _entry(registry))

    def test_naive_stored_expiry_read_as_utc(
        self, cache: TokenCache, configuration: HostConfiguration, registry: str
    ) -> None:
        configuration.update(
            {TOKEN_CACHE_KEY: {registry: {"token": "abc", "expiresOn": "2030-01-01T12:00:00"}}}
        )
        assert cache.get(registry).expires_on == NOW
