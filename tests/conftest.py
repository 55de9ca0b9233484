"""Shared test fixtures for feedauth.

Provides isolated configuration directories, a clean environment, a
plain-text output manager, and :class:`ScriptedRunner`, a stand-in for the
process runner that replays canned CLI outcomes instead of spawning ``az``.
These fixtures are automatically discovered by pytest and available to all
test modules without explicit imports.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import pytest

from feedauth.config import HostConfiguration
from feedauth.models import FeedAuthSettings, format_utc
from feedauth.output import OutputManager, reset_output, set_output
from feedauth.runner import ProcessRunner


REGISTRY = "https://pkgs.dev.azure.com/contoso/_packaging/widgets/npm/registry/"
OTHER_REGISTRY = "https://pkgs.dev.azure.com/contoso/_packaging/gadgets/npm/registry/"


# ---------------------------------------------------------------------------
# Environment and output isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove environment variables that change resolution behaviour."""
    for var in [
        "SYSTEM_ACCESSTOKEN",
        "FEEDAUTH_CONFIG",
        "FEEDAUTH_CLI",
        "FEEDAUTH_TIMEOUT",
        "FEEDAUTH_SAFETY_MARGIN",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _plain_output() -> None:
    """Install a colourless OutputManager so capsys sees plain stderr text.

    The manager is created inside the fixture, after pytest has swapped
    ``sys.stderr``, and reset afterwards so no stale stream survives.
    """
    set_output(OutputManager(no_color=True))
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at tmp_path so tests never touch real config."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def configuration(tmp_path: Path) -> HostConfiguration:
    """A host configuration document in a temp directory."""
    return HostConfiguration(tmp_path / "host" / "config.json")


@pytest.fixture
def settings() -> FeedAuthSettings:
    return FeedAuthSettings()


# ---------------------------------------------------------------------------
# CLI output helpers
# ---------------------------------------------------------------------------


def in_future(minutes: float = 60) -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0) + timedelta(minutes=minutes)


def token_output(token: str = "tok-123", expires_on: Optional[datetime] = None) -> str:
    """Render what ``az account get-access-token`` prints on stdout."""
    expires_on = expires_on or in_future()
    return json.dumps(
        {
            "accessToken": token,
            "expiresOn": format_utc(expires_on),
            "subscription": "00000000-0000-0000-0000-000000000000",
            "tenant": "11111111-1111-1111-1111-111111111111",
            "tokenType": "Bearer",
        }
    )


# ---------------------------------------------------------------------------
# Scripted process runner
# ---------------------------------------------------------------------------


Outcome = Union[str, BaseException]


class ScriptedRunner(ProcessRunner):
    """Replays queued outcomes per command kind instead of spawning processes.

    Command kinds are ``"fetch"`` (``get-access-token``), ``"login"`` and
    ``"account"`` (``account list``). Each call pops the next outcome for
    its kind: a string is returned as stdout, an exception is raised.

    Args:
        delay: Seconds every call sleeps before answering, to widen race
            windows in concurrency tests.
    """

    def __init__(self, delay: float = 0.0, **script: list[Outcome]) -> None:
        super().__init__(timeout=5)
        self.delay = delay
        self.calls: list[tuple[str, bool]] = []
        self._script = {kind: list(outcomes) for kind, outcomes in script.items()}

    @staticmethod
    def kind_of(command: str) -> str:
        if "get-access-token" in command:
            return "fetch"
        if "account list" in command:
            return "account"
        if command.endswith(" login"):
            return "login"
        raise AssertionError(f"unexpected command: {command}")

    def count(self, kind: str) -> int:
        return sum(1 for command, _ in self.calls if self.kind_of(command) == kind)

    @property
    def kinds(self) -> list[str]:
        return [self.kind_of(command) for command, _ in self.calls]

    async def run(
        self,
        command: str,
        capture: bool = True,
        timeout: Optional[float] = None,
    ) -> str:
        self.calls.append((command, capture))
        if self.delay:
            await asyncio.sleep(self.delay)
        queue = self._script.get(self.kind_of(command))
        if not queue:
            raise AssertionError(f"no scripted outcome left for: {command}")
        outcome = queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# ---------------------------------------------------------------------------
# Fixtures exposing the helpers above
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> str:
    return REGISTRY


@pytest.fixture
def other_registry() -> str:
    return OTHER_REGISTRY


@pytest.fixture
def make_token_output():
    """Factory rendering ``get-access-token`` JSON (see :func:`token_output`)."""
    return token_output


@pytest.fixture
def make_runner():
    """Factory building a :class:`ScriptedRunner`."""
    return ScriptedRunner
