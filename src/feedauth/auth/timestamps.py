"""Parsing of ``az account get-access-token`` output.

The CLI has emitted the expiry in several shapes over its history:

* ``expiresOn`` as SQL-style local time -- ``"2024-05-01 13:45:00.000000"``
* ``expiresOn`` as ISO-8601, with or without an offset
* ``expires_on`` as POSIX epoch seconds (newer releases, alongside
  ``expiresOn``)

The epoch field is preferred when present since it carries no timezone
ambiguity. Naive local-time values are interpreted in the local timezone,
which is what the CLI uses when it prints them. Every result is returned as
a timezone-aware UTC :class:`~datetime.datetime`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from feedauth.exceptions import TokenParseError
from feedauth.models import TokenResult

_FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
)


def parse_expires_on(value: Any) -> datetime:
    """Normalise a CLI expiry value to an aware UTC datetime.

    Args:
        value: Epoch seconds (``int``/``float`` or numeric string) or a
            timestamp string in any of the shapes listed in the module
            docstring.

    Raises:
        TokenParseError: If *value* is not a recognisable timestamp.
    """
    if isinstance(value, bool):
        raise TokenParseError(f"Unrecognised expiry timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if not isinstance(value, str) or not value.strip():
        raise TokenParseError(f"Unrecognised expiry timestamp: {value!r}")

    text = value.strip()
    try:
        return _from_epoch(float(text))
    except ValueError:
        pass

    parsed = _parse_text(text)
    try:
        if parsed.tzinfo is None:
            # Naive CLI timestamps are local wall-clock time.
            parsed = parsed.astimezone()
        return parsed.astimezone(timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TokenParseError(f"Expiry timestamp out of range: {text!r}") from exc


def parse_token_output(output: str) -> TokenResult:
    """Parse the JSON document printed by ``get-access-token``.

    Raises:
        TokenParseError: If the output is not JSON, lacks ``accessToken``,
            or carries no usable expiry.
    """
    try:
        data = json.loads(output)
    except (json.JSONDecodeError, TypeError) as exc:
        raise TokenParseError(f"CLI output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TokenParseError("CLI output is not a JSON object")

    token = data.get("accessToken")
    if not isinstance(token, str) or not token:
        raise TokenParseError("CLI output has no 'accessToken'")

    if data.get("expires_on") is not None:
        expires_on = parse_expires_on(data["expires_on"])
    elif data.get("expiresOn") is not None:
        expires_on = parse_expires_on(data["expiresOn"])
    else:
        raise TokenParseError("CLI output has no 'expiresOn'")

    try:
        return TokenResult(access_token=token, expires_on=expires_on)
    except ValidationError as exc:
        raise TokenParseError(f"Invalid token document: {exc}") from exc


def _from_epoch(seconds: float) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TokenParseError(f"Expiry epoch out of range: {seconds!r}") from exc


def _parse_text(text: str) -> datetime:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise TokenParseError(f"Unrecognised expiry timestamp: {text!r}")
