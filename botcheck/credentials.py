"""Locally stored operator credentials."""

from __future__ import annotations

from pathlib import Path

from botcheck.core.exceptions import CredentialsError


def read_password(path: str | Path) -> str:
    """Read the admin password, dropping one trailing line ending."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CredentialsError() from exc

    if raw.endswith("\r\n"):
        return raw[:-2]
    if raw.endswith("\n"):
        return raw[:-1]
    return raw
