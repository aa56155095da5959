"""Helpers for safely logging connection strings, keys and customer contact data."""

from __future__ import annotations

from urllib.parse import urlparse


def redact_database_url(url: str) -> str:
    """Return DATABASE_URL with password masked for logs/errors."""
    raw = (url or "").strip()
    if not raw:
        return "EMPTY_DATABASE_URL"
    try:
        parsed = urlparse(raw)
        scheme = parsed.scheme or "postgresql"
        host = parsed.hostname or "unknown-host"
        port = f":{parsed.port}" if parsed.port else ""
        db_name = parsed.path.lstrip("/") or "unknown-db"
        if parsed.username:
            return f"{scheme}://{parsed.username}:****@{host}{port}/{db_name}"
        return f"{scheme}://{host}{port}/{db_name}"
    except ValueError:
        return "INVALID_DATABASE_URL"


def redact_secret(value: str | None, visible: int = 4) -> str:
    """Mask a key or token, keeping a short prefix (e.g. 'rzp_****')."""
    raw = (value or "").strip()
    if not raw:
        return "UNSET"
    if len(raw) <= visible:
        return "****"
    return f"{raw[:visible]}****"


def redact_email(email: str | None) -> str:
    """'jane.doe@example.com' -> 'j***@example.com'."""
    raw = (email or "").strip()
    if "@" not in raw:
        return "****"
    local, domain = raw.split("@", 1)
    return f"{local[:1]}***@{domain}"
