"""
Environment variable helpers with whitespace sanitization.
"""
import os
from typing import Optional


def get_env_str(
    name: str,
    default: Optional[str] = None,
    required: bool = False,
    strip: bool = True
) -> Optional[str]:
    """
    Read an environment variable, optionally stripping whitespace.

    Stray whitespace in RAZORPAY_KEY_SECRET or RAZORPAY_WEBHOOK_SECRET
    silently breaks every HMAC comparison, so secrets are stripped by default.

    Args:
        name: Environment variable name
        default: Value returned when unset or empty after strip
        required: Raise ValueError when missing/empty
        strip: Strip leading/trailing whitespace (default: True)

    Raises:
        ValueError: If required=True and the value is missing or empty
    """
    value = os.getenv(name)

    if value is None:
        if required:
            raise ValueError(
                f"Required environment variable '{name}' is not set. "
                f"Please add it to your .env file or environment."
            )
        return default

    if strip:
        value = value.strip()

    if not value:
        if required:
            raise ValueError(
                f"Required environment variable '{name}' is empty (or whitespace-only). "
                f"Please set a valid value in your .env file or environment."
            )
        return default

    return value


def get_env_bool(name: str, default: bool = False) -> bool:
    """
    Read a boolean environment variable.

    Truthy values: "1", "true", "yes", "on" (case-insensitive).
    Anything else set is False; unset or empty returns default.
    """
    value = os.getenv(name, "").strip().lower()

    if not value:
        return default

    return value in ("1", "true", "yes", "on")


def get_env_int(name: str, default: int) -> int:
    """Read an integer environment variable. Unset or empty returns default."""
    value = get_env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{name}' must be an integer (got {value!r}).")
