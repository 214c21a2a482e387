"""Common boolean coercion helpers and configuration constants."""

from __future__ import annotations

from typing import Optional

TRUTHY_STRINGS = {"1", "true", "yes", "on"}
FALSY_STRINGS = {"0", "false", "no", "off"}


CONFIG_BASENAME = "config"
DEFAULT_CONFIG_FILENAME = f"{CONFIG_BASENAME}.toml"
LOCAL_CONFIG_FILENAME = f"{CONFIG_BASENAME}.local.toml"

# Placeholder values shipped in the stock deployment configuration.
DEFAULT_TECHNICAL_CONTACT_EMAIL = "na@example.org"
DEFAULT_ADMIN_PASSWORD = "123"
DEFAULT_SECRET_SALT = "defaultsecretsalt"

DEVELOPMENT_VERSION = "master"


def coerce_bool(value: Optional[object], *, default: bool = False) -> bool:
    """Convert common truthy/falsey string markers into booleans.

    Falls back to ``default`` when the value is ``None`` or ambiguous.
    Passing a non-string/non-bool value relies on Python's ``bool`` constructor.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if not normalized:
            return default
        if normalized in TRUTHY_STRINGS:
            return True
        if normalized in FALSY_STRINGS:
            return False
        return default
    try:
        return bool(value)
    except Exception:
        return default


def is_bool_marker(value: object) -> bool:
    """Return ``True`` when ``value`` is a bool or an unambiguous boolean string."""

    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        normalized = value.strip().lower()
        return normalized in TRUTHY_STRINGS or normalized in FALSY_STRINGS
    return False


__all__ = [
    "coerce_bool",
    "is_bool_marker",
    "TRUTHY_STRINGS",
    "FALSY_STRINGS",
    "CONFIG_BASENAME",
    "DEFAULT_CONFIG_FILENAME",
    "LOCAL_CONFIG_FILENAME",
    "DEFAULT_TECHNICAL_CONTACT_EMAIL",
    "DEFAULT_ADMIN_PASSWORD",
    "DEFAULT_SECRET_SALT",
    "DEVELOPMENT_VERSION",
]
