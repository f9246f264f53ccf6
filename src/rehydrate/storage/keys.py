"""Storage key naming.

Persisted stores are keyed ``"{prefix}-{name}{suffix}"``. The suffix keeps
demo data apart from real data, and optionally development data apart from
production data, so switching modes never migrates one mode's state into
another.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AppMode(str, Enum):
    """Mode the host application runs in."""

    LIVE = "live"
    DEMO = "demo"
    DEVELOPMENT = "development"

    @classmethod
    def from_string(cls, value: str) -> "AppMode":
        """Convert string to AppMode (case-insensitive, unknown -> LIVE).

        Args:
            value: Mode string.

        Returns:
            AppMode enum value.
        """
        mapping = {
            "live": cls.LIVE,
            "prod": cls.LIVE,
            "production": cls.LIVE,
            "demo": cls.DEMO,
            "dev": cls.DEVELOPMENT,
            "development": cls.DEVELOPMENT,
        }
        return mapping.get(value.strip().lower(), cls.LIVE)


@dataclass(frozen=True)
class KeySuffixes:
    """Suffix appended to a storage key per mode."""

    demo: str = "-demo"
    development: str = "-dev"
    live: str = ""


DEFAULT_SUFFIXES = KeySuffixes()


def storage_key(
    name: str,
    prefix: str = "store",
    mode: AppMode = AppMode.LIVE,
    separate_dev_keys: bool = False,
    suffixes: KeySuffixes = DEFAULT_SUFFIXES,
) -> str:
    """Build the storage key for a store.

    Args:
        name: Store name.
        prefix: Key prefix (empty for none).
        mode: Current application mode.
        separate_dev_keys: Whether development mode gets its own keys.
            Without it, development shares the live keys.
        suffixes: Suffixes per mode.

    Returns:
        The storage key.

    Example:
        >>> storage_key("auth")
        'store-auth'
        >>> storage_key("auth", mode=AppMode.DEMO)
        'store-auth-demo'
    """
    base = f"{prefix}-{name}" if prefix else name

    if mode is AppMode.DEMO:
        suffix = suffixes.demo
    elif mode is AppMode.DEVELOPMENT and separate_dev_keys:
        suffix = suffixes.development
    else:
        suffix = suffixes.live

    return f"{base}{suffix}"
