"""
Resource registry: the persisted mapping from logical names to external ids.

The registry remembers which calendar and which form belong to the
conference ("calendarId", "formId"). Entries are created lazily on the first
successful resource creation, read on every synchronization pass, and
cleared by an explicit reset.

The registry is always passed in explicitly, never looked up as global
state, so the engine can run against the SQLite-backed store or the
in-memory one used by tests and dry runs.
"""

from __future__ import annotations

import logging
from typing import Protocol

from session_signup.storage.db import SyncDatabase

# Logical names of the registered resources
CALENDAR_ID_KEY = "calendarId"
FORM_ID_KEY = "formId"

logger = logging.getLogger(__name__)


class ConfigMissing(Exception):
    """Raised when a required stored id or setting is not available."""

    pass


class ResourceRegistry(Protocol):
    """Key-value store interface consumed by the engine."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def clear(self) -> None: ...


def require(registry: ResourceRegistry, key: str, message: str | None = None) -> str:
    """
    Get a registry value that must be present.

    Args:
        registry: Registry to read from
        key: Logical name
        message: Error message shown to the user when the key is missing

    Raises:
        ConfigMissing: If the key is not set
    """
    value = registry.get(key)
    if value is None:
        raise ConfigMissing(message or f"No value stored for '{key}'.")
    return value


class DatabaseRegistry:
    """
    Registry persisted in the properties table of the sync database.

    Usage:
        registry = DatabaseRegistry(database)
        registry.set(CALENDAR_ID_KEY, "abc@group.calendar.google.com")
    """

    def __init__(self, database: SyncDatabase):
        self.database = database

    def get(self, key: str) -> str | None:
        return self.database.get_property(key)

    def set(self, key: str, value: str) -> None:
        self.database.set_property(key, value)
        logger.debug(f"Registry: {key} = {value}")

    def delete(self, key: str) -> bool:
        deleted = self.database.delete_property(key)
        if deleted:
            logger.debug(f"Registry: deleted {key}")
        return deleted

    def clear(self) -> None:
        count = self.database.clear_properties()
        logger.debug(f"Registry: cleared {count} entries")

    def items(self) -> dict[str, str]:
        """All stored entries."""
        return self.database.get_all_properties()


class InMemoryRegistry:
    """Registry kept in a dictionary; state is lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def clear(self) -> None:
        self._values.clear()

    def items(self) -> dict[str, str]:
        """All stored entries."""
        return dict(self._values)
