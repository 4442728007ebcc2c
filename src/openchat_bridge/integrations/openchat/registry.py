"""Process-lifetime registry of bot installations keyed by location key.

Installations are rebuilt from redelivered lifecycle notifications after a
restart; nothing is persisted by default. Storage sits behind the narrow
`InstallationStore` protocol so a durable backend can be swapped in without
touching the resolver or the router.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterator, Optional, Protocol

from ...core.logging_utils import log_event
from .locations import (
    chat_identifier_to_installation_location,
    location_key,
    scope_from_location,
)
from .models import ChatIdentifier, Installation, InstallationLocation, InstallationRecord


class InstallationStore(Protocol):
    def insert(self, key: str, installation: Installation) -> None: ...

    def remove(self, key: str) -> Optional[Installation]: ...

    def get(self, key: str) -> Optional[Installation]: ...

    def iter_items(self) -> Iterator[tuple[str, Installation]]: ...

    def __len__(self) -> int: ...


class InMemoryInstallationStore:
    """Insertion-ordered dict store; overwriting a key keeps its original position."""

    def __init__(self) -> None:
        self._entries: dict[str, Installation] = {}

    def insert(self, key: str, installation: Installation) -> None:
        self._entries[key] = installation

    def remove(self, key: str) -> Optional[Installation]:
        return self._entries.pop(key, None)

    def get(self, key: str) -> Optional[Installation]:
        return self._entries.get(key)

    def iter_items(self) -> Iterator[tuple[str, Installation]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)


class InstallationsView(Mapping):
    """Live read-only view over the registry store."""

    def __init__(self, store: InstallationStore) -> None:
        self._store = store

    def __getitem__(self, key: str) -> Installation:
        installation = self._store.get(key)
        if installation is None:
            raise KeyError(key)
        return installation

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._store.iter_items())

    def __len__(self) -> int:
        return len(self._store)


class InstallationRegistry:
    def __init__(
        self,
        store: Optional[InstallationStore] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store: InstallationStore = store if store is not None else InMemoryInstallationStore()
        self._logger = logger or logging.getLogger(__name__)
        self._view = InstallationsView(self._store)

    def record_installation(
        self, location: InstallationLocation, record: InstallationRecord
    ) -> Installation:
        """Insert or replace the installation for a location (re-install updates grants)."""
        key = location_key(location)
        installation = Installation(
            location=location,
            scope=scope_from_location(location),
            record=record,
        )
        self._store.insert(key, installation)
        log_event(
            self._logger,
            logging.INFO,
            "openchat.install.recorded",
            location_key=key,
            location_kind=location.kind,
            message_permission_mask=record.granted_autonomous_permissions.message,
        )
        return installation

    def record_uninstallation(self, location: InstallationLocation) -> bool:
        key = location_key(location)
        removed = self._store.remove(key) is not None
        log_event(
            self._logger,
            logging.INFO,
            "openchat.uninstall.recorded",
            location_key=key,
            removed=removed,
        )
        return removed

    def get_installations(self) -> InstallationsView:
        return self._view

    def get(self, key: str) -> Optional[Installation]:
        if not key:
            return None
        return self._store.get(key)

    def get_by_location(self, location: InstallationLocation) -> Optional[Installation]:
        return self._store.get(location_key(location))

    def get_by_chat_id(self, chat_id: ChatIdentifier) -> Optional[Installation]:
        return self.get_by_location(chat_identifier_to_installation_location(chat_id))

    def first(self) -> Optional[tuple[str, Installation]]:
        for item in self._store.iter_items():
            return item
        return None

    def __len__(self) -> int:
        return len(self._store)
