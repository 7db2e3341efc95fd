"""Data models for audit log types and records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from state_audit.actor import Actor, ActorLike
from state_audit.audit.columns import (
    REQUIRED_FIELDS,
    ColumnMapper,
    ColumnMapping,
    MessagesStorage,
)
from state_audit.audit.db import SqliteStore
from state_audit.config import load_settings
from state_audit.errors import InvalidConfiguration

ActorLoader = Callable[[Any], ActorLike | None]


def default_actor_loader(actor_id: Any) -> ActorLike:
    return Actor(id=actor_id)


@dataclass(eq=False)
class AuditSchema:
    """Describes one audit-log record type: its table, owner key and mapping.

    The mapper (and with it the messages storage variant) is resolved once
    per schema on first use. Recomputing it concurrently is harmless.
    """

    table: str
    owner_column: str
    column_mapping: Mapping[str, str] | ColumnMapping | None = None
    messages_storage: MessagesStorage | str | None = None
    primary_key: str = "id"
    actor_loader: ActorLoader = default_actor_loader
    mapping: ColumnMapping = field(init=False)
    _columns: dict[str, str] | None = field(default=None, init=False, repr=False)
    _mapper: ColumnMapper | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.column_mapping, ColumnMapping):
            self.mapping = self.column_mapping
        else:
            self.mapping = ColumnMapping.from_overrides(self.column_mapping)
        if isinstance(self.messages_storage, str) and not isinstance(
            self.messages_storage, MessagesStorage
        ):
            setting = self.messages_storage.strip().lower()
            self.messages_storage = None if setting == "auto" else MessagesStorage(setting)

    def columns(self, store: SqliteStore) -> dict[str, str]:
        if self._columns is None:
            columns = store.table_columns(self.table)
            if not columns:
                raise InvalidConfiguration(f"Audit log table '{self.table}' does not exist")
            missing = [
                self.mapping.physical(name)
                for name in REQUIRED_FIELDS
                if self.mapping.physical(name) not in columns
            ]
            if self.owner_column not in columns:
                missing.append(self.owner_column)
            if missing:
                raise InvalidConfiguration(
                    f"Audit log table '{self.table}' is missing columns: {', '.join(missing)}"
                )
            self._columns = columns
        return self._columns

    def invalidate(self) -> None:
        """Forget the resolved columns and mapper, e.g. after a migration."""
        self._columns = None
        self._mapper = None

    def has_field(self, store: SqliteStore, logical: str) -> bool:
        return self.mapping.physical(logical) in self.columns(store)

    def mapper(self, store: SqliteStore) -> ColumnMapper:
        if self._mapper is None:
            self._mapper = ColumnMapper(self.mapping, self._resolve_messages_storage(store))
        return self._mapper

    def _resolve_messages_storage(self, store: SqliteStore) -> MessagesStorage:
        if isinstance(self.messages_storage, MessagesStorage):
            return self.messages_storage
        configured = load_settings().audit.messages_storage
        if configured != "auto":
            return MessagesStorage(configured)
        declared = self.columns(store)[self.mapping.physical("messages")]
        return MessagesStorage.infer(declared)


class AuditLogEntry:
    """One audit record, staged in memory or persisted."""

    def __init__(
        self,
        mapper: ColumnMapper,
        values: Mapping[str, Any] | None = None,
        id: Any = None,
        actor: ActorLike | None = None,
        actor_loader: ActorLoader | None = None,
    ) -> None:
        self.mapper = mapper
        self.id = id
        self.values: dict[str, Any] = {}
        self._actor = actor
        self._actor_loader = actor_loader
        if values:
            self.assign(values)

    def assign(self, values: Mapping[str, Any]) -> None:
        """Set physical values; the actor relationship is kept off the row."""
        actor_key = self.mapper.mapping.physical("actor")
        for key, value in values.items():
            if key == actor_key:
                self._actor = value
            else:
                self.values[key] = value

    def get(self, logical: str) -> Any:
        return self.mapper.get(self, logical)

    def set(self, logical: str, value: Any) -> None:
        self.mapper.set(self, logical, value)

    def __getitem__(self, column: str) -> Any:
        return self.values[column]

    @property
    def persisted(self) -> bool:
        return self.id is not None

    @property
    def at(self) -> datetime | None:
        return self.get("at")

    @property
    def event(self) -> str | None:
        return self.get("event")

    @property
    def from_state(self) -> str | None:
        return self.get("from_state")

    @property
    def to_state(self) -> str | None:
        return self.get("to_state")

    @property
    def reason(self) -> str | None:
        return self.get("reason")

    @property
    def messages(self) -> list[str] | str:
        value = self.get("messages")
        if value is None:
            return self.mapper.messages_storage.empty()
        return value

    @property
    def actor_id(self) -> Any:
        return self.get("actor_id")

    @property
    def actor(self) -> ActorLike | None:
        if self._actor is None and self.actor_id is not None and self._actor_loader is not None:
            self._actor = self._actor_loader(self.actor_id)
        return self._actor

    @property
    def machine_name(self) -> str | None:
        return self.values.get(self.mapper.mapping.physical("machine_name"))

    @property
    def failed(self) -> bool:
        return self.from_state == self.to_state

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def message_list(self) -> list[str]:
        return self.mapper.messages_storage.split(self.messages)

    @property
    def full_message(self) -> str:
        return "\n".join(self.message_list)

    @property
    def last_message(self) -> str | None:
        messages = self.message_list
        return messages[-1] if messages else None

    def __repr__(self) -> str:
        return (
            f"AuditLogEntry(id={self.id!r}, event={self.event!r}, "
            f"from_state={self.from_state!r}, to_state={self.to_state!r}, "
            f"reason={self.reason!r}, messages={self.messages!r}, "
            f"actor_id={self.actor_id!r}, at={self.at!r})"
        )
