"""Logical audit fields, their physical columns, and messages storage."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from state_audit.actor import actor_id_of
from state_audit.errors import InvalidConfiguration, UnmappedFieldError
from state_audit.utils.serialization import dump_messages, load_messages
from state_audit.utils.time import from_iso, to_iso

if TYPE_CHECKING:
    from state_audit.audit.models import AuditLogEntry

LOGICAL_FIELDS = (
    "at",
    "event",
    "from_state",
    "to_state",
    "reason",
    "messages",
    "actor",
    "actor_id",
    "machine_name",
)

# Fields every audit table must carry as real columns.
REQUIRED_FIELDS = ("at", "event", "from_state", "to_state", "reason", "messages", "actor_id")

MESSAGE_SEPARATOR = "\n"


class MessagesStorage(str, Enum):
    """How an audit type stores its messages column."""

    ARRAY = "array"
    STRING = "string"

    @classmethod
    def infer(cls, declared_type: str) -> "MessagesStorage":
        dbt = (declared_type or "").lower()
        if "json" in dbt or "[]" in dbt:
            return cls.ARRAY
        return cls.STRING

    def empty(self) -> list[str] | str:
        return [] if self is MessagesStorage.ARRAY else ""

    def normalize(self, messages: str | Sequence[str] | None) -> list[str] | str:
        if messages is None:
            return self.empty()
        if isinstance(messages, str):
            items = [messages]
        else:
            items = [str(message) for message in messages]
        if self is MessagesStorage.ARRAY:
            return items
        return MESSAGE_SEPARATOR.join(items)

    def append(self, current: list[str] | str | None, message: str) -> list[str] | str:
        if self is MessagesStorage.ARRAY:
            return [*(current or []), message]
        if not current:
            return message
        return f"{current}{MESSAGE_SEPARATOR}{message}"

    def split(self, value: list[str] | str | None) -> list[str]:
        if not value:
            return []
        if isinstance(value, str):
            return value.split(MESSAGE_SEPARATOR)
        return list(value)

    def serialize(self, value: list[str] | str | None) -> str:
        if self is MessagesStorage.ARRAY:
            return dump_messages(self.split(value) if isinstance(value, str) else (value or []))
        if isinstance(value, str):
            return value
        return MESSAGE_SEPARATOR.join(value or [])

    def deserialize(self, raw: Any) -> list[str] | str:
        if self is MessagesStorage.ARRAY:
            return load_messages(raw)
        return "" if raw is None else str(raw)


@dataclass(frozen=True)
class ColumnMapping:
    """Bidirectional map between logical audit fields and physical names.

    ``actor`` is the in-memory relationship and ``actor_id`` its foreign key
    column; they are one relationship, so they must be remapped together.
    """

    columns: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({name: name for name in LOGICAL_FIELDS})
    )

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, str] | None = None) -> "ColumnMapping":
        overrides = dict(overrides or {})
        unknown = sorted(set(overrides) - set(LOGICAL_FIELDS))
        if unknown:
            raise InvalidConfiguration(
                f"Unknown audit fields in column mapping: {', '.join(unknown)} "
                f"(known: {', '.join(LOGICAL_FIELDS)})"
            )
        if ("actor" in overrides) != ("actor_id" in overrides):
            raise InvalidConfiguration(
                "Remapping columns :actor and :actor_id must both be done, not just one."
            )
        columns = {name: name for name in LOGICAL_FIELDS}
        columns.update({name: str(col) for name, col in overrides.items()})
        physical = list(columns.values())
        if len(set(physical)) != len(physical):
            raise InvalidConfiguration("Column mapping maps two audit fields to the same column")
        return cls(columns=MappingProxyType(columns))

    def physical(self, logical: str) -> str:
        try:
            return self.columns[logical]
        except KeyError:
            raise UnmappedFieldError(f"No column mapping for audit field '{logical}'") from None

    def logical(self, physical: str) -> str | None:
        for name, col in self.columns.items():
            if col == physical:
                return name
        return None


class ColumnMapper:
    """Reads and writes audit records by logical field name."""

    def __init__(self, mapping: ColumnMapping, messages_storage: MessagesStorage) -> None:
        self.mapping = mapping
        self.messages_storage = messages_storage

    @property
    def messages_support_array(self) -> bool:
        return self.messages_storage is MessagesStorage.ARRAY

    def get(self, record: "AuditLogEntry", logical: str) -> Any:
        if logical == "actor":
            return record.actor
        return record.values.get(self.mapping.physical(logical))

    def set(self, record: "AuditLogEntry", logical: str, value: Any) -> None:
        record.assign(self.map_fields({logical: value}))

    def map_fields(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Translate logical field values to physical ones.

        ``actor`` expands into the relationship and its ``actor_id`` column;
        ``messages`` is normalized to the storage variant.
        """
        mapped: dict[str, Any] = {}
        for logical, value in fields.items():
            physical = self.mapping.physical(logical)
            if logical == "actor":
                mapped[physical] = value
                mapped[self.mapping.physical("actor_id")] = actor_id_of(value)
            elif logical == "messages":
                mapped[physical] = self.messages_storage.normalize(value)
            else:
                mapped[physical] = value
        return mapped

    def to_row(self, values: Mapping[str, Any], columns: Sequence[str]) -> dict[str, Any]:
        """Encode physical values for storage, dropping non-column keys."""
        at_col = self.mapping.physical("at")
        messages_col = self.mapping.physical("messages")
        row: dict[str, Any] = {}
        for col, value in values.items():
            if col not in columns:
                continue
            if col == at_col:
                value = to_iso(value)
            elif col == messages_col:
                value = self.messages_storage.serialize(value)
            row[col] = value
        return row

    def from_row(self, row: Mapping[str, Any]) -> dict[str, Any]:
        at_col = self.mapping.physical("at")
        messages_col = self.mapping.physical("messages")
        values = dict(row)
        if at_col in values:
            values[at_col] = from_iso(values[at_col])
        if messages_col in values:
            values[messages_col] = self.messages_storage.deserialize(values[messages_col])
        return values
