"""Audit log collection owned by one entity."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Callable

from state_audit.audit.columns import ColumnMapper
from state_audit.audit.db import SqliteStore, quote_ident
from state_audit.audit.models import AuditLogEntry, AuditSchema


class AuditRepository:
    """CRUD and predicate finds over one owner's audit entries.

    Every read goes to the store; there is no cached membership.
    Entries come back newest first (``at`` then primary key, descending).
    """

    def __init__(self, store: SqliteStore, schema: AuditSchema, owner_id: Any) -> None:
        self.store = store
        self.schema = schema
        self.owner_id = owner_id

    @property
    def mapper(self) -> ColumnMapper:
        return self.schema.mapper(self.store)

    def new_entry(self, values: Mapping[str, Any] | None = None) -> AuditLogEntry:
        self.schema.columns(self.store)
        return AuditLogEntry(
            self.mapper,
            values=values,
            actor_loader=self.schema.actor_loader,
        )

    def all(self) -> list[AuditLogEntry]:
        if self.owner_id is None:
            return []
        at_col = quote_ident(self.mapper.mapping.physical("at"))
        pk = quote_ident(self.schema.primary_key)
        rows = self.store.fetch_all(
            f"SELECT * FROM {quote_ident(self.schema.table)} "
            f"WHERE {quote_ident(self.schema.owner_column)} = ? "
            f"ORDER BY {at_col} DESC, {pk} DESC",
            (self.owner_id,),
        )
        return [self._from_row(row) for row in rows]

    def __iter__(self) -> Iterator[AuditLogEntry]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self.all())

    def find(self, predicate: Callable[[AuditLogEntry], bool]) -> AuditLogEntry | None:
        for entry in self.all():
            if predicate(entry):
                return entry
        return None

    def filter(self, predicate: Callable[[AuditLogEntry], bool]) -> list[AuditLogEntry]:
        return [entry for entry in self.all() if predicate(entry)]

    def failed(self) -> list[AuditLogEntry]:
        return self.filter(lambda entry: entry.failed)

    def succeeded(self) -> list[AuditLogEntry]:
        return self.filter(lambda entry: entry.succeeded)

    def for_machine(self, machine: str) -> list[AuditLogEntry]:
        name = str(machine)
        return self.filter(lambda entry: entry.get("machine_name") == name)

    def latest(self) -> AuditLogEntry | None:
        """Most recently inserted entry, by primary key."""
        if self.owner_id is None:
            return None
        pk = quote_ident(self.schema.primary_key)
        row = self.store.fetch_one(
            f"SELECT * FROM {quote_ident(self.schema.table)} "
            f"WHERE {quote_ident(self.schema.owner_column)} = ? "
            f"ORDER BY {pk} DESC LIMIT 1",
            (self.owner_id,),
        )
        return None if row is None else self._from_row(row)

    def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        if self.owner_id is None:
            raise RuntimeError("Cannot add audit logs to an entity that has not been saved")
        entry.values[self.schema.owner_column] = self.owner_id
        row = self.mapper.to_row(entry.values, list(self.schema.columns(self.store)))
        entry.id = self.store.insert(self.schema.table, row)
        entry.values[self.schema.primary_key] = entry.id
        return entry

    def update(self, entry: AuditLogEntry, **fields: Any) -> AuditLogEntry:
        """Update logical ``fields`` of a persisted entry in place."""
        mapped = self.mapper.map_fields(fields)
        entry.assign(mapped)
        row = self.mapper.to_row(mapped, list(self.schema.columns(self.store)))
        self.store.update(self.schema.table, entry.id, row, pk_column=self.schema.primary_key)
        return entry

    def _from_row(self, row: Mapping[str, Any]) -> AuditLogEntry:
        values = self.mapper.from_row(dict(row))
        return AuditLogEntry(
            self.mapper,
            values=values,
            id=values.get(self.schema.primary_key),
            actor_loader=self.schema.actor_loader,
        )
