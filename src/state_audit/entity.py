"""Base class wiring audited state machines onto a stored record type.

A subclass declares its table, columns, machines and audit association::

    class Charge(StatefulEntity):
        table = "charges"
        columns = ("status_col", "total", "charge_status")
        machines = load_machines("charge.yaml")
        audit_logs = AuditAssociation(table="charge_audit_logs", owner_column="charge_id")
        paid_at = TimestampAccessor(to_state="paid")

        def total_zero(self) -> bool:
            return self.total == 0
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Callable, ClassVar

from state_audit.audit.db import SqliteStore
from state_audit.audit.models import AuditLogEntry, AuditSchema
from state_audit.audit.repository import AuditRepository
from state_audit.audit.staging import AuditStaging
from state_audit.audit.trail import AuditTrail
from state_audit.config import load_settings
from state_audit.errors import ArgumentError, InvalidConfiguration
from state_audit.machine.engine import StateMachineEngine, TransitionOutcome
from state_audit.machine.loader import load_machines
from state_audit.machine.models import MachineDescriptor
from state_audit.processing import TransitionProcessor
from state_audit.queries import (
    ReachabilityChecker,
    StateValidator,
    TimestampAccessor,
    TimestampIndex,
)


class AuditAssociation:
    """The audit-log collection of an entity type.

    Reading it from an entity returns an ``AuditRepository`` scoped to that
    entity's id.
    """

    def __init__(self, schema: AuditSchema | None = None, **schema_kwargs: Any) -> None:
        if schema is None:
            schema = AuditSchema(**schema_kwargs)
        elif schema_kwargs:
            raise TypeError("Pass either an AuditSchema or schema keyword arguments, not both")
        self.schema = schema
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return AuditRepository(instance.store, self.schema, instance.id)


def _commit_outcome(entity: "StatefulEntity", outcome: TransitionOutcome) -> None:
    entity.commit_audit_log(outcome)


class StatefulEntity:
    table: ClassVar[str] = ""
    columns: ClassVar[Sequence[str]] = ()
    primary_key: ClassVar[str] = "id"
    machines: ClassVar[Sequence[MachineDescriptor] | Mapping[str, MachineDescriptor]] = ()
    machines_path: ClassVar[str | None] = None
    status_column: ClassVar[str | None] = None
    audit_logs_association: ClassVar[str | None] = None
    timestamp_accessors: ClassVar[Sequence[TimestampAccessor]] = ()

    _machine_registry: ClassVar[dict[str, MachineDescriptor]] = {}
    _engine: ClassVar[StateMachineEngine]
    _timestamp_index: ClassVar[TimestampIndex]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        machines: Any = cls.machines
        if not machines:
            machines_path = cls.machines_path or load_settings().audit.machines_path
            if machines_path:
                machines = load_machines(machines_path)
        if isinstance(machines, Mapping):
            registry = dict(machines)
        else:
            registry = {machine.name: machine for machine in machines}
        cls._machine_registry = registry
        cls._engine = StateMachineEngine(registry, on_outcome=_commit_outcome)

        index = TimestampIndex(cls.timestamp_accessors)
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, TimestampAccessor):
                    index.register(value)
        cls._timestamp_index = index

    def __init__(self, store: SqliteStore, **values: Any) -> None:
        self.store = store
        self.id = values.pop(self.primary_key, None)
        self.errors: dict[str, list[str]] = {}
        for machine in self._machine_registry.values():
            if machine.attribute not in values and machine.initial is not None:
                values[machine.attribute] = machine.initial
        unknown = sorted(set(values) - set(self.columns))
        if unknown:
            raise TypeError(f"{type(self).__name__} has no columns {', '.join(unknown)}")
        for column in self.columns:
            setattr(self, column, values.get(column))
        self._saved: dict[str, Any] = {}
        self._staging: AuditStaging | None = None
        self._trail: AuditTrail | None = None
        self._processor: TransitionProcessor | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.id}]"

    # Persistence

    @classmethod
    def create(cls, store: SqliteStore, **values: Any) -> "StatefulEntity":
        entity = cls(store, **values)
        entity.save()
        return entity

    @classmethod
    def get(cls, store: SqliteStore, pk: Any) -> "StatefulEntity":
        row = store.get_row(cls.table, pk, cls.primary_key)
        if row is None:
            raise LookupError(f"No {cls.__name__} with {cls.primary_key}={pk!r}")
        entity = cls(store, **{cls.primary_key: pk})
        entity._load_row(row)
        return entity

    def column_values(self) -> dict[str, Any]:
        return {column: getattr(self, column) for column in self.columns}

    def save(self) -> "StatefulEntity":
        if self.id is not None:
            return self.save_changes()
        values = {key: value for key, value in self.column_values().items() if value is not None}
        self.id = self.store.insert(self.table, values)
        return self.refresh()

    def save_changes(self) -> "StatefulEntity":
        if self.id is None:
            return self.save()
        changed = {
            column: value
            for column, value in self.column_values().items()
            if column not in self._saved or self._saved[column] != value
        }
        if changed:
            self.store.update(self.table, self.id, changed, pk_column=self.primary_key)
            self._saved.update(changed)
        return self

    def update(self, **values: Any) -> "StatefulEntity":
        for column, value in values.items():
            if column not in self.columns:
                raise TypeError(f"{type(self).__name__} has no column {column}")
            setattr(self, column, value)
        return self.save_changes()

    def refresh(self) -> "StatefulEntity":
        row = self.store.get_row(self.table, self.id, self.primary_key)
        if row is None:
            raise LookupError(f"{self!r} no longer exists")
        self._load_row(row)
        return self

    def lock(self) -> "StatefulEntity":
        """Re-read the row under the open transaction's lock."""
        self._load_row(self.store.lock_row(self.table, self.id, self.primary_key))
        return self

    def snapshot(self) -> dict[str, Any]:
        return {"id": self.id, "values": self.column_values(), "saved": dict(self._saved)}

    def restore(self, snapshot: Mapping[str, Any]) -> None:
        self.id = snapshot["id"]
        for column, value in snapshot["values"].items():
            setattr(self, column, value)
        self._saved = dict(snapshot["saved"])

    def _load_row(self, row: Mapping[str, Any]) -> None:
        for column in self.columns:
            setattr(self, column, row[column])
        self._saved = self.column_values()

    # Machines

    @classmethod
    def machine_registry(cls) -> dict[str, MachineDescriptor]:
        return dict(cls._machine_registry)

    @property
    def has_multiple_machines(self) -> bool:
        return len(self._machine_registry) > 1

    def resolve_machine(self, machine: str | None = None) -> MachineDescriptor:
        registry = self._machine_registry
        if not registry:
            raise InvalidConfiguration(
                f"{type(self).__name__} must declare at least one state machine."
            )
        if machine is not None:
            descriptor = registry.get(str(machine))
            if descriptor is None:
                raise ArgumentError(f"no state machine named {machine}")
            return descriptor
        if len(registry) > 1:
            raise ArgumentError(
                "You must provide the machine keyword argument when working with "
                "multiple state machines."
            )
        return next(iter(registry.values()))

    def status_attribute(self, machine: str | None = None) -> str:
        if machine is None and self.status_column:
            return self.status_column
        return self.resolve_machine(machine).attribute

    def status(self, machine: str | None = None) -> Any:
        return getattr(self, self.status_attribute(machine))

    def fire(self, event: str, *args: Any) -> bool:
        """Attempt ``event`` without a transaction; the outcome is audited."""
        return self._engine.fire(self, event, *args)

    # Audit

    def _audit_repository(self) -> AuditRepository:
        name = self.audit_logs_association or load_settings().audit.association
        association = getattr(type(self), name, None)
        if not isinstance(association, AuditAssociation):
            raise InvalidConfiguration(
                f"Association for audit logs '{name}' does not exist. "
                f"Declare '{name} = AuditAssociation(...)' on {type(self).__name__}, "
                "or set audit_logs_association to the name of its audit association."
            )
        return AuditRepository(self.store, association.schema, self.id)

    @property
    def staging(self) -> AuditStaging:
        if self._staging is None:
            self._staging = AuditStaging(
                self._audit_repository,
                tag_machines=self.has_multiple_machines,
            )
        return self._staging

    @property
    def trail(self) -> AuditTrail:
        if self._trail is None:
            self._trail = AuditTrail(
                self._audit_repository,
                self.staging,
                tag_machines=self.has_multiple_machines,
            )
        return self._trail

    def audit_log_repository(self) -> AuditRepository:
        return self._audit_repository()

    def current_audit_log(self, machine: str | None = None) -> AuditLogEntry:
        return self.staging.current(self.resolve_machine(machine).name)

    def audit(
        self,
        message: str,
        reason: str | None = None,
        machine: str | None = None,
    ) -> AuditLogEntry:
        """Add ``message`` (and optionally ``reason``) to the staged audit entry."""
        return self.staging.audit(self.resolve_machine(machine).name, message, reason=reason)

    def commit_audit_log(self, outcome: TransitionOutcome) -> AuditLogEntry:
        return self.trail.commit(self.resolve_machine(outcome.machine).name, outcome)

    def audit_one_off(
        self,
        event: str,
        messages: str | Sequence[str],
        reason: str | None = None,
        machine: str | None = None,
    ) -> AuditLogEntry:
        descriptor = self.resolve_machine(machine)
        return self.trail.one_off(
            descriptor.name,
            self.status(descriptor.name),
            event,
            messages,
            reason=reason,
        )

    def audit_logs_for(self, machine: str) -> list[AuditLogEntry]:
        return self.trail.for_machine(self.resolve_machine(machine).name)

    def latest_audit_log(self) -> AuditLogEntry | None:
        return self._audit_repository().latest()

    def discard_staged_audits(self) -> None:
        if self._staging is not None:
            self._staging.clear_all()

    # Processing

    @property
    def processor(self) -> TransitionProcessor:
        if self._processor is None:
            self._processor = TransitionProcessor(self)
        return self._processor

    def process(self, event: str, *args: Any) -> bool:
        return self.processor.process(event, *args)

    def must_process(self, event: str, *args: Any) -> "StatefulEntity":
        return self.processor.must_process(event, *args)

    def process_if(
        self,
        event: str,
        predicate: Callable[["StatefulEntity"], bool],
        *args: Any,
    ) -> "StatefulEntity":
        return self.processor.process_if(event, predicate, *args)

    # Queries

    def timestamp(self, name: str) -> datetime | None:
        return self._timestamp_index.timestamp(name, self._audit_repository().all())

    def validate_state_machine(self, machine: str | None = None) -> bool:
        descriptor = self.resolve_machine(machine)
        return StateValidator.validate(
            descriptor,
            getattr(self, descriptor.attribute),
            self.status_attribute(machine),
            self.errors,
        )

    def validate(self) -> dict[str, list[str]]:
        self.errors = {}
        for name in self._machine_registry:
            self.validate_state_machine(name if self.has_multiple_machines else None)
        return self.errors

    def is_valid(self) -> bool:
        return not self.validate()

    def reachable(self, event: str, machine: str | None = None) -> bool:
        descriptor = self.resolve_machine(machine)
        return ReachabilityChecker.reachable(descriptor, self.status(machine), event)
