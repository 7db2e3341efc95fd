"""Transactional audit trails for state-machine driven records."""

from state_audit.actor import (
    Actor,
    actor_scope,
    current_actor,
    reset_current_actor,
    set_current_actor,
    with_actor,
)
from state_audit.audit import (
    AuditLogEntry,
    AuditRepository,
    AuditSchema,
    ColumnMapping,
    MessagesStorage,
    SqliteStore,
)
from state_audit.entity import AuditAssociation, StatefulEntity
from state_audit.errors import (
    ActorAlreadySetError,
    ArgumentError,
    CurrentActorAlreadySet,
    FailedTransition,
    InvalidConfiguration,
    StateAuditError,
    UnmappedFieldError,
)
from state_audit.machine import (
    Branch,
    EventSpec,
    MachineDescriptor,
    TransitionOutcome,
    load_machines,
)
from state_audit.processing import ProcessingPhase, TransitionProcessor
from state_audit.queries import TimestampAccessor

__version__ = "0.1.0"

__all__ = [
    "Actor",
    "ActorAlreadySetError",
    "ArgumentError",
    "AuditAssociation",
    "AuditLogEntry",
    "AuditRepository",
    "AuditSchema",
    "Branch",
    "ColumnMapping",
    "CurrentActorAlreadySet",
    "EventSpec",
    "FailedTransition",
    "InvalidConfiguration",
    "MachineDescriptor",
    "MessagesStorage",
    "ProcessingPhase",
    "SqliteStore",
    "StateAuditError",
    "StatefulEntity",
    "TimestampAccessor",
    "TransitionOutcome",
    "TransitionProcessor",
    "UnmappedFieldError",
    "actor_scope",
    "current_actor",
    "load_machines",
    "reset_current_actor",
    "set_current_actor",
    "with_actor",
]
