"""Error taxonomy for the audit-trail engine."""

from __future__ import annotations

from typing import Any


class StateAuditError(Exception):
    """Base class for errors raised by state_audit."""


class InvalidConfiguration(StateAuditError, RuntimeError):
    """Setup-time contradiction in how an entity or audit type is configured."""


class ArgumentError(StateAuditError, ValueError):
    """Caller misuse: unknown machine, unknown event, missing helper argument."""


class UnmappedFieldError(ArgumentError, KeyError):
    """A logical audit field has no column mapping."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class CurrentActorAlreadySet(StateAuditError):
    """A non-nil actor was requested while another one is active."""


ActorAlreadySetError = CurrentActorAlreadySet


class FailedTransition(StateAuditError):
    """Raised by ``must_process`` when the event did not transition."""

    def __init__(self, entity: Any, event: str) -> None:
        self.event = event
        self.entity = entity
        self.audit_log = None
        msg = f"{type(entity).__name__}[{getattr(entity, 'id', None)}] failed to transition on {event}"
        latest = entity.latest_audit_log()
        if latest is not None:
            self.audit_log = latest
            if latest.last_message:
                msg += f": {latest.last_message}"
        super().__init__(msg)
