"""In-memory write buffer for the audit entry of a transition in progress."""

from __future__ import annotations

import logging
from typing import Callable

from state_audit.audit.models import AuditLogEntry
from state_audit.audit.repository import AuditRepository
from state_audit.errors import InvalidConfiguration
from state_audit.logging_utils import get_logger, log_event


class AuditStaging:
    """Staged audit entries for one entity, one per machine.

    Not thread-safe: it belongs to a single entity instance.
    """

    def __init__(
        self,
        repository: Callable[[], AuditRepository],
        tag_machines: bool = False,
    ) -> None:
        self._repository = repository
        self._tag_machines = tag_machines
        self._staged: dict[str, AuditLogEntry] = {}
        self._logger = get_logger(__name__)

    def current(self, machine: str) -> AuditLogEntry:
        entry = self._staged.get(machine)
        if entry is None:
            log_event(self._logger, logging.DEBUG, "preparing_audit_log", machine=machine)
            repository = self._repository()
            entry = repository.new_entry()
            if self._tag_machines:
                if not repository.schema.has_field(repository.store, "machine_name"):
                    raise InvalidConfiguration(
                        "Audit logs must have a machine_name field for multi-machine entities."
                    )
                entry.set("machine_name", machine)
            entry.set("reason", "")
            self._staged[machine] = entry
        return entry

    def peek(self, machine: str) -> AuditLogEntry | None:
        return self._staged.get(machine)

    def audit(self, machine: str, message: str, reason: str | None = None) -> AuditLogEntry:
        entry = self.current(machine)
        storage = entry.mapper.messages_storage
        entry.set("messages", storage.append(entry.get("messages"), message))
        if reason is not None:
            entry.set("reason", reason)
        return entry

    def clear(self, machine: str) -> None:
        self._staged.pop(machine, None)

    def clear_all(self) -> None:
        self._staged.clear()
