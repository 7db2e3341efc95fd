"""Committing staged audits, one-off notes, and per-machine views."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Callable

from state_audit.actor import current_actor
from state_audit.audit.models import AuditLogEntry
from state_audit.audit.repository import AuditRepository
from state_audit.audit.staging import AuditStaging
from state_audit.logging_utils import get_logger, log_event
from state_audit.machine.engine import TransitionOutcome, state_str
from state_audit.utils.time import utc_now


class AuditTrail:
    """Writes the audit entries of one entity.

    A transition attempt on an edge (event, from_state, to_state) that
    already has an entry updates that entry instead of adding a row, so a
    guarded event retried many times leaves one record for the edge.
    """

    def __init__(
        self,
        repository: Callable[[], AuditRepository],
        staging: AuditStaging,
        tag_machines: bool = False,
    ) -> None:
        self._repository = repository
        self._staging = staging
        self._tag_machines = tag_machines
        self._logger = get_logger(__name__)

    def commit(self, machine: str, outcome: TransitionOutcome) -> AuditLogEntry:
        log_event(
            self._logger,
            logging.DEBUG,
            "committing_audit_log",
            event=outcome.event,
            from_state=outcome.from_state,
            to_state=outcome.to_state,
            state_machine=machine,
        )
        staged = self._staging.current(machine)
        repository = self._repository()
        existing = repository.find(lambda entry: self._same_edge(entry, outcome, machine))
        if existing is not None:
            log_event(self._logger, logging.DEBUG, "updating_audit_log", audit_log_id=existing.id)
            entry = repository.update(
                existing,
                at=utc_now(),
                actor=current_actor(),
                messages=staged.get("messages"),
                reason=staged.get("reason"),
            )
        else:
            log_event(self._logger, logging.DEBUG, "creating_audit_log")
            staged.assign(
                staged.mapper.map_fields(
                    {
                        "at": utc_now(),
                        "actor": current_actor(),
                        "event": outcome.event,
                        "from_state": outcome.from_state,
                        "to_state": outcome.to_state,
                        "messages": staged.get("messages"),
                    }
                )
            )
            entry = repository.add(staged)
        self._staging.clear(machine)
        return entry

    def one_off(
        self,
        machine: str,
        status: Any,
        event: str,
        messages: str | Sequence[str],
        reason: str | None = None,
    ) -> AuditLogEntry:
        """Insert an out-of-band note; from_state and to_state are both ``status``."""
        log_event(self._logger, logging.DEBUG, "creating_one_off_audit_log", event=event)
        repository = self._repository()
        entry = repository.new_entry()
        state = state_str(status)
        fields: dict[str, Any] = {
            "at": utc_now(),
            "event": event,
            "from_state": state,
            "to_state": state,
            "messages": messages,
            "reason": reason or "",
            "actor": current_actor(),
        }
        if self._tag_machines:
            fields["machine_name"] = machine
        entry.assign(entry.mapper.map_fields(fields))
        return repository.add(entry)

    def for_machine(self, machine: str) -> list[AuditLogEntry]:
        return self._repository().for_machine(machine)

    def _same_edge(self, entry: AuditLogEntry, outcome: TransitionOutcome, machine: str) -> bool:
        if self._tag_machines and entry.get("machine_name") != machine:
            return False
        return (
            entry.get("event") == outcome.event
            and entry.get("from_state") == outcome.from_state
            and entry.get("to_state") == outcome.to_state
        )
