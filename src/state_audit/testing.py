"""Assertion helpers for tests of audited state machines."""

from __future__ import annotations

from typing import Any

from state_audit.entity import StatefulEntity
from state_audit.errors import ArgumentError
from state_audit.machine.models import MachineDescriptor


def find_machine_for_event(entity: StatefulEntity, event: str) -> MachineDescriptor:
    for machine in entity.machine_registry().values():
        if event in machine.events:
            return machine
    raise ArgumentError(f"receiver {type(entity).__name__} has no state machine for event {event}")


def assert_transitions_on(
    entity: StatefulEntity,
    event: str,
    *args: Any,
    to: str | None = None,
    audit: bool = False,
) -> None:
    """Fire ``event`` and assert the entity ends up in state ``to``.

    With ``audit=True`` the failure message includes the entity's audit log.
    """
    if not to:
        raise ArgumentError("must provide a target state with to=")
    machine = find_machine_for_event(entity, event)
    entity.fire(event, *args)
    status = getattr(entity, machine.attribute)
    if status == to:
        return
    msg = f"expected that event {event} would transition to {to} but is {status}"
    if audit:
        msg += "\n" + "\n".join(repr(entry) for entry in entity.audit_log_repository().all())
    raise AssertionError(msg)


def assert_no_transition_on(entity: StatefulEntity, event: str, *args: Any) -> None:
    machine = find_machine_for_event(entity, event)
    if not entity.fire(event, *args):
        return
    status = getattr(entity, machine.attribute)
    raise AssertionError(
        f"expected that event {event} would not transition, but did and is now {status}"
    )


def assert_audits_transition(entity: StatefulEntity, event: str, to: str) -> None:
    """Fire ``event`` and check exactly one audit entry records it."""
    assert_transitions_on(entity, event, to=to)
    entries = entity.audit_log_repository().all()
    matching = [entry for entry in entries if entry.to_state == to and entry.event == event]
    if len(entries) != 1 or len(matching) != 1:
        raise AssertionError(
            f"expected a single audit entry for {event} -> {to}, got {entries!r}"
        )
