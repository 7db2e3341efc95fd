"""Minimal transition engine that reports every attempt as an outcome value."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from state_audit.errors import ArgumentError, InvalidConfiguration
from state_audit.logging_utils import get_logger
from state_audit.machine.models import MachineDescriptor


@dataclass(frozen=True)
class TransitionOutcome:
    event: str
    from_state: str
    to_state: str
    machine: str
    succeeded: bool
    args: tuple[Any, ...] = field(default=(), compare=False)


OutcomeHandler = Callable[[Any, TransitionOutcome], None]


def state_str(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


class StateMachineEngine:
    """Fires events against an entity's status attributes.

    The first branch whose from-states match the current status and whose
    guard (a method on the entity) returns truthy wins. Every attempt,
    successful or not, is delivered to ``on_outcome`` before ``fire`` returns.
    """

    def __init__(
        self,
        machines: Mapping[str, MachineDescriptor] | Iterable[MachineDescriptor],
        on_outcome: OutcomeHandler | None = None,
    ) -> None:
        if isinstance(machines, Mapping):
            self._machines = dict(machines)
        else:
            self._machines = {machine.name: machine for machine in machines}
        self._on_outcome = on_outcome

    @property
    def machines(self) -> dict[str, MachineDescriptor]:
        return dict(self._machines)

    def machine_for_event(self, event: str) -> MachineDescriptor | None:
        for machine in self._machines.values():
            if event in machine.events:
                return machine
        return None

    def fire(
        self,
        entity: Any,
        event: str,
        *args: Any,
        on_outcome: OutcomeHandler | None = None,
    ) -> bool:
        machine = self.machine_for_event(event)
        if machine is None:
            raise ArgumentError(
                f"{type(entity).__name__} has no state machine for event {event}"
            )
        current = getattr(entity, machine.attribute)
        from_state = state_str(current)

        outcome: TransitionOutcome | None = None
        for branch in machine.events[event].branches:
            if not branch.matches_from(current):
                continue
            if branch.guard is not None and not self._check_guard(entity, branch.guard):
                continue
            setattr(entity, machine.attribute, branch.to)
            outcome = TransitionOutcome(
                event=event,
                from_state=from_state,
                to_state=branch.to,
                machine=machine.name,
                succeeded=True,
                args=args,
            )
            break
        if outcome is None:
            outcome = TransitionOutcome(
                event=event,
                from_state=from_state,
                to_state=from_state,
                machine=machine.name,
                succeeded=False,
                args=args,
            )
        get_logger(__name__).debug(
            "Fired %s on %s: %s -> %s (succeeded=%s)",
            event,
            machine.name,
            outcome.from_state,
            outcome.to_state,
            outcome.succeeded,
        )

        handler = on_outcome or self._on_outcome
        if handler is not None:
            handler(entity, outcome)
        return outcome.succeeded

    @staticmethod
    def _check_guard(entity: Any, guard: str) -> bool:
        check = getattr(entity, guard, None)
        if not callable(check):
            raise InvalidConfiguration(
                f"Guard '{guard}' is not a method on {type(entity).__name__}"
            )
        return bool(check())
