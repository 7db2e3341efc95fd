"""Read-side queries over audit history and the transition graph."""

from __future__ import annotations

from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from state_audit.audit.models import AuditLogEntry
from state_audit.errors import ArgumentError
from state_audit.machine.engine import state_str
from state_audit.machine.models import MachineDescriptor


@dataclass
class TimestampAccessor:
    """Names "when did the entity enter this edge"; None filters are wildcards.

    Declared on an entity class it reads as an attribute::

        paid_at = TimestampAccessor(to_state="paid")
    """

    name: str = ""
    event: str | None = None
    from_state: str | None = None
    to_state: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        if not self.name:
            self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.timestamp(self.name)

    def matches(self, entry: AuditLogEntry) -> bool:
        return (
            (self.event is None or self.event == entry.event)
            and (self.from_state is None or self.from_state == entry.from_state)
            and (self.to_state is None or self.to_state == entry.to_state)
        )


class TimestampIndex:
    """Registered timestamp accessors for an entity type.

    Registering a name twice replaces the earlier definition. Lookups scan
    the audit entries passed in on every call; nothing is cached.
    """

    def __init__(self, accessors: Iterable[TimestampAccessor] = ()) -> None:
        self._accessors: dict[str, TimestampAccessor] = {}
        for accessor in accessors:
            self.register(accessor)

    def register(self, accessor: TimestampAccessor) -> None:
        self._accessors[accessor.name] = accessor

    @property
    def names(self) -> list[str]:
        return list(self._accessors)

    def accessor(self, name: str) -> TimestampAccessor:
        try:
            return self._accessors[name]
        except KeyError:
            raise ArgumentError(
                f"No timestamp accessor named {name} (available: {', '.join(self.names)})"
            ) from None

    def timestamp(self, name: str, entries: Iterable[AuditLogEntry]) -> datetime | None:
        return timestamp_of(entries, self.accessor(name))

    def __contains__(self, name: object) -> bool:
        return name in self._accessors


def timestamp_of(
    entries: Iterable[AuditLogEntry],
    accessor: TimestampAccessor | None = None,
    *,
    event: str | None = None,
    from_state: str | None = None,
    to_state: str | None = None,
) -> datetime | None:
    """Return ``at`` of the first succeeded entry matching the filters.

    ``entries`` are expected newest first, so this is the latest match.
    """
    if accessor is None:
        accessor = TimestampAccessor("", event=event, from_state=from_state, to_state=to_state)
    for entry in entries:
        if entry.succeeded and accessor.matches(entry):
            return entry.at
    return None


class StateValidator:
    @staticmethod
    def validate(
        machine: MachineDescriptor,
        status: Any,
        field: str,
        errors: MutableMapping[str, list[str]],
    ) -> bool:
        """Add a field error when ``status`` is not a declared state."""
        if machine.has_state(status):
            return True
        errors.setdefault(field, []).append(
            f"state '{state_str(status)}' must be one of ({', '.join(sorted(machine.states))})"
        )
        return False


class ReachabilityChecker:
    @staticmethod
    def reachable(machine: MachineDescriptor, status: Any, event: str) -> bool:
        """True if some branch of ``event`` can fire from ``status``; guards are not run."""
        spec = machine.events.get(event)
        if spec is None:
            raise ArgumentError(
                f"Invalid event {event} "
                f"(available {machine.name} events: {', '.join(machine.event_names)})"
            )
        return any(branch.matches_from(status) for branch in spec.branches)
