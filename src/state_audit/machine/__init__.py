"""State machine definitions consumed by the audit engine."""

from state_audit.machine.engine import StateMachineEngine, TransitionOutcome
from state_audit.machine.loader import load_machine_set, load_machines
from state_audit.machine.models import (
    ANY_STATE,
    Branch,
    EventSpec,
    MachineDescriptor,
    MachineSet,
)

__all__ = [
    "ANY_STATE",
    "Branch",
    "EventSpec",
    "MachineDescriptor",
    "MachineSet",
    "StateMachineEngine",
    "TransitionOutcome",
    "load_machine_set",
    "load_machines",
]
