"""Loader for machine definition YAML files."""

from __future__ import annotations

from pathlib import Path

import yaml

from state_audit.machine.models import MachineDescriptor, MachineSet


def load_machine_set(path: str | Path) -> MachineSet:
    machines_path = Path(path)
    if not machines_path.exists():
        raise FileNotFoundError(f"Machine definition file not found: {machines_path}")
    with machines_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return MachineSet.from_yaml(data)


def load_machines(path: str | Path) -> dict[str, MachineDescriptor]:
    """Load machine definitions keyed by machine name."""
    return load_machine_set(path).by_name()
