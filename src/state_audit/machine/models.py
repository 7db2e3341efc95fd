"""State machine definition models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ANY_STATE = "any"


def _ensure_list(v: Any) -> list:
    """Convert None to empty list, wrap scalars, pass through lists."""
    if v is None:
        return []
    if isinstance(v, (list, tuple, set, frozenset)):
        return list(v)
    return [v]


def state_candidates(value: Any) -> set[str]:
    """String forms under which a status value may be declared.

    Enum members match by value and by name, everything else by ``str()``.
    """
    if value is None:
        return set()
    if isinstance(value, Enum):
        return {str(value.value), value.name}
    return {str(value)}


class Branch(BaseModel):
    """One possible outcome of an event: from-states, target, optional guard."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_states: list[str] | Literal["any"] = Field(default=ANY_STATE, alias="from")
    to: str
    guard: str | None = Field(default=None, alias="if")

    @field_validator("from_states", mode="before")
    @classmethod
    def _validate_from_states(cls, v: Any) -> Any:
        if v is None or v in (ANY_STATE, "all"):
            return ANY_STATE
        return [str(item) for item in _ensure_list(v)]

    @field_validator("to", mode="before")
    @classmethod
    def _validate_to(cls, v: Any) -> str:
        return str(v)

    @property
    def matches_any(self) -> bool:
        return self.from_states == ANY_STATE

    def matches_from(self, state: Any) -> bool:
        if self.matches_any:
            return True
        return bool(state_candidates(state) & set(self.from_states))


class EventSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    branches: list[Branch] = Field(default_factory=list)

    @field_validator("branches", mode="before")
    @classmethod
    def _validate_branches(cls, v: Any) -> list:
        return _ensure_list(v)


class MachineDescriptor(BaseModel):
    """Read-only description of one state machine run by an entity type."""

    model_config = ConfigDict(frozen=True)

    name: str
    attribute: str = ""
    initial: str | None = None
    states: list[str] = Field(default_factory=list)
    events: dict[str, EventSpec] = Field(default_factory=dict)

    @field_validator("states", mode="before")
    @classmethod
    def _validate_states(cls, v: Any) -> list:
        return [str(item) for item in _ensure_list(v)]

    @field_validator("events", mode="before")
    @classmethod
    def _validate_events(cls, v: Any) -> dict:
        # Accept {event: [branches]} as well as [{name, branches}].
        if v is None:
            return {}
        if isinstance(v, list):
            return {item["name"] if isinstance(item, dict) else item.name: item for item in v}
        if isinstance(v, dict):
            return {
                name: (
                    {"name": name, "branches": spec}
                    if isinstance(spec, (list, tuple)) or spec is None
                    else spec
                )
                for name, spec in v.items()
            }
        return v

    @model_validator(mode="before")
    @classmethod
    def _default_attribute(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("attribute"):
            data = {**data, "attribute": data.get("name", "")}
        return data

    @model_validator(mode="after")
    def _check_consistency(self) -> "MachineDescriptor":
        if len(set(self.states)) != len(self.states):
            raise ValueError(f"Machine '{self.name}' declares duplicate states")
        declared = set(self.states)
        if self.initial is not None and declared and self.initial not in declared:
            raise ValueError(
                f"Machine '{self.name}' initial state '{self.initial}' is not a declared state"
            )
        for event_name, event in self.events.items():
            if event.name != event_name:
                raise ValueError(
                    f"Machine '{self.name}' event key '{event_name}' does not match "
                    f"event name '{event.name}'"
                )
            for branch in event.branches:
                if declared and branch.to not in declared:
                    raise ValueError(
                        f"Machine '{self.name}' event '{event_name}' targets undeclared "
                        f"state '{branch.to}'"
                    )
        return self

    @property
    def event_names(self) -> list[str]:
        return list(self.events)

    def has_state(self, value: Any) -> bool:
        return bool(state_candidates(value) & set(self.states))


class MachineSet(BaseModel):
    version: int = Field(default=1)
    machines: list[MachineDescriptor] = Field(default_factory=list)

    @field_validator("machines", mode="before")
    @classmethod
    def _validate_machines(cls, v: Any) -> list:
        return _ensure_list(v)

    @model_validator(mode="after")
    def _check_unique_names(self) -> "MachineSet":
        names = [machine.name for machine in self.machines]
        if len(set(names)) != len(names):
            raise ValueError("Machine names must be unique")
        return self

    def by_name(self) -> dict[str, MachineDescriptor]:
        return {machine.name: machine for machine in self.machines}

    @classmethod
    def from_yaml(cls, data: dict[str, object]) -> "MachineSet":
        return cls.model_validate(data)
