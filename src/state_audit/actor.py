"""Execution-context-local actor attribution.

The actor is whoever is performing state changes right now: a user, a
service identity, an admin acting on someone's behalf. Audit entries
written while an actor is set carry a reference to it.

Storage is a ``ContextVar``, so concurrent threads and asyncio tasks never
observe each other's actor.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

from state_audit.errors import CurrentActorAlreadySet

T = TypeVar("T")


@runtime_checkable
class ActorLike(Protocol):
    """Anything with an ``id`` can be stored as an actor reference."""

    id: Any


@dataclass(frozen=True)
class Actor:
    """Plain actor reference; equality is by identity only."""

    id: Any
    name: str | None = field(default=None, compare=False)


_current_actor: ContextVar[ActorLike | None] = ContextVar(
    "state_audit_current_actor",
    default=None,
)


def current_actor() -> ActorLike | None:
    """Return the actor for the current execution context, if any."""
    return _current_actor.get()


def set_current_actor(actor: ActorLike | None) -> Token[ActorLike | None]:
    """Set the actor and return a reset token.

    Raises CurrentActorAlreadySet if a non-nil actor is requested while any
    non-nil actor is already active, including the same one.
    """
    active = _current_actor.get()
    if actor is not None and active is not None:
        raise CurrentActorAlreadySet(f"already set to: {active!r}")
    return _current_actor.set(actor)


def reset_current_actor(token: Token[ActorLike | None]) -> None:
    """Restore the actor that was active before ``set_current_actor()``."""
    _current_actor.reset(token)


@contextmanager
def actor_scope(actor: ActorLike | None) -> Iterator[ActorLike | None]:
    """Set ``actor`` for the duration of the block, restoring on every exit path."""
    token = set_current_actor(actor)
    try:
        yield actor
    finally:
        reset_current_actor(token)


def with_actor(actor: ActorLike | None, body: Callable[[], T]) -> T:
    """Call ``body`` with ``actor`` as the current actor and return its result."""
    with actor_scope(actor):
        return body()


def actor_id_of(actor: ActorLike | None) -> Any:
    if actor is None:
        return None
    return actor.id
