"""Transactional execution of transition attempts."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from state_audit.errors import FailedTransition
from state_audit.logging_utils import get_logger, log_event

if TYPE_CHECKING:
    from state_audit.entity import StatefulEntity


class ProcessingPhase(str, Enum):
    IDLE = "idle"
    IN_TRANSACTION = "in_transaction"
    LOCKED = "locked"
    ATTEMPTING = "attempting"
    COMMITTED = "committed"
    ABORTED = "aborted"


class TransitionProcessor:
    """Runs "lock, fire, save, audit" for one entity inside one transaction.

    The transaction commits whether or not the event transitioned; only a
    storage error (or any other exception) rolls it back. On rollback the
    entity's in-memory attributes are restored and staged audits dropped.
    """

    def __init__(self, entity: "StatefulEntity") -> None:
        self._entity = entity
        self.phase = ProcessingPhase.IDLE
        self._logger = get_logger(__name__)

    def _enter(self, phase: ProcessingPhase, event: str) -> None:
        self.phase = phase
        log_event(
            self._logger,
            logging.DEBUG,
            "processing_phase",
            phase=phase.value,
            event=event,
            entity=type(self._entity).__name__,
            entity_id=self._entity.id,
        )

    def process(self, event: str, *args: Any) -> bool:
        entity = self._entity
        snapshot = entity.snapshot()
        try:
            with entity.store.transaction():
                self._enter(ProcessingPhase.IN_TRANSACTION, event)
                entity.lock()
                self._enter(ProcessingPhase.LOCKED, event)
                self._enter(ProcessingPhase.ATTEMPTING, event)
                result = entity.fire(event, *args)
                entity.save_changes()
        except BaseException:
            self._enter(ProcessingPhase.ABORTED, event)
            entity.discard_staged_audits()
            entity.restore(snapshot)
            raise
        self._enter(ProcessingPhase.COMMITTED, event)
        return result

    def must_process(self, event: str, *args: Any) -> "StatefulEntity":
        if not self.process(event, *args):
            raise FailedTransition(self._entity, event)
        return self._entity

    def process_if(
        self,
        event: str,
        predicate: Callable[["StatefulEntity"], bool],
        *args: Any,
    ) -> "StatefulEntity":
        """Like ``must_process``, but only fires when ``predicate(entity)`` holds.

        The predicate runs after the row lock is taken, so two callers racing
        on the same trigger see each other's result. A false predicate is a
        successful no-op.
        """
        entity = self._entity
        snapshot = entity.snapshot()
        try:
            with entity.store.transaction():
                self._enter(ProcessingPhase.IN_TRANSACTION, event)
                entity.lock()
                self._enter(ProcessingPhase.LOCKED, event)
                if predicate(entity):
                    self.must_process(event, *args)
        except BaseException:
            self._enter(ProcessingPhase.ABORTED, event)
            entity.discard_staged_audits()
            entity.restore(snapshot)
            raise
        self._enter(ProcessingPhase.COMMITTED, event)
        return entity
