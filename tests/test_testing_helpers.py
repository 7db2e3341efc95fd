from __future__ import annotations

import pytest

from state_audit import ArgumentError
from state_audit.testing import (
    assert_audits_transition,
    assert_no_transition_on,
    assert_transitions_on,
    find_machine_for_event,
)

from entity_models import Charge, MultiMachine


def test_find_machine_for_event(store) -> None:
    entity = MultiMachine.create(store)

    assert find_machine_for_event(entity, "gom2state3").name == "machine2"
    with pytest.raises(ArgumentError, match="receiver MultiMachine has no state machine for event fly"):
        find_machine_for_event(entity, "fly")


def test_assert_transitions_on_passes(store) -> None:
    charge = Charge.create(store)
    assert_transitions_on(charge, "finalize", to="open")


def test_assert_transitions_on_requires_target(store) -> None:
    charge = Charge.create(store)
    with pytest.raises(ArgumentError, match="must provide a target state with to="):
        assert_transitions_on(charge, "finalize")


def test_assert_transitions_on_reports_actual_state(store) -> None:
    charge = Charge.create(store, total=10)
    charge.process("finalize")

    with pytest.raises(AssertionError, match="expected that event charge would transition to paid but is open"):
        assert_transitions_on(charge, "charge", to="paid")


def test_assert_transitions_on_includes_audit_log(store) -> None:
    charge = Charge.create(store, total=10)
    charge.process("finalize")
    charge.audit("declined")

    with pytest.raises(AssertionError) as excinfo:
        assert_transitions_on(charge, "charge", to="paid", audit=True)

    assert "messages='declined'" in str(excinfo.value)


def test_assert_no_transition_on(store) -> None:
    charge = Charge.create(store)
    assert_no_transition_on(charge, "reset")

    with pytest.raises(AssertionError, match="would not transition, but did and is now open"):
        assert_no_transition_on(charge, "finalize")


def test_assert_audits_transition(store) -> None:
    charge = Charge.create(store)
    assert_audits_transition(charge, "finalize", to="open")

    with pytest.raises(AssertionError, match="expected a single audit entry"):
        assert_audits_transition(charge, "set_failed", to="failed")
