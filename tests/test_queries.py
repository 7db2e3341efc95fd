from __future__ import annotations

from datetime import timedelta
from enum import Enum

import pytest

from state_audit import ArgumentError, MachineDescriptor, TimestampAccessor
from state_audit.queries import ReachabilityChecker, TimestampIndex, timestamp_of

from entity_models import Charge


class ChargeState(Enum):
    OPEN = "open"
    UNKNOWN = "unknown"


def test_timestamps_follow_successful_transitions(store, clock) -> None:
    charge = Charge.create(store, total=10, charge_status="pending")
    finalized = clock.now
    charge.process("finalize")

    clock.now += timedelta(minutes=1)
    charged = clock.now
    charge.process("charge")

    clock.now += timedelta(minutes=1)
    paid = clock.now
    charge.update(charge_status="paid")
    charge.process("charge")

    assert charge.finalized_at == finalized
    assert charge.charged_at == charged
    assert charge.paid_at == paid
    assert charge.timestamp("paid_at") == paid
    assert charge.failed_at is None


def test_failed_attempts_do_not_count(store, clock) -> None:
    charge = Charge.create(store, total=10)
    finalized = clock.now
    charge.process("finalize")

    clock.now += timedelta(minutes=1)
    assert charge.process("charge") is False

    # The failed attempt is recorded as open -> open but is not a transition.
    assert charge.latest_audit_log().to_state == "open"
    assert charge.finalized_at == finalized


def test_one_off_entries_do_not_count(store, clock) -> None:
    charge = Charge.create(store)
    charge.process("set_failed")
    failed_at = clock.now

    clock.now += timedelta(minutes=1)
    charge.audit_one_off("note", "still failed")

    assert charge.failed_at == failed_at


def test_latest_matching_entry_wins(store, clock) -> None:
    charge = Charge.create(store)
    charge.process("set_failed")

    clock.now += timedelta(minutes=1)
    charge.process("reset")

    clock.now += timedelta(minutes=1)
    charge.process("finalize")
    charge.process("set_failed")

    assert charge.failed_at == clock.now
    assert charge.finalized_at == clock.now


def test_unknown_timestamp_name(store) -> None:
    charge = Charge.create(store)
    with pytest.raises(ArgumentError, match="No timestamp accessor named settled_at"):
        charge.timestamp("settled_at")


def test_timestamp_of_with_filters(store, clock) -> None:
    charge = Charge.create(store)
    charge.process("finalize")
    entries = charge.audit_logs.all()

    assert timestamp_of(entries, event="finalize") == clock.now
    assert timestamp_of(entries, from_state="pending", to_state="open") == clock.now
    assert timestamp_of(entries, event="charge") is None
    assert timestamp_of([], to_state="open") is None


def test_registering_same_name_replaces_accessor() -> None:
    index = TimestampIndex(
        [
            TimestampAccessor("done_at", to_state="paid"),
            TimestampAccessor("done_at", to_state="failed"),
        ]
    )
    assert index.names == ["done_at"]
    assert index.accessor("done_at").to_state == "failed"
    assert "done_at" in index
    assert "paid_at" not in index


def test_validate_accepts_declared_state(store) -> None:
    charge = Charge.create(store)
    assert charge.validate() == {}
    assert charge.is_valid()


def test_validate_reports_undeclared_state(store) -> None:
    charge = Charge.create(store)
    charge.status_col = "bogus"

    assert charge.validate() == {
        "status_col": ["state 'bogus' must be one of (charged, failed, open, paid, pending)"]
    }
    assert not charge.is_valid()

    charge.status_col = "open"
    assert charge.is_valid()


def test_validate_accepts_enum_by_value(store) -> None:
    charge = Charge.create(store)
    charge.status_col = ChargeState.OPEN
    assert charge.is_valid()

    charge.status_col = ChargeState.UNKNOWN
    assert charge.validate()["status_col"] == [
        "state 'unknown' must be one of (charged, failed, open, paid, pending)"
    ]


@pytest.mark.parametrize(
    ("status", "event", "expected"),
    [
        ("pending", "finalize", True),
        ("pending", "charge", False),
        ("open", "charge", True),
        ("charged", "charge", True),
        ("paid", "charge", False),
        ("paid", "set_failed", True),
        ("failed", "reset", True),
        ("open", "reset", False),
    ],
)
def test_reachable(store, status: str, event: str, expected: bool) -> None:
    charge = Charge.create(store)
    charge.status_col = status
    assert charge.reachable(event) is expected


def test_reachable_ignores_guards(store) -> None:
    charge = Charge.create(store, total=10)
    charge.process("finalize")

    assert charge.reachable("charge") is True
    assert charge.process("charge") is False


def test_reachable_with_enum_status(store) -> None:
    charge = Charge.create(store)
    charge.status_col = ChargeState.OPEN
    assert charge.reachable("charge") is True


def test_reachable_unknown_event(store) -> None:
    charge = Charge.create(store)
    with pytest.raises(ArgumentError) as excinfo:
        charge.reachable("fly")
    assert str(excinfo.value) == (
        "Invalid event fly (available status_col events: finalize, charge, set_failed, reset)"
    )


def test_status_accessor(store) -> None:
    charge = Charge.create(store)
    assert charge.status() == "pending"
    assert charge.status("status_col") == "pending"
    assert charge.status_attribute() == "status_col"


def test_reachable_on_linear_machine() -> None:
    machine = MachineDescriptor(
        name="position",
        states=["begin", "middle", "end"],
        events={
            "move_begin": [{"from": ["begin"], "to": "middle"}],
            "move_middle": [{"from": ["middle"], "to": "end"}],
            "move_any_to_end": [{"from": "any", "to": "end"}],
        },
    )

    assert ReachabilityChecker.reachable(machine, "begin", "move_begin") is True
    assert ReachabilityChecker.reachable(machine, "begin", "move_middle") is False
    assert ReachabilityChecker.reachable(machine, "begin", "move_any_to_end") is True
