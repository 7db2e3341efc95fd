"""Entity types shared by the test suite."""

from __future__ import annotations

from pathlib import Path

from state_audit import (
    AuditAssociation,
    Branch,
    EventSpec,
    MachineDescriptor,
    StatefulEntity,
    TimestampAccessor,
    load_machines,
)

FIXTURES = Path(__file__).parent / "fixtures"

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT
);

CREATE TABLE charges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    status_col TEXT NOT NULL DEFAULT 'created',
    total REAL NOT NULL DEFAULT 0,
    charge_status TEXT NOT NULL DEFAULT ''
);

CREATE TABLE charge_audit_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    at TIMESTAMP NOT NULL,
    event TEXT NOT NULL,
    to_state TEXT NOT NULL,
    from_state TEXT NOT NULL,
    reason TEXT NOT NULL DEFAULT '',
    messages TEXT DEFAULT '',
    charge_id INTEGER NOT NULL REFERENCES charges(id) ON DELETE CASCADE,
    actor_id INTEGER REFERENCES users(id) ON DELETE SET NULL
);
CREATE INDEX idx_charge_audit_logs_charge_id ON charge_audit_logs(charge_id);

CREATE TABLE multi_machines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    machine1 TEXT NOT NULL,
    machine2 TEXT NOT NULL
);

CREATE TABLE multi_machine_audit_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    at TIMESTAMP NOT NULL,
    event TEXT NOT NULL,
    to_state TEXT NOT NULL,
    from_state TEXT NOT NULL,
    reason TEXT NOT NULL DEFAULT '',
    messages JSON DEFAULT '[]',
    machine_name TEXT NOT NULL,
    multi_machine_id INTEGER NOT NULL REFERENCES multi_machines(id) ON DELETE CASCADE,
    actor_id INTEGER REFERENCES users(id) ON DELETE SET NULL
);

CREATE TABLE invoices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    state TEXT NOT NULL,
    total REAL NOT NULL DEFAULT 0
);

CREATE TABLE invoice_audit_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    at TIMESTAMP NOT NULL,
    event TEXT NOT NULL,
    to_state TEXT NOT NULL,
    from_state TEXT NOT NULL,
    reason TEXT NOT NULL DEFAULT '',
    messages JSONB,
    invoice_id INTEGER NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
    actor_id INTEGER REFERENCES users(id) ON DELETE SET NULL
);
"""


class Charge(StatefulEntity):
    table = "charges"
    columns = ("status_col", "total", "charge_status")
    machines_path = str(FIXTURES / "charge_machines.yaml")
    audit_logs = AuditAssociation(table="charge_audit_logs", owner_column="charge_id")

    finalized_at = TimestampAccessor(to_state="open")
    charged_at = TimestampAccessor(event="charge", from_state="open", to_state="charged")
    paid_at = TimestampAccessor(to_state="paid")
    failed_at = TimestampAccessor(to_state="failed")

    def total_zero(self) -> bool:
        return self.total == 0

    def charge_paid(self) -> bool:
        return self.charge_status == "paid"

    def charge_in_progress(self) -> bool:
        return self.charge_status == "pending"

    def charge_failed(self) -> bool:
        return self.charge_status == "failed"


class MultiMachine(StatefulEntity):
    table = "multi_machines"
    columns = ("machine1", "machine2")
    machines = load_machines(FIXTURES / "multi_machines.yaml")
    audit_logs = AuditAssociation(
        table="multi_machine_audit_logs",
        owner_column="multi_machine_id",
    )
    timestamp_accessors = (
        TimestampAccessor("m1state2_at", to_state="m1state2"),
        TimestampAccessor("m1state3_at", to_state="m1state3"),
        TimestampAccessor("m2state2_at", to_state="m2state2"),
        TimestampAccessor("m2state3_at", to_state="m2state3"),
    )


INVOICE_MACHINE = MachineDescriptor(
    name="state",
    initial="pending",
    states=["pending", "open", "paid"],
    events={
        "charge": EventSpec(
            name="charge",
            branches=[Branch(from_states=["pending", "open"], to="paid", guard="total_zero")],
        ),
        "finalize": EventSpec(
            name="finalize",
            branches=[Branch(from_states=["pending"], to="open")],
        ),
    },
)


class Invoice(StatefulEntity):
    table = "invoices"
    columns = ("state", "total")
    machines = [INVOICE_MACHINE]
    audit_logs = AuditAssociation(table="invoice_audit_logs", owner_column="invoice_id")

    def total_zero(self) -> bool:
        return self.total == 0
