"""Pytest configuration and fixtures."""

from datetime import time

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from office_access.database import create_schema
from office_access.models import LoginRestriction, Office, OfficeGroup, PatientAccessLevel, User


# ── In-memory directory ──────────────────────────────────────────────

SEED_STATEMENTS = [
    "INSERT INTO organizations (pgid, pgid_name) VALUES ('1', 'Cranberry Dental Arts'), ('2', 'Pittsburgh Dental Group')",
    "INSERT INTO offices (office_id, office_oid, office_name, is_active, pgid, time_zone) VALUES "
    "(5, 'O-5', 'Cranberry', 1, '1', 'America/New_York'), "
    "(6, 'O-6', 'Wexford', 1, '1', 'America/New_York'), "
    "(7, 'O-7', 'Closed Office', 0, '1', NULL), "
    "(9, 'O-9', 'Downtown', 1, '2', 'America/Chicago')",
    "INSERT INTO office_groups (group_id, group_name, pgid) VALUES ('north', 'North Hills', '1')",
    "INSERT INTO office_group_members (group_id, office_id) VALUES ('north', 6), ('north', 7)",
    "INSERT INTO security_group_capabilities (group_code, capability) VALUES "
    "('front_desk', 'schedule.view'), ('front_desk', 'patient.view'), "
    "('billing', 'ledger.view'), ('billing', 'payment.post'), ('billing', 'patient.view')",
    "INSERT INTO users (user_id, pgid, username, first_name, last_name, email, is_active, home_office_id, "
    "role, patient_access_level, use_24x7_access) VALUES "
    "(1, '1', 'alice', 'Alice', 'Moore', 'alice@example.com', 1, 5, 'dentist', 'all', 1)",
    "INSERT INTO users (user_id, pgid, username, first_name, last_name, email, is_active, home_office_id, "
    "role, patient_access_level, use_24x7_access, allowed_days, allowed_from, allowed_until) VALUES "
    "(2, '1', 'bob', 'Bob', 'Adams', 'bob@example.com', 1, 6, 'front_office', 'assigned', 0, "
    "'Fri,Mon,Thu,Tue,Wed', '08:00', '18:00')",
    "INSERT INTO user_offices (user_id, office_id) VALUES (1, 5), (1, 6), (2, 6)",
    "INSERT INTO user_security_groups (user_id, position, group_code) VALUES "
    "(1, 0, 'front_desk'), (2, 0, 'billing'), (2, 1, 'front_desk')",
    "INSERT INTO user_permitted_ips (user_id, position, ip_address) VALUES (2, 0, '192.168.1.0/24')",
    "INSERT INTO appointments (appointment_id, user_id) VALUES (100, 1)",
]


@pytest.fixture
def engine():
    """SQLite engine with the directory schema and a small practice group."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    create_schema(eng)
    with eng.begin() as conn:
        for statement in SEED_STATEMENTS:
            conn.execute(text(statement))
    yield eng
    eng.dispose()


# ── In-memory records ────────────────────────────────────────────────

@pytest.fixture
def offices():
    return [
        Office(office_id="5", oid="O-5", name="Cranberry", pgid="1", time_zone="America/New_York"),
        Office(office_id="6", oid="O-6", name="Wexford", pgid="1", time_zone="America/New_York"),
        Office(office_id="7", oid="O-7", name="Closed Office", active=False, pgid="1"),
        Office(office_id="9", oid="O-9", name="Downtown", pgid="2", time_zone="America/Chicago"),
    ]


@pytest.fixture
def office_groups():
    return {
        "north": OfficeGroup(group_id="north", name="North Hills", office_ids=frozenset({"6", "7"})),
        "mixed": OfficeGroup(group_id="mixed", name="Mixed", office_ids=frozenset({"5", "9"})),
    }


def make_user(**overrides) -> User:
    """A valid user; override any field."""
    fields = dict(
        user_id="1",
        pgid="1",
        username="alice",
        first_name="Alice",
        last_name="Moore",
        email="alice@example.com",
        home_office_id="5",
        assigned_office_ids=frozenset({"5", "6"}),
        role="dentist",
        security_groups=("front_desk",),
        patient_access_level=PatientAccessLevel.ALL,
    )
    fields.update(overrides)
    return User(**fields)


WEEKDAY_RESTRICTION = LoginRestriction(
    allowed_days=frozenset({"Mon", "Tue", "Wed", "Thu", "Fri"}),
    allowed_from=time(8, 0),
    allowed_until=time(18, 0),
)
