"""
Database engine initialisation and schema creation.
"""

import sys

from sqlalchemy import create_engine, text

from office_access.config import get_env

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS organizations (
        pgid VARCHAR(32) PRIMARY KEY,
        pgid_name VARCHAR(200) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS offices (
        office_id INTEGER PRIMARY KEY,
        office_oid VARCHAR(32) NOT NULL,
        office_name VARCHAR(200) NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        pgid VARCHAR(32) NOT NULL,
        time_zone VARCHAR(64)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS office_groups (
        group_id VARCHAR(64) PRIMARY KEY,
        group_name VARCHAR(200) NOT NULL,
        pgid VARCHAR(32) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS office_group_members (
        group_id VARCHAR(64) NOT NULL,
        office_id INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS security_group_capabilities (
        group_code VARCHAR(64) NOT NULL,
        capability VARCHAR(128) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY,
        pgid VARCHAR(32),
        username VARCHAR(100) NOT NULL,
        first_name VARCHAR(100),
        last_name VARCHAR(100),
        email VARCHAR(200),
        phone VARCHAR(50),
        is_active INTEGER NOT NULL DEFAULT 1,
        home_office_id INTEGER,
        role VARCHAR(64),
        patient_access_level VARCHAR(16) NOT NULL DEFAULT 'all',
        use_24x7_access INTEGER NOT NULL DEFAULT 1,
        allowed_days VARCHAR(64),
        allowed_from VARCHAR(8),
        allowed_until VARCHAR(8)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_offices (
        user_id INTEGER NOT NULL,
        office_id INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_security_groups (
        user_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        group_code VARCHAR(64) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_permitted_ips (
        user_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        ip_address VARCHAR(64) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS appointments (
        appointment_id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        payment_id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL
    )
    """,
)


def init_engine():
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine) -> None:
    """Create the directory tables if they do not exist yet."""
    with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            conn.execute(text(statement))
