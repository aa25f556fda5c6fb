"""
User / office directory backed by SQLAlchemy.

Reads return canonical records built through office_access.payloads;
writes are validated before anything is persisted.
"""

from dataclasses import replace
from typing import Dict, FrozenSet, List, Optional, Union

from sqlalchemy import text

from office_access.identifiers import check_office_directory, normalize_pgid, normalize_user_id
from office_access.models import FieldError, Office, OfficeGroup, User
from office_access.payloads import (
    format_time,
    office_from_row,
    office_group_from_row,
    user_from_payload,
)
from office_access.validation import validate_user


class UserNotFoundError(ValueError):
    pass


def _user_key(user_id) -> int:
    try:
        return int(normalize_user_id(user_id))
    except (TypeError, ValueError):
        raise UserNotFoundError(f"Unknown user '{user_id}'.") from None


def _tenant_clause(pgid, column="pgid") -> str:
    return f" WHERE {column} = :pgid" if pgid is not None else ""


# ── Offices ──────────────────────────────────────────────────────────

def list_offices(engine, pgid: Optional[str] = None) -> List[Office]:
    """All offices of a tenant (every tenant when *pgid* is None)."""
    sql = text(
        "SELECT office_id, office_oid, office_name, is_active, pgid, time_zone FROM offices"
        + _tenant_clause(pgid)
        + " ORDER BY office_id"
    )
    params = {"pgid": normalize_pgid(pgid)} if pgid is not None else {}
    with engine.connect() as conn:
        rows = conn.execute(sql, params).mappings().all()
    offices = [office_from_row(r) for r in rows]
    check_office_directory(offices)
    return offices


def list_office_groups(engine, pgid: Optional[str] = None) -> Dict[str, OfficeGroup]:
    sql = text("SELECT group_id, group_name FROM office_groups" + _tenant_clause(pgid))
    params = {"pgid": normalize_pgid(pgid)} if pgid is not None else {}
    members = text("SELECT office_id FROM office_group_members WHERE group_id = :g")
    groups = {}
    with engine.connect() as conn:
        for row in conn.execute(sql, params).mappings().all():
            office_ids = conn.execute(members, {"g": row["group_id"]}).scalars().all()
            group = office_group_from_row(row, office_ids)
            groups[group.group_id] = group
    return groups


def get_office_group(engine, group_id: str) -> Optional[OfficeGroup]:
    sql = text("SELECT group_id, group_name FROM office_groups WHERE group_id = :g")
    members = text("SELECT office_id FROM office_group_members WHERE group_id = :g")
    with engine.connect() as conn:
        row = conn.execute(sql, {"g": group_id}).mappings().first()
        if not row:
            return None
        office_ids = conn.execute(members, {"g": group_id}).scalars().all()
    return office_group_from_row(row, office_ids)


# ── Security group capabilities ──────────────────────────────────────

def get_group_capabilities(engine, group_code: str) -> FrozenSet[str]:
    sql = text("SELECT capability FROM security_group_capabilities WHERE group_code = :c")
    with engine.connect() as conn:
        return frozenset(conn.execute(sql, {"c": group_code}).scalars().all())


def load_capability_table(engine) -> Dict[str, FrozenSet[str]]:
    sql = text("SELECT group_code, capability FROM security_group_capabilities")
    table: Dict[str, set] = {}
    with engine.connect() as conn:
        for code, capability in conn.execute(sql):
            table.setdefault(code, set()).add(capability)
    return {code: frozenset(caps) for code, caps in table.items()}


# ── Users: read ──────────────────────────────────────────────────────

_USER_COLUMNS = (
    "user_id, pgid, username, first_name, last_name, email, phone, is_active, "
    "home_office_id, role, patient_access_level, use_24x7_access, "
    "allowed_days, allowed_from, allowed_until"
)


def _load_user(conn, row) -> User:
    uid = row["user_id"]
    office_ids = conn.execute(
        text("SELECT office_id FROM user_offices WHERE user_id = :u"), {"u": uid}
    ).scalars().all()
    groups = conn.execute(
        text("SELECT group_code FROM user_security_groups WHERE user_id = :u ORDER BY position"),
        {"u": uid},
    ).scalars().all()
    ips = conn.execute(
        text("SELECT ip_address FROM user_permitted_ips WHERE user_id = :u ORDER BY position"),
        {"u": uid},
    ).scalars().all()
    days = row["allowed_days"]

    return user_from_payload({
        "user_id": uid,
        "pgid": row["pgid"],
        "username": row["username"],
        "first_name": row["first_name"],
        "last_name": row["last_name"],
        "email": row["email"],
        "phone": row["phone"],
        "is_active": bool(row["is_active"]),
        "home_office_id": row["home_office_id"],
        "assigned_offices": office_ids,
        "role": row["role"],
        "security_groups": groups,
        "permitted_ips": ips,
        "patient_access_level": row["patient_access_level"],
        "login_restrictions": {
            "use_24x7_access": bool(row["use_24x7_access"]),
            "allowed_days": days.split(",") if days else [],
            "allowed_from": row["allowed_from"],
            "allowed_until": row["allowed_until"],
        },
    })


def get_user(engine, user_id) -> User:
    sql = text(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = :u")
    with engine.connect() as conn:
        row = conn.execute(sql, {"u": _user_key(user_id)}).mappings().first()
        if not row:
            raise UserNotFoundError(f"Unknown user '{user_id}'.")
        return _load_user(conn, row)


def find_user(engine, username: str, pgid: Optional[str] = None) -> User:
    sql = text(
        f"SELECT {_USER_COLUMNS} FROM users WHERE username = :name"
        + (" AND pgid = :pgid" if pgid is not None else "")
    )
    params = {"name": username}
    if pgid is not None:
        params["pgid"] = normalize_pgid(pgid)
    with engine.connect() as conn:
        row = conn.execute(sql, params).mappings().first()
        if not row:
            raise UserNotFoundError(f"Unknown user '{username}'.")
        return _load_user(conn, row)


def list_users(engine, pgid: Optional[str] = None) -> List[User]:
    sql = text(f"SELECT {_USER_COLUMNS} FROM users" + _tenant_clause(pgid) + " ORDER BY user_id")
    params = {"pgid": normalize_pgid(pgid)} if pgid is not None else {}
    with engine.connect() as conn:
        rows = conn.execute(sql, params).mappings().all()
        return [_load_user(conn, r) for r in rows]


# ── Users: write ─────────────────────────────────────────────────────

def _user_params(user: User) -> dict:
    restriction = user.login_restriction
    return {
        "pgid": user.pgid,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "is_active": 1 if user.active else 0,
        "home_office_id": int(user.home_office_id),
        "role": user.role,
        "patient_access_level": user.patient_access_level.value,
        "use_24x7_access": 1 if restriction is None else 0,
        "allowed_days": None if restriction is None else ",".join(sorted(restriction.allowed_days)),
        "allowed_from": None if restriction is None else format_time(restriction.allowed_from),
        "allowed_until": None if restriction is None else format_time(restriction.allowed_until),
    }


def _replace_children(conn, user_id: int, user: User) -> None:
    for table in ("user_offices", "user_security_groups", "user_permitted_ips"):
        conn.execute(text(f"DELETE FROM {table} WHERE user_id = :u"), {"u": user_id})

    offices = [{"u": user_id, "o": int(o)} for o in sorted(user.assigned_office_ids, key=int)]
    groups = [{"u": user_id, "p": i, "c": c} for i, c in enumerate(user.security_groups)]
    ips = [{"u": user_id, "p": i, "ip": ip} for i, ip in enumerate(user.permitted_ips)]
    if offices:
        conn.execute(text("INSERT INTO user_offices (user_id, office_id) VALUES (:u, :o)"), offices)
    if groups:
        conn.execute(
            text("INSERT INTO user_security_groups (user_id, position, group_code) VALUES (:u, :p, :c)"),
            groups,
        )
    if ips:
        conn.execute(
            text("INSERT INTO user_permitted_ips (user_id, position, ip_address) VALUES (:u, :p, :ip)"),
            ips,
        )


def save_user(engine, candidate: User, offices: Optional[List[Office]] = None) -> Union[User, List[FieldError]]:
    """
    Validate and persist *candidate*.

    Returns the stored user (with its user_id) or every validation error;
    nothing is written when validation fails.
    """
    # a missing pgid is reported as required, never checked against every tenant
    if offices is None and candidate.pgid is not None:
        offices = list_offices(engine, candidate.pgid)
    result = validate_user(candidate, offices)
    if not result.is_valid:
        return result.errors

    params = _user_params(candidate)
    with engine.begin() as conn:
        if candidate.user_id is None:
            inserted = conn.execute(text(
                "INSERT INTO users (pgid, username, first_name, last_name, email, phone, is_active, "
                "home_office_id, role, patient_access_level, use_24x7_access, allowed_days, "
                "allowed_from, allowed_until) VALUES (:pgid, :username, :first_name, :last_name, "
                ":email, :phone, :is_active, :home_office_id, :role, :patient_access_level, "
                ":use_24x7_access, :allowed_days, :allowed_from, :allowed_until)"
            ), params)
            user_id = inserted.lastrowid
        else:
            user_id = _user_key(candidate.user_id)
            updated = conn.execute(text(
                "UPDATE users SET pgid = :pgid, username = :username, first_name = :first_name, "
                "last_name = :last_name, email = :email, phone = :phone, is_active = :is_active, "
                "home_office_id = :home_office_id, role = :role, "
                "patient_access_level = :patient_access_level, use_24x7_access = :use_24x7_access, "
                "allowed_days = :allowed_days, allowed_from = :allowed_from, "
                "allowed_until = :allowed_until WHERE user_id = :user_id"
            ), {**params, "user_id": user_id})
            if updated.rowcount == 0:
                raise UserNotFoundError(f"Unknown user '{candidate.user_id}'.")
        _replace_children(conn, user_id, candidate)

    print(f"[directory] Saved user {candidate.username} (user_id={user_id})")
    return replace(candidate, user_id=str(user_id))


def has_history(engine, user_id) -> bool:
    """True when the user has appointments or payments on record."""
    uid = _user_key(user_id)
    sql = text(
        "SELECT (SELECT COUNT(*) FROM appointments WHERE user_id = :u) "
        "+ (SELECT COUNT(*) FROM payments WHERE user_id = :u)"
    )
    with engine.connect() as conn:
        return bool(conn.execute(sql, {"u": uid}).scalar())


def delete_user(engine, user_id) -> None:
    """Delete a user with no transactional history; others can only be deactivated."""
    get_user(engine, user_id)
    if has_history(engine, user_id):
        raise ValueError(
            "Cannot delete user with historical data. Deactivate the user instead."
        )
    uid = _user_key(user_id)
    with engine.begin() as conn:
        for table in ("user_offices", "user_security_groups", "user_permitted_ips", "users"):
            conn.execute(text(f"DELETE FROM {table} WHERE user_id = :u"), {"u": uid})
    print(f"[directory] Deleted user_id={uid}")


def deactivate_user(engine, user_id) -> User:
    uid = _user_key(user_id)
    with engine.begin() as conn:
        updated = conn.execute(text("UPDATE users SET is_active = 0 WHERE user_id = :u"), {"u": uid})
        if updated.rowcount == 0:
            raise UserNotFoundError(f"Unknown user '{user_id}'.")
    print(f"[directory] Deactivated user_id={uid}")
    return get_user(engine, uid)
