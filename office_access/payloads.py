"""
Deserialisation boundary – raw API / database payloads to canonical records.

Payloads may use snake_case or camelCase keys; nothing past this module
looks at raw shapes.
"""

from datetime import time
from typing import Any, Dict, Iterable, Mapping, Optional

from office_access.config import (
    DEFAULT_ALLOWED_DAYS,
    DEFAULT_ALLOWED_FROM,
    DEFAULT_ALLOWED_UNTIL,
    WEEKDAY_CODES,
)
from office_access.identifiers import format_oid, normalize, normalize_pgid, normalize_user_id
from office_access.models import LoginRestriction, Office, OfficeGroup, PatientAccessLevel, User

_ACCESS_LEVELS = {
    "all": PatientAccessLevel.ALL,
    "assigned": PatientAccessLevel.ASSIGNED_ONLY,
    "assigned_only": PatientAccessLevel.ASSIGNED_ONLY,
    "assignedonly": PatientAccessLevel.ASSIGNED_ONLY,
}


def _pick(data: Mapping, *keys, default=None):
    """First key present (and not None) in *data*."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def parse_time(value) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid time '{value}' (expected HH:MM).") from None


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def parse_access_level(value) -> PatientAccessLevel:
    if isinstance(value, PatientAccessLevel):
        return value
    key = _text(value).lower().replace("-", "_")
    if key not in _ACCESS_LEVELS:
        raise ValueError(f"Unknown patient access level '{value}'.")
    return _ACCESS_LEVELS[key]


def parse_days(days: Iterable[str]) -> frozenset:
    parsed = set()
    for day in days:
        code = _text(day)[:3].title()
        if code not in WEEKDAY_CODES:
            raise ValueError(f"Unknown weekday '{day}'.")
        parsed.add(code)
    return frozenset(parsed)


def parse_login_restriction(data: Optional[Mapping]) -> Optional[LoginRestriction]:
    """None means 24x7 access."""
    if not data:
        return None
    if _pick(data, "use_24x7_access", "use24x7Access", default=True):
        return None
    return LoginRestriction(
        allowed_days=parse_days(_pick(data, "allowed_days", "allowedDays", default=DEFAULT_ALLOWED_DAYS)),
        allowed_from=parse_time(_pick(data, "allowed_from", "allowedFrom", default=DEFAULT_ALLOWED_FROM)),
        allowed_until=parse_time(_pick(data, "allowed_until", "allowedUntil", default=DEFAULT_ALLOWED_UNTIL)),
    )


def _ip_entries(raw) -> tuple:
    entries = []
    for item in raw or ():
        if isinstance(item, Mapping):
            item = _pick(item, "ip_address", "ipAddress", "ip", default="")
        entries.append(_text(item))
    return tuple(entries)


def _role(data: Mapping) -> str:
    role = _pick(data, "role")
    if role is None:
        roles = _pick(data, "roles", default=[])
        role = roles[0] if roles else ""
    return _text(role)


def user_from_payload(data: Mapping[str, Any]) -> User:
    """Build the canonical User from an API or database payload."""
    user_id = _pick(data, "user_id", "userId", "id")
    pgid = _pick(data, "pgid")
    home = _pick(data, "home_office_id", "homeOfficeId", "homeOffice")
    assigned = _pick(
        data, "assigned_offices", "assigned_office_ids", "assignedOffices",
        "assignedOfficeIds", "assignedOfficeOIDs", default=[],
    )
    groups = _pick(data, "security_groups", "securityGroups", default=[])

    return User(
        user_id=normalize_user_id(user_id) if user_id is not None else None,
        pgid=normalize_pgid(pgid) if pgid is not None else None,
        username=_text(_pick(data, "username", "userName")),
        first_name=_text(_pick(data, "first_name", "firstName")),
        last_name=_text(_pick(data, "last_name", "lastName")),
        email=_text(_pick(data, "email")),
        phone=_text(_pick(data, "phone")) or None,
        active=bool(_pick(data, "is_active", "isActive", "active", default=True)),
        home_office_id=normalize(home) if _text(home) else "",
        assigned_office_ids=frozenset(normalize(o) for o in assigned if _text(o)),
        role=_role(data),
        security_groups=tuple(_text(g) for g in groups if _text(g)),
        permitted_ips=_ip_entries(_pick(data, "permitted_ips", "permittedIPs", "permittedIps")),
        login_restriction=parse_login_restriction(_pick(data, "login_restrictions", "loginRestrictions")),
        patient_access_level=parse_access_level(
            _pick(data, "patient_access_level", "patientAccessLevel", default="all")
        ),
    )


def user_to_payload(user: User) -> Dict[str, Any]:
    restriction = user.login_restriction
    return {
        "user_id": user.user_id,
        "pgid": user.pgid,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "is_active": user.active,
        "home_office_id": user.home_office_id,
        "assigned_offices": sorted(user.assigned_office_ids, key=_office_sort_key),
        "role": user.role,
        "security_groups": list(user.security_groups),
        "permitted_ips": list(user.permitted_ips),
        "patient_access_level": user.patient_access_level.value,
        "login_restrictions": {
            "use_24x7_access": restriction is None,
            "allowed_days": None if restriction is None else [
                d for d in WEEKDAY_CODES if d in restriction.allowed_days
            ],
            "allowed_from": None if restriction is None else format_time(restriction.allowed_from),
            "allowed_until": None if restriction is None else format_time(restriction.allowed_until),
        },
    }


def _office_sort_key(office_id: str):
    return (0, int(office_id), "") if office_id.isdigit() else (1, 0, office_id)


def office_from_row(row: Mapping[str, Any]) -> Office:
    office_id = normalize(_pick(row, "office_id", "officeId", "id"))
    return Office(
        office_id=office_id,
        oid=_text(_pick(row, "office_oid", "oid", "officeOid")) or format_oid(office_id),
        name=_text(_pick(row, "office_name", "name", "officeName")),
        active=bool(_pick(row, "is_active", "isActive", "active", default=True)),
        pgid=normalize_pgid(row["pgid"]) if row.get("pgid") is not None else None,
        time_zone=_pick(row, "time_zone", "timeZone"),
    )


def office_group_from_row(row: Mapping[str, Any], office_ids: Iterable) -> OfficeGroup:
    return OfficeGroup(
        group_id=_text(_pick(row, "group_id", "groupId", "id")),
        name=_text(_pick(row, "group_name", "groupName", "name")),
        office_ids=frozenset(normalize(o) for o in office_ids),
    )
