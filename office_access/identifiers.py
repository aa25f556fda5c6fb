"""
Office / user / tenant identifier normalisation and office name lookup.
"""

from typing import Iterable

from office_access.config import OFFICE_PREFIX, PGID_PREFIX, UNKNOWN_OFFICE_NAME, USER_PREFIX


def _strip_prefix(raw, prefix: str) -> str:
    value = str(raw)
    while value.startswith(prefix):
        value = value[len(prefix):]
    return value


def normalize(raw) -> str:
    """Canonical office id: "O-123" and "123" both become "123"."""
    return _strip_prefix(raw, OFFICE_PREFIX)


def normalize_user_id(raw) -> str:
    return _strip_prefix(raw, USER_PREFIX)


def normalize_pgid(raw) -> str:
    return _strip_prefix(raw, PGID_PREFIX)


def format_oid(office_id) -> str:
    """Display form of an office id ("O-<id>")."""
    return f"{OFFICE_PREFIX}{normalize(office_id)}"


def resolve_name(office_id, offices: Iterable) -> str:
    """
    Look up an office's display name.

    Tries an exact office_id match first, then a match on the normalised
    oid. Misses return UNKNOWN_OFFICE_NAME; this is display data and must
    never fail the caller.
    """
    offices = list(offices)
    raw = str(office_id)
    for office in offices:
        if str(office.office_id) == raw:
            return office.name
    wanted = normalize(raw)
    for office in offices:
        if normalize(office.oid) == wanted:
            return office.name
    return UNKNOWN_OFFICE_NAME


def check_office_directory(offices: Iterable) -> None:
    """Raise ValueError unless office ids are unique and every oid maps back to its id."""
    seen = set()
    for office in offices:
        office_id = str(office.office_id)
        if office_id in seen:
            raise ValueError(f"Duplicate office_id {office_id} in office directory.")
        seen.add(office_id)
        if normalize(office.oid) != office_id:
            raise ValueError(
                f"Office oid '{office.oid}' does not normalise to office_id {office_id}."
            )
