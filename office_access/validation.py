"""
Access assignment validation – structural checks on a user record.

Every rule runs on every call so an editor can highlight all invalid
fields at once. Nothing here corrects a value; problems come back as
FieldError entries.
"""

import ipaddress
import re
from dataclasses import replace
from typing import Iterable, List, Optional

from office_access.identifiers import normalize
from office_access.models import FieldError, User, ValidationResult

# 4 dot-separated groups of 1-3 digits, optional /prefix
IPV4_ENTRY = re.compile(r"^(\d{1,3}\.){3}\d{1,3}(/\d{1,2})?$")

REQUIRED_FIELDS = ("pgid", "username", "first_name", "last_name", "email", "home_office_id", "role")


def is_valid_ip_entry(entry: str) -> bool:
    """True for an IPv4 literal or CIDR block, e.g. "10.0.0.5" or "192.168.1.0/24"."""
    if not isinstance(entry, str) or not IPV4_ENTRY.match(entry):
        return False
    try:
        ipaddress.IPv4Network(entry, strict=False)
    except ValueError:
        return False
    return True


# ── Rules ────────────────────────────────────────────────────────────

def _check_required(user: User) -> List[FieldError]:
    errors = []
    for name in REQUIRED_FIELDS:
        value = getattr(user, name)
        if value is None or not str(value).strip():
            errors.append(FieldError(name, "required"))
    return errors


def _check_offices(user: User, offices: Optional[Iterable]) -> List[FieldError]:
    errors = []
    assigned = {normalize(o) for o in user.assigned_office_ids}
    if not assigned:
        errors.append(FieldError("assigned_office_ids", "required"))

    home = str(user.home_office_id or "").strip()
    if home and assigned and normalize(home) not in assigned:
        errors.append(FieldError("home_office_id", "home_not_assigned", home))

    if offices is not None:
        known = {normalize(o.office_id): o for o in offices}
        for office_id in sorted(assigned):
            office = known.get(office_id)
            if office is None:
                errors.append(FieldError("assigned_office_ids", "unknown_office", office_id))
            elif office.pgid is not None and office.pgid != user.pgid:
                errors.append(FieldError("assigned_office_ids", "cross_tenant", office_id))
    return errors


def _check_permitted_ips(user: User) -> List[FieldError]:
    return [
        FieldError("permitted_ips", "invalid_ip", entry)
        for entry in user.permitted_ips
        if not is_valid_ip_entry(entry)
    ]


def _check_security_groups(user: User) -> List[FieldError]:
    errors = []
    seen = set()
    for code in user.security_groups:
        if code in seen:
            errors.append(FieldError("security_groups", "duplicate_group", code))
        seen.add(code)
    return errors


def _check_login_restriction(user: User) -> List[FieldError]:
    restriction = user.login_restriction
    if restriction is None:
        return []
    errors = []
    if not restriction.allowed_days:
        errors.append(FieldError("login_restriction.allowed_days", "required"))
    if restriction.allowed_from >= restriction.allowed_until:
        errors.append(FieldError(
            "login_restriction.allowed_until", "before_start",
            restriction.allowed_until.strftime("%H:%M"),
        ))
    return errors


def validate_user(candidate: User, offices: Optional[Iterable] = None) -> ValidationResult:
    """
    Validate a proposed user record.

    When *offices* (the tenant's office directory) is given, assigned
    offices must also exist in it and belong to the user's practice group.
    """
    if offices is not None:
        offices = list(offices)
    errors: List[FieldError] = []
    errors += _check_required(candidate)
    errors += _check_offices(candidate, offices)
    errors += _check_permitted_ips(candidate)
    errors += _check_security_groups(candidate)
    errors += _check_login_restriction(candidate)
    return ValidationResult(errors)


# ── Editing helpers ──────────────────────────────────────────────────

def add_permitted_ip(user: User, entry: str) -> User:
    """Append an IP/CIDR entry, rejecting malformed ones at the point of addition."""
    entry = (entry or "").strip()
    if not is_valid_ip_entry(entry):
        raise ValueError(f"Invalid IP address '{entry}' (expected e.g. 192.168.1.1 or 192.168.1.0/24).")
    if entry in user.permitted_ips:
        return user
    return replace(user, permitted_ips=user.permitted_ips + (entry,))


def remove_permitted_ip(user: User, entry: str) -> User:
    return replace(user, permitted_ips=tuple(ip for ip in user.permitted_ips if ip != entry))


def add_security_group(user: User, code: str) -> User:
    if code in user.security_groups:
        return user
    return replace(user, security_groups=user.security_groups + (code,))


def remove_security_group(user: User, code: str) -> User:
    return replace(user, security_groups=tuple(g for g in user.security_groups if g != code))
