"""
Office scope resolution – which offices a search request may query.

An empty result means "no authorised offices"; callers must return zero
rows rather than treat it as a failure.
"""

from typing import FrozenSet, Iterable, Mapping, Optional

from office_access.identifiers import normalize
from office_access.models import (
    AllOffices,
    CurrentOffice,
    OfficeGroup,
    OfficeGroupScope,
    PatientAccessLevel,
    Scope,
    User,
)

SCOPE_KINDS = ("current", "all", "group")


def parse_scope(kind: str, value: Optional[str] = None) -> Scope:
    """Build a Scope from its request form ("current" + office id, "all", "group" + group id)."""
    kind = (kind or "").strip().lower()
    if kind == "all":
        return AllOffices()
    if kind == "current":
        if not value:
            raise ValueError("Scope 'current' requires an office id.")
        return CurrentOffice(normalize(value))
    if kind == "group":
        if not value:
            raise ValueError("Scope 'group' requires a group id.")
        return OfficeGroupScope(str(value))
    raise ValueError(f"Unknown scope '{kind}' (expected one of {', '.join(SCOPE_KINDS)}).")


def _same_tenant(user: User, office) -> bool:
    return office.pgid is None or office.pgid == user.pgid


def accessible_offices(user: User, offices: Iterable) -> FrozenSet[str]:
    """Every office the user's patient access level allows."""
    if user.patient_access_level == PatientAccessLevel.ALL:
        return frozenset(
            normalize(o.office_id) for o in offices
            if o.active and _same_tenant(user, o)
        )
    return frozenset(normalize(o) for o in user.assigned_office_ids)


def resolve_scope(
    user: User,
    scope: Scope,
    offices: Iterable,
    office_groups: Optional[Mapping[str, OfficeGroup]] = None,
) -> FrozenSet[str]:
    """Concrete office ids *scope* resolves to for *user*."""
    if isinstance(scope, CurrentOffice):
        office_id = normalize(scope.office_id)
        if user.patient_access_level == PatientAccessLevel.ALL:
            return frozenset({office_id})
        if office_id in {normalize(o) for o in user.assigned_office_ids}:
            return frozenset({office_id})
        return frozenset()

    if isinstance(scope, AllOffices):
        return accessible_offices(user, offices)

    if isinstance(scope, OfficeGroupScope):
        group = (office_groups or {}).get(scope.group_id)
        if group is None:
            return frozenset()
        members = {normalize(o) for o in group.office_ids}
        return accessible_offices(user, offices) & members

    raise ValueError(f"Unsupported scope: {scope!r}")
