"""
Domain dataclasses used across the access-control core.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union

from office_access.identifiers import normalize


class PatientAccessLevel(str, Enum):
    ALL = "all"
    ASSIGNED_ONLY = "assigned"


class DenyReason(str, Enum):
    ACCOUNT_INACTIVE = "account_inactive"
    IP_NOT_PERMITTED = "ip_not_permitted"
    OUTSIDE_ALLOWED_DAYS = "outside_allowed_days"
    OUTSIDE_ALLOWED_HOURS = "outside_allowed_hours"


# ── Tenant / offices ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Organization:
    """A practice group; the tenant boundary."""
    pgid: str
    pgid_name: str


@dataclass(frozen=True)
class Office:
    office_id: str
    oid: str
    name: str
    active: bool = True
    pgid: Optional[str] = None
    time_zone: Optional[str] = None


@dataclass(frozen=True)
class OfficeGroup:
    """Named set of offices used only to widen a search scope."""
    group_id: str
    name: str
    office_ids: FrozenSet[str] = frozenset()


# ── Users ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LoginRestriction:
    """Day/time window; a user without one logs in 24x7."""
    allowed_days: FrozenSet[str]
    allowed_from: time
    allowed_until: time


@dataclass(frozen=True)
class OfficeAssignment:
    """
    Home office plus assigned offices, kept consistent as one value.

    Every transition returns a new assignment and refuses to produce a
    state where the home office is not among the assigned offices.
    """
    home_office_id: str
    assigned_office_ids: FrozenSet[str]

    @classmethod
    def of(cls, home_office_id, assigned_office_ids: Iterable) -> "OfficeAssignment":
        home = normalize(home_office_id)
        assigned = frozenset(normalize(o) for o in assigned_office_ids)
        if not assigned:
            raise ValueError("At least one assigned office is required.")
        if home not in assigned:
            raise ValueError(f"Home office {home} must be one of the assigned offices.")
        return cls(home_office_id=home, assigned_office_ids=assigned)

    def with_home(self, office_id) -> "OfficeAssignment":
        return OfficeAssignment.of(office_id, self.assigned_office_ids)

    def with_added(self, office_id) -> "OfficeAssignment":
        return OfficeAssignment.of(self.home_office_id, self.assigned_office_ids | {normalize(office_id)})

    def with_removed(self, office_id, new_home=None) -> "OfficeAssignment":
        office_id = normalize(office_id)
        remaining = self.assigned_office_ids - {office_id}
        home = self.home_office_id
        if office_id == home:
            if new_home is None:
                raise ValueError(
                    f"Office {office_id} is the home office; choose a new home office before removing it."
                )
            home = new_home
        return OfficeAssignment.of(home, remaining)


@dataclass(frozen=True)
class User:
    """An operator account as the core sees it (canonical, normalized ids)."""
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    active: bool = True
    home_office_id: str = ""
    assigned_office_ids: FrozenSet[str] = frozenset()
    role: str = ""
    security_groups: Tuple[str, ...] = ()
    permitted_ips: Tuple[str, ...] = ()
    login_restriction: Optional[LoginRestriction] = None   # None = 24x7
    patient_access_level: PatientAccessLevel = PatientAccessLevel.ALL
    user_id: Optional[str] = None
    pgid: Optional[str] = None

    @property
    def assignment(self) -> OfficeAssignment:
        return OfficeAssignment.of(self.home_office_id, self.assigned_office_ids)

    def with_assignment(self, assignment: OfficeAssignment) -> "User":
        """Replace home and assigned offices together."""
        return replace(
            self,
            home_office_id=assignment.home_office_id,
            assigned_office_ids=assignment.assigned_office_ids,
        )

    @property
    def display_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"


# ── Validation ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class FieldError:
    field: str
    reason: str
    value: Optional[str] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field} {self.reason} ({self.value})"
        return f"{self.field} {self.reason}"


@dataclass
class ValidationResult:
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


# ── Permissions ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class EffectivePermissions:
    role: str
    capabilities: FrozenSet[str]

    def has(self, capability: str) -> bool:
        return capability in self.capabilities


# ── Search scope ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class CurrentOffice:
    office_id: str


@dataclass(frozen=True)
class AllOffices:
    pass


@dataclass(frozen=True)
class OfficeGroupScope:
    group_id: str


Scope = Union[CurrentOffice, AllOffices, OfficeGroupScope]


# ── Login ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LoginAttempt:
    source_ip: str
    at: datetime


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(allowed=False, reason=reason)
