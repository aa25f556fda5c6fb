"""
Administrator user-directory search: scope, tenant, office and text filters.
"""

from typing import Iterable, List, Optional

from office_access.identifiers import normalize, normalize_pgid
from office_access.models import User

ALL = "all"


def _matches(user: User, scope: str, current_office: Optional[str], pgid: str, office: str, needle: str) -> bool:
    # "home" scope ignores the tenant and office filters
    if scope == "home":
        return current_office is not None and normalize(user.home_office_id) == normalize(current_office)

    if pgid != ALL and normalize_pgid(user.pgid or "") != normalize_pgid(pgid):
        return False

    if office != ALL and normalize(office) not in {normalize(o) for o in user.assigned_office_ids}:
        return False

    if needle:
        return any(needle in (value or "").lower() for value in (user.first_name, user.last_name, user.username))
    return True


def filter_users(
    users: Iterable[User],
    scope: str = ALL,
    current_office: Optional[str] = None,
    pgid: str = ALL,
    office: str = ALL,
    text: str = "",
    sort_by: str = "name",
) -> List[User]:
    """
    Filter and sort users for the setup screen.

    scope "home" keeps users whose home office is *current_office*;
    sort_by "name" orders by "Last, First", anything else by username.
    """
    needle = (text or "").strip().lower()
    found = [u for u in users if _matches(u, scope, current_office, pgid or ALL, office or ALL, needle)]
    if sort_by == "name":
        return sorted(found, key=lambda u: u.display_name.lower())
    return sorted(found, key=lambda u: u.username.lower())
