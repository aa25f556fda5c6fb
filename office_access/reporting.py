"""
Access report – one row per user summarising what they can reach and when.
"""

from typing import Dict, Iterable, List

import pandas as pd

from office_access.config import WEEKDAY_CODES
from office_access.identifiers import resolve_name
from office_access.models import AllOffices, User
from office_access.payloads import format_time
from office_access.scope import resolve_scope

REPORT_COLUMNS = [
    "username", "name", "active", "role", "home_office", "assigned_offices",
    "office_scope", "ip_restricted", "login_window",
]


def login_window(user: User) -> str:
    restriction = user.login_restriction
    if restriction is None:
        return "24x7"
    days = ",".join(d for d in WEEKDAY_CODES if d in restriction.allowed_days) or "(no days)"
    return f"{days} {format_time(restriction.allowed_from)}-{format_time(restriction.allowed_until)}"


def build_access_report(users: Iterable[User], offices: Iterable) -> pd.DataFrame:
    """Build the per-user access DataFrame (columns: REPORT_COLUMNS)."""
    offices = list(offices)
    rows: List[Dict] = []
    for user in users:
        assigned = sorted(resolve_name(o, offices) for o in user.assigned_office_ids)
        rows.append({
            "username": user.username,
            "name": user.display_name,
            "active": user.active,
            "role": user.role,
            "home_office": resolve_name(user.home_office_id, offices),
            "assigned_offices": ", ".join(assigned),
            "office_scope": len(resolve_scope(user, AllOffices(), offices)),
            "ip_restricted": bool(user.permitted_ips),
            "login_window": login_window(user),
        })
    df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    return df.sort_values("username", kind="stable").reset_index(drop=True)


def summarize_report(df: pd.DataFrame) -> Dict[str, int]:
    """Headline counts for the report."""
    if df.empty:
        return {"users": 0, "active": 0, "inactive": 0, "ip_restricted": 0, "time_restricted": 0}
    active = int(df["active"].sum())
    return {
        "users": int(len(df)),
        "active": active,
        "inactive": int(len(df)) - active,
        "ip_restricted": int(df["ip_restricted"].sum()),
        "time_restricted": int((df["login_window"] != "24x7").sum()),
    }
