"""
Login gate – decides whether a login attempt is currently permitted.

Gates run in a fixed order and the first failure is the reason returned:
account active, IP allow-list, allowed days, allowed hours.
"""

import ipaddress
from datetime import datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from office_access.config import DEFAULT_TIMEZONE, WEEKDAY_CODES
from office_access.identifiers import normalize
from office_access.models import Decision, DenyReason, LoginAttempt, User


def ip_permitted(permitted_ips: Iterable[str], source_ip: str) -> bool:
    """True when *source_ip* equals a literal entry or falls inside a CIDR entry."""
    try:
        address = ipaddress.IPv4Address(str(source_ip).strip())
    except ValueError:
        return False

    for entry in permitted_ips:
        try:
            if "/" in entry:
                if address in ipaddress.IPv4Network(entry, strict=False):
                    return True
            elif address == ipaddress.IPv4Address(entry):
                return True
        except ValueError:
            # rejected at write time; never matches here
            continue
    return False


def home_office_time_zone(user: User, offices: Iterable) -> str:
    """Time zone of the user's home office, else the configured default."""
    home = normalize(user.home_office_id)
    for office in offices:
        if normalize(office.office_id) == home and office.time_zone:
            return office.time_zone
    return DEFAULT_TIMEZONE


def local_time(at: datetime, tz_name: str) -> datetime:
    """Express *at* in *tz_name*; naive timestamps are taken as already local."""
    if at.tzinfo is None:
        return at
    return at.astimezone(ZoneInfo(tz_name))


def authorize(user: User, attempt: LoginAttempt, tz_name: Optional[str] = None) -> Decision:
    """Allow or deny *attempt* for *user*."""
    if not user.active:
        return Decision.deny(DenyReason.ACCOUNT_INACTIVE)

    if not user.permitted_ips:
        pass  # empty allow-list: login permitted from all locations
    elif not ip_permitted(user.permitted_ips, attempt.source_ip):
        return Decision.deny(DenyReason.IP_NOT_PERMITTED)

    restriction = user.login_restriction
    if restriction is None:
        return Decision.allow()

    when = local_time(attempt.at, tz_name or DEFAULT_TIMEZONE)
    if WEEKDAY_CODES[when.weekday()] not in restriction.allowed_days:
        return Decision.deny(DenyReason.OUTSIDE_ALLOWED_DAYS)

    # half-open: allowed_until itself is outside the window
    now = when.time()
    if not (restriction.allowed_from <= now < restriction.allowed_until):
        return Decision.deny(DenyReason.OUTSIDE_ALLOWED_HOURS)

    return Decision.allow()
