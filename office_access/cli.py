"""
Interactive administrator console for the office access directory.
Inspect access reports, check login attempts and resolve search scopes.
"""

from datetime import datetime, timezone

from office_access.config import MAX_REPORT_ROWS
from office_access.database import init_engine
from office_access.directory import (
    UserNotFoundError,
    find_user,
    list_office_groups,
    list_offices,
    list_users,
    load_capability_table,
)
from office_access.identifiers import resolve_name
from office_access.login_gate import authorize, home_office_time_zone
from office_access.models import LoginAttempt
from office_access.permissions import capability_lookup, resolve_permissions
from office_access.reporting import build_access_report, summarize_report
from office_access.scope import parse_scope, resolve_scope

HELP = """Commands:
  report                                  access report for the tenant
  check <username> <ip> [iso-timestamp]   evaluate a login attempt
  scope <username> <current:ID|all|group:ID>
  perms <username>                        effective permissions
  quit"""


def run_command(engine, pgid, line: str) -> str:
    """Execute one console command and return the text to print."""
    parts = line.split()
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "report":
        df = build_access_report(list_users(engine, pgid), list_offices(engine, pgid))
        if df.empty:
            return "(no users)"
        summary = ", ".join(f"{k}={v}" for k, v in summarize_report(df).items())
        return df.head(MAX_REPORT_ROWS).to_string(index=False) + f"\n\n[summary] {summary}"

    if cmd == "check":
        if len(args) < 2:
            return "Usage: check <username> <ip> [iso-timestamp]"
        user = find_user(engine, args[0], pgid)
        at = datetime.fromisoformat(args[2]) if len(args) > 2 else datetime.now(timezone.utc)
        tz_name = home_office_time_zone(user, list_offices(engine, user.pgid))
        decision = authorize(user, LoginAttempt(source_ip=args[1], at=at), tz_name)
        if decision.allowed:
            return f"ALLOW ({tz_name})"
        return f"DENY: {decision.reason.value} ({tz_name})"

    if cmd == "scope":
        if len(args) != 2:
            return "Usage: scope <username> <current:ID|all|group:ID>"
        user = find_user(engine, args[0], pgid)
        kind, _, value = args[1].partition(":")
        offices = list_offices(engine, user.pgid)
        office_ids = resolve_scope(user, parse_scope(kind, value or None), offices, list_office_groups(engine, user.pgid))
        if not office_ids:
            return "(no authorized offices)"
        return "\n".join(f"  {o}  {resolve_name(o, offices)}" for o in sorted(office_ids))

    if cmd == "perms":
        if len(args) != 1:
            return "Usage: perms <username>"
        user = find_user(engine, args[0], pgid)
        perms = resolve_permissions(user.role, user.security_groups, capability_lookup(load_capability_table(engine)))
        caps = ", ".join(sorted(perms.capabilities)) or "(none)"
        return f"role={perms.role}\ngroups={', '.join(user.security_groups) or '(none)'}\ncapabilities={caps}"

    return HELP


def main():
    print("=== Office Access Console ===\n")

    engine = init_engine()

    try:
        pgid = input("Practice group (PGID, blank for all): ").strip() or None
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    print(HELP)

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break

        try:
            print(run_command(engine, pgid, line))
        except UserNotFoundError as e:
            print(f"[ERROR] {e}")
        except ValueError as e:
            print("\n[ERROR] Invalid command input.")
            print("Details:", e)


if __name__ == "__main__":
    main()
