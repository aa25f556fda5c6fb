"""
Flask route handlers for the REST API.
"""

import sys
import traceback
from dataclasses import replace
from datetime import datetime, timezone

from flask import jsonify, request
from sqlalchemy import text as sa_text

from office_access.config import MAX_REPORT_ROWS
from office_access.directory import (
    UserNotFoundError,
    deactivate_user,
    delete_user,
    get_user,
    list_office_groups,
    list_offices,
    list_users,
    load_capability_table,
    save_user,
)
from office_access.login_gate import authorize, home_office_time_zone
from office_access.models import LoginAttempt
from office_access.payloads import user_from_payload, user_to_payload
from office_access.permissions import capability_lookup, resolve_permissions
from office_access.reporting import build_access_report, summarize_report
from office_access.scope import parse_scope, resolve_scope
from office_access.user_search import filter_users
from office_access.validation import validate_user
from office_access.api.auth import api_key_required


def parse_timestamp(value) -> datetime:
    """ISO-8601 timestamp from a request body; missing means now (UTC)."""
    if not value:
        return datetime.now(timezone.utc)
    value = str(value).strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid timestamp '{value}' (expected ISO-8601).") from None


def _errors_json(errors):
    return [{"field": e.field, "reason": e.reason, "value": e.value} for e in errors]


def register_routes(app, engine):
    """Register all API routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Office Access Decision Service",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "authorize": "/api/login/authorize",
                "scope": "/api/scope/resolve",
                "users": "/api/users",
                "report": "/api/report",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False}
        try:
            with engine.connect() as conn:
                conn.execute(sa_text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check failed: {e}", file=sys.stderr)

        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }), 200 if all_healthy else 503

    # ── Login gate ───────────────────────────────────────────────────

    @app.route("/api/login/authorize", methods=["POST"])
    @api_key_required
    def authorize_login():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.json
        user_id = data.get("user_id")
        source_ip = str(data.get("source_ip", "")).strip()
        if not user_id or not source_ip:
            return jsonify({"error": "user_id and source_ip are required"}), 400

        try:
            attempt = LoginAttempt(source_ip=source_ip, at=parse_timestamp(data.get("at")))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        # The specific reason is logged, never returned.
        try:
            user = get_user(engine, user_id)
        except UserNotFoundError:
            print(f"[auth] Login denied: unknown user_id={user_id} ip={source_ip}", file=sys.stderr)
            return jsonify({"allowed": False, "error": "Access denied"}), 403

        tz_name = home_office_time_zone(user, list_offices(engine, user.pgid))
        decision = authorize(user, attempt, tz_name)
        if not decision.allowed:
            print(
                f"[auth] Login denied: user={user.username} ip={source_ip} "
                f"reason={decision.reason.value}",
                file=sys.stderr,
            )
            return jsonify({"allowed": False, "error": "Access denied"}), 403

        print(f"[auth] Login allowed: user={user.username} ip={source_ip}")
        return jsonify({"allowed": True}), 200

    # ── Scope / permissions ──────────────────────────────────────────

    @app.route("/api/scope/resolve", methods=["POST"])
    @api_key_required
    def resolve_office_scope():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.json
        try:
            user = get_user(engine, data.get("user_id"))
            kind = data.get("scope", "")
            scope = parse_scope(kind, data.get("group_id") if kind == "group" else data.get("office_id"))
        except UserNotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        office_ids = resolve_scope(
            user, scope, list_offices(engine, user.pgid), list_office_groups(engine, user.pgid)
        )
        return jsonify({
            "success": True,
            "user_id": user.user_id,
            "office_ids": sorted(office_ids, key=lambda o: (len(o), o)),
            "authorized": bool(office_ids),
        }), 200

    @app.route("/api/users/<user_id>/permissions", methods=["GET"])
    @api_key_required
    def get_permissions(user_id):
        try:
            user = get_user(engine, user_id)
        except UserNotFoundError as e:
            return jsonify({"error": str(e)}), 404

        perms = resolve_permissions(
            user.role, user.security_groups, capability_lookup(load_capability_table(engine))
        )
        return jsonify({
            "success": True,
            "user_id": user.user_id,
            "role": perms.role,
            "security_groups": list(user.security_groups),
            "capabilities": sorted(perms.capabilities),
        }), 200

    # ── Users ────────────────────────────────────────────────────────

    @app.route("/api/users/validate", methods=["POST"])
    @api_key_required
    def validate_candidate():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400
        try:
            candidate = user_from_payload(request.json)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        result = validate_user(candidate, list_offices(engine, candidate.pgid))
        return jsonify({"valid": result.is_valid, "errors": _errors_json(result.errors)}), 200

    def _save(candidate, created_status):
        try:
            saved = save_user(engine, candidate)
        except UserNotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except Exception as e:
            print(f"[ERROR] Saving user failed: {e}", file=sys.stderr)
            traceback.print_exc()
            return jsonify({"error": "Internal server error while saving user"}), 500

        if isinstance(saved, list):
            return jsonify({"success": False, "errors": _errors_json(saved)}), 422
        return jsonify({"success": True, "user": user_to_payload(saved)}), created_status

    @app.route("/api/users", methods=["POST"])
    @api_key_required
    def create_user():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400
        try:
            candidate = user_from_payload(request.json)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return _save(replace(candidate, user_id=None), 201)

    @app.route("/api/users/<user_id>", methods=["PUT"])
    @api_key_required
    def update_user(user_id):
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400
        try:
            candidate = user_from_payload({**request.json, "user_id": user_id})
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return _save(candidate, 200)

    @app.route("/api/users/<user_id>", methods=["DELETE"])
    @api_key_required
    def remove_user(user_id):
        try:
            delete_user(engine, user_id)
        except UserNotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 409
        return jsonify({"success": True, "message": "User deleted"}), 200

    @app.route("/api/users/<user_id>/deactivate", methods=["POST"])
    @api_key_required
    def deactivate(user_id):
        try:
            user = deactivate_user(engine, user_id)
        except UserNotFoundError as e:
            return jsonify({"error": str(e)}), 404
        return jsonify({"success": True, "user": user_to_payload(user)}), 200

    @app.route("/api/users", methods=["GET"])
    @api_key_required
    def search_users():
        args = request.args
        users = filter_users(
            list_users(engine),
            scope=args.get("scope", "all"),
            current_office=args.get("current_office"),
            pgid=args.get("pgid", "all"),
            office=args.get("office", "all"),
            text=args.get("q", ""),
            sort_by=args.get("sort", "name"),
        )
        return jsonify({
            "success": True,
            "count": len(users),
            "users": [user_to_payload(u) for u in users],
        }), 200

    # ── Report ───────────────────────────────────────────────────────

    @app.route("/api/report", methods=["GET"])
    @api_key_required
    def access_report():
        pgid = request.args.get("pgid")
        df = build_access_report(list_users(engine, pgid), list_offices(engine, pgid))
        return jsonify({
            "success": True,
            "summary": summarize_report(df),
            "rows": df.head(MAX_REPORT_ROWS).to_dict(orient="records"),
            "truncated": len(df) > MAX_REPORT_ROWS,
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({"error": "Internal server error", "message": str(e)}), 500
