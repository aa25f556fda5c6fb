"""
Tests for the Flask decision-service endpoints.
"""

import pytest

from office_access.api.app import create_app

API_KEY = "test-admin-key"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def client(engine):
    app = create_app(engine=engine, admin_api_key=API_KEY)
    app.config["TESTING"] = True
    return app.test_client()


# ── Health / auth guard ──────────────────────────────────────────────

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"] is True


def test_api_key_is_required(client):
    assert client.get("/api/users").status_code == 401
    assert client.get("/api/users", headers={"X-API-Key": "wrong"}).status_code == 401


# ── Login gate ───────────────────────────────────────────────────────

def test_authorize_allows_unrestricted_user(client):
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 1, "source_ip": "8.8.8.8", "at": "2026-10-24T03:00:00Z"})
    assert resp.status_code == 200
    assert resp.get_json() == {"allowed": True}


def test_denial_does_not_leak_the_reason(client, capsys):
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 2, "source_ip": "10.0.0.5", "at": "2026-10-19T14:00:00Z"})
    assert resp.status_code == 403
    body = resp.get_json()
    assert body == {"allowed": False, "error": "Access denied"}
    assert "reason=ip_not_permitted" in capsys.readouterr().err


def test_authorize_uses_home_office_time_zone(client, capsys):
    # 21:30 UTC Monday is 17:30 in New York: inside bob's 08:00-18:00 window
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 2, "source_ip": "192.168.1.20", "at": "2026-10-19T21:30:00Z"})
    assert resp.status_code == 200

    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 2, "source_ip": "192.168.1.20", "at": "2026-10-19T22:00:00Z"})
    assert resp.status_code == 403
    assert "reason=outside_allowed_hours" in capsys.readouterr().err


def test_authorize_unknown_user_and_bad_input(client):
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 404, "source_ip": "10.0.0.5"})
    assert resp.status_code == 403
    assert client.post("/api/login/authorize", headers=HEADERS, json={"user_id": 1}).status_code == 400
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 1, "source_ip": "10.0.0.5", "at": "yesterday"})
    assert resp.status_code == 400


def test_inactive_user_is_denied(client):
    assert client.post("/api/users/1/deactivate", headers=HEADERS).status_code == 200
    resp = client.post("/api/login/authorize", headers=HEADERS,
                       json={"user_id": 1, "source_ip": "10.0.0.5"})
    assert resp.status_code == 403


# ── Scope / permissions ──────────────────────────────────────────────

def test_resolve_scope(client):
    resp = client.post("/api/scope/resolve", headers=HEADERS, json={"user_id": 1, "scope": "all"})
    assert resp.get_json()["office_ids"] == ["5", "6"]

    resp = client.post("/api/scope/resolve", headers=HEADERS,
                       json={"user_id": 2, "scope": "current", "office_id": "O-5"})
    body = resp.get_json()
    assert body["office_ids"] == []
    assert body["authorized"] is False

    resp = client.post("/api/scope/resolve", headers=HEADERS,
                       json={"user_id": 1, "scope": "group", "group_id": "north"})
    assert resp.get_json()["office_ids"] == ["6"]


def test_resolve_scope_errors(client):
    resp = client.post("/api/scope/resolve", headers=HEADERS, json={"user_id": 1, "scope": "galaxy"})
    assert resp.status_code == 400
    resp = client.post("/api/scope/resolve", headers=HEADERS, json={"user_id": 404, "scope": "all"})
    assert resp.status_code == 404


def test_permissions(client):
    resp = client.get("/api/users/2/permissions", headers=HEADERS)
    body = resp.get_json()
    assert body["role"] == "front_office"
    assert body["capabilities"] == ["ledger.view", "patient.view", "payment.post", "schedule.view"]


# ── Users ────────────────────────────────────────────────────────────

NEW_USER = {
    "pgid": "P-1",
    "username": "dana",
    "firstName": "Dana",
    "lastName": "Lee",
    "email": "dana@example.com",
    "homeOffice": "O-5",
    "assignedOffices": ["O-5"],
    "roles": ["assistant"],
    "securityGroups": ["front_desk"],
    "permittedIPs": [],
    "patientAccessLevel": "all",
}


def test_validate_endpoint_reports_all_errors(client):
    payload = {**NEW_USER, "username": "", "homeOffice": "O-6", "permittedIPs": ["1.2.3"]}
    resp = client.post("/api/users/validate", headers=HEADERS, json=payload)
    body = resp.get_json()
    assert body["valid"] is False
    assert [e["field"] for e in body["errors"]] == ["username", "home_office_id", "permitted_ips"]


def test_validate_endpoint_rejects_unparseable_payload(client):
    payload = {**NEW_USER, "patientAccessLevel": "everything"}
    assert client.post("/api/users/validate", headers=HEADERS, json=payload).status_code == 400


def test_create_and_update_user(client):
    resp = client.post("/api/users", headers=HEADERS, json=NEW_USER)
    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert user["user_id"] == "3"
    assert user["home_office_id"] == "5"

    resp = client.put(f"/api/users/{user['user_id']}", headers=HEADERS,
                      json={**NEW_USER, "assignedOffices": ["O-6"]})
    assert resp.status_code == 422
    assert resp.get_json()["errors"][0]["reason"] == "home_not_assigned"

    resp = client.put(f"/api/users/{user['user_id']}", headers=HEADERS,
                      json={**NEW_USER, "homeOffice": "6", "assignedOffices": ["6"]})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["assigned_offices"] == ["6"]


def test_user_spanning_practice_groups_is_rejected(client):
    payload = {**NEW_USER, "assignedOffices": ["O-5", "O-9"]}
    resp = client.post("/api/users/validate", headers=HEADERS, json=payload)
    assert resp.get_json()["errors"] == [
        {"field": "assigned_office_ids", "reason": "unknown_office", "value": "9"},
    ]

    resp = client.post("/api/users", headers=HEADERS, json={**payload, "pgid": None})
    assert resp.status_code == 422
    assert resp.get_json()["errors"][0] == {"field": "pgid", "reason": "required", "value": None}
    assert client.get("/api/users?q=dana", headers=HEADERS).get_json()["count"] == 0


def test_delete_user(client):
    resp = client.delete("/api/users/1", headers=HEADERS)
    assert resp.status_code == 409
    assert "deactivate" in resp.get_json()["error"].lower()
    assert client.delete("/api/users/2", headers=HEADERS).status_code == 200
    assert client.delete("/api/users/2", headers=HEADERS).status_code == 404


def test_search_users(client):
    resp = client.get("/api/users?scope=home&current_office=O-6", headers=HEADERS)
    assert [u["username"] for u in resp.get_json()["users"]] == ["bob"]

    resp = client.get("/api/users?office=O-5&sort=username", headers=HEADERS)
    assert [u["username"] for u in resp.get_json()["users"]] == ["alice"]

    resp = client.get("/api/users?q=ADA", headers=HEADERS)
    assert resp.get_json()["count"] == 1


def test_report(client):
    resp = client.get("/api/report?pgid=1", headers=HEADERS)
    body = resp.get_json()
    assert body["summary"] == {"users": 2, "active": 2, "inactive": 0, "ip_restricted": 1, "time_restricted": 1}
    assert [r["username"] for r in body["rows"]] == ["alice", "bob"]
    assert body["truncated"] is False
