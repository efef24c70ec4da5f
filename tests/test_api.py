"""
API tests through FastAPI's TestClient.

Every test gets a fresh database file: the app lifespan recreates the
tables and reseeds the user fixtures on startup.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from civictrack.main import app

from conftest import API_DB_PATH
from factories import NOW, PROOF, FrozenClock

CITIZEN = {"X-User-ID": "citizen-1"}
OTHER_CITIZEN = {"X-User-ID": "citizen-2"}
AUTHORITY = {"X-User-ID": "authority-1"}
OTHER_AUTHORITY = {"X-User-ID": "authority-2"}

BURST_PIPE = {
    "category": "water-supply",
    "description": "Burst pipe flooding the street",
    "location": {"lat": 12.9716, "lng": 77.5946, "ward": "Ward 1", "address": "MG Road"},
}


@pytest.fixture
def api_clock():
    return FrozenClock(NOW)


@pytest.fixture
def client(api_clock):
    if API_DB_PATH.exists():
        API_DB_PATH.unlink()
    with TestClient(app) as test_client:
        app.state.clock = api_clock
        yield test_client
    del app.state.clock


def file_ticket(client, payload=None, headers=CITIZEN) -> dict:
    response = client.post("/tickets", json=payload or BURST_PIPE, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"sla_policy": "loaded", "sla_scheduler": "stopped"}

    def test_root_lists_modules(self, client):
        body = client.get("/").json()
        assert set(body["modules"]) == {"tickets", "sla", "notifications"}


class TestCreateTicket:
    def test_create_ticket(self, client):
        ticket = file_ticket(client)

        assert ticket["id"].startswith("TKT")
        assert ticket["status"] == "submitted"
        assert ticket["criticality"] == "critical"
        assert ticket["author_id"] == "citizen-1"
        assert ticket["upvotes"] == 0
        assert parse(ticket["sla_deadline"]) == NOW + timedelta(hours=6)

    def test_unknown_category_is_rejected(self, client):
        response = client.post(
            "/tickets", json={**BURST_PIPE, "category": "volcano"}, headers=CITIZEN
        )
        assert response.status_code == 422

    def test_authority_cannot_file(self, client):
        response = client.post("/tickets", json=BURST_PIPE, headers=AUTHORITY)
        assert response.status_code == 403
        assert response.json()["error"] == "ForbiddenException"

    def test_unknown_caller(self, client):
        response = client.post("/tickets", json=BURST_PIPE, headers={"X-User-ID": "ghost"})
        assert response.status_code == 404
        assert response.json()["error"] == "ResourceNotFoundException"

    def test_missing_caller_header(self, client):
        response = client.post("/tickets", json=BURST_PIPE)
        assert response.status_code == 422

    def test_error_body_carries_correlation_id(self, client):
        response = client.post(
            "/tickets",
            json=BURST_PIPE,
            headers={**AUTHORITY, "X-Correlation-ID": "corr-123"},
        )
        assert response.headers["X-Correlation-ID"] == "corr-123"
        assert response.json()["correlation_id"] == "corr-123"


class TestListTickets:
    def test_citizens_cannot_list_everything(self, client):
        file_ticket(client)
        response = client.get("/tickets", headers=CITIZEN)
        assert response.status_code == 403

    def test_authority_list_with_sla(self, client, api_clock):
        file_ticket(client)
        api_clock.advance(hours=5)

        body = client.get("/tickets", headers=AUTHORITY).json()

        assert body["total"] == 1
        assert body["sort_by"] == "date"
        assert body["tickets"][0]["sla"]["status"] == "critical"

    def test_filter_by_status_and_ward(self, client):
        first = file_ticket(client)
        file_ticket(client, {**BURST_PIPE, "location": {"lat": 13.0, "lng": 77.0, "ward": "Ward 2"}},
                    headers=OTHER_CITIZEN)
        client.put(f"/tickets/{first['id']}/status", json={"status": "in-progress"}, headers=AUTHORITY)

        in_progress = client.get("/tickets", params={"status": "in-progress"}, headers=AUTHORITY).json()
        ward_two = client.get("/tickets", params={"ward": "Ward 2"}, headers=AUTHORITY).json()

        assert [t["id"] for t in in_progress["tickets"]] == [first["id"]]
        assert ward_two["total"] == 1
        assert ward_two["tickets"][0]["location"]["ward"] == "Ward 2"

    def test_sort_by_upvotes(self, client):
        quiet = file_ticket(client)
        popular = file_ticket(client, {**BURST_PIPE, "category": "pothole", "description": "Deep hole"})
        client.post(f"/tickets/{popular['id']}/upvote", headers=OTHER_CITIZEN)

        body = client.get("/tickets", params={"sort_by": "upvotes"}, headers=AUTHORITY).json()

        assert [t["id"] for t in body["tickets"]] == [popular["id"], quiet["id"]]

    def test_unknown_sort_key(self, client):
        response = client.get("/tickets", params={"sort_by": "colour"}, headers=AUTHORITY)
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationException"

    def test_mine_and_nearby(self, client):
        ticket = file_ticket(client)

        mine = client.get("/tickets/mine", headers=CITIZEN).json()
        theirs = client.get("/tickets/mine", headers=OTHER_CITIZEN).json()
        nearby = client.get(
            "/tickets/nearby", params={"lat": 12.9716, "lng": 77.5946}, headers=OTHER_CITIZEN
        ).json()
        far = client.get(
            "/tickets/nearby", params={"lat": 28.6, "lng": 77.2}, headers=OTHER_CITIZEN
        ).json()

        assert [t["id"] for t in mine["tickets"]] == [ticket["id"]]
        assert theirs["total"] == 0
        assert nearby["tickets"][0]["distance_km"] == 0.0
        assert far["total"] == 0

    def test_get_unknown_ticket(self, client):
        response = client.get("/tickets/TKT000000000000", headers=CITIZEN)
        assert response.status_code == 404


class TestLifecycle:
    def test_resolve_reject_and_approve(self, client):
        ticket = file_ticket(client)
        url = f"/tickets/{ticket['id']}"

        response = client.put(f"{url}/status", json={"status": "in-progress"}, headers=AUTHORITY)
        assert response.status_code == 200
        assert response.json()["assigned_to"] == "authority-1"

        response = client.put(
            f"{url}/status",
            json={"status": "pending_feedback", "resolution": {"notes": "Fixed"}},
            headers=AUTHORITY,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ProofRequiredException"

        response = client.put(
            f"{url}/status",
            json={"status": "pending_feedback", "resolution": {"notes": "Fixed", "proof_image_url": PROOF}},
            headers=AUTHORITY,
        )
        assert response.status_code == 200
        assert response.json()["feedback_status"] == "pending"
        assert response.json()["resolution"]["proof_image_url"] == PROOF

        response = client.post(f"{url}/feedback", json={"approved": True}, headers=OTHER_CITIZEN)
        assert response.status_code == 403

        response = client.post(
            f"{url}/feedback", json={"approved": False, "comments": "Still leaking"}, headers=CITIZEN
        )
        assert response.status_code == 200
        assert response.json()["status"] == "reopened"
        assert response.json()["feedback_status"] == "rejected"

        response = client.post(f"{url}/feedback", json={"approved": True}, headers=CITIZEN)
        assert response.status_code == 409
        assert response.json()["error"] == "NotAwaitingFeedbackException"

        client.put(
            f"{url}/status",
            json={"status": "pending_feedback", "resolution": {"notes": "Relaid", "proof_image_url": PROOF}},
            headers=AUTHORITY,
        )
        response = client.post(f"{url}/feedback", json={"approved": True}, headers=CITIZEN)
        body = response.json()
        assert body["status"] == "completed"
        assert len(body["resolution_history"]) == 2
        assert [f["approved"] for f in body["feedback"]] == [False, True]

    def test_citizen_cannot_change_status(self, client):
        ticket = file_ticket(client)
        response = client.put(
            f"/tickets/{ticket['id']}/status", json={"status": "in-progress"}, headers=CITIZEN
        )
        assert response.status_code == 403

    def test_closed_is_terminal(self, client):
        ticket = file_ticket(client)
        url = f"/tickets/{ticket['id']}/status"
        assert client.put(url, json={"status": "closed"}, headers=AUTHORITY).status_code == 200

        response = client.put(url, json={"status": "in-progress"}, headers=AUTHORITY)

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransitionException"

    def test_unknown_status_value(self, client):
        ticket = file_ticket(client)
        response = client.put(
            f"/tickets/{ticket['id']}/status", json={"status": "done"}, headers=AUTHORITY
        )
        assert response.status_code == 422


class TestUpvotes:
    def test_upvote_once(self, client):
        ticket = file_ticket(client)
        url = f"/tickets/{ticket['id']}/upvote"

        first = client.post(url, headers=OTHER_CITIZEN)
        second = client.post(url, headers=OTHER_CITIZEN)
        third = client.post(url, headers=AUTHORITY)

        assert first.json() == {"ticket_id": ticket["id"], "upvotes": 1}
        assert second.status_code == 409
        assert second.json()["error"] == "AlreadyUpvotedException"
        assert third.json()["upvotes"] == 2


class TestNotifications:
    def test_feed_and_read_flags(self, client):
        ticket = file_ticket(client)

        feed = client.get("/notifications", headers=AUTHORITY).json()
        assert feed["unread_count"] == 1
        notification = feed["notifications"][0]
        assert notification["type"] == "new_ticket"
        assert notification["ticket_id"] == ticket["id"]

        response = client.put(f"/notifications/{notification['id']}/read", headers=AUTHORITY)
        assert response.status_code == 200
        assert client.get("/notifications", headers=AUTHORITY).json()["unread_count"] == 0

    def test_cannot_mark_someone_elses_notification(self, client):
        file_ticket(client)
        notification = client.get("/notifications", headers=AUTHORITY).json()["notifications"][0]

        response = client.put(f"/notifications/{notification['id']}/read", headers=OTHER_AUTHORITY)

        assert response.status_code == 404

    def test_mark_all_read(self, client):
        ticket = file_ticket(client)
        client.put(f"/tickets/{ticket['id']}/status", json={"status": "in-progress"}, headers=AUTHORITY)
        client.post(f"/tickets/{ticket['id']}/upvote", headers=OTHER_CITIZEN)

        response = client.put("/notifications/read-all", headers=CITIZEN)

        assert response.json()["updated"] == 2
        feed = client.get("/notifications", headers=CITIZEN).json()
        assert feed["unread_count"] == 0
        assert [n["type"] for n in feed["notifications"]] == ["ticket_upvote", "ticket_update"]


class TestSLAEndpoints:
    def test_ticket_sla(self, client, api_clock):
        ticket = file_ticket(client)
        api_clock.advance(hours=5)

        body = client.get(f"/sla/tickets/{ticket['id']}", headers=CITIZEN).json()

        assert body["criticality"] == "critical"
        assert body["sla"]["status"] == "critical"
        assert body["sla"]["hours_left"] == pytest.approx(1.0)
        assert parse(body["evaluated_at"]) == NOW + timedelta(hours=5)

    def test_ticket_sla_unknown(self, client):
        response = client.get("/sla/tickets/TKT000000000000", headers=CITIZEN)
        assert response.status_code == 404

    def test_stats(self, client, api_clock):
        file_ticket(client)
        file_ticket(client, {**BURST_PIPE, "category": "pothole", "description": "Small crack"})
        api_clock.advance(hours=7)

        body = client.get("/sla/stats", headers=AUTHORITY).json()

        assert body["total"] == 2
        assert body["overdue"] == 1
        assert body["on_time"] == 1
        assert body["by_criticality"]["critical"] == {"total": 1, "overdue": 1}

    def test_stats_requires_authority(self, client):
        assert client.get("/sla/stats", headers=CITIZEN).status_code == 403
