"""HTTP API against the in-memory database"""

import pytest
from fastapi.testclient import TestClient

import api.main
from config.settings import BreakRulesConfig
from core.models import BreakType
from conftest import manila


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(api.main, "get_db", lambda: db)
    monkeypatch.setattr(api.main, "get_rules", lambda: BreakRulesConfig())
    return TestClient(api.main.app)


def create(client, user_id=7, title="Hello", payload=None):
    response = client.post("/notifications", json={
        "user_id": user_id,
        "category": "system",
        "title": title,
        "message": "World",
        "payload": payload if payload is not None else {"action_url": "/"},
    })
    return response


class TestNotificationRoutes:

    def test_create_and_list(self, client):
        assert create(client).status_code == 200
        create(client, title="Second")

        response = client.get("/notifications", headers={"X-User-Id": "7"})
        assert response.status_code == 200
        assert [n["title"] for n in response.json()] == ["Second", "Hello"]

    def test_missing_action_url_is_400(self, client):
        response = create(client, payload={"source": "test"})
        assert response.status_code == 400

    def test_break_notification_sent_once(self, client, db):
        payload = {
            "action_url": "/status/breaks",
            "break_type": "Lunch",
            "reminder_type": "available_now",
            "shift_day": "2025-03-10",
        }
        body = {"user_id": 7, "category": "break", "title": "Lunch", "message": "Go", "payload": payload}

        assert client.post("/notifications", json=body).status_code == 200
        second = client.post("/notifications", json=body)

        assert second.status_code == 409
        assert len(db.notifications) == 1
        assert list(db.ledger) == [(7, "Lunch", "available_now", "2025-03-10", 0)]

    def test_break_notification_without_shift_day_is_400(self, client, db):
        payload = {"action_url": "/status/breaks", "break_type": "Lunch", "reminder_type": "available_now"}
        body = {"user_id": 7, "category": "break", "title": "Lunch", "message": "Go", "payload": payload}

        assert client.post("/notifications", json=body).status_code == 400
        assert db.notifications == []

    def test_user_header_required(self, client):
        assert client.get("/notifications").status_code == 422

    def test_mark_read(self, client):
        notification_id = create(client).json()["id"]
        response = client.post(f"/notifications/{notification_id}/read", headers={"X-User-Id": "7"})
        assert response.status_code == 200
        assert response.json()["is_read"] is True

    def test_clear_hides_notification(self, client):
        notification_id = create(client).json()["id"]
        client.post(f"/notifications/{notification_id}/clear", headers={"X-User-Id": "7"})

        assert client.get("/notifications", headers={"X-User-Id": "7"}).json() == []
        listed = client.get("/notifications", params={"include_cleared": True}, headers={"X-User-Id": "7"}).json()
        assert len(listed) == 1

    def test_other_users_notification_is_404(self, client):
        notification_id = create(client).json()["id"]
        response = client.post(f"/notifications/{notification_id}/read", headers={"X-User-Id": "8"})
        assert response.status_code == 404


class TestBreakRoutes:

    def test_break_windows(self, client, db):
        db.add_agent(1, "6:00 AM - 3:00 PM")
        response = client.get("/agents/1/break-windows", params={"day": "2025-03-10"})

        assert response.status_code == 200
        body = response.json()
        assert body["shift_class"] == "day"
        assert [w["break_type"] for w in body["windows"]] == ["Morning", "Lunch", "Afternoon"]
        assert body["windows"][0]["start_time"] == "2025-03-10T08:00:00+08:00"

    def test_unknown_agent_is_404(self, client):
        assert client.get("/agents/99/break-windows").status_code == 404
        assert client.get("/agents/99/due-events").status_code == 404

    def test_due_events(self, client, db):
        db.add_agent(1, "6:00 AM - 3:00 PM")
        response = client.get("/agents/1/due-events", params={"at": "2025-03-10T11:00:00+08:00"})

        assert response.status_code == 200
        events = {(e["break_type"], e["event_kind"]): e for e in response.json()}
        assert ("Lunch", "available_now") in events
        assert events[("Lunch", "reminder_due")]["slot"] == 2
        # Nothing is sent
        assert db.notifications == []

    def test_due_events_respects_sessions(self, client, db):
        db.add_agent(1, "6:00 AM - 3:00 PM")
        db.add_session(1, BreakType.LUNCH, manila(2025, 3, 10, 10, 15))
        response = client.get("/agents/1/due-events", params={"at": "2025-03-10T11:00:00+08:00"})
        lunch = [e for e in response.json() if e["break_type"] == "Lunch"]
        assert lunch == []

    def test_naive_timestamp_is_400(self, client, db):
        db.add_agent(1, "6:00 AM - 3:00 PM")
        response = client.get("/agents/1/due-events", params={"at": "2025-03-10T11:00:00"})
        assert response.status_code == 400


class TestSystemRoutes:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    def test_health_reports_database_error(self, client, db):
        def down():
            raise RuntimeError("connection refused")

        db.ping = down
        body = client.get("/health").json()
        assert body["status"] == "unhealthy"
        assert "connection refused" in body["database"]

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Break Notifier API"
