"""
Integration tests for the reports API endpoints.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from core.database import get_db
from main import app
from services.team_membership import add_membership


@pytest.fixture
def client(db_session, catalog):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.state.office_catalog = catalog
    yield TestClient(app)
    app.dependency_overrides.clear()
    del app.state.office_catalog


@pytest.fixture
def seeded(make_user, add_rep, db_session):
    oc_1 = make_user("oc_1@example.com", "OC")
    denver_1 = make_user("denver_1@example.com", "Denver")
    for team in ("eng", "crossfit", "mp"):
        add_membership(db_session, team, oc_1.id)
    add_membership(db_session, "eng", denver_1.id)
    add_rep(oc_1, "pushups", 10, datetime(2016, 11, 14, 9, 0))
    add_rep(oc_1, "pushups", 5, datetime(2016, 11, 15, 9, 0))
    add_rep(denver_1, "situps", 30, datetime(2016, 11, 15, 9, 0))


class TestViewData:

    def test_json_for_known_user(self, client, seeded):
        response = client.get("/json", params={"email": "oc_1@example.com", "start": "2016-11-14", "end": "2016-11-15"})

        assert response.status_code == 200
        data = response.json()
        assert data["user_email"] == "oc_1@example.com"
        assert data["user_office"] == "OC"
        assert data["user_teams"] == ["crossfit", "eng", "mp"]
        assert data["offices"] == ["OC", "Denver", "London"]
        assert data["user_reps"] == [
            {"date": "11-14", "exercise_counts": {"pushups": 10}},
            {"date": "11-15", "exercise_counts": {"pushups": 5}},
        ]
        assert data["user_total_reps"] == 15

    def test_json_summaries(self, client, seeded):
        data = client.get(
            "/json", params={"email": "oc_1@example.com", "start": "2016-11-14", "end": "2016-11-15"}
        ).json()

        assert data["office_stats"]["OC"]["total_reps"] == 15
        assert data["office_stats"]["OC"]["participating"] == 1
        assert data["office_stats"]["Denver"]["total_reps"] == 30
        assert data["team_stats"]["eng"]["total_reps"] == 45
        assert data["team_stats"]["eng"]["head_count"] == 2
        assert set(data["team_reps"]) == {"eng", "crossfit", "mp"}
        assert data["office_reps"]["Denver"][1]["exercise_counts"] == {"situps": 30}

    def test_default_window(self, client, offices):
        data = client.get("/json", params={"email": "nobody@example.com", "end": "2016-11-30"}).json()

        assert data["start_date"] == "2016-11-24"
        assert data["end_date"] == "2016-11-30"
        assert len(data["user_reps"]) == 7
        assert data["user_office"] == ""
        assert data["user_teams"] == []

    def test_email_required(self, client):
        assert client.get("/json").status_code == 422


class TestSubmissions:

    def test_log_reps(self, client):
        response = client.post(
            "/submissions",
            json={"email": "oc_2@example.com", "command": "log-reps", "payload": {"pushups": 10, "squats": 20}},
        )

        assert response.status_code == 200
        assert response.json()["reps_logged"] == 2

    def test_add_and_remove_team(self, client):
        response = client.post(
            "/submissions", json={"email": "oc_3@example.com", "command": "add-team", "payload": "my_team"}
        )
        assert response.status_code == 200
        teams = client.get("/json", params={"email": "oc_3@example.com"}).json()["user_teams"]
        assert "my_team" in teams

        response = client.post(
            "/submissions", json={"email": "oc_3@example.com", "command": "remove-team", "payload": "my_team"}
        )
        assert response.status_code == 200
        teams = client.get("/json", params={"email": "oc_3@example.com"}).json()["user_teams"]
        assert "my_team" not in teams

    def test_remove_unknown_team_is_404(self, client):
        response = client.post(
            "/submissions", json={"email": "oc_3@example.com", "command": "remove-team", "payload": "nope"}
        )
        assert response.status_code == 404

    def test_set_office_reports_degraded_match(self, client):
        response = client.post(
            "/submissions", json={"email": "oc_5@example.com", "command": "set-office", "payload": "Mars"}
        )

        assert response.status_code == 200
        assert response.json()["office"] == "Unknown"
        assert response.json()["office_degraded"] is True

    def test_unknown_command_is_422(self, client):
        response = client.post(
            "/submissions", json={"email": "oc_5@example.com", "command": "dance", "payload": "x"}
        )
        assert response.status_code == 422

    def test_negative_reps_is_422(self, client):
        response = client.post(
            "/submissions", json={"email": "oc_5@example.com", "command": "log-reps", "payload": {"pushups": -5}}
        )
        assert response.status_code == 422


def test_ping():
    assert TestClient(app).get("/ping").json() == {"pong": True}
