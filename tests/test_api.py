"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from summer_planner.main import app


class TestApi:

    @pytest.fixture
    def client(self):
        with TestClient(app) as client:
            yield client

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "Summer Camp Planner"

    def test_default_season(self, client):
        response = client.get("/api/season")

        assert response.status_code == 200
        body = response.json()
        assert len(body["weeks"]) == 11
        assert body["weeks"][0]["start_date"] == "2026-06-08"
        assert body["weeks"][-1]["end_date"] == "2026-08-18"
        assert body["pre_season_gap"]["days"] == 2

    def test_custom_season(self, client):
        response = client.get("/api/season", params={"school_end": "2026-06-12", "school_start": "2026-08-26"})

        assert response.status_code == 200
        assert response.json()["weeks"][0]["start_date"] == "2026-06-15"

    def test_inverted_season(self, client):
        response = client.get("/api/season", params={"school_end": "2026-08-19", "school_start": "2026-06-05"})

        assert response.status_code == 422
        assert response.json()["kind"] == "InvalidDateRange"

    def test_derive_fills_default_season(self, client):
        response = client.post("/api/derive", json={
            "child_id": "c1",
            "today": "2026-03-01",
            "snapshot": {
                "owner_id": "user-1",
                "children": [{"id": "c1", "owner_id": "user-1", "name": "Emma"}],
                "scheduled_items": [
                    {
                        "id": "i1", "owner_id": "user-1", "child_id": "c1", "camp_id": "camp-1",
                        "start_date": "2026-06-08", "end_date": "2026-06-12", "price": 400,
                    },
                    {
                        "id": "i2", "owner_id": "user-1", "child_id": "c1", "camp_id": "camp-1",
                        "start_date": "2026-06-10", "end_date": "2026-06-16", "price": 250,
                    },
                ],
                "camps": [{"id": "camp-1", "name": "Art Camp", "reg_date": "March 15"}],
            },
        })

        assert response.status_code == 200
        body = response.json()
        assert len(body["weeks"]) == 11
        assert body["covered_weeks"] == [1, 2]
        assert body["total_cost"] == 650
        assert body["conflicts_by_item_id"] == {"i1": ["i2"], "i2": ["i1"]}
        assert body["registration_by_camp_id"]["camp-1"]["kind"] == "upcoming"

    def test_derive_rejects_malformed_snapshot(self, client):
        response = client.post("/api/derive", json={"child_id": "c1", "snapshot": {"children": [{"name": "No id"}]}})

        assert response.status_code == 422

    def test_registration_status(self, client):
        response = client.post("/api/registration-status", json={
            "camp": {"id": "camp-1", "name": "Art Camp", "reg_date": "March 15"},
            "today": "2026-03-10",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "upcoming"
        assert body["days_until"] == 5
        assert body["severity"] == "critical"

    def test_validate_create(self, client):
        response = client.post("/api/validate/children/create", json={"name": "<b>Emma</b>", "age": 8})

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["value"]["name"] == "Emma"

    def test_validate_failure(self, client):
        response = client.post("/api/validate/children/create", json={"name": "Emma", "age": 150})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "InvalidInput"
        assert body["field"] == "age"

    def test_validate_update_drops_fields(self, client):
        response = client.post("/api/validate/profiles/update", json={"role": "admin", "full_name": "Sam"})

        assert response.status_code == 200
        body = response.json()
        assert body["value"] == {"full_name": "Sam"}
        assert body["dropped_fields"] == ["role"]

    def test_validate_unknown_collection(self, client):
        response = client.post("/api/validate/camps/create", json={"name": "Art"})

        assert response.status_code == 422
