"""
Tests for land-management records and the recommendation endpoints.
"""
import json
import uuid
from datetime import datetime, timedelta

import pytest

from backend.models_db import LandRecommendation

def _utc_offset(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00")).utcoffset()


POLYGON = {
    "type": "Polygon",
    "coordinates": [[[-105.0, 40.0], [-104.99, 40.0], [-104.99, 40.01], [-105.0, 40.01], [-105.0, 40.0]]],
}


@pytest.fixture
def zone(client, owner):
    """A zone in the owner's ranch; returns (zone_id, headers)."""
    _, headers = owner
    response = client.post("/api/zones", json={"name": "North Pasture", "geom": json.dumps(POLYGON)}, headers=headers)
    assert response.status_code == 201
    return response.json()["id"], headers


def _post(client, path, payload, headers):
    return client.post(f"/api/land/{path}", json=payload, headers=headers)


class TestSubzones:

    def test_create_and_list(self, client, zone):
        zone_id, headers = zone
        response = _post(client, "subzones", {"zoneId": zone_id, "name": "Paddock B", "targetRestDays": 30}, headers)
        assert response.status_code == 201
        _post(client, "subzones", {"zoneId": zone_id, "name": "Paddock A", "status": "resting"}, headers)

        subzones = client.get("/api/land/subzones", params={"zoneId": zone_id}, headers=headers).json()["subzones"]
        assert [s["name"] for s in subzones] == ["Paddock A", "Paddock B"]
        assert subzones[0]["status"] == "resting"
        assert subzones[1]["targetRestDays"] == 30

    def test_duplicate_name(self, client, zone):
        zone_id, headers = zone
        _post(client, "subzones", {"zoneId": zone_id, "name": "Paddock A"}, headers)
        response = _post(client, "subzones", {"zoneId": zone_id, "name": " Paddock A "}, headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_SUBZONE"

    def test_unknown_zone(self, client, zone):
        _, headers = zone
        response = _post(client, "subzones", {"zoneId": str(uuid.uuid4()), "name": "X"}, headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ZONE_NOT_FOUND"

    def test_zone_id_must_be_uuid(self, client, zone):
        _, headers = zone
        response = _post(client, "subzones", {"zoneId": "not-a-uuid", "name": "X"}, headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"

    def test_bad_query(self, client, zone):
        _, headers = zone
        response = client.get("/api/land/subzones", params={"zoneId": "nope"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_QUERY"


class TestGrazingSessions:

    def test_create_and_filter_by_day(self, client, zone):
        zone_id, headers = zone
        for started in ("2025-06-01T08:00:00Z", "2025-06-03T23:30:00Z", "2025-06-05T06:00:00-06:00"):
            response = _post(client, "grazing-sessions", {"zoneId": zone_id, "startedAt": started, "headCount": 40}, headers)
            assert response.status_code == 201

        sessions = client.get(
            "/api/land/grazing-sessions",
            params={"zoneId": zone_id, "from": "2025-06-02", "to": "2025-06-05"},
            headers=headers,
        ).json()["sessions"]
        # 06:00 at -06:00 is noon UTC on the 5th
        assert len(sessions) == 2
        assert sessions[0]["startedAt"].startswith("2025-06-05T12:00:00")
        assert sessions[1]["startedAt"].startswith("2025-06-03T23:30:00")
        for session in sessions:
            assert _utc_offset(session["startedAt"]) == timedelta(0)
            assert _utc_offset(session["createdAt"]) == timedelta(0)

    def test_end_before_start(self, client, zone):
        zone_id, headers = zone
        response = _post(
            client,
            "grazing-sessions",
            {"zoneId": zone_id, "startedAt": "2025-06-02T00:00:00Z", "endedAt": "2025-06-01T00:00:00Z"},
            headers,
        )
        assert response.status_code == 400

    def test_unknown_herd(self, client, zone):
        zone_id, headers = zone
        response = _post(
            client,
            "grazing-sessions",
            {"zoneId": zone_id, "herdId": str(uuid.uuid4()), "startedAt": "2025-06-02T00:00:00Z"},
            headers,
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "HERD_NOT_FOUND"


class TestSamples:

    def test_soil_sample(self, client, zone):
        zone_id, headers = zone
        response = _post(client, "soil-samples", {"zoneId": zone_id, "sampledAt": "2025-05-01", "ph": 6.8, "notes": " "}, headers)
        assert response.status_code == 201
        samples = client.get("/api/land/soil-samples", headers=headers).json()["soilSamples"]
        assert samples[0]["ph"] == 6.8
        assert samples[0]["notes"] is None

    def test_soil_ph_range(self, client, zone):
        zone_id, headers = zone
        response = _post(client, "soil-samples", {"zoneId": zone_id, "sampledAt": "2025-05-01", "ph": 15}, headers)
        assert response.status_code == 400

    def test_forage_sample_with_species(self, client, zone):
        zone_id, headers = zone
        payload = {
            "zoneId": zone_id,
            "sampledAt": "2025-05-02",
            "speciesObserved": ["blue grama", "western wheatgrass"],
            "biomassLbPerAcre": 1500,
        }
        assert _post(client, "forage-samples", payload, headers).status_code == 201
        samples = client.get("/api/land/forage-samples", params={"limit": 1}, headers=headers).json()["forageSamples"]
        assert samples[0]["speciesObserved"] == ["blue grama", "western wheatgrass"]

    def test_sample_limit_bounds(self, client, zone):
        _, headers = zone
        response = client.get("/api/land/forage-samples", params={"limit": 501}, headers=headers)
        assert response.status_code == 400


class TestWeatherAndState:

    def test_weather_one_row_per_day(self, client, zone):
        zone_id, headers = zone
        payload = {"zoneId": zone_id, "weatherDate": "2025-04-10", "forecastRainInchesNext3d": 0.8}
        assert _post(client, "weather-daily", payload, headers).status_code == 201

        response = _post(client, "weather-daily", payload, headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_WEATHER_DAY"

        rows = client.get("/api/land/weather-daily", params={"zoneId": zone_id}, headers=headers).json()["weatherDaily"]
        assert rows[0]["forecastRainInchesNext3d"] == 0.8

    def test_weather_subzone_is_separate_slot(self, client, zone):
        zone_id, headers = zone
        subzone_id = _post(client, "subzones", {"zoneId": zone_id, "name": "A"}, headers).json()["id"]
        assert _post(client, "weather-daily", {"zoneId": zone_id, "weatherDate": "2025-04-10"}, headers).status_code == 201
        response = _post(
            client, "weather-daily", {"zoneId": zone_id, "subzoneId": subzone_id, "weatherDate": "2025-04-10"}, headers
        )
        assert response.status_code == 201

    def test_zone_state_duplicate(self, client, zone):
        zone_id, headers = zone
        payload = {"zoneId": zone_id, "stateDate": "2025-04-10", "utilizationPct": 40, "recoveryStage": "mid"}
        assert _post(client, "zone-daily-states", payload, headers).status_code == 201
        response = _post(client, "zone-daily-states", payload, headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_ZONE_STATE"

        states = client.get(
            "/api/land/zone-daily-states", params={"date": "2025-04-10"}, headers=headers
        ).json()["zoneDailyStates"]
        assert len(states) == 1
        assert states[0]["recoveryStage"] == "mid"

    def test_stress_score_range(self, client, zone):
        zone_id, headers = zone
        payload = {"zoneId": zone_id, "stateDate": "2025-04-10", "moistureStressScore": 11}
        assert _post(client, "zone-daily-states", payload, headers).status_code == 400


class TestRecommendations:

    def test_preview_without_persisting(self, client, zone, db_session):
        zone_id, headers = zone
        _post(client, "zone-daily-states", {"zoneId": zone_id, "stateDate": "2025-04-09", "needsRest": True, "restDays": 4}, headers)
        _post(client, "weather-daily", {"zoneId": zone_id, "weatherDate": "2025-04-09", "forecastRainInchesNext3d": 0.75}, headers)

        response = client.post(
            "/api/land/recommendations/generate",
            json={"recommendationDate": "2025-04-10"},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["persisted"] is False
        assert [r["recommendationType"] for r in body["recommendations"]] == ["rest", "seed"]
        rest = body["recommendations"][0]
        assert rest["title"] == "Keep animals out of North Pasture for 10 days"
        assert rest["zoneId"] == zone_id
        assert rest["metadata"]["restDays"] == 4

        assert db_session.query(LandRecommendation).count() == 0

    def test_latest_state_wins(self, client, zone):
        zone_id, headers = zone
        _post(client, "zone-daily-states", {"zoneId": zone_id, "stateDate": "2025-07-01", "needsRest": True}, headers)
        _post(client, "zone-daily-states", {"zoneId": zone_id, "stateDate": "2025-07-08", "estimatedForageLbPerAcre": 2100}, headers)

        body = client.post(
            "/api/land/recommendations/generate", json={"recommendationDate": "2025-07-10"}, headers=headers
        ).json()
        assert [r["recommendationType"] for r in body["recommendations"]] == ["graze"]
        assert body["recommendations"][0]["actionByDate"] == "2025-07-10"

    def test_no_data_is_caution(self, client, zone):
        _, headers = zone
        body = client.post("/api/land/recommendations/generate", headers=headers).json()
        assert [r["recommendationType"] for r in body["recommendations"]] == ["caution"]
        assert body["recommendations"][0]["priority"] == "low"

    def test_zones_in_name_order(self, client, zone):
        zone_id, headers = zone
        other = client.post(
            "/api/zones", json={"name": "Creek Bottom", "geom": json.dumps(POLYGON)}, headers=headers
        ).json()["id"]
        body = client.post("/api/land/recommendations/generate", json={}, headers=headers).json()
        assert [r["zoneId"] for r in body["recommendations"]] == [other, zone_id]

    def test_persist_list_and_update_status(self, client, zone):
        zone_id, headers = zone
        response = client.post(
            "/api/land/recommendations/generate",
            json={"zoneId": zone_id, "recommendationDate": "2025-07-10", "persist": True},
            headers=headers,
        )
        assert response.json()["persisted"] is True

        recs = client.get(
            "/api/land/recommendations", params={"recommendationDate": "2025-07-10"}, headers=headers
        ).json()["recommendations"]
        assert len(recs) == 1
        rec = recs[0]
        assert rec["status"] == "open"
        assert rec["recommendationType"] == "caution"
        assert "latestGrazedEndedAt" in rec["metadata"]

        response = client.patch(
            f"/api/land/recommendations/{rec['id']}/status", json={"status": "accepted"}, headers=headers
        )
        assert response.status_code == 200

        accepted = client.get("/api/land/recommendations", params={"status": "accepted"}, headers=headers).json()
        assert [r["id"] for r in accepted["recommendations"]] == [rec["id"]]
        assert client.get("/api/land/recommendations", params={"status": "open"}, headers=headers).json() == {
            "recommendations": []
        }

        # PUT is accepted as well
        response = client.put(
            f"/api/land/recommendations/{rec['id']}/status", json={"status": "completed"}, headers=headers
        )
        assert response.status_code == 200

    def test_invalid_status(self, client, zone):
        _, headers = zone
        response = client.patch(
            f"/api/land/recommendations/{uuid.uuid4()}/status", json={"status": "snoozed"}, headers=headers
        )
        assert response.status_code == 400

    def test_unknown_recommendation(self, client, zone):
        _, headers = zone
        response = client.patch(
            f"/api/land/recommendations/{uuid.uuid4()}/status", json={"status": "dismissed"}, headers=headers
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RECOMMENDATION_NOT_FOUND"

    def test_bad_recommendation_id(self, client, zone):
        _, headers = zone
        response = client.patch("/api/land/recommendations/abc/status", json={"status": "dismissed"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PARAMS"

    def test_subzone_scoped_generation(self, client, zone):
        zone_id, headers = zone
        resting = _post(client, "subzones", {"zoneId": zone_id, "name": "Paddock A"}, headers).json()["id"]
        lush = _post(client, "subzones", {"zoneId": zone_id, "name": "Paddock B"}, headers).json()["id"]
        _post(
            client,
            "zone-daily-states",
            {"zoneId": zone_id, "subzoneId": resting, "stateDate": "2025-07-08", "needsRest": True, "restDays": 2},
            headers,
        )
        _post(
            client,
            "zone-daily-states",
            {"zoneId": zone_id, "subzoneId": lush, "stateDate": "2025-07-08", "estimatedForageLbPerAcre": 2100},
            headers,
        )

        body = client.post(
            "/api/land/recommendations/generate",
            json={"zoneId": zone_id, "subzoneId": lush, "recommendationDate": "2025-07-10"},
            headers=headers,
        ).json()
        assert [r["recommendationType"] for r in body["recommendations"]] == ["graze"]
        rec = body["recommendations"][0]
        assert rec["subzoneId"] == lush
        assert rec["metadata"]["estimatedForageLbPerAcre"] == 2100

        body = client.post(
            "/api/land/recommendations/generate",
            json={"zoneId": zone_id, "subzoneId": resting, "recommendationDate": "2025-07-10"},
            headers=headers,
        ).json()
        assert [r["recommendationType"] for r in body["recommendations"]] == ["rest"]
        assert body["recommendations"][0]["metadata"]["restDays"] == 2

        # Zone-level readings exclude both subzones
        body = client.post(
            "/api/land/recommendations/generate",
            json={"zoneId": zone_id, "recommendationDate": "2025-07-10"},
            headers=headers,
        ).json()
        assert [r["recommendationType"] for r in body["recommendations"]] == ["caution"]

    def test_invalid_generate_payload(self, client, zone):
        _, headers = zone
        response = client.post(
            "/api/land/recommendations/generate", json={"recommendationDate": "July 10"}, headers=headers
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_RECOMMENDATION_PAYLOAD"
        assert error["message"] == "Invalid recommendation request"

    def test_grazed_end_time_is_utc(self, client, zone):
        zone_id, headers = zone
        _post(
            client,
            "grazing-sessions",
            {"zoneId": zone_id, "startedAt": "2025-07-01T08:00:00Z", "endedAt": "2025-07-03T08:00:00-06:00"},
            headers,
        )
        body = client.post(
            "/api/land/recommendations/generate", json={"recommendationDate": "2025-07-10"}, headers=headers
        ).json()
        ended = body["recommendations"][0]["metadata"]["latestGrazedEndedAt"]
        assert _utc_offset(ended) == timedelta(0)
        assert ended.startswith("2025-07-03T14:00:00")
