"""
Tests for herd and zone CRUD, including geometry handling and role checks.
"""
import json
from datetime import datetime, timedelta

import pytest
from conftest import auth_headers

from backend.models_db import UserRanch

POLYGON = {
    "type": "Polygon",
    "coordinates": [[[-105.0, 40.0], [-104.99, 40.0], [-104.99, 40.01], [-105.0, 40.01], [-105.0, 40.0]]],
}


def _add_member(db_session, ranch_id, uid, role, client):
    """Create the user via a first request, then attach them to the ranch."""
    me = client.get("/api/me", headers=auth_headers(uid)).json()
    db_session.add(UserRanch(user_id=me["user"]["id"], ranch_id=ranch_id, role=role))
    db_session.commit()
    return auth_headers(uid, ranch_id=ranch_id)


class TestHerds:

    def test_create_and_get(self, client, owner):
        ranch_id, headers = owner
        response = client.post(
            "/api/herds",
            json={"name": " Cow-calf pairs ", "species": "Cattle", "male_neut_desc": "steer"},
            headers=headers,
        )
        assert response.status_code == 201
        herd_id = response.json()["id"]

        herd = client.get(f"/api/herds/{herd_id}", headers=headers).json()
        assert herd["name"] == "Cow-calf pairs"
        assert herd["species"] == "Cattle"
        assert herd["male_neut_desc"] == "steer"
        assert herd["ranchId"] == ranch_id

        created = datetime.fromisoformat(herd["createdAt"].replace("Z", "+00:00"))
        assert created.utcoffset() == timedelta(0)

    def test_list_includes_transfer_herd(self, client, owner):
        _, headers = owner
        client.post("/api/herds", json={"name": "Bulls"}, headers=headers)
        names = [h["name"] for h in client.get("/api/herds", headers=headers).json()]
        assert names == ["Transfer", "Bulls"]

    def test_name_required(self, client, owner):
        _, headers = owner
        response = client.post("/api/herds", json={"species": "Cattle"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"

    def test_blank_name_rejected(self, client, owner):
        _, headers = owner
        response = client.post("/api/herds", json={"name": "   "}, headers=headers)
        assert response.status_code == 400

    def test_partial_update(self, client, owner):
        _, headers = owner
        herd_id = client.post(
            "/api/herds", json={"name": "Heifers", "breed": "Angus", "species": "Cattle"}, headers=headers
        ).json()["id"]

        response = client.put(f"/api/herds/{herd_id}", json={"breed": "Hereford", "species": None}, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        herd = client.get(f"/api/herds/{herd_id}", headers=headers).json()
        assert herd["name"] == "Heifers"
        assert herd["breed"] == "Hereford"
        assert herd["species"] == "Cattle"

    def test_update_blank_name(self, client, owner):
        _, headers = owner
        herd_id = client.post("/api/herds", json={"name": "Heifers"}, headers=headers).json()["id"]
        response = client.put(f"/api/herds/{herd_id}", json={"name": "  "}, headers=headers)
        assert response.status_code == 400

    def test_missing_herd(self, client, owner):
        _, headers = owner
        response = client.get("/api/herds/does-not-exist", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "HERD_NOT_FOUND"

    def test_other_ranch_herd_is_hidden(self, client, owner):
        _, headers = owner
        other_ranch = client.post("/api/ranches", json={"name": "Other"}, headers=auth_headers("other")).json()["id"]
        other_herd = client.post(
            "/api/herds", json={"name": "Theirs"}, headers=auth_headers("other", ranch_id=other_ranch)
        ).json()["id"]
        response = client.get(f"/api/herds/{other_herd}", headers=headers)
        assert response.status_code == 404

    def test_delete_by_owner(self, client, owner):
        _, headers = owner
        herd_id = client.post("/api/herds", json={"name": "Culls"}, headers=headers).json()["id"]
        assert client.delete(f"/api/herds/{herd_id}", headers=headers).status_code == 200
        assert client.get(f"/api/herds/{herd_id}", headers=headers).status_code == 404

    def test_staff_cannot_delete(self, client, owner, db_session):
        ranch_id, headers = owner
        herd_id = client.post("/api/herds", json={"name": "Culls"}, headers=headers).json()["id"]
        staff_headers = _add_member(db_session, ranch_id, "hand-1", "staff", client)

        response = client.delete(f"/api/herds/{herd_id}", headers=staff_headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "INSUFFICIENT_ROLE"

        # Staff can still read
        assert client.get(f"/api/herds/{herd_id}", headers=staff_headers).status_code == 200

    def test_admin_can_delete(self, client, owner, db_session):
        ranch_id, headers = owner
        herd_id = client.post("/api/herds", json={"name": "Culls"}, headers=headers).json()["id"]
        admin_headers = _add_member(db_session, ranch_id, "boss-2", "admin", client)
        assert client.delete(f"/api/herds/{herd_id}", headers=admin_headers).status_code == 200


class TestZones:

    def test_create_geojson_computes_area(self, client, owner):
        _, headers = owner
        response = client.post(
            "/api/zones",
            json={"name": "North Pasture", "geom": json.dumps(POLYGON)},
            headers=headers,
        )
        assert response.status_code == 201
        zone = client.get(f"/api/zones/{response.json()['id']}", headers=headers).json()
        assert zone["areaAcres"] == pytest.approx(234.0, rel=0.01)
        assert json.loads(zone["geom"]) == POLYGON

    def test_create_wkt_is_stored_as_geojson(self, client, owner):
        _, headers = owner
        zone_id = client.post(
            "/api/zones",
            json={"name": "WKT", "geom": "POLYGON ((-105 40, -104.99 40, -104.99 40.01, -105 40.01, -105 40))"},
            headers=headers,
        ).json()["id"]
        zone = client.get(f"/api/zones/{zone_id}", headers=headers).json()
        assert json.loads(zone["geom"])["type"] == "Polygon"

    def test_explicit_area_wins(self, client, owner):
        _, headers = owner
        zone_id = client.post(
            "/api/zones",
            json={"name": "Explicit", "geom": json.dumps(POLYGON), "areaAcres": 40},
            headers=headers,
        ).json()["id"]
        assert client.get(f"/api/zones/{zone_id}", headers=headers).json()["areaAcres"] == 40

    def test_invalid_geometry(self, client, owner):
        _, headers = owner
        response = client.post("/api/zones", json={"name": "Bad", "geom": "CIRCLE (1 2)"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_GEOMETRY"

    def test_geometry_required(self, client, owner):
        _, headers = owner
        response = client.post("/api/zones", json={"name": "No shape"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"

    def test_update_geometry_recomputes_area(self, client, owner):
        _, headers = owner
        zone_id = client.post(
            "/api/zones", json={"name": "Z", "geom": json.dumps(POLYGON), "areaAcres": 1}, headers=headers
        ).json()["id"]

        response = client.put(f"/api/zones/{zone_id}", json={"geom": json.dumps(POLYGON)}, headers=headers)
        assert response.status_code == 200
        assert client.get(f"/api/zones/{zone_id}", headers=headers).json()["areaAcres"] == pytest.approx(234.0, rel=0.01)

    def test_update_name_only(self, client, owner):
        _, headers = owner
        zone_id = client.post("/api/zones", json={"name": "Z", "geom": json.dumps(POLYGON)}, headers=headers).json()["id"]
        client.put(f"/api/zones/{zone_id}", json={"name": "Renamed"}, headers=headers)
        zones = client.get("/api/zones", headers=headers).json()
        assert [z["name"] for z in zones] == ["Renamed"]

    def test_delete_requires_manager(self, client, owner, db_session):
        ranch_id, headers = owner
        zone_id = client.post("/api/zones", json={"name": "Z", "geom": json.dumps(POLYGON)}, headers=headers).json()["id"]
        staff_headers = _add_member(db_session, ranch_id, "hand-1", "staff", client)
        assert client.delete(f"/api/zones/{zone_id}", headers=staff_headers).status_code == 403
        assert client.delete(f"/api/zones/{zone_id}", headers=headers).status_code == 200
        assert client.get(f"/api/zones/{zone_id}", headers=headers).status_code == 404
