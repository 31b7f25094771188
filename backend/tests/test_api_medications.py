"""
Tests for standard medications, ranch standards, inventory and purchases.
"""
import pytest
from conftest import auth_headers, create_ranch

from backend.models_db import Supplier

IVOMEC = {
    "chemicalName": "Ivermectin",
    "format": "injectable",
    "concentrationValue": 1,
    "concentrationUnit": "%",
    "manufacturerName": "Boehringer Ingelheim",
    "brandName": "Ivomec",
    "onLabelDoseText": "1 mL per 110 lb",
    "standard": {"usesOffLabel": False, "standardDoseText": "1 mL per 100 lb", "startDate": "2025-01-01"},
}


def _create_medication(client, headers, payload=None):
    response = client.post("/api/standard-medications", json=payload or IVOMEC, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["medication"]


class TestStandardMedications:

    def test_create_json(self, client, owner):
        _, headers = owner
        med = _create_medication(client, headers)
        assert med["displayName"] == "Ivomec — Ivermectin 1% (injectable)"
        assert med["currentStandard"]["standardDoseText"] == "1 mL per 100 lb"
        assert med["currentStandard"]["startDate"] == "2025-01-01"
        assert med["currentStandard"]["endDate"] is None

        active = client.get("/api/standard-medications/active", headers=headers).json()["medications"]
        assert [m["id"] for m in active] == [med["id"]]
        assert active[0]["concentrationValue"] == "1"

    def test_create_multipart_with_images(self, client, owner, images_root):
        ranch_id, headers = owner
        response = client.post(
            "/api/standard-medications",
            data={
                "chemicalName": "Oxytetracycline",
                "format": "injectable",
                "manufacturerName": "Zoetis",
                "brandName": "LA-200",
                "standard[usesOffLabel]": "true",
                "standard[standardDoseText]": "4.5 mL per 100 lb",
            },
            files=[
                ("label", ("front.png", b"label", "image/png")),
                ("insert", ("insert.pdf", b"insert", "application/pdf")),
                ("other", ("extra.jpg", b"extra", "image/jpeg")),
            ],
            headers=headers,
        )
        assert response.status_code == 201, response.text
        med = response.json()["medication"]
        assert med["currentStandard"]["usesOffLabel"] is True

        images = client.get(f"/api/standard-medications/{med['id']}/images", headers=headers).json()["images"]
        assert [img["purpose"] for img in images] == ["insert", "label", "misc"]
        label = images[1]
        assert label["originalFilename"] == "front.png"
        assert label["url"].startswith(f"/images/ranches/{ranch_id}/medications/standards/{med['id']}/label/")

        stored = label["url"].rsplit("/", 1)[-1]
        path = images_root / "ranches" / ranch_id / "medications" / "standards" / med["id"] / "label" / stored
        assert path.read_bytes() == b"label"

    def test_invalid_payload(self, client, owner):
        _, headers = owner
        payload = {**IVOMEC, "standard": {"usesOffLabel": False}}
        response = client.post("/api/standard-medications", json=payload, headers=headers)
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_PAYLOAD"
        assert error["message"] == "Invalid standard medication payload"

    def test_images_of_unknown_medication(self, client, owner):
        _, headers = owner
        response = client.get("/api/standard-medications/missing/images", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MEDICATION_NOT_FOUND"

    def test_medications_are_ranch_scoped(self, client, owner):
        _, headers = owner
        _create_medication(client, headers)
        other_ranch = create_ranch(client, uid="other")
        active = client.get(
            "/api/standard-medications/active", headers=auth_headers("other", ranch_id=other_ranch)
        ).json()["medications"]
        assert active == []


class TestRanchStandards:

    def test_retire(self, client, owner):
        _, headers = owner
        med = _create_medication(client, headers)
        standard_id = med["currentStandard"]["id"]

        response = client.post(
            f"/api/ranch-medication-standards/{standard_id}/retire", json={"endDate": "2025-06-30"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["retired"]["endDate"] == "2025-06-30"

        assert client.get("/api/standard-medications/active", headers=headers).json()["medications"] == []
        assert client.get("/api/ranch-medication-standards", headers=headers).json()["standards"] == []

        standards = client.get(
            "/api/ranch-medication-standards", params={"includeRetired": "true"}, headers=headers
        ).json()["standards"]
        assert [s["id"] for s in standards] == [standard_id]
        assert standards[0]["medicationDisplayName"] == med["displayName"]

    def test_retire_without_body_defaults_to_today(self, client, owner):
        _, headers = owner
        standard_id = _create_medication(client, headers)["currentStandard"]["id"]
        response = client.post(f"/api/ranch-medication-standards/{standard_id}/retire", headers=headers)
        assert response.status_code == 200
        assert response.json()["retired"]["endDate"] is not None

    def test_retire_unknown(self, client, owner):
        _, headers = owner
        response = client.post("/api/ranch-medication-standards/missing/retire", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "STANDARD_NOT_FOUND"


class TestPurchases:

    def test_purchase_existing_medication(self, client, owner, db_session):
        _, headers = owner
        med = _create_medication(client, headers)

        for supplier in ("Valley Vet", "  valley   VET "):
            response = client.post(
                "/api/medication-purchases",
                json={
                    "standardMedicationId": med["id"],
                    "quantity": 250,
                    "purchaseUnit": "mL",
                    "totalPrice": 89.5,
                    "supplierName": supplier,
                    "purchaseDate": "2025-05-01",
                },
                headers=headers,
            )
            assert response.status_code == 201, response.text

        suppliers = db_session.query(Supplier).all()
        assert len(suppliers) == 1
        assert suppliers[0].name == "Valley Vet"

        purchases = client.get("/api/medication-purchases", headers=headers).json()["purchases"]
        assert len(purchases) == 2
        assert purchases[0]["supplierName"] == "Valley Vet"

        inventory = client.get("/api/medications/inventory", headers=headers).json()["inventory"]
        assert inventory[0]["quantity"] == 500
        assert inventory[0]["unit"] == "mL"
        assert inventory[0]["lastPurchaseDate"] == "2025-05-01"

    def test_purchase_creates_medication(self, client, owner):
        _, headers = owner
        response = client.post(
            "/api/medication-purchases",
            json={"createNewMedication": IVOMEC, "quantity": 1, "purchaseUnit": "bottle"},
            headers=headers,
        )
        assert response.status_code == 201
        purchase = response.json()["purchase"]
        assert purchase["supplierId"] is None

        active = client.get("/api/standard-medications/active", headers=headers).json()["medications"]
        assert [m["id"] for m in active] == [purchase["standardMedicationId"]]

    def test_medication_required(self, client, owner):
        _, headers = owner
        response = client.post(
            "/api/medication-purchases", json={"quantity": 1, "purchaseUnit": "mL"}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MEDICATION_REQUIRED"

    def test_retired_medication_cannot_be_purchased(self, client, owner):
        _, headers = owner
        med = _create_medication(client, headers)
        client.post(f"/api/ranch-medication-standards/{med['currentStandard']['id']}/retire", headers=headers)

        response = client.post(
            "/api/medication-purchases",
            json={"standardMedicationId": med["id"], "quantity": 1, "purchaseUnit": "mL"},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NO_ACTIVE_STANDARD"

    def test_unknown_medication(self, client, owner):
        _, headers = owner
        response = client.post(
            "/api/medication-purchases",
            json={"standardMedicationId": "missing", "quantity": 1, "purchaseUnit": "mL"},
            headers=headers,
        )
        assert response.status_code == 404

    def test_requires_authentication(self, client):
        response = client.get("/api/medication-purchases")
        assert response.status_code == 401

    def test_foreign_ranch_id(self, client, owner):
        _, headers = owner
        other_ranch = create_ranch(client, uid="other")
        response = client.get("/api/medication-purchases", params={"ranchId": other_ranch}, headers=headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN_RANCH"

    @pytest.mark.parametrize("limit,expected", [(1, 1), (1000, 3)])
    def test_limit_is_clamped(self, client, owner, limit, expected):
        _, headers = owner
        med = _create_medication(client, headers)
        for _ in range(3):
            client.post(
                "/api/medication-purchases",
                json={"standardMedicationId": med["id"], "quantity": 1, "purchaseUnit": "mL"},
                headers=headers,
            )
        purchases = client.get(
            "/api/medication-purchases", params={"limit": limit}, headers=headers
        ).json()["purchases"]
        assert len(purchases) == expected
