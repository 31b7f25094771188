"""
Tests for bearer-token checks when a Firebase project is configured.
"""
import pytest
from conftest import auth_headers
from firebase_admin import auth as firebase_auth

import backend.auth
from backend.models_db import User
from backend.services.firebase_tokens import FirebaseTokenVerifier

PROJECT_ID = "grazetrack-test"


@pytest.fixture
def firebase(monkeypatch):
    """Route token checks through a stubbed firebase-admin verify_id_token."""
    monkeypatch.setattr(FirebaseTokenVerifier, "_get_app", lambda self: None)
    monkeypatch.setattr(backend.auth, "_firebase_verifier", FirebaseTokenVerifier(PROJECT_ID))

    def verify_id_token(token, app=None):
        if token == "good-token":
            return {"sub": "fb-uid-1", "user_id": "fb-uid-1", "email": "fb@example.com", "aud": PROJECT_ID}
        if token == "no-subject":
            return {"aud": PROJECT_ID}
        if token == "keys-down":
            raise firebase_auth.CertificateFetchError("Failed to fetch public key certificates", None)
        raise firebase_auth.InvalidIdTokenError("Token expired")

    monkeypatch.setattr(firebase_auth, "verify_id_token", verify_id_token)


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestFirebaseTokens:

    def test_valid_token(self, client, firebase, db_session):
        response = client.get("/api/me", headers=_bearer("good-token"))
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["firebaseUid"] == "fb-uid-1"
        assert user["email"] == "fb@example.com"
        assert db_session.query(User).filter(User.firebase_uid == "fb-uid-1").count() == 1

    @pytest.mark.parametrize("token", ["expired-token", "no-subject", "keys-down"])
    def test_rejected_tokens(self, client, firebase, token):
        response = client.get("/api/me", headers=_bearer(token))
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_local_tokens_not_accepted(self, client, firebase):
        response = client.get("/api/me", headers=auth_headers("rancher-1"))
        assert response.status_code == 401
