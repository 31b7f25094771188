"""
Firebase ID token verification.

Tokens are checked by the firebase-admin SDK, which fetches and caches
Google's signing certificates and validates signature, audience, issuer,
expiry, iat and auth_time. The SDK app is initialized on first use.

Usage:
    verifier = FirebaseTokenVerifier(project_id)
    claims = await verifier.verify(id_token)
"""

import logging
from typing import Optional

import firebase_admin
from fastapi.concurrency import run_in_threadpool
from firebase_admin import auth, credentials

logger = logging.getLogger(__name__)

_APP_NAME = "grazetrack"


class TokenVerificationError(Exception):
    """Raised when a Firebase ID token cannot be verified."""


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens for a single project."""

    def __init__(self, project_id: str, service_account_file: Optional[str] = None):
        self._project_id = project_id
        self._service_account_file = service_account_file
        self._app: Optional[firebase_admin.App] = None

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app
        try:
            self._app = firebase_admin.get_app(_APP_NAME)
        except ValueError:
            # Verification needs only the project id; a service account is optional
            cred = credentials.Certificate(self._service_account_file) if self._service_account_file else None
            self._app = firebase_admin.initialize_app(cred, {"projectId": self._project_id}, name=_APP_NAME)
            logger.info("Initialized Firebase app for project %s", self._project_id)
        return self._app

    async def verify(self, token: str) -> dict:
        """Return the token's claims, or raise TokenVerificationError."""
        app = self._get_app()
        try:
            claims = await run_in_threadpool(auth.verify_id_token, token, app)
        except auth.CertificateFetchError as e:
            logger.error("Could not fetch Firebase certificates: %s", e)
            raise TokenVerificationError("Signing keys unavailable")
        except (auth.InvalidIdTokenError, ValueError) as e:
            raise TokenVerificationError(str(e))

        if not (claims.get("user_id") or claims.get("sub")):
            raise TokenVerificationError("Token has no subject")
        return claims
