"""Authentication: bearer token verification and local user resolution."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.config import FIREBASE_PROJECT_ID, FIREBASE_SERVICE_ACCOUNT_FILE, SECRET_KEY
from backend.database import get_db
from backend.errors import ApiError, is_database_unavailable
from backend.models_db import User
from backend.services.firebase_tokens import FirebaseTokenVerifier, TokenVerificationError

logger = logging.getLogger(__name__)

# Local JWT config (used when Firebase is not configured)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 24

# Security scheme
security = HTTPBearer(auto_error=False)

_firebase_verifier: Optional[FirebaseTokenVerifier] = (
    FirebaseTokenVerifier(FIREBASE_PROJECT_ID, FIREBASE_SERVICE_ACCOUNT_FILE) if FIREBASE_PROJECT_ID else None
)


@dataclass
class AuthContext:
    uid: str
    user_id: str  # users.id
    email: Optional[str] = None


def create_access_token(uid: str, email: Optional[str] = None) -> str:
    """Mint a local HS256 token for development and tests."""
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    payload = {"sub": uid, "exp": expire}
    if email:
        payload["email"] = email
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a local JWT and return its claims, or None if invalid."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not (payload.get("user_id") or payload.get("sub")):
        return None
    return payload


async def verify_bearer_token(token: str) -> Optional[dict]:
    if _firebase_verifier is not None:
        try:
            return await _firebase_verifier.verify(token)
        except TokenVerificationError as e:
            logger.warning("Firebase token rejected: %s", e)
            return None
    return decode_token(token)


def resolve_user(db: Session, uid: str, email: Optional[str]) -> User:
    """Find the local user for an identity-provider uid, creating it on first sight."""
    user = db.query(User).filter(User.firebase_uid == uid).first()
    if user is None:
        user = User(firebase_uid=uid, email=email)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created local user %s for uid %s", user.id, uid)
    elif email and not user.email:
        user.email = email
        db.commit()
    return user


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> AuthContext:
    """FastAPI dependency: require a valid bearer token, return the caller."""
    if not credentials or not credentials.credentials.strip():
        raise ApiError(401, "UNAUTHENTICATED", "Missing Authorization bearer token")

    claims = await verify_bearer_token(credentials.credentials.strip())
    if claims is None:
        raise ApiError(401, "INVALID_TOKEN", "Invalid or expired token")

    uid = claims.get("user_id") or claims.get("sub")
    email = claims.get("email")

    try:
        user = resolve_user(db, uid, email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("User lookup/create failed for uid %s", uid, exc_info=e)
        if is_database_unavailable(e):
            raise ApiError(503, "DATABASE_UNAVAILABLE", "Database unavailable")
        raise ApiError(500, "PROFILE_LOAD_FAILED", "Database error while resolving user record")

    return AuthContext(uid=uid, user_id=user.id, email=user.email)
