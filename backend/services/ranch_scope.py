"""Ranch membership scoping and role checks."""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from backend.auth import AuthContext, get_auth_context
from backend.database import get_db
from backend.errors import ApiError
from backend.models_db import UserRanch

# Roles allowed to delete ranch data or retire standards
MANAGER_ROLES = ("owner", "admin")


def list_memberships(db: Session, user_id: str) -> list[UserRanch]:
    return (
        db.query(UserRanch)
        .filter(UserRanch.user_id == user_id)
        .order_by(UserRanch.created_at, UserRanch.ranch_id)
        .all()
    )


def find_membership(db: Session, user_id: str, ranch_id: str) -> Optional[UserRanch]:
    return (
        db.query(UserRanch)
        .filter(UserRanch.user_id == user_id, UserRanch.ranch_id == ranch_id)
        .first()
    )


def require_membership(db: Session, user_id: str, ranch_id: str) -> UserRanch:
    membership = find_membership(db, user_id, ranch_id)
    if membership is None:
        raise ApiError(403, "FORBIDDEN_RANCH", "You do not have access to this ranch")
    return membership


def resolve_active_membership(db: Session, user_id: str, requested_ranch_id: Optional[str] = None) -> UserRanch:
    """The requested ranch when given (must be a membership), else the first one."""
    if requested_ranch_id:
        return require_membership(db, user_id, requested_ranch_id.strip())
    memberships = list_memberships(db, user_id)
    if not memberships:
        raise ApiError(400, "NO_RANCH_SELECTED", "No ranch selected")
    return memberships[0]


async def get_active_membership(
    x_ranch_id: Optional[str] = Header(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> UserRanch:
    """FastAPI dependency: the caller's membership in the active ranch."""
    return resolve_active_membership(db, auth.user_id, x_ranch_id)


async def get_active_ranch_id(membership: UserRanch = Depends(get_active_membership)) -> str:
    return membership.ranch_id


def require_role(*roles: str):
    """Return a FastAPI dependency that checks the caller's role on the active ranch."""
    async def _check(membership: UserRanch = Depends(get_active_membership)) -> UserRanch:
        if membership.role not in roles:
            raise ApiError(
                403,
                "INSUFFICIENT_ROLE",
                f"This action requires one of the roles: {', '.join(roles)}",
            )
        return membership
    return _check
