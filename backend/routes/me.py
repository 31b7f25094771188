"""Profile route: the caller's local user and ranch memberships."""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from backend.auth import AuthContext, get_auth_context
from backend.database import get_db
from backend.models import MeMembership, MeResponse, MeUser
from backend.models_db import Ranch, User, UserRanch

router = APIRouter()


@router.get("/me", response_model=MeResponse)
async def get_me(
    x_ranch_id: Optional[str] = Header(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == auth.user_id).one()

    # Outer join so a dangling membership still renders (ranchName null)
    rows = (
        db.query(UserRanch.ranch_id, UserRanch.role, Ranch.name)
        .outerjoin(Ranch, Ranch.id == UserRanch.ranch_id)
        .filter(UserRanch.user_id == user.id)
        .order_by(UserRanch.created_at, UserRanch.ranch_id)
        .all()
    )
    memberships = [MeMembership(ranch_id=r[0], role=r[1], ranch_name=r[2]) for r in rows]

    active_ranch_id = memberships[0].ranch_id if memberships else None
    if x_ranch_id and any(m.ranch_id == x_ranch_id.strip() for m in memberships):
        active_ranch_id = x_ranch_id.strip()

    return MeResponse(
        user=MeUser(id=user.id, firebase_uid=user.firebase_uid, email=user.email or auth.email),
        ranches=memberships,
        active_ranch_id=active_ranch_id,
    )
